"""Pytest configuration and shared fixtures."""
import asyncio
import os
import sys
from pathlib import Path

import pytest

# Add the project root to Python path (modules live at the top level)
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from wait_engine import SessionContext, WaitEngine  # noqa: E402


class FakeWatch:
    """Stand-in for the file watcher: the test decides when a change happened."""

    def __init__(self):
        self._queue = None
        self.opened = 0
        self.closed = 0
        self.paths = []

    @property
    def queue(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue()
        return self._queue

    def __call__(self, path, stop_event):
        self.paths.append(path)
        return self._changes(path, stop_event)

    async def _changes(self, path, stop_event):
        self.opened += 1
        try:
            while not stop_event.is_set():
                item = await self.queue.get()
                if isinstance(item, Exception):
                    raise item
                yield {("modified", str(path))}
        finally:
            self.closed += 1

    def notify(self):
        self.queue.put_nowait(None)

    def fail(self, error: Exception):
        self.queue.put_nowait(error)


class EditorSpy:
    def __init__(self):
        self.calls = []

    def __call__(self, path, editors):
        self.calls.append((path, tuple(editors)))
        return editors[0] if editors else None


async def until(predicate, timeout: float = 2.0):
    """Yield to the event loop until ``predicate()`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


async def settle(rounds: int = 10):
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def input_file(tmp_path: Path) -> Path:
    return tmp_path / "user_input.md"


@pytest.fixture
def fake_watch() -> FakeWatch:
    return FakeWatch()


@pytest.fixture
def editor_spy() -> EditorSpy:
    return EditorSpy()


@pytest.fixture
def engine(input_file: Path, fake_watch: FakeWatch, editor_spy: EditorSpy) -> WaitEngine:
    return WaitEngine(
        SessionContext(input_file=input_file),
        watch=fake_watch,
        editors=("test-editor",),
        open_editor=editor_spy,
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Keep developer settings out of the tests."""
    for var in ["USER_INPUT_FILE", "USER_INPUT_EDITORS", "USER_INPUT_DEBOUNCE_MS"]:
        monkeypatch.delenv(var, raising=False)
    yield


def save(path: Path, content: str, watch: FakeWatch) -> None:
    """Simulate the human saving the file."""
    path.write_text(content, encoding="utf-8")
    watch.notify()


def remove(path: Path) -> None:
    if path.exists():
        os.remove(path)
