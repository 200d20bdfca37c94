"""Best-effort editor launching."""
import subprocess

import editor
from editor import DEFAULT_EDITORS, open_in_editor


class FakePopen:
    """Records launches; names in ``missing`` behave like absent executables."""

    def __init__(self, missing=()):
        self.missing = set(missing)
        self.launched = []

    def __call__(self, args, **kwargs):
        if args[0] in self.missing:
            raise FileNotFoundError(2, "No such file or directory", args[0])
        self.launched.append((args, kwargs))
        return object()


def test_first_available_editor_wins(monkeypatch):
    popen = FakePopen()
    monkeypatch.setattr(editor.subprocess, "Popen", popen)

    assert open_in_editor("/tmp/input.md") == "windsurf-next"
    assert len(popen.launched) == 1
    args, kwargs = popen.launched[0]
    assert args == ["windsurf-next", "-r", "/tmp/input.md"]
    assert kwargs["stdout"] == subprocess.DEVNULL
    assert kwargs["stderr"] == subprocess.DEVNULL


def test_falls_through_failing_candidates(monkeypatch):
    popen = FakePopen(missing={"windsurf-next", "windsurf"})
    monkeypatch.setattr(editor.subprocess, "Popen", popen)

    assert open_in_editor("/tmp/input.md") == "code"
    assert [args[0] for args, _ in popen.launched] == ["code"]


def test_no_editor_available_is_not_an_error(monkeypatch):
    popen = FakePopen(missing=set(DEFAULT_EDITORS))
    monkeypatch.setattr(editor.subprocess, "Popen", popen)

    assert open_in_editor("/tmp/input.md") is None
    assert popen.launched == []


def test_custom_candidate_list(monkeypatch):
    popen = FakePopen()
    monkeypatch.setattr(editor.subprocess, "Popen", popen)

    assert open_in_editor("/tmp/input.md", editors=("vim",)) == "vim"
    assert open_in_editor("/tmp/input.md", editors=()) is None
