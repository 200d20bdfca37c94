#!/usr/bin/env python3
"""
Wait Engine - blocks a tool call until the human submits a message

A wait goes through idle -> rendering -> watching -> resolved:

- rendering: the watched file is rewritten with the conversation history and
  a fresh, empty message region, and an editor is asked to show it
- watching: every change to the file is read back and checked for a message
  terminated by //SEND; incomplete saves are ignored
- resolved: the watch is closed, the message is added to the history and the
  pending call's future is completed

Only one wait may be pending at a time. A second call made while one is
pending is rejected with an error payload instead of fighting over the file.
There is no timeout: a wait lasts until a valid save or process exit.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, Optional, Sequence

from watchfiles import Change, awatch

from editor import DEFAULT_EDITORS, open_in_editor
from input_file import ConversationHistory, extract_message, render_input_file

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 100

WatchFactory = Callable[[Path, asyncio.Event], AsyncIterator[Any]]


class WaitState(str, Enum):
    IDLE = "idle"
    RENDERING = "rendering"
    WATCHING = "watching"
    RESOLVED = "resolved"


@dataclass
class SessionContext:
    """Process-wide state: the watched file and the conversation so far.

    Built once at startup and handed to the engine and the dispatcher.
    """
    input_file: Path
    history: ConversationHistory = field(default_factory=ConversationHistory)


@dataclass
class PendingWait:
    future: "asyncio.Future[Dict[str, Any]]"
    stop_event: asyncio.Event
    state: WaitState = WaitState.RENDERING


def watch_input_file(path: Path, stop_event: asyncio.Event,
                     debounce_ms: int = DEFAULT_DEBOUNCE_MS) -> AsyncIterator[Any]:
    """
    Yield batches of changes to ``path`` until ``stop_event`` is set.

    The parent directory is watched rather than the file itself so saves done
    by write-to-temp-then-rename are still seen.
    """
    name = path.name

    def only_input_file(change: Change, changed_path: str) -> bool:
        return change != Change.deleted and os.path.basename(changed_path) == name

    return awatch(
        path.parent,
        watch_filter=only_input_file,
        stop_event=stop_event,
        recursive=False,
        debounce=debounce_ms,
    )


class WaitEngine:
    def __init__(
        self,
        context: SessionContext,
        watch: Optional[WatchFactory] = None,
        editors: Sequence[str] = DEFAULT_EDITORS,
        open_editor: Callable[[str, Sequence[str]], Optional[str]] = open_in_editor,
    ):
        self.context = context
        self.editors = tuple(editors)
        self._watch_changes = watch or watch_input_file
        self._open_editor = open_editor
        self._pending: Optional[PendingWait] = None

    @property
    def state(self) -> WaitState:
        if self._pending is None:
            return WaitState.IDLE
        return self._pending.state

    def get_input_file(self) -> Dict[str, Any]:
        return {
            "status": "success",
            "input_file": str(self.context.input_file),
        }

    async def wait_for_user_input(self) -> Dict[str, Any]:
        """Rewrite the input file and block until a //SEND-terminated message is saved."""
        if self._pending is not None:
            logger.warning("wait_for_user_input called while another wait is pending")
            return {
                "status": "error",
                "message": "A wait for user input is already in progress",
            }

        loop = asyncio.get_running_loop()
        pending = PendingWait(future=loop.create_future(), stop_event=asyncio.Event())
        self._pending = pending
        watch_task = None

        try:
            self._write_input_file()
            path = str(self.context.input_file)
            logger.info(f"📝 Waiting for user input in: {path}")
            logger.info("   Write your message and end with //SEND to submit.")

            if self.editors:
                self._open_editor(path, self.editors)

            pending.state = WaitState.WATCHING
            watch_task = asyncio.create_task(self._watch(pending))
            return await pending.future
        finally:
            pending.stop_event.set()
            if not pending.future.done():
                pending.future.cancel()
            if watch_task is not None:
                # a resolved watch is already closing itself
                if pending.state != WaitState.RESOLVED:
                    watch_task.cancel()
                await asyncio.gather(watch_task, return_exceptions=True)
            self._pending = None

    def _write_input_file(self) -> None:
        path = self.context.input_file
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_input_file(self.context.history), encoding="utf-8")

    async def _watch(self, pending: PendingWait) -> None:
        changes = self._watch_changes(self.context.input_file, pending.stop_event)
        try:
            async for _ in changes:
                if self._handle_change(pending):
                    break
        except Exception as e:
            logger.error(f"File watch failed for {self.context.input_file}: {e}")
            if not pending.future.done():
                pending.future.set_exception(e)
            return
        finally:
            aclose = getattr(changes, "aclose", None)
            if aclose is not None:
                await aclose()

        if not pending.future.done():
            pending.future.set_exception(
                RuntimeError("File watch ended before a message was submitted")
            )

    def _handle_change(self, pending: PendingWait) -> bool:
        """Check the file after a change; resolve the wait if it holds a message."""
        if pending.future.done():
            return True

        try:
            content = self.context.input_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Error reading file: {e}")
            return False

        message = extract_message(content)
        if message is None:
            return False

        pending.stop_event.set()
        entry = self.context.history.append(message)
        pending.state = WaitState.RESOLVED
        logger.info(f"✅ Received message at {entry.timestamp} ({len(message)} chars)")
        pending.future.set_result({
            "status": "success",
            "user_message": message,
        })
        return True
