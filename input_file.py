#!/usr/bin/env python3
"""
Input File - history rendering and //SEND detection

The human talks to the server through a single markdown file. Every wait
rewrites it as: conversation history (if any), then an instruction block with
an empty fenced region ending in the //SEND marker. Saving the file with a
message above the marker submits that message.

Everything here is pure: no I/O, no event loop.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Optional

# ============================================================================
# FILE FORMAT
# ============================================================================

SEND_MARKER = "//SEND"
FENCE = "```"

HISTORY_HEADER = "## Conversation History"
HISTORY_SEPARATOR = "---"
MESSAGE_HEADER = "## Your Message"
INSTRUCTIONS = f"Type your message below. End with `{SEND_MARKER}` to submit."

# //SEND at the very end, optionally followed by the closing fence
_MARKER_AT_END = re.compile(r"//SEND\s*(?:```)?\s*$", re.IGNORECASE)

TIMESTAMP_FORMAT = "%H:%M:%S"

# ============================================================================
# CONVERSATION HISTORY
# ============================================================================

@dataclass(frozen=True)
class HistoryEntry:
    timestamp: str
    text: str

    def render(self) -> str:
        return f"[{self.timestamp}] USER: {self.text}"


class ConversationHistory:
    """Append-only list of submitted messages, oldest first."""

    def __init__(self):
        self._entries: List[HistoryEntry] = []

    def append(self, text: str, timestamp: Optional[str] = None) -> HistoryEntry:
        if timestamp is None:
            timestamp = datetime.now().strftime(TIMESTAMP_FORMAT)
        entry = HistoryEntry(timestamp=timestamp, text=text)
        self._entries.append(entry)
        return entry

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(tuple(self._entries))

# ============================================================================
# RENDERING
# ============================================================================

def render_input_file(history: ConversationHistory) -> str:
    """Compose the full body written to the watched file at the start of a wait."""
    history_section = ""
    if len(history) > 0:
        rendered = "\n\n".join(entry.render() for entry in history)
        history_section = f"{HISTORY_HEADER}\n\n{rendered}\n\n{HISTORY_SEPARATOR}\n\n"

    instructions = (
        f"{MESSAGE_HEADER}\n\n"
        f"{INSTRUCTIONS}\n\n"
        f"{FENCE}\n\n{SEND_MARKER}\n{FENCE}"
    )
    return history_section + instructions

# ============================================================================
# MARKER DETECTION & EXTRACTION
# ============================================================================

def _editable_region_start(text: str) -> int:
    # The region opens at the first fence after the last "Your Message"
    # heading that has one, so fences inside replayed history are skipped
    # and a heading typed into the message itself is not mistaken for it.
    heading = text.rfind(MESSAGE_HEADER)
    while heading != -1:
        fence = text.find(FENCE, heading)
        if fence != -1:
            return fence + len(FENCE)
        heading = text.rfind(MESSAGE_HEADER, 0, heading)

    fence = text.find(FENCE)
    if fence == -1:
        return 0
    return fence + len(FENCE)


def extract_message(content: str) -> Optional[str]:
    """
    Pull the submitted message out of the raw file content.

    Returns None when the human is still composing: the file is blank, the
    marker is not at the end, or there is nothing but whitespace before it.

    Args:
        content: Full text of the watched file

    Returns:
        The trimmed message, or None if this save is not a submission
    """
    trimmed = content.strip()
    if not trimmed:
        return None

    match = _MARKER_AT_END.search(trimmed)
    if match is None:
        return None

    before_marker = trimmed[:match.start()]
    message = before_marker[_editable_region_start(before_marker):].strip()
    return message or None
