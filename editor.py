#!/usr/bin/env python3
"""
Editor launcher

Surfaces the watched file to the human by opening it as a tab in an already
running editor window. Purely best-effort: the wait works the same whether
or not an editor opened.
"""

import logging
import subprocess
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

# Tried in order; "-r" reuses the current window
DEFAULT_EDITORS = ("windsurf-next", "windsurf", "code")
REUSE_WINDOW_FLAG = "-r"


def open_in_editor(path: str, editors: Sequence[str] = DEFAULT_EDITORS) -> Optional[str]:
    """
    Open ``path`` in the first editor that can be spawned.

    The process is detached and never waited on. Returns the editor name that
    was launched, or None when every candidate failed.
    """
    for editor in editors:
        try:
            subprocess.Popen(
                [editor, REUSE_WINDOW_FLAG, path],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            logger.info(f"Failed to open with {editor}: {e}")
            continue
        logger.info(f"📂 Opening {path} in {editor}")
        return editor

    logger.warning(f"⚠️ Could not open file in editor. Please open manually: {path}")
    return None
