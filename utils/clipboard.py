# ============================================================
# nlql - Natural Language SQL Terminal
# utils/clipboard.py - System clipboard via external tools
# ============================================================

import subprocess
from typing import List
from loguru import logger

CLIPBOARD_COMMANDS: List[List[str]] = [
    ["pbcopy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
]


def copy_to_clipboard(text: str) -> bool:
    """Pipe text into the first clipboard tool that accepts it."""
    for command in CLIPBOARD_COMMANDS:
        try:
            completed = subprocess.run(
                command,
                input=text.encode("utf-8"),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=5,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"clipboard tool {command[0]} unavailable: {e}")
            continue
        if completed.returncode == 0:
            logger.debug(f"copied {len(text)} chars via {command[0]}")
            return True
    logger.warning("no clipboard tool available")
    return False
