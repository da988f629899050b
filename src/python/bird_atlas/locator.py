"""
Hand a photo over to the operating system.

Two boundary calls used by front ends once a photo has been picked from the
tree: show it in the platform file manager, or open it with the default
application. Neither involves the taxonomy.

    macOS    open -R <path>             open <path>
    Windows  explorer /select,<path>    cmd /C start "" <path>
    Linux    xdg-open <parent dir>      xdg-open <path>

Launchers are started detached; a launcher that cannot be started raises
LocatorError.
"""

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Union

from bird_atlas.exceptions import LocatorError

logger = logging.getLogger(__name__)


def reveal_command(path: Path, platform: Optional[str] = None) -> List[str]:
    """Command that shows path selected in the file manager."""
    platform = platform or sys.platform
    if platform == "darwin":
        return ["open", "-R", str(path)]
    if platform.startswith("win"):
        return ["explorer", f"/select,{path}"]
    # Most Linux file managers cannot select a file, open its folder instead
    target = path.parent if not path.is_dir() else path
    return ["xdg-open", str(target)]


def open_command(path: Path, platform: Optional[str] = None) -> List[str]:
    """Command that opens path with its default application."""
    platform = platform or sys.platform
    if platform == "darwin":
        return ["open", str(path)]
    if platform.startswith("win"):
        return ["cmd", "/C", "start", "", str(path)]
    return ["xdg-open", str(path)]


def reveal_in_file_manager(path: Union[str, Path], platform: Optional[str] = None) -> None:
    """
    Show a file in the platform file manager.

    Raises:
        LocatorError: If the path does not exist or the launcher fails to start.
    """
    path = _existing(path)
    _launch(reveal_command(path, platform))


def open_file(path: Union[str, Path], platform: Optional[str] = None) -> None:
    """
    Open a file with the platform's default application.

    Raises:
        LocatorError: If the path does not exist or the launcher fails to start.
    """
    path = _existing(path)
    _launch(open_command(path, platform))


def _existing(path: Union[str, Path]) -> Path:
    path = Path(os.path.abspath(path))
    if not path.exists():
        raise LocatorError(f"No such file: {path}")
    return path


def _launch(command: List[str]) -> None:
    logger.debug("Launching %s", command)
    try:
        subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError as e:
        raise LocatorError(f"Could not run {command[0]}: {e}") from e
