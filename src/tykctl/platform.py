"""OS-specific executable detection and subprocess invocation.

POSIX and Windows disagree on what "executable" means and on how a script
file is launched. Everything that branches on the operating system lives
here so the plugin and hook engines can stay platform-neutral:

* :func:`is_executable` -- mode bits on POSIX, file-suffix heuristics on
  Windows.
* :func:`build_command` -- the argv that actually runs a file (batch files
  go through ``cmd.exe``, PowerShell scripts through ``powershell``).
* :func:`popen_kwargs` and :func:`kill_process_tree` -- put a child in its
  own process group so a timeout can kill everything it spawned.
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import stat
import subprocess
import sys
from pathlib import Path
from typing import Any, Sequence

logger = logging.getLogger(__name__)

WINDOWS_EXECUTABLE_SUFFIXES = frozenset({".exe", ".bat", ".cmd", ".ps1", ".com"})
"""File suffixes treated as executable on Windows, where there are no mode bits."""

EXECUTABLE_MODE = 0o755


def is_windows() -> bool:
    """Return True when running on Windows."""
    return sys.platform == "win32"


def script_extension() -> str:
    """Return the suffix for generated scripts: ``.bat`` on Windows, none elsewhere."""
    return ".bat" if is_windows() else ""


def is_executable(path: Path) -> bool:
    """Check whether *path* is a regular file the current platform would run.

    Args:
        path: File to inspect. Symlinks are followed.

    Returns:
        ``False`` for directories, missing files and unreadable entries.
    """
    try:
        st = path.stat()
    except OSError:
        return False
    if not stat.S_ISREG(st.st_mode):
        return False
    if is_windows():
        return path.suffix.lower() in WINDOWS_EXECUTABLE_SUFFIXES
    return bool(st.st_mode & 0o111)


def make_executable(path: Path) -> None:
    """Force ``rwxr-xr-x`` on *path*, whatever its current mode."""
    os.chmod(path, EXECUTABLE_MODE)


def copy_executable(source: Path, dest: Path) -> None:
    """Copy *source* to *dest* and mark the copy executable.

    The source's own permission bits are ignored: a plugin shipped without
    the executable bit still installs as runnable.
    """
    shutil.copyfile(source, dest)
    make_executable(dest)


def write_executable(path: Path, content: str) -> None:
    """Write a generated script and mark it executable."""
    newline = "\r\n" if is_windows() else "\n"
    with open(path, "w", encoding="utf-8", newline=newline) as f:
        f.write(content)
    make_executable(path)


def build_command(path: Path, args: Sequence[str] = ()) -> list[str]:
    """Return the argv that runs *path* with *args* on this platform.

    Args:
        path: The executable or script.
        args: Arguments forwarded verbatim.

    Returns:
        A list suitable for :class:`subprocess.Popen`.
    """
    if is_windows():
        suffix = path.suffix.lower()
        if suffix in (".bat", ".cmd"):
            return ["cmd.exe", "/c", str(path), *args]
        if suffix == ".ps1":
            return [
                "powershell",
                "-NoProfile",
                "-ExecutionPolicy",
                "Bypass",
                "-File",
                str(path),
                *args,
            ]
    return [str(path), *args]


def popen_kwargs(isolate: bool) -> dict[str, Any]:
    """Extra :class:`subprocess.Popen` arguments for process-group isolation.

    With *isolate* the child becomes the leader of a new process group (a
    new session on POSIX) so :func:`kill_process_tree` can reach its
    descendants. Without it the child stays in the foreground group and
    receives terminal signals like any ordinary child.
    """
    if not isolate:
        return {}
    if is_windows():
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}  # type: ignore[attr-defined]
    return {"start_new_session": True}


def kill_process_tree(proc: subprocess.Popen, isolated: bool) -> None:
    """Kill *proc* and, when it was started isolated, its whole process group.

    On POSIX the group is signalled even after *proc* itself has exited:
    background descendants may still hold its pipes open.
    """
    try:
        if isolated and not is_windows():
            os.killpg(proc.pid, signal.SIGKILL)
        elif proc.poll() is not None:
            return
        elif isolated:
            subprocess.run(
                ["taskkill", "/F", "/T", "/PID", str(proc.pid)],
                capture_output=True,
                check=False,
            )
        else:
            proc.kill()
    except (ProcessLookupError, PermissionError, OSError) as exc:
        logger.debug("Process %s already gone during kill: %s", proc.pid, exc)
        if proc.poll() is None:
            proc.kill()
    proc.wait()


def exit_code_from_returncode(returncode: int) -> int:
    """Map a :attr:`subprocess.Popen.returncode` to a shell-style exit status.

    A child killed by signal ``N`` reports ``-N``; shells report ``128 + N``.
    """
    if returncode < 0:
        return 128 + (-returncode)
    return returncode
