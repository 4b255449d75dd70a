"""Tmux client for subprocess-based tmux interaction."""

import asyncio
import logging
import re
from dataclasses import dataclass

from panectl.errors import MultiplexerError, NotFoundError
from panectl.telemetry import metrics

logger = logging.getLogger(__name__)

# Use tab as delimiter to avoid conflicts with colons in data (paths, names)
_FIELD_SEP = "\t"

# stderr fragments tmux prints when a target does not exist
_NOT_FOUND_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"can't find session|session not found"), "session"),
    (re.compile(r"can't find window"), "window"),
    (re.compile(r"can't find pane"), "pane"),
    (re.compile(r"no buffer|unknown buffer"), "buffer"),
    (re.compile(r"no server running|error connecting to|no current (client|session)"), "server"),
]

_PANE_FIELDS = [
    "#{session_name}", "#{window_index}", "#{window_name}", "#{pane_index}",
    "#{pane_id}", "#{pane_current_command}", "#{pane_left}", "#{pane_top}",
    "#{pane_width}", "#{pane_height}", "#{pane_active}", "#{pane_current_path}",
]


@dataclass
class TmuxResult:
    """Outcome of one tmux invocation."""

    returncode: int
    stdout: bytes
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def text(self) -> str:
        return self.stdout.decode(errors="replace")


def classify_not_found(stderr: str) -> str | None:
    """Return the missing target kind if stderr reports one, else None."""
    for pattern, kind in _NOT_FOUND_PATTERNS:
        if pattern.search(stderr):
            return kind
    return None


class TmuxClient:
    """Client for interacting with tmux via subprocess commands.

    Provides async methods for:
    - Creating sessions, windows and split panes
    - Listing sessions, windows and panes
    - Capturing pane content and sending keys
    - Reading and writing named buffers and environment
    """

    def __init__(self, socket_path: str | None = None):
        """Initialize TmuxClient.

        Args:
            socket_path: Optional tmux socket path. If None, uses default socket.
        """
        self._socket_path = socket_path

    async def execute(self, *args: str, input: bytes | None = None) -> TmuxResult:
        """Execute a tmux command and return its raw result.

        Args:
            *args: Command arguments (e.g., "list-windows", "-a", "-F", "...")
            input: Optional bytes fed to tmux stdin (used by load-buffer)

        Returns:
            TmuxResult; a missing tmux binary is reported as returncode 127.
        """
        cmd = ["tmux"]
        if self._socket_path:
            cmd.extend(["-S", self._socket_path])
        cmd.extend(args)

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate(input)
        except OSError as e:
            logger.error(f"tmux subprocess error: {e}")
            return TmuxResult(returncode=127, stdout=b"", stderr=str(e))

        result = TmuxResult(returncode=proc.returncode, stdout=stdout, stderr=stderr.decode(errors="replace"))
        if not result.ok:
            logger.debug(f"tmux command failed: {' '.join(cmd)}: {result.stderr.strip()}")
        return result

    async def run(self, *args: str) -> str | None:
        """Execute a tmux command, treating failure as absence.

        Returns:
            Command stdout on success, None on failure.
        """
        result = await self.execute(*args)
        if not result.ok:
            return None
        return result.text

    async def check(self, *args: str, target: str = "", input: bytes | None = None) -> TmuxResult:
        """Execute a tmux command that must succeed.

        Args:
            *args: Command arguments
            target: Target named in NotFoundError if tmux reports it missing
            input: Optional stdin bytes

        Raises:
            NotFoundError: tmux reported the target (or server) missing
            MultiplexerError: any other failure
        """
        result = await self.execute(*args, input=input)
        if result.ok:
            return result
        kind = classify_not_found(result.stderr)
        if kind is not None:
            raise NotFoundError(kind, target or kind, result.stderr.strip())
        metrics.inc("tmux.errors", {"command": args[0]})
        logger.warning(f"tmux command failed: {args[0]}: {result.stderr.strip()}")
        raise MultiplexerError(args[0], result.returncode, result.stderr)

    async def list_sessions(self) -> list[str]:
        """List session names; empty when no server is running."""
        output = await self.run("list-sessions", "-F", "#{session_name}")
        if not output:
            return []
        return [line for line in output.splitlines() if line]

    async def has_session(self, target: str) -> bool:
        result = await self.execute("has-session", "-t", target)
        return result.ok

    async def list_windows(self, target: str) -> list[dict]:
        """List windows of one session.

        Returns:
            List of window dicts with keys:
            - session: str
            - index: int
            - name: str
            - width: int
            - height: int
            - active: bool

        Raises:
            NotFoundError: session does not exist
        """
        fmt = _FIELD_SEP.join([
            "#{session_name}", "#{window_index}", "#{window_name}",
            "#{window_width}", "#{window_height}", "#{window_active}",
        ])
        result = await self.check("list-windows", "-t", target, "-F", fmt, target=target)

        windows = []
        for line in result.text.strip().split("\n"):
            if not line:
                continue
            parts = line.split(_FIELD_SEP)
            if len(parts) >= 6:
                try:
                    windows.append(
                        {
                            "session": parts[0],
                            "index": int(parts[1]),
                            "name": parts[2],
                            "width": int(parts[3]),
                            "height": int(parts[4]),
                            "active": parts[5] == "1",
                        }
                    )
                except (ValueError, IndexError) as e:
                    logger.warning(f"Failed to parse window line: {line!r}: {e}")

        return windows

    async def list_panes(self, target: str | None = None, session_wide: bool = False) -> list[dict]:
        """List panes.

        Args:
            target: None lists every pane on the server; otherwise a session or
                window target
            session_wide: With a session target, list panes of all its windows

        Returns:
            List of pane dicts (see _parse_pane_line).

        Raises:
            NotFoundError: target does not exist
        """
        fmt = _FIELD_SEP.join(_PANE_FIELDS)
        if target is None:
            output = await self.run("list-panes", "-a", "-F", fmt)
            text = output or ""
        else:
            args = ["list-panes", "-t", target, "-F", fmt]
            if session_wide:
                args.insert(1, "-s")
            text = (await self.check(*args, target=target)).text

        panes = []
        for line in text.strip().split("\n"):
            if not line:
                continue
            pane = self._parse_pane_line(line)
            if pane is not None:
                panes.append(pane)
        return panes

    def _parse_pane_line(self, line: str) -> dict | None:
        parts = line.split(_FIELD_SEP)
        if len(parts) < 11:
            logger.warning(f"Failed to parse pane line: {line!r}")
            return None
        try:
            return {
                "session": parts[0],
                "window_index": int(parts[1]),
                "window_name": parts[2],
                "pane_index": int(parts[3]),
                "pane_id": parts[4],
                "current_command": parts[5],
                "left": int(parts[6]),
                "top": int(parts[7]),
                "width": int(parts[8]),
                "height": int(parts[9]),
                "active": parts[10] == "1",
                "path": parts[11] if len(parts) >= 12 else "",
            }
        except ValueError as e:
            logger.warning(f"Failed to parse pane line: {line!r}: {e}")
            return None

    async def get_pane_info(self, target: str) -> dict:
        """Get detailed info for a specific pane.

        Raises:
            NotFoundError: pane does not exist
        """
        fmt = _FIELD_SEP.join(_PANE_FIELDS)
        result = await self.check("display-message", "-p", "-t", target, fmt, target=target)
        pane = self._parse_pane_line(result.text.rstrip("\n"))
        if pane is None:
            raise NotFoundError("pane", target, "unparseable pane info")
        return pane

    async def get_current_session(self) -> str | None:
        """Session of the attached client, or None outside tmux."""
        output = await self.run("display-message", "-p", "#{session_name}")
        if output:
            return output.strip() or None
        return None

    async def new_session(self, session: str, window: str) -> None:
        await self.check("new-session", "-d", "-s", session, "-n", window, target=session)

    async def new_window(self, session_target: str, window: str) -> int:
        """Append a detached window and return its index."""
        result = await self.check(
            "new-window", "-d", "-t", f"{session_target}:", "-n", window,
            "-P", "-F", "#{window_index}",
            target=session_target,
        )
        return int(result.text.strip())

    async def split_window(self, target: str, horizontal: bool, size_percent: int) -> str:
        """Split a pane without moving focus and return the new pane id (e.g. "%7").

        tmux inserts the new pane after the split one and renumbers the rest,
        so only the id stays valid across later splits.
        """
        result = await self.check(
            "split-window", "-d", "-t", target,
            "-h" if horizontal else "-v",
            "-l", f"{size_percent}%",
            "-P", "-F", "#{pane_id}",
            target=target,
        )
        return result.text.strip()

    async def kill_window(self, target: str) -> None:
        await self.check("kill-window", "-t", target, target=target)

    async def set_environment(self, key: str, value: str, session_target: str | None = None) -> None:
        scope = ["-g"] if session_target is None else ["-t", session_target]
        await self.check("set-environment", *scope, key, value, target=session_target or "global")

    async def show_environment(self, key: str, session_target: str | None = None) -> str | None:
        """Read one environment variable; None when unset or removed."""
        scope = ["-g"] if session_target is None else ["-t", session_target]
        output = await self.run("show-environment", *scope, key)
        if not output:
            return None
        line = output.strip()
        # "-KEY" marks a variable removed from the environment
        if line.startswith("-"):
            return None
        _, sep, value = line.partition("=")
        return value if sep else None

    async def send_keys(self, target: str, keys: list[str], literal: bool = False) -> None:
        """Send keys to a pane.

        Args:
            target: Pane target
            keys: Key names, or text when literal is True
            literal: Pass -l so tmux does not look up key names
        """
        args = ["send-keys", "-t", target]
        if literal:
            args.append("-l")
        # "--" so text starting with '-' is not read as a flag
        args.append("--")
        args.extend(keys)
        await self.check(*args, target=target)

    async def capture_pane(self, target: str, start: str, end: str, join: bool = True) -> str:
        """Capture a line range of a pane.

        Args:
            target: Pane target
            start: -S value ("-" for the start of history)
            end: -E value ("-" for the last line)
            join: Join wrapped lines (-J)

        Raises:
            NotFoundError: pane does not exist
        """
        # -p: print to stdout
        # -S/-E: start/end line (negative = scrollback)
        args = ["capture-pane", "-p", "-t", target, "-S", start, "-E", end]
        if join:
            args.append("-J")
        result = await self.check(*args, target=target)
        return result.text

    async def select_pane(self, target: str) -> None:
        await self.check("select-pane", "-t", target, target=target)

    async def select_window(self, target: str) -> None:
        await self.check("select-window", "-t", target, target=target)

    async def load_buffer(self, name: str, payload: bytes) -> None:
        """Replace a named buffer with payload read from stdin."""
        await self.check("load-buffer", "-b", name, "-", target=name, input=payload)

    async def show_buffer(self, name: str) -> bytes:
        result = await self.check("show-buffer", "-b", name, target=name)
        return result.stdout

    async def list_buffers(self) -> list[dict]:
        fmt = _FIELD_SEP.join(["#{buffer_name}", "#{buffer_size}", "#{buffer_created}"])
        output = await self.run("list-buffers", "-F", fmt)
        if not output:
            return []

        buffers = []
        for line in output.strip().split("\n"):
            parts = line.split(_FIELD_SEP)
            if len(parts) < 3:
                continue
            try:
                buffers.append({"name": parts[0], "size": int(parts[1]), "created": float(parts[2])})
            except ValueError as e:
                logger.warning(f"Failed to parse buffer line: {line!r}: {e}")
        return buffers

    async def delete_buffer(self, name: str) -> None:
        await self.check("delete-buffer", "-b", name, target=name)
