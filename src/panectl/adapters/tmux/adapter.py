"""Tmux adapter implementing the MultiplexerBackend interface."""

import logging
from collections.abc import Sequence

from panectl import config
from panectl.adapters.base import BufferInfo, MultiplexerBackend, PaneInfo, SplitDirection, WindowInfo
from panectl.core.address import PaneAddress
from panectl.errors import NotFoundError

from .client import TmuxClient

logger = logging.getLogger(__name__)


def session_target(session: str) -> str:
    """Exact-match session target ("=name"), so "dev" never matches "devops"."""
    return f"={session}"


def window_target(session: str, window: str | int) -> str:
    if isinstance(window, int):
        return f"={session}:{window}"
    return f"={session}:={window}"


def pane_target(address: PaneAddress) -> str:
    return f"{window_target(address.session, address.window)}.{address.pane}"


def _line_arg(value: int | str, named: str) -> str:
    """Map a capture bound to a capture-pane -S/-E argument."""
    if value == named:
        return "-"
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"capture bound must be an int or {named!r}: {value!r}")
    return str(value)


class TmuxAdapter(MultiplexerBackend):
    """Tmux adapter implementing MultiplexerBackend.

    Wraps TmuxClient to provide the standard backend interface.
    """

    name: str = "tmux"

    def __init__(self, socket_path: str | None = None):
        """Initialize TmuxAdapter.

        Args:
            socket_path: Optional tmux socket path.
        """
        self._client = TmuxClient(socket_path=socket_path)

    @property
    def client(self) -> TmuxClient:
        """Access underlying TmuxClient."""
        return self._client

    async def list_sessions(self) -> list[str]:
        return await self._client.list_sessions()

    async def has_session(self, session: str) -> bool:
        return await self._client.has_session(session_target(session))

    async def list_windows(self, session: str) -> list[WindowInfo]:
        try:
            rows = await self._client.list_windows(session_target(session))
        except NotFoundError:
            raise NotFoundError("session", session)
        return [WindowInfo(**row) for row in rows]

    async def list_panes(self, session: str | None = None, window: str | int | None = None) -> list[PaneInfo]:
        if session is None:
            rows = await self._client.list_panes()
        elif window is None:
            try:
                rows = await self._client.list_panes(session_target(session), session_wide=True)
            except NotFoundError:
                raise NotFoundError("session", session)
        else:
            target = window_target(session, window)
            try:
                rows = await self._client.list_panes(target)
            except NotFoundError as e:
                raise NotFoundError(e.kind, f"{session}:{window}")
        return [PaneInfo(**row) for row in rows]

    async def pane_info(self, address: PaneAddress) -> PaneInfo:
        try:
            row = await self._client.get_pane_info(pane_target(address))
        except NotFoundError:
            raise NotFoundError("pane", str(address))
        return PaneInfo(**row)

    async def current_session(self) -> str | None:
        return await self._client.get_current_session()

    async def new_session(self, session: str, window: str) -> None:
        logger.info(f"[tmux] new-session {session} (window {window})")
        await self._client.new_session(session, window)

    async def new_window(self, session: str, window: str) -> int:
        logger.info(f"[tmux] new-window {session}:{window}")
        try:
            return await self._client.new_window(session_target(session), window)
        except NotFoundError:
            raise NotFoundError("session", session)

    async def split_pane(self, address: PaneAddress, direction: SplitDirection, size_percent: int) -> str:
        try:
            pane_id = await self._client.split_window(
                pane_target(address),
                horizontal=direction is SplitDirection.HORIZONTAL,
                size_percent=size_percent,
            )
        except NotFoundError:
            raise NotFoundError("pane", str(address))
        logger.info(f"[tmux] split {address} {direction.value} {size_percent}% -> {pane_id}")
        return pane_id

    async def kill_window(self, session: str, window: str | int) -> None:
        try:
            await self._client.kill_window(window_target(session, window))
        except NotFoundError:
            raise NotFoundError("window", f"{session}:{window}")

    async def set_environment(self, key: str, value: str, session: str | None = None) -> None:
        target = None if session is None else session_target(session)
        try:
            await self._client.set_environment(key, value, target)
        except NotFoundError:
            raise NotFoundError("session", session or "global")

    async def show_environment(self, key: str, session: str | None = None) -> str | None:
        target = None if session is None else session_target(session)
        return await self._client.show_environment(key, target)

    async def send_keys(self, address: PaneAddress, keys: Sequence[str], literal: bool = False) -> None:
        try:
            await self._client.send_keys(pane_target(address), list(keys), literal=literal)
        except NotFoundError:
            raise NotFoundError("pane", str(address))

    async def capture_pane(self, address: PaneAddress, start: int | str = 0, end: int | str = "end") -> str:
        start_arg = _line_arg(start, "start")
        end_arg = _line_arg(end, "end")
        try:
            return await self._client.capture_pane(
                pane_target(address), start_arg, end_arg, join=config.CAPTURE_JOIN_WRAPPED
            )
        except NotFoundError:
            raise NotFoundError("pane", str(address))

    async def select_pane(self, address: PaneAddress) -> None:
        try:
            await self._client.select_window(window_target(address.session, address.window))
            await self._client.select_pane(pane_target(address))
        except NotFoundError:
            raise NotFoundError("pane", str(address))

    async def select_window(self, session: str, window: str | int) -> None:
        try:
            await self._client.select_window(window_target(session, window))
        except NotFoundError:
            raise NotFoundError("window", f"{session}:{window}")

    async def set_buffer(self, name: str, payload: bytes) -> None:
        await self._client.load_buffer(name, payload)

    async def show_buffer(self, name: str) -> bytes:
        try:
            return await self._client.show_buffer(name)
        except NotFoundError:
            raise NotFoundError("buffer", name)

    async def list_buffers(self) -> list[BufferInfo]:
        return [BufferInfo(**row) for row in await self._client.list_buffers()]

    async def delete_buffer(self, name: str) -> None:
        try:
            await self._client.delete_buffer(name)
        except NotFoundError:
            raise NotFoundError("buffer", name)
