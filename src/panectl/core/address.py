"""Pane addressing

A pane is addressed as ``session:window.pane``:

- ``session``: session name (case-sensitive)
- ``window``: window name (e.g. ``dev-1``) or numeric window index (e.g. ``2``)
- ``pane``: numeric pane index inside the window

Addresses are parsed strictly. Surrounding whitespace is an error, never
trimmed, so a copy-paste artifact cannot route keystrokes to the wrong pane.
"""

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .. import config
from ..errors import NotFoundError, ParseError

if TYPE_CHECKING:
    from ..adapters.base import MultiplexerBackend

_DIGITS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class PaneAddress:
    """Immutable pane address.

    Holding an address does not keep the pane alive; the multiplexer owns pane
    lifecycle and any address may go stale.
    """

    session: str
    window: str | int
    pane: int

    def __post_init__(self):
        text = f"{self.session}:{self.window}.{self.pane}"
        _check_component("session", self.session, text)
        if ":" in self.session:
            raise ParseError("session name contains ':'", text, self.session)

        if isinstance(self.window, bool) or not isinstance(self.window, (str, int)):
            raise ParseError("window must be a name or an index", text, repr(self.window))
        if isinstance(self.window, int):
            if self.window < 0:
                raise ParseError("negative window index", text, str(self.window))
        else:
            _check_component("window", self.window, text)
            if ":" in self.window:
                raise ParseError("window name contains ':'", text, self.window)
            if _DIGITS.fullmatch(self.window):
                raise ParseError("numeric window must be an int index", text, self.window)

        if isinstance(self.pane, bool) or not isinstance(self.pane, int):
            raise ParseError("pane index must be an integer", text, repr(self.pane))
        if self.pane < 0:
            raise ParseError("negative pane index", text, str(self.pane))

    @property
    def window_target(self) -> str:
        """``session:window`` target for window-level commands."""
        return f"{self.session}:{self.window}"

    def with_pane(self, pane: int) -> "PaneAddress":
        """Sibling address in the same window."""
        return PaneAddress(self.session, self.window, pane)

    def __str__(self) -> str:
        return format_address(self)


def _check_component(name: str, value: object, text: str) -> None:
    if not isinstance(value, str):
        raise ParseError(f"{name} must be a string", text, repr(value))
    if not value:
        raise ParseError(f"empty {name}", text, value)
    if value != value.strip():
        raise ParseError(f"whitespace around {name}", text, value)


def parse(text: str) -> PaneAddress:
    """Parse ``session:window.pane`` into a PaneAddress.

    Args:
        text: Address text, exactly as supplied

    Returns:
        The parsed address. Windows made only of digits become int indices.

    Raises:
        ParseError: On any malformed input, carrying the offending substring
    """
    if not isinstance(text, str):
        raise ParseError("address must be a string", repr(text), repr(text))
    if not text:
        raise ParseError("empty address", text, text)
    if text != text.strip():
        raise ParseError("leading or trailing whitespace", text, text)

    session, sep, rest = text.partition(":")
    if not sep:
        raise ParseError("missing ':' between session and window", text, text)
    if not session:
        raise ParseError("empty session", text, session)

    window, sep, pane = rest.rpartition(".")
    if not sep:
        raise ParseError("missing '.pane' after window", text, rest)
    if not window:
        raise ParseError("empty window", text, rest)
    if not pane:
        raise ParseError("empty pane index", text, rest)
    if pane.startswith("-") and _DIGITS.fullmatch(pane[1:]):
        raise ParseError("negative pane index", text, pane)
    if not _DIGITS.fullmatch(pane):
        raise ParseError("pane index is not a non-negative integer", text, pane)

    window_value: str | int = int(window) if _DIGITS.fullmatch(window) else window
    return PaneAddress(session=session, window=window_value, pane=int(pane))


def format_address(address: PaneAddress) -> str:
    """Format a PaneAddress as ``session:window.pane``."""
    return f"{address.session}:{address.window}.{address.pane}"


class AddressResolver:
    """Parses addresses and resolves the ambient "current pane".

    The ambient pane is read from an environment variable holding an address
    string (``config.PANE_ENV``). Resolution fails instead of guessing a
    default session.
    """

    def __init__(self, backend: "MultiplexerBackend", env_var: str | None = None):
        self._backend = backend
        self._env_var = env_var or config.PANE_ENV

    @property
    def env_var(self) -> str:
        return self._env_var

    parse = staticmethod(parse)
    format = staticmethod(format_address)

    def ambient_address(self, env: Mapping[str, str] | None = None) -> PaneAddress | None:
        """Parse the ambient address without checking the pane is alive.

        Returns:
            The address, or None when the variable is unset or empty.

        Raises:
            ParseError: If the variable is set but malformed
        """
        source = os.environ if env is None else env
        value = source.get(self._env_var)
        if not value:
            return None
        return parse(value)

    async def resolve_current(self, env: Mapping[str, str] | None = None) -> PaneAddress:
        """Resolve the ambient "which pane am I" address.

        Args:
            env: Environment mapping; defaults to ``os.environ``

        Returns:
            The address, confirmed live at the multiplexer

        Raises:
            NotFoundError: Variable unset, or the pane no longer exists
            ParseError: Variable set but malformed
        """
        address = self.ambient_address(env)
        if address is None:
            raise NotFoundError("pane", f"${self._env_var}", "environment variable not set")
        if not await self._backend.pane_exists(address):
            raise NotFoundError("pane", str(address))
        return address
