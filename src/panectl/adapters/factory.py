"""Backend factory for creating multiplexer backends."""

import logging
import os
from collections.abc import Mapping
from typing import TYPE_CHECKING

from panectl import config

if TYPE_CHECKING:
    from panectl.adapters.base import MultiplexerBackend

logger = logging.getLogger(__name__)


def inside_tmux(env: Mapping[str, str] | None = None) -> bool:
    """Whether the controller runs inside a tmux client ($TMUX is set)."""
    source = os.environ if env is None else env
    return bool(source.get("TMUX"))


def create_backend(
    backend_type: str = "tmux",
    socket_path: str | None = None,
) -> "MultiplexerBackend":
    """Create a multiplexer backend.

    Args:
        backend_type: Backend type; only "tmux" is supported
        socket_path: Tmux socket path, default from config

    Returns:
        MultiplexerBackend instance

    Raises:
        ValueError: If backend type is unknown
    """
    if backend_type == "tmux":
        from panectl.adapters.tmux import TmuxAdapter

        return TmuxAdapter(socket_path=socket_path or config.TMUX_SOCKET)

    raise ValueError(f"Unknown backend type: {backend_type}")
