"""Tmux backend for panectl."""

from .adapter import TmuxAdapter
from .client import TmuxClient, TmuxResult

__all__ = ["TmuxAdapter", "TmuxClient", "TmuxResult"]
