"""Multiplexer backends 模块

提供复用器后端接口和数据结构：
- MultiplexerBackend: 后端抽象接口
- create_backend: 后端工厂函数
- WindowInfo, PaneInfo, BufferInfo: 列表数据结构
"""

from .base import BufferInfo, MultiplexerBackend, PaneInfo, SplitDirection, WindowInfo
from .factory import create_backend, inside_tmux

__all__ = [
    # Interface
    "MultiplexerBackend",
    "SplitDirection",
    # Factory
    "create_backend",
    "inside_tmux",
    # Listing models
    "WindowInfo",
    "PaneInfo",
    "BufferInfo",
]
