"""Multiplexer backend 抽象接口

定义 panectl 所依赖的终端复用器控制面（目前实现：tmux）：
- session / window / pane 的创建与分屏
- 向 pane 发送字面文本或按键名
- 按行范围捕获 pane 文本
- 查询 pane 前台进程名
- 列出所有 pane 及其元数据
- 设置/读取 session 级环境变量与命名 buffer

设计原则：
1. 最小接口：只定义编排核心需要的操作
2. 不缓存：每次读取都重新询问复用器，复用器是唯一权威
3. 异步优先：所有 IO 操作都是 async
4. 目标不存在时抛 NotFoundError，其余失败抛 MultiplexerError
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from enum import Enum

from ..core.address import PaneAddress
from ..errors import NotFoundError


class SplitDirection(Enum):
    """分屏方向

    - HORIZONTAL: 左右分屏，新 pane 在右侧
    - VERTICAL: 上下分屏，新 pane 在下方
    """

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


@dataclass(frozen=True)
class WindowInfo:
    """Window 信息

    Attributes:
        session: 所属 session 名
        index: window 索引
        name: window 名
        width, height: 尺寸（字符）
        active: 是否为 session 当前 window
    """

    session: str
    index: int
    name: str
    width: int = 0
    height: int = 0
    active: bool = False


@dataclass(frozen=True)
class PaneInfo:
    """Pane 信息（list-all-panes 的一行）

    Attributes:
        session: 所属 session 名
        window_index: 所属 window 索引
        window_name: 所属 window 名
        pane_index: window 内的 pane 索引
        pane_id: 复用器内部 ID（如 "%3"）
        current_command: 前台进程名
        left, top: 位置（字符）
        width, height: 尺寸（字符）
        active: 是否为 window 当前 pane
        path: 当前工作目录
    """

    session: str
    window_index: int
    window_name: str
    pane_index: int
    pane_id: str = ""
    current_command: str = ""
    left: int = 0
    top: int = 0
    width: int = 0
    height: int = 0
    active: bool = False
    path: str = ""

    @property
    def address(self) -> PaneAddress:
        """以 window 索引构成的地址（不受 window 重命名影响）"""
        return PaneAddress(self.session, self.window_index, self.pane_index)

    def to_dict(self) -> dict:
        """转换为可序列化的字典"""
        data = asdict(self)
        data["address"] = str(self.address)
        return data


@dataclass(frozen=True)
class BufferInfo:
    """命名 buffer 元数据"""

    name: str
    size: int
    created: float


class MultiplexerBackend(ABC):
    """终端复用器控制面抽象接口

    使用示例:
        backend = TmuxAdapter()
        if not await backend.has_session("work"):
            await backend.new_session("work", "dev-1")
        pane_id = await backend.split_pane(
            PaneAddress("work", "dev-1", 0), SplitDirection.HORIZONTAL, 50
        )
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """后端名称（如 "tmux"）"""

    # === 查询 ===

    @abstractmethod
    async def list_sessions(self) -> list[str]:
        """列出所有存活 session 名；服务未运行时返回空列表"""

    @abstractmethod
    async def list_windows(self, session: str) -> list[WindowInfo]:
        """列出 session 内所有 window

        Raises:
            NotFoundError: session 不存在
        """

    @abstractmethod
    async def list_panes(self, session: str | None = None, window: str | int | None = None) -> list[PaneInfo]:
        """列出 pane

        Args:
            session: None 表示所有 session
            window: 仅在指定 session 时有效，None 表示 session 内所有 window

        Raises:
            NotFoundError: 指定的 session/window 不存在
        """

    @abstractmethod
    async def pane_info(self, address: PaneAddress) -> PaneInfo:
        """查询单个 pane 的元数据（含前台进程名）

        Raises:
            NotFoundError: pane 不存在
        """

    @abstractmethod
    async def current_session(self) -> str | None:
        """当前客户端所在 session（不在复用器内时返回 None）"""

    async def has_session(self, session: str) -> bool:
        """session 是否存在"""
        return session in await self.list_sessions()

    async def has_window(self, session: str, window: str | int) -> bool:
        """window 是否存在（按名称或索引精确匹配）"""
        try:
            windows = await self.list_windows(session)
        except NotFoundError:
            return False
        if isinstance(window, int):
            return any(w.index == window for w in windows)
        return any(w.name == window for w in windows)

    async def pane_exists(self, address: PaneAddress) -> bool:
        """pane 是否存在"""
        try:
            await self.pane_info(address)
        except NotFoundError:
            return False
        return True

    # === 创建 ===

    @abstractmethod
    async def new_session(self, session: str, window: str) -> None:
        """创建 detached session，第一个 window 命名为 window

        Raises:
            MultiplexerError: session 已存在
        """

    @abstractmethod
    async def new_window(self, session: str, window: str) -> int:
        """在 session 末尾创建 window，返回其索引

        Raises:
            NotFoundError: session 不存在
        """

    @abstractmethod
    async def split_pane(self, address: PaneAddress, direction: SplitDirection, size_percent: int) -> str:
        """分割 pane，返回新 pane 的 pane_id

        新 pane 插在被分割 pane 之后，其后的 pane 会被重新编号；
        调用方应通过 pane_id 而不是索引追踪 pane。

        Args:
            address: 被分割的 pane
            direction: 分屏方向
            size_percent: 新 pane 占被分割 pane 的百分比

        Raises:
            NotFoundError: pane 不存在
        """

    @abstractmethod
    async def kill_window(self, session: str, window: str | int) -> None:
        """关闭 window

        Raises:
            NotFoundError: window 不存在
        """

    # === 环境变量 ===

    @abstractmethod
    async def set_environment(self, key: str, value: str, session: str | None = None) -> None:
        """设置环境变量；session 为 None 时设置全局变量"""

    @abstractmethod
    async def show_environment(self, key: str, session: str | None = None) -> str | None:
        """读取环境变量；未设置时返回 None"""

    # === 输入 / 输出 ===

    @abstractmethod
    async def send_keys(self, address: PaneAddress, keys: Sequence[str], literal: bool = False) -> None:
        """向 pane 发送按键

        Args:
            address: 目标 pane
            keys: 按键序列；literal=True 时按字面文本发送
            literal: 禁用按键名解析（"Enter" 作为文本发送）

        Raises:
            NotFoundError: pane 不存在
        """

    @abstractmethod
    async def capture_pane(self, address: PaneAddress, start: int | str = 0, end: int | str = "end") -> str:
        """捕获 pane 文本

        Args:
            start: 0 为第一可见行，负数向上进入 scrollback，"start" 为最早保留行
            end: 结束行（含），"end" 为最后一行

        Raises:
            NotFoundError: pane 不存在
        """

    @abstractmethod
    async def select_pane(self, address: PaneAddress) -> None:
        """激活 pane（同时切换到其 window）"""

    @abstractmethod
    async def select_window(self, session: str, window: str | int) -> None:
        """切换到 window

        Raises:
            NotFoundError: window 不存在
        """

    # === 命名 buffer ===

    @abstractmethod
    async def set_buffer(self, name: str, payload: bytes) -> None:
        """写入命名 buffer（覆盖旧值）"""

    @abstractmethod
    async def show_buffer(self, name: str) -> bytes:
        """读取命名 buffer

        Raises:
            NotFoundError: buffer 不存在
        """

    @abstractmethod
    async def list_buffers(self) -> list[BufferInfo]:
        """列出所有命名 buffer"""

    @abstractmethod
    async def delete_buffer(self, name: str) -> None:
        """删除命名 buffer

        Raises:
            NotFoundError: buffer 不存在
        """
