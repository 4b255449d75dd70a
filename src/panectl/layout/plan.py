"""LayoutPlan 步骤定义

一个 LayoutPlan 是有序的 provisioning 步骤序列：
- NewSession / NewWindow: 创建 session / window（已存在则跳过）
- SplitPane: 分割 pane，新 pane 获得下一个计划索引（按创建顺序编号）
- SetEnv: 设置 session（或全局）环境变量
- SendKeys: 在 pane 中输入命令
- SelectPane: 聚焦 pane

步骤目标可以是布局 window 内的 pane 索引，也可以是外部提供的 PaneAddress；
索引必须由前面的步骤产生（或是 window 的初始 pane）。计划索引在执行时经 pane_id
解析为 tmux 当前的 pane 索引，后续分屏引起的重新编号不会让步骤打到错误的 pane。
"""

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum

from ..adapters.base import SplitDirection
from ..core.address import PaneAddress

# 布局 window 内的 pane 索引，或外部提供的完整地址
PaneTarget = int | PaneAddress


class EnvScope(Enum):
    """环境变量作用域"""

    SESSION = "session"
    GLOBAL = "global"


@dataclass(frozen=True)
class PaneRef:
    """引用布局 window 内某个 pane 的地址（执行时解析为地址文本）"""

    index: int


@dataclass(frozen=True)
class NewSession:
    """确保 session 存在

    Attributes:
        name: session 名，None 表示布局 session
        window: 新建时第一个 window 的名字，None 表示布局 window
    """

    name: str | None = None
    window: str | None = None


@dataclass(frozen=True)
class NewWindow:
    """确保 window 存在

    Attributes:
        name: window 名，None 表示布局 window
        session: 所属 session，None 表示布局 session
    """

    name: str | None = None
    session: str | None = None


@dataclass(frozen=True)
class SplitPane:
    """分割 pane

    Attributes:
        target: 被分割的 pane
        direction: HORIZONTAL 新 pane 在右侧，VERTICAL 新 pane 在下方
        size_percent: 新 pane 占被分割 pane 尺寸的百分比
    """

    target: PaneTarget = 0
    direction: SplitDirection = SplitDirection.HORIZONTAL
    size_percent: int = 50

    def __post_init__(self):
        if not 1 <= self.size_percent <= 99:
            raise ValueError(f"size_percent must be within 1..99: {self.size_percent}")


@dataclass(frozen=True)
class SetEnv:
    """设置环境变量；value 为 PaneRef 时写入对应 pane 的地址"""

    key: str
    value: str | PaneRef
    scope: EnvScope = EnvScope.SESSION


@dataclass(frozen=True)
class SendKeys:
    """在 pane 中输入文本

    Attributes:
        target: 目标 pane
        text: 文本；也可以是接收按计划索引排列的当前 pane 地址列表并返回文本的函数
        press_enter: 追加 Enter
        literal: 字面模式发送
    """

    target: PaneTarget
    text: str | Callable[[Sequence[PaneAddress]], str]
    press_enter: bool = True
    literal: bool = True


@dataclass(frozen=True)
class SelectPane:
    """聚焦 pane（同时切换到其 window）"""

    target: PaneTarget = 0


LayoutStep = NewSession | NewWindow | SplitPane | SetEnv | SendKeys | SelectPane


@dataclass(frozen=True)
class LayoutPlan:
    """有序的 provisioning 步骤序列"""

    steps: tuple[LayoutStep, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, *steps: LayoutStep) -> "LayoutPlan":
        return cls(steps=tuple(steps))

    def __iter__(self) -> Iterator[LayoutStep]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)
