"""CompletionWaiter - 轮询判断已派发命令是否完成

复用器没有"命令完成"事件，只能周期性捕获 pane 并按条件推断：
- ProcessNameReturnedToShell: 前台进程先离开、再回到空闲 shell
- OutputContainsMarker: 输出中出现调用方约定的标记
- FixedDelay: 等待固定时长

状态机: PENDING → SATISFIED | TIMED_OUT | CANCELLED

这是尽力而为的检测：标记可能巧合出现（误报），快速命令可能在两次轮询之间
结束、进程名也可能被其他任务复用（漏报）。

使用示例:
    outcome = await waiter.wait(
        address,
        OutputContainsMarker("DONE_123"),
        poll_interval=0.1,
        timeout=5.0,
    )
    if outcome.state is WaitState.TIMED_OUT:
        print(outcome.snapshot.text)
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum

from . import config
from .core.address import PaneAddress
from .observe import Observer, PaneSnapshot
from .telemetry import format_pane_log, get_logger, metrics

logger = get_logger(__name__)


class WaitState(Enum):
    """等待状态"""

    PENDING = "pending"
    SATISFIED = "satisfied"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not WaitState.PENDING


class CompletionCriterion(ABC):
    """完成条件；每次 wait 调用创建一个，不持久化"""

    def reset(self) -> None:
        """wait 开始时调用；有状态的条件在此清除上一轮的观察"""

    @abstractmethod
    def is_satisfied(self, snapshot: PaneSnapshot, elapsed: float) -> bool:
        """根据最新快照与已等待时长判断是否完成"""


@dataclass
class ProcessNameReturnedToShell(CompletionCriterion):
    """前台进程名"再次"等于空闲 shell 名时完成

    必须先观察到一个非 shell 的前台进程，之后回到 shell 才算完成；
    命令尚未启动（输入仍在排队、shell 还在初始化）时一直是 PENDING。
    命令在两次轮询之间就已结束时会一直等到超时（漏报）。
    """

    shell_names: str | Iterable[str] = config.SHELL_NAMES
    _left_shell: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self):
        names = self.shell_names
        self.shell_names = (names,) if isinstance(names, str) else tuple(names)

    def reset(self) -> None:
        self._left_shell = False

    def is_satisfied(self, snapshot: PaneSnapshot, elapsed: float) -> bool:
        if snapshot.current_command not in self.shell_names:
            self._left_shell = True
            return False
        return self._left_shell


@dataclass(frozen=True)
class OutputContainsMarker(CompletionCriterion):
    """捕获文本包含 marker 时完成"""

    marker: str

    def __post_init__(self):
        if not self.marker:
            raise ValueError("marker must not be empty")

    def is_satisfied(self, snapshot: PaneSnapshot, elapsed: float) -> bool:
        return snapshot.contains(self.marker)


@dataclass(frozen=True)
class FixedDelay(CompletionCriterion):
    """自 wait 开始经过 seconds 后无条件完成"""

    seconds: float

    def __post_init__(self):
        if self.seconds < 0:
            raise ValueError("delay must be non-negative")

    def is_satisfied(self, snapshot: PaneSnapshot, elapsed: float) -> bool:
        return elapsed >= self.seconds


@dataclass(frozen=True)
class WaitOutcome:
    """wait 的终态结果

    Attributes:
        state: 终态（SATISFIED / TIMED_OUT / CANCELLED）
        snapshot: 最后一次捕获的快照（取消发生在首次捕获前时为 None）
        elapsed: 等待时长（秒）
        polls: 捕获次数
    """

    state: WaitState
    snapshot: PaneSnapshot | None
    elapsed: float
    polls: int

    @property
    def satisfied(self) -> bool:
        return self.state is WaitState.SATISFIED


async def _sleep_or_cancel(seconds: float, cancel: asyncio.Event | None) -> None:
    if cancel is None:
        await asyncio.sleep(seconds)
        return
    try:
        await asyncio.wait_for(cancel.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        pass


class CompletionWaiter:
    """按固定间隔轮询 pane，直到条件满足、超时或被取消

    取消只放弃观察，不会向 pane 发送任何按键。

    Args:
        observer: 用于捕获 pane 的 Observer
        clock: 单调时钟，测试可注入假时钟
        sleep: 可选的异步 sleep(seconds)，测试可注入；默认在 cancel 事件上等待
    """

    def __init__(
        self,
        observer: Observer,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        self._observer = observer
        self._clock = clock
        self._sleep = sleep

    async def wait(
        self,
        address: PaneAddress,
        criterion: CompletionCriterion,
        poll_interval: float | None = None,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
        start: int | str = 0,
    ) -> WaitOutcome:
        """等待命令完成

        Args:
            address: 目标 pane
            criterion: 完成条件
            poll_interval: 轮询间隔（秒），默认 config.POLL_INTERVAL
            timeout: 超时（秒），默认 config.WAIT_TIMEOUT
            cancel: 调用方设置此事件即取消等待
            start: 捕获起始行（见 Observer.capture），用于让标记检测覆盖 scrollback

        Returns:
            WaitOutcome，包含终态与最后一次快照

        Raises:
            CaptureError: pane 在等待期间消失
        """
        interval = config.POLL_INTERVAL if poll_interval is None else poll_interval
        limit = config.WAIT_TIMEOUT if timeout is None else timeout
        if interval <= 0:
            raise ValueError("poll_interval must be positive")
        if limit < 0:
            raise ValueError("timeout must be non-negative")

        criterion.reset()

        started = self._clock()
        snapshot: PaneSnapshot | None = None
        polls = 0
        state = WaitState.PENDING
        logger.debug(format_pane_log("wait", str(address), f"waiting for {criterion!r} (timeout={limit}s)"))

        while not state.is_terminal:
            if cancel is not None and cancel.is_set():
                state = WaitState.CANCELLED
                break

            snapshot = await self._observer.capture(address, start=start)
            polls += 1
            elapsed = self._clock() - started

            if criterion.is_satisfied(snapshot, elapsed):
                state = WaitState.SATISFIED
            elif elapsed >= limit:
                state = WaitState.TIMED_OUT
            else:
                await self._pause(min(interval, limit - elapsed), cancel)

        elapsed = self._clock() - started
        metrics.inc(f"wait.{state.value}")
        metrics.observe("wait.duration", elapsed, {"state": state.value})
        logger.info(format_pane_log("wait", str(address), f"{state.value} after {elapsed:.2f}s ({polls} polls)"))
        return WaitOutcome(state=state, snapshot=snapshot, elapsed=elapsed, polls=polls)

    async def _pause(self, seconds: float, cancel: asyncio.Event | None) -> None:
        if self._sleep is not None:
            await self._sleep(seconds)
        else:
            await _sleep_or_cancel(seconds, cancel)
