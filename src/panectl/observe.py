"""Observer - 捕获 pane 文本与前台进程

每次捕获都重新询问复用器，返回不可变的 PaneSnapshot。同一 pane 的两次快照
之间不提供 diff，需要 diff 的调用方自行比较。
"""

import itertools
import time
from dataclasses import dataclass

from .adapters.base import MultiplexerBackend, PaneInfo
from .core.address import PaneAddress
from .errors import CaptureError, MultiplexerError, NotFoundError, TargetFailure
from .telemetry import format_pane_log, get_logger, metrics

logger = get_logger(__name__)

# 进程内单调递增的逻辑时间
_sequence = itertools.count(1)


@dataclass(frozen=True)
class PaneSnapshot:
    """pane 在某一时刻的文本快照

    Attributes:
        address: 被捕获的 pane
        sequence: 逻辑捕获时间（进程内单调递增）
        captured_at: 捕获时的单调时钟（秒）
        lines: 捕获到的行
        current_command: 捕获时的前台进程名
    """

    address: PaneAddress
    sequence: int
    captured_at: float
    lines: tuple[str, ...]
    current_command: str = ""

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def contains(self, pattern: str) -> bool:
        return pattern in self.text

    def tail(self, count: int) -> tuple[str, ...]:
        """最后 count 个非空行"""
        lines = list(self.lines)
        while lines and not lines[-1].strip():
            lines.pop()
        return tuple(lines[-count:]) if count > 0 else ()


def _split_lines(output: str) -> tuple[str, ...]:
    if output.endswith("\n"):
        output = output[:-1]
    if not output:
        return ()
    return tuple(output.split("\n"))


def parse_line_bound(value: int | str, named: str) -> int | str:
    """把文本形式的捕获行号转换为 capture 接受的值

    Args:
        value: 整数，或等于 named 的字符串
        named: 允许的符号名（"start" 或 "end"）

    Raises:
        ValueError: 既不是整数也不是 named
    """
    if value == named or isinstance(value, int):
        return value
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"expected an integer or {named!r}, got {value!r}") from None


class Observer:
    """读取 pane 可见区 / scrollback 文本与前台进程名"""

    def __init__(self, backend: MultiplexerBackend, clock=time.monotonic):
        self._backend = backend
        self._clock = clock

    async def capture(
        self,
        address: PaneAddress,
        start: int | str = 0,
        end: int | str = "end",
        with_command: bool = True,
    ) -> PaneSnapshot:
        """捕获 pane 文本

        Args:
            address: 目标 pane
            start: 0 为第一可见行，负数向上计入 scrollback（-50 即底部往上 50 行），
                "start" 为最早保留的一行
            end: 结束行，"end" 为最底部
            with_command: 同时查询前台进程名

        Returns:
            PaneSnapshot

        Raises:
            CaptureError: pane 不存在或复用器命令失败
        """
        try:
            output = await self._backend.capture_pane(address, start, end)
            command = ""
            if with_command:
                command = (await self._backend.pane_info(address)).current_command
        except NotFoundError as e:
            raise self._failure(address, TargetFailure.TARGET_NOT_FOUND, e)
        except MultiplexerError as e:
            raise self._failure(address, TargetFailure.COMMAND_FAILED, e)

        metrics.inc("capture.ok")
        return PaneSnapshot(
            address=address,
            sequence=next(_sequence),
            captured_at=self._clock(),
            lines=_split_lines(output),
            current_command=command,
        )

    async def current_command_name(self, address: PaneAddress) -> str:
        """pane 前台进程名（启发式信号，不保证是最初派发的那个进程）

        Raises:
            CaptureError: pane 不存在或复用器命令失败
        """
        try:
            info = await self._backend.pane_info(address)
        except NotFoundError as e:
            raise self._failure(address, TargetFailure.TARGET_NOT_FOUND, e)
        except MultiplexerError as e:
            raise self._failure(address, TargetFailure.COMMAND_FAILED, e)
        return info.current_command

    async def list_panes(self, session: str | None = None, window: str | int | None = None) -> list[PaneInfo]:
        """列出 pane 及其元数据（session, window, pane 索引, 前台进程, 尺寸）

        Raises:
            NotFoundError: 指定的 session/window 不存在
        """
        panes = await self._backend.list_panes(session, window)
        return sorted(panes, key=lambda p: (p.session, p.window_index, p.pane_index))

    def _failure(self, address: PaneAddress, reason: TargetFailure, cause: Exception) -> CaptureError:
        metrics.inc("capture.failed", {"reason": reason.value})
        logger.warning(format_pane_log("observe", str(address), f"capture failed: {cause}"))
        return CaptureError(reason, address, str(cause))
