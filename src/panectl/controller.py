"""PaneController - 编排核心的统一入口

把 AddressResolver、LayoutEngine、Dispatcher、Observer、CompletionWaiter、
BufferChannel 组装在同一个复用器后端上。

控制器自身不持有可变共享状态：哪些 pane 存在、内容、前台进程都以复用器为准，
每次读取都重新查询。多个控制器可以同时操作同一 session，互斥由调用方约定。
"""

import asyncio
import uuid
from collections.abc import Mapping
from dataclasses import dataclass

from . import config
from .adapters.base import MultiplexerBackend
from .adapters.factory import create_backend
from .buffers import BufferChannel
from .core.address import AddressResolver, PaneAddress
from .dispatch import Dispatcher
from .errors import NotFoundError, ParseError
from .layout import LayoutEngine
from .observe import Observer
from .telemetry import get_logger
from .wait import CompletionWaiter, OutputContainsMarker, WaitOutcome

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommandRun:
    """run_command 的结果"""

    address: PaneAddress
    command: str
    marker: str
    outcome: WaitOutcome

    def output_lines(self) -> list[str]:
        """命令行与标记行之间的输出（尽力而为：依赖 shell 回显命令行）"""
        snapshot = self.outcome.snapshot
        if snapshot is None:
            return []
        lines = list(snapshot.lines)
        end = next((i for i in range(len(lines) - 1, -1, -1) if lines[i] == self.marker), None)
        if end is None:
            return []
        begin = next((i for i in range(end - 1, -1, -1) if self.marker_token in lines[i]), -1)
        return lines[begin + 1 : end]

    @property
    def marker_token(self) -> str:
        return self.marker[len(config.MARKER_PREFIX):]


def marker_lines(command: str, marker: str) -> tuple[str, str]:
    """把命令包进 { ... } 组，组结束后打印标记，按两行输入

    命令单独占一行，结尾的 `# 注释` 或 `&` 不会吞掉或破坏后面的 printf。
    标记被拆成两个参数，回显的命令行里不会出现完整标记，只有 printf 的输出会。
    """
    if not command.strip():
        raise ValueError("command must not be empty")
    prefix, token = marker[: len(config.MARKER_PREFIX)], marker[len(config.MARKER_PREFIX):]
    return f"{{ {command}", f"}}; printf '%s%s\\n' '{prefix}' '{token}'"


class PaneController:
    """编排控制器

    Args:
        backend: 复用器后端，默认按 config 创建 tmux 后端
        env: 读取环境上下文的映射，默认 os.environ（仅在构造时读取一次）
        name: 控制器标识（用于 buffer 写入日志）
    """

    def __init__(
        self,
        backend: MultiplexerBackend | None = None,
        env: Mapping[str, str] | None = None,
        name: str | None = None,
    ):
        self.backend = backend or create_backend()
        self.name = name or f"controller-{uuid.uuid4().hex[:8]}"
        self.resolver = AddressResolver(self.backend)
        self.dispatcher = Dispatcher(self.backend)
        self.observer = Observer(self.backend)
        self.waiter = CompletionWaiter(self.observer)
        self.layout = LayoutEngine(self.backend, self.dispatcher)
        self.buffers = BufferChannel(self.backend, writer=self.name)

        # "配对 pane" 地址只在启动时读取一次；缺失不是错误，格式错误按缺失处理
        try:
            self._paired_pane = self.resolver.ambient_address(env)
        except ParseError as e:
            logger.warning(f"[PaneController] ignoring malformed ${self.resolver.env_var}: {e}")
            self._paired_pane = None
        if self._paired_pane is not None:
            logger.info(f"[PaneController] {self.name} paired with {self._paired_pane}")

    @property
    def paired_pane(self) -> PaneAddress | None:
        return self._paired_pane

    def require_paired_pane(self) -> PaneAddress:
        """返回配对 pane

        Raises:
            NotFoundError: 启动时环境中没有配对 pane
        """
        if self._paired_pane is None:
            raise NotFoundError("pane", f"${self.resolver.env_var}", "no paired pane configured")
        return self._paired_pane

    async def run_command(
        self,
        address: PaneAddress,
        command: str,
        timeout: float | None = None,
        poll_interval: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> CommandRun:
        """派发命令并等待其打印的完成标记

        Raises:
            ValueError: command 为空
            DispatchError: 目标 pane 不存在
            CaptureError: 等待期间 pane 消失
        """
        marker = f"{config.MARKER_PREFIX}{uuid.uuid4().hex[:12]}"
        for line in marker_lines(command, marker):
            await self.dispatcher.send_text(address, line, press_enter=True)
        outcome = await self.waiter.wait(
            address,
            OutputContainsMarker(marker),
            poll_interval=poll_interval,
            timeout=timeout,
            cancel=cancel,
            start="start",
        )
        return CommandRun(address=address, command=command, marker=marker, outcome=outcome)
