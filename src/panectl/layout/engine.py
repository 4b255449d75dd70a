"""LayoutEngine - 幂等地创建 window/pane 布局

ensure_layout 流程：
1. 目标 window 已存在：直接返回其 pane 地址，不做任何修改
2. 否则创建 session（如不存在）与 window，再按顺序执行计划步骤
3. 任一步骤失败抛 LayoutError(step_index)，已创建的部分不回滚
"""

from collections.abc import Sequence
from dataclasses import dataclass, field

from ..adapters.base import MultiplexerBackend, PaneInfo
from ..core.address import PaneAddress
from ..dispatch import Dispatcher
from ..errors import DispatchError, LayoutError, MultiplexerError, NotFoundError
from ..telemetry import get_logger, metrics
from .plan import (
    EnvScope,
    LayoutPlan,
    LayoutStep,
    NewSession,
    NewWindow,
    PaneRef,
    PaneTarget,
    SelectPane,
    SendKeys,
    SetEnv,
    SplitPane,
)

logger = get_logger(__name__)


class _StepFailed(Exception):
    """步骤前置条件不满足（内部使用，转换为 LayoutError）"""


@dataclass
class _LayoutContext:
    """一次 ensure_layout 执行期间的 pane 表

    计划内的 pane 索引按创建顺序编号：window 的初始 pane 为 0，每次分屏追加一个。
    tmux 会把新 pane 插在被分割 pane 之后并重新编号，所以计划索引通过 pane_id
    映射到复用器当前的 pane 索引。
    """

    session: str
    window: str
    pane_ids: list[str] = field(default_factory=list)
    live: dict[str, int] = field(default_factory=dict)

    def refresh(self, panes: Sequence[PaneInfo]) -> None:
        self.live = {p.pane_id: p.pane_index for p in panes}

    def address(self, index: int) -> PaneAddress:
        if not 0 <= index < len(self.pane_ids) or self.pane_ids[index] not in self.live:
            raise _StepFailed(
                f"pane {index} of {self.session}:{self.window} does not exist (layout has {len(self.pane_ids)})"
            )
        return PaneAddress(self.session, self.window, self.live[self.pane_ids[index]])

    def addresses(self) -> list[PaneAddress]:
        """按计划索引排列的当前地址"""
        return [self.address(i) for i in range(len(self.pane_ids))]


class LayoutEngine:
    """按 LayoutPlan 创建布局

    使用示例:
        plan = LayoutPlan.of(
            SplitPane(0, SplitDirection.HORIZONTAL, 50),
            SetEnv("PEER_PANE", PaneRef(1)),
            SendKeys(0, "htop"),
        )
        panes = await engine.ensure_layout("work", "dev-1", plan)
    """

    def __init__(self, backend: MultiplexerBackend, dispatcher: Dispatcher):
        self._backend = backend
        self._dispatcher = dispatcher

    async def ensure_layout(self, session: str, window: str, plan: LayoutPlan) -> list[PaneAddress]:
        """确保 session:window 存在并按计划布局

        Args:
            session: session 名
            window: window 名
            plan: 布局计划（仅在 window 不存在时执行）

        Returns:
            window 内所有 pane 的地址（按索引排序）

        Raises:
            ParseError: session/window 名不能构成合法地址
            LayoutError: 某一步骤失败，step_index 为计划内的步骤序号；
                -1 表示隐式的 session/window 创建失败
        """
        # 构造一次地址以校验名称
        PaneAddress(session, window, 0)

        if await self._backend.has_window(session, window):
            metrics.inc("layout.reused")
            logger.info(f"[LayoutEngine] {session}:{window} exists, reusing")
            return await self.window_panes(session, window)

        ctx = _LayoutContext(session=session, window=window)
        try:
            await self._ensure_session(session, window)
            await self._ensure_window(session, window)
            panes = sorted(await self._backend.list_panes(session, window), key=lambda p: p.pane_index)
            ctx.pane_ids = [p.pane_id for p in panes]
            ctx.refresh(panes)
        except (NotFoundError, MultiplexerError) as e:
            raise LayoutError(-1, NewWindow(window, session), str(e)) from e

        for index, step in enumerate(plan):
            try:
                await self._apply(step, ctx)
            except (_StepFailed, NotFoundError, MultiplexerError, DispatchError) as e:
                logger.error(f"[LayoutEngine] step {index} {step!r} failed: {e}")
                metrics.inc("layout.failed")
                raise LayoutError(index, step, str(e)) from e

        metrics.inc("layout.created")
        logger.info(f"[LayoutEngine] created {session}:{window} with {len(ctx.pane_ids)} panes")
        return await self.window_panes(session, window)

    async def window_panes(self, session: str, window: str) -> list[PaneAddress]:
        """window 内所有 pane 地址（每次都重新查询）"""
        panes = await self._backend.list_panes(session, window)
        return [PaneAddress(session, window, i) for i in sorted(p.pane_index for p in panes)]

    async def teardown_window(self, session: str, window: str) -> None:
        """关闭 window（用于放弃部分创建的布局）

        Raises:
            NotFoundError: window 不存在
        """
        await self._backend.kill_window(session, window)
        logger.info(f"[LayoutEngine] tore down {session}:{window}")

    async def _ensure_session(self, session: str, first_window: str) -> bool:
        if await self._backend.has_session(session):
            return False
        await self._backend.new_session(session, first_window)
        return True

    async def _ensure_window(self, session: str, window: str) -> bool:
        if await self._backend.has_window(session, window):
            return False
        await self._backend.new_window(session, window)
        return True

    def _resolve(self, target: PaneTarget, ctx: _LayoutContext) -> PaneAddress:
        if isinstance(target, PaneAddress):
            return target
        return ctx.address(target)

    async def _require_live(self, address: PaneAddress) -> None:
        if not await self._backend.pane_exists(address):
            raise _StepFailed(f"pane {address} does not exist")

    async def _apply(self, step: LayoutStep, ctx: _LayoutContext) -> None:
        if isinstance(step, NewSession):
            await self._ensure_session(step.name or ctx.session, step.window or ctx.window)

        elif isinstance(step, NewWindow):
            await self._ensure_window(step.session or ctx.session, step.name or ctx.window)

        elif isinstance(step, SplitPane):
            address = self._resolve(step.target, ctx)
            pane_id = await self._backend.split_pane(address, step.direction, step.size_percent)
            if address.session == ctx.session and address.window == ctx.window:
                ctx.pane_ids.append(pane_id)
                ctx.refresh(await self._backend.list_panes(ctx.session, ctx.window))
                logger.debug(f"[LayoutEngine] split {address} -> layout pane {len(ctx.pane_ids) - 1} ({pane_id})")

        elif isinstance(step, SetEnv):
            value = step.value
            if isinstance(value, PaneRef):
                value = str(ctx.address(value.index))
            session = ctx.session if step.scope is EnvScope.SESSION else None
            await self._backend.set_environment(step.key, value, session=session)

        elif isinstance(step, SendKeys):
            address = self._resolve(step.target, ctx)
            await self._require_live(address)
            text = step.text if isinstance(step.text, str) else step.text(ctx.addresses())
            await self._dispatcher.send_text(address, text, press_enter=step.press_enter, literal=step.literal)

        elif isinstance(step, SelectPane):
            address = self._resolve(step.target, ctx)
            await self._backend.select_pane(address)

        else:
            raise _StepFailed(f"unknown step type {type(step).__name__}")
