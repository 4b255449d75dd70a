"""dev session - 在 session 中创建编号的开发 window

创建名为 "dev-N" 的 window，左右各一个 pane：

    ┌─────────────────────┬─────────────────────┐
    │                     │                     │
    │       agent         │       shell         │
    │       (50%)         │       (50%)         │
    │                     │                     │
    └─────────────────────┴─────────────────────┘

- pane 0: 运行 agent 命令，环境变量 CLAUDE_TMUX_PANE 指向 pane 1
- pane 1: 普通 shell，供 agent 的 hook 派发命令
- session 环境变量 CLAUDE_TMUX_PANE_N 同样指向 pane 1

window 已存在时只切换过去，不重复创建。
"""

import shlex
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from . import config
from .adapters.base import SplitDirection
from .adapters.factory import inside_tmux
from .controller import PaneController
from .core.address import PaneAddress
from .layout import LayoutPlan, PaneRef, SelectPane, SendKeys, SetEnv, SplitPane
from .telemetry import get_logger

logger = get_logger(__name__)

AGENT_PANE = 0
SHELL_PANE = 1


@dataclass(frozen=True)
class DevSession:
    """open_dev_session 的结果"""

    session: str
    window: str
    panes: list[PaneAddress]
    created: bool

    @property
    def agent_pane(self) -> PaneAddress:
        return PaneAddress(self.session, self.window, AGENT_PANE)

    @property
    def shell_pane(self) -> PaneAddress:
        return PaneAddress(self.session, self.window, SHELL_PANE)


def dev_window_name(number: int) -> str:
    if number < 0:
        raise ValueError(f"dev session number must be non-negative: {number}")
    return f"{config.DEV_WINDOW_PREFIX}{number}"


def dev_session_plan(
    number: int,
    agent_command: str | None = None,
    pane_env: str | None = None,
    split_percent: int | None = None,
) -> LayoutPlan:
    """dev-N window 的布局计划

    Args:
        number: window 编号
        agent_command: 左侧 pane 启动的命令，默认 config.DEV_AGENT_COMMAND
        pane_env: 指向 shell pane 的环境变量名，默认 config.PANE_ENV
        split_percent: 右侧 shell pane 宽度百分比
    """
    command = agent_command or config.DEV_AGENT_COMMAND
    env_name = pane_env or config.PANE_ENV

    def launch(panes: Sequence[PaneAddress]) -> str:
        shell_pane = panes[SHELL_PANE]
        return f"export {env_name}={shlex.quote(str(shell_pane))} && {command}"

    return LayoutPlan.of(
        SplitPane(AGENT_PANE, SplitDirection.HORIZONTAL, split_percent or config.DEV_SPLIT_PERCENT),
        SetEnv(f"{env_name}_{number}", PaneRef(SHELL_PANE)),
        SendKeys(AGENT_PANE, launch),
        SelectPane(AGENT_PANE),
    )


async def resolve_dev_session_name(controller: PaneController, env: Mapping[str, str] | None = None) -> str:
    """在 tmux 内时使用当前 session，否则使用 config.DEFAULT_SESSION"""
    if inside_tmux(env):
        current = await controller.backend.current_session()
        if current:
            return current
        logger.warning("[DevSession] $TMUX is set but no current session reported")
    return config.DEFAULT_SESSION


async def open_dev_session(
    controller: PaneController,
    number: int = 1,
    session: str | None = None,
    env: Mapping[str, str] | None = None,
    agent_command: str | None = None,
) -> DevSession:
    """创建（或复用）dev-N window 并切换过去

    Raises:
        LayoutError: 创建过程中某一步失败
    """
    session_name = session or await resolve_dev_session_name(controller, env)
    window = dev_window_name(number)
    existed = await controller.backend.has_window(session_name, window)

    panes = await controller.layout.ensure_layout(
        session_name, window, dev_session_plan(number, agent_command=agent_command)
    )
    if existed:
        await controller.backend.select_window(session_name, window)
    logger.info(f"[DevSession] {'reused' if existed else 'created'} {session_name}:{window}")
    return DevSession(session=session_name, window=window, panes=panes, created=not existed)
