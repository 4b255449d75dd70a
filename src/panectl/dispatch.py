"""Dispatcher - 向 pane 输入流注入按键

- send_text: 以字面模式发送文本，可选追加 Enter
- send_control: 发送单个按键名（如 C-c），不追加换行

发送成功仅代表字节已送达 pane 输入，不代表程序已读取或执行完成。
"""

import re

from .adapters.base import MultiplexerBackend
from .core.address import PaneAddress
from .errors import DispatchError, MultiplexerError, NotFoundError, TargetFailure
from .telemetry import format_pane_log, get_logger, metrics, redact_command

logger = get_logger(__name__)

# tmux key names recognized by send-keys (sent without -l flag)
KEY_NAMES = frozenset(
    {
        "Enter",
        "Escape",
        "Space",
        "Tab",
        "BTab",
        "BSpace",
        "DC",
        "IC",
        "Up",
        "Down",
        "Left",
        "Right",
        "Home",
        "End",
        "PPage",
        "NPage",
        "PageUp",
        "PageDown",
        *(f"F{n}" for n in range(1, 13)),
    }
)

# Ctrl/Alt/Shift combos: C-c, M-x, C-M-a, S-Up, C-\
_KEY_COMBO_RE = re.compile(r"^(?:[CMS]-)+(?:.|[A-Za-z0-9]+)$")

INTERRUPT = "C-c"
END_OF_LINE = "Enter"


def is_control_symbol(symbol: str) -> bool:
    """Check if symbol is a key name rather than literal text."""
    if symbol in KEY_NAMES:
        return True
    if _KEY_COMBO_RE.match(symbol):
        base = symbol.rsplit("-", 1)[-1] or "-"
        return len(base) == 1 or base in KEY_NAMES
    return False


class Dispatcher:
    """向 pane 发送文本与控制按键

    目标 pane 不存在时抛出 DispatchError(TARGET_NOT_FOUND)，调用方可重新解析地址
    或放弃，控制器进程不受影响。
    """

    def __init__(self, backend: MultiplexerBackend):
        self._backend = backend

    async def send_text(
        self,
        address: PaneAddress,
        text: str,
        press_enter: bool = True,
        literal: bool = True,
    ) -> None:
        """发送文本，模拟用户输入

        Args:
            address: 目标 pane
            text: 要输入的文本
            press_enter: 文本后追加 Enter
            literal: 字面模式，"Enter" 等按键名按文本发送；
                False 时 text 按空白切分为按键名逐个发送

        Raises:
            DispatchError: 目标不存在或复用器命令失败
        """
        logger.debug(format_pane_log("dispatch", str(address), f"send {redact_command(text)!r}"))
        if literal:
            if text:
                await self._send(address, [text], literal=True)
        else:
            keys = text.split()
            if keys:
                await self._send(address, keys, literal=False)
        if press_enter:
            await self._send(address, [END_OF_LINE], literal=False)
        metrics.inc("dispatch.sent", {"kind": "text"})

    async def send_control(self, address: PaneAddress, symbol: str) -> None:
        """发送单个控制按键（不追加换行）

        Raises:
            ValueError: symbol 不是已知按键名
            DispatchError: 目标不存在或复用器命令失败
        """
        if not is_control_symbol(symbol):
            raise ValueError(f"Unknown control symbol: {symbol!r}")
        logger.debug(format_pane_log("dispatch", str(address), f"key {symbol}"))
        await self._send(address, [symbol], literal=False)
        metrics.inc("dispatch.sent", {"kind": "control"})

    async def interrupt(self, address: PaneAddress) -> None:
        """发送中断（C-c）"""
        await self.send_control(address, INTERRUPT)

    async def _send(self, address: PaneAddress, keys: list[str], literal: bool) -> None:
        try:
            await self._backend.send_keys(address, keys, literal=literal)
        except NotFoundError as e:
            metrics.inc("dispatch.failed", {"reason": TargetFailure.TARGET_NOT_FOUND.value})
            logger.warning(format_pane_log("dispatch", str(address), "target not found"))
            raise DispatchError(TargetFailure.TARGET_NOT_FOUND, address, str(e)) from e
        except MultiplexerError as e:
            metrics.inc("dispatch.failed", {"reason": TargetFailure.COMMAND_FAILED.value})
            logger.error(format_pane_log("dispatch", str(address), f"send failed: {e}"))
            raise DispatchError(TargetFailure.COMMAND_FAILED, address, str(e)) from e
