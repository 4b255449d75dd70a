"""Pytest 配置

FakeMultiplexer 是内存中的复用器后端，模拟 tmux 的 session/window/pane 结构、
分屏几何、按键输入、scrollback 捕获、环境变量与命名 buffer。
"""

import itertools
import shlex
from collections.abc import Sequence
from dataclasses import dataclass, field

import pytest

from panectl.adapters.base import BufferInfo, MultiplexerBackend, PaneInfo, SplitDirection, WindowInfo
from panectl.core.address import PaneAddress
from panectl.errors import MultiplexerError, NotFoundError
from panectl.telemetry import metrics

WINDOW_WIDTH = 200
WINDOW_HEIGHT = 50
PROMPT = "$ "
CONTINUATION = "> "


@dataclass
class FakePane:
    index: int
    pane_id: str
    left: int = 0
    top: int = 0
    width: int = WINDOW_WIDTH
    height: int = WINDOW_HEIGHT
    command: str = "bash"
    lines: list[str] = field(default_factory=list)
    pending: str = ""
    keys: list[str] = field(default_factory=list)
    # False: 命令行回显后不产生任何输出（模拟一直运行的命令）
    responsive: bool = True
    # 未闭合的 { ... } 组中已输入的命令
    continued: str | None = None


@dataclass
class FakeWindow:
    index: int
    name: str
    panes: list[FakePane] = field(default_factory=list)
    active_pane: int = 0


class FakeMultiplexer(MultiplexerBackend):
    """内存复用器后端"""

    name = "fake"

    def __init__(self, current_session: str | None = None):
        self.sessions: dict[str, list[FakeWindow]] = {}
        self.environment: dict[str | None, dict[str, str]] = {None: {}}
        self.buffers: dict[str, tuple[bytes, float]] = {}
        self.sent: list[tuple[PaneAddress, list[str], bool]] = []
        self.selected_windows: list[tuple[str, str | int]] = []
        self.selected_panes: list[PaneAddress] = []
        self.failures: dict[str, Exception] = {}
        self.calls: list[str] = []
        self._current = current_session
        self._pane_ids = itertools.count()
        self._clock = itertools.count(1)

    # === 测试辅助 ===

    def add_session(self, session: str, window: str = "main") -> None:
        if session in self.sessions:
            raise MultiplexerError("new-session", 1, f"duplicate session: {session}")
        self.sessions[session] = [self._make_window(0, window)]
        self.environment[session] = {}

    def add_window(self, session: str, window: str) -> int:
        windows = self._windows(session)
        index = max((w.index for w in windows), default=-1) + 1
        windows.append(self._make_window(index, window))
        return index

    def pane(self, address: PaneAddress) -> FakePane:
        window = self._window(address.session, address.window)
        for pane in window.panes:
            if pane.index == address.pane:
                return pane
        raise NotFoundError("pane", str(address))

    def kill_pane(self, address: PaneAddress) -> None:
        window = self._window(address.session, address.window)
        window.panes = [p for p in window.panes if p.index != address.pane]

    def _make_window(self, index: int, name: str) -> FakeWindow:
        return FakeWindow(index=index, name=name, panes=[FakePane(index=0, pane_id=f"%{next(self._pane_ids)}")])

    def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failures:
            raise self.failures[operation]

    def _windows(self, session: str) -> list[FakeWindow]:
        if session not in self.sessions:
            raise NotFoundError("session", session)
        return self.sessions[session]

    def _window(self, session: str, window: str | int) -> FakeWindow:
        for w in self._windows(session):
            if (w.index == window) if isinstance(window, int) else (w.name == window):
                return w
        raise NotFoundError("window", f"{session}:{window}")

    def _pane_info(self, session: str, window: FakeWindow, pane: FakePane) -> PaneInfo:
        return PaneInfo(
            session=session,
            window_index=window.index,
            window_name=window.name,
            pane_index=pane.index,
            pane_id=pane.pane_id,
            current_command=pane.command,
            left=pane.left,
            top=pane.top,
            width=pane.width,
            height=pane.height,
            active=pane.index == window.active_pane,
            path="/tmp",
        )

    def _execute(self, pane: FakePane, line: str) -> None:
        if pane.continued is not None:
            pane.lines.append(CONTINUATION + line)
            command, closing, pane.continued = pane.continued, line, None
        elif line.startswith("{ "):
            # 与交互式 shell 相同：未闭合的组先显示提示符，不执行
            pane.lines.append(PROMPT + line)
            pane.continued = line[2:]
            return
        else:
            pane.lines.append(PROMPT + line)
            command, closing = line, ""
        if not pane.responsive:
            return
        words = shlex.split(command, comments=True)
        if words[-1:] == ["&"]:
            words.pop()
        if words[:1] == ["echo"]:
            pane.lines.append(" ".join(words[1:]))
        _, _, printf = closing.partition("; printf ")
        if printf:
            _, prefix, token = shlex.split(printf)
            pane.lines.append(prefix + token)

    # === MultiplexerBackend ===

    async def list_sessions(self) -> list[str]:
        return list(self.sessions)

    async def list_windows(self, session: str) -> list[WindowInfo]:
        self._maybe_fail("list_windows")
        return [
            WindowInfo(session=session, index=w.index, name=w.name, width=WINDOW_WIDTH, height=WINDOW_HEIGHT)
            for w in self._windows(session)
        ]

    async def list_panes(self, session: str | None = None, window: str | int | None = None) -> list[PaneInfo]:
        self._maybe_fail("list_panes")
        if session is None:
            sessions = list(self.sessions)
        else:
            self._windows(session)
            sessions = [session]
        result = []
        for name in sessions:
            windows = self._windows(name) if window is None else [self._window(name, window)]
            for w in windows:
                result.extend(self._pane_info(name, w, p) for p in w.panes)
        return result

    async def pane_info(self, address: PaneAddress) -> PaneInfo:
        self._maybe_fail("pane_info")
        window = self._window(address.session, address.window)
        return self._pane_info(address.session, window, self.pane(address))

    async def current_session(self) -> str | None:
        return self._current

    async def new_session(self, session: str, window: str) -> None:
        self._maybe_fail("new_session")
        self.add_session(session, window)

    async def new_window(self, session: str, window: str) -> int:
        self._maybe_fail("new_window")
        return self.add_window(session, window)

    async def split_pane(self, address: PaneAddress, direction: SplitDirection, size_percent: int) -> str:
        self._maybe_fail("split_pane")
        window = self._window(address.session, address.window)
        target = self.pane(address)
        new = FakePane(index=-1, pane_id=f"%{next(self._pane_ids)}")
        if direction is SplitDirection.HORIZONTAL:
            new.width = target.width * size_percent // 100
            target.width -= new.width
            new.left, new.top, new.height = target.left + target.width, target.top, target.height
        else:
            new.height = target.height * size_percent // 100
            target.height -= new.height
            new.left, new.top, new.width = target.left, target.top + target.height, target.width
        # 与 tmux 相同：新 pane 插在被分割 pane 之后，其后的 pane 重新编号
        window.panes.insert(window.panes.index(target) + 1, new)
        if window.active_pane > target.index:
            window.active_pane += 1
        for index, pane in enumerate(window.panes):
            pane.index = index
        return new.pane_id

    async def kill_window(self, session: str, window: str | int) -> None:
        target = self._window(session, window)
        self.sessions[session].remove(target)

    async def set_environment(self, key: str, value: str, session: str | None = None) -> None:
        self._maybe_fail("set_environment")
        if session is not None:
            self._windows(session)
        self.environment.setdefault(session, {})[key] = value

    async def show_environment(self, key: str, session: str | None = None) -> str | None:
        return self.environment.get(session, {}).get(key)

    async def send_keys(self, address: PaneAddress, keys: Sequence[str], literal: bool = False) -> None:
        self._maybe_fail("send_keys")
        pane = self.pane(address)
        self.sent.append((address, list(keys), literal))
        if literal:
            pane.pending += "".join(keys)
            return
        for key in keys:
            if key == "Enter":
                line, pane.pending = pane.pending, ""
                self._execute(pane, line)
            else:
                pane.keys.append(key)
                if key == "C-c":
                    pane.lines.append(PROMPT + pane.pending + "^C")
                    pane.pending = ""

    async def capture_pane(self, address: PaneAddress, start: int | str = 0, end: int | str = "end") -> str:
        self._maybe_fail("capture_pane")
        pane = self.pane(address)
        lines = pane.lines + ([PROMPT + pane.pending] if pane.responsive else [])
        visible_top = max(0, len(lines) - pane.height)
        first = 0 if start == "start" else max(0, visible_top + start)
        last = len(lines) if end == "end" else visible_top + end + 1
        selected = lines[first:last]
        return "\n".join(selected) + "\n" if selected else ""

    async def select_pane(self, address: PaneAddress) -> None:
        window = self._window(address.session, address.window)
        self.pane(address)
        window.active_pane = address.pane
        self.selected_panes.append(address)

    async def select_window(self, session: str, window: str | int) -> None:
        self._window(session, window)
        self.selected_windows.append((session, window))

    async def set_buffer(self, name: str, payload: bytes) -> None:
        # tmux load-buffer 对空内容什么也不做，且退出码为 0
        if not payload:
            return
        self.buffers[name] = (payload, float(next(self._clock)))

    async def show_buffer(self, name: str) -> bytes:
        if name not in self.buffers:
            raise NotFoundError("buffer", name)
        return self.buffers[name][0]

    async def list_buffers(self) -> list[BufferInfo]:
        return [
            BufferInfo(name=name, size=len(payload), created=created)
            for name, (payload, created) in sorted(self.buffers.items(), key=lambda kv: -kv[1][1])
        ]

    async def delete_buffer(self, name: str) -> None:
        if name not in self.buffers:
            raise NotFoundError("buffer", name)
        del self.buffers[name]


@pytest.fixture
def anyio_backend():
    """指定 anyio 只使用 asyncio backend"""
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_metrics():
    """每个测试前后清空全局指标"""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def fake_backend():
    """已有 session "work"（window "main"）的内存复用器"""
    backend = FakeMultiplexer()
    backend.add_session("work", "main")
    return backend


@pytest.fixture
def controller(fake_backend):
    from panectl.controller import PaneController

    return PaneController(backend=fake_backend, env={}, name="test-controller")
