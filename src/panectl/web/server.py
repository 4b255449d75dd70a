"""HTTP API 服务器

把 PaneController 的操作暴露为 JSON 接口，供不在同一进程的 agent / hook 调用。
错误映射：
- ParseError / 参数错误 -> 400
- 目标不存在 -> 404
- 布局步骤失败 -> 409
- 复用器命令失败 -> 502
"""

import logging
from typing import Literal

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from panectl.controller import PaneController
from panectl.core.address import PaneAddress, parse
from panectl.devsession import open_dev_session
from panectl.errors import (
    CaptureError,
    DispatchError,
    LayoutError,
    MultiplexerError,
    NotFoundError,
    PanectlError,
    ParseError,
)
from panectl.observe import PaneSnapshot, parse_line_bound
from panectl.wait import CompletionCriterion, FixedDelay, OutputContainsMarker, ProcessNameReturnedToShell

logger = logging.getLogger(__name__)


class SendRequest(BaseModel):
    """文本输入请求体"""

    text: str
    press_enter: bool = True
    literal: bool = True


class ControlRequest(BaseModel):
    """控制按键请求体"""

    symbol: str  # 如 "C-c", "Escape"


class WaitRequest(BaseModel):
    """等待请求体，criterion 决定使用哪个字段"""

    criterion: Literal["marker", "shell", "delay"]
    marker: str | None = None
    shell_names: list[str] | None = None
    seconds: float | None = None
    poll_interval: float | None = None
    timeout: float | None = None


class DevSessionRequest(BaseModel):
    """dev session 请求体"""

    number: int = 1
    session: str | None = None
    agent_command: str | None = None


class OperationResponse(BaseModel):
    """无返回数据的操作响应"""

    success: bool
    message: str = ""


def error_status(exc: PanectlError) -> int:
    """panectl 异常对应的 HTTP 状态码"""
    if isinstance(exc, ParseError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, (DispatchError, CaptureError)):
        return 404 if exc.target_not_found else 502
    if isinstance(exc, LayoutError):
        return 409
    if isinstance(exc, MultiplexerError):
        return 502
    return 500


def snapshot_dict(snapshot: PaneSnapshot | None) -> dict | None:
    if snapshot is None:
        return None
    return {
        "address": str(snapshot.address),
        "sequence": snapshot.sequence,
        "lines": list(snapshot.lines),
        "current_command": snapshot.current_command,
    }


def build_criterion(request: WaitRequest) -> CompletionCriterion:
    """根据请求构造完成条件

    Raises:
        ValueError: 缺少所选条件需要的字段
    """
    if request.criterion == "marker":
        if not request.marker:
            raise ValueError("criterion 'marker' requires a non-empty 'marker'")
        return OutputContainsMarker(request.marker)
    if request.criterion == "shell":
        if request.shell_names:
            return ProcessNameReturnedToShell(request.shell_names)
        return ProcessNameReturnedToShell()
    if request.seconds is None:
        raise ValueError("criterion 'delay' requires 'seconds'")
    return FixedDelay(request.seconds)


class WebServer:
    """panectl HTTP API"""

    def __init__(self, controller: PaneController):
        self.app = FastAPI(title="panectl")
        self.controller = controller
        self._setup_error_handlers()
        self._setup_routes()

    def _setup_error_handlers(self):
        @self.app.exception_handler(PanectlError)
        async def panectl_error(request: Request, exc: PanectlError):
            status = error_status(exc)
            logger.warning(f"[WebServer] {request.method} {request.url.path} -> {status}: {exc}")
            return JSONResponse(status_code=status, content={"error": type(exc).__name__, "detail": str(exc)})

        @self.app.exception_handler(ValueError)
        async def value_error(request: Request, exc: ValueError):
            return JSONResponse(status_code=400, content={"error": "ValueError", "detail": str(exc)})

    def _setup_routes(self):
        controller = self.controller

        @self.app.get("/api/panes")
        async def list_panes(session: str | None = None, window: str | None = None):
            """列出 pane 及其元数据"""
            window_key: str | int | None = int(window) if window is not None and window.isdigit() else window
            panes = await controller.observer.list_panes(session, window_key)
            return {"panes": [p.to_dict() for p in panes]}

        @self.app.post("/api/panes/{address}/send", response_model=OperationResponse)
        async def send_text(address: str, request: SendRequest):
            """向 pane 输入文本"""
            target = parse(address)
            await controller.dispatcher.send_text(
                target, request.text, press_enter=request.press_enter, literal=request.literal
            )
            return OperationResponse(success=True, message=f"sent to {target}")

        @self.app.post("/api/panes/{address}/control", response_model=OperationResponse)
        async def send_control(address: str, request: ControlRequest):
            """向 pane 发送控制按键"""
            target = parse(address)
            await controller.dispatcher.send_control(target, request.symbol)
            return OperationResponse(success=True, message=f"{request.symbol} sent to {target}")

        @self.app.get("/api/panes/{address}/capture")
        async def capture(address: str, start: str = "0", end: str = "end"):
            """捕获 pane 文本"""
            snapshot = await controller.observer.capture(
                parse(address), parse_line_bound(start, "start"), parse_line_bound(end, "end")
            )
            return snapshot_dict(snapshot)

        @self.app.post("/api/panes/{address}/wait")
        async def wait(address: str, request: WaitRequest):
            """等待 pane 中的命令完成（TIMED_OUT 也以 200 返回）"""
            target: PaneAddress = parse(address)
            outcome = await controller.waiter.wait(
                target,
                build_criterion(request),
                poll_interval=request.poll_interval,
                timeout=request.timeout,
            )
            return {
                "state": outcome.state.value,
                "elapsed": outcome.elapsed,
                "polls": outcome.polls,
                "snapshot": snapshot_dict(outcome.snapshot),
            }

        @self.app.post("/api/dev-sessions")
        async def dev_session(request: DevSessionRequest):
            """创建（或切换到）dev-N window"""
            result = await open_dev_session(
                controller, request.number, session=request.session, agent_command=request.agent_command
            )
            return {
                "session": result.session,
                "window": result.window,
                "panes": [str(p) for p in result.panes],
                "shell_pane": str(result.shell_pane),
                "created": result.created,
            }

        @self.app.get("/api/buffers")
        async def list_buffers():
            """列出命名 buffer"""
            entries = await controller.buffers.entries()
            return {
                "buffers": [
                    {"name": e.name, "size": len(e.payload), "written_at": e.written_at} for e in entries
                ]
            }

        @self.app.put("/api/buffers/{name}", response_model=OperationResponse)
        async def write_buffer(name: str, request: Request):
            """以请求体整体替换 buffer"""
            payload = await request.body()
            await controller.buffers.write(name, payload)
            return OperationResponse(success=True, message=f"{len(payload)} bytes")

        @self.app.get("/api/buffers/{name}")
        async def read_buffer(name: str):
            """读取 buffer 原始内容"""
            payload = await controller.buffers.read(name)
            return Response(content=payload, media_type="application/octet-stream")

        @self.app.delete("/api/buffers/{name}", response_model=OperationResponse)
        async def delete_buffer(name: str):
            await controller.buffers.delete(name)
            return OperationResponse(success=True)
