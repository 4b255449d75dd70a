"""FastAPI 应用初始化"""

import asyncio
import logging

import uvicorn

from panectl import config
from panectl.controller import PaneController
from panectl.web.server import WebServer

logger = logging.getLogger(__name__)


def create_app(controller: PaneController | None = None) -> WebServer:
    """创建 Web 应用（controller 为 None 时按 config 创建 tmux 控制器）"""
    return WebServer(controller or PaneController())


async def start_server(controller: PaneController, host: str, port: int):
    """启动服务器"""
    server = create_app(controller)

    uvicorn_config = uvicorn.Config(server.app, host=host, port=port, log_level=config.LOG_LEVEL.lower())
    uvicorn_server = uvicorn.Server(uvicorn_config)

    print(f"panectl HTTP API starting at http://{host}:{port}")
    logger.info(f"[WebServer] backend={controller.backend.name} controller={controller.name}")
    await uvicorn_server.serve()


def serve(controller: PaneController | None = None, host: str | None = None, port: int | None = None):
    """入口函数"""
    try:
        asyncio.run(start_server(controller or PaneController(), host or config.HTTP_HOST, port or config.HTTP_PORT))
    except KeyboardInterrupt:
        print("\nServer stopped")
