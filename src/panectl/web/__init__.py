"""HTTP API 模块"""

from panectl.web.app import create_app
from panectl.web.server import WebServer

__all__ = ["create_app", "WebServer"]
