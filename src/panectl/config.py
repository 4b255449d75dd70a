"""panectl 配置

配置分为以下几类：
- tmux 配置：socket、环境变量名
- 轮询配置：等待命令完成的间隔与超时
- dev session 配置：窗口命名、分屏比例、启动命令
- HTTP 配置：监听地址
- 日志与指标配置
"""

import os


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


# === tmux 配置 ===
TMUX_SOCKET = os.environ.get("PANECTL_TMUX_SOCKET") or None  # None 使用默认 socket
PANE_ENV = os.environ.get("PANECTL_PANE_ENV", "CLAUDE_TMUX_PANE")  # "配对 pane" 地址所在的环境变量
DEFAULT_SESSION = os.environ.get("PANECTL_DEFAULT_SESSION", "discord")  # 不在 tmux 内时使用的 session

# === 轮询配置 ===
POLL_INTERVAL = _env_float("PANECTL_POLL_INTERVAL", 0.5)  # 完成检测轮询间隔（秒）
WAIT_TIMEOUT = _env_float("PANECTL_WAIT_TIMEOUT", 30.0)  # 完成检测默认超时（秒）
SHELL_NAMES = tuple(
    os.environ.get("PANECTL_SHELL_NAMES", "bash,zsh,sh,fish,dash").split(",")
)  # 视为"空闲 shell"的进程名
MARKER_PREFIX = "__PANECTL_DONE_"  # run_command 使用的完成标记前缀

# === 捕获配置 ===
CAPTURE_JOIN_WRAPPED = True  # capture-pane -J，合并被折行的长行

# === dev session 配置 ===
DEV_WINDOW_PREFIX = "dev-"  # 窗口名前缀（dev-1, dev-2 ...）
DEV_AGENT_COMMAND = os.environ.get("PANECTL_DEV_AGENT_COMMAND", "claude")  # 左侧 pane 启动命令
DEV_SPLIT_PERCENT = _env_int("PANECTL_DEV_SPLIT_PERCENT", 50)  # 右侧 shell pane 宽度百分比

# === HTTP 配置 ===
HTTP_HOST = os.environ.get("PANECTL_HTTP_HOST", "127.0.0.1")
HTTP_PORT = _env_int("PANECTL_HTTP_PORT", 8765)

# === 日志配置 ===
LOG_LEVEL = os.environ.get("PANECTL_LOG_LEVEL", "INFO")  # 日志级别
LOG_MAX_CMD_LEN = 120  # 发送命令日志截断长度
MASK_COMMANDS = False  # 是否完全隐藏命令内容（隐私模式）

# === 指标配置 ===
METRICS_ENABLED = True  # 是否启用指标收集
