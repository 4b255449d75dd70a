"""Telemetry - 统一日志和指标入口

提供统一的日志工厂和指标 facade，便于观测性追踪。

日志格式: [module:pane] msg
指标示例: dispatch.sent, capture.ok, wait.satisfied, wait.duration, buffer.write
"""

import logging
import re

from . import config

# 全局日志配置
_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Token-like patterns to mask (API keys, secrets, tokens)
_TOKEN_PATTERNS = [
    re.compile(r"(sk-[a-zA-Z0-9\-_]{20,})"),  # OpenAI / Anthropic keys
    re.compile(r"(ghp_[a-zA-Z0-9]{36,})"),  # GitHub PAT
    re.compile(r"(glpat-[a-zA-Z0-9\-]{20,})"),  # GitLab PAT
    re.compile(r"(xox[baprs]-[a-zA-Z0-9\-]{10,})"),  # Slack tokens
    re.compile(r"([a-zA-Z0-9_\-]{32,})"),  # Generic long alphanumeric (likely token)
]


def get_logger(name: str) -> logging.Logger:
    """获取带模块前缀的 logger

    Args:
        name: 模块名（通常使用 __name__）

    Returns:
        Logger 实例
    """
    return logging.getLogger(name)


def setup_logging(level: str | None = None) -> None:
    """配置根 logger（CLI 与 HTTP 服务入口调用）

    Args:
        level: 日志级别名，None 使用 config.LOG_LEVEL
    """
    logging.basicConfig(
        level=(level or config.LOG_LEVEL).upper(),
        format=_LOG_FORMAT,
    )


def format_pane_log(module: str, target: str, msg: str) -> str:
    """格式化带 pane 地址的日志消息

    Args:
        module: 模块名
        target: pane 地址文本
        msg: 日志消息

    Returns:
        格式化的消息: [module:target] msg
    """
    return f"[{module}:{target or 'unknown'}] {msg}"


def redact_command(text: str) -> str:
    """截断并屏蔽命令中的 token，用于安全地写日志"""
    if config.MASK_COMMANDS:
        return f"<{len(text)} chars>"
    masked = text
    for pattern in _TOKEN_PATTERNS:
        masked = pattern.sub(lambda m: m.group(0)[:4] + "***", masked)
    if len(masked) <= config.LOG_MAX_CMD_LEN:
        return masked
    return masked[: config.LOG_MAX_CMD_LEN] + "..."


class Metrics:
    """指标收集 facade

    计数器 + 耗时序列，内存存储；METRICS_ENABLED=0 时全部忽略。
    """

    def __init__(self):
        self._counters: dict[str, int] = {}
        self._timings: dict[str, list[float]] = {}

    def inc(self, name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
        """递增计数器

        Args:
            name: 指标名（如 "dispatch.failed"）
            labels: 可选标签（如 {"reason": "target_not_found"}）
            value: 递增值，默认 1
        """
        if not config.METRICS_ENABLED:
            return
        key = self._make_key(name, labels)
        self._counters[key] = self._counters.get(key, 0) + value

    def observe(self, name: str, seconds: float, labels: dict[str, str] | None = None) -> None:
        """记录一次耗时（如 wait.duration）"""
        if not config.METRICS_ENABLED:
            return
        self._timings.setdefault(self._make_key(name, labels), []).append(seconds)

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        return self._counters.get(self._make_key(name, labels), 0)

    def get_timings(self, name: str, labels: dict[str, str] | None = None) -> list[float]:
        return list(self._timings.get(self._make_key(name, labels), []))

    def reset(self) -> None:
        """重置所有指标（用于测试）"""
        self._counters.clear()
        self._timings.clear()

    def _make_key(self, name: str, labels: dict[str, str] | None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"

    def get_all_counters(self) -> dict[str, int]:
        """获取所有计数器（用于调试）"""
        return dict(self._counters)


# 全局指标实例
metrics = Metrics()
