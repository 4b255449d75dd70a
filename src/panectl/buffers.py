"""BufferChannel - 基于复用器命名 buffer 的控制器间消息传递

buffer 存放在复用器服务进程中，对所有控制器可见：
- write: 后写者胜出，无版本号；内容一次性整体替换，不会被撕裂；
  空内容会被拒绝（ValueError），清空用 delete
- read: 从未写入的 name 抛 NotFoundError，不阻塞等待；
  需要会合的读方自行轮询
"""

from dataclasses import dataclass

from .adapters.base import MultiplexerBackend
from .errors import NotFoundError
from .telemetry import get_logger, metrics

logger = get_logger(__name__)


@dataclass(frozen=True)
class NamedBuffer:
    """命名 buffer

    Attributes:
        name: buffer 名
        payload: 内容
        writer: 写入者标识（复用器不记录写入者，未知时为 None）
        written_at: 写入时间（epoch 秒）
    """

    name: str
    payload: bytes
    writer: str | None
    written_at: float


class BufferChannel:
    """命名 buffer 读写

    Args:
        backend: 复用器后端
        writer: 本控制器的标识，写入日志与指标标签
    """

    def __init__(self, backend: MultiplexerBackend, writer: str | None = None):
        self._backend = backend
        self._writer = writer

    async def write(self, name: str, payload: bytes | str) -> None:
        """写入 buffer（覆盖旧值）

        Raises:
            ValueError: name 为空，或 payload 为空（tmux 会静默忽略空内容并保留旧值，
                要清空请用 delete）
        """
        if not name:
            raise ValueError("buffer name must not be empty")
        data = payload.encode() if isinstance(payload, str) else bytes(payload)
        if not data:
            raise ValueError(f"refusing to write an empty payload to buffer {name!r}; use delete to clear it")
        await self._backend.set_buffer(name, data)
        metrics.inc("buffer.write")
        logger.debug(f"[BufferChannel] {self._writer or 'anonymous'} wrote {len(data)} bytes to {name!r}")

    async def read(self, name: str) -> bytes:
        """读取 buffer

        Raises:
            NotFoundError: buffer 从未写入（或已删除）
        """
        try:
            data = await self._backend.show_buffer(name)
        except NotFoundError:
            metrics.inc("buffer.miss")
            raise
        metrics.inc("buffer.read")
        return data

    async def read_text(self, name: str, encoding: str = "utf-8") -> str:
        return (await self.read(name)).decode(encoding, errors="replace")

    async def entries(self) -> list[NamedBuffer]:
        """列出所有 buffer 及其内容"""
        buffers = []
        for info in await self._backend.list_buffers():
            try:
                payload = await self._backend.show_buffer(info.name)
            except NotFoundError:
                # 列出与读取之间被删除
                continue
            buffers.append(NamedBuffer(name=info.name, payload=payload, writer=None, written_at=info.created))
        return buffers

    async def delete(self, name: str) -> None:
        """删除 buffer

        Raises:
            NotFoundError: buffer 不存在
        """
        await self._backend.delete_buffer(name)
        logger.debug(f"[BufferChannel] deleted {name!r}")
