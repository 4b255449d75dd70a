"""Tests for TmuxClient."""

from unittest.mock import AsyncMock, patch

import pytest

from panectl.adapters.tmux.client import TmuxClient, TmuxResult, classify_not_found
from panectl.errors import MultiplexerError, NotFoundError
from panectl.telemetry import metrics


def _proc(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0) -> AsyncMock:
    mock_proc = AsyncMock()
    mock_proc.communicate.return_value = (stdout, stderr)
    mock_proc.returncode = returncode
    return mock_proc


class TestClassifyNotFound:
    """Tests for stderr classification."""

    @pytest.mark.parametrize(
        "stderr, kind",
        [
            ("can't find session: =work", "session"),
            ("can't find window: dev-9", "window"),
            ("can't find pane: 7", "pane"),
            ("no buffer notes", "buffer"),
            ("unknown buffer: notes", "buffer"),
            ("no server running on /tmp/tmux-1000/default", "server"),
            ("error connecting to /tmp/x (No such file or directory)", "server"),
        ],
    )
    def test_not_found(self, stderr, kind):
        assert classify_not_found(stderr) == kind

    def test_other_error(self):
        assert classify_not_found("create window failed: index in use") is None


class TestTmuxClient:
    """Tests for TmuxClient class."""

    def test_init_default(self):
        """Test TmuxClient initialization with defaults."""
        client = TmuxClient()
        assert client._socket_path is None

    def test_init_with_socket(self):
        """Test TmuxClient initialization with custom socket."""
        client = TmuxClient(socket_path="/tmp/tmux-test/default")
        assert client._socket_path == "/tmp/tmux-test/default"

    @pytest.mark.asyncio
    async def test_run_success(self):
        """Test running tmux command successfully."""
        client = TmuxClient()

        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock) as mock_exec:
            mock_exec.return_value = _proc(b"output\n")

            result = await client.run("list-sessions")

            assert result == "output\n"
            mock_exec.assert_called_once()
            call_args = mock_exec.call_args[0]
            assert call_args[0] == "tmux"
            assert "list-sessions" in call_args

    @pytest.mark.asyncio
    async def test_run_with_socket(self):
        """Test running tmux command with socket path."""
        client = TmuxClient(socket_path="/tmp/test.sock")

        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock) as mock_exec:
            mock_exec.return_value = _proc(b"ok\n")

            await client.run("list-windows")

            call_args = mock_exec.call_args[0]
            assert call_args[:3] == ("tmux", "-S", "/tmp/test.sock")

    @pytest.mark.asyncio
    async def test_run_failure(self):
        """Test running tmux command that fails."""
        client = TmuxClient()

        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock) as mock_exec:
            mock_exec.return_value = _proc(stderr=b"error: no server running\n", returncode=1)

            result = await client.run("list-sessions")

            assert result is None

    @pytest.mark.asyncio
    async def test_execute_missing_binary(self):
        """A missing tmux binary is reported as returncode 127."""
        client = TmuxClient()

        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock) as mock_exec:
            mock_exec.side_effect = FileNotFoundError("tmux")

            result = await client.execute("list-sessions")

            assert result.returncode == 127
            assert not result.ok

    @pytest.mark.asyncio
    async def test_execute_feeds_stdin(self):
        """load-buffer payload goes through stdin."""
        client = TmuxClient()

        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock) as mock_exec:
            mock_proc = _proc()
            mock_exec.return_value = mock_proc

            await client.load_buffer("notes", b"hello\x00world")

            assert mock_exec.call_args[0][1:] == ("load-buffer", "-b", "notes", "-")
            mock_proc.communicate.assert_awaited_once_with(b"hello\x00world")

    @pytest.mark.asyncio
    async def test_check_raises_not_found(self):
        client = TmuxClient()
        failed = TmuxResult(returncode=1, stdout=b"", stderr="can't find pane: 9\n")

        with patch.object(client, "execute", return_value=failed):
            with pytest.raises(NotFoundError) as exc_info:
                await client.check("send-keys", "-t", "=work:0.9", target="=work:0.9")

        assert exc_info.value.kind == "pane"
        assert exc_info.value.name == "=work:0.9"

    @pytest.mark.asyncio
    async def test_check_raises_multiplexer_error(self):
        client = TmuxClient()
        failed = TmuxResult(returncode=1, stdout=b"", stderr="create pane failed: pane too small\n")

        with patch.object(client, "execute", return_value=failed):
            with pytest.raises(MultiplexerError) as exc_info:
                await client.check("split-window", "-t", "=work:0.0")

        assert exc_info.value.command == "split-window"
        assert exc_info.value.returncode == 1
        assert metrics.get_counter("tmux.errors", {"command": "split-window"}) == 1

    @pytest.mark.asyncio
    async def test_list_sessions(self):
        client = TmuxClient()

        with patch.object(client, "run", return_value="work\ndiscord\n"):
            assert await client.list_sessions() == ["work", "discord"]

    @pytest.mark.asyncio
    async def test_list_sessions_no_server(self):
        client = TmuxClient()

        with patch.object(client, "run", return_value=None):
            assert await client.list_sessions() == []

    @pytest.mark.asyncio
    async def test_list_windows(self):
        """Test listing tmux windows."""
        client = TmuxClient()

        output = "work\t0\tmain\t200\t50\t0\nwork\t1\tdev-1\t200\t50\t1\n"
        with patch.object(client, "check", return_value=TmuxResult(0, output.encode(), "")):
            windows = await client.list_windows("=work")

        assert windows == [
            {"session": "work", "index": 0, "name": "main", "width": 200, "height": 50, "active": False},
            {"session": "work", "index": 1, "name": "dev-1", "width": 200, "height": 50, "active": True},
        ]

    @pytest.mark.asyncio
    async def test_list_panes_all(self):
        """Test listing every pane on the server."""
        client = TmuxClient()

        output = (
            "work\t1\tdev-1\t0\t%3\tclaude\t0\t0\t100\t50\t1\t/home/user\n"
            "work\t1\tdev-1\t1\t%4\tzsh\t101\t0\t99\t50\t0\t/home/user/project\n"
        )
        with patch.object(client, "run", return_value=output) as mock_run:
            panes = await client.list_panes()

        assert mock_run.call_args[0][:2] == ("list-panes", "-a")
        assert len(panes) == 2
        assert panes[0] == {
            "session": "work",
            "window_index": 1,
            "window_name": "dev-1",
            "pane_index": 0,
            "pane_id": "%3",
            "current_command": "claude",
            "left": 0,
            "top": 0,
            "width": 100,
            "height": 50,
            "active": True,
            "path": "/home/user",
        }
        assert panes[1]["current_command"] == "zsh"
        assert panes[1]["active"] is False

    @pytest.mark.asyncio
    async def test_list_panes_skips_malformed_lines(self):
        client = TmuxClient()

        with patch.object(client, "run", return_value="garbage\n"):
            assert await client.list_panes() == []

    @pytest.mark.asyncio
    async def test_list_panes_session_wide(self):
        client = TmuxClient()

        with patch.object(client, "check", return_value=TmuxResult(0, b"", "")) as mock_check:
            await client.list_panes("=work", session_wide=True)

        args = mock_check.call_args[0]
        assert args[:4] == ("list-panes", "-s", "-t", "=work")

    @pytest.mark.asyncio
    async def test_new_window_returns_index(self):
        client = TmuxClient()

        with patch.object(client, "check", return_value=TmuxResult(0, b"3\n", "")) as mock_check:
            index = await client.new_window("=work", "dev-2")

        assert index == 3
        args = mock_check.call_args[0]
        assert args[:6] == ("new-window", "-d", "-t", "=work:", "-n", "dev-2")

    @pytest.mark.asyncio
    async def test_split_window(self):
        client = TmuxClient()

        with patch.object(client, "check", return_value=TmuxResult(0, b"%7\n", "")) as mock_check:
            pane_id = await client.split_window("=work:=dev-1.0", horizontal=True, size_percent=50)

        assert pane_id == "%7"
        args = mock_check.call_args[0]
        assert "-h" in args
        assert args[args.index("-F") + 1] == "#{pane_id}"
        assert args[args.index("-l") + 1] == "50%"

    @pytest.mark.asyncio
    async def test_send_keys_literal(self):
        """Literal text is passed with -l after a '--' separator."""
        client = TmuxClient()

        with patch.object(client, "check", return_value=TmuxResult(0, b"", "")) as mock_check:
            await client.send_keys("=work:=dev-1.1", ["-rf Enter"], literal=True)

        assert mock_check.call_args[0] == ("send-keys", "-t", "=work:=dev-1.1", "-l", "--", "-rf Enter")

    @pytest.mark.asyncio
    async def test_send_keys_named(self):
        client = TmuxClient()

        with patch.object(client, "check", return_value=TmuxResult(0, b"", "")) as mock_check:
            await client.send_keys("=work:0.1", ["C-c"])

        assert mock_check.call_args[0] == ("send-keys", "-t", "=work:0.1", "--", "C-c")

    @pytest.mark.asyncio
    async def test_capture_pane(self):
        """Test capturing pane content."""
        client = TmuxClient()

        with patch.object(client, "check", return_value=TmuxResult(0, b"line1\nline2\n", "")) as mock_check:
            content = await client.capture_pane("=work:0.0", "-", "-")

        assert content == "line1\nline2\n"
        assert mock_check.call_args[0] == ("capture-pane", "-p", "-t", "=work:0.0", "-S", "-", "-E", "-", "-J")

    @pytest.mark.asyncio
    async def test_capture_pane_without_join(self):
        client = TmuxClient()

        with patch.object(client, "check", return_value=TmuxResult(0, b"", "")) as mock_check:
            await client.capture_pane("=work:0.0", "-50", "-", join=False)

        assert "-J" not in mock_check.call_args[0]

    @pytest.mark.asyncio
    async def test_show_environment(self):
        client = TmuxClient()

        with patch.object(client, "run", return_value="CLAUDE_TMUX_PANE_1=work:dev-1.1\n"):
            assert await client.show_environment("CLAUDE_TMUX_PANE_1", "=work") == "work:dev-1.1"

    @pytest.mark.asyncio
    async def test_show_environment_removed(self):
        client = TmuxClient()

        with patch.object(client, "run", return_value="-CLAUDE_TMUX_PANE_1\n"):
            assert await client.show_environment("CLAUDE_TMUX_PANE_1") is None

    @pytest.mark.asyncio
    async def test_set_environment_global(self):
        client = TmuxClient()

        with patch.object(client, "check", return_value=TmuxResult(0, b"", "")) as mock_check:
            await client.set_environment("KEY", "value")

        assert mock_check.call_args[0] == ("set-environment", "-g", "KEY", "value")

    @pytest.mark.asyncio
    async def test_show_buffer_returns_bytes(self):
        client = TmuxClient()

        with patch.object(client, "check", return_value=TmuxResult(0, b"\xffraw", "")):
            assert await client.show_buffer("notes") == b"\xffraw"

    @pytest.mark.asyncio
    async def test_list_buffers(self):
        client = TmuxClient()

        with patch.object(client, "run", return_value="notes\t5\t1700000000\nbuffer0\t2\t1699999999\n"):
            buffers = await client.list_buffers()

        assert buffers == [
            {"name": "notes", "size": 5, "created": 1700000000.0},
            {"name": "buffer0", "size": 2, "created": 1699999999.0},
        ]

    @pytest.mark.asyncio
    async def test_get_current_session_outside_tmux(self):
        client = TmuxClient()

        with patch.object(client, "run", return_value=None):
            assert await client.get_current_session() is None
