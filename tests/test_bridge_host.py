import json
import pytest
import httpx
from unittest.mock import MagicMock, patch

from bridge_common import BridgeConfig
from bridge_host import BridgeHostApp, build_parser, main
from executor import RequestExecutor
from conftest import make_message

@pytest.fixture(autouse=True)
def quiet_console():
    with patch("bridge_host.print_formatted_text") as mock_print:
        yield mock_print

def mock_executor_factory(status=200, body=b'{"ok":true}'):
    def handler(request):
        return httpx.Response(status, stream=httpx.ByteStream(body))

    def factory(credential_store=None, config=None):
        return RequestExecutor(credential_store, httpx.MockTransport(handler), config)
    return factory

def write_jsonl(path, messages, extra_lines=()):
    lines = [json.dumps(m) for m in messages]
    lines.extend(extra_lines)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return str(path)

class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.channel == "iOSNative"
        assert args.timeout is None
        assert args.http2 is False
        assert args.insecure is False
        assert args.open_links is False
        assert args.replay is None

    def test_flags(self):
        args = build_parser().parse_args(["-c", "bridge", "-t", "2.5", "--http2", "--insecure", "-r", "in.jsonl"])
        assert args.channel == "bridge"
        assert args.timeout == 2.5
        assert args.http2 and args.insecure
        assert args.replay == "in.jsonl"

class TestReplay:
    @pytest.mark.asyncio
    async def test_replay_delivers_once_per_distinct_instruction(self, tmp_path, isolated_store):
        path = write_jsonl(
            tmp_path / "in.jsonl",
            [make_message("e1"), make_message("e1"), make_message("e2")],
            extra_lines=["# comment", "", "{not json"]
        )
        app = BridgeHostApp(BridgeConfig(), credential_store=isolated_store)
        with patch("bridge_host.RequestExecutor", side_effect=mock_executor_factory()):
            delivered = await app.replay(path)

        assert delivered == 2
        assert len(app.scripts) == 2
        assert "SUPPLEMENTAL_INFORMATION" in app.scripts[0]
        assert [i.etag for i in app.controller.registry.history] == ["e1", "e2"]

    @pytest.mark.asyncio
    async def test_replay_auth_failure_delivers_nothing(self, tmp_path, isolated_store):
        path = write_jsonl(tmp_path / "in.jsonl", [make_message("e1")])
        app = BridgeHostApp(BridgeConfig(), credential_store=isolated_store)
        with patch("bridge_host.RequestExecutor", side_effect=mock_executor_factory(status=401)):
            assert await app.replay(path) == 0

    def test_main_replay_exit_code(self, tmp_path, isolated_store):
        path = write_jsonl(tmp_path / "in.jsonl", [make_message("e1")])
        with patch("bridge_host.RequestExecutor", side_effect=mock_executor_factory()), \
             patch("bridge_host.CredentialStore", return_value=isolated_store), \
             patch("bridge_host.colorama_init"):
            assert main(["--replay", path]) == 0

    def test_main_missing_replay_file(self, tmp_path):
        with patch("bridge_host.colorama_init"), patch("builtins.print") as mock_print:
            assert main(["--replay", str(tmp_path / "missing.jsonl")]) == 1
            assert "Error" in mock_print.call_args[0][0]

class TestCommands:
    @pytest.fixture
    def app(self, isolated_store):
        app = BridgeHostApp(BridgeConfig(), credential_store=isolated_store)
        app.controller = MagicMock()
        return app

    def test_bare_json_is_posted(self, app):
        assert app.handle_command('{"name": "x"}') is True
        app.controller.on_message.assert_called_once_with("iOSNative", {"name": "x"})

    def test_send_command(self, app):
        app.handle_command('send {"name": "x"}')
        app.controller.on_message.assert_called_once_with("iOSNative", {"name": "x"})

    def test_send_bad_json_does_not_post(self, app, quiet_console):
        assert app.post_line("{oops") is False
        app.controller.on_message.assert_not_called()

    def test_load_command(self, app, tmp_path):
        path = write_jsonl(tmp_path / "m.jsonl", [make_message("e1"), make_message("e2")])
        app.handle_command(f"load {path}")
        assert app.controller.on_message.call_count == 2

    def test_load_missing_file_is_reported(self, app, tmp_path, quiet_console):
        assert app.handle_command(f"load {tmp_path / 'nope'}") is True
        app.controller.on_message.assert_not_called()

    @pytest.mark.parametrize("cmd", ["q", "exit", "QUIT"])
    def test_exit_commands(self, app, cmd):
        assert app.handle_command(cmd) is False

    @pytest.mark.parametrize("cmd", ["", "help", "?", "ls", "jar", "bogus", "send", "load"])
    def test_other_commands_keep_running(self, app, cmd):
        assert app.handle_command(cmd) is True

    def test_jar_listing_never_shows_values(self, app, isolated_store, quiet_console):
        from structures import CookieDescriptor
        isolated_store.apply([CookieDescriptor("sid", "s3cret", "api.example", "/", True, True)])
        app.show_jar()
        printed = " ".join(str(c.args[0]) for c in quiet_console.call_args_list)
        assert "sid" in printed
        assert "s3cret" not in printed

    def test_open_link_respects_config(self, isolated_store):
        app = BridgeHostApp(BridgeConfig(open_links=False), credential_store=isolated_store)
        with patch("bridge_host.webbrowser.open") as mock_open:
            assert app._open_link("bankid:///?redirect=bankid:///") is True
            mock_open.assert_not_called()
        app = BridgeHostApp(BridgeConfig(open_links=True), credential_store=isolated_store)
        with patch("bridge_host.webbrowser.open", return_value=True) as mock_open:
            app._open_link("https://x.example")
            mock_open.assert_called_once_with("https://x.example")

def test_empty_injected_store_is_kept(isolated_store):
    app = BridgeHostApp(BridgeConfig(), credential_store=isolated_store)
    assert app.credential_store is isolated_store
