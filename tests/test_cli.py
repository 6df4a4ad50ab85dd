import getpass
import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import unquote

import pytest

from clashctl.cli import build_parser, handle_proxy, main
from clashctl.config import Config, Server
from clashctl.flags import DEFAULT_TEST_URL, Flags
from clashctl.models import ProxyType
from clashctl.sort import ProxySortBy, SortOrder

PROXIES = {
    "DIRECT": {"type": "Direct", "history": []},
    "GLOBAL": {"type": "Selector", "history": [], "all": ["DIRECT", "Proxy"], "now": "DIRECT"},
    "Proxy": {"type": "Selector", "history": [], "all": ["a", "b"], "now": "a"},
    "a": {"type": "Shadowsocks", "history": [{"time": "2022-01-01T00:00:00Z", "delay": 120}]},
    "b": {"type": "Vmess", "history": []},
}


@pytest.fixture
def controller():
    state = {"requests": [], "status": 200}

    class Handler(BaseHTTPRequestHandler):
        def log_message(self, *args):
            pass

        def do_GET(self):
            state["requests"].append(("GET", self.path, None))
            if state["status"] != 200:
                self.send_response(state["status"])
                self.send_header("Content-Length", "0")
                self.end_headers()
                return
            if self.path == "/proxies":
                payload = {"proxies": PROXIES}
            else:
                payload = PROXIES[unquote(self.path[len("/proxies/"):])]
            body = json.dumps(payload).encode()
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def do_PUT(self):
            length = int(self.headers.get("Content-Length", 0))
            body = self.rfile.read(length).decode()
            state["requests"].append(("PUT", self.path, body))
            self.send_response(204)
            self.end_headers()

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    state["url"] = f"http://127.0.0.1:{server.server_address[1]}"
    yield state
    server.shutdown()
    server.server_close()


def make_config(path, urls, using=None):
    config = Config.from_path(path)
    for url in urls:
        config.servers.append(Server(url))
    if using is not None:
        config.use_server(using)
    config.write()
    return config


def feed(monkeypatch, *answers):
    replies = iter(answers)
    monkeypatch.setattr("builtins.input", lambda prompt="": next(replies))


def test_parser_proxy_list_options():
    args = build_parser().parse_args(
        ["proxy", "ls", "--sort-by", "name", "--sort-order", "descendant", "-r", "-e", "direct"])
    assert args.proxy_action == "list"
    assert args.sort_by is ProxySortBy.NAME
    assert args.sort_order is SortOrder.DESCENDANT
    assert args.reverse is True
    assert args.exclude == [ProxyType.DIRECT]


def test_parser_defaults():
    args = build_parser().parse_args(["proxy", "list"])
    assert args.timeout == 2000
    assert args.test_url == DEFAULT_TEST_URL
    assert args.sort_by is ProxySortBy.DELAY
    assert args.sort_order is SortOrder.ASCENDANT


def test_parser_include_conflicts_with_exclude():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["proxy", "ls", "-e", "direct", "-i", "vmess"])


def test_parser_config_dir_conflicts_with_path(tmp_path):
    with pytest.raises(SystemExit):
        build_parser().parse_args(
            ["--config-dir", str(tmp_path), "-c", str(tmp_path / "c.ron"), "server", "ls"])


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out


def test_server_add(tmp_path, monkeypatch):
    path = tmp_path / "config.ron"
    feed(monkeypatch, "not a url", "http://127.0.0.1:9090")
    monkeypatch.setattr(getpass, "getpass", lambda prompt="": "secret")
    assert main(["-c", str(path), "server", "add"]) == 0
    config = Config.from_path(path)
    assert len(config.servers) == 1
    assert config.servers[0].url.startswith("http://127.0.0.1:9090")
    assert config.servers[0].secret == "secret"
    assert config.using == config.servers[0].url


def test_server_add_empty_secret_is_none(tmp_path, monkeypatch):
    path = tmp_path / "config.ron"
    feed(monkeypatch, "http://localhost:9090")
    monkeypatch.setattr(getpass, "getpass", lambda prompt="": "")
    assert main(["-c", str(path), "server", "a"]) == 0
    assert Config.from_path(path).servers[0].secret is None


def test_server_use(tmp_path, monkeypatch):
    path = tmp_path / "config.ron"
    make_config(path, ["http://127.0.0.1:1/", "http://127.0.0.1:2/"], "http://127.0.0.1:1/")
    feed(monkeypatch, "2")
    assert main(["-c", str(path), "server", "use"]) == 0
    assert Config.from_path(path).using == "http://127.0.0.1:2/"


def test_server_use_without_servers(tmp_path):
    path = tmp_path / "config.ron"
    assert main(["-c", str(path), "server", "use"]) == 0
    config = Config.from_path(path)
    assert config.servers == [] and config.using is None


def test_server_list_marks_active(tmp_path, capsys):
    path = tmp_path / "config.ron"
    make_config(path, ["http://127.0.0.1:1/", "http://127.0.0.1:2/"], "http://127.0.0.1:2/")
    assert main(["-c", str(path), "server", "ls"]) == 0
    lines = capsys.readouterr().out.splitlines()
    active = next(line for line in lines if "127.0.0.1:2/" in line)
    other = next(line for line in lines if "127.0.0.1:1/" in line)
    assert "→" in active
    assert "→" not in other


def test_server_del_confirmed(tmp_path, monkeypatch):
    path = tmp_path / "config.ron"
    make_config(path, ["http://127.0.0.1:1/", "http://127.0.0.1:2/"])
    feed(monkeypatch, "1", "")
    assert main(["-c", str(path), "server", "del"]) == 0
    assert [s.url for s in Config.from_path(path).servers] == ["http://127.0.0.1:2/"]


def test_server_del_cancelled(tmp_path, monkeypatch):
    path = tmp_path / "config.ron"
    make_config(path, ["http://127.0.0.1:1/", "http://127.0.0.1:2/"])
    feed(monkeypatch, "1 2", "n")
    assert main(["-c", str(path), "server", "del"]) == 0
    assert len(Config.from_path(path).servers) == 2


def test_proxy_without_server_does_nothing(tmp_path, capsys):
    path = tmp_path / "config.ron"
    args = build_parser().parse_args(["proxy", "ls"])
    assert handle_proxy(args, Flags(config_path=path)) is None
    assert capsys.readouterr().out == ""


def test_proxy_list_plain_by_name(tmp_path, controller, capsys):
    path = tmp_path / "config.ron"
    make_config(path, [controller["url"]], controller["url"])
    assert main(["-c", str(path), "proxy", "ls", "-p", "--sort-by", "name"]) == 0
    lines = capsys.readouterr().out.splitlines()
    names = [line.split()[-1] for line in lines[4:-1]]
    assert names == sorted(PROXIES)


def test_proxy_use_sets_selection(tmp_path, controller, monkeypatch):
    path = tmp_path / "config.ron"
    make_config(path, [controller["url"]], controller["url"])
    feed(monkeypatch, "1", "2")
    assert main(["-c", str(path), "proxy", "use"]) == 0
    puts = [r for r in controller["requests"] if r[0] == "PUT"]
    assert len(puts) == 1
    assert puts[0][1] == "/proxies/Proxy"
    assert json.loads(puts[0][2]) == {"name": "b"}


def test_proxy_list_failed_response(tmp_path, controller, capsys):
    path = tmp_path / "config.ron"
    make_config(path, [controller["url"]], controller["url"])
    controller["status"] = 500
    assert main(["-c", str(path), "proxy", "ls"]) == 1
    assert "Code 500" in capsys.readouterr().err