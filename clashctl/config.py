"""Persistent configuration of the command-line front end."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from .api import Clash, ClashBuilder
from .errors import ConfigFileFormatError, ConfigFileIoError, ServerNotFound
from .sort import ConSort, ProxySort, RuleSort

logger = logging.getLogger(__name__)


def _normalize_url(url: str) -> str:
    if not isinstance(url, str):
        raise TypeError(f"expected a URL string, got {url!r}")
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"invalid URL: {url!r}")
    _ = parts.port
    return urlunsplit((parts.scheme.lower(), parts.netloc, parts.path or "/",
                       parts.query, parts.fragment))


@dataclass(frozen=True)
class Server:
    """A Clash controller the front end can talk to."""

    url: str
    secret: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "url", _normalize_url(self.url))

    def __str__(self) -> str:
        return f"Server ({self.url})"

    def into_clash_builder(self) -> ClashBuilder:
        return ClashBuilder(self.url).with_secret(self.secret)

    def into_clash_with_timeout(self, timeout: float | None) -> Clash:
        """Build a client; timeout is in seconds."""
        return self.into_clash_builder().with_timeout(timeout).build()

    def into_clash(self) -> Clash:
        return self.into_clash_with_timeout(None)


@dataclass
class TuiConfig:
    log_file: Path | None = None


@dataclass
class SortsConfig:
    connections: ConSort = field(default_factory=ConSort)
    rules: RuleSort = field(default_factory=RuleSort)
    proxies: ProxySort = field(default_factory=ProxySort)


# ---------------------------------------------------------------- RON text

class _Ident(str):
    """A bare identifier in RON output."""


class _Some:
    def __init__(self, value: Any) -> None:
        self.value = value


_INDENT = "  "


def _quote(text: str) -> str:
    escaped = (text.replace("\\", "\\\\").replace('"', '\\"')
               .replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t"))
    return f'"{escaped}"'


def _dump(value: Any, level: int) -> str:
    pad = _INDENT * (level + 1)
    end = _INDENT * level
    if value is None:
        return "None"
    if isinstance(value, _Some):
        return f"Some({_dump(value.value, level)})"
    if isinstance(value, _Ident):
        return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return _quote(value)
    if isinstance(value, list):
        if not value:
            return "[]"
        body = "".join(f"{pad}{_dump(item, level + 1)},\n" for item in value)
        return f"[\n{body}{end}]"
    if isinstance(value, dict):
        body = "".join(f"{pad}{key}: {_dump(item, level + 1)},\n"
                       for key, item in value.items())
        return f"(\n{body}{end})"
    raise TypeError(f"cannot serialise {value!r}")


_NUMBER = re.compile(r"[-+]?[0-9][0-9_]*(\.[0-9_]*)?([eE][-+]?[0-9]+)?")
_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_ESCAPES = {'"': '"', "\\": "\\", "/": "/", "n": "\n", "r": "\r", "t": "\t",
            "b": "\b", "f": "\f", "0": "\0"}


class _RonReader:
    """Reads the subset of RON used by the config file into plain values."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def parse(self) -> Any:
        value = self.value()
        if self.peek():
            raise ValueError(f"unexpected trailing text at {self.pos}")
        return value

    def peek(self) -> str:
        while self.pos < len(self.text):
            if self.text[self.pos].isspace():
                self.pos += 1
            elif self.text.startswith("//", self.pos):
                newline = self.text.find("\n", self.pos)
                self.pos = len(self.text) if newline < 0 else newline + 1
            elif self.text.startswith("/*", self.pos):
                close = self.text.find("*/", self.pos + 2)
                if close < 0:
                    raise ValueError("unterminated comment")
                self.pos = close + 2
            else:
                return self.text[self.pos]
        return ""

    def expect(self, char: str) -> None:
        if self.peek() != char:
            raise ValueError(f"expected {char!r} at {self.pos}")
        self.pos += 1

    def value(self) -> Any:
        char = self.peek()
        if char == '"':
            return self.string()
        if char == "[":
            return self.sequence("[", "]")
        if char == "(":
            return self.paren()
        if char.isdigit() or char in "+-":
            return self.number()
        match = _IDENT.match(self.text, self.pos)
        if match is None:
            raise ValueError(f"unexpected character at {self.pos}")
        self.pos = match.end()
        name = match.group()
        if name in ("true", "false"):
            return name == "true"
        if name == "None":
            return None
        if name == "Some":
            self.expect("(")
            inner = self.value()
            if self.peek() == ",":
                self.pos += 1
            self.expect(")")
            return inner
        if self.peek() == "(":
            return self.paren()
        return name

    def sequence(self, open_: str, close: str) -> list:
        self.expect(open_)
        items = []
        while self.peek() != close:
            items.append(self.value())
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() != close:
                raise ValueError(f"expected ',' or {close!r} at {self.pos}")
        self.pos += 1
        return items

    def paren(self) -> Any:
        self.peek()
        start = self.pos
        self.expect("(")
        self.peek()
        match = _IDENT.match(self.text, self.pos)
        if match is not None:
            self.pos = match.end()
            is_struct = self.peek() == ":"
            self.pos = match.start()
        else:
            is_struct = self.peek() == ")"
        if not is_struct:
            self.pos = start
            return self.sequence("(", ")")
        fields: dict[str, Any] = {}
        while self.peek() != ")":
            match = _IDENT.match(self.text, self.pos)
            if match is None:
                raise ValueError(f"expected a field name at {self.pos}")
            self.pos = match.end()
            self.expect(":")
            fields[match.group()] = self.value()
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() != ")":
                raise ValueError(f"expected ',' or ')' at {self.pos}")
        self.pos += 1
        return fields

    def string(self) -> str:
        self.expect('"')
        out = []
        while True:
            if self.pos >= len(self.text):
                raise ValueError("unterminated string")
            char = self.text[self.pos]
            self.pos += 1
            if char == '"':
                return "".join(out)
            if char != "\\":
                out.append(char)
                continue
            esc = self.text[self.pos:self.pos + 1]
            self.pos += 1
            if esc in _ESCAPES:
                out.append(_ESCAPES[esc])
            elif esc == "u":
                if self.text.startswith("{", self.pos):
                    close = self.text.index("}", self.pos)
                    digits = self.text[self.pos + 1:close]
                    self.pos = close + 1
                else:
                    digits = self.text[self.pos:self.pos + 4]
                    self.pos += 4
                out.append(chr(int(digits, 16)))
            else:
                raise ValueError(f"bad escape at {self.pos}")

    def number(self) -> int | float:
        match = _NUMBER.match(self.text, self.pos)
        if match is None:
            raise ValueError(f"bad number at {self.pos}")
        self.pos = match.end()
        text = match.group().replace("_", "")
        return float(text) if match.group(1) or match.group(2) else int(text)


def _sort_ron(sort: Any) -> dict[str, _Ident]:
    return {key: _Ident(value) for key, value in sort.to_dict().items()}


def _optional_str(value: Any) -> str | None:
    if value is not None and not isinstance(value, str):
        raise TypeError(f"expected a string, got {value!r}")
    return value


@dataclass
class ConfigData:
    """Everything stored in the config file."""

    servers: list[Server] = field(default_factory=list)
    using: str | None = None
    tui: TuiConfig = field(default_factory=TuiConfig)
    sort: SortsConfig = field(default_factory=SortsConfig)

    def to_ron(self) -> str:
        def opt(value: Any) -> Any:
            return None if value is None else _Some(value)

        tree = {
            "servers": [{"url": s.url, "secret": opt(s.secret)} for s in self.servers],
            "using": opt(self.using),
            "tui": {"log_file": opt(None if self.tui.log_file is None
                                    else str(self.tui.log_file))},
            "sort": {
                "connections": _sort_ron(self.sort.connections),
                "rules": _sort_ron(self.sort.rules),
                "proxies": _sort_ron(self.sort.proxies),
            },
        }
        return _dump(tree, 0)

    @classmethod
    def from_ron(cls, text: str) -> ConfigData:
        try:
            data = _RonReader(text).parse()
            if not isinstance(data, dict):
                raise TypeError("expected a struct")
            servers_raw = data["servers"]
            if not isinstance(servers_raw, list):
                raise TypeError("servers must be a list")
            servers = [Server(url=item["url"], secret=_optional_str(item.get("secret")))
                       for item in servers_raw]
            using = _optional_str(data.get("using"))
            tui = TuiConfig()
            if "tui" in data:
                log_file = _optional_str(data["tui"].get("log_file"))
                tui = TuiConfig(None if log_file is None else Path(log_file))
            sort = SortsConfig()
            if "sort" in data:
                raw = data["sort"]
                sort = SortsConfig(
                    connections=ConSort.from_dict(raw["connections"]),
                    rules=RuleSort.from_dict(raw["rules"]),
                    proxies=ProxySort.from_dict(raw["proxies"]),
                )
            return cls(
                servers=servers,
                using=None if using is None else _normalize_url(using),
                tui=tui,
                sort=sort,
            )
        except (KeyError, TypeError, ValueError, AttributeError, IndexError) as exc:
            raise ConfigFileFormatError(exc) from exc


class Config:
    """Config data bound to the file it is stored in."""

    def __init__(self, data: ConfigData, path: Path) -> None:
        self.data = data
        self.path = path

    @classmethod
    def from_path(cls, path: str | PathLike[str]) -> Config:
        """Load the config file, creating it when missing, and rewrite it."""
        path = Path(path)
        logger.debug("Open config file @ %s", path)
        if not path.exists():
            logger.info("Config file not exist, creating new one")
            data = ConfigData()
        else:
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as exc:
                raise ConfigFileIoError(exc) from exc
            logger.debug("Raw config:\n%s", text)
            data = ConfigData.from_ron(text)
        config = cls(data, path)
        config.write()
        return config

    @property
    def servers(self) -> list[Server]:
        return self.data.servers

    @property
    def using(self) -> str | None:
        return self.data.using

    @property
    def tui(self) -> TuiConfig:
        return self.data.tui

    @property
    def sort(self) -> SortsConfig:
        return self.data.sort

    def write(self) -> None:
        try:
            self.path.write_text(self.data.to_ron(), encoding="utf-8")
        except OSError as exc:
            raise ConfigFileIoError(exc) from exc

    def using_server(self) -> Server | None:
        if self.data.using is None:
            return None
        return self.get_server(self.data.using)

    def use_server(self, url: str) -> None:
        """Make the server with this URL active; raise ServerNotFound if absent."""
        server = self.get_server(url)
        if server is None:
            raise ServerNotFound()
        self.data.using = server.url

    def get_server(self, url: str) -> Server | None:
        try:
            wanted = _normalize_url(url)
        except (TypeError, ValueError):
            return None
        return next((s for s in self.data.servers if s.url == wanted), None)