"""Data model of the Clash external-controller API."""

from __future__ import annotations

import functools
from collections import Counter
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, TypeVar

from .errors import BadResponseFormat

_T = TypeVar("_T")


# ---------------------------------------------------------------- helpers

def _decoder(func: Callable[..., _T]) -> Callable[..., _T]:
    """Turn structural errors raised while decoding into BadResponseFormat."""

    @functools.wraps(func)
    def wrapper(cls, data):
        try:
            return func(cls, data)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise BadResponseFormat(exc) from exc

    return wrapper


def _uint(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise TypeError(f"expected an unsigned integer, got {value!r}")
    return value


def _str(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {value!r}")
    return value


def _bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"expected a boolean, got {value!r}")
    return value


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        raise TypeError(f"expected a list, got {value!r}")
    return [_str(item) for item in value]


def _optional(value: Any, convert: Callable[[Any], _T]) -> _T | None:
    return None if value is None else convert(value)


def _time(value: Any) -> datetime:
    parsed = datetime.fromisoformat(_str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _elapsed_seconds(start: datetime) -> int:
    return int((datetime.now(timezone.utc) - start).total_seconds())


class _WireEnum(Enum):
    """Enum whose value is its wire name and whose order is declaration order."""

    def __str__(self) -> str:
        return self.value

    @classmethod
    def _parse_text(cls, text: str):
        folded = text.lower()
        for member in cls:
            if str(member).lower() == folded:
                return member
        raise ValueError(f"{text!r} is not a valid {cls.__name__}")

    def _rank(self) -> int:
        return list(type(self)).index(self)

    def __lt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._rank() < other._rank()

    def __le__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._rank() <= other._rank()

    def __gt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._rank() > other._rank()

    def __ge__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._rank() >= other._rank()


# ---------------------------------------------------------------- enums

class Mode(_WireEnum):
    """Routing mode of the Clash core."""

    GLOBAL = "global"
    RULE = "rule"
    DIRECT = "direct"

    @classmethod
    def parse(cls, text: str) -> Mode:
        """Parse a mode name, ignoring case."""
        return cls._parse_text(text)


class Level(_WireEnum):
    """Log level."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    DEBUG = "debug"

    def __str__(self) -> str:
        return "WARN" if self is Level.WARNING else self.value.upper()

    @classmethod
    def parse(cls, text: str) -> Level:
        """Parse a display name (ERROR, WARN, INFO, DEBUG), ignoring case."""
        return cls._parse_text(text)


class ProxyType(_WireEnum):
    """Kind of a proxy or proxy group."""

    DIRECT = "Direct"
    REJECT = "Reject"
    SELECTOR = "Selector"
    URL_TEST = "URLTest"
    FALLBACK = "Fallback"
    LOAD_BALANCE = "LoadBalance"
    SHADOWSOCKS = "Shadowsocks"
    VMESS = "Vmess"
    SHADOWSOCKS_R = "ShadowsocksR"
    HTTP = "Http"
    SNELL = "Snell"
    TROJAN = "Trojan"
    SOCKS5 = "Socks5"
    RELAY = "Relay"
    UNKNOWN = "Unknown"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN if isinstance(value, str) else None

    @classmethod
    def parse(cls, text: str) -> ProxyType:
        """Parse a type name, ignoring case."""
        return cls._parse_text(text)

    def is_selector(self) -> bool:
        return self is ProxyType.SELECTOR

    def is_group(self) -> bool:
        return self in _GROUP_TYPES

    def is_built_in(self) -> bool:
        return self in (ProxyType.DIRECT, ProxyType.REJECT)

    def is_normal(self) -> bool:
        return self in _NORMAL_TYPES


_GROUP_TYPES = frozenset({
    ProxyType.SELECTOR, ProxyType.URL_TEST, ProxyType.FALLBACK,
    ProxyType.LOAD_BALANCE, ProxyType.RELAY,
})
_NORMAL_TYPES = frozenset({
    ProxyType.SHADOWSOCKS, ProxyType.VMESS, ProxyType.SHADOWSOCKS_R,
    ProxyType.HTTP, ProxyType.SNELL, ProxyType.TROJAN, ProxyType.SOCKS5,
})


class RuleType(_WireEnum):
    """Kind of a routing rule."""

    DOMAIN = "Domain"
    DOMAIN_SUFFIX = "DomainSuffix"
    DOMAIN_KEYWORD = "DomainKeyword"
    GEO_IP = "GeoIP"
    IP_CIDR = "IPCIDR"
    SRC_IP_CIDR = "SrcIPCIDR"
    SRC_PORT = "SrcPort"
    DST_PORT = "DstPort"
    PROCESS = "Process"
    MATCH = "Match"
    DIRECT = "Direct"
    REJECT = "Reject"
    UNKNOWN = "Unknown"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN if isinstance(value, str) else None

    @classmethod
    def parse(cls, text: str) -> RuleType:
        """Parse a rule type name, ignoring case."""
        return cls._parse_text(text)


# ---------------------------------------------------------------- records

@dataclass
class Log:
    log_type: Level
    payload: str

    @classmethod
    @_decoder
    def from_dict(cls, data: Mapping[str, Any]) -> Log:
        return cls(log_type=Level(data["type"]), payload=_str(data["payload"]))


@dataclass
class Delay:
    delay: int

    @classmethod
    @_decoder
    def from_dict(cls, data: Mapping[str, Any]) -> Delay:
        return cls(delay=_uint(data["delay"]))


@dataclass
class Version:
    version: str
    premium: bool | None = None

    @classmethod
    @_decoder
    def from_dict(cls, data: Mapping[str, Any]) -> Version:
        return cls(
            version=_str(data["version"]),
            premium=_optional(data.get("premium"), _bool),
        )


@dataclass
class Config:
    port: int
    socks_port: int
    redir_port: int
    tproxy_port: int
    mixed_port: int
    allow_lan: bool
    ipv6: bool
    mode: Mode
    log_level: Level
    bind_address: str
    authentication: list[str]

    @classmethod
    @_decoder
    def from_dict(cls, data: Mapping[str, Any]) -> Config:
        return cls(
            port=_uint(data["port"]),
            socks_port=_uint(data["socks-port"]),
            redir_port=_uint(data["redir-port"]),
            tproxy_port=_uint(data["tproxy-port"]),
            mixed_port=_uint(data["mixed-port"]),
            allow_lan=_bool(data["allow-lan"]),
            ipv6=_bool(data["ipv6"]),
            mode=Mode(data["mode"]),
            log_level=Level(data["log-level"]),
            bind_address=_str(data["bind-address"]),
            authentication=_str_list(data["authentication"]),
        )


@dataclass
class Metadata:
    connection_type: str
    source_ip: str
    source_port: str
    destination_ip: str
    destination_port: str
    host: str
    network: str

    @classmethod
    @_decoder
    def from_dict(cls, data: Mapping[str, Any]) -> Metadata:
        return cls(
            connection_type=_str(data["type"]),
            source_ip=_str(data["sourceIP"]),
            source_port=_str(data["sourcePort"]),
            destination_ip=_str(data["destinationIP"]),
            destination_port=_str(data["destinationPort"]),
            host=_str(data["host"]),
            network=_str(data["network"]),
        )


@dataclass
class Connection:
    id: str
    upload: int
    download: int
    metadata: Metadata
    rule: RuleType
    rule_payload: str
    start: datetime
    chains: list[str]

    @classmethod
    @_decoder
    def from_dict(cls, data: Mapping[str, Any]) -> Connection:
        return cls(
            id=_str(data["id"]),
            upload=_uint(data["upload"]),
            download=_uint(data["download"]),
            metadata=Metadata.from_dict(data["metadata"]),
            rule=RuleType(data["rule"]),
            rule_payload=_str(data["rulePayload"]),
            start=_time(data["start"]),
            chains=_str_list(data["chains"]),
        )

    def up_speed(self) -> int | None:
        """Average upload speed in bytes per second, or None if just started."""
        elapsed = _elapsed_seconds(self.start)
        return None if elapsed <= 0 else self.upload // elapsed

    def down_speed(self) -> int | None:
        """Average download speed in bytes per second, or None if just started."""
        elapsed = _elapsed_seconds(self.start)
        return None if elapsed <= 0 else self.download // elapsed


@dataclass
class Connections:
    connections: list[Connection] = field(default_factory=list)
    download_total: int = 0
    upload_total: int = 0

    @classmethod
    @_decoder
    def from_dict(cls, data: Mapping[str, Any]) -> Connections:
        items = data["connections"]
        if not isinstance(items, list):
            raise TypeError(f"expected a list, got {items!r}")
        return cls(
            connections=[Connection.from_dict(item) for item in items],
            download_total=_uint(data["downloadTotal"]),
            upload_total=_uint(data["uploadTotal"]),
        )


@dataclass
class ConnectionWithSpeed:
    connection: Connection
    upload: int | None = None
    download: int | None = None

    @classmethod
    def from_connection(cls, connection: Connection) -> ConnectionWithSpeed:
        """Attach average speeds measured from the connection's start time."""
        elapsed = _elapsed_seconds(connection.start)
        if elapsed <= 0:
            return cls(connection=connection)
        return cls(
            connection=connection,
            upload=connection.upload // elapsed,
            download=connection.download // elapsed,
        )


@dataclass
class ConnectionsWithSpeed:
    connections: list[ConnectionWithSpeed]
    download_total: int
    upload_total: int

    @classmethod
    def from_connections(cls, connections: Connections) -> ConnectionsWithSpeed:
        return cls(
            connections=[ConnectionWithSpeed.from_connection(c) for c in connections.connections],
            download_total=connections.download_total,
            upload_total=connections.upload_total,
        )

    def to_connections(self) -> Connections:
        return Connections(
            connections=[item.connection for item in self.connections],
            download_total=self.download_total,
            upload_total=self.upload_total,
        )


@dataclass
class History:
    time: datetime
    delay: int

    @classmethod
    @_decoder
    def from_dict(cls, data: Mapping[str, Any]) -> History:
        return cls(time=_time(data["time"]), delay=_uint(data["delay"]))


@dataclass
class Proxy:
    proxy_type: ProxyType
    history: list[History] = field(default_factory=list)
    udp: bool | None = None
    all: list[str] | None = None
    now: str | None = None

    @classmethod
    @_decoder
    def from_dict(cls, data: Mapping[str, Any]) -> Proxy:
        history = data["history"]
        if not isinstance(history, list):
            raise TypeError(f"expected a list, got {history!r}")
        return cls(
            proxy_type=ProxyType(data["type"]),
            history=[History.from_dict(item) for item in history],
            udp=_optional(data.get("udp"), _bool),
            all=_optional(data.get("all"), _str_list),
            now=_optional(data.get("now"), _str),
        )


@dataclass
class Proxies(Mapping[str, Proxy]):
    """All proxies and groups, keyed by name."""

    proxies: dict[str, Proxy] = field(default_factory=dict)

    @classmethod
    @_decoder
    def from_dict(cls, data: Mapping[str, Any]) -> Proxies:
        items = data["proxies"]
        if not isinstance(items, Mapping):
            raise TypeError(f"expected a mapping, got {items!r}")
        return cls({_str(name): Proxy.from_dict(value) for name, value in items.items()})

    def __getitem__(self, name: str) -> Proxy:
        return self.proxies[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.proxies)

    def __len__(self) -> int:
        return len(self.proxies)

    def _matching(self, predicate: Callable[[ProxyType], bool]) -> Iterator[tuple[str, Proxy]]:
        return ((name, proxy) for name, proxy in self.proxies.items()
                if predicate(proxy.proxy_type))

    def normal(self) -> Iterator[tuple[str, Proxy]]:
        return self._matching(ProxyType.is_normal)

    def groups(self) -> Iterator[tuple[str, Proxy]]:
        return self._matching(ProxyType.is_group)

    def selectors(self) -> Iterator[tuple[str, Proxy]]:
        return self._matching(ProxyType.is_selector)

    def built_ins(self) -> Iterator[tuple[str, Proxy]]:
        return self._matching(ProxyType.is_built_in)


@dataclass(frozen=True)
class Rule:
    rule_type: RuleType
    payload: str
    proxy: str

    @classmethod
    @_decoder
    def from_dict(cls, data: Mapping[str, Any]) -> Rule:
        return cls(
            rule_type=RuleType(data["type"]),
            payload=_str(data["payload"]),
            proxy=_str(data["proxy"]),
        )


@dataclass
class Rules:
    rules: list[Rule] = field(default_factory=list)

    @classmethod
    @_decoder
    def from_dict(cls, data: Mapping[str, Any]) -> Rules:
        items = data["rules"]
        if not isinstance(items, list):
            raise TypeError(f"expected a list, got {items!r}")
        return cls([Rule.from_dict(item) for item in items])

    def _counts(self) -> Counter[str]:
        return Counter(rule.proxy for rule in self.rules
                       if rule.proxy not in ("DIRECT", "REJECT"))

    def frequency(self) -> dict[str, int]:
        """How many rules point at each proxy, DIRECT and REJECT excluded."""
        return dict(self._counts())

    def most_frequent_proxy(self) -> str | None:
        """The proxy used by most rules, or None if there is none."""
        top = self._counts().most_common(1)
        return top[0][0] if top else None


@dataclass
class Traffic:
    up: int = 0
    down: int = 0

    @classmethod
    @_decoder
    def from_dict(cls, data: Mapping[str, Any]) -> Traffic:
        return cls(up=_uint(data["up"]), down=_uint(data["down"]))