"""Sort methods for proxies, rules and connections."""

from __future__ import annotations

import functools
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from .models import Proxy, Rule

_T = TypeVar("_T")


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


class _NamedEnum(Enum):
    """Enum displayed by its capitalised name and parsed case-insensitively."""

    def __str__(self) -> str:
        return self.name.capitalize()

    @classmethod
    def _parse_name(cls, text: str):
        folded = text.lower()
        for member in cls:
            if member.name.lower() == folded:
                return member
        raise ValueError(f"{text!r} is not a valid {cls.__name__}")


class SortOrder(_NamedEnum):
    ASCENDANT = "ascendant"
    DESCENDANT = "descendant"

    @classmethod
    def parse(cls, text: str) -> SortOrder:
        return cls._parse_name(text)

    @property
    def arrow(self) -> str:
        return "▲" if self is SortOrder.ASCENDANT else "▼"


def order_by(ordering: int, order: SortOrder) -> int:
    """Reverse a comparison result when the order is descendant."""
    return -ordering if order is SortOrder.DESCENDANT else ordering


def sort_with(items: list[_T], method: Any) -> None:
    """Sort a list in place, stably, with a sort method or a compare function."""
    compare: Callable[[_T, _T], int] = method if callable(method) else method.compare
    items.sort(key=functools.cmp_to_key(compare))


def _step(cycle: list, current: Any, offset: int) -> Any:
    return cycle[(cycle.index(current) + offset) % len(cycle)]


class Noop:
    """A sort method that keeps the original order."""

    _CYCLE: list[tuple] = [()]

    def __init__(self) -> None:
        self._state: tuple = ()

    def __str__(self) -> str:
        return ""

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Noop)

    def __hash__(self) -> int:
        return hash(Noop)

    def compare(self, a: Any, b: Any) -> int:
        """Treat every pair as equal, so a stable sort keeps the order."""
        return order_by(0, SortOrder.ASCENDANT)

    def next_self(self) -> None:
        """Step forward in a cycle of one state: the method stays the same."""
        self._state = _step(self._CYCLE, self._state, 1)

    def prev_self(self) -> None:
        """Step backward in a cycle of one state: the method stays the same."""
        self._state = _step(self._CYCLE, self._state, -1)


class ProxySortBy(_NamedEnum):
    NAME = "name"
    TYPE = "type"
    DELAY = "delay"

    @classmethod
    def parse(cls, text: str) -> ProxySortBy:
        return cls._parse_name(text)


_PROXY_CYCLE = [
    (ProxySortBy.NAME, SortOrder.ASCENDANT),
    (ProxySortBy.NAME, SortOrder.DESCENDANT),
    (ProxySortBy.TYPE, SortOrder.ASCENDANT),
    (ProxySortBy.TYPE, SortOrder.DESCENDANT),
    (ProxySortBy.DELAY, SortOrder.ASCENDANT),
    (ProxySortBy.DELAY, SortOrder.DESCENDANT),
]


@dataclass
class ProxySort:
    """Sorts (name, proxy) pairs."""

    by: ProxySortBy = ProxySortBy.DELAY
    order: SortOrder = SortOrder.ASCENDANT

    def __str__(self) -> str:
        return f"{self.by} {self.order.arrow}"

    @classmethod
    def by_type_asc(cls) -> ProxySort:
        return cls(ProxySortBy.TYPE, SortOrder.ASCENDANT)

    @classmethod
    def by_name_asc(cls) -> ProxySort:
        return cls(ProxySortBy.NAME, SortOrder.ASCENDANT)

    @classmethod
    def by_delay_asc(cls) -> ProxySort:
        return cls(ProxySortBy.DELAY, SortOrder.ASCENDANT)

    @classmethod
    def by_type_dsc(cls) -> ProxySort:
        return cls(ProxySortBy.TYPE, SortOrder.DESCENDANT)

    @classmethod
    def by_name_dsc(cls) -> ProxySort:
        return cls(ProxySortBy.NAME, SortOrder.DESCENDANT)

    @classmethod
    def by_delay_dsc(cls) -> ProxySort:
        return cls(ProxySortBy.DELAY, SortOrder.DESCENDANT)

    def next_self(self) -> None:
        self.by, self.order = _step(_PROXY_CYCLE, (self.by, self.order), 1)

    def prev_self(self) -> None:
        self.by, self.order = _step(_PROXY_CYCLE, (self.by, self.order), -1)

    def compare(self, a: tuple[str, Proxy], b: tuple[str, Proxy]) -> int:
        if self.by is ProxySortBy.TYPE:
            result = _cmp(a[1].proxy_type, b[1].proxy_type)
        elif self.by is ProxySortBy.NAME:
            result = _cmp(a[0], b[0])
        else:
            left = a[1].history[0].delay if a[1].history else None
            right = b[1].history[0].delay if b[1].history else None
            if left is not None and right is not None:
                # A delay of 0 means unreachable: push those to the end.
                if left == 0 and right == 0:
                    result = 0
                elif left == 0:
                    result = 1
                elif right == 0:
                    result = -1
                else:
                    result = _cmp(left, right)
            elif left is not None:
                result = 1
            elif right is not None:
                result = -1
            else:
                result = 0
        return order_by(result, self.order)

    def to_dict(self) -> dict[str, str]:
        return {"by": self.by.value, "order": self.order.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProxySort:
        return cls(ProxySortBy(data["by"]), SortOrder(data["order"]))


class RuleSortBy(_NamedEnum):
    PAYLOAD = "payload"
    PROXY = "proxy"
    TYPE = "type"

    @classmethod
    def parse(cls, text: str) -> RuleSortBy:
        return cls._parse_name(text)


_RULE_CYCLE = [
    (RuleSortBy.PAYLOAD, SortOrder.ASCENDANT),
    (RuleSortBy.PAYLOAD, SortOrder.DESCENDANT),
    (RuleSortBy.TYPE, SortOrder.ASCENDANT),
    (RuleSortBy.TYPE, SortOrder.DESCENDANT),
    (RuleSortBy.PROXY, SortOrder.ASCENDANT),
    (RuleSortBy.PROXY, SortOrder.DESCENDANT),
]


@dataclass
class RuleSort:
    """Sorts rules."""

    by: RuleSortBy = RuleSortBy.PAYLOAD
    order: SortOrder = SortOrder.DESCENDANT

    def __str__(self) -> str:
        return f"{self.by} {self.order.arrow}"

    @classmethod
    def by_type_asc(cls) -> RuleSort:
        return cls(RuleSortBy.TYPE, SortOrder.ASCENDANT)

    @classmethod
    def by_type_dsc(cls) -> RuleSort:
        return cls(RuleSortBy.TYPE, SortOrder.DESCENDANT)

    @classmethod
    def by_payload_asc(cls) -> RuleSort:
        return cls(RuleSortBy.PAYLOAD, SortOrder.ASCENDANT)

    @classmethod
    def by_payload_dsc(cls) -> RuleSort:
        return cls(RuleSortBy.PAYLOAD, SortOrder.DESCENDANT)

    @classmethod
    def by_proxy_name_asc(cls) -> RuleSort:
        return cls(RuleSortBy.PROXY, SortOrder.ASCENDANT)

    @classmethod
    def by_proxy_name_dsc(cls) -> RuleSort:
        return cls(RuleSortBy.PROXY, SortOrder.DESCENDANT)

    def next_self(self) -> None:
        self.by, self.order = _step(_RULE_CYCLE, (self.by, self.order), 1)

    def prev_self(self) -> None:
        self.by, self.order = _step(_RULE_CYCLE, (self.by, self.order), -1)

    def compare(self, a: Rule, b: Rule) -> int:
        if self.by is RuleSortBy.PAYLOAD:
            result = _cmp(a.payload, b.payload)
        elif self.by is RuleSortBy.PROXY:
            result = _cmp(a.proxy, b.proxy)
        else:
            result = _cmp(a.rule_type, b.rule_type)
        return order_by(result, self.order)

    def to_dict(self) -> dict[str, str]:
        return {"by": self.by.value, "order": self.order.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RuleSort:
        return cls(RuleSortBy(data["by"]), SortOrder(data["order"]))


class ConSortBy(_NamedEnum):
    HOST = "host"
    DOWN = "down"
    UP = "up"
    DOWN_SPEED = "downspeed"
    UP_SPEED = "upspeed"
    CHAINS = "chains"
    RULE = "rule"
    TIME = "time"
    SRC = "src"
    DEST = "dest"
    TYPE = "type"


@dataclass
class ConSort:
    """Sort settings for connections."""

    by: ConSortBy = ConSortBy.TIME
    order: SortOrder = SortOrder.DESCENDANT

    def to_dict(self) -> dict[str, str]:
        return {"by": self.by.value, "order": self.order.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConSort:
        return cls(ConSortBy(data["by"]), SortOrder(data["order"]))