"""Text rendering of proxy lists."""

from __future__ import annotations

import shutil
import sys
from dataclasses import dataclass, field
from typing import TextIO

from .models import Proxies, Proxy, ProxyType
from .sort import ProxySort, ProxySortBy, SortOrder, sort_with

_GREEN = "32"
_BLUE = "34"


def _paint(text: str, code: str, out: TextIO) -> str:
    isatty = getattr(out, "isatty", None)
    if isatty is not None and isatty():
        return f"\x1b[{code}m{text}\x1b[0m"
    return text


def _terminal_width() -> int:
    return shutil.get_terminal_size((70, 0)).columns


def _delay_text(proxy: Proxy) -> str:
    if not proxy.history:
        return "-"
    delay = proxy.history[0].delay
    return "?" if delay == 0 else str(delay)


@dataclass
class ProxyListOpt:
    """Options of the proxy listing."""

    sort_by: ProxySortBy = ProxySortBy.DELAY
    sort_order: SortOrder = SortOrder.ASCENDANT
    reverse: bool = False
    exclude: list[ProxyType] = field(default_factory=list)
    include: list[ProxyType] = field(default_factory=list)
    plain: bool = False

    def _sort_method(self) -> ProxySort:
        return ProxySort(self.sort_by, self.sort_order)

    def _shows(self, proxy_type: ProxyType) -> bool:
        if not self.include:
            return proxy_type not in self.exclude
        return proxy_type in self.include


def render_list(proxies: Proxies, opt: ProxyListOpt, out: TextIO | None = None) -> None:
    """Print a table of proxies, plain or grouped, framed by rules."""
    out = sys.stdout if out is None else out
    rule = "-" * _terminal_width()
    print(f"\n{rule}", file=out)
    print(f"{'TYPE':<18}{'DELAY':<8}NAME", file=out)
    print(rule, file=out)
    if opt.plain:
        render_plain(proxies, opt, out)
    else:
        render_tree(proxies, opt, out)
    print(rule, file=out)


def render_plain(proxies: Proxies, opt: ProxyListOpt, out: TextIO | None = None) -> None:
    """Print every proxy and group on its own line, sorted and filtered."""
    out = sys.stdout if out is None else out
    items = list(proxies.items())
    sort_with(items, opt._sort_method())
    if opt.reverse:
        items.reverse()
    for name, proxy in items:
        if not opt._shows(proxy.proxy_type):
            continue
        type_name = _paint(f"{proxy.proxy_type!s:<18}", _GREEN, out)
        print(f"{type_name}{_delay_text(proxy):<8}{name}", file=out)


def render_tree(proxies: Proxies, opt: ProxyListOpt, out: TextIO | None = None) -> None:
    """Print each proxy group followed by its sorted members."""
    out = sys.stdout if out is None else out
    groups = [(name, proxy) for name, proxy in proxies.items()
              if proxy.proxy_type.is_group() and proxy.proxy_type not in opt.exclude]
    if opt.reverse:
        groups.reverse()
    method = opt._sort_method()
    for name, group in groups:
        header = _paint(f"{group.proxy_type!s:<16}", _BLUE, out)
        print(f"{header}  -       {name}\n", file=out)
        if group.all is None:
            raise ValueError("Proxy groups should have `all`")
        members = [(member, proxies[member]) for member in group.all]
        sort_with(members, method)
        for member_name, member in members:
            type_name = _paint(f"{member.proxy_type!s:<16}", _GREEN, out)
            print(f"  {type_name}{_delay_text(member):<8}{member_name}", file=out)
        print(file=out)