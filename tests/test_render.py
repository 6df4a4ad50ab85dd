import io
from datetime import datetime, timezone

import pytest

from clashctl.models import History, Proxies, Proxy, ProxyType
from clashctl.render import ProxyListOpt, render_list, render_plain, render_tree
from clashctl.sort import ProxySortBy, SortOrder

T0 = datetime(2022, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def proxies():
    return Proxies({
        "DIRECT": Proxy(ProxyType.DIRECT),
        "REJECT": Proxy(ProxyType.REJECT),
        "Proxy": Proxy(ProxyType.SELECTOR, all=["b", "DIRECT", "a"], now="a"),
        "a": Proxy(ProxyType.SHADOWSOCKS, history=[History(T0, 120)]),
        "b": Proxy(ProxyType.VMESS, history=[History(T0, 0)]),
        "c": Proxy(ProxyType.TROJAN),
    })


def _plain(proxies, opt):
    out = io.StringIO()
    render_plain(proxies, opt, out)
    return out.getvalue().splitlines()


def _names(lines):
    return [line.split()[-1] for line in lines]


def test_plain_default_sort_pushes_zero_delay_last(proxies):
    lines = _plain(proxies, ProxyListOpt(plain=True))
    assert _names(lines) == ["DIRECT", "REJECT", "Proxy", "c", "a", "b"]


def test_plain_delay_column(proxies):
    lines = {line.split()[-1]: line for line in _plain(proxies, ProxyListOpt())}
    assert lines["a"][18:26].strip() == "120"
    assert lines["b"][18:26].strip() == "?"
    assert lines["c"][18:26].strip() == "-"
    assert lines["a"][:18].rstrip() == "Shadowsocks"


def test_plain_reverse_is_reversed(proxies):
    forward = _names(_plain(proxies, ProxyListOpt()))
    backward = _names(_plain(proxies, ProxyListOpt(reverse=True)))
    assert backward == list(reversed(forward))


def test_plain_include(proxies):
    lines = _plain(proxies, ProxyListOpt(include=[ProxyType.SHADOWSOCKS]))
    assert _names(lines) == ["a"]


def test_plain_exclude(proxies):
    lines = _plain(proxies, ProxyListOpt(exclude=[ProxyType.DIRECT, ProxyType.REJECT]))
    names = _names(lines)
    assert "DIRECT" not in names and "REJECT" not in names
    assert sorted(names) == ["Proxy", "a", "b", "c"]


def test_plain_sort_by_name_descendant(proxies):
    opt = ProxyListOpt(sort_by=ProxySortBy.NAME, sort_order=SortOrder.DESCENDANT)
    names = _names(_plain(proxies, opt))
    assert names == sorted(names, reverse=True)


def test_tree_lists_group_then_sorted_members(proxies):
    out = io.StringIO()
    render_tree(proxies, ProxyListOpt(sort_by=ProxySortBy.NAME), out)
    lines = out.getvalue().splitlines()
    assert lines[0].startswith("Selector")
    assert lines[0].endswith("Proxy")
    members = [line for line in lines if line.startswith("  ")]
    assert _names(members) == ["DIRECT", "a", "b"]


def test_tree_excludes_group_type(proxies):
    out = io.StringIO()
    render_tree(proxies, ProxyListOpt(exclude=[ProxyType.SELECTOR]), out)
    assert out.getvalue() == ""


def test_tree_group_without_members_raises():
    broken = Proxies({"G": Proxy(ProxyType.FALLBACK)})
    with pytest.raises(ValueError):
        render_tree(broken, ProxyListOpt(), io.StringIO())


def test_render_list_frame(proxies):
    out = io.StringIO()
    render_list(proxies, ProxyListOpt(plain=True), out)
    lines = out.getvalue().splitlines()
    assert lines[0] == ""
    assert lines[1] and set(lines[1]) == {"-"}
    assert lines[3] == lines[1] == lines[-1]
    assert lines[2].split() == ["TYPE", "DELAY", "NAME"]
    assert _names(lines[4:-1]) == _names(_plain(proxies, ProxyListOpt()))