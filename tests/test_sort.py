from datetime import datetime, timezone

import pytest

from clashctl.models import History, Proxy, ProxyType, Rule, RuleType
from clashctl.sort import (
    ConSort,
    ConSortBy,
    Noop,
    ProxySort,
    ProxySortBy,
    RuleSort,
    RuleSortBy,
    SortOrder,
    order_by,
    sort_with,
)

T0 = datetime(2022, 1, 1, tzinfo=timezone.utc)


def proxy(kind=ProxyType.SHADOWSOCKS, delay=None):
    history = [] if delay is None else [History(time=T0, delay=delay)]
    return Proxy(proxy_type=kind, history=history)


def test_from_dict_carried_case():
    assert ProxySort.from_dict({"by": "name", "order": "ascendant"}) == ProxySort(
        ProxySortBy.NAME, SortOrder.ASCENDANT
    )


def test_proxy_sort_round_trip():
    s = ProxySort.by_type_dsc()
    assert ProxySort.from_dict(s.to_dict()) == s


def test_defaults():
    assert ProxySort() == ProxySort.by_delay_asc()
    assert RuleSort() == RuleSort.by_payload_dsc()
    assert ConSort() == ConSort(ConSortBy.TIME, SortOrder.DESCENDANT)


def test_rule_cycle():
    s = RuleSort.by_payload_asc()
    seen = []
    for _ in range(6):
        s.next_self()
        seen.append(RuleSort(s.by, s.order))
    assert seen[0] == RuleSort.by_payload_dsc()
    assert seen[1] == RuleSort.by_type_asc()
    assert seen[3] == RuleSort.by_proxy_name_asc()
    assert seen[-1] == RuleSort.by_payload_asc()
    s.prev_self()
    assert s == RuleSort.by_proxy_name_dsc()


def test_display():
    assert str(ProxySort.by_name_asc()) == "Name ▲"
    assert str(RuleSort.by_type_dsc()) == "Type ▼"
    assert str(Noop()) == ""


def test_delay_sort_pushes_zero_and_missing():
    items = [
        ("zero", proxy(delay=0)),
        ("slow", proxy(delay=300)),
        ("none", proxy()),
        ("fast", proxy(delay=50)),
    ]
    sort_with(items, ProxySort.by_delay_asc())
    assert [n for n, _ in items] == ["none", "fast", "slow", "zero"]
    sort_with(items, ProxySort.by_delay_dsc())
    assert [n for n, _ in items] == ["zero", "slow", "fast", "none"]


def test_name_and_type_sort():
    items = [("b", proxy(ProxyType.SELECTOR)), ("a", proxy(ProxyType.DIRECT))]
    sort_with(items, ProxySort.by_name_dsc())
    assert [n for n, _ in items] == ["b", "a"]
    sort_with(items, ProxySort.by_type_asc())
    assert [n for n, _ in items] == ["a", "b"]


def test_rule_sort():
    rules = [
        Rule(RuleType.MATCH, "b", "x"),
        Rule(RuleType.DOMAIN, "a", "z"),
    ]
    sort_with(rules, RuleSort.by_payload_asc())
    assert [r.payload for r in rules] == ["a", "b"]
    sort_with(rules, RuleSort.by_proxy_name_dsc())
    assert [r.proxy for r in rules] == ["z", "x"]
    sort_with(rules, RuleSort.by_type_dsc())
    assert rules[0].rule_type is RuleType.MATCH


def test_noop_keeps_order_and_callable_method():
    items = [3, 1, 2]
    sort_with(items, Noop())
    assert items == [3, 1, 2]
    sort_with(items, lambda a, b: a - b)
    assert items == [1, 2, 3]


def test_order_by():
    assert order_by(-1, SortOrder.ASCENDANT) == -1
    assert order_by(-1, SortOrder.DESCENDANT) == 1


def test_parse():
    assert SortOrder.parse("ASCENDANT") is SortOrder.ASCENDANT
    assert ProxySortBy.parse("Delay") is ProxySortBy.DELAY
    assert RuleSortBy.parse("proxy") is RuleSortBy.PROXY
    with pytest.raises(ValueError):
        SortOrder.parse("sideways")


def test_con_sort_round_trip():
    s = ConSort(ConSortBy.DOWN_SPEED, SortOrder.ASCENDANT)
    assert ConSort.from_dict(s.to_dict()) == s