from __future__ import annotations

import pytest

from pyprovide.bus import SubscriptionBus
from pyprovide.config import ProviderConfig
from pyprovide.exceptions import ListenerError
from pyprovide.tree import NodeId


class _Store:
    name = "dummy"


def test_notify_reaches_only_subscribers_in_order() -> None:
    bus = SubscriptionBus()
    store, other = _Store(), _Store()
    calls: list[tuple[int, object]] = []

    bus.subscribe(NodeId(2), store, lambda node, s: calls.append((node, s)))
    bus.subscribe(NodeId(1), store, lambda node, s: calls.append((node, s)))
    bus.subscribe(NodeId(3), other, lambda node, s: calls.append((node, s)))

    assert bus.notify(store) == 2
    assert calls == [(2, store), (1, store)]
    assert bus.take_dirty() == (2, 1)
    assert bus.take_dirty() == ()


def test_unsubscribe_is_idempotent_and_stops_delivery() -> None:
    bus = SubscriptionBus()
    store = _Store()
    calls: list[int] = []
    token = bus.subscribe(NodeId(1), store, lambda node, _s: calls.append(node))

    assert bus.unsubscribe(token)
    assert not bus.unsubscribe(token)
    assert bus.notify(store) == 0
    assert calls == []
    assert bus.subscription_count == 0


def test_subscribing_twice_returns_the_same_token() -> None:
    bus = SubscriptionBus()
    store = _Store()
    calls: list[str] = []

    first = bus.subscribe(NodeId(1), store, lambda _n, _s: calls.append("first"))
    second = bus.subscribe(NodeId(1), store, lambda _n, _s: calls.append("second"))
    bus.notify(store)

    assert first == second
    assert calls == ["second"]
    assert bus.subscribers(store) == (1,)


def test_listener_unsubscribed_mid_round_is_skipped() -> None:
    bus = SubscriptionBus()
    store = _Store()
    calls: list[int] = []
    tokens = {}

    def first(node: NodeId, _store: object) -> None:
        calls.append(node)
        bus.unsubscribe(tokens["second"])

    tokens["first"] = bus.subscribe(NodeId(1), store, first)
    tokens["second"] = bus.subscribe(NodeId(2), store, lambda node, _s: calls.append(node))

    assert bus.notify(store) == 1
    assert calls == [1]


def test_unsubscribe_node_drops_all_its_subscriptions() -> None:
    bus = SubscriptionBus()
    a, b = _Store(), _Store()
    bus.subscribe(NodeId(1), a)
    bus.subscribe(NodeId(1), b)
    bus.subscribe(NodeId(2), a)

    assert bus.unsubscribe_node(NodeId(1)) == 2
    assert not bus.is_subscribed(NodeId(1), a)
    assert bus.is_subscribed(NodeId(2), a)


def test_failing_listener_is_logged_and_others_still_run(caplog: pytest.LogCaptureFixture) -> None:
    bus = SubscriptionBus()
    store = _Store()
    calls: list[int] = []

    def boom(_node: NodeId, _store: object) -> None:
        raise RuntimeError("boom")

    bus.subscribe(NodeId(1), store, boom)
    bus.subscribe(NodeId(2), store, lambda node, _s: calls.append(node))

    with caplog.at_level("WARNING", logger="pyprovide.bus"):
        assert bus.notify(store) == 2

    assert calls == [2]
    assert "Listener for node=1 failed" in caplog.text


def test_failing_listener_propagates_when_configured() -> None:
    bus = SubscriptionBus(config=ProviderConfig(propagate_listener_errors=True))
    store = _Store()
    calls: list[int] = []

    def boom(_node: NodeId, _store: object) -> None:
        raise RuntimeError("boom")

    bus.subscribe(NodeId(1), store, boom)
    bus.subscribe(NodeId(2), store, lambda node, _s: calls.append(node))

    with pytest.raises(ListenerError) as excinfo:
        bus.notify(store)

    assert calls == [2]
    assert excinfo.value.store == "dummy"
    assert isinstance(excinfo.value.errors[0], RuntimeError)
