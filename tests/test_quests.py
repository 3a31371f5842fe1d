from __future__ import annotations

import pytest

from pyprovide.exceptions import UnknownActionKindError
from pyprovide.quests import (
    INITIAL_QUESTS,
    QUEST_ACTIONS,
    QUESTS,
    QUESTS_DISPATCH,
    Quest,
    QuestAdded,
    QuestChanged,
    QuestDeleted,
    create_quest_store,
    next_quest_id,
    quest_provider,
    quest_reducer,
)
from pyprovide.reducer import replay
from pyprovide.scope import Consumer, ProviderScope


def test_added_then_deleted_round_trips_to_empty() -> None:
    state = replay(quest_reducer, (), [QuestAdded(id=4, text="Gather Rupees"), QuestDeleted(id=4)])

    assert state == ()


def test_changed_for_absent_id_is_a_noop() -> None:
    before = INITIAL_QUESTS

    after = quest_reducer(before, QuestChanged(quest=Quest(id=42, text="Nope", done=True)))

    assert after is before


def test_deleted_for_absent_id_is_a_noop() -> None:
    assert quest_reducer(INITIAL_QUESTS, QuestDeleted(id=42)) is INITIAL_QUESTS


def test_changed_preserves_order_and_other_records() -> None:
    state = (Quest(id=0, text="a"), Quest(id=1, text="b"), Quest(id=2, text="c"))

    after = quest_reducer(state, QuestChanged(quest=Quest(id=1, text="B", done=True)))

    assert [q.id for q in after] == [0, 1, 2]
    assert after[1] == Quest(id=1, text="B", done=True)
    assert after[0] is state[0]
    assert after[2] is state[2]


def test_unknown_kind_leaves_store_unchanged() -> None:
    store = create_quest_store()

    with pytest.raises(UnknownActionKindError):
        store.dispatch({"kind": "completed", "id": 0})

    assert store.state == INITIAL_QUESTS


def test_next_quest_id() -> None:
    assert next_quest_id(()) == 0
    assert next_quest_id((Quest(id=3, text="x"), Quest(id=1, text="y"))) == 4


def test_end_to_end_quest_log() -> None:
    scope = ProviderScope()
    app = scope.create_root("app")
    store = create_quest_store(bus=scope.bus)
    scope.attach(app, quest_provider(scope.composer, store))

    list_node = scope.add_child(scope.add_child(app, "main"), "quest-list")
    form_node = scope.add_child(app, "add-quest-form")
    renders: list[tuple[Quest, ...]] = []
    quest_list = scope.use(list_node, QUESTS, on_change=lambda c: renders.append(c.read()))
    dispatch = scope.environment.resolve(form_node, QUESTS_DISPATCH)

    dispatch(QuestAdded(id=1, text="Complete a Dungeon"))
    assert quest_list.read() == (
        Quest(id=0, text="Find the Master Sword", done=False),
        Quest(id=1, text="Complete a Dungeon", done=False),
    )

    dispatch(QuestChanged(quest=Quest(id=1, text="Complete a Dungeon", done=True)))
    assert quest_list.read()[0] == Quest(id=0, text="Find the Master Sword", done=False)
    assert quest_list.read()[1].done is True

    dispatch(QuestDeleted(id=0))
    assert quest_list.read() == (Quest(id=1, text="Complete a Dungeon", done=True),)

    assert len(renders) == 3
    assert renders[-1] == store.state
    # The form only dispatches; it never subscribed.
    assert scope.take_dirty() == (list_node,)


def test_replaying_parsed_actions_matches_live_dispatch() -> None:
    raw = [
        {"kind": "added", "id": 1, "text": "Complete a Dungeon"},
        {"kind": "changed", "quest": {"id": 1, "text": "Complete a Dungeon", "done": True}},
        {"kind": "deleted", "id": 0},
    ]
    store = create_quest_store()
    for item in raw:
        store.dispatch(QUEST_ACTIONS.parse(item))

    assert replay(quest_reducer, INITIAL_QUESTS, store.history) == store.state


def test_consumers_in_separate_subtrees_use_their_own_store() -> None:
    scope = ProviderScope()
    root = scope.create_root()
    left_store = create_quest_store((), bus=scope.bus)
    right_store = create_quest_store((), bus=scope.bus)
    left = scope.add_child(root, "left")
    right = scope.add_child(root, "right")
    scope.attach(left, quest_provider(scope.composer, left_store))
    scope.attach(right, quest_provider(scope.composer, right_store))
    left_changes: list[Consumer] = []
    right_changes: list[Consumer] = []
    scope.use(scope.add_child(left), QUESTS, on_change=left_changes.append)
    scope.use(scope.add_child(right), QUESTS, on_change=right_changes.append)

    left_store.dispatch(QuestAdded(id=1, text="left only"))

    assert len(left_changes) == 1
    assert right_changes == []
    assert right_store.state == ()
