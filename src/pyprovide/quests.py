"""Quest log: the canonical reducer domain.

State is an ordered tuple of ``Quest`` records. Records are frozen and the
tuple is rebuilt on every change, so a state handed to consumers can never
be modified behind the store's back.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from pyprovide.actions import Action, ActionSchema
from pyprovide.bus import SubscriptionBus
from pyprovide.composer import ComposedProvider, ProviderComposer
from pyprovide.config import ProviderConfig
from pyprovide.environment import ContextKey
from pyprovide.reducer import ActionReducer
from pyprovide.store import ReducerStore


class Quest(BaseModel):
    """A single quest log entry."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: int
    text: str
    done: bool = False


QuestLog = tuple[Quest, ...]


class QuestAdded(Action):
    kind: Literal["added"] = "added"
    id: int
    text: str


class QuestChanged(Action):
    """Replace the record with ``quest.id``; no-op when it is absent."""

    kind: Literal["changed"] = "changed"
    quest: Quest


class QuestDeleted(Action):
    kind: Literal["deleted"] = "deleted"
    id: int = Field(..., description="Id of the quest to remove")


QuestAction = QuestAdded | QuestChanged | QuestDeleted

QUEST_ACTIONS = ActionSchema(QuestAdded, QuestChanged, QuestDeleted)

INITIAL_QUESTS: QuestLog = (Quest(id=0, text="Find the Master Sword"),)

QUESTS: ContextKey[ReducerStore[QuestLog, QuestAction]] = ContextKey("quests")
QUESTS_DISPATCH: ContextKey[object] = ContextKey("quests-dispatch")

quest_reducer: ActionReducer[QuestLog] = ActionReducer("quests", schema=QUEST_ACTIONS)


@quest_reducer.on(QuestAdded)
def _added(state: QuestLog, action: QuestAdded) -> QuestLog:
    return (*state, Quest(id=action.id, text=action.text))


@quest_reducer.on(QuestChanged)
def _changed(state: QuestLog, action: QuestChanged) -> QuestLog:
    if not any(quest.id == action.quest.id for quest in state):
        return state
    return tuple(action.quest if quest.id == action.quest.id else quest for quest in state)


@quest_reducer.on(QuestDeleted)
def _deleted(state: QuestLog, action: QuestDeleted) -> QuestLog:
    remaining = tuple(quest for quest in state if quest.id != action.id)
    return state if len(remaining) == len(state) else remaining


def next_quest_id(state: QuestLog) -> int:
    """Smallest id greater than every id in *state* (0 for an empty log)."""
    return max((quest.id for quest in state), default=-1) + 1


def create_quest_store(
    initial: QuestLog = INITIAL_QUESTS,
    *,
    bus: SubscriptionBus | None = None,
    config: ProviderConfig | None = None,
) -> ReducerStore[QuestLog, QuestAction]:
    return ReducerStore(quest_reducer, tuple(initial), name="quests", bus=bus, config=config)


def quest_provider(composer: ProviderComposer, store: ReducerStore[QuestLog, QuestAction]) -> ComposedProvider:
    """Bind the quest store and its dispatcher as one provider unit."""
    return composer.compose([(QUESTS, store), (QUESTS_DISPATCH, store.dispatcher)])
