#!/usr/bin/env python3
"""Replay a quest-log action file and print every intermediate state.

Each line of output is the JSON state after one action, so a recorded
action stream can be inspected (or diffed) step by step.

Usage
-----
::

    python scripts/replay_actions.py actions.json
    cat actions.json | python scripts/replay_actions.py -

The action file is a JSON array of objects, e.g.::

    [
      {"kind": "added", "id": 1, "text": "Complete a Dungeon"},
      {"kind": "changed", "quest": {"id": 1, "text": "Complete a Dungeon", "done": true}},
      {"kind": "deleted", "id": 0}
    ]

Options::

    --initial FILE      JSON array of quests to start from (default: built-in log)
    --empty             Start from an empty quest log
    --verbose / -v      Enable debug logging
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyprovide import ProviderConfig, ProviderError, ProviderScope  # noqa: E402
from pyprovide.quests import (  # noqa: E402
    INITIAL_QUESTS,
    QUEST_ACTIONS,
    QUESTS,
    Quest,
    QuestLog,
    create_quest_store,
    quest_provider,
)


def _read_json(source: str) -> Any:
    if source == "-":
        return json.load(sys.stdin)
    return json.loads(Path(source).read_text(encoding="utf-8"))


def _dump_state(state: QuestLog) -> str:
    return json.dumps([quest.model_dump() for quest in state])


def run(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Replay quest-log actions and print each state")
    parser.add_argument("actions", help="JSON file with an array of actions ('-' for stdin)")
    start = parser.add_mutually_exclusive_group()
    start.add_argument("--initial", help="JSON file with the initial array of quests")
    start.add_argument("--empty", action="store_true", help="Start from an empty quest log")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    initial: QuestLog = INITIAL_QUESTS
    if args.empty:
        initial = ()
    elif args.initial:
        initial = tuple(Quest.model_validate(item) for item in _read_json(args.initial))

    raw_actions = _read_json(args.actions)
    if not isinstance(raw_actions, list):
        print("error: action file must contain a JSON array", file=sys.stderr)
        return 2

    scope = ProviderScope(config=ProviderConfig.from_env())
    root = scope.create_root("app")
    store = create_quest_store(initial, bus=scope.bus, config=scope.config)
    scope.attach(root, quest_provider(scope.composer, store))

    # A consumer below the provider observes every change, as a view would.
    view = scope.use(scope.add_child(root, "quest-list"), QUESTS, on_change=lambda c: print(_dump_state(c.read())))

    print(_dump_state(view.read()))
    for index, item in enumerate(raw_actions):
        try:
            store.dispatch(QUEST_ACTIONS.parse(item))
        except ProviderError as exc:
            print(f"error: action #{index}: {exc}", file=sys.stderr)
            return 1
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
