from collections import Counter
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

import structlog

from chatcount.counting.sanitizer import (
    COMMAND_PREFIX,
    is_command,
    sanitize_message,
    sanitize_word,
    tokenize,
)

logger = structlog.get_logger()

AGGREGATE_GROUP = "all"
AGGREGATE_DISPLAY_NAME = "everyone"


class GroupKind(Enum):
    USER = "user"
    AGGREGATE = "aggregate"


@dataclass(frozen=True)
class WordGroup:
    """Word counts for one author, or for everyone.

    ``include_in_all`` is fixed when the group is first written to.
    """

    name: str
    kind: GroupKind
    include_in_all: bool
    counts: Counter[str] = field(default_factory=Counter)

    @property
    def display_name(self) -> str:
        if self.kind is GroupKind.AGGREGATE:
            return AGGREGATE_DISPLAY_NAME
        return self.name


@dataclass(frozen=True)
class ChatMessage:
    content: str
    author_name: str
    author_is_bot: bool = False


class WordCountStore:
    """In-memory word frequency tables keyed by group name.

    Author groups and the aggregate table are kept apart, so an author
    named ``all`` still contributes to the aggregate like anyone else.
    Every mutation is synchronous and expected to run on the event loop
    thread, so increments to the same group and word are never lost.
    """

    def __init__(self, command_prefix: str = COMMAND_PREFIX) -> None:
        self._groups: dict[str, WordGroup] = {}
        self._aggregate: WordGroup | None = None
        self._command_prefix = command_prefix

    def build(self, text: str, group_name: str, include_in_all: bool) -> None:
        for token in tokenize(sanitize_message(text)):
            self._put_word(token, group_name, include_in_all)

    def build_message(self, message: ChatMessage) -> bool:
        if is_command(message.content, self._command_prefix):
            return False
        self.build(message.content, message.author_name, not message.author_is_bot)
        return True

    def _put_word(self, token: str, group_name: str, include_in_all: bool) -> None:
        word = sanitize_word(token)
        if not word:
            return

        group = self._user_group(group_name, include_in_all)
        group.counts[word] += 1
        # the flag frozen on the group decides, so "all" stays the sum of its contributors
        if group.include_in_all:
            self._aggregate_group().counts[word] += 1

    def _user_group(self, name: str, include_in_all: bool) -> WordGroup:
        group = self._groups.get(name)
        if group is None:
            group = WordGroup(name=name, kind=GroupKind.USER, include_in_all=include_in_all)
            self._groups[name] = group
            logger.debug("Group created", group=name, include_in_all=include_in_all)
        return group

    def _aggregate_group(self) -> WordGroup:
        if self._aggregate is None:
            self._aggregate = WordGroup(
                name=AGGREGATE_GROUP,
                kind=GroupKind.AGGREGATE,
                include_in_all=False,
            )
            logger.debug("Group created", group=AGGREGATE_GROUP, include_in_all=False)
        return self._aggregate

    def group_exists(self, name: str) -> bool:
        return self.get_group(name) is not None

    def get_group(self, name: str) -> WordGroup | None:
        if name == AGGREGATE_GROUP:
            return self._aggregate
        return self._groups.get(name)

    def word_count(self, group_name: str, word: str) -> int | None:
        """Return the count for an already-canonical word, or None if never seen."""
        group = self.get_group(group_name)
        if group is None or word not in group.counts:
            return None
        return group.counts[word]

    def groups(self) -> Iterator[WordGroup]:
        snapshot = list(self._groups.values())
        if self._aggregate is not None:
            snapshot.append(self._aggregate)
        return iter(snapshot)

    def contributing_groups(self) -> Iterator[WordGroup]:
        return (group for group in self.groups() if group.include_in_all)

    def __len__(self) -> int:
        return len(self._groups) + (1 if self._aggregate is not None else 0)
