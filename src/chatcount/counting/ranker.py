from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

import structlog

from chatcount.counting.exceptions import (
    CommandUsageError,
    EmptyResultError,
    GroupNotFoundError,
    InvalidWordError,
)
from chatcount.counting.sanitizer import sanitize_word
from chatcount.counting.store import AGGREGATE_GROUP, WordCountStore

logger = structlog.get_logger()

DEFAULT_DISPLAY_LIMIT = 5


@dataclass(frozen=True)
class RankedEntry:
    key: str
    count: int


def rank_counts(
    counts: Mapping[str, int],
    limit: int | None = None,
    descending: bool = True,
) -> list[RankedEntry]:
    """Order a count table by count, breaking ties by key.

    Ties are always broken with the key ascending, whatever the count order.
    """
    if descending:
        ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    else:
        ordered = sorted(counts.items(), key=lambda item: (item[1], item[0]))

    entries = [RankedEntry(key=key, count=count) for key, count in ordered]
    if limit is not None:
        entries = entries[:limit]
    return entries


def format_ranking(entries: Iterable[RankedEntry]) -> str:
    return "\n".join(
        f"{rank}. {entry.key}: {entry.count}" for rank, entry in enumerate(entries, start=1)
    )


class Ranker:
    def __init__(self, store: WordCountStore, display_limit: int = DEFAULT_DISPLAY_LIMIT) -> None:
        self._store = store
        self._display_limit = display_limit

    def top_words(self, target: str, limit: int | None = None) -> list[RankedEntry]:
        """Top words for a group.

        When ``target`` is not a known group it is read as a word instead and
        the result ranks groups by how often they said it.
        """
        limit = limit if limit is not None else self._display_limit

        group = self._store.get_group(target)
        if group is None:
            word = sanitize_word(target)
            if not word:
                raise GroupNotFoundError(f"no such group {target!r}")
            logger.debug("Target is not a group, ranking groups by word", target=target)
            return self.rank_groups_by_word(word, limit)

        entries = rank_counts(group.counts, limit)
        if not entries:
            raise EmptyResultError(f"target {target} has no words")
        return entries

    def rank_groups_by_word(self, word: str, limit: int | None = None) -> list[RankedEntry]:
        limit = limit if limit is not None else self._display_limit

        per_group = {
            group.name: group.counts[word]
            for group in self._store.contributing_groups()
            if word in group.counts
        }

        entries = rank_counts(per_group, limit)
        if not entries:
            raise EmptyResultError(f"no one has said {word}")
        return entries

    def top_count(self, target: str, limit: int | None = None) -> str:
        return format_ranking(self.top_words(target, limit))

    def single_word_count(self, group_name: str, word: str) -> str:
        group = self._store.get_group(group_name)
        if group is None:
            raise GroupNotFoundError(f"no such dataset {group_name!r}")

        canonical = sanitize_word(word)
        logger.debug("Word sanitized", word=word, sanitized=canonical)
        if not canonical:
            raise InvalidWordError("word contains only sanitized chars")

        count = self._store.word_count(group_name, canonical)
        if count is None:
            return f"{group.display_name} has never said {canonical}"

        return f"{group.display_name} has said {canonical} {count} times"

    def answer_count(self, args: Sequence[str]) -> str:
        """Dispatch the arguments of a ``count`` command by arity."""
        if len(args) == 0:
            return self.top_count(AGGREGATE_GROUP)
        if len(args) == 1:
            return self.top_count(args[0])
        if len(args) == 2:
            return self.single_word_count(args[0], args[1])
        raise CommandUsageError("1 or 2 args plz")
