import re
from collections import Counter
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

import structlog

from chatcount.counting.exceptions import EmptyResultError
from chatcount.counting.ranker import DEFAULT_DISPLAY_LIMIT, RankedEntry, rank_counts
from chatcount.counting.store import WordCountStore

logger = structlog.get_logger()

EMOJI_TOKEN_RE = re.compile(r"^<(a?):(\w+):(\d+)>$")


@dataclass(frozen=True)
class GuildEmojiRef:
    id: int
    name: str
    animated: bool = False

    def __str__(self) -> str:
        prefix = "a" if self.animated else ""
        return f"<{prefix}:{self.name}:{self.id}>"


EmojiLookup = Callable[[], Awaitable[Iterable[GuildEmojiRef]]]


class EmojiRanker:
    """Ranks custom emoji usage across every group that counts toward ``all``.

    Only tokens naming an emoji that exists in the current guild, with the
    matching name and id, are counted.
    """

    def __init__(self, store: WordCountStore, display_limit: int = DEFAULT_DISPLAY_LIMIT) -> None:
        self._store = store
        self._display_limit = display_limit

    async def rank(
        self,
        lookup: EmojiLookup,
        descending: bool = True,
        limit: int | None = None,
    ) -> list[RankedEntry]:
        limit = limit if limit is not None else self._display_limit

        emojis = await lookup()
        known = {emoji.id: emoji for emoji in emojis}

        totals: Counter[str] = Counter()
        rejected = 0
        for group in self._store.contributing_groups():
            for token, count in group.counts.items():
                match = EMOJI_TOKEN_RE.match(token)
                if match is None:
                    continue
                emoji = self._resolve(match, known)
                if emoji is None:
                    rejected += 1
                    continue
                totals[str(emoji)] += count

        logger.debug(
            "Emoji usage collected",
            known_emojis=len(known),
            used_emojis=len(totals),
            rejected_tokens=rejected,
        )

        entries = rank_counts(totals, limit, descending)
        if not entries:
            raise EmptyResultError("no emojis have been used")
        return entries

    @staticmethod
    def _resolve(match: re.Match[str], known: dict[int, GuildEmojiRef]) -> GuildEmojiRef | None:
        marker, name, emoji_id = match.groups()
        emoji = known.get(int(emoji_id))
        if emoji is None or emoji.name.lower() != name:
            return None
        if emoji.animated != (marker == "a"):
            return None
        return emoji
