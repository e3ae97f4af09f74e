from chatcount.counting.emoji import EmojiRanker, GuildEmojiRef
from chatcount.counting.exceptions import (
    CommandUsageError,
    CountError,
    EmptyResultError,
    GroupNotFoundError,
    InvalidWordError,
)
from chatcount.counting.ranker import Ranker, RankedEntry, format_ranking, rank_counts
from chatcount.counting.store import AGGREGATE_GROUP, ChatMessage, WordCountStore, WordGroup

__all__ = [
    "AGGREGATE_GROUP",
    "ChatMessage",
    "CommandUsageError",
    "CountError",
    "EmojiRanker",
    "EmptyResultError",
    "GroupNotFoundError",
    "GuildEmojiRef",
    "InvalidWordError",
    "RankedEntry",
    "Ranker",
    "WordCountStore",
    "WordGroup",
    "format_ranking",
    "rank_counts",
]
