from chatcount.services.corpus_fetcher import CorpusFetcher, CorpusFetchError, parse_corpus
from chatcount.services.history_ingester import HistoryIngester

__all__ = [
    "CorpusFetchError",
    "CorpusFetcher",
    "HistoryIngester",
    "parse_corpus",
]
