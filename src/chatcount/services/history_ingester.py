import asyncio
import time
from collections.abc import Awaitable, Iterable

import discord
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from chatcount.counting.store import ChatMessage, WordCountStore
from chatcount.services.corpus_fetcher import (
    DEFAULT_HEADER_PATTERN,
    CorpusFetcher,
    CorpusFetchError,
)

logger = structlog.get_logger()

DEFAULT_BATCH_SIZE = 100
DEFAULT_MAX_ATTEMPTS = 10
MAX_RETRY_WAIT_SECONDS = 30.0


def _is_transient(error: BaseException) -> bool:
    if isinstance(error, (discord.Forbidden, discord.NotFound)):
        return False
    return isinstance(error, (discord.HTTPException, TimeoutError))


def to_chat_message(message: discord.Message) -> ChatMessage:
    return ChatMessage(
        content=message.content,
        author_name=message.author.name,
        author_is_bot=message.author.bot,
    )


def text_channels(guild: discord.Guild) -> list[discord.TextChannel]:
    return [channel for channel in guild.channels if isinstance(channel, discord.TextChannel)]


class HistoryIngester:
    """Bulk-loads message history into a WordCountStore.

    One producer task runs per text channel, plus one for the external
    corpus. Producers hand whole batches to a queue and a single consumer
    applies them to the store, so the store only ever has one writer.
    """

    def __init__(
        self,
        store: WordCountStore,
        corpus_fetcher: CorpusFetcher | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_wait_seconds: float = 1.0,
        corpus_url: str | None = None,
        corpus_group_name: str = "trump",
        corpus_header_pattern: str = DEFAULT_HEADER_PATTERN,
    ) -> None:
        self._store = store
        self._corpus_fetcher = corpus_fetcher
        self._batch_size = batch_size
        self._max_attempts = max_attempts
        self._retry_wait_seconds = retry_wait_seconds
        self._corpus_url = corpus_url
        self._corpus_group_name = corpus_group_name
        self._corpus_header_pattern = corpus_header_pattern

    async def ingest(self, guilds: Iterable[discord.Guild]) -> int:
        """Ingest every guild in one fan-out; the corpus is fetched once."""
        channels: list[discord.TextChannel] = []
        for guild in guilds:
            guild_channels = text_channels(guild)
            logger.info(
                "Parsing guild",
                guild=guild.name,
                guild_id=guild.id,
                text_channels=len(guild_channels),
            )
            channels.extend(guild_channels)

        return await self._run(channels)

    async def _run(self, channels: list[discord.TextChannel]) -> int:
        start = time.monotonic()
        queue: asyncio.Queue[list[ChatMessage] | None] = asyncio.Queue()

        producers = [
            self._produce(queue, f"channel:{channel.name}", self.fetch_channel_history(channel))
            for channel in channels
        ]
        if self._corpus_url and self._corpus_fetcher is not None:
            producers.append(self._produce(queue, "corpus", self.fetch_corpus()))

        coordinator = asyncio.create_task(self._close_when_done(queue, producers))
        counted = await self._consume(queue)
        await coordinator

        logger.info(
            "Data parsing done",
            tasks=len(producers),
            messages_counted=counted,
            elapsed_seconds=round(time.monotonic() - start, 2),
        )
        return counted

    async def _produce(
        self,
        queue: asyncio.Queue[list[ChatMessage] | None],
        name: str,
        fetch: Awaitable[list[ChatMessage]],
    ) -> None:
        try:
            batch = await fetch
        except Exception:
            logger.exception("Ingestion task failed", task=name)
            return
        await queue.put(batch)

    async def _close_when_done(
        self,
        queue: asyncio.Queue[list[ChatMessage] | None],
        producers: list[Awaitable[None]],
    ) -> None:
        try:
            await asyncio.gather(*producers)
        finally:
            await queue.put(None)

    async def _consume(self, queue: asyncio.Queue[list[ChatMessage] | None]) -> int:
        counted = 0
        while True:
            batch = await queue.get()
            if batch is None:
                return counted
            for message in batch:
                if self._store.build_message(message):
                    counted += 1

    async def fetch_channel_history(self, channel: discord.TextChannel) -> list[ChatMessage]:
        """Page backwards through a channel until an empty page comes back.

        A page that keeps failing abandons the channel; whatever was fetched
        before that is still returned.
        """
        before: discord.Object | None = None
        if channel.last_message_id is not None:
            before = discord.Object(id=channel.last_message_id)

        messages: list[ChatMessage] = []
        while True:
            try:
                page = await self._fetch_page(channel, before)
            except (discord.HTTPException, TimeoutError) as e:
                logger.error(
                    "Abandoning channel after fetch failure",
                    channel=channel.name,
                    channel_id=channel.id,
                    fetched=len(messages),
                    error=str(e),
                )
                break

            if len(page) < 1:
                break

            messages.extend(to_chat_message(message) for message in page)
            logger.debug("Fetched messages so far", channel=channel.name, fetched=len(messages))
            before = discord.Object(id=page[-1].id)

        logger.info("Channel history fetched", channel=channel.name, fetched=len(messages))
        return messages

    async def _fetch_page(
        self,
        channel: discord.TextChannel,
        before: discord.Object | None,
    ) -> list[discord.Message]:
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._retry_wait_seconds, max=MAX_RETRY_WAIT_SECONDS),
            before_sleep=self._log_retry,
            reraise=True,
        )
        return await retrying(self._read_page, channel, before)

    async def _read_page(
        self,
        channel: discord.TextChannel,
        before: discord.Object | None,
    ) -> list[discord.Message]:
        return [message async for message in channel.history(limit=self._batch_size, before=before)]

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        channel = retry_state.args[0] if retry_state.args else None
        logger.warning(
            "History fetch failed, retrying",
            channel=getattr(channel, "name", None),
            attempt=retry_state.attempt_number,
            error=str(error),
        )

    async def fetch_corpus(self) -> list[ChatMessage]:
        if self._corpus_fetcher is None or not self._corpus_url:
            return []
        try:
            return await self._corpus_fetcher.fetch_messages(
                self._corpus_url,
                self._corpus_group_name,
                self._corpus_header_pattern,
            )
        except CorpusFetchError as e:
            logger.error("Corpus fetch failed", url=self._corpus_url, error=str(e))
            return []
