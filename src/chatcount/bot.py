from typing import Any

import discord
import httpx
import structlog
from discord.ext import commands

from chatcount.config import Settings
from chatcount.counting.store import WordCountStore
from chatcount.services.corpus_fetcher import CorpusFetcher
from chatcount.services.history_ingester import HistoryIngester

logger = structlog.get_logger(__name__)


class ChatCountBot(commands.Bot):
    def __init__(
        self,
        settings: Settings,
        store: WordCountStore,
        ingester: HistoryIngester,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True
        intents.guild_messages = True

        super().__init__(
            command_prefix=settings.command_prefix,
            intents=intents,
            help_command=None,
            case_insensitive=True,
        )

        self.settings = settings
        self.store = store
        self.ingester = ingester
        self._http_client = http_client

    async def setup_hook(self) -> None:
        from chatcount.discord.cogs import WordCount

        await self.add_cog(WordCount(self))

        logger.info("Bot setup complete")

    async def on_ready(self) -> None:
        logger.info(f"Logged in as {self.user} (ID: {self.user.id if self.user else 'Unknown'})")

    async def on_error(self, event_method: str, *_args: Any, **_kwargs: Any) -> None:
        logger.exception(f"Error in {event_method}")

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
        await super().close()


async def create_bot(settings: Settings) -> ChatCountBot:
    store = WordCountStore(command_prefix=settings.command_prefix)
    http_client = httpx.AsyncClient(
        timeout=settings.http_timeout_seconds,
        follow_redirects=True,
    )
    ingester = HistoryIngester(
        store,
        corpus_fetcher=CorpusFetcher(http_client=http_client),
        batch_size=settings.history_batch_size,
        max_attempts=settings.history_max_attempts,
        retry_wait_seconds=settings.history_retry_wait_seconds,
        corpus_url=settings.corpus_url,
        corpus_group_name=settings.corpus_group_name,
        corpus_header_pattern=settings.corpus_header_pattern,
    )
    return ChatCountBot(settings, store, ingester, http_client=http_client)


async def run_bot(settings: Settings) -> None:
    bot = await create_bot(settings)
    try:
        await bot.start(settings.discord_bot_token)
    finally:
        await bot.close()
