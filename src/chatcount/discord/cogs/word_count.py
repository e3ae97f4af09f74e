from collections.abc import Sequence
from typing import TYPE_CHECKING

import discord
import structlog
from discord.ext import commands

from chatcount.counting.emoji import EmojiRanker, GuildEmojiRef
from chatcount.counting.exceptions import CommandUsageError, CountError
from chatcount.counting.ranker import Ranker, format_ranking
from chatcount.services.history_ingester import to_chat_message

if TYPE_CHECKING:
    from chatcount.bot import ChatCountBot

logger = structlog.get_logger()

MAX_EMOJI_DISPLAY = 25
TRUNCATION_SUFFIX = "... (truncated)"


def fit_reply(text: str, limit: int) -> str:
    """Trim a reply to the message length limit, dropping whole lines where possible."""
    if len(text) <= limit:
        return text

    budget = limit - len(TRUNCATION_SUFFIX) - 1
    kept: list[str] = []
    used = 0
    for line in text.split("\n"):
        needed = len(line) + (1 if kept else 0)
        if used + needed > budget:
            break
        kept.append(line)
        used += needed

    if not kept:
        return text[:budget] + TRUNCATION_SUFFIX
    return "\n".join(kept) + "\n" + TRUNCATION_SUFFIX


def parse_emoji_args(args: Sequence[str], default_limit: int) -> tuple[bool, int]:
    """Parse ``[top|bottom] [n]`` into (descending, limit)."""
    descending = True
    limit = default_limit

    for arg in args:
        lowered = arg.lower()
        if lowered == "top":
            descending = True
        elif lowered == "bottom":
            descending = False
        elif arg.isdigit():
            limit = int(arg)
        else:
            raise CommandUsageError("usage: emoji [top|bottom] [count]")

    if not 1 <= limit <= MAX_EMOJI_DISPLAY:
        raise CommandUsageError(f"count must be between 1 and {MAX_EMOJI_DISPLAY}")
    return descending, limit


class WordCount(commands.Cog):
    def __init__(self, bot: "ChatCountBot") -> None:
        self.bot = bot
        self.store = bot.store
        self.ranker = Ranker(bot.store, display_limit=bot.settings.display_limit)
        self.emoji_ranker = EmojiRanker(bot.store, display_limit=bot.settings.display_limit)
        self._ingestion_started = False

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        if self._ingestion_started:
            return
        self._ingestion_started = True
        await self.build_data()

    async def build_data(self) -> int:
        await self._set_status("Building data...")
        counted = await self.bot.ingester.ingest(self.bot.guilds)
        await self._set_status("Finished building data")
        logger.info("Word counts built", messages_counted=counted, groups=len(self.store))
        return counted

    async def _set_status(self, text: str) -> None:
        try:
            await self.bot.change_presence(activity=discord.Game(name=text))
        except (discord.HTTPException, ConnectionError) as e:
            logger.warning("Failed to update presence", status=text, error=str(e))

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        counted = self.store.build_message(to_chat_message(message))
        if counted:
            logger.debug("Message counted", author=message.author.name)

    @commands.command(name="count")
    async def count(self, ctx: commands.Context, *args: str) -> None:
        reply = self.ranker.answer_count(args)
        await ctx.send(self._fit(reply))

    @commands.command(name="emoji")
    async def emoji(self, ctx: commands.Context, *args: str) -> None:
        guild = ctx.guild
        if guild is None:
            raise CommandUsageError("emoji rankings only work in a server")

        descending, limit = parse_emoji_args(args, self.bot.settings.display_limit)

        async def lookup() -> list[GuildEmojiRef]:
            emojis = await guild.fetch_emojis()
            return [
                GuildEmojiRef(id=emoji.id, name=emoji.name, animated=emoji.animated)
                for emoji in emojis
            ]

        entries = await self.emoji_ranker.rank(lookup, descending=descending, limit=limit)
        await ctx.send(self._fit(format_ranking(entries)))

    async def cog_command_error(self, ctx: commands.Context, error: Exception) -> None:
        original: BaseException = error
        if isinstance(error, commands.CommandInvokeError):
            original = error.original

        command_name = ctx.command.name if ctx.command else "unknown"

        if isinstance(original, CountError):
            logger.info("Command rejected", command=command_name, reason=str(original))
            await self._reply(ctx, str(original))
            return

        if isinstance(original, discord.HTTPException):
            logger.error(
                "Discord API error during command",
                command=command_name,
                status=original.status,
                error=str(original),
            )
            await self._reply(ctx, "A Discord error occurred. Please try again.")
            return

        logger.error(
            "Unhandled error in command",
            command=command_name,
            error=str(original),
            exc_info=original,
        )
        await self._reply(ctx, "An unexpected error occurred. Please try again.")

    async def _reply(self, ctx: commands.Context, message: str) -> None:
        try:
            await ctx.send(self._fit(message))
        except discord.HTTPException as e:
            logger.error("Failed to send command reply", error=str(e))

    def _fit(self, text: str) -> str:
        return fit_reply(text, self.bot.settings.discord_max_message_length)
