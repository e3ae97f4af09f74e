from chatcount.discord.cogs.word_count import WordCount

__all__ = ["WordCount"]
