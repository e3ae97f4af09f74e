import re

import httpx
import structlog

from chatcount.counting.store import ChatMessage

logger = structlog.get_logger()

DEFAULT_TIMEOUT = 30.0
DEFAULT_HEADER_PATTERN = r"^SPEECH \d+"


class CorpusFetchError(Exception):
    pass


def parse_corpus(
    text: str,
    author_name: str,
    header_pattern: str | re.Pattern[str] = DEFAULT_HEADER_PATTERN,
) -> list[ChatMessage]:
    """Turn a line-oriented corpus into messages from a single bot author.

    Empty lines and header lines are dropped.
    """
    header_re = re.compile(header_pattern) if isinstance(header_pattern, str) else header_pattern

    messages = []
    for line in text.splitlines():
        if not line or header_re.match(line):
            continue
        messages.append(ChatMessage(content=line, author_name=author_name, author_is_bot=True))
    return messages


class CorpusFetcher:
    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._client = http_client
        self._owns_client = http_client is None
        self._timeout = timeout

    async def fetch(self, url: str) -> str:
        client = None
        try:
            client = self._client or httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
            )
            response = await client.get(url)
            response.raise_for_status()
            return response.text

        except httpx.HTTPStatusError as e:
            logger.warning("HTTP error fetching corpus", url=url, status=e.response.status_code)
            raise CorpusFetchError(f"Failed to fetch corpus: HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.warning("Request error fetching corpus", url=url, error=str(e))
            raise CorpusFetchError(f"Failed to fetch corpus: {e}") from e
        finally:
            if self._owns_client and client is not None:
                await client.aclose()

    async def fetch_messages(
        self,
        url: str,
        author_name: str,
        header_pattern: str = DEFAULT_HEADER_PATTERN,
    ) -> list[ChatMessage]:
        logger.info("Building corpus", url=url, author=author_name)
        text = await self.fetch(url)
        messages = parse_corpus(text, author_name, header_pattern)
        logger.info("Corpus built", author=author_name, lines=len(messages))
        return messages
