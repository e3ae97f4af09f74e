import re

URL_RE = re.compile(
    r"https?://(www\.)?[-a-zA-Z0-9@:%._+~#=]{2,256}\.[a-z]{2,6}\b([-a-zA-Z0-9@:%_+.~#?&/=]*)"
)
PUNCTUATION_RE = re.compile(r"[`\[\]{}()?!'\",.&]")
_LINE_BREAK_RE = re.compile(r"[\r\n\t]")

COMMAND_PREFIX = "!"


def sanitize_message(text: str) -> str:
    """Lowercase a raw message and blank out anything URL-shaped."""
    text = text.lower()
    text = URL_RE.sub(" ", text)
    return _LINE_BREAK_RE.sub(" ", text)


def sanitize_word(word: str) -> str:
    word = word.lower()
    word = PUNCTUATION_RE.sub(" ", word)
    return word.strip(" ")


def tokenize(text: str) -> list[str]:
    """Split sanitized text on single spaces.

    Consecutive separators yield empty tokens; callers skip them.
    """
    if not text:
        return []
    return text.split(" ")


def is_command(content: str, prefix: str = COMMAND_PREFIX) -> bool:
    return content.startswith(prefix)
