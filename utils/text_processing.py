import unicodedata
import re
from typing import Any, Iterable, List

HASHTAG_PATTERN = re.compile(r'#\w+')
WHITESPACE_PATTERN = re.compile(r'\s+')

# Unicode categories removed by normalize_text: punctuation, symbols, numbers
_STRIPPED_CATEGORIES = ('P', 'S', 'N')

def _strip_character(char: str) -> str:
    if unicodedata.category(char)[0] in _STRIPPED_CATEGORIES:
        return ' '
    return char

def normalize_text(text: Any) -> str:
    """
    Normalize raw abstract text for tokenization.

    Removes hashtag tokens, replaces punctuation, symbol and digit characters
    with spaces, collapses whitespace runs and trims the result. Applying it
    twice gives the same output as applying it once.

    Args:
        text: Raw text. Anything that is not a string normalizes to "".

    Returns:
        str: Normalized text
    """
    if not isinstance(text, str):
        return ''
    text = HASHTAG_PATTERN.sub(' ', text)
    text = ''.join(_strip_character(char) for char in text)
    return clean_text(text)

def normalize_texts(texts: Iterable[Any]) -> List[str]:
    """Normalize a batch of texts, preserving order."""
    return [normalize_text(text) for text in texts]

def clean_text(text: str) -> str:
    """
    Clean text by collapsing whitespace runs into single spaces.

    Args:
        text (str): Input text to clean

    Returns:
        str: Cleaned text
    """
    # Replace multiple spaces (and line breaks) with single space
    text = WHITESPACE_PATTERN.sub(' ', text)
    # Remove leading/trailing whitespace
    return text.strip()

def truncate_text(text: str, max_length: int = 100, ellipsis: str = '...') -> str:
    """
    Truncate text to specified length while preserving word boundaries.

    Args:
        text (str): Input text to truncate
        max_length (int): Maximum length of output text
        ellipsis (str): String to append to truncated text

    Returns:
        str: Truncated text
    """
    if len(text) <= max_length:
        return text

    truncated = text[:max_length]
    # Find last space to preserve word boundary
    last_space = truncated.rfind(' ')
    if last_space > 0:
        truncated = truncated[:last_space]
    return truncated + ellipsis
