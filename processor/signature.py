"""Title-based identity keys for cross-source event matching."""
import hashlib
import re

_NON_WORD = re.compile(r'[^\w\s]', re.ASCII)
_CLOCK_TIME = re.compile(r'\b\d{1,2}:\d{2}\b', re.ASCII)
_WHITESPACE = re.compile(r'\s+', re.ASCII)


def normalize_title(title: str) -> str:
    """
    Normalize a title for matching.

    Lowercases, drops punctuation, removes H:MM / HH:MM substrings and
    collapses whitespace. Word characters are ASCII only, so letters
    such as "ł" or "ó" are dropped along with punctuation.

    Args:
        title: Event title as scraped

    Returns:
        Normalized title string
    """
    text = (title or '').lower()
    text = _NON_WORD.sub('', text)
    text = _CLOCK_TIME.sub('', text)
    text = _WHITESPACE.sub(' ', text)
    return text.strip()


def generate_signature(title: str) -> str:
    """
    Generate the identity key for an event title.

    Two titles that normalize to the same string share a signature,
    even if they describe different real-world events.

    Args:
        title: Event title

    Returns:
        32 character hex digest of the normalized title
    """
    return hashlib.md5(normalize_title(title).encode('utf-8')).hexdigest()
