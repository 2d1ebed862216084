"""Input sanitization for usernames and chat messages.

Markup is parsed with BeautifulSoup rather than matched with patterns, so a
``<`` or ``>`` that does not open a tag (``a < b``, ``x<3``) stays in the
text. Both sanitizers are idempotent: running one twice gives the same result
as running it once. Usernames end up restricted to ``[a-z0-9_]``; messages
keep their text but lose markup and control characters.
"""

import re
import warnings

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

# Chat text that looks like a URL or file name is still text
warnings.filterwarnings("ignore", category=MarkupResemblesLocatorWarning)

# Elements removed together with their content
_DANGEROUS_TAGS = ("script", "style", "iframe", "object", "embed", "template", "noscript")
_USER_NAME_DISALLOWED_RE = re.compile(r"[^a-z0-9_]")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")


def _text_content(text: str) -> str:
    """One parse: drop dangerous elements, return the remaining text nodes."""
    soup = BeautifulSoup(text, "html.parser")
    for element in soup.find_all(_DANGEROUS_TAGS):
        element.decompose()
    return soup.get_text()


def strip_markup(text: str) -> str:
    """Remove HTML elements, keeping their text except for script-like elements.

    Entities decode to characters that may form markup again
    (``&lt;script&gt;``), so parsing repeats until the text is stable.
    """
    previous = None
    while previous != text:
        previous = text
        text = _text_content(text)
    return text


def sanitize_user_name(raw: str | None) -> str:
    """Normalize a candidate username for storage and lookup.

    Steps: strip markup, lower-case, drop every character outside
    ``[a-z0-9_]``.

    Examples:
        >>> sanitize_user_name("Valid_Name")
        'valid_name'
        >>> sanitize_user_name("<b>bob</b>by!")
        'bobby'
    """
    if not raw:
        return ""
    return _USER_NAME_DISALLOWED_RE.sub("", strip_markup(raw).lower())


def _clean_message_once(text: str, max_chars: int) -> str:
    text = strip_markup(text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _CONTROL_CHARS_RE.sub("", text)
    return text.strip()[:max_chars].strip()


def sanitize_message_text(raw: str | None, max_chars: int = 1999) -> str:
    """Clean a chat message before it is handed to the transport.

    Args:
        raw: Text typed by the user.
        max_chars: Length cap applied after cleaning.

    Returns:
        Text without markup or control characters (newlines and tabs are
        kept), trimmed and truncated to ``max_chars``.
    """
    if not raw:
        return ""
    # Truncation can cut an entity or tag in half, so clean until stable
    previous = None
    text = raw
    while previous != text:
        previous = text
        text = _clean_message_once(text, max_chars)
    return text
