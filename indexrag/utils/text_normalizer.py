"""Text normalization utilities for the ingestion path.

Two concerns live here:

1. **Markdown stripping** -- removes structural markup (headings, emphasis,
   code fences, links, images, list and quote markers) so embeddings capture
   content rather than formatting.  Chunk offsets refer to the stripped text.

2. **Content hashing** -- a deterministic SHA-256 digest of document content,
   used to detect stale chunks and stale cached artifacts.
"""

import hashlib
import re

# ------------------------------------------------------------------
# Markdown stripping
# ------------------------------------------------------------------
# Patterns are applied in order.  Images run before links because the
# link pattern would otherwise keep the image alt text.

_FENCED_CODE = re.compile(r"^```[^\n]*\n(.*?)^```[ \t]*$", re.MULTILINE | re.DOTALL)
_HEADING = re.compile(r"^#{1,6}\s+", re.MULTILINE)
_BOLD_ITALIC = re.compile(r"\*\*\*(.+?)\*\*\*")
_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ITALIC = re.compile(r"\*(.+?)\*")
_BOLD_UNDERSCORE = re.compile(r"__(.+?)__")
# Word-boundary guard so snake_case identifiers survive.
_ITALIC_UNDERSCORE = re.compile(r"(?<!\w)_(.+?)_(?!\w)")
_INLINE_CODE = re.compile(r"`(.+?)`")
_IMAGE = re.compile(r"!\[.*?\]\(.+?\)")
_LINK = re.compile(r"\[(.+?)\]\(.+?\)")
_BULLET = re.compile(r"^[ \t]*[\*\-\+]\s+", re.MULTILINE)
_NUMBERED = re.compile(r"^[ \t]*\d+\.\s+", re.MULTILINE)
_BLOCKQUOTE = re.compile(r"^>\s?", re.MULTILINE)
_MULTI_NEWLINE = re.compile(r"\n{3,}")


def strip_markdown(text: str) -> str:
    """Return *text* with markdown syntax removed.

    Args:
        text: Raw markdown (or plain) text.

    Returns:
        Plain text suitable for chunking.  Empty input returns ``""``.
    """
    if not text:
        return ""

    plain = _FENCED_CODE.sub(r"\1", text)
    plain = _HEADING.sub("", plain)
    plain = _BOLD_ITALIC.sub(r"\1", plain)
    plain = _BOLD.sub(r"\1", plain)
    plain = _ITALIC.sub(r"\1", plain)
    plain = _BOLD_UNDERSCORE.sub(r"\1", plain)
    plain = _ITALIC_UNDERSCORE.sub(r"\1", plain)
    plain = _INLINE_CODE.sub(r"\1", plain)
    plain = _IMAGE.sub("", plain)
    plain = _LINK.sub(r"\1", plain)
    plain = _BULLET.sub("", plain)
    plain = _NUMBERED.sub("", plain)
    plain = _BLOCKQUOTE.sub("", plain)
    plain = _MULTI_NEWLINE.sub("\n\n", plain)

    return plain


# ------------------------------------------------------------------
# Content hashing
# ------------------------------------------------------------------


def content_hash(text: str) -> str:
    """Return the SHA-256 hex digest of *text* (UTF-8 encoded)."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
