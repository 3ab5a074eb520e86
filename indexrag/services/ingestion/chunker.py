"""Sentence-aligned text chunking with word overlap.

Splits a document's plain text into :class:`~indexrag.models.document.Chunk`
objects sized for embedding models (512 characters by default).

The chunking strategy has two goals:

1. **Sentence-preserving** -- chunk boundaries fall between sentences, so a
   chunk never starts or ends mid-thought.  Sentence detection is a regex
   splitter that ignores periods after common abbreviations ("Dr.", "vs.")
   and inside decimal numbers.

2. **Overlapping windows** -- every chunk after the first is seeded with
   the last few words of the previous chunk, so a concept spanning a
   boundary is retrievable from at least one chunk.

A single sentence longer than ``chunk_size`` becomes its own oversized chunk
rather than being cut mid-sentence.
"""

from __future__ import annotations

import re

import structlog

from indexrag.models.document import Chunk

logger = structlog.get_logger(logger_name=__name__)

# Common abbreviations that should NOT trigger a sentence split.
# "Dr. Smith" should remain one sentence, not split at the period.
_ABBREVIATIONS = frozenset(
    {
        "Dr",
        "Mr",
        "Mrs",
        "Ms",
        "Prof",
        "Jr",
        "Sr",
        "St",
        "Ave",
        "Blvd",
        "Vol",
        "No",
        "vs",
        "etc",
        "approx",
        "dept",
        "est",
        "govt",
        "inc",
        "ltd",
        "co",
        "ft",
        "e.g",
        "i.e",
    }
)

_ABBREVIATION_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(a) for a in sorted(_ABBREVIATIONS, key=len, reverse=True)) + r")\."
)

# Terminal punctuation, optional closing quotes/brackets, then whitespace.
# The whitespace belongs to the sentence so that joining sentences
# reproduces the input exactly.
_SENTENCE_END_RE = re.compile(r"[.!?]+[\"')\]]*(?:\s+|$)")

# Words per overlap = overlap_size // 6 (roughly six characters per word).
_CHARS_PER_WORD = 6
_WORD_RE = re.compile(r"\S+")


def split_sentences(text: str) -> list[str]:
    """Split *text* into raw sentence spans whose concatenation equals *text*.

    Periods after known abbreviations are masked before matching (replaced
    with ``\\x00`` so indices stay aligned with the original).  A period
    with no whitespace after it, as in ``3.14``, never ends a sentence.
    """
    masked = _ABBREVIATION_RE.sub(lambda m: m.group(0)[:-1] + "\x00", text)

    sentences: list[str] = []
    last = 0
    for match in _SENTENCE_END_RE.finditer(masked):
        end = match.end()
        if end > last:
            sentences.append(text[last:end])
            last = end

    # Trailing text that didn't end with punctuation.
    if last < len(text):
        sentences.append(text[last:])

    return sentences


class TextChunker:
    """Packs sentences into overlapping chunks of at most ``chunk_size`` characters.

    Parameters
    ----------
    chunk_size:
        Target maximum character count per chunk (default 512).
    overlap_size:
        Overlap budget in characters (default 50).  Converted to a word count
        of ``overlap_size // 6`` carried over from the previous chunk.
    """

    def __init__(self, chunk_size: int = 512, overlap_size: int = 50) -> None:
        if chunk_size <= 0:
            msg = f"chunk_size must be positive, got {chunk_size}"
            raise ValueError(msg)
        if overlap_size < 0:
            msg = f"overlap_size must be non-negative, got {overlap_size}"
            raise ValueError(msg)
        self._chunk_size = chunk_size
        self._overlap_size = overlap_size

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap_size(self) -> int:
        return self._overlap_size

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str, document_id: str) -> list[Chunk]:
        """Split *text* into :class:`Chunk` objects for *document_id*.

        Returns
        -------
        list[Chunk]
            Chunks in order with consecutive ``chunk_index`` values starting
            at 0.  Empty or whitespace-only input returns an empty list.
        """
        if not text or not text.strip():
            return []

        chunks: list[Chunk] = []
        current = ""
        start_offset = 0

        for sentence in split_sentences(text):
            if len(current) + len(sentence) > self._chunk_size and current:
                end_offset = start_offset + len(current)
                self._append(chunks, document_id, current, start_offset, end_offset)

                overlap = self._overlap(current)
                current = overlap + sentence
                start_offset = max(start_offset, end_offset - len(overlap))
            else:
                current += sentence

        if current:
            self._append(chunks, document_id, current, start_offset, start_offset + len(current))

        logger.debug(
            "chunking_complete",
            document_id=document_id,
            num_chunks=len(chunks),
            text_length=len(text),
        )
        return chunks

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _overlap(self, text: str) -> str:
        """Return *text* from the start of its last ``overlap_size // 6`` words.

        The tail is sliced, not rebuilt from split words, so its whitespace
        matches the source and chunk offsets stay exact.
        """
        count = self._overlap_size // _CHARS_PER_WORD
        if count == 0:
            return ""
        starts = [match.start() for match in _WORD_RE.finditer(text)]
        if not starts:
            return ""
        return text[starts[-min(count, len(starts))] :]

    @staticmethod
    def _append(
        chunks: list[Chunk],
        document_id: str,
        raw: str,
        start_offset: int,
        end_offset: int,
    ) -> None:
        content = raw.strip()
        if not content:
            return
        chunks.append(
            Chunk(
                document_id=document_id,
                chunk_index=len(chunks),
                content=content,
                start_offset=start_offset,
                end_offset=end_offset,
            )
        )
