"""Context assembly for retrieval-augmented answers.

Turns a list of :class:`~indexrag.models.rag.SearchResult` objects into a
single context string that fits the generation model's window.

Two paths:

- **Direct** -- up to ``direct_max_results`` results are formatted as
  numbered ``[Source i]`` blocks, each excerpt cut to
  ``max_chars_per_result`` characters.
- **Hierarchical** -- larger result sets are summarized in batches of
  ``batch_size`` (one LLM call per batch, each over that batch's bounded
  direct context), the summaries are joined as ``[Section i]`` blocks, and
  one consolidation call runs if the join is still too long.

Every path returns at most ``max_context_chars`` characters, the
truncation marker included.
"""

from __future__ import annotations

import structlog

from indexrag.interfaces.llm_provider import ILLMProvider
from indexrag.models.rag import SearchResult
from indexrag.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

TRUNCATION_MARKER = "\n\n[Context truncated...]"
BLOCK_SEPARATOR = "\n\n---\n\n"

_SUMMARY_SYSTEM_PROMPT = (
    "You condense excerpts from a user's personal notes. "
    "Keep names, numbers, dates and other concrete facts. "
    "Do not add information that is not in the excerpts."
)


def truncate_context(context: str, max_chars: int) -> str:
    """Cap *context* at *max_chars* characters, marker included."""
    if len(context) <= max_chars:
        return context
    keep = max(0, max_chars - len(TRUNCATION_MARKER))
    return (context[:keep] + TRUNCATION_MARKER)[:max_chars]


class ContextBuilder:
    """Builds bounded LLM context from search results.

    Parameters
    ----------
    llm:
        Provider used for batch summaries and the consolidation pass.
    max_chars_per_result:
        Excerpt limit on the direct path (default 800).
    max_context_chars:
        Ceiling for the returned context (default 2400).
    direct_max_results:
        Largest result count handled without summarization (default 5).
    batch_size:
        Results per summarization call on the hierarchical path (default 3).
    """

    def __init__(
        self,
        llm: ILLMProvider,
        max_chars_per_result: int = 800,
        max_context_chars: int = 2400,
        direct_max_results: int = 5,
        batch_size: int = 3,
    ) -> None:
        self._llm = llm
        self._max_chars_per_result = max_chars_per_result
        self._max_context_chars = max_context_chars
        self._direct_max_results = direct_max_results
        self._batch_size = max(1, batch_size)

    @property
    def max_context_chars(self) -> int:
        return self._max_context_chars

    async def build(self, results: list[SearchResult], question: str) -> str:
        """Return context for *results*, summarizing when there are too many."""
        if len(results) <= self._direct_max_results:
            return self.build_direct(results)
        logger.info(
            "context_summarization_started",
            results=len(results),
            batch_size=self._batch_size,
        )
        return await self._build_hierarchical(results, question)

    def build_direct(self, results: list[SearchResult]) -> str:
        """Format *results* as ``[Source i]`` blocks without calling the LLM."""
        blocks: list[str] = []
        for index, result in enumerate(results, start=1):
            content = result.content
            if len(content) > self._max_chars_per_result:
                content = content[: self._max_chars_per_result] + "..."
            blocks.append(f"[Source {index}]\n{content}{BLOCK_SEPARATOR}")
        return truncate_context("".join(blocks), self._max_context_chars)

    # ------------------------------------------------------------------
    # Hierarchical summarization
    # ------------------------------------------------------------------

    async def _build_hierarchical(self, results: list[SearchResult], question: str) -> str:
        summaries: list[str] = []
        for start in range(0, len(results), self._batch_size):
            batch = results[start : start + self._batch_size]
            batch_context = self.build_direct(batch)
            prompt = (
                "Summarize the following excerpts from notes, focusing on information "
                f'relevant to: "{question}"\n\n'
                "Be concise but preserve key facts and details.\n\n"
                f"{batch_context}"
            )
            summary = await self._llm.complete(_SUMMARY_SYSTEM_PROMPT, prompt)
            summaries.append(summary)
            logger.debug(
                "context_batch_summarized",
                batch=start // self._batch_size + 1,
                chunks=len(batch),
                summary_chars=len(summary),
            )

        if len(summaries) == 1:
            return truncate_context(summaries[0], self._max_context_chars)

        combined = BLOCK_SEPARATOR.join(
            f"[Section {i}]\n{summary}" for i, summary in enumerate(summaries, start=1)
        )
        if len(combined) > self._max_context_chars:
            logger.info("context_consolidation_pass", combined_chars=len(combined))
            prompt = (
                "Consolidate these summaries into a single coherent summary relevant to: "
                f'"{question}"\n\n{combined}'
            )
            combined = await self._llm.complete(_SUMMARY_SYSTEM_PROMPT, prompt)

        return truncate_context(combined, self._max_context_chars)
