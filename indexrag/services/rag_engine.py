"""Retrieval-augmented question answering over indexed documents.

Query flow:
  1. AVAILABILITY -- The generation service must report available and the
                     embedding store must be initialized; otherwise
                     :class:`BackendUnavailableError` carries the reason.
  2. RETRIEVE     -- Similarity search (10 results, threshold 0.7).  No
                     results raises :class:`NoRelevantDocumentsError`
                     before any generation call.
  3. CONTEXT      -- :class:`ContextBuilder` formats or summarizes the
                     results into a bounded context string.
  4. GENERATE     -- The answer is streamed; every delta yields a
                     :class:`RAGResponse` holding the accumulated text,
                     followed by one final ``is_complete=True`` response.

Sources attached to every response describe the original search results,
not the summarized context.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import structlog

from indexrag.interfaces.llm_provider import ILLMProvider
from indexrag.interfaces.vector_store_provider import IVectorStoreProvider
from indexrag.models.rag import RAGResponse, Source
from indexrag.services.context_builder import ContextBuilder
from indexrag.utils.errors import BackendUnavailableError, NoRelevantDocumentsError
from indexrag.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)


class RAGEngine:
    """Answers questions from the embedding store using an LLM.

    Parameters
    ----------
    llm:
        Generation service used for streaming answers (and, through the
        default context builder, for summaries).
    vector_store:
        Embedding store searched for relevant chunks.
    context_builder:
        Optional pre-configured builder; one with default limits is created
        around *llm* when omitted.
    num_results:
        Number of results requested from the store.
    threshold:
        Minimum similarity score for a result to be used.
    """

    _SYSTEM_PROMPT = (
        "You are a helpful assistant for a personal knowledge management system.\n"
        "Answer questions based on the provided context from the user's documents.\n"
        "Always cite your sources by mentioning the document title.\n"
        "Be concise but thorough. If the context doesn't contain enough information, say so."
    )

    def __init__(
        self,
        llm: ILLMProvider,
        vector_store: IVectorStoreProvider,
        context_builder: ContextBuilder | None = None,
        num_results: int = 10,
        threshold: float = 0.7,
    ) -> None:
        self._llm = llm
        self._vector_store = vector_store
        self._context_builder = context_builder or ContextBuilder(llm)
        self._num_results = num_results
        self._threshold = threshold

    async def query(self, question: str) -> AsyncIterator[RAGResponse]:
        """Stream an answer to *question*.

        Raises
        ------
        BackendUnavailableError
            If the generation service or the embedding store is not usable.
        NoRelevantDocumentsError
            If no stored chunk clears the similarity threshold.
        """
        availability = await self._llm.check_availability()
        if not availability.available:
            logger.warning(
                "rag_llm_unavailable",
                provider=self._llm.get_provider_name(),
                reason=availability.reason,
            )
            raise BackendUnavailableError(
                message=f"Language model is not available: {availability.reason}",
                provider_name=self._llm.get_provider_name(),
            )
        if not self._vector_store.is_initialized():
            raise BackendUnavailableError(
                message="Vector store is not initialized; embeddings may not be available",
                provider_name=self._vector_store.get_provider_name(),
            )

        results = await self._vector_store.search(
            question,
            num_results=self._num_results,
            threshold=self._threshold,
        )
        logger.info(
            "rag_search_complete",
            question_length=len(question),
            results=len(results),
            top_score=results[0].score if results else 0.0,
        )
        if not results:
            raise NoRelevantDocumentsError(provider_name=self._vector_store.get_provider_name())

        context = await self._context_builder.build(results, question)
        logger.debug("rag_context_built", context_chars=len(context))

        prompt = (
            "Based on the following excerpts from my notes:\n\n"
            f"{context}\n\n"
            f"Question: {question}\n\n"
            "Please provide a helpful answer based on the context above."
        )
        sources = [Source.from_result(r) for r in results]

        answer = ""
        async for delta in self._llm.stream_complete(self._SYSTEM_PROMPT, prompt):
            answer += delta
            yield RAGResponse(partial_answer=answer, is_complete=False, sources=sources)

        logger.info("rag_query_complete", answer_chars=len(answer), sources=len(sources))
        yield RAGResponse(partial_answer=answer, is_complete=True, sources=sources)

    async def answer(self, question: str) -> RAGResponse:
        """Run :meth:`query` to completion and return the final response."""
        final = RAGResponse(is_complete=True)
        async for response in self.query(question):
            final = response
        return final
