"""Preset-driven document transformation (summaries, articles, flashcards).

Content that fits the generation budget (2400 characters) is transformed in
a single call.  Larger content, or content the model rejects as too long,
is split at sentence boundaries and transformed part by part.  Each part's
prompt carries a short summary of the previous part's output plus position
hints so the parts read as one document; the outputs are joined with blank
lines.

Results are cached in the :class:`ArtifactCache` under
``"<document id>:<preset id>"`` together with the source content hash, so a
lookup after the document changes is a miss.
"""

from __future__ import annotations

import re

import structlog

from indexrag.interfaces.cache_provider import IArtifactCache
from indexrag.interfaces.llm_provider import ILLMProvider
from indexrag.models.document import Document
from indexrag.models.pipeline import TaskType
from indexrag.models.transformation import TransformationPreset, TransformationResult
from indexrag.pipeline.progress_tracker import TaskRegistry
from indexrag.services.ingestion.chunker import split_sentences
from indexrag.utils.errors import ContextWindowExceededError, EmptyContentError
from indexrag.utils.logging import get_logger
from indexrag.utils.text_normalizer import content_hash

logger: structlog.BoundLogger = get_logger(__name__)

_SUMMARY_SENTENCE_RE = re.compile(r"[.!?]")


def summarize_for_context(text: str, max_length: int = 150) -> str:
    """Return up to the first three sentences of *text* within *max_length* chars."""
    summary = ""
    for sentence in _SUMMARY_SENTENCE_RE.split(text)[:3]:
        trimmed = sentence.strip()
        if not trimmed:
            continue
        if len(summary) + len(trimmed) > max_length:
            break
        summary += trimmed + ". "
    return summary.strip()


def split_for_transformation(content: str, max_chars: int) -> list[str]:
    """Pack sentences into parts of at most *max_chars* characters.

    A single sentence longer than *max_chars* becomes its own part.
    """
    parts: list[str] = []
    current = ""
    for raw in split_sentences(content):
        sentence = raw.strip()
        if not sentence:
            continue
        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) > max_chars and current:
            parts.append(current)
            current = sentence
        else:
            current = candidate
    if current:
        parts.append(current)
    return parts or [content]


def build_part_prompt(
    base_prompt: str,
    part: str,
    previous_context: str,
    part_number: int,
    total_parts: int,
) -> str:
    """Assemble the standalone prompt for one part of a multi-part run."""
    prompt = ""
    if previous_context:
        prompt += f"Context from previous section: {previous_context}\n\n"

    is_last = part_number == total_parts
    if total_parts > 1:
        if part_number == 1:
            prompt += f"This is the first section of a {total_parts}-part document.\n\n"
        elif is_last:
            prompt += f"This is the final section (part {part_number} of {total_parts}).\n\n"
        else:
            prompt += f"This is section {part_number} of {total_parts}.\n\n"

    prompt += f"{base_prompt}\n\nContent to transform:\n{part}\n\n"

    if total_parts > 1:
        if not is_last:
            prompt += (
                "Note: Continue from where you left off. "
                "More content will follow in the next section."
            )
        else:
            prompt += (
                "Note: This is the final section. "
                "Provide a concluding summary if appropriate."
            )
    return prompt


class TransformationService:
    """Rewrites documents according to a :class:`TransformationPreset`.

    Parameters
    ----------
    llm:
        Generation service.
    cache:
        Artifact cache for finished transformations.
    task_registry:
        Optional registry; when given, each run shows up as a
        ``summary_generation`` task with per-part progress.
    max_chars_per_part:
        Generation budget for one call's content (default 2400).
    """

    def __init__(
        self,
        llm: ILLMProvider,
        cache: IArtifactCache,
        task_registry: TaskRegistry | None = None,
        max_chars_per_part: int = 2400,
    ) -> None:
        self._llm = llm
        self._cache = cache
        self._tasks = task_registry
        self._max_chars = max_chars_per_part

    @staticmethod
    def cache_key(document_id: str, preset_id: str) -> str:
        return f"{document_id}:{preset_id}"

    @staticmethod
    def needs_regeneration(result: TransformationResult | None, current_hash: str) -> bool:
        """Return ``True`` if *result* was not derived from content with *current_hash*."""
        if result is None or not result.created_from_hash:
            return True
        return result.created_from_hash != current_hash

    async def transform(
        self,
        document: Document,
        preset: TransformationPreset,
        force: bool = False,
    ) -> TransformationResult:
        """Transform *document* with *preset*, serving a cached result when valid.

        Raises
        ------
        EmptyContentError
            If the document has no non-whitespace content.
        LLMError
            If a generation call fails for a reason other than length.
        """
        content = document.content
        if not content.strip():
            raise EmptyContentError(
                message=f"Cannot transform empty document: {document.title}",
                provider_name="transformation",
            )

        digest = content_hash(content)
        key = self.cache_key(document.id, preset.id)
        if not force:
            cached = self._cache.get(key, digest)
            if cached is not None:
                logger.debug("transformation_cache_hit", document_id=document.id, preset=preset.id)
                return cached.model_copy(update={"from_cache": True})

        task_id = f"transform:{key}"
        if self._tasks is not None:
            await self._tasks.add_task(
                task_id, f"{preset.name}: {document.title}", TaskType.SUMMARY_GENERATION
            )
        logger.info(
            "transformation_started",
            document_id=document.id,
            preset=preset.id,
            content_chars=len(content),
        )
        try:
            text, parts = await self._generate(task_id, content, preset)
        finally:
            if self._tasks is not None:
                await self._tasks.complete_task(task_id)

        result = TransformationResult(
            document_id=document.id,
            preset_id=preset.id,
            content=text,
            created_from_hash=digest,
            parts=parts,
        )
        self._cache.put(key, result, digest)
        logger.info(
            "transformation_complete",
            document_id=document.id,
            preset=preset.id,
            parts=parts,
            output_chars=len(text),
        )
        return result

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def _generate(
        self, task_id: str, content: str, preset: TransformationPreset
    ) -> tuple[str, int]:
        if len(content) <= self._max_chars:
            await self._report(task_id, 1, 1, "Transforming...")
            try:
                text = await self._llm.complete(
                    preset.system_prompt, f"Content to transform:\n{content}"
                )
                return text, 1
            except ContextWindowExceededError:
                logger.warning("transformation_single_pass_too_large", chars=len(content))

        return await self._generate_parts(task_id, content, preset)

    async def _generate_parts(
        self, task_id: str, content: str, preset: TransformationPreset
    ) -> tuple[str, int]:
        parts = split_for_transformation(content, self._max_chars)
        total = len(parts)
        outputs: list[str] = []
        previous_context = ""

        for number, part in enumerate(parts, start=1):
            await self._report(task_id, number, total, f"Processing part {number}/{total}...")
            prompt = build_part_prompt(
                preset.system_prompt, part, previous_context, number, total
            )
            # Each part is a standalone call so no history accumulates.
            output = await self._llm.complete("", prompt)
            outputs.append(output)
            previous_context = summarize_for_context(output)
            logger.debug("transformation_part_complete", part=number, total=total)

        return "\n\n".join(outputs), total

    async def _report(self, task_id: str, current: int, total: int, status: str) -> None:
        if self._tasks is not None:
            await self._tasks.update_progress(task_id, current, total, status)
