"""Unit tests for TransformationService and its prompt helpers."""

from __future__ import annotations

import pytest

from indexrag.models.pipeline import TaskType
from indexrag.models.transformation import get_preset
from indexrag.pipeline.progress_tracker import TaskRegistry
from indexrag.providers.cache.artifact_cache import ArtifactCache
from indexrag.services.transformation_service import (
    TransformationService,
    build_part_prompt,
    split_for_transformation,
    summarize_for_context,
)
from indexrag.utils.errors import ContextWindowExceededError, EmptyContentError, LLMError
from tests.conftest import ScriptedLLM, make_document

SUMMARY = get_preset("executive_summary")


def _long_content(sentences: int = 60) -> str:
    return " ".join(f"Sentence number {i} talks about the garden plan." for i in range(sentences))


@pytest.fixture
def cache() -> ArtifactCache:
    return ArtifactCache(capacity=10, eviction_batch=2)


@pytest.fixture
def service(llm: ScriptedLLM, cache: ArtifactCache) -> TransformationService:
    return TransformationService(llm=llm, cache=cache)


# ======================================================================
# Helpers
# ======================================================================


class TestSummarizeForContext:
    def test_first_three_sentences(self) -> None:
        text = "One. Two! Three? Four."
        assert summarize_for_context(text) == "One. Two. Three."

    def test_respects_max_length(self) -> None:
        text = "A" * 100 + ". " + "B" * 100 + "."
        assert summarize_for_context(text) == "A" * 100 + "."

    def test_empty(self) -> None:
        assert summarize_for_context("") == ""


class TestSplitForTransformation:
    def test_short_content_single_part(self) -> None:
        assert split_for_transformation("One. Two.", 100) == ["One. Two."]

    def test_parts_respect_limit(self) -> None:
        parts = split_for_transformation(_long_content(), 400)
        assert len(parts) > 1
        assert all(len(p) <= 400 for p in parts)

    def test_oversize_sentence_is_own_part(self) -> None:
        long_sentence = "word " * 100
        parts = split_for_transformation(f"Short one. {long_sentence.strip()}.", 50)
        assert parts[0] == "Short one."
        assert len(parts) == 2


class TestBuildPartPrompt:
    def test_single_part_has_no_position_hints(self) -> None:
        prompt = build_part_prompt("Summarize.", "body", "", 1, 1)
        assert prompt == "Summarize.\n\nContent to transform:\nbody\n\n"

    def test_first_of_many(self) -> None:
        prompt = build_part_prompt("Summarize.", "body", "", 1, 3)
        assert prompt.startswith("This is the first section of a 3-part document.")
        assert "More content will follow in the next section." in prompt

    def test_middle_carries_previous_context(self) -> None:
        prompt = build_part_prompt("Summarize.", "body", "Earlier facts.", 2, 3)
        assert prompt.startswith("Context from previous section: Earlier facts.\n\n")
        assert "This is section 2 of 3." in prompt

    def test_last_part(self) -> None:
        prompt = build_part_prompt("Summarize.", "body", "ctx", 3, 3)
        assert "This is the final section (part 3 of 3)." in prompt
        assert "Provide a concluding summary if appropriate." in prompt


# ======================================================================
# transform()
# ======================================================================


class TestTransform:
    @pytest.mark.asyncio
    async def test_empty_content_rejected(self, service: TransformationService) -> None:
        with pytest.raises(EmptyContentError):
            await service.transform(make_document(content="   \n"), SUMMARY)

    @pytest.mark.asyncio
    async def test_single_pass_uses_preset_prompt(
        self, service: TransformationService, llm: ScriptedLLM
    ) -> None:
        document = make_document(content="Tomatoes need sun.")
        result = await service.transform(document, SUMMARY)

        assert result.content == "summary"
        assert result.parts == 1
        assert result.from_cache is False
        system, user = llm.complete_calls[0]
        assert system == SUMMARY.system_prompt
        assert user == "Content to transform:\nTomatoes need sun."

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(
        self, service: TransformationService, llm: ScriptedLLM
    ) -> None:
        document = make_document(content="Tomatoes need sun.")
        await service.transform(document, SUMMARY)
        result = await service.transform(document, SUMMARY)

        assert result.from_cache is True
        assert len(llm.complete_calls) == 1

    @pytest.mark.asyncio
    async def test_force_bypasses_cache(
        self, service: TransformationService, llm: ScriptedLLM
    ) -> None:
        document = make_document(content="Tomatoes need sun.")
        await service.transform(document, SUMMARY)
        await service.transform(document, SUMMARY, force=True)
        assert len(llm.complete_calls) == 2

    @pytest.mark.asyncio
    async def test_edited_document_regenerates(
        self, service: TransformationService, llm: ScriptedLLM
    ) -> None:
        document = make_document(content="Tomatoes need sun.")
        first = await service.transform(document, SUMMARY)
        edited = document.model_copy(update={"content": "Tomatoes need water."})
        second = await service.transform(edited, SUMMARY)

        assert len(llm.complete_calls) == 2
        assert second.from_cache is False
        assert second.created_from_hash != first.created_from_hash

    @pytest.mark.asyncio
    async def test_context_window_error_falls_back_to_parts(self, cache: ArtifactCache) -> None:
        llm = ScriptedLLM(responses=[ContextWindowExceededError(), "part output"])
        service = TransformationService(llm=llm, cache=cache)

        result = await service.transform(make_document(content="Short. Content."), SUMMARY)

        assert result.content == "part output"
        assert result.parts == 1
        system, prompt = llm.complete_calls[1]
        assert system == ""
        assert prompt.startswith(SUMMARY.system_prompt)

    @pytest.mark.asyncio
    async def test_long_content_split_and_joined(self, cache: ArtifactCache) -> None:
        llm = ScriptedLLM(default_response="Part done. More text.")
        service = TransformationService(llm=llm, cache=cache, max_chars_per_part=400)

        result = await service.transform(make_document(content=_long_content()), SUMMARY)

        assert result.parts == len(llm.complete_calls)
        assert result.parts > 1
        assert result.content == "\n\n".join(["Part done. More text."] * result.parts)
        _, second_prompt = llm.complete_calls[1]
        assert second_prompt.startswith("Context from previous section: Part done. More text.")

    @pytest.mark.asyncio
    async def test_other_llm_errors_propagate(self, cache: ArtifactCache) -> None:
        llm = ScriptedLLM(responses=[LLMError("boom")])
        service = TransformationService(llm=llm, cache=cache)
        with pytest.raises(LLMError):
            await service.transform(make_document(), SUMMARY)
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_runs_are_registered_as_tasks(self, cache: ArtifactCache, llm: ScriptedLLM) -> None:
        registry = TaskRegistry()
        seen: list[list] = []
        registry.register_observer(lambda tasks: seen.append(tasks))
        service = TransformationService(llm=llm, cache=cache, task_registry=registry)

        await service.transform(make_document(title="Garden"), SUMMARY)

        assert seen[0][0].task_type == TaskType.SUMMARY_GENERATION
        assert seen[0][0].label == "Executive Summary: Garden"
        assert seen[-1] == []
        assert not registry.has_active_tasks

    def test_needs_regeneration(self) -> None:
        assert TransformationService.needs_regeneration(None, "abc") is True
