"""Transformation presets and results.

A preset is a named instruction block that rewrites a document into another
shape (summary, article, flashcards, study notes).  Results are cached by
``(document id, preset id)`` and validated against the document's content
hash, so an edited document never serves a stale transformation.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TransformationPreset(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    system_prompt: str
    is_built_in: bool = False
    sort_order: int = 0


class TransformationResult(BaseModel):
    """Output of one transformation run."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    preset_id: str
    content: str
    created_from_hash: str = Field(description="Content hash of the source document.")
    parts: int = Field(default=1, ge=1, description="Number of generation calls used.")
    from_cache: bool = False


BUILT_IN_PRESETS: tuple[TransformationPreset, ...] = (
    TransformationPreset(
        id="executive_summary",
        name="Executive Summary",
        system_prompt=(
            "Create a concise executive summary of this document. Include:\n"
            "1) Main topic in one sentence\n"
            "2) 3-5 key points using bullet points\n"
            "3) Key takeaways or conclusions\n"
            "\n"
            "Keep it under 300 words. Use markdown formatting."
        ),
        is_built_in=True,
        sort_order=0,
    ),
    TransformationPreset(
        id="article",
        name="Article",
        system_prompt=(
            "Rewrite this content as a well-structured article. Add:\n"
            "- A clear introduction\n"
            "- Properly formatted sections with headings\n"
            "- Smooth transitions between ideas\n"
            "- A conclusion\n"
            "\n"
            "Preserve all important details and facts. Use markdown formatting "
            "with proper headings (##, ###)."
        ),
        is_built_in=True,
        sort_order=1,
    ),
    TransformationPreset(
        id="flashcards",
        name="Flashcards",
        system_prompt=(
            "Extract the most important concepts and create flashcards in this format:\n"
            "\n"
            "**Q:** [Question]\n"
            "**A:** [Answer]\n"
            "\n"
            "---\n"
            "\n"
            "Create 5-10 flashcards focusing on key definitions, concepts, and facts.\n"
            "Make questions clear and concise. Use markdown formatting."
        ),
        is_built_in=True,
        sort_order=2,
    ),
    TransformationPreset(
        id="study_notes",
        name="Study Notes",
        system_prompt=(
            "Transform this into structured study notes. Include:\n"
            "- Main topics as ## headings\n"
            "- Key points as bullet lists\n"
            "- Important terms in **bold**\n"
            "- Examples where relevant\n"
            "- Summary at the end\n"
            "\n"
            "Organize for easy review and memorization. Use markdown formatting."
        ),
        is_built_in=True,
        sort_order=3,
    ),
)


def get_preset(preset_id: str) -> TransformationPreset | None:
    for preset in BUILT_IN_PRESETS:
        if preset.id == preset_id:
            return preset
    return None
