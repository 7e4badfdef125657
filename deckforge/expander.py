"""
Detail expansion: turns terse outline entries into full slide content.

Slides are expanded strictly one after another, one collaborator call each,
with a fixed delay between calls (never after the last one). A slide whose
call fails, or whose reply breaks the contract, gets deterministic fallback
content and the run moves on: the output always has one entry per input
slide. Failures are reported through SlideOutcome / ExpansionReport, never
raised.

Reply contract: {"title": str, "content": [str, ...], "speakerNotes": str}

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Union

from deckforge.config import ExpansionConfig
from deckforge.errors import ResponseContractError
from deckforge.json_utils import extract_json_object
from deckforge.llm_backends import BaseLLM
from deckforge.models import (
    AdaptedOutline,
    ContentQuality,
    DetailedSlideContent,
    ExpansionReport,
    Outline,
    SlideError,
    SlideOutcome,
)
from deckforge.prompts import render_prompt

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]
ErrorCallback = Callable[[int, SlideError], None]

SENTENCE_END = re.compile(r"(?<=[。！？])|(?<=[.!?])\s+")
CJK_STOPS = ("。", "！", "？")
PARSE_ISSUES = {"empty response", "no JSON object"}


# ---------------------------------------------------------------------------
# Source slides and context window
# ---------------------------------------------------------------------------

@dataclass
class SourceSlide:
    """What the expander works from: an outline slide or an adapted slide."""
    slide_number: int
    title: str
    content: List[str]
    slide_type: str


@dataclass
class SlideContext:
    """Local view of one slide and its neighbours, rendered into the prompt."""
    presentation_title: str
    slide_title: str
    slide_number: int
    total_slides: int
    slide_type: str
    current_content: List[str]
    previous_slide_title: Optional[str] = None
    previous_slide_content: Optional[List[str]] = None
    next_slide_title: Optional[str] = None
    next_slide_content: Optional[List[str]] = None
    estimated_duration: int = 0
    template: Optional[Dict[str, str]] = field(default=None)


def source_slides(outline: Union[Outline, AdaptedOutline]) -> List[SourceSlide]:
    if isinstance(outline, AdaptedOutline):
        return [
            SourceSlide(
                slide_number=s.slide_number,
                title=s.adapted_content.title,
                content=list(s.adapted_content.content),
                slide_type=s.adapted_content.slide_type,
            )
            for s in outline.adapted_slides
        ]
    return [
        SourceSlide(s.slide_number, s.title, list(s.content), s.slide_type.value)
        for s in outline.slides
    ]


def _template_facets(outline: Union[Outline, AdaptedOutline]) -> Optional[Dict[str, str]]:
    if not isinstance(outline, AdaptedOutline):
        return None
    template = outline.selected_template
    meta = template.metadata
    return {
        "name": template.name,
        "style": meta.presentation_style.value,
        "audience": meta.target_audience.value,
        "density": meta.content_density.value,
        "purpose": meta.purpose.value,
    }


# ---------------------------------------------------------------------------
# Expander
# ---------------------------------------------------------------------------

class DetailExpander:
    """
    Sequential per-slide expansion through a generative backend.

    Example:
        expander = DetailExpander(llm)
        report = await expander.expand_with_errors(outline, on_progress=print)
        for slide in report.slides:
            ...
    """

    def __init__(
        self,
        llm: BaseLLM,
        config: Optional[ExpansionConfig] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.llm = llm
        self.config = config or ExpansionConfig()
        self._sleep = sleep or asyncio.sleep

    # -- context -------------------------------------------------------------

    @staticmethod
    def build_context(outline: Union[Outline, AdaptedOutline], index: int) -> SlideContext:
        slides = source_slides(outline)
        original = outline.original_outline if isinstance(outline, AdaptedOutline) else outline
        slide = slides[index]
        previous = slides[index - 1] if index > 0 else None
        following = slides[index + 1] if index < len(slides) - 1 else None
        return SlideContext(
            presentation_title=original.title,
            slide_title=slide.title,
            slide_number=index + 1,
            total_slides=len(slides),
            slide_type=slide.slide_type,
            current_content=list(slide.content),
            previous_slide_title=previous.title if previous else None,
            previous_slide_content=list(previous.content) if previous else None,
            next_slide_title=following.title if following else None,
            next_slide_content=list(following.content) if following else None,
            estimated_duration=original.estimated_duration,
            template=_template_facets(outline),
        )

    @staticmethod
    def build_messages(context: SlideContext) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": render_prompt(
                "expand_system.j2", slide_type=context.slide_type, template=context.template,
            )},
            {"role": "user", "content": render_prompt("expand_user.j2", ctx=context)},
        ]

    # -- reply handling ------------------------------------------------------

    @staticmethod
    def fallback_content(slide: SourceSlide) -> DetailedSlideContent:
        """Deterministic substitute used when a slide cannot be expanded."""
        return DetailedSlideContent(
            title=slide.title,
            content=[f"• {item}" for item in slide.content],
            speaker_notes=f"Slide {slide.slide_number}: {slide.title}",
        )

    def parse_reply(self, text: str, slide: SourceSlide) -> SlideOutcome:
        """
        Validate a reply against the contract.

        Raises:
            ResponseContractError: no JSON object, blank title, content not a
                list of strings
        """
        data = extract_json_object(text)
        issues = []
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            issues.append("title missing")
        content = data.get("content")
        if not isinstance(content, list):
            issues.append("content is not a list")
        elif not all(isinstance(item, str) for item in content):
            issues.append("content items must be strings")
        if issues:
            raise ResponseContractError("Reply violates the slide contract", issues)

        title = title.strip()
        notes = data.get("speakerNotes", data.get("speaker_notes"))
        if not isinstance(notes, str) or not notes.strip():
            notes = f"Slide {slide.slide_number}: {title}"
        index = slide.slide_number - 1

        if not content:
            logger.warning(f"Slide {slide.slide_number}: empty content in reply, keeping original bullets")
            degraded = DetailedSlideContent(
                title=title,
                content=[f"• {item}{self.config.degraded_suffix}" for item in slide.content],
                speaker_notes=notes,
            )
            error = SlideError(index, "validate", "empty content array", "ResponseContractError")
            return SlideOutcome(index=index, content=degraded, error=error, degraded=True)

        return SlideOutcome(index=index, content=DetailedSlideContent(title, content, notes))

    async def expand_slide(self, outline: Union[Outline, AdaptedOutline], index: int) -> SlideOutcome:
        """Expand one slide with a single call. Never raises."""
        slide = source_slides(outline)[index]
        context = self.build_context(outline, index)
        try:
            text = await self.llm.generate(self.build_messages(context))
        except Exception as e:
            return self._fallback(slide, index, "request", e)
        try:
            return self.parse_reply(text, slide)
        except ResponseContractError as e:
            stage = "parse" if set(e.issues) & PARSE_ISSUES else "validate"
            return self._fallback(slide, index, stage, e)
        except (TypeError, ValueError, AttributeError) as e:
            return self._fallback(slide, index, "parse", e)

    def _fallback(self, slide: SourceSlide, index: int, stage: str, error: Exception) -> SlideOutcome:
        logger.warning(f"Slide {index + 1} expansion failed at {stage}: {error}")
        return SlideOutcome(
            index=index,
            content=self.fallback_content(slide),
            error=SlideError(index, stage, str(error), type(error).__name__),
            fallback=True,
        )

    # -- batch ---------------------------------------------------------------

    async def iter_expand(
        self,
        outline: Union[Outline, AdaptedOutline],
        on_progress: Optional[ProgressCallback] = None,
    ) -> AsyncIterator[SlideOutcome]:
        """
        Yield one outcome per slide, in order.

        Stopping the iteration is the only way to cancel; it takes effect
        between slides.
        """
        slides = source_slides(outline)
        total = len(slides)
        for index, slide in enumerate(slides):
            if index > 0:
                await self._sleep(self.config.inter_call_delay)
            if on_progress is not None:
                on_progress(index + 1, total, slide.title)
            yield await self.expand_slide(outline, index)

    async def expand_with_errors(
        self,
        outline: Union[Outline, AdaptedOutline],
        on_progress: Optional[ProgressCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> ExpansionReport:
        """Expand every slide; per-slide failures go to the report's error list."""
        report = ExpansionReport()
        async for outcome in self.iter_expand(outline, on_progress):
            report.outcomes.append(outcome)
            if outcome.error is not None and on_error is not None:
                on_error(outcome.index, outcome.error)
        if report.errors:
            logger.warning(
                f"{len(report.errors)} of {len(report.outcomes)} slides had expansion errors "
                f"({report.fallback_count} fallbacks)"
            )
        else:
            logger.info(f"Expanded {len(report.outcomes)} slides")
        return report

    async def expand(
        self,
        outline: Union[Outline, AdaptedOutline],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[DetailedSlideContent]:
        """Expanded content, one entry per input slide."""
        report = await self.expand_with_errors(outline, on_progress)
        return report.slides

    # -- auxiliary checks ----------------------------------------------------

    def trim_content(self, content: List[str], max_length: Optional[int] = None) -> List[str]:
        """Cut each item at the last sentence end within budget, else hard-truncate."""
        budget = self.config.max_item_length if max_length is None else max_length
        trimmed = []
        for item in content:
            if len(item) <= budget:
                trimmed.append(item)
                continue
            result = ""
            for sentence in (s for s in SENTENCE_END.split(item) if s):
                candidate = f"{result} {sentence}" if result and not result.endswith(CJK_STOPS) else result + sentence
                if len(candidate) > budget:
                    break
                result = candidate
            trimmed.append(result or item[:budget - 3] + "...")
        return trimmed

    def validate_content(self, content: DetailedSlideContent) -> ContentQuality:
        """Advisory quality check; warns, never blocks."""
        cfg = self.config
        warnings: List[str] = []
        suggestions: List[str] = []

        if len(content.title) > cfg.max_title_length:
            warnings.append("Title is too long")
            suggestions.append("Shorten the title")
        if len(content.content) > cfg.max_items:
            warnings.append("Too many content items")
            suggestions.append("Keep only the key points")
        for i, item in enumerate(content.content, start=1):
            if len(item) > cfg.max_item_chars:
                warnings.append(f"Item {i} is too long")
                suggestions.append(f"Split item {i} into several items")
        if len("".join(content.content)) > cfg.max_total_chars:
            warnings.append("Too much text on the slide")
            suggestions.append("Condense the content or split it across slides")

        return ContentQuality(is_valid=not warnings, warnings=warnings, suggestions=suggestions)
