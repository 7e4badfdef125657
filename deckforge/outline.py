"""
Outline editing and drafting.

Every editing operation returns a new Outline and renumbers its slides, so
slides[i].slide_number == i + 1 holds after any add/remove/move/reorder.
OutlineDrafter asks the generative collaborator for a first outline or a
revision; it is a single-unit operation and raises on failure.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from deckforge.errors import OutlineValidationError, ResponseContractError
from deckforge.json_utils import extract_json_object
from deckforge.llm_backends import BaseLLM
from deckforge.models import Outline, SlideOutline, SlideType
from deckforge.prompts import render_prompt

logger = logging.getLogger(__name__)

NEW_SLIDE_TITLE = "New slide"
NEW_POINT = "New point"


# ---------------------------------------------------------------------------
# Renumbering and validation
# ---------------------------------------------------------------------------

def renumber(slides: Sequence[SlideOutline]) -> List[SlideOutline]:
    """Return copies of slides numbered 1..n in order."""
    return [replace(s, slide_number=i + 1, content=list(s.content)) for i, s in enumerate(slides)]


def _with_slides(outline: Outline, slides: Sequence[SlideOutline]) -> Outline:
    return Outline(title=outline.title, slides=renumber(slides), estimated_duration=outline.estimated_duration)


def validate_outline(outline: Outline) -> List[str]:
    """List structural problems of an outline. Empty list means usable."""
    issues: List[str] = []
    if not outline.title.strip():
        issues.append("outline has no title")
    if not outline.slides:
        issues.append("outline has no slides")
    for i, slide in enumerate(outline.slides):
        if slide.slide_number != i + 1:
            issues.append(f"slide at position {i + 1} is numbered {slide.slide_number}")
        if not slide.title.strip():
            issues.append(f"slide {i + 1} has no title")
    return issues


def _check_index(outline: Outline, index: int) -> None:
    if not 0 <= index < len(outline.slides):
        raise IndexError(f"slide index {index} out of range (0..{len(outline.slides) - 1})")


# ---------------------------------------------------------------------------
# Slide operations
# ---------------------------------------------------------------------------

def new_slide(title: str = NEW_SLIDE_TITLE, content: Optional[List[str]] = None,
              slide_type: SlideType = SlideType.CONTENT) -> SlideOutline:
    return SlideOutline(
        slide_number=0,
        title=title,
        content=list(content) if content is not None else [NEW_POINT],
        slide_type=slide_type,
    )


def add_slide(outline: Outline, slide: Optional[SlideOutline] = None) -> Outline:
    """Append a slide (a default content slide when none is given)."""
    return _with_slides(outline, list(outline.slides) + [slide or new_slide()])


def insert_slide(outline: Outline, index: int, slide: Optional[SlideOutline] = None) -> Outline:
    """Insert a slide before position index (clamped to the valid range)."""
    slides = list(outline.slides)
    index = max(0, min(index, len(slides)))
    slides.insert(index, slide or new_slide())
    return _with_slides(outline, slides)


def remove_slide(outline: Outline, index: int) -> Outline:
    _check_index(outline, index)
    return _with_slides(outline, [s for i, s in enumerate(outline.slides) if i != index])


def move_slide(outline: Outline, index: int, direction: str) -> Outline:
    """
    Swap a slide with its neighbour.

    Moving the first slide up or the last slide down leaves the order unchanged.
    """
    if direction not in ("up", "down"):
        raise ValueError(f"direction must be 'up' or 'down', got {direction!r}")
    _check_index(outline, index)
    slides = list(outline.slides)
    target = index - 1 if direction == "up" else index + 1
    if 0 <= target < len(slides):
        slides[index], slides[target] = slides[target], slides[index]
    return _with_slides(outline, slides)


def reorder_slides(outline: Outline, order: Sequence[int]) -> Outline:
    """Reorder slides by a permutation of their current 0-based indices."""
    if sorted(order) != list(range(len(outline.slides))):
        raise ValueError(f"order must be a permutation of 0..{len(outline.slides) - 1}")
    return _with_slides(outline, [outline.slides[i] for i in order])


def update_slide(outline: Outline, index: int, **changes: Any) -> Outline:
    """Replace fields of one slide (title, content, slide_type, speaker_notes, content_type)."""
    _check_index(outline, index)
    changes.pop("slide_number", None)
    slides = list(outline.slides)
    slides[index] = replace(slides[index], **changes)
    return _with_slides(outline, slides)


# ---------------------------------------------------------------------------
# Content item operations
# ---------------------------------------------------------------------------

def add_content_item(outline: Outline, slide_index: int, text: str = NEW_POINT) -> Outline:
    _check_index(outline, slide_index)
    content = list(outline.slides[slide_index].content) + [text]
    return update_slide(outline, slide_index, content=content)


def update_content_item(outline: Outline, slide_index: int, item_index: int, text: str) -> Outline:
    _check_index(outline, slide_index)
    content = list(outline.slides[slide_index].content)
    content[item_index] = text
    return update_slide(outline, slide_index, content=content)


def remove_content_item(outline: Outline, slide_index: int, item_index: int) -> Outline:
    _check_index(outline, slide_index)
    content = list(outline.slides[slide_index].content)
    del content[item_index]
    return update_slide(outline, slide_index, content=content)


# ---------------------------------------------------------------------------
# Drafting
# ---------------------------------------------------------------------------

def outline_from_response(data: Dict[str, Any]) -> Outline:
    """
    Build an Outline from a decoded collaborator reply.

    Raises:
        OutlineValidationError: title or slides missing, or a slide unparseable
    """
    if not data.get("title") or not isinstance(data.get("slides"), list):
        raise OutlineValidationError(["reply must carry a title and a slides list"])

    slides: List[SlideOutline] = []
    for i, raw in enumerate(data["slides"]):
        if not isinstance(raw, dict):
            raise OutlineValidationError([f"slide {i + 1} is not an object"])
        raw = dict(raw)
        slide_type = raw.get("slideType", raw.get("slide_type", "content"))
        if slide_type not in {t.value for t in SlideType}:
            logger.debug(f"Slide {i + 1}: unknown slide type {slide_type!r}, using content")
            raw["slideType"] = raw["slide_type"] = SlideType.CONTENT.value
        try:
            slides.append(SlideOutline.from_dict(raw))
        except (TypeError, ValueError) as e:
            raise OutlineValidationError([f"slide {i + 1}: {e}"]) from e

    try:
        outline = Outline.from_dict({**data, "slides": []})
    except (TypeError, ValueError):
        outline = Outline(title=str(data["title"]))
    return _with_slides(outline, slides)


class OutlineDrafter:
    """
    Drafts and revises outlines through the generative collaborator.

    Example:
        drafter = OutlineDrafter(llm)
        outline = await drafter.generate_outline("Q3 sales review for the board")
    """

    def __init__(self, llm: BaseLLM):
        self.llm = llm

    async def _ask(self, user_prompt: str) -> Outline:
        messages = [
            {"role": "system", "content": render_prompt("outline_system.j2")},
            {"role": "user", "content": user_prompt},
        ]
        text = await self.llm.generate(messages)
        try:
            data = extract_json_object(text)
        except ResponseContractError as e:
            raise OutlineValidationError(e.issues or [str(e)]) from e
        outline = outline_from_response(data)
        logger.info(f"Drafted outline '{outline.title}' with {len(outline.slides)} slides")
        return outline

    async def generate_outline(self, topic: str, slide_count: Optional[int] = None) -> Outline:
        """
        Raises:
            GenerationError: the collaborator call failed
            OutlineValidationError: the reply is not a usable outline
        """
        return await self._ask(render_prompt("outline_user.j2", topic=topic, slide_count=slide_count))

    async def regenerate_outline(self, outline: Outline, instruction: str) -> Outline:
        outline_json = json.dumps(outline.to_dict(), ensure_ascii=False, indent=2)
        return await self._ask(
            render_prompt("outline_regenerate.j2", outline_json=outline_json, instruction=instruction)
        )
