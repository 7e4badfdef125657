"""
Pytest Configuration and Fixtures

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from deckforge.errors import GenerationError
from deckforge.library import MemoryStore, TemplateLibrary
from deckforge.llm_backends import BaseLLM, SovereigntyStatus
from deckforge.models import (
    Outline,
    RegionKind,
    SlideOutline,
    SlideRegion,
    SlideSnapshot,
    SlideType,
)
from deckforge.regions import SnapshotDocumentReader


# ---------------------------------------------------------------------------
# Stub generative backends
# ---------------------------------------------------------------------------

class ScriptedLLM(BaseLLM):
    """Replies from a list; an Exception entry is raised instead of returned."""

    def __init__(self, replies: List[Any]):
        super().__init__(model="stub", base_url="http://stub")
        self.replies = list(replies)
        self.calls: List[List[Dict[str, str]]] = []

    @property
    def sovereignty(self) -> SovereigntyStatus:
        return SovereigntyStatus.SOVEREIGN

    async def generate(self, messages, **params) -> str:
        self.calls.append(messages)
        reply = self.replies.pop(0) if self.replies else GenerationError("no scripted reply left")
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def _request(self, client, messages, params) -> str:
        raise NotImplementedError


class FailingLLM(ScriptedLLM):
    """Every call fails."""

    def __init__(self):
        super().__init__([])

    async def generate(self, messages, **params) -> str:
        self.calls.append(messages)
        raise GenerationError("HTTP 503", status_code=503)


def slide_reply(title: str, content: List[str], notes: Optional[str] = "notes") -> str:
    payload: Dict[str, Any] = {"title": title, "content": content}
    if notes is not None:
        payload["speakerNotes"] = notes
    return "Here is the slide:\n```json\n" + json.dumps(payload, ensure_ascii=False) + "\n```"


# ---------------------------------------------------------------------------
# Outlines
# ---------------------------------------------------------------------------

@pytest.fixture
def q3_outline() -> Outline:
    """Two-slide outline used by the fallback scenario."""
    return Outline(
        title="Q3 Plan",
        estimated_duration=10,
        slides=[
            SlideOutline(slide_number=1, title="Intro", content=["A", "B"], slide_type=SlideType.TITLE),
            SlideOutline(slide_number=2, title="Body", content=["C", "D", "E"], slide_type=SlideType.CONTENT),
        ],
    )


def make_outline(n: int, title: str = "Deck") -> Outline:
    slides = [
        SlideOutline(
            slide_number=i + 1,
            title=f"Slide {i + 1}",
            content=[f"point {i + 1}.{j + 1}" for j in range(2)],
            slide_type=SlideType.TITLE if i == 0 else (SlideType.CONCLUSION if i == n - 1 else SlideType.CONTENT),
        )
        for i in range(n)
    ]
    return Outline(title=title, slides=slides, estimated_duration=n * 2)


@pytest.fixture
def outline_factory():
    return make_outline


# ---------------------------------------------------------------------------
# Library
# ---------------------------------------------------------------------------

@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def library(store) -> TemplateLibrary:
    return TemplateLibrary(store=store)


# ---------------------------------------------------------------------------
# Document snapshots
# ---------------------------------------------------------------------------

def title_region(text: str, font: str = "Calibri", color: str = "#1F497D") -> SlideRegion:
    return SlideRegion(RegionKind.TITLE, left=36, top=20, width=648, height=60, text=text,
                       font_name=font, font_size=32.0, bold=True, color=color)


def content_region(text: str, font: str = "Calibri", color: str = "#333333") -> SlideRegion:
    return SlideRegion(RegionKind.CONTENT, left=36, top=100, width=648, height=260, text=text,
                       font_name=font, font_size=18.0, color=color)


def subtitle_region(text: str) -> SlideRegion:
    return SlideRegion(RegionKind.SUBTITLE, left=36, top=310, width=648, height=60, text=text,
                       font_name="Calibri", font_size=20.0, color="#666666")


@pytest.fixture
def deck_snapshots() -> List[SlideSnapshot]:
    """Five-slide corporate deck: title, agenda, two content slides, closing."""
    return [
        SlideSnapshot(0, "Title Slide", [title_region("Annual Review"), subtitle_region("2026")], "#FFFFFF"),
        SlideSnapshot(1, "Title and Content", [title_region("Agenda"), content_region("Results\nOutlook")], "#FFFFFF"),
        SlideSnapshot(2, "Title and Content", [title_region("Results"), content_region("Revenue up 12%")], "#FFFFFF"),
        SlideSnapshot(3, "Title and Content", [title_region("Outlook"), content_region("Hiring plan")], "#FFFFFF"),
        SlideSnapshot(4, "Title and Content", [title_region("Summary"), content_region("Next steps")], "#FFFFFF"),
    ]


@pytest.fixture
def deck_reader(deck_snapshots) -> SnapshotDocumentReader:
    return SnapshotDocumentReader(deck_snapshots, name="annual-review")


@pytest.fixture
def snapshot_json(tmp_path: Path, deck_snapshots) -> Path:
    path = tmp_path / "deck.json"
    path.write_text(
        json.dumps({"name": "annual-review", "slides": [s.to_dict() for s in deck_snapshots]}),
        encoding="utf-8",
    )
    return path
