"""
Document readers and region classification.

Existing documents are exposed to the pattern extractor through a small
async capability (slide_count / read_slide) returning SlideSnapshot values.
Each text-bearing region is classified once, at ingestion, by a pure
function of its position and size; downstream code only looks at
SlideRegion.kind.

Readers:
    SnapshotDocumentReader  in-memory snapshots (tests, other adapters)
    JsonDocumentReader      snapshots stored as JSON
    PptxDocumentReader      .pptx files through python-pptx

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from deckforge.models import RegionKind, SlideRegion, SlideSnapshot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Region classification (geometry in points, 16:9 slide is 720 x 405 pt)
# ---------------------------------------------------------------------------

TITLE_MAX_TOP = 100.0
TITLE_MIN_HEIGHT = 50.0
SUBTITLE_MIN_TOP = 300.0
SUBTITLE_MAX_HEIGHT = 150.0
CONTENT_MIN_WIDTH = 400.0
CONTENT_MIN_HEIGHT = 200.0

Geometry = Tuple[float, float, float, float]   # left, top, width, height

# Evaluated in order, first match wins
REGION_RULES: List[Tuple[Callable[[Geometry], bool], RegionKind]] = [
    (lambda g: g[1] < TITLE_MAX_TOP and g[3] > TITLE_MIN_HEIGHT, RegionKind.TITLE),
    (lambda g: g[1] > SUBTITLE_MIN_TOP and g[3] < SUBTITLE_MAX_HEIGHT, RegionKind.SUBTITLE),
    (lambda g: g[2] > CONTENT_MIN_WIDTH and g[3] > CONTENT_MIN_HEIGHT, RegionKind.CONTENT),
]


def classify_region(left: float, top: float, width: float, height: float) -> RegionKind:
    """Resolve the role of a region from its geometry."""
    geometry = (left, top, width, height)
    for predicate, kind in REGION_RULES:
        if predicate(geometry):
            return kind
    return RegionKind.UNKNOWN


def region_from_dict(d: Dict[str, Any]) -> SlideRegion:
    """Build a region; the kind is classified unless explicitly given."""
    left, top = float(d.get("left", 0)), float(d.get("top", 0))
    width, height = float(d.get("width", 0)), float(d.get("height", 0))
    kind = RegionKind(d["kind"]) if d.get("kind") else classify_region(left, top, width, height)
    return SlideRegion(
        kind=kind,
        left=left,
        top=top,
        width=width,
        height=height,
        text=d.get("text", ""),
        font_name=d.get("font_name"),
        font_size=d.get("font_size"),
        bold=bool(d.get("bold", False)),
        color=d.get("color"),
        fill=d.get("fill"),
    )


def snapshot_from_dict(d: Dict[str, Any], index: int) -> SlideSnapshot:
    return SlideSnapshot(
        index=index,
        layout_name=d.get("layout_name") or "Unknown Layout",
        regions=[region_from_dict(r) for r in d.get("regions", [])],
        background=d.get("background"),
    )


# ---------------------------------------------------------------------------
# Reader capability
# ---------------------------------------------------------------------------

class DocumentReader(ABC):
    """Read-only, slide-by-slide view of an existing document."""

    name: str = "document"

    @abstractmethod
    async def slide_count(self) -> int:
        ...

    @abstractmethod
    async def read_slide(self, index: int) -> SlideSnapshot:
        """Read one slide. May raise for an unreadable slide."""


class SnapshotDocumentReader(DocumentReader):
    """Serves snapshots already in memory."""

    def __init__(self, snapshots: Sequence[SlideSnapshot], name: str = "snapshot"):
        self._snapshots = list(snapshots)
        self.name = name

    async def slide_count(self) -> int:
        return len(self._snapshots)

    async def read_slide(self, index: int) -> SlideSnapshot:
        return self._snapshots[index]


class JsonDocumentReader(DocumentReader):
    """
    Reads snapshots from a JSON file.

    Accepted shapes: ``{"name": ..., "slides": [...]}`` or a bare list of
    slides, each slide ``{"layout_name": ..., "regions": [...], "background": ...}``.
    A malformed slide fails on read_slide, not at load time.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            self.name = data.get("name") or self.path.stem
            self._slides: List[Any] = list(data.get("slides", []))
        else:
            self.name = self.path.stem
            self._slides = list(data)

    async def slide_count(self) -> int:
        return len(self._slides)

    async def read_slide(self, index: int) -> SlideSnapshot:
        raw = self._slides[index]
        if not isinstance(raw, dict):
            raise ValueError(f"slide {index + 1} is not an object")
        return snapshot_from_dict(raw, index)


def _color_hex(color: Any) -> Optional[str]:
    """Hex string of a python-pptx ColorFormat, None for theme or unset colors."""
    if color is None:
        return None
    try:
        rgb = color.rgb
    except AttributeError:
        return None
    return f"#{rgb}" if rgb is not None else None


def _fill_hex(fill: Any) -> Optional[str]:
    if fill is None:
        return None
    try:
        return _color_hex(fill.fore_color)
    except (AttributeError, TypeError):
        return None


class PptxDocumentReader(DocumentReader):
    """Reads slides of a .pptx file with python-pptx."""

    def __init__(self, path: Union[str, Path]):
        from pptx import Presentation

        self.path = Path(path)
        self.name = self.path.stem
        self._presentation = Presentation(str(self.path))
        self._slides = list(self._presentation.slides)

    async def slide_count(self) -> int:
        return len(self._slides)

    async def read_slide(self, index: int) -> SlideSnapshot:
        slide = self._slides[index]
        regions = [self._read_shape(shape) for shape in slide.shapes if shape.has_text_frame]
        try:
            background = _fill_hex(slide.background.fill)
        except AttributeError:
            background = None
        return SlideSnapshot(
            index=index,
            layout_name=slide.slide_layout.name or "Unknown Layout",
            regions=regions,
            background=background,
        )

    @staticmethod
    def _read_shape(shape: Any) -> SlideRegion:
        left = shape.left.pt if shape.left is not None else 0.0
        top = shape.top.pt if shape.top is not None else 0.0
        width = shape.width.pt if shape.width is not None else 0.0
        height = shape.height.pt if shape.height is not None else 0.0

        font_name = font_size = color = None
        bold = False
        for paragraph in shape.text_frame.paragraphs:
            for run in paragraph.runs:
                font = run.font
                font_name = font_name or font.name
                if font_size is None and font.size is not None:
                    font_size = float(font.size.pt)
                bold = bold or bool(font.bold)
                color = color or _color_hex(font.color)

        return SlideRegion(
            kind=classify_region(left, top, width, height),
            left=left,
            top=top,
            width=width,
            height=height,
            text=shape.text_frame.text,
            font_name=font_name,
            font_size=font_size,
            bold=bold,
            color=color,
            fill=_fill_hex(getattr(shape, "fill", None)),
        )


def open_document(path: Union[str, Path]) -> DocumentReader:
    """Pick a reader from the file extension (.pptx or .json)."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".pptx":
        return PptxDocumentReader(path)
    if suffix == ".json":
        return JsonDocumentReader(path)
    raise ValueError(f"Unsupported document type: {path.suffix} (expected .pptx or .json)")
