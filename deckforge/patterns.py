"""
Pattern extraction from existing documents.

Distills recurring layout, color, typography and spacing choices of a
document into DesignPattern records, extracts its structural expectations
(slide types and their positions, content flow, navigation aids, visual
hierarchy) and infers template metadata from both.

Frequencies are occurrences / analyzed slide count, where a facet value is
counted at most once per slide. A value seen on fewer than
ExtractionConfig.min_occurrences slides is noise and dropped. A slide that
cannot be read or analysed is logged and skipped; the batch degrades to
fewer patterns instead of aborting.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

from __future__ import annotations

import logging
import re
import uuid
from collections import Counter, defaultdict
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from deckforge.config import ExtractionConfig, InferenceThresholds
from deckforge.models import (
    ColorSchemeType,
    ContentDensity,
    ContentFlowPattern,
    DesignPattern,
    Importance,
    LayoutComplexity,
    NavigationPattern,
    PatternRule,
    PatternType,
    PresentationStyle,
    Purpose,
    RegionKind,
    SlideError,
    SlideSnapshot,
    SlideTypePattern,
    TargetAudience,
    TemplateAnalysisResult,
    TemplateCategory,
    TemplateInfo,
    TemplateMetadata,
    TemplateSlideType,
    TemplateStructure,
    VisualHierarchyPattern,
)
from deckforge.regions import DocumentReader

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Keyword lexicons (EN / JA)
# ---------------------------------------------------------------------------

AGENDA_KEYWORDS = ("agenda", "アジェンダ", "overview")
TOC_KEYWORDS = ("table of contents", "contents", "目次")
SECTION_KEYWORDS = ("section", "セクション", "chapter", "part ")
CONCLUSION_KEYWORDS = ("conclusion", "summary", "next steps", "thank you", "questions", "まとめ", "結論")

DEFAULT_HIERARCHY = {
    "title": VisualHierarchyPattern(level=1, element="title", font_size=24, font_weight="bold",
                                    color="#000000", positioning="top"),
    "content": VisualHierarchyPattern(level=2, element="content", font_size=16, font_weight="normal",
                                      color="#333333", positioning="center"),
}


def _has_any(text: str, keywords: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(k in lowered for k in keywords)


def _layout(slide: SlideSnapshot) -> str:
    return slide.layout_name.lower()


# Slide type detection, evaluated in order, first match wins
SLIDE_TYPE_RULES: List[Tuple[Callable[[SlideSnapshot], bool], TemplateSlideType]] = [
    (lambda s: "title slide" in _layout(s) or (
        "title" in _layout(s)
        and bool(s.regions_of(RegionKind.SUBTITLE))
        and not s.regions_of(RegionKind.CONTENT)
    ), TemplateSlideType.TITLE),
    (lambda s: _has_any(s.text, AGENDA_KEYWORDS + TOC_KEYWORDS), TemplateSlideType.AGENDA),
    (lambda s: "section" in _layout(s), TemplateSlideType.SECTION),
    (lambda s: "comparison" in _layout(s) or "two" in _layout(s), TemplateSlideType.COMPARISON),
    (lambda s: _has_any(s.text, CONCLUSION_KEYWORDS), TemplateSlideType.CONCLUSION),
    (lambda s: "blank" in _layout(s) and not s.text.strip(), TemplateSlideType.BLANK),
]


def detect_slide_type(slide: SlideSnapshot) -> TemplateSlideType:
    for predicate, slide_type in SLIDE_TYPE_RULES:
        if predicate(slide):
            return slide_type
    return TemplateSlideType.CONTENT


def determine_slide_position(positions: Sequence[int], total_slides: int) -> Any:
    """Expected position of a slide type from the 0-based indices where it occurred."""
    if 0 in positions:
        return "first"
    if total_slides - 1 in positions:
        return "last"
    if len(positions) == 1:
        return positions[0] + 1
    return "any"


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-") or "template"


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

class PatternExtractor:
    """
    Turns slide snapshots into design patterns, a template structure and
    suggested metadata.

    Example:
        extractor = PatternExtractor()
        analysis = await extractor.analyze(PptxDocumentReader("deck.pptx"))
        template = extractor.build_template(analysis, name="Quarterly review")
    """

    def __init__(
        self,
        extraction: Optional[ExtractionConfig] = None,
        inference: Optional[InferenceThresholds] = None,
    ):
        self.extraction = extraction or ExtractionConfig()
        self.inference = inference or InferenceThresholds()

    # -- reading -------------------------------------------------------------

    async def read_slides(
        self, reader: DocumentReader, limit: Optional[int] = None,
    ) -> Tuple[List[SlideSnapshot], List[SlideError]]:
        """Read up to limit slides sequentially; unreadable slides are skipped."""
        total = await reader.slide_count()
        count = min(total, limit) if limit is not None else total
        snapshots: List[SlideSnapshot] = []
        errors: List[SlideError] = []
        for index in range(count):
            try:
                snapshots.append(await reader.read_slide(index))
            except Exception as e:
                logger.warning(f"Skipping slide {index + 1} of {reader.name}: {e}")
                errors.append(SlideError(index, "extract", str(e), type(e).__name__))
        return snapshots, errors

    # -- design patterns -----------------------------------------------------

    def _observe(
        self, slides: Sequence[SlideSnapshot], facet: str, observe: Callable[[SlideSnapshot], Set[str]],
    ) -> Counter:
        """Count, per facet value, the number of slides exhibiting it."""
        counts: Counter = Counter()
        for slide in slides:
            try:
                counts.update(observe(slide))
            except Exception as e:
                logger.warning(f"{facet} analysis failed for slide {slide.index + 1}: {e}")
        return counts

    def _facet_patterns(
        self,
        pattern_type: PatternType,
        counts: Counter,
        analyzed: int,
        limit: Optional[int],
        describe: Callable[[str, int], str],
        rule: Callable[[str], PatternRule],
    ) -> List[DesignPattern]:
        kept = [(value, n) for value, n in counts.items() if n >= self.extraction.min_occurrences]
        kept.sort(key=lambda item: (-item[1], item[0]))
        if limit is not None:
            kept = kept[:limit]

        patterns = []
        for value, n in kept:
            frequency = n / analyzed
            importance = Importance.CRITICAL if frequency > self.extraction.critical_frequency else Importance.IMPORTANT
            patterns.append(DesignPattern(
                type=pattern_type,
                pattern=value,
                frequency=frequency,
                importance=importance,
                description=describe(value, n),
                rules=[rule(value)],
                occurrences=n,
            ))
        return patterns

    @staticmethod
    def _slide_colors(slide: SlideSnapshot) -> Set[str]:
        colors = {r.color for r in slide.regions if r.color} | {r.fill for r in slide.regions if r.fill}
        if slide.background:
            colors.add(slide.background)
        return {c.upper() for c in colors}

    @staticmethod
    def _slide_fonts(slide: SlideSnapshot) -> Set[str]:
        return {f"font-{r.font_name}" for r in slide.regions if r.font_name}

    def _slide_margin(self, slide: SlideSnapshot) -> Set[str]:
        lefts = [r.left for r in slide.regions if r.kind != RegionKind.UNKNOWN]
        if not lefts:
            return set()
        bucket = self.extraction.margin_bucket
        return {f"margin-left-{int(round(min(lefts) / bucket) * bucket)}pt"}

    def extract_patterns(self, slides: Sequence[SlideSnapshot]) -> List[DesignPattern]:
        """Layout, color, typography and spacing patterns of the analyzed slides."""
        analyzed = len(slides)
        if analyzed == 0:
            return []

        cfg = self.extraction
        patterns: List[DesignPattern] = []

        patterns += self._facet_patterns(
            PatternType.LAYOUT,
            self._observe(slides, "layout", lambda s: {s.layout_name}),
            analyzed, None,
            lambda v, n: f"{v} layout used in {n} slides",
            lambda v: PatternRule(f"slide requires {v} layout", f"apply {v} layout"),
        )
        patterns += self._facet_patterns(
            PatternType.COLOR,
            self._observe(slides, "color", self._slide_colors),
            analyzed, cfg.max_color_patterns,
            lambda v, n: f"Color {v} used in {n} slides",
            lambda v: PatternRule("element needs primary color", f"apply color {v}"),
        )
        patterns += self._facet_patterns(
            PatternType.TYPOGRAPHY,
            self._observe(slides, "typography", self._slide_fonts),
            analyzed, cfg.max_typography_patterns,
            lambda v, n: f"{v[len('font-'):]} font used in {n} slides",
            lambda v: PatternRule("text needs primary font", f"apply {v}"),
        )
        patterns += self._facet_patterns(
            PatternType.SPACING,
            self._observe(slides, "spacing", self._slide_margin),
            analyzed, None,
            lambda v, n: f"Left margin {v[len('margin-left-'):]} used in {n} slides",
            lambda v: PatternRule("content needs margin", f"apply {v}"),
        )

        logger.debug(f"Extracted {len(patterns)} patterns from {analyzed} slides")
        return patterns

    # -- structure -----------------------------------------------------------

    def _safe_type(self, slide: SlideSnapshot) -> Optional[TemplateSlideType]:
        try:
            return detect_slide_type(slide)
        except Exception as e:
            logger.warning(f"Slide type detection failed for slide {slide.index + 1}: {e}")
            return None

    def extract_structure(self, slides: Sequence[SlideSnapshot]) -> TemplateStructure:
        """Expected slide types, content flow, navigation aids and visual hierarchy."""
        total = len(slides)
        if total == 0:
            return TemplateStructure.default()

        types = [self._safe_type(s) for s in slides]

        positions: Dict[str, List[int]] = defaultdict(list)
        for i, slide_type in enumerate(types):
            if slide_type is not None:
                positions[slide_type.value].append(i)

        expected = [
            SlideTypePattern(
                position=determine_slide_position(found, total),
                type=slide_type,
                frequency=len(found) / total,
                required=len(found) / total > self.extraction.critical_frequency or 0 in found,
            )
            for slide_type, found in positions.items()
        ]
        if not expected:
            expected = TemplateStructure.default().expected_slide_types

        return TemplateStructure(
            expected_slide_types=expected,
            content_flow=self._content_flow(types),
            navigation_pattern=self._navigation(slides),
            visual_hierarchy=self._visual_hierarchy(slides),
        )

    @staticmethod
    def _content_flow(types: Sequence[Optional[TemplateSlideType]]) -> List[ContentFlowPattern]:
        transitions: Counter = Counter()
        outgoing: Counter = Counter()
        for current, following in zip(types, types[1:]):
            if current is None or following is None:
                continue
            transitions[(current.value, following.value)] += 1
            outgoing[current.value] += 1
        return [
            ContentFlowPattern(from_slide_type=a, to_slide_type=b, probability=n / outgoing[a])
            for (a, b), n in sorted(transitions.items())
        ]

    @staticmethod
    def _navigation(slides: Sequence[SlideSnapshot]) -> NavigationPattern:
        nav = NavigationPattern()
        for slide in slides:
            text = slide.text
            nav.has_agenda = nav.has_agenda or _has_any(text, AGENDA_KEYWORDS)
            nav.has_table_of_contents = nav.has_table_of_contents or _has_any(text, TOC_KEYWORDS)
            nav.section_dividers = (
                nav.section_dividers or "section" in _layout(slide) or _has_any(text, SECTION_KEYWORDS)
            )
        return nav

    @staticmethod
    def _visual_hierarchy(slides: Sequence[SlideSnapshot]) -> List[VisualHierarchyPattern]:
        hierarchy = []
        for level, (element, kinds) in enumerate(
            (("title", (RegionKind.TITLE,)), ("content", (RegionKind.CONTENT, RegionKind.SUBTITLE))), start=1,
        ):
            default = DEFAULT_HIERARCHY[element]
            regions = [r for s in slides for r in s.regions if r.kind in kinds]
            sizes = Counter(r.font_size for r in regions if r.font_size)
            colors = Counter(r.color.upper() for r in regions if r.color)
            bold = sum(1 for r in regions if r.bold)
            hierarchy.append(VisualHierarchyPattern(
                level=level,
                element=element,
                font_size=sizes.most_common(1)[0][0] if sizes else default.font_size,
                font_weight=("bold" if bold * 2 > len(regions) else "normal") if regions else default.font_weight,
                color=colors.most_common(1)[0][0] if colors else default.color,
                positioning=default.positioning,
            ))
        return hierarchy

    # -- metadata ------------------------------------------------------------

    def infer_metadata(
        self, patterns: Sequence[DesignPattern], structure: TemplateStructure, slide_count: int,
    ) -> Dict[str, Any]:
        """Suggested metadata, a pure function of pattern counts and structural signals."""
        t = self.inference
        colors = sum(1 for p in patterns if p.type == PatternType.COLOR)
        layouts = sum(1 for p in patterns if p.type == PatternType.LAYOUT)
        critical = sum(1 for p in patterns if p.importance == Importance.CRITICAL)
        slide_types = len(structure.expected_slide_types)
        nav = structure.navigation_pattern

        if nav.has_navigation_aids and colors <= t.formal_max_colors:
            style = PresentationStyle.FORMAL
        elif colors >= t.creative_min_colors and layouts >= t.creative_min_layouts:
            style = PresentationStyle.CREATIVE
        elif layouts <= t.minimal_max_layouts:
            style = PresentationStyle.MINIMAL
        else:
            style = PresentationStyle.CASUAL

        if nav.has_table_of_contents and nav.section_dividers:
            audience = TargetAudience.ACADEMIC
        elif slide_types <= t.executive_max_slide_types:
            audience = TargetAudience.EXECUTIVE
        else:
            audience = TargetAudience.GENERAL

        if colors <= t.minimal_color_max:
            scheme = ColorSchemeType.MINIMAL
        elif colors >= t.vibrant_color_min:
            scheme = ColorSchemeType.VIBRANT
        else:
            scheme = ColorSchemeType.CORPORATE

        if layouts <= t.simple_max_layouts and slide_types <= t.simple_max_slide_types:
            complexity = LayoutComplexity.SIMPLE
        elif layouts >= t.complex_min_layouts or slide_types >= t.complex_min_slide_types:
            complexity = LayoutComplexity.COMPLEX
        else:
            complexity = LayoutComplexity.MODERATE

        if slide_types >= t.high_density_min_slide_types and critical >= t.high_density_min_critical:
            density = ContentDensity.HIGH
        elif len(patterns) <= t.low_density_max_patterns and slide_types <= t.low_density_max_slide_types:
            density = ContentDensity.LOW
        else:
            density = ContentDensity.MEDIUM

        if nav.has_agenda and slide_count >= t.training_min_slides:
            purpose = Purpose.TRAINING
        elif slide_count <= t.pitch_max_slides:
            purpose = Purpose.PITCH
        else:
            purpose = Purpose.REPORT

        metadata: Dict[str, Any] = {
            "presentation_style": style,
            "target_audience": audience,
            "color_scheme_type": scheme,
            "layout_complexity": complexity,
            "content_density": density,
            "purpose": purpose,
            "slide_count": slide_count,
            "usage_count": 0,
        }
        metadata["tags"] = self.generate_tags(metadata)
        return metadata

    @staticmethod
    def generate_tags(metadata: Dict[str, Any]) -> List[str]:
        tags = [metadata["presentation_style"].value, metadata["target_audience"].value, metadata["purpose"].value]
        if metadata["layout_complexity"] == LayoutComplexity.SIMPLE:
            tags += ["simple", "clean"]
        if metadata["content_density"] == ContentDensity.LOW:
            tags += ["minimal", "spacious"]
        tags.append("auto-generated")
        return list(dict.fromkeys(tags))

    # -- full analysis -------------------------------------------------------

    async def analyze(self, reader: DocumentReader, limit: Optional[int] = None) -> TemplateAnalysisResult:
        """Read, extract and infer in one pass over the first limit slides (all when None)."""
        total = await reader.slide_count()
        snapshots, errors = await self.read_slides(reader, limit)
        attempted = len(snapshots) + len(errors)

        patterns = self.extract_patterns(snapshots)
        structure = self.extract_structure(snapshots)
        metadata = self.infer_metadata(patterns, structure, total)

        base = 0.8 if patterns and structure.expected_slide_types else 0.3
        confidence = base * (len(snapshots) / attempted) if attempted else 0.0

        notes = [
            f"Analyzed {len(snapshots)} of {total} slides",
            f"Detected {len(patterns)} design patterns",
            f"Identified {len(structure.expected_slide_types)} slide type patterns",
        ]
        notes += [f"Skipped slide {e.slide_index + 1}: {e.message}" for e in errors]

        logger.info(f"Analyzed {reader.name}: {len(patterns)} patterns, confidence {confidence:.2f}")
        return TemplateAnalysisResult(
            detected_patterns=patterns,
            extracted_structure=structure,
            suggested_metadata=metadata,
            confidence=round(confidence, 4),
            analysis_notes=notes,
            analyzed_slides=len(snapshots),
            errors=errors,
        )

    def build_template(
        self,
        analysis: TemplateAnalysisResult,
        name: str,
        template_id: Optional[str] = None,
        description: str = "",
        category: TemplateCategory = TemplateCategory.CUSTOM,
        metadata_overrides: Optional[Dict[str, Any]] = None,
    ) -> TemplateInfo:
        """Assemble a TemplateInfo; user overrides are applied last."""
        merged = TemplateMetadata().to_dict()
        for source in (analysis.suggested_metadata, metadata_overrides or {}):
            merged.update({k: (v.value if isinstance(v, Enum) else v) for k, v in source.items()})

        return TemplateInfo(
            id=template_id or f"template-{_slug(name)}-{uuid.uuid4().hex[:8]}",
            name=name,
            description=description or "Registered from an existing document",
            category=category,
            metadata=TemplateMetadata.from_dict(merged),
            design_patterns=list(analysis.detected_patterns),
            structure=analysis.extracted_structure,
        )

    async def detect_template(self, reader: DocumentReader, name: Optional[str] = None) -> Optional[TemplateInfo]:
        """Quick detection on the first few slides; None for an empty document."""
        if await reader.slide_count() == 0:
            return None
        analysis = await self.analyze(reader, limit=self.extraction.detection_slide_limit)
        return self.build_template(analysis, name=name or reader.name or "Detected Template")
