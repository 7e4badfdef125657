"""
Core data models for deckforge.

All models are JSON-serializable dataclasses shared by the pattern extractor,
the template library, the scorer, the outline adapter and the detail
expander. Follows the enum + dataclass with to_dict()/from_dict() pattern.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class SlideType(str, Enum):
    """Slide types of a drafted outline."""
    TITLE = "title"
    CONTENT = "content"
    CONCLUSION = "conclusion"


class ContentType(str, Enum):
    """Declared content shape of an outline slide."""
    TITLE = "title"
    BULLETS = "bullets"
    COMPARISON = "comparison"
    CONCLUSION = "conclusion"


class TemplateSlideType(str, Enum):
    """Slide types a template can expect (superset of SlideType)."""
    TITLE = "title"
    AGENDA = "agenda"
    SECTION = "section"
    CONTENT = "content"
    COMPARISON = "comparison"
    CONCLUSION = "conclusion"
    BLANK = "blank"


class TemplateCategory(str, Enum):
    BUSINESS = "business"
    ACADEMIC = "academic"
    CREATIVE = "creative"
    TECHNICAL = "technical"
    MARKETING = "marketing"
    CORPORATE = "corporate"
    MINIMAL = "minimal"
    CUSTOM = "custom"


class PatternType(str, Enum):
    """Facets a design pattern can describe."""
    LAYOUT = "layout"
    COLOR = "color"
    TYPOGRAPHY = "typography"
    SPACING = "spacing"
    IMAGERY = "imagery"


class Importance(str, Enum):
    CRITICAL = "critical"
    IMPORTANT = "important"
    OPTIONAL = "optional"


class PresentationStyle(str, Enum):
    FORMAL = "formal"
    CASUAL = "casual"
    TECHNICAL = "technical"
    CREATIVE = "creative"
    MINIMAL = "minimal"


class TargetAudience(str, Enum):
    EXECUTIVE = "executive"
    TECHNICAL = "technical"
    GENERAL = "general"
    ACADEMIC = "academic"
    SALES = "sales"


class ContentDensity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Purpose(str, Enum):
    PITCH = "pitch"
    REPORT = "report"
    TRAINING = "training"
    MARKETING = "marketing"
    ANALYSIS = "analysis"


class ColorSchemeType(str, Enum):
    CORPORATE = "corporate"
    VIBRANT = "vibrant"
    MINIMAL = "minimal"
    ACADEMIC = "academic"
    CREATIVE = "creative"


class LayoutComplexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class AdaptationType(str, Enum):
    """Kind of change recorded while conforming an outline to a template."""
    CONTENT = "content"
    LAYOUT = "layout"
    STYLE = "style"
    STRUCTURE = "structure"


class LayoutSuggestion(str, Enum):
    TITLE = "title"
    TITLE_AND_CONTENT = "title_and_content"
    TWO_COLUMN = "two_column"
    COMPARISON = "comparison"


class RegionKind(str, Enum):
    """Role of a text-bearing region, resolved once when a slide is read."""
    TITLE = "title"
    SUBTITLE = "subtitle"
    CONTENT = "content"
    UNKNOWN = "unknown"


# Outline slide type -> declared content type when none is given
DEFAULT_CONTENT_TYPES: Dict[SlideType, ContentType] = {
    SlideType.TITLE: ContentType.TITLE,
    SlideType.CONTENT: ContentType.BULLETS,
    SlideType.CONCLUSION: ContentType.CONCLUSION,
}

# Slide position inside a template: 1-based index or "first" | "last" | "any"
Position = Union[int, str]


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _pick(d: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key (outlines may come back camelCased)."""
    for key in keys:
        if key in d and d[key] is not None:
            return d[key]
    return default


# ---------------------------------------------------------------------------
# Outline models
# ---------------------------------------------------------------------------

@dataclass
class SlideOutline:
    """One entry of a drafted outline."""
    slide_number: int                   # 1-based, equals position in Outline.slides
    title: str
    content: List[str] = field(default_factory=list)
    slide_type: SlideType = SlideType.CONTENT
    speaker_notes: Optional[str] = None
    content_type: Optional[ContentType] = None

    @property
    def effective_content_type(self) -> ContentType:
        if self.content_type is not None:
            return self.content_type
        return DEFAULT_CONTENT_TYPES[self.slide_type]

    @property
    def char_count(self) -> int:
        return len(" ".join(self.content))

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "slide_number": self.slide_number,
            "title": self.title,
            "content": list(self.content),
            "slide_type": self.slide_type.value,
        }
        if self.speaker_notes is not None:
            d["speaker_notes"] = self.speaker_notes
        if self.content_type is not None:
            d["content_type"] = self.content_type.value
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> SlideOutline:
        content_type = _pick(d, "content_type", "contentType")
        return cls(
            slide_number=int(_pick(d, "slide_number", "slideNumber", default=0)),
            title=str(d.get("title", "")),
            content=[str(c) for c in d.get("content", [])],
            slide_type=SlideType(_pick(d, "slide_type", "slideType", default="content")),
            speaker_notes=_pick(d, "speaker_notes", "speakerNotes"),
            content_type=ContentType(content_type) if content_type else None,
        )


@dataclass
class Outline:
    """Ordered, editable draft of a document's slides."""
    title: str
    slides: List[SlideOutline] = field(default_factory=list)
    estimated_duration: int = 0         # minutes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "estimated_duration": self.estimated_duration,
            "slides": [s.to_dict() for s in self.slides],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> Outline:
        return cls(
            title=str(d.get("title", "")),
            estimated_duration=int(_pick(d, "estimated_duration", "estimatedDuration", default=0)),
            slides=[SlideOutline.from_dict(s) for s in d.get("slides", [])],
        )


# ---------------------------------------------------------------------------
# Template models
# ---------------------------------------------------------------------------

@dataclass
class PatternRule:
    condition: str
    action: str
    priority: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {"condition": self.condition, "action": self.action, "priority": self.priority}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> PatternRule:
        return cls(condition=d["condition"], action=d["action"], priority=d.get("priority", 1))


@dataclass
class DesignPattern:
    """
    A recurring structural or visual choice distilled from a document.

    frequency is always occurrences / analyzed slide count.
    """
    type: PatternType
    pattern: str                        # identifier, e.g. "Title and Content", "#1F497D", "font-Calibri"
    frequency: float
    importance: Importance
    description: str = ""
    rules: List[PatternRule] = field(default_factory=list)
    occurrences: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "pattern": self.pattern,
            "frequency": self.frequency,
            "importance": self.importance.value,
            "description": self.description,
            "rules": [r.to_dict() for r in self.rules],
            "occurrences": self.occurrences,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> DesignPattern:
        return cls(
            type=PatternType(d["type"]),
            pattern=d["pattern"],
            frequency=d["frequency"],
            importance=Importance(d.get("importance", "important")),
            description=d.get("description", ""),
            rules=[PatternRule.from_dict(r) for r in d.get("rules", [])],
            occurrences=d.get("occurrences", 0),
        )


@dataclass
class SlideTypePattern:
    """Where a template expects a given slide type."""
    position: Position
    type: str                           # TemplateSlideType value
    frequency: float = 1.0
    required: bool = True
    variations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "type": self.type,
            "frequency": self.frequency,
            "required": self.required,
            "variations": list(self.variations),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> SlideTypePattern:
        return cls(
            position=d.get("position", "any"),
            type=d["type"],
            frequency=d.get("frequency", 1.0),
            required=d.get("required", True),
            variations=d.get("variations", []),
        )


@dataclass
class ContentFlowPattern:
    from_slide_type: str
    to_slide_type: str
    probability: float
    transition_style: str = "standard"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_slide_type": self.from_slide_type,
            "to_slide_type": self.to_slide_type,
            "probability": self.probability,
            "transition_style": self.transition_style,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> ContentFlowPattern:
        return cls(
            from_slide_type=d["from_slide_type"],
            to_slide_type=d["to_slide_type"],
            probability=d["probability"],
            transition_style=d.get("transition_style", "standard"),
        )


@dataclass
class NavigationPattern:
    has_agenda: bool = False
    has_table_of_contents: bool = False
    section_dividers: bool = False
    back_navigation: bool = False

    @property
    def has_navigation_aids(self) -> bool:
        return self.has_agenda or self.has_table_of_contents

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_agenda": self.has_agenda,
            "has_table_of_contents": self.has_table_of_contents,
            "section_dividers": self.section_dividers,
            "back_navigation": self.back_navigation,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> NavigationPattern:
        return cls(
            has_agenda=d.get("has_agenda", False),
            has_table_of_contents=d.get("has_table_of_contents", False),
            section_dividers=d.get("section_dividers", False),
            back_navigation=d.get("back_navigation", False),
        )


@dataclass
class VisualHierarchyPattern:
    level: int
    element: str                        # "title" | "content" | ...
    font_size: float
    font_weight: str = "normal"
    color: str = "#000000"
    positioning: str = "top"

    def style(self) -> Dict[str, Any]:
        return {"font_size": self.font_size, "font_weight": self.font_weight, "color": self.color}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "element": self.element,
            "font_size": self.font_size,
            "font_weight": self.font_weight,
            "color": self.color,
            "positioning": self.positioning,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> VisualHierarchyPattern:
        return cls(
            level=d["level"],
            element=d["element"],
            font_size=d["font_size"],
            font_weight=d.get("font_weight", "normal"),
            color=d.get("color", "#000000"),
            positioning=d.get("positioning", "top"),
        )


@dataclass
class TemplateStructure:
    """Structural expectations of a template."""
    expected_slide_types: List[SlideTypePattern] = field(default_factory=list)
    content_flow: List[ContentFlowPattern] = field(default_factory=list)
    navigation_pattern: NavigationPattern = field(default_factory=NavigationPattern)
    visual_hierarchy: List[VisualHierarchyPattern] = field(default_factory=list)

    @classmethod
    def default(cls) -> TemplateStructure:
        """Single 'any content' expectation, used when nothing could be extracted."""
        return cls(expected_slide_types=[
            SlideTypePattern(position="any", type=TemplateSlideType.CONTENT.value),
        ])

    def hierarchy_for(self, element: str) -> Optional[VisualHierarchyPattern]:
        for level in self.visual_hierarchy:
            if level.element == element:
                return level
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expected_slide_types": [s.to_dict() for s in self.expected_slide_types],
            "content_flow": [c.to_dict() for c in self.content_flow],
            "navigation_pattern": self.navigation_pattern.to_dict(),
            "visual_hierarchy": [v.to_dict() for v in self.visual_hierarchy],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> TemplateStructure:
        return cls(
            expected_slide_types=[SlideTypePattern.from_dict(s) for s in d.get("expected_slide_types", [])],
            content_flow=[ContentFlowPattern.from_dict(c) for c in d.get("content_flow", [])],
            navigation_pattern=NavigationPattern.from_dict(d.get("navigation_pattern", {})),
            visual_hierarchy=[VisualHierarchyPattern.from_dict(v) for v in d.get("visual_hierarchy", [])],
        )


@dataclass
class TemplateMetadata:
    """Descriptive facets of a template."""
    presentation_style: PresentationStyle = PresentationStyle.FORMAL
    target_audience: TargetAudience = TargetAudience.GENERAL
    content_density: ContentDensity = ContentDensity.MEDIUM
    purpose: Purpose = Purpose.REPORT
    color_scheme_type: ColorSchemeType = ColorSchemeType.CORPORATE
    layout_complexity: LayoutComplexity = LayoutComplexity.MODERATE
    slide_count: int = 0
    tags: List[str] = field(default_factory=list)
    industry: List[str] = field(default_factory=list)
    usage_count: int = 0
    registered_at: datetime = field(default_factory=datetime.now)
    last_used: Optional[datetime] = None
    author: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "presentation_style": self.presentation_style.value,
            "target_audience": self.target_audience.value,
            "content_density": self.content_density.value,
            "purpose": self.purpose.value,
            "color_scheme_type": self.color_scheme_type.value,
            "layout_complexity": self.layout_complexity.value,
            "slide_count": self.slide_count,
            "tags": list(self.tags),
            "industry": list(self.industry),
            "usage_count": self.usage_count,
            "registered_at": _iso(self.registered_at),
            "last_used": _iso(self.last_used),
        }
        if self.author is not None:
            d["author"] = self.author
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> TemplateMetadata:
        return cls(
            presentation_style=PresentationStyle(d.get("presentation_style", "formal")),
            target_audience=TargetAudience(d.get("target_audience", "general")),
            content_density=ContentDensity(d.get("content_density", "medium")),
            purpose=Purpose(d.get("purpose", "report")),
            color_scheme_type=ColorSchemeType(d.get("color_scheme_type", "corporate")),
            layout_complexity=LayoutComplexity(d.get("layout_complexity", "moderate")),
            slide_count=d.get("slide_count", 0),
            tags=d.get("tags", []),
            industry=d.get("industry", []),
            usage_count=d.get("usage_count", 0),
            registered_at=_parse_dt(d.get("registered_at")) or datetime.now(),
            last_used=_parse_dt(d.get("last_used")),
            author=d.get("author"),
        )


@dataclass
class TemplateInfo:
    """A named bundle of structural expectations and style metadata."""
    id: str
    name: str
    category: TemplateCategory
    metadata: TemplateMetadata = field(default_factory=TemplateMetadata)
    design_patterns: List[DesignPattern] = field(default_factory=list)
    structure: TemplateStructure = field(default_factory=TemplateStructure.default)
    description: str = ""

    def patterns_of(self, *types: PatternType) -> List[DesignPattern]:
        return [p for p in self.design_patterns if p.type in types]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "metadata": self.metadata.to_dict(),
            "design_patterns": [p.to_dict() for p in self.design_patterns],
            "structure": self.structure.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> TemplateInfo:
        return cls(
            id=d["id"],
            name=d["name"],
            description=d.get("description", ""),
            category=TemplateCategory(d.get("category", "custom")),
            metadata=TemplateMetadata.from_dict(d.get("metadata", {})),
            design_patterns=[DesignPattern.from_dict(p) for p in d.get("design_patterns", [])],
            structure=TemplateStructure.from_dict(d["structure"]) if "structure" in d else TemplateStructure.default(),
        )


@dataclass
class TemplateUsageStats:
    """Usage and feedback counters for one template."""
    template_id: str
    usage_count: int = 0
    last_used: Optional[datetime] = None
    average_rating: Optional[float] = None
    rating_count: int = 0
    success_rate: Optional[float] = None
    user_feedback: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "template_id": self.template_id,
            "usage_count": self.usage_count,
            "last_used": _iso(self.last_used),
            "average_rating": self.average_rating,
            "rating_count": self.rating_count,
            "success_rate": self.success_rate,
            "user_feedback": list(self.user_feedback),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> TemplateUsageStats:
        return cls(
            template_id=d["template_id"],
            usage_count=d.get("usage_count", 0),
            last_used=_parse_dt(d.get("last_used")),
            average_rating=d.get("average_rating"),
            rating_count=d.get("rating_count", 0),
            success_rate=d.get("success_rate"),
            user_feedback=d.get("user_feedback", []),
        )


@dataclass
class TemplateAnalysisResult:
    """Outcome of analysing an existing document for template registration."""
    detected_patterns: List[DesignPattern]
    extracted_structure: TemplateStructure
    suggested_metadata: Dict[str, Any]
    confidence: float
    analysis_notes: List[str] = field(default_factory=list)
    analyzed_slides: int = 0
    errors: List[SlideError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detected_patterns": [p.to_dict() for p in self.detected_patterns],
            "extracted_structure": self.extracted_structure.to_dict(),
            "suggested_metadata": {
                k: (v.value if isinstance(v, Enum) else v)
                for k, v in self.suggested_metadata.items()
            },
            "confidence": self.confidence,
            "analysis_notes": list(self.analysis_notes),
            "analyzed_slides": self.analyzed_slides,
            "errors": [e.to_dict() for e in self.errors],
        }


# ---------------------------------------------------------------------------
# Selection and recommendation
# ---------------------------------------------------------------------------

@dataclass
class SelectionPreferences:
    categories: Optional[List[TemplateCategory]] = None
    exclude_categories: Optional[List[TemplateCategory]] = None
    minimum_score: Optional[float] = None       # None -> ScoringConfig.minimum_score
    max_results: Optional[int] = None           # None -> ScoringConfig.max_results


@dataclass
class PresentationContext:
    """Caller-supplied facets that override intent detection when set."""
    audience: Optional[TargetAudience] = None
    purpose: Optional[Purpose] = None
    duration: Optional[int] = None
    industry: Optional[str] = None


@dataclass
class AdaptationChange:
    target: str
    from_value: Any
    to_value: Any
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"target": self.target, "from": self.from_value, "to": self.to_value, "reason": self.reason}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> AdaptationChange:
        return cls(target=d["target"], from_value=d.get("from"), to_value=d.get("to"), reason=d.get("reason", ""))


@dataclass
class TemplateAdaptation:
    type: AdaptationType
    description: str
    confidence: float
    changes: List[AdaptationChange] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "description": self.description,
            "confidence": self.confidence,
            "changes": [c.to_dict() for c in self.changes],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> TemplateAdaptation:
        return cls(
            type=AdaptationType(d["type"]),
            description=d.get("description", ""),
            confidence=d.get("confidence", 0.0),
            changes=[AdaptationChange.from_dict(c) for c in d.get("changes", [])],
        )


@dataclass
class TemplateRecommendation:
    """Ranked candidate returned by the scorer. Never persisted."""
    template: TemplateInfo
    score: float
    reasoning: List[str] = field(default_factory=list)
    adaptations: List[TemplateAdaptation] = field(default_factory=list)
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "template_id": self.template.id,
            "template_name": self.template.name,
            "score": round(self.score, 4),
            "reasoning": list(self.reasoning),
            "adaptations": [a.to_dict() for a in self.adaptations],
            "is_fallback": self.is_fallback,
        }


# ---------------------------------------------------------------------------
# Adaptation results
# ---------------------------------------------------------------------------

@dataclass
class AdaptedContent:
    title: str
    content: List[str]
    slide_type: str                     # TemplateSlideType value
    layout_suggestion: LayoutSuggestion
    style_overrides: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "content": list(self.content),
            "slide_type": self.slide_type,
            "layout_suggestion": self.layout_suggestion.value,
            "style_overrides": self.style_overrides,
        }


@dataclass
class AdaptedSlide:
    """An outline slide projected onto a template. Owns a back-reference to its source."""
    slide_number: int
    original_slide: SlideOutline
    adapted_content: AdaptedContent
    template_patterns: List[DesignPattern] = field(default_factory=list)
    adaptation_notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slide_number": self.slide_number,
            "original_slide": self.original_slide.to_dict(),
            "adapted_content": self.adapted_content.to_dict(),
            "template_patterns": [p.pattern for p in self.template_patterns],
            "adaptation_notes": list(self.adaptation_notes),
        }


@dataclass
class AdaptedOutline:
    original_outline: Outline
    selected_template: TemplateInfo
    adaptations: List[TemplateAdaptation]
    adapted_slides: List[AdaptedSlide]
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_outline": self.original_outline.to_dict(),
            "selected_template": self.selected_template.id,
            "adaptations": [a.to_dict() for a in self.adaptations],
            "adapted_slides": [s.to_dict() for s in self.adapted_slides],
            "confidence": self.confidence,
        }


# ---------------------------------------------------------------------------
# Expansion results
# ---------------------------------------------------------------------------

@dataclass
class DetailedSlideContent:
    title: str
    content: List[str]
    speaker_notes: str

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "content": list(self.content), "speaker_notes": self.speaker_notes}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> DetailedSlideContent:
        return cls(
            title=d["title"],
            content=list(d.get("content", [])),
            speaker_notes=_pick(d, "speaker_notes", "speakerNotes", default=""),
        )


@dataclass
class SlideError:
    """Per-slide failure captured instead of raised."""
    slide_index: int                    # 0-based
    stage: str                          # "request" | "parse" | "validate" | "adapt" | "extract"
    message: str
    error_type: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slide_index": self.slide_index,
            "stage": self.stage,
            "message": self.message,
            "error_type": self.error_type,
        }


@dataclass
class SlideOutcome:
    """Result of expanding one slide: always carries renderable content."""
    index: int
    content: DetailedSlideContent
    error: Optional[SlideError] = None
    fallback: bool = False
    degraded: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ExpansionReport:
    outcomes: List[SlideOutcome] = field(default_factory=list)

    @property
    def slides(self) -> List[DetailedSlideContent]:
        return [o.content for o in self.outcomes]

    @property
    def errors(self) -> List[SlideError]:
        return [o.error for o in self.outcomes if o.error is not None]

    @property
    def fallback_count(self) -> int:
        return sum(1 for o in self.outcomes if o.fallback)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slides": [s.to_dict() for s in self.slides],
            "errors": [e.to_dict() for e in self.errors],
            "fallback_count": self.fallback_count,
        }


@dataclass
class ContentQuality:
    """Advisory quality check of a slide. Warns, never blocks."""
    is_valid: bool
    warnings: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Document snapshots
# ---------------------------------------------------------------------------

@dataclass
class SlideRegion:
    """A text-bearing region of an existing slide, geometry in points."""
    kind: RegionKind
    left: float
    top: float
    width: float
    height: float
    text: str = ""
    font_name: Optional[str] = None
    font_size: Optional[float] = None
    bold: bool = False
    color: Optional[str] = None         # "#RRGGBB"
    fill: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "left": self.left,
            "top": self.top,
            "width": self.width,
            "height": self.height,
            "text": self.text,
            "font_name": self.font_name,
            "font_size": self.font_size,
            "bold": self.bold,
            "color": self.color,
            "fill": self.fill,
        }


@dataclass
class SlideSnapshot:
    """Read-only view of one slide of an existing document."""
    index: int
    layout_name: str = "Unknown Layout"
    regions: List[SlideRegion] = field(default_factory=list)
    background: Optional[str] = None

    @property
    def text(self) -> str:
        return "\n".join(r.text for r in self.regions if r.text)

    def regions_of(self, kind: RegionKind) -> List[SlideRegion]:
        return [r for r in self.regions if r.kind == kind]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "layout_name": self.layout_name,
            "background": self.background,
            "regions": [r.to_dict() for r in self.regions],
        }
