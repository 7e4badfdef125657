"""
Outline adaptation: projects a generic outline onto a chosen template.

Each outline slide becomes exactly one AdaptedSlide (same order, same count).
Slide-level adaptation never fails the run: a slide that cannot be adapted
keeps its original content and carries a note saying so. Outline-level
adaptations (slide count, content density) are recorded with a confidence;
the overall confidence is their mean, or 1.0 when there is nothing to
reconcile.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from deckforge.config import AdaptationConfig
from deckforge.library import TemplateLibrary
from deckforge.models import (
    AdaptationChange,
    AdaptationType,
    AdaptedContent,
    AdaptedOutline,
    AdaptedSlide,
    ContentDensity,
    ContentType,
    LayoutSuggestion,
    Outline,
    PatternType,
    SlideOutline,
    TemplateAdaptation,
    TemplateInfo,
    TemplateSlideType,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------------

CONTENT_TO_TEMPLATE_TYPE: Dict[ContentType, TemplateSlideType] = {
    ContentType.TITLE: TemplateSlideType.TITLE,
    ContentType.BULLETS: TemplateSlideType.CONTENT,
    ContentType.COMPARISON: TemplateSlideType.COMPARISON,
    ContentType.CONCLUSION: TemplateSlideType.CONCLUSION,
}

# Layout pattern names (as read from documents) -> layout suggestion, first match wins
LAYOUT_NAME_RULES = [
    ("comparison", LayoutSuggestion.COMPARISON),
    ("two", LayoutSuggestion.TWO_COLUMN),
    ("title slide", LayoutSuggestion.TITLE),
    ("title only", LayoutSuggestion.TITLE),
]


def map_slide_type(content_type: ContentType) -> TemplateSlideType:
    return CONTENT_TO_TEMPLATE_TYPE.get(content_type, TemplateSlideType.CONTENT)


def template_default_layout(template: TemplateInfo) -> LayoutSuggestion:
    """Layout of the template's most frequent layout pattern, else title and content."""
    layouts = template.patterns_of(PatternType.LAYOUT)
    if not layouts:
        return LayoutSuggestion.TITLE_AND_CONTENT
    name = max(layouts, key=lambda p: p.frequency).pattern.lower()
    for keyword, suggestion in LAYOUT_NAME_RULES:
        if keyword in name:
            return suggestion
    return LayoutSuggestion.TITLE_AND_CONTENT


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

class OutlineAdapter:
    """
    Conforms outlines to templates.

    Example:
        adapter = OutlineAdapter(library)
        adapted = adapter.adapt_by_id(outline, "default-business")
        print(adapted.confidence)
    """

    def __init__(self, library: Optional[TemplateLibrary] = None, config: Optional[AdaptationConfig] = None):
        self.library = library
        self.config = config or AdaptationConfig()

    def suggest_layout(self, slide: SlideOutline, template: TemplateInfo) -> LayoutSuggestion:
        content_type = slide.effective_content_type
        if content_type == ContentType.COMPARISON:
            return LayoutSuggestion.COMPARISON
        if slide.char_count > self.config.two_column_char_threshold:
            return LayoutSuggestion.TWO_COLUMN
        if content_type == ContentType.TITLE:
            return LayoutSuggestion.TITLE
        return template_default_layout(template)

    @staticmethod
    def style_overrides(template: TemplateInfo) -> Dict[str, Any]:
        title = template.structure.hierarchy_for("title")
        return {"title_style": title.style()} if title is not None else {}

    def adapt_slide(self, slide: SlideOutline, template: TemplateInfo, index: int) -> AdaptedSlide:
        """Adapt one slide. May raise; adapt() turns failures into notes."""
        patterns = template.patterns_of(PatternType.LAYOUT, PatternType.TYPOGRAPHY)
        content = AdaptedContent(
            title=slide.title or f"Slide {index + 1}",
            content=list(slide.content),
            slide_type=map_slide_type(slide.effective_content_type).value,
            layout_suggestion=self.suggest_layout(slide, template),
            style_overrides=self.style_overrides(template),
        )
        return AdaptedSlide(
            slide_number=index + 1,
            original_slide=slide,
            adapted_content=content,
            template_patterns=patterns,
            adaptation_notes=[
                f"Adapted to {template.name} template",
                f"Applied {len(patterns)} template patterns",
            ],
        )

    @staticmethod
    def passthrough_slide(slide: SlideOutline, index: int, error: Exception) -> AdaptedSlide:
        """The slide as it was, tagged with why it was not adapted."""
        return AdaptedSlide(
            slide_number=index + 1,
            original_slide=slide,
            adapted_content=AdaptedContent(
                title=slide.title or f"Slide {index + 1}",
                content=list(slide.content),
                slide_type=TemplateSlideType.CONTENT.value,
                layout_suggestion=LayoutSuggestion.TITLE_AND_CONTENT,
            ),
            adaptation_notes=[f"Kept original content: adaptation failed ({error})"],
        )

    def structural_adaptations(self, outline: Outline, template: TemplateInfo) -> List[TemplateAdaptation]:
        adaptations = []
        current = len(outline.slides)
        target = template.metadata.slide_count
        if current != target:
            adaptations.append(TemplateAdaptation(
                type=AdaptationType.STRUCTURE,
                description=f"Recommend {target} slides (current: {current})",
                confidence=self.config.structural_confidence,
                changes=[AdaptationChange(
                    target="slide_count",
                    from_value=current,
                    to_value=target,
                    reason="Template optimized for specific slide count",
                )],
            ))
        if template.metadata.content_density == ContentDensity.LOW:
            adaptations.append(TemplateAdaptation(
                type=AdaptationType.CONTENT,
                description="Reduce content density to match template style",
                confidence=self.config.density_confidence,
                changes=[AdaptationChange(
                    target="content_density",
                    from_value="current",
                    to_value=ContentDensity.LOW.value,
                    reason="Template designed for minimal content per slide",
                )],
            ))
        return adaptations

    def confidence(self, adaptations: List[TemplateAdaptation]) -> float:
        if not adaptations:
            return 1.0
        mean = sum(a.confidence for a in adaptations) / len(adaptations)
        return max(self.config.min_confidence, min(1.0, mean))

    def adapt(self, outline: Outline, template: TemplateInfo) -> AdaptedOutline:
        """Project outline onto template. The outline is not modified."""
        slides = []
        for index, slide in enumerate(outline.slides):
            try:
                slides.append(self.adapt_slide(slide, template, index))
            except Exception as e:
                logger.warning(f"Slide {index + 1} kept unadapted: {e}")
                slides.append(self.passthrough_slide(slide, index, e))

        adaptations = self.structural_adaptations(outline, template)
        adapted = AdaptedOutline(
            original_outline=outline,
            selected_template=template,
            adaptations=adaptations,
            adapted_slides=slides,
            confidence=self.confidence(adaptations),
        )
        logger.info(
            f"Adapted '{outline.title}' to {template.id}: {len(slides)} slides, "
            f"{len(adaptations)} adaptations, confidence {adapted.confidence:.2f}"
        )
        return adapted

    def adapt_by_id(self, outline: Outline, template_id: str, record_usage: bool = True) -> AdaptedOutline:
        """
        Resolve the template in the library, adapt, and count one use.

        Raises:
            TemplateNotFoundError: unknown template id
        """
        if self.library is None:
            raise ValueError("adapt_by_id needs a TemplateLibrary")
        template = self.library.get(template_id)
        adapted = self.adapt(outline, template)
        if record_usage:
            self.library.record_usage(template_id)
        return adapted
