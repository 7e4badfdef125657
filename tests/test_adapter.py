"""
Tests for outline-to-template adaptation

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

from unittest.mock import patch

import pytest

from deckforge.adapter import OutlineAdapter, map_slide_type, template_default_layout
from deckforge.config import AdaptationConfig
from deckforge.errors import TemplateNotFoundError
from deckforge.models import (
    AdaptationType,
    ContentType,
    DesignPattern,
    Importance,
    LayoutSuggestion,
    PatternType,
    SlideOutline,
    SlideType,
    TemplateCategory,
    TemplateInfo,
    TemplateMetadata,
    TemplateSlideType,
    TemplateStructure,
    VisualHierarchyPattern,
)

from conftest import make_outline


def layout_pattern(name, frequency):
    return DesignPattern(type=PatternType.LAYOUT, pattern=name, frequency=frequency,
                         importance=Importance.IMPORTANT, occurrences=2)


class TestStructuralAdaptations:
    """Outline-level adaptations and confidence."""

    def test_slide_count_mismatch(self, library):
        """12 slides against a 10-slide template: one structure adaptation at 0.7."""
        adapted = OutlineAdapter(library).adapt_by_id(make_outline(12), "default-business")

        assert len(adapted.adaptations) == 1
        adaptation = adapted.adaptations[0]
        assert adaptation.type == AdaptationType.STRUCTURE
        assert adaptation.confidence == pytest.approx(0.7)
        assert adaptation.description == "Recommend 10 slides (current: 12)"
        change = adaptation.changes[0].to_dict()
        assert change["target"] == "slide_count"
        assert (change["from"], change["to"]) == (12, 10)
        assert adapted.confidence == pytest.approx(0.7)

    def test_matching_length(self, library):
        """Nothing to reconcile: no adaptations and full confidence."""
        adapted = OutlineAdapter(library).adapt_by_id(make_outline(10), "default-business")

        assert adapted.adaptations == []
        assert adapted.confidence == 1.0

    def test_low_density_template(self, library):
        """A low density template adds a content adaptation; confidence is the mean."""
        adapted = OutlineAdapter(library).adapt_by_id(make_outline(12), "default-minimal")

        assert [a.type for a in adapted.adaptations] == [AdaptationType.STRUCTURE, AdaptationType.CONTENT]
        assert adapted.adaptations[1].changes[0].to_value == "low"
        assert adapted.confidence == pytest.approx(0.75)

    def test_confidence_floor(self):
        adapter = OutlineAdapter(config=AdaptationConfig(structural_confidence=0.0, min_confidence=0.1))
        template = TemplateInfo(id="t", name="T", category=TemplateCategory.CUSTOM,
                                metadata=TemplateMetadata(slide_count=3))
        assert adapter.adapt(make_outline(5), template).confidence == pytest.approx(0.1)


class TestSlides:
    """Slide-level projection."""

    def test_one_adapted_slide_per_slide(self, library):
        """Same order, same count, outline untouched."""
        outline = make_outline(4)
        before = outline.to_dict()
        adapted = OutlineAdapter(library).adapt_by_id(outline, "default-academic")

        assert [s.slide_number for s in adapted.adapted_slides] == [1, 2, 3, 4]
        assert [s.adapted_content.title for s in adapted.adapted_slides] == [s.title for s in outline.slides]
        assert adapted.adapted_slides[0].original_slide is outline.slides[0]
        assert outline.to_dict() == before

    def test_slide_types(self, library):
        adapted = OutlineAdapter(library).adapt(make_outline(3), library.get("default-business"))
        assert [s.adapted_content.slide_type for s in adapted.adapted_slides] == ["title", "content", "conclusion"]

    def test_failed_slide_is_kept(self, library):
        """A slide that cannot be adapted keeps its content and says why."""
        adapter = OutlineAdapter(library)
        original = adapter.adapt_slide

        def flaky(slide, template, index):
            if index == 1:
                raise RuntimeError("bad slide")
            return original(slide, template, index)

        with patch.object(adapter, "adapt_slide", side_effect=flaky):
            adapted = adapter.adapt(make_outline(3), library.get("default-business"))

        kept = adapted.adapted_slides[1]
        assert len(adapted.adapted_slides) == 3
        assert kept.adapted_content.content == ["point 2.1", "point 2.2"]
        assert kept.adaptation_notes == ["Kept original content: adaptation failed (bad slide)"]

    def test_style_overrides(self):
        """The template's title style is carried on every slide."""
        structure = TemplateStructure(visual_hierarchy=[
            VisualHierarchyPattern(level=1, element="title", font_size=32, font_weight="bold",
                                   color="#1F497D", positioning="top"),
        ])
        template = TemplateInfo(id="t", name="T", category=TemplateCategory.CUSTOM, structure=structure)
        adapted = OutlineAdapter().adapt(make_outline(2), template)

        assert adapted.adapted_slides[0].adapted_content.style_overrides["title_style"]["color"] == "#1F497D"

    def test_unknown_template(self, library):
        with pytest.raises(TemplateNotFoundError):
            OutlineAdapter(library).adapt_by_id(make_outline(2), "missing")

    def test_adapt_by_id_needs_library(self):
        with pytest.raises(ValueError):
            OutlineAdapter().adapt_by_id(make_outline(2), "default-business")

    def test_usage_recorded(self, library):
        OutlineAdapter(library).adapt_by_id(make_outline(2), "default-minimal")
        OutlineAdapter(library).adapt_by_id(make_outline(2), "default-minimal", record_usage=False)
        assert library.usage_for("default-minimal").usage_count == 1


class TestLayouts:
    """Layout suggestion precedence."""

    def slide(self, content=None, slide_type=SlideType.CONTENT, content_type=None):
        return SlideOutline(1, "S", content or ["a"], slide_type, content_type=content_type)

    def template(self, patterns=()):
        return TemplateInfo(id="t", name="T", category=TemplateCategory.CUSTOM, design_patterns=list(patterns))

    def test_comparison_first(self):
        """Comparison content wins even when long."""
        slide = self.slide(["x" * 600], content_type=ContentType.COMPARISON)
        assert OutlineAdapter().suggest_layout(slide, self.template()) == LayoutSuggestion.COMPARISON

    def test_long_content_two_columns(self):
        slide = self.slide(["x" * 300, "y" * 300], slide_type=SlideType.TITLE)
        assert OutlineAdapter().suggest_layout(slide, self.template()) == LayoutSuggestion.TWO_COLUMN

    def test_title(self):
        slide = self.slide(slide_type=SlideType.TITLE)
        assert OutlineAdapter().suggest_layout(slide, self.template()) == LayoutSuggestion.TITLE

    def test_template_default(self):
        """Plain content follows the template's most frequent layout."""
        template = self.template([layout_pattern("Title and Content", 0.4), layout_pattern("Two Content", 0.6)])
        assert OutlineAdapter().suggest_layout(self.slide(), template) == LayoutSuggestion.TWO_COLUMN
        assert template_default_layout(self.template()) == LayoutSuggestion.TITLE_AND_CONTENT

    def test_map_slide_type(self):
        assert map_slide_type(ContentType.BULLETS) == TemplateSlideType.CONTENT
        assert map_slide_type(ContentType.COMPARISON) == TemplateSlideType.COMPARISON
