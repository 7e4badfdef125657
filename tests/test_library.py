"""
Tests for the template library and its persistence

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

import json
from datetime import datetime, timedelta

import pytest

from deckforge.config import StorageConfig
from deckforge.errors import TemplateNotFoundError
from deckforge.library import JsonFileStore, MemoryStore, TemplateLibrary, default_templates
from deckforge.models import Purpose, TemplateCategory, TemplateInfo, TemplateMetadata


def make_template(template_id="custom-sales", category=TemplateCategory.CUSTOM, **metadata):
    return TemplateInfo(
        id=template_id,
        name=metadata.pop("name", "Sales Kickoff"),
        category=category,
        metadata=TemplateMetadata(**metadata),
        description="Registered from kickoff.pptx",
    )


class TestDefaults:
    """The built-in catalog."""

    def test_three_defaults(self, library):
        """Every library starts with business, academic and minimal."""
        assert [t.id for t in library.templates] == ["default-business", "default-academic", "default-minimal"]
        assert len(library) == 3
        assert "default-academic" in library

    def test_no_defaults(self):
        assert len(TemplateLibrary(include_defaults=False)) == 0

    def test_categories(self, library):
        assert [t.id for t in library.by_category(TemplateCategory.BUSINESS)] == ["default-business"]
        assert library.by_category(TemplateCategory.CREATIVE) == []

    def test_get_unknown(self, library):
        """Unknown ids raise TemplateNotFoundError; find returns None."""
        with pytest.raises(TemplateNotFoundError) as exc:
            library.get("nope")
        assert exc.value.template_id == "nope"
        assert library.find("nope") is None

    def test_templates_is_a_snapshot(self, library):
        """Mutating the returned list does not touch the catalog."""
        library.templates.clear()
        assert len(library) == 3


class TestSearch:
    """Tests for search, lookup and rankings."""

    def test_query_matches_tags_and_name(self, library):
        assert [t.id for t in library.search("research")] == ["default-academic"]
        assert [t.id for t in library.search("MINIMAL")] == ["default-minimal"]

    def test_filters_are_combined(self, library):
        """Category and purpose filters are AND-combined."""
        results = library.search(categories=[TemplateCategory.BUSINESS, TemplateCategory.MINIMAL], purpose=Purpose.PITCH)
        assert [t.id for t in results] == ["default-business", "default-minimal"]
        assert library.search("formal", purpose="report") == [library.get("default-academic")]

    def test_industry(self, library):
        library.add(make_template(industry=["Finance"]))
        assert [t.id for t in library.search(industry="finance")] == ["custom-sales"]
        assert [t.id for t in library.lookup("industry", "FINANCE")] == ["custom-sales"]

    def test_lookup(self, library):
        assert {t.id for t in library.lookup("purpose", "pitch")} == {"default-business", "default-minimal"}
        assert [t.id for t in library.lookup("tag", "clean")] == ["default-minimal"]
        assert library.lookup("color", "red") == []

    def test_popular(self, library):
        """Templates are ranked by usage count."""
        library.record_usage("default-minimal")
        library.record_usage("default-minimal")
        library.record_usage("default-academic")

        assert [t.id for t in library.popular(2)] == ["default-minimal", "default-academic"]

    def test_recent_only_used(self, library):
        """recent() lists used templates, most recent first."""
        assert library.recent() == []
        library.record_usage("default-business")
        library.record_usage("default-minimal")
        library.usage_for("default-business").last_used = datetime.now() + timedelta(minutes=1)

        assert [t.id for t in library.recent()] == ["default-business", "default-minimal"]

    def test_statistics(self, library):
        library.add(make_template())
        library.record_usage("custom-sales")
        library.record_feedback("custom-sales", 4)
        library.record_feedback("default-business", 2)

        stats = library.statistics()
        assert stats["total_templates"] == 4
        assert stats["by_category"]["custom"] == 1
        assert stats["most_used"][0] == "custom-sales"
        assert stats["recently_added"] == ["default-academic", "default-minimal", "custom-sales"]
        assert stats["average_rating"] == pytest.approx(3.0)


class TestMutation:
    """Tests for add, usage and feedback."""

    def test_add_replaces_same_id(self, library):
        library.add(make_template(name="v1"))
        library.add(make_template(name="v2", category=TemplateCategory.MARKETING))

        assert len(library) == 4
        assert library.get("custom-sales").name == "v2"
        assert library.by_category(TemplateCategory.CUSTOM) == []
        assert [t.name for t in library.by_category(TemplateCategory.MARKETING)] == ["v2"]

    @pytest.mark.parametrize("broken", [
        TemplateInfo(id="custom-sales", name="No metadata", category=TemplateCategory.CUSTOM, metadata=None),
        TemplateInfo(id="custom-sales", name="Bad category", category="nonexistent"),
    ])
    def test_add_invalid_leaves_catalog_unchanged(self, library, broken):
        """A template that cannot be indexed is rejected before it enters the catalog."""
        library.add(make_template(name="v1", industry=["retail"]))
        index = library.search_index

        with pytest.raises(ValueError):
            library.add(broken)

        assert len(library) == 4
        assert library.get("custom-sales").name == "v1"
        assert [t.name for t in library.by_category(TemplateCategory.CUSTOM)] == ["v1"]
        assert library.search_index == index

    def test_record_usage(self, library):
        """Usage updates the statistics and the template metadata."""
        stats = library.record_usage("default-business")
        library.record_usage("default-business")

        assert stats.usage_count == 2
        assert library.get("default-business").metadata.usage_count == 2
        assert library.get("default-business").metadata.last_used == stats.last_used

    def test_record_usage_unknown(self, library):
        with pytest.raises(TemplateNotFoundError):
            library.record_usage("missing")

    def test_running_average(self, library):
        """Ratings fold into a running average."""
        library.record_feedback("default-business", 5)
        library.record_feedback("default-business", 3)
        stats = library.record_feedback("default-business", 4, feedback="Clear layout")

        assert stats.average_rating == pytest.approx(4.0)
        assert stats.rating_count == 3
        assert stats.user_feedback == ["Clear layout"]

    @pytest.mark.parametrize("rating", [0, 5.5, -1])
    def test_rating_out_of_range(self, library, rating):
        with pytest.raises(ValueError):
            library.record_feedback("default-business", rating)

    def test_success_rate_is_clamped(self, library):
        """Success moves by 0.1 per report and stays in [0, 1]."""
        for _ in range(12):
            stats = library.record_feedback("default-minimal", 5, success=True)
        assert stats.success_rate == pytest.approx(1.0)

        library.record_feedback("default-minimal", 1, success=False)
        assert stats.success_rate == pytest.approx(0.9)

        stats = library.record_feedback("default-academic", 2, success=False)
        assert stats.success_rate == pytest.approx(0.0)

    def test_no_success_report(self, library):
        stats = library.record_feedback("default-academic", 3)
        assert stats.success_rate is None


class TestPersistence:
    """Round trips through the key-value stores."""

    def test_memory_round_trip(self, store):
        library = TemplateLibrary(store=store)
        library.add(make_template(industry=["retail"], tags=["sales"]))
        library.record_usage("custom-sales")
        library.record_feedback("custom-sales", 5, success=True)

        reloaded = TemplateLibrary(store=store)
        assert reloaded.load() == 4
        assert len(reloaded) == 4
        template = reloaded.get("custom-sales")
        assert template.metadata.industry == ["retail"]
        stats = reloaded.usage_for("custom-sales")
        assert stats.usage_count == 1
        assert stats.average_rating == pytest.approx(5.0)
        assert stats.success_rate == pytest.approx(0.1)
        assert [t.id for t in reloaded.lookup("tag", "sales")] == ["custom-sales"]

    def test_custom_keys(self):
        store = MemoryStore()
        library = TemplateLibrary(store=store, config=StorageConfig(template_library_key="lib", usage_stats_key="use"))
        library.add(make_template())

        assert json.loads(store.get("lib"))[-1]["id"] == "custom-sales"
        assert store.get("use") == "{}"

    def test_bad_entries_are_skipped(self, caplog):
        """An unreadable entry is logged and skipped; the rest loads."""
        good = make_template().to_dict()
        store = MemoryStore({"template_library": json.dumps([{"name": "no id"}, good])})
        library = TemplateLibrary(store=store, config=StorageConfig(template_library_key="template_library"))

        assert library.load() == 1
        assert "custom-sales" in library
        assert "Skipping stored template" in caplog.text

    def test_unreadable_library(self):
        store = MemoryStore({StorageConfig().template_library_key: "{not json"})
        library = TemplateLibrary(store=store)
        assert library.load() == 0
        assert len(library) == 3

    def test_json_file_store(self, tmp_path):
        """The file store persists across instances and shares writes."""
        path = tmp_path / "state" / "store.json"
        TemplateLibrary(store=JsonFileStore(path)).add(make_template())

        assert path.exists()
        reloaded = TemplateLibrary(store=JsonFileStore(path))
        reloaded.load()
        assert "custom-sales" in reloaded

    def test_json_file_store_corrupt(self, tmp_path):
        """A corrupt file reads as empty."""
        path = tmp_path / "store.json"
        path.write_text("[1, 2", encoding="utf-8")
        store = JsonFileStore(path)

        assert store.get("anything") is None
        store.set("k", "v")
        assert store.get("k") == "v"

    def test_defaults_are_fresh_objects(self):
        assert default_templates()[0] is not default_templates()[0]
