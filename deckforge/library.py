"""
Template Library - catalog of templates with usage statistics

Holds the built-in and registered templates, a category index, a search
index (industry, style, purpose, tag) and per-template usage statistics.
All mutation goes through add(), record_usage() and record_feedback().

Persistence is an injected key-value capability (get/set of strings under
fixed keys), so the library itself never touches ambient storage.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

import json
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from deckforge.config import StorageConfig
from deckforge.errors import TemplateNotFoundError
from deckforge.models import (
    ColorSchemeType,
    ContentDensity,
    LayoutComplexity,
    NavigationPattern,
    PresentationStyle,
    Purpose,
    SlideTypePattern,
    TargetAudience,
    TemplateCategory,
    TemplateInfo,
    TemplateMetadata,
    TemplateStructure,
    TemplateUsageStats,
)

logger = logging.getLogger(__name__)

MIN_RATING = 1.0
MAX_RATING = 5.0
SUCCESS_STEP = 0.1


# =============================================================================
# Key-value persistence
# =============================================================================

class KeyValueStore(ABC):
    """String key-value store used to persist the library and its statistics."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key."""


class MemoryStore(KeyValueStore):
    """Process-local store (tests, one-shot CLI runs)."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore(KeyValueStore):
    """
    Store backed by a single JSON object on disk.

    The file is re-read on every get so that two processes sharing it see
    each other's writes; an unreadable file behaves as empty.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read store {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)


# =============================================================================
# Built-in templates
# =============================================================================

def _default(
    template_id: str,
    name: str,
    description: str,
    category: TemplateCategory,
    metadata: TemplateMetadata,
    expected: List[SlideTypePattern],
    navigation: NavigationPattern,
) -> TemplateInfo:
    return TemplateInfo(
        id=template_id,
        name=name,
        description=description,
        category=category,
        metadata=metadata,
        design_patterns=[],
        structure=TemplateStructure(expected_slide_types=expected, navigation_pattern=navigation),
    )


def default_templates() -> List[TemplateInfo]:
    """The three templates every library starts with."""
    return [
        _default(
            "default-business", "Business Standard",
            "Standard template for business presentations",
            TemplateCategory.BUSINESS,
            TemplateMetadata(
                presentation_style=PresentationStyle.FORMAL,
                target_audience=TargetAudience.EXECUTIVE,
                slide_count=10,
                color_scheme_type=ColorSchemeType.CORPORATE,
                layout_complexity=LayoutComplexity.MODERATE,
                content_density=ContentDensity.MEDIUM,
                purpose=Purpose.PITCH,
                tags=["business", "formal", "corporate"],
            ),
            [
                SlideTypePattern(position="first", type="title", frequency=1.0),
                SlideTypePattern(position="any", type="content", frequency=0.8),
            ],
            NavigationPattern(has_agenda=True, section_dividers=True),
        ),
        _default(
            "default-academic", "Academic Talk",
            "Template for academic and research presentations",
            TemplateCategory.ACADEMIC,
            TemplateMetadata(
                presentation_style=PresentationStyle.FORMAL,
                target_audience=TargetAudience.ACADEMIC,
                slide_count=15,
                color_scheme_type=ColorSchemeType.ACADEMIC,
                layout_complexity=LayoutComplexity.MODERATE,
                content_density=ContentDensity.HIGH,
                purpose=Purpose.REPORT,
                tags=["academic", "research", "formal"],
            ),
            [
                SlideTypePattern(position="first", type="title", frequency=1.0),
                SlideTypePattern(position=2, type="agenda", frequency=1.0),
                SlideTypePattern(position="any", type="content", frequency=0.9),
            ],
            NavigationPattern(has_agenda=True, has_table_of_contents=True,
                              section_dividers=True, back_navigation=True),
        ),
        _default(
            "default-minimal", "Minimal",
            "Simple, uncluttered minimal template",
            TemplateCategory.MINIMAL,
            TemplateMetadata(
                presentation_style=PresentationStyle.CASUAL,
                target_audience=TargetAudience.GENERAL,
                slide_count=8,
                color_scheme_type=ColorSchemeType.MINIMAL,
                layout_complexity=LayoutComplexity.SIMPLE,
                content_density=ContentDensity.LOW,
                purpose=Purpose.PITCH,
                tags=["minimal", "simple", "clean"],
            ),
            [
                SlideTypePattern(position="first", type="title", frequency=1.0),
                SlideTypePattern(position="any", type="content", frequency=0.7),
            ],
            NavigationPattern(),
        ),
    ]


# =============================================================================
# Library
# =============================================================================

class TemplateLibrary:
    """
    In-memory template catalog, shared by reference with the scorer and the
    adapter. Single writer, many readers: callers must not register templates
    or record usage while a scoring or adaptation call is in flight.

    Example:
        library = TemplateLibrary(store=JsonFileStore(".deckforge/store.json"))
        library.load()
        library.add(template)
        library.record_usage(template.id)
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        config: Optional[StorageConfig] = None,
        include_defaults: bool = True,
    ):
        self.store = store
        self.config = config or StorageConfig()
        self._templates: List[TemplateInfo] = []
        self._stats: Dict[str, TemplateUsageStats] = {}
        self.categories: Dict[TemplateCategory, List[TemplateInfo]] = {c: [] for c in TemplateCategory}
        self.search_index: Dict[str, Dict[str, List[str]]] = {}
        for template in default_templates() if include_defaults else []:
            self._insert(template)
        self._rebuild_index()

    # -- read access ---------------------------------------------------------

    @property
    def templates(self) -> List[TemplateInfo]:
        """Snapshot of the catalog in registration order."""
        return list(self._templates)

    def __len__(self) -> int:
        return len(self._templates)

    def __contains__(self, template_id: str) -> bool:
        return any(t.id == template_id for t in self._templates)

    def find(self, template_id: str) -> Optional[TemplateInfo]:
        for template in self._templates:
            if template.id == template_id:
                return template
        return None

    def get(self, template_id: str) -> TemplateInfo:
        """
        Raises:
            TemplateNotFoundError: unknown id
        """
        template = self.find(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    def by_category(self, category: TemplateCategory) -> List[TemplateInfo]:
        return list(self.categories.get(TemplateCategory(category), []))

    def usage_for(self, template_id: str) -> Optional[TemplateUsageStats]:
        return self._stats.get(template_id)

    def search(
        self,
        query: str = "",
        categories: Optional[Iterable[TemplateCategory]] = None,
        industry: Optional[str] = None,
        purpose: Optional[Purpose] = None,
    ) -> List[TemplateInfo]:
        """Substring match over name, description and tags, then AND-combined filters."""
        needle = query.strip().lower()
        wanted = {TemplateCategory(c) for c in categories} if categories else None

        results = []
        for template in self._templates:
            if needle:
                haystack = [template.name, template.description] + list(template.metadata.tags)
                if not any(needle in field.lower() for field in haystack):
                    continue
            if wanted is not None and template.category not in wanted:
                continue
            if industry and industry.lower() not in (i.lower() for i in template.metadata.industry):
                continue
            if purpose is not None and template.metadata.purpose != Purpose(purpose):
                continue
            results.append(template)
        return results

    def lookup(self, facet: str, value: str) -> List[TemplateInfo]:
        """Templates indexed under a facet ("industry", "style", "purpose", "tag")."""
        ids = self.search_index.get(facet, {}).get(value.lower(), [])
        return [t for t in self._templates if t.id in ids]

    def popular(self, n: int = 10) -> List[TemplateInfo]:
        ranked = sorted(self._templates, key=lambda t: self._usage_count(t), reverse=True)
        return ranked[:n]

    def recent(self, n: int = 5) -> List[TemplateInfo]:
        """Most recently used templates; never-used templates are left out."""
        used = [t for t in self._templates if self._last_used(t) is not None]
        used.sort(key=self._last_used, reverse=True)
        return used[:n]

    def statistics(self) -> Dict[str, Any]:
        ratings = [s.average_rating for s in self._stats.values() if s.average_rating is not None]
        most_used = [t.id for t in self.popular(5) if self._usage_count(t) > 0]
        return {
            "total_templates": len(self._templates),
            "by_category": {c.value: len(ts) for c, ts in self.categories.items()},
            "most_used": most_used,
            "recently_added": [t.id for t in self._templates[-3:]],
            "average_rating": round(sum(ratings) / len(ratings), 3) if ratings else None,
        }

    def _usage_count(self, template: TemplateInfo) -> int:
        stats = self._stats.get(template.id)
        return stats.usage_count if stats else template.metadata.usage_count

    def _last_used(self, template: TemplateInfo) -> Optional[datetime]:
        stats = self._stats.get(template.id)
        return stats.last_used if stats and stats.last_used else template.metadata.last_used

    # -- mutation ------------------------------------------------------------

    def _insert(self, template: TemplateInfo) -> None:
        existing = self.find(template.id)
        if existing is not None:
            self._templates[self._templates.index(existing)] = template
            self.categories[existing.category].remove(existing)
        else:
            self._templates.append(template)
        self.categories[template.category].append(template)

    @staticmethod
    def _index_entries(template: TemplateInfo) -> List[Tuple[str, str]]:
        """(facet, value) pairs under which a template is indexed."""
        metadata = template.metadata
        entries = [("industry", industry.lower()) for industry in metadata.industry]
        entries.append(("style", PresentationStyle(metadata.presentation_style).value))
        entries.append(("purpose", Purpose(metadata.purpose).value))
        entries.extend(("tag", tag.lower()) for tag in metadata.tags)
        return entries

    def _rebuild_index(self) -> None:
        index: Dict[str, Dict[str, List[str]]] = {
            "industry": defaultdict(list),
            "style": defaultdict(list),
            "purpose": defaultdict(list),
            "tag": defaultdict(list),
        }
        for t in self._templates:
            for facet, value in self._index_entries(t):
                index[facet][value].append(t.id)
        self.search_index = {facet: dict(values) for facet, values in index.items()}

    def add(self, template: TemplateInfo) -> TemplateInfo:
        """
        Register a template (replacing any with the same id) and persist the catalog.

        Raises:
            ValueError: the template cannot be indexed; the catalog is left unchanged
        """
        try:
            TemplateCategory(template.category)
            self._index_entries(template)
        except (AttributeError, TypeError, ValueError) as e:
            raise ValueError(f"Template {template.id!r} has invalid metadata: {e}") from e
        self._insert(template)
        self._rebuild_index()
        logger.info(f"Registered template '{template.name}' ({template.id}, {template.category.value})")
        self.save()
        return template

    def _stats_for(self, template_id: str) -> TemplateUsageStats:
        template = self.get(template_id)
        stats = self._stats.get(template_id)
        if stats is None:
            stats = TemplateUsageStats(
                template_id=template_id,
                usage_count=template.metadata.usage_count,
                last_used=template.metadata.last_used,
            )
            self._stats[template_id] = stats
        return stats

    def record_usage(self, template_id: str) -> TemplateUsageStats:
        """
        Raises:
            TemplateNotFoundError: unknown id
        """
        stats = self._stats_for(template_id)
        stats.usage_count += 1
        stats.last_used = datetime.now()

        metadata = self.get(template_id).metadata
        metadata.usage_count = stats.usage_count
        metadata.last_used = stats.last_used
        logger.debug(f"Template {template_id} used {stats.usage_count} times")
        self.save_stats()
        return stats

    def record_feedback(
        self,
        template_id: str,
        rating: float,
        feedback: Optional[str] = None,
        success: Optional[bool] = None,
    ) -> TemplateUsageStats:
        """
        Fold one rating into the running average, append free-text feedback and
        nudge the success rate by one step.

        Raises:
            TemplateNotFoundError: unknown id
            ValueError: rating outside [1, 5]
        """
        if not MIN_RATING <= rating <= MAX_RATING:
            raise ValueError(f"rating must be in [{MIN_RATING:g}, {MAX_RATING:g}], got {rating}")
        stats = self._stats_for(template_id)

        previous = stats.average_rating or 0.0
        stats.average_rating = (previous * stats.rating_count + rating) / (stats.rating_count + 1)
        stats.rating_count += 1

        if feedback:
            stats.user_feedback.append(feedback)

        if success is not None:
            rate = stats.success_rate or 0.0
            rate = rate + SUCCESS_STEP if success else rate - SUCCESS_STEP
            stats.success_rate = round(min(1.0, max(0.0, rate)), 6)

        self.save_stats()
        return stats

    # -- persistence ---------------------------------------------------------

    def save(self) -> None:
        if self.store is None:
            return
        payload = json.dumps([t.to_dict() for t in self._templates], ensure_ascii=False)
        self.store.set(self.config.template_library_key, payload)
        self.save_stats()

    def save_stats(self) -> None:
        if self.store is None:
            return
        payload = json.dumps({k: s.to_dict() for k, s in self._stats.items()}, ensure_ascii=False)
        self.store.set(self.config.usage_stats_key, payload)

    def load(self) -> int:
        """
        Merge persisted templates and statistics into the catalog.

        Unreadable entries are logged and skipped. Returns the number of
        templates loaded.
        """
        if self.store is None:
            return 0

        loaded = 0
        raw = self.store.get(self.config.template_library_key)
        if raw:
            try:
                entries = json.loads(raw)
            except json.JSONDecodeError as e:
                logger.warning(f"Ignoring unreadable template library: {e}")
                entries = []
            for entry in entries:
                try:
                    template = TemplateInfo.from_dict(entry)
                    self._index_entries(template)
                    self._insert(template)
                    loaded += 1
                except (AttributeError, KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Skipping stored template: {e}")
            self._rebuild_index()

        raw = self.store.get(self.config.usage_stats_key)
        if raw:
            try:
                stats = json.loads(raw)
            except json.JSONDecodeError as e:
                logger.warning(f"Ignoring unreadable usage statistics: {e}")
                stats = {}
            for template_id, entry in stats.items():
                try:
                    self._stats[template_id] = TemplateUsageStats.from_dict(entry)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Skipping usage statistics of {template_id}: {e}")

        logger.debug(f"Loaded {loaded} templates, {len(self._stats)} usage records")
        return loaded
