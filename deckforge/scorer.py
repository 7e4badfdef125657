"""
Template scoring and recommendation.

Intent analysis is a set of ordered keyword tables (Japanese and English),
one per facet, each evaluated top-down with an explicit default. Scoring is a
weighted sum of facet matches plus popularity and success bonuses, clamped to
[0, 1]. Ranking a whole library never raises: a template whose scoring fails
is recorded in the report with a score of 0.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from deckforge.config import ScoringConfig
from deckforge.library import TemplateLibrary
from deckforge.models import (
    AdaptationType,
    LayoutComplexity,
    PresentationContext,
    Purpose,
    SelectionPreferences,
    SlideError,
    TargetAudience,
    TemplateAdaptation,
    TemplateCategory,
    TemplateInfo,
    TemplateRecommendation,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Keyword tables: (keywords, result), first match wins
# ---------------------------------------------------------------------------

KeywordRule = Tuple[Tuple[str, ...], Any]

CATEGORY_RULES: List[KeywordRule] = [
    (("ビジネス", "提案", "営業", "business", "proposal", "sales"), TemplateCategory.BUSINESS),
    (("学術", "研究", "論文", "academic", "research", "thesis"), TemplateCategory.ACADEMIC),
    (("マーケティング", "広告", "宣伝", "marketing", "advertising", "campaign"), TemplateCategory.MARKETING),
    (("技術", "エンジニア", "開発", "technical", "engineering", "development"), TemplateCategory.TECHNICAL),
]
DEFAULT_CATEGORY = TemplateCategory.BUSINESS

PURPOSE_RULES: List[KeywordRule] = [
    (("提案", "ピッチ", "営業", "proposal", "pitch", "sales"), Purpose.PITCH),
    (("報告", "レポート", "結果", "report", "results", "review"), Purpose.REPORT),
    (("研修", "トレーニング", "教育", "training", "workshop", "course"), Purpose.TRAINING),
    (("分析", "データ", "統計", "analysis", "data", "statistics"), Purpose.ANALYSIS),
]
DEFAULT_PURPOSE = Purpose.REPORT

AUDIENCE_RULES: List[KeywordRule] = [
    (("経営", "役員", "マネージャー", "executive", "board", "manager"), TargetAudience.EXECUTIVE),
    (("技術", "エンジニア", "専門", "engineer", "developer", "specialist"), TargetAudience.TECHNICAL),
    (("学術", "研究", "大学", "academic", "researcher", "university"), TargetAudience.ACADEMIC),
]
DEFAULT_AUDIENCE = TargetAudience.GENERAL

MIN_KEYWORD_LENGTH = 3


def match_rules(text: str, rules: Sequence[KeywordRule], default: Any) -> Any:
    """Result of the first rule with a keyword contained in text, else default."""
    lowered = text.lower()
    for keywords, result in rules:
        if any(k in lowered for k in keywords):
            return result
    return default


@dataclass
class IntentProfile:
    """Lightweight reading of a free-text request."""
    keywords: List[str]
    suggested_category: TemplateCategory
    estimated_complexity: LayoutComplexity
    detected_purpose: Purpose
    audience_level: TargetAudience

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keywords": list(self.keywords),
            "suggested_category": self.suggested_category.value,
            "estimated_complexity": self.estimated_complexity.value,
            "detected_purpose": self.detected_purpose.value,
            "audience_level": self.audience_level.value,
        }


def analyze_intent(
    text: str,
    config: Optional[ScoringConfig] = None,
    context: Optional[PresentationContext] = None,
) -> IntentProfile:
    """Derive the intent profile; context facets, when set, override detection."""
    config = config or ScoringConfig()
    words = text.split()

    if len(words) < config.complexity_moderate_words:
        complexity = LayoutComplexity.SIMPLE
    elif len(words) < config.complexity_complex_words:
        complexity = LayoutComplexity.MODERATE
    else:
        complexity = LayoutComplexity.COMPLEX

    purpose = match_rules(text, PURPOSE_RULES, DEFAULT_PURPOSE)
    audience = match_rules(text, AUDIENCE_RULES, DEFAULT_AUDIENCE)
    if context is not None:
        purpose = context.purpose or purpose
        audience = context.audience or audience

    return IntentProfile(
        keywords=[w for w in text.lower().split() if len(w) >= MIN_KEYWORD_LENGTH],
        suggested_category=match_rules(text, CATEGORY_RULES, DEFAULT_CATEGORY),
        estimated_complexity=complexity,
        detected_purpose=purpose,
        audience_level=audience,
    )


def _known_categories(values: Optional[Sequence[Any]], label: str) -> Set[TemplateCategory]:
    """Coerce preference values to categories; unknown values are skipped with a warning."""
    known: Set[TemplateCategory] = set()
    for value in values or ():
        try:
            known.add(TemplateCategory(value))
        except ValueError:
            logger.warning(f"Ignoring unknown category in {label}: {value!r}")
    return known


@dataclass
class ScoringReport:
    """Scores of every template, best first, plus per-template failures."""
    scores: List[Tuple[TemplateInfo, float]] = field(default_factory=list)
    errors: List[SlideError] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Scorer
# ---------------------------------------------------------------------------

class TemplateScorer:
    """
    Ranks library templates against a request.

    Example:
        scorer = TemplateScorer(library)
        best = scorer.recommend("営業戦略の提案")[0]
    """

    def __init__(self, library: TemplateLibrary, config: Optional[ScoringConfig] = None):
        self.library = library
        self.config = config or ScoringConfig()

    def score_template(self, template: TemplateInfo, intent: IntentProfile) -> float:
        """Score one template. May raise on a malformed template."""
        cfg = self.config
        score = 0.0
        if intent.suggested_category == template.category:
            score += cfg.category_weight
        if intent.detected_purpose == template.metadata.purpose:
            score += cfg.purpose_weight
        if intent.audience_level == template.metadata.target_audience:
            score += cfg.audience_weight

        usage = self.library.usage_for(template.id)
        if usage is not None and usage.usage_count > 0:
            score += min(cfg.popularity_cap, usage.usage_count * cfg.popularity_per_use)
        if usage is not None and usage.success_rate:
            score += usage.success_rate * cfg.success_weight

        return max(0.0, min(1.0, score))

    def score_all(self, intent: IntentProfile, templates: Optional[Sequence[TemplateInfo]] = None) -> ScoringReport:
        """Score every template sequentially, best first. Never raises."""
        report = ScoringReport()
        candidates = self.library.templates if templates is None else list(templates)
        for index, template in enumerate(candidates):
            try:
                score = self.score_template(template, intent)
            except Exception as e:
                logger.warning(f"Scoring failed for template {template.id}: {e}")
                report.errors.append(SlideError(index, "score", str(e), type(e).__name__))
                score = 0.0
            report.scores.append((template, score))
        report.scores.sort(key=lambda pair: pair[1], reverse=True)
        return report

    def reasoning(self, template: TemplateInfo, intent: IntentProfile, score: float) -> List[str]:
        reasons = []
        if intent.suggested_category == template.category:
            reasons.append(f"Matches the {template.category.value} category")
        if intent.detected_purpose == template.metadata.purpose:
            reasons.append(f"Suited to a {template.metadata.purpose.value} purpose")
        if score > self.config.strong_fit:
            reasons.append("Strong fit")
        elif score > self.config.good_fit:
            reasons.append("Good fit")
        usage = self.library.usage_for(template.id)
        if usage is not None and usage.usage_count > self.config.widely_used:
            reasons.append("Widely used")
        return reasons

    @staticmethod
    def suggest_adaptations(template: TemplateInfo) -> List[TemplateAdaptation]:
        style = template.metadata.presentation_style.value
        return [TemplateAdaptation(
            type=AdaptationType.STYLE,
            description=f"Adjust to {style} style",
            confidence=0.8,
        )]

    def _fallback(self) -> List[TemplateRecommendation]:
        templates = self.library.templates
        if not templates:
            return []
        logger.info(f"No template cleared the threshold, falling back to {templates[0].id}")
        return [TemplateRecommendation(
            template=templates[0],
            score=self.config.fallback_score,
            reasoning=["Default template"],
            is_fallback=True,
        )]

    def recommend(
        self,
        text: str,
        presentation_context: Optional[PresentationContext] = None,
        preferences: Optional[SelectionPreferences] = None,
    ) -> List[TemplateRecommendation]:
        """
        Ranked recommendations, sorted by non-increasing score.

        When nothing clears the minimum score and fallback_to_default is set,
        a single is_fallback recommendation wraps the first library template.
        """
        prefs = preferences or SelectionPreferences()
        minimum = self.config.minimum_score if prefs.minimum_score is None else prefs.minimum_score
        limit = self.config.max_results if prefs.max_results is None else prefs.max_results

        candidates = self.library.templates
        wanted = _known_categories(prefs.categories, "categories")
        if wanted:
            candidates = [t for t in candidates if t.category in wanted]
        excluded = _known_categories(prefs.exclude_categories, "exclude_categories")
        if excluded:
            candidates = [t for t in candidates if t.category not in excluded]

        intent = analyze_intent(text, self.config, presentation_context)
        report = self.score_all(intent, candidates)
        if report.errors:
            logger.warning(f"{len(report.errors)} template(s) could not be scored")

        recommendations = [
            TemplateRecommendation(
                template=template,
                score=score,
                reasoning=self.reasoning(template, intent, score),
                adaptations=self.suggest_adaptations(template),
            )
            for template, score in report.scores
            if score >= minimum
        ][:limit]

        if not recommendations and self.config.fallback_to_default:
            return self._fallback()
        return recommendations
