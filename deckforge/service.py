"""
DeckService - orchestration facade

Wires the pieces together in the order a document is produced:

    register_template  existing document -> analysis -> library
    draft              topic -> Outline                      (collaborator)
    recommend          request text -> ranked templates
    adapt              Outline + template id -> AdaptedOutline
    expand             Outline | AdaptedOutline -> ExpansionReport (collaborator)
    feedback           rating / success for a used template

The generative backend is created lazily, so operations that never call it
(recommend, adapt, register, feedback) work without a credential.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from deckforge.adapter import OutlineAdapter
from deckforge.config import DeckforgeConfig, get_config
from deckforge.expander import DetailExpander, ErrorCallback, ProgressCallback
from deckforge.library import JsonFileStore, KeyValueStore, TemplateLibrary
from deckforge.llm_backends import BaseLLM, create_llm_backend
from deckforge.models import (
    AdaptedOutline,
    ExpansionReport,
    Outline,
    PresentationContext,
    SelectionPreferences,
    TemplateAnalysisResult,
    TemplateCategory,
    TemplateInfo,
    TemplateRecommendation,
    TemplateUsageStats,
)
from deckforge.outline import OutlineDrafter
from deckforge.patterns import PatternExtractor
from deckforge.regions import DocumentReader
from deckforge.scorer import TemplateScorer

logger = logging.getLogger(__name__)


class DeckService:
    """
    One object per process holding the library and the collaborators.

    Example:
        service = DeckService()
        outline = await service.draft("Quarterly sales review")
        best = service.recommend("quarterly sales report for the board")[0]
        adapted = service.adapt(outline, best.template.id)
        report = await service.expand(adapted)
    """

    def __init__(
        self,
        config: Optional[DeckforgeConfig] = None,
        llm: Optional[BaseLLM] = None,
        library: Optional[TemplateLibrary] = None,
        store: Optional[KeyValueStore] = None,
    ):
        self.config = config or get_config()
        if library is None:
            library = TemplateLibrary(
                store=store or JsonFileStore(self.config.storage.path),
                config=self.config.storage,
            )
            library.load()
        self.library = library
        self._llm = llm

        self.extractor = PatternExtractor(self.config.extraction, self.config.inference)
        self.scorer = TemplateScorer(self.library, self.config.scoring)
        self.adapter = OutlineAdapter(self.library, self.config.adaptation)

    @property
    def llm(self) -> BaseLLM:
        """
        Raises:
            ConfigurationError: unknown backend or missing credential
        """
        if self._llm is None:
            self._llm = create_llm_backend(self.config.llm)
        return self._llm

    # -- registration --------------------------------------------------------

    async def register_template(
        self,
        reader: DocumentReader,
        name: str,
        description: str = "",
        category: TemplateCategory = TemplateCategory.CUSTOM,
        metadata: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> Tuple[TemplateInfo, TemplateAnalysisResult]:
        """Analyse a document (all slides unless limit) and add the result to the library."""
        analysis = await self.extractor.analyze(reader, limit=limit)
        template = self.extractor.build_template(
            analysis, name=name, description=description,
            category=category, metadata_overrides=metadata,
        )
        self.library.add(template)
        return template, analysis

    async def detect_template(self, reader: DocumentReader) -> Optional[TemplateInfo]:
        """Quick look at the first slides; nothing is registered."""
        return await self.extractor.detect_template(reader)

    # -- pipeline ------------------------------------------------------------

    async def draft(self, topic: str, slide_count: Optional[int] = None) -> Outline:
        return await OutlineDrafter(self.llm).generate_outline(topic, slide_count)

    async def redraft(self, outline: Outline, instruction: str) -> Outline:
        return await OutlineDrafter(self.llm).regenerate_outline(outline, instruction)

    def recommend(
        self,
        text: str,
        context: Optional[PresentationContext] = None,
        preferences: Optional[SelectionPreferences] = None,
    ) -> List[TemplateRecommendation]:
        recommendations = self.scorer.recommend(text, context, preferences)
        logger.info(f"{len(recommendations)} recommendation(s) for request ({len(text)} chars)")
        return recommendations

    def adapt(self, outline: Outline, template_id: str) -> AdaptedOutline:
        """
        Raises:
            TemplateNotFoundError: unknown template id
        """
        return self.adapter.adapt_by_id(outline, template_id)

    async def expand(
        self,
        outline: Union[Outline, AdaptedOutline],
        on_progress: Optional[ProgressCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> ExpansionReport:
        expander = DetailExpander(self.llm, self.config.expansion)
        return await expander.expand_with_errors(outline, on_progress, on_error)

    # -- feedback ------------------------------------------------------------

    def feedback(
        self,
        template_id: str,
        rating: float,
        comment: Optional[str] = None,
        success: Optional[bool] = None,
    ) -> TemplateUsageStats:
        return self.library.record_feedback(template_id, rating, comment, success)

