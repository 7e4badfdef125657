"""
deckforge: template-aware slide drafting, adaptation and expansion

Pipeline, leaves first:
    PatternExtractor:  existing document -> design patterns, structure, metadata
    TemplateLibrary:   built-in and registered templates with usage statistics
    TemplateScorer:    free-text request -> ranked template recommendations
    OutlineAdapter:    outline + template -> adapted outline
    DetailExpander:    (adapted) outline -> detailed slide content, one LLM call per slide

DeckService wires them together; deckctl is the command-line front end.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

__version__ = "0.3.0"

from deckforge.adapter import OutlineAdapter
from deckforge.config import DeckforgeConfig, get_config, load_config
from deckforge.errors import (
    ConfigurationError,
    DeckforgeError,
    GenerationError,
    OutlineValidationError,
    ResponseContractError,
    TemplateNotFoundError,
)
from deckforge.expander import DetailExpander
from deckforge.library import JsonFileStore, MemoryStore, TemplateLibrary
from deckforge.llm_backends import BaseLLM, create_llm_backend
from deckforge.models import Outline, SlideOutline, TemplateInfo
from deckforge.patterns import PatternExtractor
from deckforge.scorer import TemplateScorer
from deckforge.service import DeckService

__all__ = [
    "__version__",
    "BaseLLM",
    "ConfigurationError",
    "DeckService",
    "DeckforgeConfig",
    "DeckforgeError",
    "DetailExpander",
    "GenerationError",
    "JsonFileStore",
    "MemoryStore",
    "Outline",
    "OutlineAdapter",
    "OutlineValidationError",
    "PatternExtractor",
    "ResponseContractError",
    "SlideOutline",
    "TemplateInfo",
    "TemplateLibrary",
    "TemplateNotFoundError",
    "TemplateScorer",
    "create_llm_backend",
    "get_config",
    "load_config",
]
