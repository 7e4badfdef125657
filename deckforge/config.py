"""
deckforge Configuration
=======================

Loads deckforge.yaml with environment variable overrides. Every threshold
used by the extractor, the scorer, the adapter and the expander is a named
default here rather than a literal in the algorithms.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

import os
import logging
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from deckforge.errors import ConfigurationError

logger = logging.getLogger(__name__)

VALID_BACKENDS = ("openai", "ollama")
CONFIG_FILENAME = "deckforge.yaml"


# =============================================================================
# Configuration Data Classes
# =============================================================================

@dataclass
class LLMConfig:
    """Generative collaborator configuration."""
    backend: str = "openai"                 # openai | ollama
    model: str = "gpt-4o-mini"
    base_url: str = "https://api.openai.com/v1"
    api_key: Optional[str] = None           # required for openai
    temperature: float = 0.7
    max_tokens: int = 2000
    timeout: float = 60.0                   # seconds, enforced by the HTTP client

    def __post_init__(self):
        if self.backend not in VALID_BACKENDS:
            raise ValueError(f"Invalid backend {self.backend!r}, must be one of {VALID_BACKENDS}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")


@dataclass
class ExtractionConfig:
    """Pattern extraction thresholds."""
    detection_slide_limit: int = 5          # slides inspected for live detection
    min_occurrences: int = 2                # below this a pattern is noise
    critical_frequency: float = 0.5         # frequency > this -> critical
    max_color_patterns: int = 5
    max_typography_patterns: int = 3
    margin_bucket: float = 10.0             # points, spacing patterns are bucketed


@dataclass
class InferenceThresholds:
    """Fixed thresholds used to infer template metadata from patterns."""
    formal_max_colors: int = 3              # navigation aids and <= this many colors -> formal
    creative_min_colors: int = 4
    creative_min_layouts: int = 4
    minimal_max_layouts: int = 2
    executive_max_slide_types: int = 2
    minimal_color_max: int = 2
    vibrant_color_min: int = 5
    simple_max_layouts: int = 2
    simple_max_slide_types: int = 2
    complex_min_layouts: int = 5
    complex_min_slide_types: int = 5
    high_density_min_slide_types: int = 4
    high_density_min_critical: int = 3
    low_density_max_patterns: int = 2
    low_density_max_slide_types: int = 2
    training_min_slides: int = 11
    pitch_max_slides: int = 8


@dataclass
class ScoringConfig:
    """Template scoring weights and recommendation policy."""
    category_weight: float = 0.30
    purpose_weight: float = 0.25
    audience_weight: float = 0.20
    popularity_per_use: float = 0.01
    popularity_cap: float = 0.15
    success_weight: float = 0.10
    minimum_score: float = 0.3
    max_results: int = 5
    fallback_to_default: bool = True        # wrap the first template when nothing clears the bar
    fallback_score: float = 0.5
    strong_fit: float = 0.8                 # reasoning thresholds
    good_fit: float = 0.6
    widely_used: int = 10
    complexity_moderate_words: int = 50
    complexity_complex_words: int = 200

    def __post_init__(self):
        for name in ("category_weight", "purpose_weight", "audience_weight",
                     "popularity_cap", "success_weight", "minimum_score", "fallback_score"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.max_results < 1:
            raise ValueError(f"max_results must be >= 1, got {self.max_results}")


@dataclass
class AdaptationConfig:
    """Outline-to-template adaptation heuristics."""
    two_column_char_threshold: int = 500
    structural_confidence: float = 0.7
    density_confidence: float = 0.8
    min_confidence: float = 0.1


@dataclass
class ExpansionConfig:
    """Per-slide detail expansion."""
    inter_call_delay: float = 0.5           # seconds between slides, never after the last
    max_item_length: int = 200              # trim_content budget
    max_title_length: int = 120             # quality check thresholds
    max_items: int = 7
    max_item_chars: int = 300
    max_total_chars: int = 1000
    degraded_suffix: str = " (not expanded)"

    def __post_init__(self):
        if self.inter_call_delay < 0:
            raise ValueError(f"inter_call_delay must be >= 0, got {self.inter_call_delay}")


@dataclass
class StorageConfig:
    """Key-value persistence of the template library and usage stats."""
    path: str = ".deckforge/store.json"
    template_library_key: str = "template-library"
    usage_stats_key: str = "template-usage-stats"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_file: Optional[str] = None


@dataclass
class DeckforgeConfig:
    """Root configuration container."""
    llm: LLMConfig = field(default_factory=LLMConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    inference: InferenceThresholds = field(default_factory=InferenceThresholds)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    adaptation: AdaptationConfig = field(default_factory=AdaptationConfig)
    expansion: ExpansionConfig = field(default_factory=ExpansionConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DeckforgeConfig":
        return cls(
            llm=_build(LLMConfig, d.get("llm")),
            extraction=_build(ExtractionConfig, d.get("extraction")),
            inference=_build(InferenceThresholds, d.get("inference")),
            scoring=_build(ScoringConfig, d.get("scoring")),
            adaptation=_build(AdaptationConfig, d.get("adaptation")),
            expansion=_build(ExpansionConfig, d.get("expansion")),
            storage=_build(StorageConfig, d.get("storage")),
            logging=_build(LoggingConfig, d.get("logging")),
        )


def _build(cls, data: Optional[Dict[str, Any]]):
    """Instantiate a sub-config from a mapping, ignoring unknown keys."""
    if not data:
        return cls()
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {', '.join(unknown)}")
    return cls(**{k: v for k, v in data.items() if k in known})


# =============================================================================
# Configuration Loader
# =============================================================================

def find_config_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """
    Find deckforge.yaml by searching upward from start_path.

    Search order:
    1. start_path / deckforge.yaml
    2. start_path / .deckforge / deckforge.yaml
    3. Parent directories (recursive)
    4. ~/.config/deckforge/deckforge.yaml
    """
    current = Path(start_path or Path.cwd()).resolve()

    for _ in range(10):
        for candidate in (current / CONFIG_FILENAME, current / ".deckforge" / CONFIG_FILENAME):
            if candidate.exists():
                return candidate
        if current.parent == current:
            break
        current = current.parent

    user_config = Path.home() / ".config" / "deckforge" / CONFIG_FILENAME
    if user_config.exists():
        return user_config
    return None


def load_config(config_path: Optional[Path] = None) -> DeckforgeConfig:
    """
    Load configuration from YAML with environment variable overrides.

    Environment variables override file values:
    - DECKFORGE_LLM_BACKEND -> llm.backend
    - DECKFORGE_LLM_MODEL -> llm.model
    - DECKFORGE_BASE_URL -> llm.base_url
    - DECKFORGE_API_KEY (then OPENAI_API_KEY) -> llm.api_key
    - DECKFORGE_LOG_LEVEL -> logging.level

    Raises:
        ConfigurationError: a value is out of range or the backend is unknown
    """
    config = DeckforgeConfig()

    if config_path is None:
        config_path = find_config_file()

    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config: {e}, using defaults")
            data = {}
        try:
            config = DeckforgeConfig.from_dict(data)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e
    else:
        logger.debug("No config file found, using defaults")

    config = _apply_env_overrides(config)
    _validate_config(config)
    return config


def _apply_env_overrides(config: DeckforgeConfig) -> DeckforgeConfig:
    """Apply environment variable overrides to config."""
    if os.environ.get("DECKFORGE_LLM_BACKEND"):
        config.llm.backend = os.environ["DECKFORGE_LLM_BACKEND"].lower()

    if os.environ.get("DECKFORGE_LLM_MODEL"):
        config.llm.model = os.environ["DECKFORGE_LLM_MODEL"]

    if os.environ.get("DECKFORGE_BASE_URL"):
        config.llm.base_url = os.environ["DECKFORGE_BASE_URL"]

    if os.environ.get("DECKFORGE_API_KEY"):
        config.llm.api_key = os.environ["DECKFORGE_API_KEY"]
    elif not config.llm.api_key and os.environ.get("OPENAI_API_KEY"):
        config.llm.api_key = os.environ["OPENAI_API_KEY"]

    if os.environ.get("DECKFORGE_LOG_LEVEL"):
        config.logging.level = os.environ["DECKFORGE_LOG_LEVEL"].upper()

    return config


def _validate_config(config: DeckforgeConfig) -> None:
    """Reject values the algorithms cannot work with."""
    if config.llm.backend not in VALID_BACKENDS:
        raise ConfigurationError(
            f"Unknown LLM backend '{config.llm.backend}', supported: {', '.join(VALID_BACKENDS)}"
        )

    if config.extraction.min_occurrences < 1:
        raise ConfigurationError("extraction.min_occurrences must be >= 1")

    for name in ("structural_confidence", "density_confidence", "min_confidence"):
        value = getattr(config.adaptation, name)
        if not 0.0 <= value <= 1.0:
            raise ConfigurationError(f"adaptation.{name} must be in [0, 1], got {value}")

    if config.logging.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        logger.warning(f"Unknown log level '{config.logging.level}', defaulting to INFO")
        config.logging.level = "INFO"


def save_config(config: DeckforgeConfig, path: Path) -> None:
    """Save configuration to YAML. The API key is never written."""
    data = config.to_dict()
    data["llm"].pop("api_key", None)

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    logger.info(f"Saved config to: {path}")


# ---------------------------------------------------------------------------
# Global singleton
# ---------------------------------------------------------------------------

_global_config: Optional[DeckforgeConfig] = None


def get_config() -> DeckforgeConfig:
    """Get global configuration (lazy-loaded)."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config
