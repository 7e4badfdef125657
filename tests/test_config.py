"""
Tests for configuration loading

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

import pytest
import yaml

from deckforge.config import (
    DeckforgeConfig,
    find_config_file,
    load_config,
    save_config,
)
from deckforge.errors import ConfigurationError

ENV_VARS = (
    "DECKFORGE_LLM_BACKEND", "DECKFORGE_LLM_MODEL", "DECKFORGE_BASE_URL",
    "DECKFORGE_API_KEY", "OPENAI_API_KEY", "DECKFORGE_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:

    def test_named_defaults(self):
        config = DeckforgeConfig()
        assert config.extraction.min_occurrences == 2
        assert config.extraction.critical_frequency == 0.5
        assert config.scoring.minimum_score == 0.3
        assert config.adaptation.structural_confidence == 0.7
        assert config.expansion.inter_call_delay == 0.5
        assert config.storage.template_library_key == "template-library"

    def test_missing_file(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")
        assert config.llm.backend == "openai"


class TestLoad:

    def test_yaml_values(self, tmp_path):
        path = tmp_path / "deckforge.yaml"
        path.write_text(yaml.safe_dump({
            "llm": {"backend": "ollama", "model": "mistral", "base_url": "http://localhost:11434"},
            "scoring": {"minimum_score": 0.4, "max_results": 3},
            "expansion": {"inter_call_delay": 0},
        }), encoding="utf-8")

        config = load_config(path)
        assert config.llm.backend == "ollama"
        assert config.scoring.minimum_score == 0.4
        assert config.scoring.max_results == 3
        assert config.expansion.inter_call_delay == 0
        assert config.extraction.min_occurrences == 2

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "deckforge.yaml"
        path.write_text("scoring:\n  minimum_score: 0.2\n  flavour: vanilla\n", encoding="utf-8")
        assert load_config(path).scoring.minimum_score == 0.2

    def test_out_of_range_value(self, tmp_path):
        path = tmp_path / "deckforge.yaml"
        path.write_text("scoring:\n  category_weight: 3\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_invalid_backend(self, tmp_path):
        path = tmp_path / "deckforge.yaml"
        path.write_text("llm:\n  backend: mystery\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_bad_confidence(self, tmp_path):
        path = tmp_path / "deckforge.yaml"
        path.write_text("adaptation:\n  min_confidence: 1.5\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_unparseable_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "deckforge.yaml"
        path.write_text("llm: [unclosed\n", encoding="utf-8")
        assert load_config(path).llm.backend == "openai"

    def test_find_config_file(self, tmp_path):
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        (tmp_path / ".deckforge").mkdir()
        target = tmp_path / ".deckforge" / "deckforge.yaml"
        target.write_text("{}", encoding="utf-8")

        assert find_config_file(nested) == target.resolve()


class TestEnvironment:

    def test_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "deckforge.yaml"
        path.write_text("llm:\n  backend: openai\n  model: gpt-4o\n", encoding="utf-8")
        monkeypatch.setenv("DECKFORGE_LLM_BACKEND", "OLLAMA")
        monkeypatch.setenv("DECKFORGE_LLM_MODEL", "qwen2")
        monkeypatch.setenv("DECKFORGE_LOG_LEVEL", "debug")

        config = load_config(path)
        assert config.llm.backend == "ollama"
        assert config.llm.model == "qwen2"
        assert config.logging.level == "DEBUG"

    def test_api_key_precedence(self, tmp_path, monkeypatch):
        """DECKFORGE_API_KEY wins; OPENAI_API_KEY only fills a missing key."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
        assert load_config(tmp_path / "none.yaml").llm.api_key == "sk-openai"

        monkeypatch.setenv("DECKFORGE_API_KEY", "sk-deckforge")
        assert load_config(tmp_path / "none.yaml").llm.api_key == "sk-deckforge"

    def test_bad_env_backend(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DECKFORGE_LLM_BACKEND", "mystery")
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "none.yaml")


class TestSave:

    def test_api_key_not_written(self, tmp_path):
        config = DeckforgeConfig()
        config.llm.api_key = "sk-secret"
        path = tmp_path / "out" / "deckforge.yaml"

        save_config(config, path)

        text = path.read_text(encoding="utf-8")
        assert "sk-secret" not in text
        assert load_config(path).llm.model == config.llm.model
