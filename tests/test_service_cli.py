"""
Tests for DeckService and the deckctl command line

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

import json
from unittest.mock import Mock

import pytest

from deckforge.cli import build_parser, main
from deckforge.config import DeckforgeConfig, ExpansionConfig, LLMConfig
from deckforge.errors import ConfigurationError, TemplateNotFoundError
from deckforge.library import MemoryStore, TemplateLibrary
from deckforge.models import TemplateCategory
from deckforge.service import DeckService

from conftest import FailingLLM, ScriptedLLM, make_outline, slide_reply


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DECKFORGE_LLM_BACKEND", "DECKFORGE_LLM_MODEL", "DECKFORGE_BASE_URL",
                 "DECKFORGE_API_KEY", "OPENAI_API_KEY", "DECKFORGE_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config():
    return DeckforgeConfig(expansion=ExpansionConfig(inter_call_delay=0))


def make_service(config, llm=None, store=None):
    library = TemplateLibrary(store=store or MemoryStore(), config=config.storage)
    return DeckService(config=config, llm=llm, library=library)


# =============================================================================
# Service
# =============================================================================

class TestDeckService:
    """End-to-end flows through the facade."""

    @pytest.mark.asyncio
    async def test_register_then_recommend(self, config, deck_reader):
        """A registered template is searchable and scorable."""
        service = make_service(config)
        template, analysis = await service.register_template(
            deck_reader, name="Annual Review", category=TemplateCategory.BUSINESS,
            metadata={"industry": ["finance"]},
        )

        assert template.id in service.library
        assert analysis.confidence == pytest.approx(0.8)
        assert [t.id for t in service.library.search(industry="finance")] == [template.id]
        ids = [r.template.id for r in service.recommend("営業戦略の提案")]
        assert template.id in ids

    @pytest.mark.asyncio
    async def test_detect_does_not_register(self, config, deck_reader):
        service = make_service(config)
        template = await service.detect_template(deck_reader)
        assert template is not None
        assert template.id not in service.library

    @pytest.mark.asyncio
    async def test_draft_adapt_expand(self, config):
        """Draft, adapt to a template, then expand every slide."""
        outline_reply = json.dumps({
            "title": "Q3 Plan",
            "estimatedDuration": 10,
            "slides": [
                {"slideNumber": 1, "title": "Intro", "content": ["A", "B"], "slideType": "title"},
                {"slideNumber": 2, "title": "Body", "content": ["C"], "slideType": "content"},
            ],
        })
        llm = ScriptedLLM([
            outline_reply,
            slide_reply("Welcome", ["Why Q3 matters"]),
            slide_reply("Body", ["C in detail"]),
        ])
        service = make_service(config, llm=llm)

        outline = await service.draft("Q3 plan")
        adapted = service.adapt(outline, "default-business")
        on_progress = Mock()
        report = await service.expand(adapted, on_progress=on_progress)

        assert [s.title for s in report.slides] == ["Welcome", "Body"]
        assert report.errors == []
        assert on_progress.call_count == 2
        assert service.library.usage_for("default-business").usage_count == 1

    @pytest.mark.asyncio
    async def test_redraft(self, config):
        """A revision instruction returns a renumbered outline from the reply."""
        reply = json.dumps({"title": "Q3 Plan v2", "slides": [
            {"slideNumber": 4, "title": "Budget", "content": ["Costs"], "slideType": "content"},
        ]})
        llm = ScriptedLLM([reply])
        outline = await make_service(config, llm=llm).redraft(make_outline(2), "Add a budget slide")

        assert outline.title == "Q3 Plan v2"
        assert [s.slide_number for s in outline.slides] == [1]
        assert "Add a budget slide" in llm.calls[0][1]["content"]

    @pytest.mark.asyncio
    async def test_expand_degrades(self, config, q3_outline):
        report = await make_service(config, llm=FailingLLM()).expand(q3_outline)
        assert report.fallback_count == 2
        assert report.slides[0].content == ["• A", "• B"]

    def test_adapt_unknown_template(self, config):
        with pytest.raises(TemplateNotFoundError):
            make_service(config).adapt(make_outline(2), "missing")

    def test_feedback(self, config):
        stats = make_service(config).feedback("default-minimal", 4, "Nice", success=True)
        assert stats.average_rating == 4
        assert stats.success_rate == pytest.approx(0.1)

    def test_llm_is_lazy(self, config):
        """Operations without the collaborator never need a credential."""
        service = make_service(config)
        assert service.recommend("sales proposal")
        with pytest.raises(ConfigurationError):
            _ = service.llm

    def test_llm_from_config(self):
        config = DeckforgeConfig(llm=LLMConfig(backend="ollama", model="mistral",
                                               base_url="http://localhost:11434"))
        assert make_service(config).llm.model_name == "mistral"


# =============================================================================
# CLI
# =============================================================================

@pytest.fixture
def cli(tmp_path, monkeypatch):
    """Run deckctl with an isolated config and store."""
    monkeypatch.chdir(tmp_path)
    store = tmp_path / "store.json"

    def run(*args):
        return main(["-c", str(tmp_path / "absent.yaml"), "--store", str(store), *args])

    run.store = store
    return run


def write_outline(tmp_path, outline):
    path = tmp_path / "outline.json"
    path.write_text(json.dumps(outline.to_dict()), encoding="utf-8")
    return path


class TestCli:
    """Tests for deckctl commands and exit codes."""

    def test_parser(self):
        args = build_parser().parse_args(["feedback", "default-business", "-r", "4", "--failure"])
        assert args.success is False
        assert build_parser().parse_args(["feedback", "x", "-r", "4"]).success is None
        assert build_parser().parse_args(["draft", "Add a slide", "--revise", "o.json"]).revise == "o.json"

    def test_no_command(self, cli, capsys):
        assert cli() == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_templates(self, cli, capsys):
        assert cli("templates") == 0
        out = capsys.readouterr().out
        assert "default-business" in out
        assert "Templates (3 of 3)" in out

    def test_templates_json_filter(self, cli, capsys):
        assert cli("templates", "--category", "academic", "--json") == 0
        data = json.loads(capsys.readouterr().out)
        assert [t["id"] for t in data] == ["default-academic"]

    def test_templates_stats(self, cli, capsys):
        assert cli("templates", "--stats") == 0
        assert json.loads(capsys.readouterr().out)["total_templates"] == 3

    def test_recommend_json(self, cli, capsys):
        assert cli("recommend", "営業戦略の提案", "--json") == 0
        data = json.loads(capsys.readouterr().out)
        assert data[0]["template_id"] == "default-business"
        assert [r["score"] for r in data] == sorted((r["score"] for r in data), reverse=True)

    def test_recommend_fallback(self, cli, capsys):
        assert cli("recommend", "hello", "--min-score", "0.95") == 0
        assert "(default)" in capsys.readouterr().out

    def test_adapt(self, cli, tmp_path):
        source = write_outline(tmp_path, make_outline(12))
        output = tmp_path / "out" / "adapted.json"

        assert cli("adapt", str(source), "-t", "default-business", "-o", str(output)) == 0
        adapted = json.loads(output.read_text(encoding="utf-8"))
        assert len(adapted["adapted_slides"]) == 12
        assert adapted["adaptations"][0]["changes"][0]["to"] == 10

    def test_adapt_persists_usage(self, cli, tmp_path, capsys):
        source = write_outline(tmp_path, make_outline(3))
        assert cli("adapt", str(source), "-t", "default-minimal") == 0
        capsys.readouterr()

        assert cli("templates", "--recent", "1", "--json") == 0
        assert [t["id"] for t in json.loads(capsys.readouterr().out)] == ["default-minimal"]

    def test_adapt_renumbers(self, cli, tmp_path, capsys):
        outline = make_outline(2)
        outline.slides[1].slide_number = 7
        source = write_outline(tmp_path, outline)

        assert cli("adapt", str(source), "-t", "default-business") == 0
        adapted = json.loads(capsys.readouterr().out)
        assert [s["original_slide"]["slide_number"] for s in adapted["adapted_slides"]] == [1, 2]

    def test_adapt_unknown_template(self, cli, tmp_path):
        source = write_outline(tmp_path, make_outline(2))
        assert cli("adapt", str(source), "-t", "missing") == 1

    def test_adapt_missing_outline(self, cli, tmp_path):
        assert cli("adapt", str(tmp_path / "nope.json"), "-t", "default-business") == 2

    def test_adapt_bad_outline(self, cli, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        assert cli("adapt", str(path), "-t", "default-business") == 2

    def test_expand_without_credential(self, cli, tmp_path):
        """The openai backend without a key is a fatal configuration error."""
        source = write_outline(tmp_path, make_outline(2))
        assert cli("expand", str(source), "-q") == 1

    def test_register_snapshot(self, cli, snapshot_json, capsys):
        assert cli("register", str(snapshot_json), "-n", "Annual Review",
                   "--metadata", '{"purpose": "report"}') == 0
        assert "Registered template-annual-review-" in capsys.readouterr().out

        assert cli("templates", "annual", "--json") == 0
        data = json.loads(capsys.readouterr().out)
        assert data[0]["metadata"]["purpose"] == "report"

    def test_register_unsupported(self, cli, tmp_path):
        path = tmp_path / "deck.key"
        path.write_text("", encoding="utf-8")
        assert cli("register", str(path), "-n", "Keynote") == 2

    def test_register_bad_metadata(self, cli, snapshot_json):
        assert cli("register", str(snapshot_json), "-n", "X", "--metadata", "{oops") == 2

    def test_feedback(self, cli, capsys):
        assert cli("feedback", "default-business", "-r", "4", "--success") == 0
        assert "average rating 4.00" in capsys.readouterr().out
        stored = json.loads(json.loads(cli.store.read_text(encoding="utf-8"))["template-usage-stats"])
        assert stored["default-business"]["rating_count"] == 1

    def test_feedback_bad_rating(self, cli):
        assert cli("feedback", "default-business", "-r", "9") == 2

    def test_feedback_unknown_template(self, cli):
        assert cli("feedback", "missing", "-r", "3") == 1
