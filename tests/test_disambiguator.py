"""
Tests for equation_ocr/disambiguator.py and the language-model helpers
"""

import asyncio

import pytest
import sys
from pathlib import Path
from types import SimpleNamespace

sys.path.insert(0, str(Path(__file__).parent))
sys.path.insert(0, str(Path(__file__).parent.parent))

from equation_ocr.disambiguator import ContextualDisambiguator, build_prompt, parse_reply
from equation_ocr.errors import DisambiguationError
from equation_ocr.language_model import clean_reply, response_text
from equation_ocr.types import CandidateResult, SourceStage
from fakes import FakeLanguageModel


def candidates():
    return [
        CandidateResult(SourceStage.CONSENSUS, "∫ e^(tan(2x))/sec^2(2x) dx", 92, "template"),
        CandidateResult(SourceStage.CONSENSUS, "∫ e^x dx", 80, "template"),
        CandidateResult(SourceStage.CONSENSUS, "∫ ln(x) dx", 55, "template"),
        CandidateResult(SourceStage.CONSENSUS, "∫ x dx", 40, "correction"),
    ]


class TestCleanReply:
    def test_code_fence(self):
        assert clean_reply("```\n∫ e^x dx\n```") == "∫ e^x dx"

    def test_answer_prefix_and_quotes(self):
        assert clean_reply('Answer: "∫ e^x dx"') == "∫ e^x dx"

    def test_first_line_only(self):
        assert clean_reply("∫ e^x dx\nThis is the exponential integral.") == "∫ e^x dx"

    def test_unusable(self):
        assert clean_reply("") is None
        assert clean_reply("   \n  ") is None
        assert clean_reply("x" * 250) is None

    def test_response_text(self):
        response = SimpleNamespace(content=[
            SimpleNamespace(type="text", text="∫ e^x"),
            SimpleNamespace(type="text", text=" dx"),
        ])
        assert response_text(response) == "∫ e^x dx"


class TestPrompt:
    def test_lists_lettered_candidates_and_hint(self):
        prompt = build_prompt("e x dx", candidates()[:2], hint="∫ x dx")
        assert 'OCR read: "e x dx"' in prompt
        assert '"∫ x dx"' in prompt
        assert "A) ∫ e^(tan(2x))/sec^2(2x) dx (confidence 92%)" in prompt
        assert "B) ∫ e^x dx (confidence 80%)" in prompt

    def test_without_candidates(self):
        prompt = build_prompt("e x dx", [])
        assert "A)" not in prompt


class TestParseReply:
    def test_bare_letter(self):
        text, matched = parse_reply("B", candidates())
        assert text == "∫ e^x dx"
        assert matched.confidence == 80

    def test_letter_with_expression(self):
        text, matched = parse_reply("B) ∫ e^x dx", candidates())
        assert text == "∫ e^x dx"
        assert matched is not None

    def test_whitespace_insensitive_match(self):
        text, matched = parse_reply("∫e^xdx", candidates())
        assert text == "∫ e^x dx"
        assert matched.confidence == 80

    def test_rewrite(self):
        text, matched = parse_reply("∫ e^(2x) dx", candidates())
        assert text == "∫ e^(2x) dx"
        assert matched is None

    def test_unusable_replies(self):
        with pytest.raises(DisambiguationError):
            parse_reply("", candidates())
        with pytest.raises(DisambiguationError):
            parse_reply("I cannot read this image.", candidates())
        with pytest.raises(DisambiguationError):
            parse_reply("Z", candidates()[:2])


class TestDisambiguate:
    def test_disabled_without_client(self):
        disambiguator = ContextualDisambiguator(None)
        assert not disambiguator.enabled
        assert asyncio.run(disambiguator.disambiguate("e x dx", candidates())) == []

    def test_confirmed_candidate_boosted(self):
        model = FakeLanguageModel("∫ e^x dx")
        result = asyncio.run(ContextualDisambiguator(model).disambiguate("e x dx", candidates()))

        assert len(result) == 1
        assert result[0].source_stage == SourceStage.DISAMBIGUATION
        assert result[0].text == "∫ e^x dx"
        assert result[0].confidence == 90

    def test_boost_capped(self):
        model = FakeLanguageModel("A")
        result = asyncio.run(ContextualDisambiguator(model).disambiguate("e tan 2x", candidates()))
        assert result[0].confidence == 95

    def test_rewrite_confidence(self):
        model = FakeLanguageModel("∫ e^(2x) dx")
        result = asyncio.run(ContextualDisambiguator(model).disambiguate("e 2x dx", candidates()))
        assert result[0].confidence == 85

    def test_only_top_candidates_offered(self):
        model = FakeLanguageModel("∫ x dx")
        result = asyncio.run(ContextualDisambiguator(model).disambiguate("x dx", candidates()))

        _, prompt = model.prompts[0]
        assert "D)" not in prompt
        # the fourth candidate was not offered, so the answer counts as a rewrite
        assert result[0].confidence == 85

    def test_hint_reaches_prompt(self):
        model = FakeLanguageModel("A")
        asyncio.run(ContextualDisambiguator(model).disambiguate("x", candidates(), hint="∫ x^2 dx"))
        assert "∫ x^2 dx" in model.prompts[0][1]

    def test_unparsable_reply_yields_nothing(self):
        model = FakeLanguageModel("Sorry, I can't help with that.")
        assert asyncio.run(ContextualDisambiguator(model).disambiguate("x", candidates())) == []

    def test_error_yields_nothing(self):
        model = FakeLanguageModel(error=ConnectionError("network down"))
        assert asyncio.run(ContextualDisambiguator(model).disambiguate("x", candidates())) == []

    def test_timeout_yields_nothing(self):
        model = FakeLanguageModel("A", delay=5.0)
        disambiguator = ContextualDisambiguator(model, timeout=0.05)
        assert asyncio.run(disambiguator.disambiguate("x", candidates())) == []
        assert model.cancelled

    def test_cancellation_propagates(self):
        model = FakeLanguageModel("A", delay=5.0)
        disambiguator = ContextualDisambiguator(model, timeout=10.0)

        async def run():
            task = asyncio.ensure_future(disambiguator.disambiguate("x", candidates()))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run())
        assert model.cancelled
