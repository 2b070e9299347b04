"""
Tests for equation_ocr/template_matcher.py and the built-in catalogue
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from equation_ocr.template_matcher import TemplateMatcher
from equation_ocr.templates import (
    EXPONENTIAL_TANGENT,
    POLYNOMIAL,
    SIMPLE_EXPONENTIAL,
    TEMPLATE_CATALOGUE,
)
from equation_ocr.types import SourceStage


class TestCatalogue:
    def test_names_unique(self):
        names = [t.name for t in TEMPLATE_CATALOGUE]
        assert len(names) == len(set(names))

    def test_base_confidence_in_range(self):
        assert all(0 < t.base_confidence <= 100 for t in TEMPLATE_CATALOGUE)


class TestMatch:
    def test_polynomial_misread(self):
        candidates = TemplateMatcher().match("5x4 6x2 3", provider_id="ocr_space")

        assert candidates[0].text == POLYNOMIAL.canonical_form
        assert candidates[0].confidence >= 80
        assert candidates[0].source_stage == SourceStage.TEMPLATE
        assert candidates[0].provider_id == "ocr_space"
        assert "5..6..3" in candidates[0].explanation

    def test_polynomial_only(self):
        texts = [c.text for c in TemplateMatcher().match("5x4 6x2 3")]
        assert texts == [POLYNOMIAL.canonical_form]

    def test_simple_exponential(self):
        candidates = TemplateMatcher().match("e x dx")
        assert candidates[0].text == SIMPLE_EXPONENTIAL.canonical_form
        assert candidates[0].confidence == 98

    def test_ambiguous_match_keeps_both(self):
        candidates = TemplateMatcher().match("e tan 2x sec 2x dx")
        texts = [c.text for c in candidates]

        assert texts[0] == EXPONENTIAL_TANGENT.canonical_form
        assert candidates[0].confidence == 95
        assert SIMPLE_EXPONENTIAL.canonical_form in texts

    def test_trig_blocks_exponential_signature(self):
        scores = {s.template.name: s for s in TemplateMatcher().scores("e tan 2x sec 2x dx")}
        assert scores[SIMPLE_EXPONENTIAL.name].fired_signatures == ()

    def test_sorted_by_confidence(self):
        candidates = TemplateMatcher().match("e tan 2x sec 2x dx")
        confidences = [c.confidence for c in candidates]
        assert confidences == sorted(confidences, reverse=True)

    def test_nothing_matches(self):
        assert TemplateMatcher().match("hello world") == []
        assert TemplateMatcher().match("   ") == []

    def test_confidence_never_exceeds_base(self):
        for template in TEMPLATE_CATALOGUE:
            for candidate in TemplateMatcher([template]).match(template.canonical_form):
                assert candidate.confidence <= template.base_confidence
