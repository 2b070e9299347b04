"""
Unit tests for the pipeline data types
"""

import pytest
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from equation_ocr.types import (
    CandidateResult,
    ConsensusResult,
    CorrectionRule,
    ErrorKind,
    ImageClass,
    RawProviderResult,
    RecognitionRequest,
    SourceStage,
)


class TestCandidateResult:
    def test_confidence_bounds_inclusive(self):
        CandidateResult(SourceStage.TEMPLATE, "x", 0, "low")
        CandidateResult(SourceStage.TEMPLATE, "x", 100, "high")

    def test_rejects_out_of_range_confidence(self):
        with pytest.raises(ValueError):
            CandidateResult(SourceStage.TEMPLATE, "x", 100.5, "too high")
        with pytest.raises(ValueError):
            CandidateResult(SourceStage.TEMPLATE, "x", -1, "negative")

    def test_origin_prefers_provider(self):
        with_provider = CandidateResult(SourceStage.CORRECTION, "x", 50, "", provider_id="mathpix")
        without = CandidateResult(SourceStage.DISAMBIGUATION, "x", 50, "")
        assert with_provider.origin == "mathpix"
        assert without.origin == "disambiguation"

    def test_frozen(self):
        candidate = CandidateResult(SourceStage.TEMPLATE, "x", 50, "")
        with pytest.raises(Exception):
            candidate.text = "y"


class TestSerialization:
    def test_consensus_to_dict(self):
        candidate = CandidateResult(SourceStage.CONSENSUS, "∫ e^x dx", 90, "merged")
        failed = RawProviderResult("ocr_space", "", 0.0, 12, False, ErrorKind.TIMEOUT)
        result = ConsensusResult(
            final_text="∫ e^x dx",
            final_confidence=90,
            supporting_candidates=(candidate,),
            agreement_count=1,
            image_class=ImageClass.GRIDDED_PAPER,
            provider_results=(failed,),
        )

        data = result.to_dict()
        assert data["final_text"] == "∫ e^x dx"
        assert data["image_class"] == "griddedPaper"
        assert data["supporting_candidates"][0]["source_stage"] == "consensus"
        assert data["provider_results"][0]["error_kind"] == "timeout"

    def test_request_defaults(self):
        request = RecognitionRequest(image=b"...")
        assert request.hint is None
        assert request.captured_at.tzinfo is not None


class TestCorrectionRule:
    def test_compiled_uses_flags(self):
        import re
        rule = CorrectionRule("r", r"abc", "x", "test", flags=re.IGNORECASE)
        assert rule.compiled().sub(rule.replacement, "ABC") == "x"
