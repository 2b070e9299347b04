"""
End-to-end tests for equation_ocr/pipeline.py

Providers and the language model are fakes; everything else is the real
pipeline.
"""

import asyncio

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))
sys.path.insert(0, str(Path(__file__).parent.parent))

from equation_ocr.config import Settings
from equation_ocr.disambiguator import ContextualDisambiguator
from equation_ocr.dispatcher import RecognitionDispatcher
from equation_ocr.errors import AllProvidersFailedError, ImageDecodeError, NoCandidatesError
from equation_ocr.pipeline import RecognitionPipeline, best_raw_text
from equation_ocr.templates import POLYNOMIAL
from equation_ocr.types import ErrorKind, ImageClass, RawProviderResult, RecognitionRequest
from fakes import FakeLanguageModel, FakeProvider, png_bytes, printed_page


@pytest.fixture(scope="module")
def request_():
    return RecognitionRequest(image=png_bytes(printed_page()))


def make_pipeline(*providers, model=None, timeout=1.0):
    return RecognitionPipeline(
        dispatcher=RecognitionDispatcher(providers, timeout=timeout),
        disambiguator=ContextualDisambiguator(model, timeout=timeout),
    )


class TestScenarios:
    def test_polynomial_misread(self, request_):
        pipeline = make_pipeline(FakeProvider("ocr_space", "5x4 6x2 3", 75))
        result = asyncio.run(pipeline.recognize(request_))

        assert result.final_text == POLYNOMIAL.canonical_form
        assert result.final_text == "∫ (5x^4 - 6x^2 + 3) dx"
        assert result.final_confidence >= 80

    def test_all_providers_fail(self, request_):
        pipeline = make_pipeline(
            FakeProvider("ocr_space", error=RuntimeError("HTTP 500")),
            FakeProvider("tesseract", "x", delay=5.0),
            timeout=0.05,
        )
        with pytest.raises(AllProvidersFailedError):
            asyncio.run(pipeline.recognize(request_))

    def test_no_language_model_degrades_gracefully(self, request_):
        pipeline = make_pipeline(FakeProvider("ocr_space", "5x4 6x2 3", 75))
        assert not pipeline.disambiguator.enabled

        result = asyncio.run(pipeline.recognize(request_))
        assert result.final_text == POLYNOMIAL.canonical_form
        assert all("language model" not in c.explanation for c in result.supporting_candidates)

    def test_equivalent_provider_texts_agree(self, request_):
        pipeline = make_pipeline(
            FakeProvider("ocr_space", "x^2 + 3x", 80),
            FakeProvider("tesseract", "x2+3x", 70),
        )
        result = asyncio.run(pipeline.recognize(request_))

        assert result.final_text == "x^2 + 3x"
        assert result.agreement_count == 2
        assert result.final_confidence > 75


class TestDisambiguation:
    def test_language_model_confirms_top_candidate(self, request_):
        model = FakeLanguageModel("A")
        pipeline = make_pipeline(FakeProvider("ocr_space", "5x4 6x2 3", 75), model=model)
        result = asyncio.run(pipeline.recognize(request_))

        assert result.final_text == POLYNOMIAL.canonical_form
        assert result.final_confidence == 98
        _, prompt = model.prompts[0]
        assert "5x4 6x2 3" in prompt
        assert f"A) {POLYNOMIAL.canonical_form}" in prompt

    def test_hint_forwarded(self):
        model = FakeLanguageModel("A")
        pipeline = make_pipeline(FakeProvider("ocr_space", "e x dx", 75), model=model)
        request = RecognitionRequest(image=png_bytes(printed_page()), hint="∫ e^(2x) dx")

        asyncio.run(pipeline.recognize(request))
        assert "∫ e^(2x) dx" in model.prompts[0][1]

    def test_failing_language_model_is_absorbed(self, request_):
        model = FakeLanguageModel(error=ConnectionError("offline"))
        pipeline = make_pipeline(FakeProvider("ocr_space", "5x4 6x2 3", 75), model=model)

        result = asyncio.run(pipeline.recognize(request_))
        assert result.final_text == POLYNOMIAL.canonical_form


class TestFailures:
    def test_undecodable_image_aborts_before_dispatch(self):
        provider = FakeProvider("ocr_space", "x + 1", 80)
        pipeline = make_pipeline(provider)

        with pytest.raises(ImageDecodeError):
            asyncio.run(pipeline.recognize(RecognitionRequest(image=b"not an image")))
        assert provider.calls == 0

    def test_no_plausible_candidates(self, request_):
        pipeline = make_pipeline(FakeProvider("ocr_space", "hello world", 80))
        with pytest.raises(NoCandidatesError):
            asyncio.run(pipeline.recognize(request_))

    def test_failed_provider_reported_in_diagnostics(self, request_):
        pipeline = make_pipeline(
            FakeProvider("mathpix", error=RuntimeError("HTTP 401")),
            FakeProvider("ocr_space", "e x dx", 75),
        )
        result = asyncio.run(pipeline.recognize(request_))

        kinds = {r.provider_id: r.error_kind for r in result.provider_results}
        assert kinds == {"mathpix": ErrorKind.PROVIDER_ERROR, "ocr_space": None}
        assert result.image_class == ImageClass.HIGH_CONTRAST_PRINT
        assert result.final_text == "∫ e^x dx"

    def test_cancellation_reaches_providers(self, request_):
        slow = FakeProvider("ocr_space", "x + 1", 80, delay=5.0)
        pipeline = make_pipeline(slow, timeout=10.0)

        async def run():
            task = asyncio.ensure_future(pipeline.recognize(request_))
            await asyncio.sleep(0.3)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run())
        assert slow.calls == 1
        assert slow.cancelled


class TestAssembly:
    def test_from_settings_without_credentials(self):
        pipeline = RecognitionPipeline.from_settings(Settings(use_tesseract=False))
        assert pipeline.provider_ids == []
        assert not pipeline.disambiguator.enabled

    def test_from_settings_with_credentials(self):
        settings = Settings(ocr_space_api_key="key", anthropic_api_key="sk-test",
                            use_tesseract=False, provider_timeout=3.0)
        pipeline = RecognitionPipeline.from_settings(settings)

        assert pipeline.provider_ids == ["ocr_space"]
        assert pipeline.dispatcher.timeout == 3.0
        assert pipeline.disambiguator.enabled

    def test_best_raw_text(self):
        results = [
            RawProviderResult("a", "x", 60, 10, True),
            RawProviderResult("b", "", 0, 10, False, ErrorKind.TIMEOUT),
            RawProviderResult("c", "x + 1", 90, 10, True),
        ]
        assert best_raw_text(results) == "x + 1"
        assert best_raw_text([]) == ""
