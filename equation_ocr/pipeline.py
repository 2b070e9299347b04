"""
Recognition pipeline

Image → normalize → dispatch to providers → template matching + correction
per provider text → optional language-model disambiguation → consensus.

Only three errors leave ``recognize``: ImageDecodeError,
AllProvidersFailedError and NoCandidatesError. Cancelling the awaiting task
cancels every provider and language-model call still in flight.
"""

import asyncio
import dataclasses
import logging
from typing import List, Optional, Sequence

from .config import Settings
from .consensus import ConsensusAggregator
from .correction import CorrectionEngine, extract_expressions, is_plausible_expression
from .disambiguator import ContextualDisambiguator
from .dispatcher import RecognitionDispatcher
from .errors import NoCandidatesError
from .image_normalizer import ImageNormalizer
from .language_model import AnthropicLanguageModel
from .providers import build_registry
from .scoring import correction_candidate_confidence, raw_candidate_confidence
from .template_matcher import TemplateMatcher
from .types import (
    CandidateResult,
    ConsensusResult,
    RawProviderResult,
    RecognitionRequest,
    SourceStage,
)

logger = logging.getLogger(__name__)


class RecognitionPipeline:
    """Runs the recognition stages for one request at a time"""

    def __init__(self,
                 dispatcher: RecognitionDispatcher,
                 normalizer: Optional[ImageNormalizer] = None,
                 matcher: Optional[TemplateMatcher] = None,
                 engine: Optional[CorrectionEngine] = None,
                 disambiguator: Optional[ContextualDisambiguator] = None,
                 aggregator: Optional[ConsensusAggregator] = None):
        self.dispatcher = dispatcher
        self.normalizer = normalizer or ImageNormalizer()
        self.matcher = matcher or TemplateMatcher()
        self.engine = engine or CorrectionEngine()
        self.disambiguator = disambiguator or ContextualDisambiguator()
        self.aggregator = aggregator or ConsensusAggregator()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RecognitionPipeline":
        """
        Assemble the production pipeline

        Providers without credentials are left out; without an Anthropic key
        the disambiguator is disabled.
        """
        settings = settings or Settings.from_env()
        registry = build_registry(settings)

        client = None
        if settings.has_language_model:
            client = AnthropicLanguageModel(settings.anthropic_api_key,
                                            model=settings.anthropic_model)

        return cls(
            dispatcher=RecognitionDispatcher(registry.list_available(),
                                             timeout=settings.provider_timeout),
            disambiguator=ContextualDisambiguator(client,
                                                  timeout=settings.disambiguation_timeout),
        )

    @property
    def provider_ids(self) -> List[str]:
        return [p.provider_id for p in self.dispatcher.providers]

    async def recognize(self, request: RecognitionRequest) -> ConsensusResult:
        """
        Recognize the expression in an image

        Args:
            request: Image plus optional hint

        Returns:
            ConsensusResult with diagnostics (image class, provider results)

        Raises:
            ImageDecodeError: Image could not be decoded
            AllProvidersFailedError: No provider returned usable text
            NoCandidatesError: No stage produced a usable candidate
        """
        # 1. Normalize
        normalized = await asyncio.to_thread(self.normalizer.normalize, request.image)
        logger.info("[Pipeline] image %dx%d classified as %s",
                    normalized.width, normalized.height, normalized.image_class.value)

        # 2. Recognize
        results = await self.dispatcher.dispatch(normalized)

        # 3. Match + correct
        candidates = self.stage_candidates(results)

        # 4. Disambiguate
        if self.disambiguator.enabled and candidates:
            ranked = [g.to_candidate() for g in self.aggregator.group(candidates)]
            candidates += await self.disambiguator.disambiguate(
                best_raw_text(results), ranked, hint=request.hint
            )

        # 5. Consensus
        if not candidates:
            raise NoCandidatesError("no stage produced a plausible expression")

        consensus = self.aggregator.aggregate(candidates)
        return dataclasses.replace(
            consensus,
            image_class=normalized.image_class,
            provider_results=tuple(results),
        )

    def stage_candidates(self, results: Sequence[RawProviderResult]) -> List[CandidateResult]:
        """Raw, template and correction candidates for every successful provider result"""
        candidates: List[CandidateResult] = []

        for result in results:
            if not result.succeeded:
                continue

            text = result.raw_text
            if is_plausible_expression(text):
                candidates.append(CandidateResult(
                    source_stage=SourceStage.RECOGNITION,
                    text=text,
                    confidence=raw_candidate_confidence(result.reported_confidence),
                    explanation=f"raw text from {result.provider_id}",
                    provider_id=result.provider_id,
                ))

            candidates.extend(self.matcher.match(text, provider_id=result.provider_id))
            candidates.extend(self._corrected(result))

        logger.info("[Pipeline] %d candidate(s) from %d provider result(s)",
                    len(candidates), len(results))
        return candidates

    def _corrected(self, result: RawProviderResult) -> List[CandidateResult]:
        corrected, trace = self.engine.apply_with_trace(result.raw_text)
        explanation = (
            f"{result.provider_id} text corrected by {', '.join(trace)}"
            if trace else f"{result.provider_id} text needed no correction"
        )
        confidence = correction_candidate_confidence(result.reported_confidence)

        return [
            CandidateResult(
                source_stage=SourceStage.CORRECTION,
                text=expression,
                confidence=confidence,
                explanation=explanation,
                provider_id=result.provider_id,
            )
            for expression in (extract_expressions(corrected) or [corrected])
            if is_plausible_expression(expression)
        ]


def best_raw_text(results: Sequence[RawProviderResult]) -> str:
    """Text of the successful result with the highest reported confidence"""
    succeeded = [r for r in results if r.succeeded]
    if not succeeded:
        return ""
    return max(succeeded, key=lambda r: r.reported_confidence).raw_text
