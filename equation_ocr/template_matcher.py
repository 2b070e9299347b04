"""
Pattern template matcher

Scores raw recognized text against the expression template catalogue and
proposes the canonical form of every template that scores above the
admission threshold. Ambiguous matches are all kept; the consensus stage
decides between them.
"""

import logging
from typing import List, Optional, Sequence

from .scoring import TemplateScore, score_template
from .templates import TEMPLATE_CATALOGUE
from .types import CandidateResult, ExpressionTemplate, SourceStage

logger = logging.getLogger(__name__)


class TemplateMatcher:
    """Scores text against a fixed template catalogue"""

    def __init__(self, catalogue: Sequence[ExpressionTemplate] = TEMPLATE_CATALOGUE):
        self.catalogue = tuple(catalogue)

    def scores(self, text: str) -> List[TemplateScore]:
        """Score breakdown for every template (admitted or not), catalogue order"""
        return [score_template(template, text) for template in self.catalogue]

    def match(self, text: str, provider_id: Optional[str] = None) -> List[CandidateResult]:
        """
        Propose template candidates for a raw text

        Args:
            text: Raw provider text
            provider_id: Provider the text came from (kept on the candidates)

        Returns:
            Admitted candidates sorted by confidence desc, template name asc
        """
        if not text or not text.strip():
            return []

        admitted = [s for s in self.scores(text) if s.admitted]
        admitted.sort(key=lambda s: (-s.confidence, s.template.name))

        candidates = [
            CandidateResult(
                source_stage=SourceStage.TEMPLATE,
                text=s.template.canonical_form,
                confidence=float(s.confidence),
                explanation=_explain(s),
                provider_id=provider_id,
            )
            for s in admitted
        ]

        if candidates:
            logger.info("[Matcher] %r matched %s", text,
                        ", ".join(f"{s.template.name}={s.confidence}" for s in admitted))
        return candidates


def _explain(s: TemplateScore) -> str:
    parts = [
        f"template '{s.template.name}'",
        f"required {s.required[0]}/{s.required[1]}",
        f"optional {s.optional[0]}/{s.optional[1]}",
        f"variant overlap {s.variant_overlap:.0f}%",
    ]
    if s.fired_signatures:
        parts.append("signatures: " + "; ".join(s.fired_signatures))
    return ", ".join(parts)
