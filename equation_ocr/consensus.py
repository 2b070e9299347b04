"""
Consensus aggregator

Merges the candidates of every stage into one ranked answer. Candidates whose
texts are equal after removing whitespace and case are one group; agreeing
candidates raise the group's confidence. The result does not depend on the
order candidates arrive in.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from .errors import NoCandidatesError
from .scoring import distinct_origins, group_confidence, normalized_key
from .types import CandidateResult, ConsensusResult, SourceStage

logger = logging.getLogger(__name__)


_STAGE_ORDER = {stage: i for i, stage in enumerate(SourceStage)}


def _member_order(candidate: CandidateResult) -> tuple:
    return (
        _STAGE_ORDER[candidate.source_stage],
        candidate.origin,
        -candidate.confidence,
        candidate.text,
        candidate.explanation,
    )


@dataclass(frozen=True)
class CandidateGroup:
    """Candidates that agree on the same expression"""
    key: str
    members: Tuple[CandidateResult, ...]
    confidence: float

    @property
    def representative(self) -> CandidateResult:
        """Most confident member; the shortest-sorting text wins ties"""
        return min(self.members, key=lambda c: (-c.confidence, c.text))

    @property
    def agreement_count(self) -> int:
        return distinct_origins(c.origin for c in self.members)

    def explanation(self) -> str:
        details = "; ".join(
            f"{c.source_stage.value}/{c.origin} {c.confidence:.0f}: {c.explanation}"
            for c in self.members
        )
        return f"{len(self.members)} candidate(s) from {self.agreement_count} source(s): {details}"

    def to_candidate(self) -> CandidateResult:
        return CandidateResult(
            source_stage=SourceStage.CONSENSUS,
            text=self.representative.text,
            confidence=self.confidence,
            explanation=self.explanation(),
        )


class ConsensusAggregator:
    """Groups equivalent candidates and ranks the groups"""

    def group(self, candidates: Sequence[CandidateResult]) -> List[CandidateGroup]:
        """
        Group and rank candidates

        Returns:
            Groups sorted by confidence desc, then key asc
        """
        buckets: Dict[str, List[CandidateResult]] = {}
        for candidate in candidates:
            key = normalized_key(candidate.text)
            if not key:
                continue
            buckets.setdefault(key, []).append(candidate)

        groups = [
            CandidateGroup(
                key=key,
                members=tuple(sorted(members, key=_member_order)),
                confidence=group_confidence([m.confidence for m in members]),
            )
            for key, members in buckets.items()
        ]
        groups.sort(key=lambda g: (-g.confidence, g.key))
        return groups

    def aggregate(self, candidates: Sequence[CandidateResult]) -> ConsensusResult:
        """
        Choose the final expression

        Args:
            candidates: Candidates from every stage, any order

        Returns:
            ConsensusResult with one supporting candidate per group

        Raises:
            NoCandidatesError: If there is nothing to aggregate
        """
        groups = self.group(candidates)
        if not groups:
            raise NoCandidatesError("no candidates to aggregate")

        top = groups[0]
        logger.info("[Consensus] %d candidate(s) in %d group(s); best %r at %.1f (%d source(s))",
                    len(candidates), len(groups), top.representative.text,
                    top.confidence, top.agreement_count)

        return ConsensusResult(
            final_text=top.representative.text,
            final_confidence=top.confidence,
            supporting_candidates=tuple(g.to_candidate() for g in groups),
            agreement_count=top.agreement_count,
        )
