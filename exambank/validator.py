"""
Validation Engine
=================
Structural validation and deduplication of candidate records.

Rules, applied in order to every candidate:
    1. Question text at least `min_question_length` characters
    2. Exactly `required_options` options
    3. Correct index inside the option range
    4. Normalized question text not seen before in this run
    5. Default explanations rewritten to lead with the correct letter

Every rejection is logged and reported. Nothing here aborts a run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .models import (
    CandidateQuestion,
    Rejection,
    RejectionReason,
    ValidationReport,
)

logger = logging.getLogger(__name__)

DEFAULT_EXPLANATION_PREFIX = "Source:"


@dataclass(frozen=True)
class DeduplicationIndex:
    """Normalized question keys accepted so far. Immutable; add() returns a new index."""
    keys: frozenset[str] = frozenset()

    def __contains__(self, key: str) -> bool:
        return key in self.keys

    def __len__(self) -> int:
        return len(self.keys)

    def add(self, key: str) -> "DeduplicationIndex":
        return DeduplicationIndex(self.keys | {key})


def correct_letter(index: int) -> str:
    return chr(ord("A") + index)


def ensure_explanation(candidate: CandidateQuestion) -> str:
    """Lead default or empty explanations with the correct letter."""
    explanation = candidate.explanation.strip()
    if explanation and not explanation.startswith(DEFAULT_EXPLANATION_PREFIX):
        return candidate.explanation
    letter = correct_letter(candidate.correct_index)
    return f"Correct Answer: {letter}. {explanation}".strip()


class ValidationEngine:
    """
    Filters candidates against structural rules and a duplicate index.
    """

    def __init__(
        self,
        min_question_length: int = 10,
        required_options: int = 4,
        reject_inferred_answers: bool = False,
    ):
        self.min_question_length = min_question_length
        self.required_options = required_options
        self.reject_inferred_answers = reject_inferred_answers

    def validate(
        self,
        candidates: list[CandidateQuestion],
        index: DeduplicationIndex = DeduplicationIndex(),
    ) -> tuple[list[CandidateQuestion], DeduplicationIndex, ValidationReport]:
        """
        Run validation on candidates in order.

        Args:
            candidates: Candidate records from documents and spreadsheets.
            index: Keys already accepted earlier in the run.

        Returns:
            (accepted candidates, updated index, report)
        """
        report = ValidationReport(total_candidates=len(candidates))
        accepted: list[CandidateQuestion] = []

        for candidate in candidates:
            rejection = self._check(candidate, index)
            if rejection is not None:
                logger.info(
                    f"[{rejection.source}] Rejected ({rejection.reason.value}): "
                    f"{rejection.detail} | {rejection.question!r}"
                )
                report.rejections.append(rejection)
                continue

            index = index.add(candidate.normalized_key)

            if candidate.answer_inferred:
                report.inferred_answers += 1
                logger.warning(
                    f"[{candidate.source}] No answer key found, defaulted to A: "
                    f"{candidate.question[:60]!r}"
                )

            accepted.append(candidate.model_copy(
                update={"explanation": ensure_explanation(candidate)}
            ))

        report.accepted = len(accepted)
        self._log_report(report)
        return accepted, index, report

    def _check(
        self, candidate: CandidateQuestion, index: DeduplicationIndex
    ) -> Optional[Rejection]:
        """Return the first rule the candidate breaks, or None."""
        question = candidate.question.strip()

        def reject(reason: RejectionReason, detail: str) -> Rejection:
            return Rejection(
                source=candidate.source,
                reason=reason,
                detail=detail,
                question=question[:80],
            )

        if len(question) < self.min_question_length:
            return reject(
                RejectionReason.TOO_SHORT,
                f"question has {len(question)} characters",
            )

        if len(candidate.options) != self.required_options:
            return reject(
                RejectionReason.WRONG_OPTION_COUNT,
                f"options has {len(candidate.options)} entries",
            )

        if not 0 <= candidate.correct_index < len(candidate.options):
            return reject(
                RejectionReason.INVALID_ANSWER,
                f"correct_index {candidate.correct_index}",
            )

        if candidate.answer_inferred and self.reject_inferred_answers:
            return reject(
                RejectionReason.INFERRED_ANSWER,
                "no answer key in source",
            )

        if candidate.normalized_key in index:
            return reject(RejectionReason.DUPLICATE, "question already accepted")

        return None

    def _log_report(self, report: ValidationReport):
        logger.info("=" * 60)
        logger.info("VALIDATION REPORT")
        logger.info("=" * 60)
        logger.info(f"Candidates: {report.total_candidates}")
        logger.info(
            f"Accepted: {report.accepted} ({report.acceptance_rate}%)"
        )
        logger.info(f"Inferred answers (review): {report.inferred_answers}")
        if report.rejection_breakdown:
            logger.info("Rejection Breakdown:")
            for reason, count in sorted(report.rejection_breakdown.items()):
                logger.info(f"  • {reason}: {count}")
        logger.info("=" * 60)
