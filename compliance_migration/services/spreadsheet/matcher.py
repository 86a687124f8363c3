"""Fuzzy matching of spreadsheet questions onto canonical questions.

Scores are Dice coefficients over the sets of character bigrams of the
normalised texts. Candidates are limited to the section the worksheet maps
to; when the question text alone scores below the threshold, the question
and its sub-question are tried together.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Literal, Sequence

from compliance_migration.services.spreadsheet.parser import ParsedQuestion

logger = logging.getLogger(__name__)

MatchMethod = Literal["fuzzy", "fuzzy-with-sub"]

HIGH_CONFIDENCE = 0.95
LOW_CONFIDENCE_CEILING = 0.75

_WHITESPACE = re.compile(r"\s+")
_TRAILING_DOTS = re.compile(r"[.\s]+$")


def normalise(text: str) -> str:
    return _WHITESPACE.sub(" ", text.lower().strip())


def _bigrams(text: str) -> set[str]:
    return {text[i : i + 2] for i in range(len(text) - 1)}


def similarity_score(first: str, second: str) -> float:
    a = normalise(first)
    b = normalise(second)
    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0
    bigrams_a = _bigrams(a)
    bigrams_b = _bigrams(b)
    return 2.0 * len(bigrams_a & bigrams_b) / (len(bigrams_a) + len(bigrams_b))


def normalise_choice(text: str) -> str:
    return _TRAILING_DOTS.sub("", text.lower().strip())


@dataclass(frozen=True)
class CanonicalQuestion:
    id: str
    name: str
    response_type: str | None
    section_name: str | None


@dataclass(frozen=True)
class MatchResult:
    parsed: ParsedQuestion
    question: CanonicalQuestion
    score: float
    method: MatchMethod


@dataclass
class MatchReport:
    matches: list[MatchResult] = field(default_factory=list)
    unmatched: list[ParsedQuestion] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.matches) + len(self.unmatched)

    @property
    def high_confidence(self) -> list[MatchResult]:
        return [match for match in self.matches if match.score > HIGH_CONFIDENCE]

    @property
    def low_confidence(self) -> list[MatchResult]:
        return [match for match in self.matches if match.score < LOW_CONFIDENCE_CEILING]

    @property
    def match_rate(self) -> float:
        if not self.total:
            return 0.0
        return len(self.matches) / self.total


def _best(text: str, candidates: Sequence[CanonicalQuestion]) -> tuple[CanonicalQuestion | None, float]:
    best: CanonicalQuestion | None = None
    best_score = 0.0
    for candidate in candidates:
        score = similarity_score(text, candidate.name)
        if score > best_score:
            best, best_score = candidate, score
    return best, best_score


def match_question(
    parsed: ParsedQuestion,
    candidates: Sequence[CanonicalQuestion],
    threshold: float = 0.6,
) -> MatchResult | None:
    in_section = [candidate for candidate in candidates if candidate.section_name == parsed.section]

    best, score = _best(parsed.question_text, in_section)
    method: MatchMethod = "fuzzy"
    if score < threshold and parsed.sub_question_text:
        combined, combined_score = _best(f"{parsed.question_text} {parsed.sub_question_text}", in_section)
        if combined_score > score:
            best, score, method = combined, combined_score, "fuzzy-with-sub"

    if best is None or score < threshold:
        return None
    return MatchResult(parsed=parsed, question=best, score=score, method=method)


def match_questions(
    parsed_questions: Sequence[ParsedQuestion],
    candidates: Sequence[CanonicalQuestion],
    threshold: float = 0.6,
) -> MatchReport:
    report = MatchReport()
    for parsed in parsed_questions:
        result = match_question(parsed, candidates, threshold)
        if result is None:
            report.unmatched.append(parsed)
        else:
            report.matches.append(result)
    return report


def log_match_report(report: MatchReport, *, sample_size: int = 10) -> None:
    logger.info("Matched: %d questions", len(report.matches))
    logger.info("Unmatched: %d questions", len(report.unmatched))
    logger.info("  - Exact/Very High (>95%%): %d", len(report.high_confidence))
    logger.info("  - Fuzzy: %d", len(report.matches) - len(report.high_confidence))

    for parsed in report.unmatched:
        logger.warning("Unmatched [%s Row %d] %s", parsed.sheet_name, parsed.row_number, parsed.question_text[:80])
        if parsed.sub_question_text:
            logger.warning("  Sub: %s", parsed.sub_question_text[:70])

    low = report.low_confidence
    for match in low[:sample_size]:
        logger.warning(
            "Low confidence %.0f%% [%s] excel=%r db=%r",
            match.score * 100,
            match.parsed.sheet_name,
            match.parsed.question_text[:70],
            match.question.name[:70],
        )
    if len(low) > sample_size:
        logger.warning("  ... and %d more low confidence matches", len(low) - sample_size)
    logger.info("Match rate: %.1f%%", report.match_rate * 100)


__all__ = [
    "CanonicalQuestion",
    "MatchMethod",
    "MatchReport",
    "MatchResult",
    "log_match_report",
    "match_question",
    "match_questions",
    "normalise",
    "normalise_choice",
    "similarity_score",
]
