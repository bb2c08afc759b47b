"""
Data Models
===========
Pydantic models for the question-bank extraction pipeline.
The BankQuestion model is the JSON contract consumed by the quiz viewer.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


# ─── Enums ────────────────────────────────────────────────────────────────────


class SourceKind(str, Enum):
    """How a source file is turned into candidate records."""
    DOCUMENT = "document"
    TABULAR = "tabular"
    IGNORED = "ignored"


class GrammarName(str, Enum):
    """Line grammars a question body can be locked to."""
    STANDARD = "standard"
    ROMAN = "roman"
    BLOCK = "block"
    TABULAR = "tabular"


class RejectionReason(str, Enum):
    """Why a candidate record or spreadsheet row was dropped."""
    TOO_SHORT = "too_short"
    WRONG_OPTION_COUNT = "wrong_option_count"
    INVALID_ANSWER = "invalid_answer"
    DUPLICATE = "duplicate"
    UNRESOLVED_ANSWER = "unresolved_answer"
    MISSING_FIELDS = "missing_fields"
    INCOMPLETE_BLOCK = "incomplete_block"
    INFERRED_ANSWER = "inferred_answer"


# ─── Candidate Model ──────────────────────────────────────────────────────────


class CandidateQuestion(BaseModel):
    """
    A question under construction.
    Mutated by the assembler, read-only once handed to the validator.
    """
    question: str = ""
    options: list[str] = Field(default_factory=list)
    correct_index: int = -1
    explanation: str = ""
    source: str = ""
    grammar: Optional[GrammarName] = None
    answer_inferred: bool = False

    @property
    def normalized_key(self) -> str:
        return normalize_question(self.question)

    def append_text(self, text: str):
        if self.question:
            self.question += " " + text
        else:
            self.question = text


def normalize_question(text: str) -> str:
    """Lowercase and strip everything that is not a-z or 0-9."""
    return re.sub(r"[^a-z0-9]", "", text.lower())


# ─── Output Model ────────────────────────────────────────────────────────────


class BankQuestion(BaseModel):
    """A single accepted, indexed record of the persisted question bank."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(ge=1)
    question: str
    options: list[str] = Field(min_length=4, max_length=4)
    correct_index: int = Field(alias="correctIndex", ge=0, le=3)
    explanation: str = ""
    previous: Optional[int] = None
    next: Optional[int] = None

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)


# ─── Tabular Row Model ───────────────────────────────────────────────────────


def normalize_header(name) -> str:
    """'  Question  Body ' -> 'question body'."""
    return " ".join(str(name).split()).lower()


def _cell_text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


class TabularRow(BaseModel):
    """
    One spreadsheet row read into a fixed shape.
    Header lookup tolerates arbitrary capitalization and whitespace.
    """
    question_body: Optional[str] = None
    alternative_1: Optional[str] = None
    alternative_2: Optional[str] = None
    alternative_3: Optional[str] = None
    alternative_4: Optional[str] = None
    correct_alternative: Optional[str] = None
    syllabus_category_name: Optional[str] = None
    additional_information: Optional[str] = None

    @classmethod
    def from_mapping(cls, raw: dict) -> "TabularRow":
        normalized = {
            normalize_header(key): value
            for key, value in raw.items()
            if key is not None
        }
        values = {}
        for field_name in cls.model_fields:
            header = field_name.replace("_", " ")
            values[field_name] = _cell_text(normalized.get(header))
        return cls(**values)

    @property
    def alternatives(self) -> list[Optional[str]]:
        return [
            self.alternative_1,
            self.alternative_2,
            self.alternative_3,
            self.alternative_4,
        ]

    @property
    def missing_fields(self) -> list[str]:
        required = {
            "question body": self.question_body,
            "alternative 1": self.alternative_1,
            "alternative 2": self.alternative_2,
            "alternative 3": self.alternative_3,
            "alternative 4": self.alternative_4,
            "correct alternative": self.correct_alternative,
        }
        return [name for name, value in required.items() if not value]


# ─── Rejection / Report Models ───────────────────────────────────────────────


class Rejection(BaseModel):
    """A dropped candidate, kept for manual triage."""
    source: str
    reason: RejectionReason
    detail: str = ""
    question: str = Field(default="", description="Question text preview")


class ValidationReport(BaseModel):
    """Outcome of the validation and deduplication pass."""
    total_candidates: int = 0
    accepted: int = 0
    inferred_answers: int = 0
    rejections: list[Rejection] = Field(default_factory=list)

    @computed_field
    @property
    def rejection_breakdown(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for rejection in self.rejections:
            key = rejection.reason.value
            counts[key] = counts.get(key, 0) + 1
        return counts

    @computed_field
    @property
    def acceptance_rate(self) -> float:
        if self.total_candidates == 0:
            return 0.0
        return round(self.accepted / self.total_candidates * 100, 2)


class SourceReport(BaseModel):
    """What one source file contributed to a run."""
    filename: str
    kind: SourceKind
    candidates: int = 0
    error: Optional[str] = None


class RunReport(BaseModel):
    """Top-level summary of a pipeline run."""
    sources: list[SourceReport] = Field(default_factory=list)
    rejections: list[Rejection] = Field(
        default_factory=list,
        description="Rejections raised before validation (rows, blocks)",
    )
    validation: ValidationReport = Field(default_factory=ValidationReport)
    output_file: str = ""
    total_questions: int = 0
