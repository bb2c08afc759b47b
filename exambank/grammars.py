"""
Grammar Bank
============
Line-level grammars used to segment acquired text into questions,
options and answer keys.

Grammars:
    - standard: "1. Question" / "a) Option" / "Ans: b"
    - roman:    "Q1: Question" / "II. Option" / "Answer: II"
    - block:    bare "12" opener, one option per line, trailing answer digit
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from .models import GrammarName

# ─── Anchor Patterns ──────────────────────────────────────────────────────────

# "1. What is risk?", "12) What is risk?"
STANDARD_QUESTION_PATTERN = re.compile(r"^\s*(\d+)[\.\)]\s*(.*)$")

# "a) Peril", "B. Hazard", "3) Loss"
STANDARD_OPTION_PATTERN = re.compile(
    r"^\s*([a-d]|[1-4])[\.\)]\s*(.+)$", re.IGNORECASE
)

# "Ans: b", "Answer - 2", "Correct Option: C"
STANDARD_ANSWER_PATTERN = re.compile(
    r"(?:Ans|Answer|Correct\s+Option)\s*[:\-]\s*([a-d]|[1-4])\b", re.IGNORECASE
)

# "Q1: What is hazard?", "q12. What is hazard?", "7: What is hazard?"
ROMAN_QUESTION_PATTERN = re.compile(r"^\s*Q?(\d+)[:\.]\s*(.*)$", re.IGNORECASE)

# "I. Peril", "IV) None"
ROMAN_OPTION_PATTERN = re.compile(r"^\s*([IVX]+)[\.\)]\s*(.+)$")

# "Ans: II", "Answer - b"
ROMAN_ANSWER_PATTERN = re.compile(
    r"(?:Ans|Answer)\s*[:\-]\s*([IVX]+|[a-d])\b", re.IGNORECASE
)

# A line holding nothing but an integer
BARE_INTEGER_PATTERN = re.compile(r"^\s*(\d+)\s*$")

# Leading numeric ID token left in block question text
LEADING_ID_PATTERN = re.compile(r"^\d+[\.\)]?\s+")

# Lines never appended to question text (running headers, watermarks)
IGNORE_PATTERNS = [
    re.compile(r"^\s*(Page|Chapter|Section)\b", re.IGNORECASE),
    re.compile(r"^\s*ambitiousbaba", re.IGNORECASE),
    re.compile(r"^\s*(Page\s*)?\d+\s*(/|of)\s*\d+\s*$", re.IGNORECASE),
    re.compile(r"^https?://[^\s]+$"),
]

ROMAN_NUMERALS = {"I": 0, "II": 1, "III": 2, "IV": 3}

# Source filenames laid out in block format
DEFAULT_BLOCK_MARKERS = ("Life-Question",)


# ─── Answer Resolution ────────────────────────────────────────────────────────


def letter_or_digit_index(token: str) -> int:
    """a->0..d->3, 1->0..4->3; -1 for anything else."""
    token = token.strip().lower()
    if len(token) == 1 and "a" <= token <= "d":
        return ord(token) - ord("a")
    if len(token) == 1 and "1" <= token <= "4":
        return int(token) - 1
    return -1


def roman_or_letter_index(token: str) -> int:
    """I->0..IV->3, a->0..d->3; -1 for anything else."""
    upper = token.strip().upper()
    if upper in ROMAN_NUMERALS:
        return ROMAN_NUMERALS[upper]
    if len(upper) == 1 and "A" <= upper <= "D":
        return ord(upper) - ord("A")
    return -1


# ─── Grammar Definitions ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Grammar:
    """A question-start / option / answer matcher triple."""
    name: GrammarName
    question: re.Pattern
    option: Optional[re.Pattern] = None
    answer: Optional[re.Pattern] = None
    numeric_options: bool = False

    def match_question(self, line: str) -> Optional[str]:
        """Return the question text on a question-start line, or None."""
        m = self.question.match(line)
        if not m:
            return None
        if self.name == GrammarName.BLOCK:
            return ""
        return m.group(2).strip()

    def match_option(self, line: str) -> Optional[tuple[str, str]]:
        """Return (label, text) for an option line, or None."""
        if self.option is None:
            return None
        m = self.option.match(line)
        if not m:
            return None
        return m.group(1), m.group(2).strip()

    def match_answer(self, line: str) -> Optional[int]:
        """Return the zero-based answer index for an answer line, or None."""
        if self.answer is None:
            return None
        m = self.answer.search(line)
        if not m:
            return None
        if self.name == GrammarName.ROMAN:
            return roman_or_letter_index(m.group(1))
        return letter_or_digit_index(m.group(1))


STANDARD = Grammar(
    name=GrammarName.STANDARD,
    question=STANDARD_QUESTION_PATTERN,
    option=STANDARD_OPTION_PATTERN,
    answer=STANDARD_ANSWER_PATTERN,
    numeric_options=True,
)

ROMAN = Grammar(
    name=GrammarName.ROMAN,
    question=ROMAN_QUESTION_PATTERN,
    option=ROMAN_OPTION_PATTERN,
    answer=ROMAN_ANSWER_PATTERN,
)

# Options and answer are resolved structurally by the assembler
BLOCK = Grammar(
    name=GrammarName.BLOCK,
    question=BARE_INTEGER_PATTERN,
)


def grammars_for(
    source_name: str,
    block_markers: tuple[str, ...] = DEFAULT_BLOCK_MARKERS,
) -> tuple[Grammar, ...]:
    """Grammar bank for a source, in lock-in trial order."""
    if any(marker in source_name for marker in block_markers):
        return (STANDARD, ROMAN, BLOCK)
    return (STANDARD, ROMAN)


# ─── Line Segmenter ──────────────────────────────────────────────────────────


def segment_lines(text: str) -> list[str]:
    """Split text into trimmed, non-empty lines."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def is_noise(line: str) -> bool:
    return any(p.match(line) for p in IGNORE_PATTERNS)


def bare_integer(line: str) -> Optional[int]:
    m = BARE_INTEGER_PATTERN.match(line)
    return int(m.group(1)) if m else None


def strip_leading_id(text: str) -> str:
    return LEADING_ID_PATTERN.sub("", text, count=1).strip()
