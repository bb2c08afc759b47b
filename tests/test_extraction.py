"""
Test Suite for Question Extraction
==================================
Unit tests for grammars, the record assembler, the tabular mapper,
validation and bank indexing.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from exambank.bank import index_questions, verify_bank
from exambank.grammars import (
    BLOCK,
    ROMAN,
    STANDARD,
    STANDARD_ANSWER_PATTERN,
    STANDARD_OPTION_PATTERN,
    STANDARD_QUESTION_PATTERN,
    grammars_for,
    letter_or_digit_index,
    roman_or_letter_index,
    segment_lines,
    strip_leading_id,
)
from exambank.models import (
    BankQuestion,
    CandidateQuestion,
    GrammarName,
    Rejection,
    RejectionReason,
    TabularRow,
    normalize_question,
)
from exambank.state_machine import (
    AssemblyContext,
    NoOpenQuestion,
    OpenQuestion,
    RecordAssembler,
    step,
)
from exambank.tabular import map_row, resolve_answer
from exambank.validator import DeduplicationIndex, ValidationEngine


STANDARD_TEXT = "1. What is risk?\na) Peril\nb) Hazard\nc) Loss\nd) None\nAns: b"

ROMAN_TEXT = (
    "Q2: What is a hazard in insurance?\n"
    "I. A cause of loss\n"
    "II. A condition increasing loss\n"
    "III. A premium\n"
    "IV. A policy\n"
    "Answer: II"
)


def _candidate(
    question: str = "What is insurance risk?",
    options: list[str] | None = None,
    correct_index: int = 1,
    explanation: str = "Source: exam.pdf",
    source: str = "exam.pdf",
    **kwargs,
) -> CandidateQuestion:
    return CandidateQuestion(
        question=question,
        options=options if options is not None else ["A", "B", "C", "D"],
        correct_index=correct_index,
        explanation=explanation,
        source=source,
        **kwargs,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# MODEL TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestModels:
    """Test candidate, bank and tabular row models."""

    def test_normalized_key(self):
        assert normalize_question("What is  RISK?") == "whatisrisk"
        assert _candidate(question="What's a peril?").normalized_key == "whatsaperil"

    def test_bank_question_serializes_by_alias(self):
        q = BankQuestion(
            id=1,
            question="What is risk?",
            options=["Peril", "Hazard", "Loss", "None"],
            correct_index=1,
            explanation="Correct Answer: B.",
        )
        data = q.to_json_dict()
        assert list(data) == [
            "id", "question", "options", "correctIndex",
            "explanation", "previous", "next",
        ]
        assert data["correctIndex"] == 1
        assert data["previous"] is None

    def test_bank_question_requires_four_options(self):
        with pytest.raises(ValidationError):
            BankQuestion(
                id=1,
                question="What is risk?",
                options=["Peril", "Hazard", "Loss"],
                correct_index=0,
            )

    def test_bank_question_is_frozen(self):
        q = BankQuestion(
            id=1, question="Q", options=["a", "b", "c", "d"], correct_index=0
        )
        with pytest.raises(ValidationError):
            q.id = 2

    def test_tabular_row_normalizes_headers(self):
        row = TabularRow.from_mapping({
            "  Question   Body ": "What is risk?",
            "ALTERNATIVE 1": "A",
            "Alternative 2": 2,
            "alternative 3": 3.0,
            "Alternative 4 ": "D",
            "Correct Alternative": "  ",
        })
        assert row.question_body == "What is risk?"
        assert row.alternatives == ["A", "2", "3", "D"]
        assert row.correct_alternative is None
        assert row.missing_fields == ["correct alternative"]


# ═══════════════════════════════════════════════════════════════════════════════
# GRAMMAR TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestGrammars:
    """Test line patterns and answer resolution."""

    def test_segment_lines(self):
        assert segment_lines("  a \n\n\t\nb\r\n c ") == ["a", "b", "c"]

    def test_standard_patterns(self):
        assert STANDARD_QUESTION_PATTERN.match("1. What is risk?")
        assert STANDARD_QUESTION_PATTERN.match("12) What is risk?")
        assert not STANDARD_QUESTION_PATTERN.match("Q1: What is risk?")

        assert STANDARD_OPTION_PATTERN.match("a) Peril")
        assert STANDARD_OPTION_PATTERN.match("D. None")
        assert STANDARD_OPTION_PATTERN.match("3) Loss")
        assert not STANDARD_OPTION_PATTERN.match("e) Other")

        assert STANDARD_ANSWER_PATTERN.search("Ans: b")
        assert STANDARD_ANSWER_PATTERN.search("Correct Option - 3")
        assert STANDARD_ANSWER_PATTERN.search("answer:C")

    def test_answer_indexes(self):
        assert STANDARD.match_answer("Ans: b") == 1
        assert STANDARD.match_answer("Answer - 4") == 3
        assert STANDARD.match_answer("Correct Option: A") == 0
        assert ROMAN.match_answer("Ans: III") == 2
        assert ROMAN.match_answer("Answer: d") == 3
        assert STANDARD.match_answer("The answer follows") is None

    def test_index_helpers(self):
        assert letter_or_digit_index("c") == 2
        assert letter_or_digit_index("1") == 0
        assert letter_or_digit_index("5") == -1
        assert roman_or_letter_index("iv") == 3
        assert roman_or_letter_index("V") == -1

    def test_question_text_extraction(self):
        assert STANDARD.match_question("7) What is IRDA?") == "What is IRDA?"
        assert ROMAN.match_question("Q7: What is IRDA?") == "What is IRDA?"
        assert BLOCK.match_question("12") == ""
        assert BLOCK.match_question("12 What") is None

    def test_block_grammar_only_for_marked_sources(self):
        assert BLOCK in grammars_for("Life-Question Bank_28032023.pdf")
        assert BLOCK not in grammars_for("IRDA_EXAM_01.docx")
        assert BLOCK in grammars_for("custom.pdf", block_markers=("custom",))

    def test_strip_leading_id(self):
        assert strip_leading_id("12 What is IRDA?") == "What is IRDA?"
        assert strip_leading_id("12. What is IRDA?") == "What is IRDA?"
        assert strip_leading_id("What is IRDA?") == "What is IRDA?"


# ═══════════════════════════════════════════════════════════════════════════════
# RECORD ASSEMBLER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestRecordAssembler:
    """Test the per-document state machine."""

    def _assemble(self, text: str, source: str = "exam.pdf"):
        return RecordAssembler().assemble(segment_lines(text), source)

    def test_standard_question(self):
        result = self._assemble(STANDARD_TEXT)

        assert len(result.candidates) == 1
        q = result.candidates[0]
        assert q.question == "What is risk?"
        assert q.options == ["Peril", "Hazard", "Loss", "None"]
        assert q.correct_index == 1
        assert q.grammar == GrammarName.STANDARD
        assert q.explanation == "Source: exam.pdf"
        assert q.answer_inferred is False

    def test_roman_question(self):
        result = self._assemble(ROMAN_TEXT)

        assert len(result.candidates) == 1
        q = result.candidates[0]
        assert q.question == "What is a hazard in insurance?"
        assert len(q.options) == 4
        assert q.correct_index == 1
        assert q.grammar == GrammarName.ROMAN

    def test_grammar_lock_in_across_formats(self):
        result = self._assemble(STANDARD_TEXT + "\n" + ROMAN_TEXT)

        assert len(result.candidates) == 2
        first, second = result.candidates
        assert first.options == ["Peril", "Hazard", "Loss", "None"]
        assert first.grammar == GrammarName.STANDARD
        assert second.options == [
            "A cause of loss",
            "A condition increasing loss",
            "A premium",
            "A policy",
        ]
        assert second.grammar == GrammarName.ROMAN

    def test_roman_options_ignored_inside_standard_question(self):
        text = "1. What is risk?\nI. Not an option here\na) Peril\nb) Hazard"
        result = self._assemble(text)

        q = result.candidates[0]
        assert q.options == ["Peril", "Hazard"]
        assert q.question == "What is risk? I. Not an option here"

    def test_digit_options_and_next_question(self):
        text = (
            "1. What is a premium?\n"
            "1) Price of cover\n2) A claim\n3) A loss\n4) A policy\n"
            "Ans: 1\n"
            "2. What is a claim?\n"
            "a) Request\nb) Premium\nc) Loss\nd) Cover\n"
            "Answer: a"
        )
        result = self._assemble(text)

        assert len(result.candidates) == 2
        assert result.candidates[0].options == [
            "Price of cover", "A claim", "A loss", "A policy",
        ]
        assert result.candidates[0].correct_index == 0
        assert result.candidates[1].question == "What is a claim?"
        assert result.candidates[1].correct_index == 0

    def test_answer_line_ends_digit_options(self):
        text = (
            "3. Which of these is a pure risk?\n"
            "1) Fire\n2) Gambling\n3) Lottery\n"
            "Ans: 1\n"
            "4. Which body regulates insurers?\n"
            "a) IRDAI\nb) SEBI\nc) RBI\nd) NABARD\n"
            "Ans: a"
        )
        result = self._assemble(text)

        assert [c.question for c in result.candidates] == [
            "Which of these is a pure risk?",
            "Which body regulates insurers?",
        ]
        assert result.candidates[0].options == ["Fire", "Gambling", "Lottery"]
        assert result.candidates[1].options == ["IRDAI", "SEBI", "RBI", "NABARD"]
        assert result.candidates[1].correct_index == 0

    def test_out_of_sequence_number_starts_new_question(self):
        text = "1. First question here?\n2. Second question here?\na) x\nb) y"
        result = self._assemble(text)

        # First question never got options
        assert len(result.candidates) == 1
        assert result.candidates[0].question == "Second question here?"

    def test_multiline_question_text(self):
        text = (
            "3. Which of the following\n"
            "is a pure risk?\n"
            "a) Fire\nb) Gambling\nc) Stocks\nd) Lottery\nAns: a"
        )
        q = self._assemble(text).candidates[0]
        assert q.question == "Which of the following is a pure risk?"

    def test_stray_lines_after_options_dropped(self):
        text = STANDARD_TEXT + "\nsome trailing footer text"
        q = self._assemble(text).candidates[0]
        assert q.question == "What is risk?"
        assert q.options == ["Peril", "Hazard", "Loss", "None"]

    def test_noise_lines_not_appended(self):
        text = (
            "1. What is risk?\nPage 4 of 20\nChapter 2\n"
            "a) Peril\nb) Hazard\nc) Loss\nd) None"
        )
        q = self._assemble(text).candidates[0]
        assert q.question == "What is risk?"

    def test_preamble_ignored(self):
        text = "Insurance Mock Test\nAll questions carry marks\n" + STANDARD_TEXT
        result = self._assemble(text)
        assert len(result.candidates) == 1
        assert result.candidates[0].question == "What is risk?"

    def test_missing_answer_defaults_to_first_option(self):
        text = "1. What is risk?\na) Peril\nb) Hazard\nc) Loss\nd) None"
        q = self._assemble(text).candidates[0]
        assert q.correct_index == 0
        assert q.answer_inferred is True

    def test_single_option_question_discarded(self):
        text = "1. What is risk?\na) Peril\n" + "2. What is loss?\na) x\nb) y"
        result = self._assemble(text)
        assert [c.question for c in result.candidates] == ["What is loss?"]
        assert len(result.rejections) == 1
        assert result.rejections[0].reason == RejectionReason.WRONG_OPTION_COUNT
        assert result.rejections[0].question == "What is risk?"

    def test_three_options_still_assembled(self):
        text = "1. What is risk?\na) Peril\nb) Hazard\nc) Loss\nAns: c"
        result = self._assemble(text)
        assert len(result.candidates[0].options) == 3

    def test_block_question(self):
        lines = ["12", "What is IRDA?", "Regulator", "Insurer", "Broker", "Agent", "1"]
        result = RecordAssembler().assemble(lines, "Life-Question Bank.pdf")

        assert len(result.candidates) == 1
        q = result.candidates[0]
        assert q.question == "What is IRDA?"
        assert q.options == ["Regulator", "Insurer", "Broker", "Agent"]
        assert q.correct_index == 0
        assert q.grammar == GrammarName.BLOCK

    def test_block_multiline_question_with_id(self):
        lines = [
            "7", "7 Which body", "regulates insurance?",
            "IRDAI", "SEBI", "RBI", "NABARD", "1",
            "8", "Who pays the premium?",
            "Insured", "Insurer", "Agent", "Surveyor", "1",
        ]
        result = RecordAssembler().assemble(lines, "Life-Question Bank.pdf")

        assert [c.question for c in result.candidates] == [
            "Which body regulates insurance?",
            "Who pays the premium?",
        ]

    def test_block_answer_digit_maps_directly(self):
        lines = ["3", "Pick the third option", "w", "x", "y", "z", "3"]
        q = RecordAssembler().assemble(lines, "Life-Question.txt").candidates[0]
        assert q.correct_index == 2

    def test_interrupted_block_rejected(self):
        lines = [
            "12", "What is IRDA?", "Regulator",
            "13", "What is LIC?", "Insurer", "Regulator", "Broker", "Agent", "2",
        ]
        result = RecordAssembler().assemble(lines, "Life-Question Bank.pdf")

        assert len(result.candidates) == 1
        assert result.candidates[0].question == "What is LIC?"
        assert len(result.rejections) == 1
        assert result.rejections[0].reason == RejectionReason.INCOMPLETE_BLOCK

    def test_block_disabled_without_marker(self):
        lines = ["12", "What is IRDA?", "Regulator", "Insurer", "Broker", "Agent", "1"]
        result = RecordAssembler().assemble(lines, "mock_01.pdf")
        assert result.candidates == []

    def test_step_is_pure(self):
        ctx = AssemblyContext(source="exam.pdf", grammars=(STANDARD, ROMAN))
        state, emitted = step(NoOpenQuestion(), "1. What is risk?", ctx)
        assert isinstance(state, OpenQuestion)
        assert emitted == []

        after, _ = step(state, "a) Peril", ctx)
        assert after.candidate.options == ["Peril"]
        assert state.candidate.options == []

    def test_idle_ignores_unmatched_lines(self):
        ctx = AssemblyContext(source="exam.pdf", grammars=(STANDARD, ROMAN))
        state, emitted = step(NoOpenQuestion(), "a) Peril", ctx)
        assert isinstance(state, NoOpenQuestion)
        assert emitted == []


# ═══════════════════════════════════════════════════════════════════════════════
# TABULAR MAPPER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestTabularMapper:
    """Test spreadsheet row mapping."""

    ROW = {
        "question body": "X?",
        "alternative 1": "A",
        "alternative 2": "B",
        "alternative 3": "C",
        "alternative 4": "D",
        "correct alternative": "3",
    }

    def test_scenario_row(self):
        q = map_row(self.ROW, "bank.xlsx")
        assert isinstance(q, CandidateQuestion)
        assert q.correct_index == 2
        assert q.options == ["A", "B", "C", "D"]
        assert q.grammar == GrammarName.TABULAR
        assert q.source == "bank.xlsx"

    def test_answer_resolution_order(self):
        assert resolve_answer("Option 1") == 0
        assert resolve_answer("Alternative 4") == 3
        assert resolve_answer("b") == 1
        assert resolve_answer(" D ") == 3
        assert resolve_answer("I") == 0
        assert resolve_answer("III") == 2
        assert resolve_answer("IV") == 3
        assert resolve_answer("II") == 1
        assert resolve_answer("32") == 1
        assert resolve_answer("none") == -1
        assert resolve_answer("5") == -1

    def test_numeric_cell_answer(self):
        row = dict(self.ROW, **{"correct alternative": 2.0})
        assert map_row(row, "bank.xlsx").correct_index == 1

    def test_missing_field_skipped(self):
        row = dict(self.ROW)
        del row["alternative 4"]
        result = map_row(row, "bank.xlsx", row_number=7)

        assert isinstance(result, Rejection)
        assert result.reason == RejectionReason.MISSING_FIELDS
        assert "alternative 4" in result.detail
        assert "row 7" in result.detail

    def test_unresolved_answer_skipped(self):
        row = dict(self.ROW, **{"correct alternative": "E"})
        result = map_row(row, "bank.xlsx")
        assert isinstance(result, Rejection)
        assert result.reason == RejectionReason.UNRESOLVED_ANSWER

    def test_category_explanation(self):
        row = dict(
            self.ROW,
            **{
                "Syllabus Category Name": "Life Insurance",
                "Additional Information": "See chapter 3",
            },
        )
        q = map_row(row, "bank.xlsx")
        assert q.explanation == (
            "<strong>Category:</strong> Life Insurance<br><br>See chapter 3"
        )

    def test_no_category_keeps_information(self):
        row = dict(self.ROW, **{"additional information": "See chapter 3"})
        assert map_row(row, "bank.xlsx").explanation == "See chapter 3"


# ═══════════════════════════════════════════════════════════════════════════════
# VALIDATION ENGINE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestValidationEngine:
    """Test validation and deduplication."""

    def test_empty_candidates(self):
        accepted, index, report = ValidationEngine().validate([])
        assert accepted == []
        assert len(index) == 0
        assert report.acceptance_rate == 0.0

    def test_accepts_valid_candidate(self):
        accepted, index, report = ValidationEngine().validate([_candidate()])
        assert len(accepted) == 1
        assert "whatisinsurancerisk" in index
        assert report.accepted == 1
        assert report.acceptance_rate == 100.0

    def test_rejects_short_question(self):
        _, _, report = ValidationEngine().validate([_candidate(question="Risk?")])
        assert report.rejections[0].reason == RejectionReason.TOO_SHORT

    def test_rejects_three_options(self):
        accepted, _, report = ValidationEngine().validate(
            [_candidate(options=["A", "B", "C"], correct_index=0)]
        )
        assert accepted == []
        assert report.rejections[0].reason == RejectionReason.WRONG_OPTION_COUNT

    def test_rejects_five_options(self):
        _, _, report = ValidationEngine().validate(
            [_candidate(options=["A", "B", "C", "D", "E"])]
        )
        assert report.rejections[0].reason == RejectionReason.WRONG_OPTION_COUNT

    def test_rejects_out_of_range_answer(self):
        _, _, report = ValidationEngine().validate([_candidate(correct_index=4)])
        assert report.rejections[0].reason == RejectionReason.INVALID_ANSWER

    def test_rejects_normalized_duplicates(self):
        candidates = [
            _candidate(question="What is risk in insurance?"),
            _candidate(question="what is RISK in insurance", options=["1", "2", "3", "4"]),
        ]
        accepted, _, report = ValidationEngine().validate(candidates)

        assert len(accepted) == 1
        assert report.rejection_breakdown == {"duplicate": 1}

    def test_index_threads_between_calls(self):
        engine = ValidationEngine()
        _, index, _ = engine.validate([_candidate()])
        accepted, index, report = engine.validate([_candidate()], index)

        assert accepted == []
        assert report.rejections[0].reason == RejectionReason.DUPLICATE
        assert len(index) == 1

    def test_index_is_immutable(self):
        empty = DeduplicationIndex()
        grown = empty.add("whatisrisk")
        assert "whatisrisk" in grown
        assert "whatisrisk" not in empty

    def test_default_explanation_rewritten(self):
        accepted, _, _ = ValidationEngine().validate([_candidate(correct_index=1)])
        assert accepted[0].explanation == "Correct Answer: B. Source: exam.pdf"

    def test_empty_explanation_rewritten(self):
        accepted, _, _ = ValidationEngine().validate(
            [_candidate(correct_index=3, explanation="")]
        )
        assert accepted[0].explanation == "Correct Answer: D."

    def test_rich_explanation_kept(self):
        text = "<strong>Category:</strong> Life<br><br>"
        accepted, _, _ = ValidationEngine().validate([_candidate(explanation=text)])
        assert accepted[0].explanation == text

    def test_inferred_answers_counted(self):
        accepted, _, report = ValidationEngine().validate(
            [_candidate(correct_index=0, answer_inferred=True)]
        )
        assert len(accepted) == 1
        assert report.inferred_answers == 1

    def test_inferred_answers_rejected_when_strict(self):
        engine = ValidationEngine(reject_inferred_answers=True)
        accepted, _, report = engine.validate(
            [_candidate(correct_index=0, answer_inferred=True)]
        )
        assert accepted == []
        assert report.rejections[0].reason == RejectionReason.INFERRED_ANSWER

    def test_candidates_not_mutated(self):
        candidate = _candidate()
        ValidationEngine().validate([candidate])
        assert candidate.explanation == "Source: exam.pdf"


# ═══════════════════════════════════════════════════════════════════════════════
# INDEXER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestIndexer:
    """Test id assignment and linkage."""

    def test_linkage(self):
        accepted = [_candidate(question=f"Question number {i}?") for i in range(3)]
        questions = index_questions(accepted)

        assert [q.id for q in questions] == [1, 2, 3]
        assert [q.previous for q in questions] == [None, 1, 2]
        assert [q.next for q in questions] == [2, 3, None]

    def test_single_record(self):
        questions = index_questions([_candidate()])
        assert questions[0].previous is None
        assert questions[0].next is None

    def test_verify_sound_bank(self):
        accepted = [_candidate(question=f"Question number {i}?") for i in range(3)]
        records = [q.to_json_dict() for q in index_questions(accepted)]
        assert verify_bank(records) == []

    def test_verify_detects_problems(self):
        accepted = [_candidate(question=f"Question number {i}?") for i in range(3)]
        records = [q.to_json_dict() for q in index_questions(accepted)]
        records[1]["next"] = None
        records[2]["question"] = "question NUMBER 0"
        records[0]["options"] = ["only", "three", "options"]

        problems = verify_bank(records)

        assert any(p.startswith("record 1: ") and "schema" in p for p in problems)
        assert any("record 2: next is None" in p for p in problems)
        assert not any("duplicate" in p for p in problems)

    def test_verify_detects_duplicates_and_ids(self):
        records = [q.to_json_dict() for q in index_questions([
            _candidate(question="Question number one?"),
            _candidate(question="Question number two?"),
        ])]
        records[1]["question"] = "question number ONE"
        records[0]["id"] = 5

        problems = verify_bank(records)

        assert "record 1: id is 5" in problems
        assert "record 2: duplicate of record 1" in problems

    def test_verify_rejects_non_array(self):
        assert verify_bank({"id": 1}) == ["bank is not a JSON array"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
