"""
Record Assembler
================
Deterministic state machine that turns segmented lines of one document
into candidate question records.

States:
    NoOpenQuestion  -> waiting for a question-start line in any grammar
    OpenQuestion    -> a question is open and locked to one grammar

Transitions are pure: step() takes a state and a line and returns the
next state plus whatever records were closed on the way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Optional, Union

from .grammars import (
    DEFAULT_BLOCK_MARKERS,
    Grammar,
    bare_integer,
    grammars_for,
    is_noise,
    strip_leading_id,
)
from .models import (
    CandidateQuestion,
    GrammarName,
    Rejection,
    RejectionReason,
)

logger = logging.getLogger(__name__)

# A block answer digit only closes a block once this many lines are buffered
BLOCK_MIN_BUFFER = 5
BLOCK_OPTION_COUNT = 4

Emission = Union[CandidateQuestion, Rejection]


# ─── States ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class NoOpenQuestion:
    """Idle: nothing is being assembled."""


@dataclass(frozen=True)
class OpenQuestion:
    """A question locked to `grammar`, accumulating fields."""
    grammar: Grammar
    candidate: CandidateQuestion
    option_labels: tuple[str, ...] = ()
    buffer: tuple[str, ...] = ()
    answered: bool = False


AssemblerState = Union[NoOpenQuestion, OpenQuestion]


@dataclass(frozen=True)
class AssemblyContext:
    """Per-document parameters of the state machine."""
    source: str
    grammars: tuple[Grammar, ...]
    min_options: int = 2


# ─── Transitions ──────────────────────────────────────────────────────────────


def step(
    state: AssemblerState, line: str, ctx: AssemblyContext
) -> tuple[AssemblerState, list[Emission]]:
    """Consume one line."""
    if isinstance(state, OpenQuestion):
        if state.grammar.name == GrammarName.BLOCK:
            return _step_block(state, line, ctx)
        return _step_open(state, line, ctx)

    opened = _try_open(line, ctx)
    if opened is None:
        return state, []
    return opened, []


def finish(state: AssemblerState, ctx: AssemblyContext) -> list[Emission]:
    """Close whatever is open at end of input."""
    if isinstance(state, OpenQuestion):
        return _close(state, ctx)
    return []


def _try_open(
    line: str,
    ctx: AssemblyContext,
    grammars: Optional[tuple[Grammar, ...]] = None,
) -> Optional[OpenQuestion]:
    """Lock onto the first grammar whose question-start matches."""
    for grammar in grammars or ctx.grammars:
        text = grammar.match_question(line)
        if text is None:
            continue
        logger.debug(f"[{ctx.source}] {grammar.name.value} question: {line[:60]}")
        return OpenQuestion(
            grammar=grammar,
            candidate=CandidateQuestion(
                question=text,
                explanation=f"Source: {ctx.source}",
                source=ctx.source,
                grammar=grammar.name,
            ),
        )
    return None


def _accepts_option(state: OpenQuestion, label: str) -> bool:
    """
    Digit labels compete with numbered question starts: "2. ..." is only
    an option when every earlier option was digit-labelled, it is the
    next number in sequence and no answer line has been seen yet.
    """
    labels = state.option_labels
    if label.isdigit():
        if not state.grammar.numeric_options or state.answered:
            return False
        return (
            all(lbl.isdigit() for lbl in labels)
            and int(label) == len(labels) + 1
        )
    return not any(lbl.isdigit() for lbl in labels)


def _step_open(
    state: OpenQuestion, line: str, ctx: AssemblyContext
) -> tuple[AssemblerState, list[Emission]]:
    grammar = state.grammar
    candidate = state.candidate

    option = grammar.match_option(line)
    if option is not None and _accepts_option(state, option[0]):
        label, text = option
        return replace(
            state,
            candidate=candidate.model_copy(
                update={"options": [*candidate.options, text]}
            ),
            option_labels=state.option_labels + (label,),
        ), []

    answer = grammar.match_answer(line)
    if answer is not None:
        if answer < 0:
            logger.debug(f"[{ctx.source}] Unusable answer key: {line}")
            return state, []
        return replace(
            state,
            candidate=candidate.model_copy(update={"correct_index": answer}),
            answered=True,
        ), []

    opened = _try_open(line, ctx)
    if opened is not None:
        return opened, _close(state, ctx)

    # Once options begin, stray lines are dropped
    if candidate.options or is_noise(line):
        return state, []

    updated = candidate.model_copy()
    updated.append_text(line)
    return replace(state, candidate=updated), []


def _step_block(
    state: OpenQuestion, line: str, ctx: AssemblyContext
) -> tuple[AssemblerState, list[Emission]]:
    number = bare_integer(line)

    if number is not None:
        if 1 <= number <= BLOCK_OPTION_COUNT and len(state.buffer) >= BLOCK_MIN_BUFFER:
            return NoOpenQuestion(), [_complete_block(state, number)]
        opened = _try_open(line, ctx, grammars=(state.grammar,))
        return opened, _close(state, ctx)

    if is_noise(line):
        return state, []

    return replace(state, buffer=state.buffer + (line,)), []


def _complete_block(state: OpenQuestion, answer_digit: int) -> CandidateQuestion:
    """Last 4 buffered lines are the options, the rest is the question."""
    buffer = list(state.buffer)
    options = []
    for _ in range(BLOCK_OPTION_COUNT):
        options.append(buffer.pop())
    options.reverse()

    question = strip_leading_id(" ".join(buffer))
    return state.candidate.model_copy(
        update={
            "question": question,
            "options": options,
            "correct_index": answer_digit - 1,
        }
    )


def _close(state: OpenQuestion, ctx: AssemblyContext) -> list[Emission]:
    """Apply the close-out rule to an open question."""
    candidate = state.candidate

    if state.grammar.name == GrammarName.BLOCK:
        if not state.buffer:
            return []
        logger.debug(
            f"[{ctx.source}] Block interrupted after {len(state.buffer)} lines"
        )
        return [Rejection(
            source=ctx.source,
            reason=RejectionReason.INCOMPLETE_BLOCK,
            detail=f"{len(state.buffer)} buffered lines without an answer digit",
            question=" ".join(state.buffer)[:80],
        )]

    if len(candidate.options) < ctx.min_options:
        logger.info(
            f"[{ctx.source}] Discarding '{candidate.question[:40]}' "
            f"({len(candidate.options)} options)"
        )
        return [Rejection(
            source=ctx.source,
            reason=RejectionReason.WRONG_OPTION_COUNT,
            detail=f"{len(candidate.options)} options found while assembling",
            question=candidate.question[:80],
        )]

    if candidate.correct_index == -1:
        candidate = candidate.model_copy(
            update={"correct_index": 0, "answer_inferred": True}
        )
    return [candidate]


# ─── Assembler ────────────────────────────────────────────────────────────────


@dataclass
class AssemblyResult:
    """Candidates and assembly-time rejections from one document."""
    candidates: list[CandidateQuestion] = field(default_factory=list)
    rejections: list[Rejection] = field(default_factory=list)


class RecordAssembler:
    """
    Runs the state machine over one document at a time.
    Holds configuration only; no parsing state survives a call.
    """

    def __init__(
        self,
        min_options: int = 2,
        block_markers: tuple[str, ...] = DEFAULT_BLOCK_MARKERS,
    ):
        self.min_options = min_options
        self.block_markers = block_markers

    def assemble(self, lines: list[str], source: str) -> AssemblyResult:
        """Assemble candidate records from segmented lines."""
        ctx = AssemblyContext(
            source=source,
            grammars=grammars_for(source, self.block_markers),
            min_options=self.min_options,
        )
        result = AssemblyResult()
        state: AssemblerState = NoOpenQuestion()

        for line in lines:
            state, emitted = step(state, line, ctx)
            self._collect(result, emitted)

        self._collect(result, finish(state, ctx))

        logger.info(
            f"[{source}] Assembled {len(result.candidates)} candidates "
            f"({len(result.rejections)} rejected)"
        )
        return result

    @staticmethod
    def _collect(result: AssemblyResult, emitted: list[Emission]):
        for item in emitted:
            if isinstance(item, Rejection):
                result.rejections.append(item)
            else:
                result.candidates.append(item)
