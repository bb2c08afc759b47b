"""
Indexer & Bank Writer
=====================
Assigns final identity to accepted records and persists the question bank
read by the quiz viewer.

Output format: a JSON array of
    {id, question, options[4], correctIndex, explanation, previous, next}
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from .models import BankQuestion, CandidateQuestion, normalize_question

logger = logging.getLogger(__name__)


def index_questions(accepted: list[CandidateQuestion]) -> list[BankQuestion]:
    """Number records 1..N in acceptance order and link neighbours."""
    total = len(accepted)
    return [
        BankQuestion(
            id=position,
            question=candidate.question,
            options=list(candidate.options),
            correct_index=candidate.correct_index,
            explanation=candidate.explanation,
            previous=position - 1 if position > 1 else None,
            next=position + 1 if position < total else None,
        )
        for position, candidate in enumerate(accepted, start=1)
    ]


def render_bank(questions: list[BankQuestion]) -> str:
    data = [q.to_json_dict() for q in questions]
    return json.dumps(data, indent=4, ensure_ascii=False) + "\n"


def write_bank(questions: list[BankQuestion], path: Union[str, Path]) -> Path:
    """
    Write the bank in one pass to a temporary sibling, then rename it over
    the target so readers only ever see a complete file.

    Raises:
        OSError: If the output location is not writable.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = render_bank(questions)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.info(f"Saved {len(questions)} questions to {path}")
    return path


def load_bank(path: Union[str, Path]) -> list[dict]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def verify_bank(records: list[dict]) -> list[str]:
    """
    Check a persisted bank against its invariants.

    Returns:
        Human-readable problems; empty when the bank is sound.
    """
    problems: list[str] = []
    if not isinstance(records, list):
        return ["bank is not a JSON array"]

    seen_keys: dict[str, int] = {}
    total = len(records)

    for position, record in enumerate(records, start=1):
        try:
            q = BankQuestion.model_validate(record)
        except ValidationError as e:
            problems.append(f"record {position}: {e.error_count()} schema errors")
            continue

        if q.id != position:
            problems.append(f"record {position}: id is {q.id}")

        expected_prev = position - 1 if position > 1 else None
        expected_next = position + 1 if position < total else None
        if q.previous != expected_prev:
            problems.append(
                f"record {position}: previous is {q.previous}, "
                f"expected {expected_prev}"
            )
        if q.next != expected_next:
            problems.append(
                f"record {position}: next is {q.next}, expected {expected_next}"
            )

        key = normalize_question(q.question)
        if key in seen_keys:
            problems.append(
                f"record {position}: duplicate of record {seen_keys[key]}"
            )
        else:
            seen_keys[key] = position

    return problems
