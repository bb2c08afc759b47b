"""
Question Bank Engine
====================
Main orchestrator: runs every source file in the assets directory through
the extraction pipeline and writes the question bank.

Usage:
    engine = BankEngine(config)
    report = engine.run()

Architecture:
    documents:    TextAcquirer → segment_lines → RecordAssembler ─┐
    spreadsheets: TabularMapper ──────────────────────────────────┤
                  ValidationEngine → index_questions → write_bank ┘
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .bank import index_questions, write_bank
from .grammars import DEFAULT_BLOCK_MARKERS, segment_lines
from .models import (
    CandidateQuestion,
    Rejection,
    RunReport,
    SourceKind,
    SourceReport,
)
from .state_machine import RecordAssembler
from .storage import ASSETS_DIR, OUTPUT_FILE, list_source_files
from .tabular import TabularMapper
from .text_acquirer import TextAcquirer, classify
from .validator import DeduplicationIndex, ValidationEngine

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class PipelineConfig:
    """Configuration for a pipeline run."""

    # Locations
    assets_dir: str = str(ASSETS_DIR)
    output_file: str = str(OUTPUT_FILE)

    # Grammar selection
    block_markers: tuple[str, ...] = DEFAULT_BLOCK_MARKERS

    # Assembly and validation thresholds
    min_assembled_options: int = 2
    required_options: int = 4
    min_question_length: int = 10
    reject_inferred_answers: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


class BankEngine:
    """
    Runs the whole extraction once.

    Files are processed sequentially in filename order, so two runs over
    the same directory write identical banks.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        acquirer: Optional[TextAcquirer] = None,
    ):
        self.config = config or PipelineConfig()
        self.acquirer = acquirer or TextAcquirer()
        self.assembler = RecordAssembler(
            min_options=self.config.min_assembled_options,
            block_markers=self.config.block_markers,
        )
        self.mapper = TabularMapper()
        self.validator = ValidationEngine(
            min_question_length=self.config.min_question_length,
            required_options=self.config.required_options,
            reject_inferred_answers=self.config.reject_inferred_answers,
        )
        self._setup_logging()

    def _setup_logging(self):
        """Configure the package logger from config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        package_logger = logging.getLogger("exambank")
        package_logger.setLevel(log_level)

        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(
                logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
            )
            package_logger.addHandler(console)

        if self.config.log_file:
            log_dir = Path(self.config.log_file).parent
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(
                self.config.log_file, encoding="utf-8"
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(
                logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
            )
            package_logger.addHandler(file_handler)

    def run(
        self,
        progress_callback: Optional[Callable[[str, int, int], None]] = None,
    ) -> RunReport:
        """
        Extract, validate, index and write the question bank.

        Args:
            progress_callback: Callback(filename, done, total) after each file.

        Returns:
            RunReport describing every source and rejection.

        Raises:
            FileNotFoundError: If the assets directory is missing.
            OSError: If the output file cannot be written.
        """
        start_time = time.time()
        files = list_source_files(self.config.assets_dir)
        logger.info(f"Found {len(files)} files in {self.config.assets_dir}")

        report = RunReport()
        candidates: list[CandidateQuestion] = []

        for done, path in enumerate(files, start=1):
            source_report, found, rejected = self.process_file(path)
            report.sources.append(source_report)
            report.rejections.extend(rejected)
            candidates.extend(found)
            if progress_callback:
                progress_callback(path.name, done, len(files))

        # ── Validation & Deduplication ────────────────────────────────
        logger.info(f"Validating {len(candidates)} raw questions...")
        accepted, index, validation = self.validator.validate(
            candidates, DeduplicationIndex()
        )

        # ── Indexing & Output ─────────────────────────────────────────
        questions = index_questions(accepted)
        output = write_bank(questions, self.config.output_file)

        report.validation = validation
        report.total_questions = len(questions)
        report.output_file = str(output)

        elapsed = time.time() - start_time
        logger.info(
            f"Run complete in {elapsed:.2f}s: {len(questions)} unique questions "
            f"({len(index)} keys indexed)"
        )
        return report

    def process_file(
        self, path: Path
    ) -> tuple[SourceReport, list[CandidateQuestion], list[Rejection]]:
        """
        Turn one source file into candidates. Never raises for
        file-level problems; they are recorded on the SourceReport.
        """
        kind = classify(path)
        source_report = SourceReport(filename=path.name, kind=kind)

        if kind == SourceKind.IGNORED:
            logger.debug(f"Ignoring {path.name}")
            return source_report, [], []

        logger.info(f"Processing {path.name}...")

        if kind == SourceKind.TABULAR:
            try:
                found, rejected = self.mapper.map_file(path)
            except Exception as e:
                source_report.error = f"{type(e).__name__}: {e}"
                logger.warning(f"Failed reading {path.name}: {source_report.error}")
                return source_report, [], []
        else:
            text = self.acquirer.acquire(path)
            source_report.error = self.acquirer.last_error
            if not text:
                return source_report, [], []
            result = self.assembler.assemble(segment_lines(text), path.name)
            found, rejected = result.candidates, result.rejections

        source_report.candidates = len(found)
        logger.info(f"  -> Extracted {len(found)} questions from {path.name}")
        return source_report, found, rejected
