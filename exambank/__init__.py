"""
Exam Question Bank Extractor
============================
Batch extraction of multiple-choice questions from heterogeneous exam
documents into a validated, deduplicated question bank.

Architecture:
    - Text Acquirer: Per-format plain text (PDF, DOCX, TXT)
    - Grammar Bank: Competing line grammars (standard, roman, block)
    - Record Assembler: Per-document state machine with grammar lock-in
    - Tabular Mapper: Spreadsheet rows mapped straight to candidates
    - Validation Engine: Structural rules and duplicate detection
    - Bank Writer: Indexed, linked JSON for the quiz viewer

Version: 1.0.0
"""

__version__ = "1.0.0"
