"""
Post-hoc citation verification of generated answers.
"""

from .citations import (
    NEEDS_SOURCE,
    WARNING_MARKER,
    SentenceCheck,
    VerificationResult,
    extract_parentheticals,
    split_sentences,
    verify_answer,
)

__all__ = [
    "NEEDS_SOURCE",
    "WARNING_MARKER",
    "SentenceCheck",
    "VerificationResult",
    "extract_parentheticals",
    "split_sentences",
    "verify_answer",
]
