"""
Mnemo transcript analysis: names, summaries and speaker matching.
"""

from mnemo.extraction.types import (
    SUMMARY_ERROR_TEXT,
    Confidence,
    ConversationSummary,
    ExtractedName,
)
from mnemo.extraction.parsing import (
    ExtractionError,
    parse_extracted_names,
    parse_summary,
    strip_code_fences,
)
from mnemo.extraction.service import NameExtractionService

__all__ = [
    "SUMMARY_ERROR_TEXT",
    "Confidence",
    "ConversationSummary",
    "ExtractedName",
    "ExtractionError",
    "parse_extracted_names",
    "parse_summary",
    "strip_code_fences",
    "NameExtractionService",
]
