"""Output generation for break schedules (PDF, text reports)."""

from breakhelper.output.debug_generator import DebugGenerator
from breakhelper.output.pdf_generator import PDFGenerator

__all__ = [
    "DebugGenerator",
    "PDFGenerator",
]
