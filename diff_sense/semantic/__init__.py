"""Structural (symbol-level) analysis of changed files."""

from diff_sense.semantic.analyzer import EXTRACTORS, SemanticAnalyzer, run_with_timeout
from diff_sense.semantic.symbols import Member, Symbol, diff_symbols

__all__ = [
    "EXTRACTORS",
    "Member",
    "SemanticAnalyzer",
    "Symbol",
    "diff_symbols",
    "run_with_timeout",
]
