"""Similarity scoring of code features against the knowledge index."""

from code_linker.matching.engine import MatchingEngine
from code_linker.matching.keyword import KeywordMatcher

__all__ = ["KeywordMatcher", "MatchingEngine"]
