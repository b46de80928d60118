"""Source code feature extraction."""

from code_linker.analysis.analyzer import CodeAnalyzer, detect_language, to_wire_features

__all__ = ["CodeAnalyzer", "detect_language", "to_wire_features"]
