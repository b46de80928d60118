"""Knowledge catalog loading and indexing."""

from code_linker.index.catalog import load_catalog
from code_linker.index.knowledge_index import KnowledgeIndex

__all__ = ["KnowledgeIndex", "load_catalog"]
