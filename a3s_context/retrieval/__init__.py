"""
Hierarchical retrieval.
"""

from .models import MatchedNode, QueryOptions, QueryResult
from .retriever import Retriever, extract_highlights

__all__ = [
    "MatchedNode",
    "QueryOptions",
    "QueryResult",
    "Retriever",
    "extract_highlights",
]
