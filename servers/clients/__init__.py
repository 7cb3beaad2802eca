"""
External service clients
"""
from .textbook_search import SupabaseAuth, TextbookSearchClient
from .graph_store import KnowledgeGraphStore, path_to_text

__all__ = [
    'SupabaseAuth',
    'TextbookSearchClient',
    'KnowledgeGraphStore',
    'path_to_text'
]
