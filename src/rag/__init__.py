"""
Witness retrieval.

Provides the retrieval components over the author's corpus:
- Hybrid search (vector + lexical) with score fusion and result caching
- Structured-index retrieval through the text fetcher
- Reconciliation of the two paths
"""

from .config import ReconcilerConfig, SearchOptions
from .expansion import QueryExpander
from .fusion import HYBRID_BOOST, fuse_results
from .hybrid import HybridSearchEngine, SearchQuality, analyze_search_quality, make_cache_key
from .reconciler import ReconciledWitnesses, RetrievalMethod, RetrievalReconciler
from .retriever import Provenance, SearchAnalytics, SearchResponse, Witness
from .structured import StructuredIndexRetriever, StructuredResult, WitnessFetchError

__all__ = [
    "HYBRID_BOOST",
    "HybridSearchEngine",
    "QueryExpander",
    "Provenance",
    "ReconciledWitnesses",
    "ReconcilerConfig",
    "RetrievalMethod",
    "RetrievalReconciler",
    "SearchAnalytics",
    "SearchOptions",
    "SearchQuality",
    "SearchResponse",
    "StructuredIndexRetriever",
    "StructuredResult",
    "Witness",
    "WitnessFetchError",
    "analyze_search_quality",
    "fuse_results",
    "make_cache_key",
]
