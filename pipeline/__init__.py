from pipeline.duplicates import find_duplicates, resolve_duplicate
from pipeline.ingest import ingest_article
from pipeline.moderation import moderate_article
from pipeline.similarity import title_similarity
from pipeline.state import set_status
from pipeline.suppression import is_suppressed
from pipeline.sweeps import run_sweeps
from pipeline.urls import normalize_url

__all__ = [
    "find_duplicates",
    "resolve_duplicate",
    "ingest_article",
    "moderate_article",
    "title_similarity",
    "set_status",
    "is_suppressed",
    "run_sweeps",
    "normalize_url",
]
