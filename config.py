"""topicfeed configuration."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

# --- Paths ---
BASE_DIR = Path(__file__).parent
DATA_DIR = BASE_DIR / "data"
DB_PATH = DATA_DIR / "topicfeed.db"
DATABASE_URL: str = os.getenv("DATABASE_URL", "")

# --- API ---
API_HOST = "127.0.0.1"
API_PORT = 8001

# --- Collectors ---
FEED_REQUEST_TIMEOUT: int = 20
FEED_USER_AGENT: str = os.getenv("FEED_USER_AGENT", "topicfeed/0.1 (+rss ingestion)")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


@dataclass(frozen=True)
class PipelineThresholds:
    """Tunable gate values for ingestion, dedup and queueing.

    Passed explicitly into every pipeline entry point. Bump ``version``
    whenever a value changes so rejection metadata can be traced back to
    the thresholds that produced it.
    """

    version: str = "2025-09.1"

    # Quality gate
    min_word_count: int = 150
    relevance_thresholds: dict[str, int] = field(
        default_factory=lambda: {"hyperlocal": 10, "regional": 20}
    )
    default_relevance_threshold: int = 30
    competing_region_penalty: int = 15

    # Queue populator
    queue_min_quality: int = 50
    queue_min_relevance: int = 5
    auto_promote: bool = True

    # Duplicate detection
    duplicate_similarity_threshold: float = 0.7

    # Worker / sweeps
    max_attempts: int = 3
    stale_processing_minutes: int = 30
    failed_retention_hours: int = 168
    ledger_retention_days: int = 180

    # Generation defaults (overridden by topic defaults)
    default_slidetype: str = "tabloid"
    default_tone: str = "conversational"
    default_writing_style: str = "journalistic"
    default_audience_expertise: str = "intermediate"
    default_ai_provider: str = "openai"

    def relevance_threshold_for(self, source_type: str | None) -> int:
        """Minimum regional relevance for a source type (unknown = national)."""
        if source_type and source_type in self.relevance_thresholds:
            return self.relevance_thresholds[source_type]
        return self.default_relevance_threshold

    @classmethod
    def from_env(cls) -> "PipelineThresholds":
        """Build thresholds from TOPICFEED_* environment overrides."""
        defaults = cls()
        return cls(
            version=os.getenv("TOPICFEED_THRESHOLDS_VERSION", defaults.version),
            min_word_count=_env_int("TOPICFEED_MIN_WORD_COUNT", defaults.min_word_count),
            relevance_thresholds={
                "hyperlocal": _env_int("TOPICFEED_RELEVANCE_HYPERLOCAL", 10),
                "regional": _env_int("TOPICFEED_RELEVANCE_REGIONAL", 20),
            },
            default_relevance_threshold=_env_int(
                "TOPICFEED_RELEVANCE_NATIONAL", defaults.default_relevance_threshold
            ),
            competing_region_penalty=_env_int(
                "TOPICFEED_COMPETING_REGION_PENALTY", defaults.competing_region_penalty
            ),
            queue_min_quality=_env_int("TOPICFEED_QUEUE_MIN_QUALITY", defaults.queue_min_quality),
            queue_min_relevance=_env_int("TOPICFEED_QUEUE_MIN_RELEVANCE", defaults.queue_min_relevance),
            auto_promote=os.getenv("TOPICFEED_AUTO_PROMOTE", "1").lower() not in ("0", "false", "no"),
            duplicate_similarity_threshold=_env_float(
                "TOPICFEED_DUPLICATE_THRESHOLD", defaults.duplicate_similarity_threshold
            ),
            max_attempts=_env_int("TOPICFEED_MAX_ATTEMPTS", defaults.max_attempts),
            stale_processing_minutes=_env_int(
                "TOPICFEED_STALE_PROCESSING_MINUTES", defaults.stale_processing_minutes
            ),
            failed_retention_hours=_env_int(
                "TOPICFEED_FAILED_RETENTION_HOURS", defaults.failed_retention_hours
            ),
            ledger_retention_days=_env_int(
                "TOPICFEED_LEDGER_RETENTION_DAYS", defaults.ledger_retention_days
            ),
        )


THRESHOLDS = PipelineThresholds.from_env()
