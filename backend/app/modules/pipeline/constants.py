"""
Pipeline Constants
Centralized enums and constants for the scheduled signal pipeline.
"""
from datetime import timedelta
from enum import Enum


class JobStatus(str, Enum):
    """
    Status of a pipeline job.

    Flow: IDLE → SCRAPING → PROCESSING → VECTORIZING → GENERATING → SENDING → COMPLETED
                                       ↘ COMPLETED (nothing fresh to vectorize)
          any non-terminal → FAILED (retries exhausted)
    """
    IDLE = "idle"                  # Created at the daily trigger hour, scrape not launched yet
    SCRAPING = "scraping"          # Apify run launched, polling for completion
    PROCESSING = "processing"      # Ingesting dataset items into posts
    VECTORIZING = "vectorizing"    # Embedding fresh posts into the vector index
    GENERATING = "generating"      # One (industry, signal) pair per step
    SENDING = "sending"            # Delivering messages to subscribers page by page
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def terminal(cls) -> tuple:
        return (cls.COMPLETED.value, cls.FAILED.value)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.terminal()

    @classmethod
    def is_batch_draining(cls, status: str) -> bool:
        """Stages that work through current_batch_offset/total_items in several steps."""
        return status in (
            cls.PROCESSING.value,
            cls.VECTORIZING.value,
            cls.GENERATING.value,
            cls.SENDING.value,
        )


class StageName(str, Enum):
    """Stage endpoints, addressed as /pipeline/stages/<value>."""
    SCRAPE_LAUNCH = "scrape-launch"
    SCRAPE_POLL = "scrape-poll"
    PROCESS_POSTS = "process-posts"
    VECTORIZE = "vectorize"
    GENERATE = "generate"
    SEND = "send"


STAGE_FOR_STATUS = {
    JobStatus.IDLE.value: StageName.SCRAPE_LAUNCH,
    JobStatus.SCRAPING.value: StageName.SCRAPE_POLL,
    JobStatus.PROCESSING.value: StageName.PROCESS_POSTS,
    JobStatus.VECTORIZING.value: StageName.VECTORIZE,
    JobStatus.GENERATING.value: StageName.GENERATE,
    JobStatus.SENDING.value: StageName.SEND,
}


class ApifyRunStatus(str, Enum):
    """Apify actor run statuses."""
    READY = "READY"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    ABORTING = "ABORTING"
    ABORTED = "ABORTED"
    TIMING_OUT = "TIMING-OUT"
    TIMED_OUT = "TIMED-OUT"

    @classmethod
    def is_failure(cls, status: str) -> bool:
        return status in (cls.FAILED.value, cls.ABORTED.value, cls.TIMED_OUT.value)

    @classmethod
    def is_in_progress(cls, status: str) -> bool:
        return status in (
            cls.READY.value,
            cls.RUNNING.value,
            cls.ABORTING.value,
            cls.TIMING_OUT.value,
        )


class SkipReason(str, Enum):
    """Why the post processor did not insert a dataset item."""
    INVALID_ITEM = "invalid_item"
    NO_PROFILE_URL = "no_profile_url"
    PROFILE_NOT_FOUND = "profile_not_found"
    OCCUPATION_MISMATCH = "occupation_mismatch"
    MISSING_URN = "missing_urn"
    DUPLICATE_URN = "duplicate_urn"
    UNPARSEABLE_TIMESTAMP = "unparseable_timestamp"
    STALE = "stale"
    EMPTY_TEXT = "empty_text"


# ============================================
# PIPELINE TUNABLES
# ============================================
FRESHNESS_WINDOW = timedelta(hours=24)
DEFAULT_MAX_RETRIES = 3
DEFAULT_LIMIT_PER_SOURCE = 2
DEFAULT_MEMORY_MBYTES = 512

# Generation model reply meaning "do not create a message for this pair"
NO_CONTENT_SENTINEL = "NO_CONTENT"

# Vector metadata payload limit for post text
VECTOR_TEXT_MAX_CHARS = 40000
VECTOR_ID_PREFIX = "post-"

LINKEDIN_PROFILE_BASE = "https://www.linkedin.com/in/"
