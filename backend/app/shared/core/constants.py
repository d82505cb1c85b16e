"""
Centralized Constants for the Signal Pipeline Backend.
All hardcoded values should be defined here for easy maintenance.
"""

# ============================================
# API TIMEOUTS (in seconds)
# ============================================
TIMEOUT_APIFY_API = 60.0              # Start run / get run / dataset page
TIMEOUT_GEMINI_EMBEDDING = 60.0       # Batch embedding request
TIMEOUT_GEMINI_GENERATION = 100.0     # Insight generation (long context)
TIMEOUT_TELEGRAM_API = 20.0           # sendMessage
TIMEOUT_STAGE_CALL = 280.0            # Controller -> stage endpoint (one batch)

# ============================================
# EXTERNAL API RETRY (in-call, tenacity)
# ============================================
MAX_RETRY_ATTEMPTS = 3
RETRY_MIN_WAIT_SECONDS = 2
RETRY_MAX_WAIT_SECONDS = 10

# ============================================
# EMBEDDINGS
# ============================================
EMBEDDING_DIMENSIONS = 768            # Must match post_vectors.embedding

# ============================================
# TELEGRAM
# ============================================
TELEGRAM_MAX_MESSAGE_LENGTH = 4096

# ============================================
# DATABASE POOL SETTINGS
# ============================================
DB_POOL_SIZE = 5
DB_MAX_OVERFLOW = 10
DB_POOL_RECYCLE = 300
