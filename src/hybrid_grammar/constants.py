"""Project-wide constants for the hybrid grammar engine."""

# ==============================================================================
# Decision Policy
# ==============================================================================

CHARS_PER_TOKEN = 4
PRICE_PER_1K_TOKENS = 0.005  # USD
MAX_COST_PER_CHECK = 0.05  # USD
MAX_CLIENT_WORDS = 2000
CLIENT_LATENCY_MS = 50
MIN_REMOTE_LATENCY_MS = 1000
REMOTE_LATENCY_PER_WORD_MS = 2

# ==============================================================================
# Local Analysis
# ==============================================================================

OFFSET_SEARCH_WINDOW = 25  # characters either side of the claimed start
DEFAULT_CONFIDENCE = 60
REFINED_CONFIDENCE = 90
AUTO_REFINE_CONFIDENCE = 80

# Per-checker confidence; checkers not listed use DEFAULT_CONFIDENCE
CHECKER_CONFIDENCE: dict[str, int] = {
    "articles": 80,
    "contractions": 85,
    "quotes": 75,
    "simplify": 70,
    "spelling": 60,
}

# ==============================================================================
# Caching
# ==============================================================================

CACHE_MAX_SIZE = 1000
CACHE_TTL_SECONDS = 300
CACHE_KEY_PREFIX = "cache"
CACHE_COMPRESSION_THRESHOLD = 1000  # bytes
CACHE_SWEEP_INTERVAL_SECONDS = 60

GRAMMAR_CACHE_MAX_SIZE = 500
GRAMMAR_CACHE_TTL_SECONDS = 600
GRAMMAR_CACHE_PREFIX = "grammar"

# ==============================================================================
# Scheduling and Metrics
# ==============================================================================

DAILY_COST_LIMIT_FREE = 1.0  # USD
DAILY_COST_LIMIT_PREMIUM = 10.0  # USD
MAX_CONCURRENT_FREE = 3
MAX_CONCURRENT_PREMIUM = 10
QUEUE_TIMEOUT_MS = 30_000

METRICS_MAX_AGE_SECONDS = 24 * 60 * 60
METRICS_MAX_STORED = 10_000
MAX_PROCESSING_TIME_MS = 5000
MAX_QUEUE_WAIT_MS = 2000
MIN_CACHE_HIT_RATE = 70.0  # percent
MAX_SERVER_COST_SHARE = 0.3
MAX_AVG_QUEUE_SIZE = 5
MAX_ERROR_RATE = 5.0  # percent

# ==============================================================================
# Remote Services
# ==============================================================================

DEFAULT_MODEL = "gemini-2.0-flash"
REMOTE_TIMEOUT_SECONDS = 30.0
REMOTE_RETRIES = 2
REMOTE_RETRY_BASE_DELAY = 0.5  # seconds
