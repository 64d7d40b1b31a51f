"""Default values shared by configuration and contracts."""

DEFAULT_CONCURRENCY_LIMIT = 5
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_MS = 1000
DEFAULT_TIMEOUT_MS = 30000

DEFAULT_CIRCUIT_THRESHOLD = 5
DEFAULT_CIRCUIT_RESET_TIMEOUT_MS = 60000

DEFAULT_EXECUTION_CACHE_TTL_S = 3600
DEFAULT_WORKFLOW_CACHE_TTL_S = 3600
DEFAULT_LOCK_TIMEOUT_MS = 30000

DEFAULT_WORKFLOW_VERSION = "1.0.0"

WORKFLOW_PREFIX = "workflow:"
EXECUTION_PREFIX = "execution:"
LOCK_PREFIX = "lock:execution:"

BASE_STEP_DURATION_MS = 1000
COMPLEXITY_MULTIPLIERS = {"simple": 1, "medium": 2, "complex": 5}
