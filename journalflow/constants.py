START_NODE = "start"
END_NODE = "end"
AWAITING_APPROVAL_NODE = "awaiting_approval"

DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_SECONDS = 300.0
DEFAULT_BACKOFF_BASE_MS = 1000
DEFAULT_MAX_BACKOFF_SECONDS = 10.0
DEFAULT_APPROVAL_RISK_THRESHOLD = 7
MAX_VALIDATION_ATTEMPTS = 3

CANCELLED_MESSAGE = "Execution cancelled by user"
TIMEOUT_MESSAGE = "Execution time exceeded"
