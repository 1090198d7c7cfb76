"""Application constants."""

USER_AGENT = "shipline/0.3 (+event shipping)"
LOGGER_NAME = "shipline"

EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20

DEFAULT_HTTP_PORT = 80
DEFAULT_ES_PORT = 9200
DEFAULT_BULK_API_PATH = "/_bulk"
DEFAULT_RETRY_COUNT = 0
DEFAULT_RETRY_DELAY_MS = 1000
DEFAULT_TIMEOUT_MS = 40000
DEFAULT_MAX_BATCH_SIZE = 500
DEFAULT_MAX_BUFFER_BYTES = 5 * 1024 * 1024
DEFAULT_POOL_SIZE = 10

JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "records_in",
    "records_out",
    "error_code",
    "message",
)
