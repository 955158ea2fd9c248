"""Internal constants shared across the library."""

VOLTTIME_BASE_URL = "https://cloud.volttime.com/api/v2"
USER_AGENT = "voltwatch/1"

#: PostgREST code returned when a ``.single()`` query matched no row.
PGRST_NO_ROWS = "PGRST116"

# ------------------------------------------------------------------
# Polling (seconds)
# ------------------------------------------------------------------

DEFAULT_POLL_INTERVAL = 30.0
DEFAULT_RETRY_DELAY = 1.0
MAX_BACKOFF_DELAY = 30.0
MIN_RETRY_DELAY = 0.1

ADAPTIVE_MIN_INTERVAL = 15.0
ADAPTIVE_MAX_INTERVAL = 60.0
ADAPTIVE_SPEEDUP_FACTOR = 0.8
ADAPTIVE_SLOWDOWN_FACTOR = 1.1

# ------------------------------------------------------------------
# Rate limiting
# ------------------------------------------------------------------

RATE_LIMIT_MAX_ENTRIES = 1000
RATE_LIMIT_SWEEP_INTERVAL = 5 * 60.0
RATE_LIMIT_EXCEEDED_CODE = "RATE_LIMIT_EXCEEDED"
UNKNOWN_CLIENT_IP = "unknown"

#: Proxy headers consulted for the client address, highest priority first.
CLIENT_IP_HEADERS: tuple[str, ...] = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip")

#: Charger id alphabet used by the datastore (no lowercase, no 0/O/I).
CHARGER_ID_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZ"
CHARGER_ID_LENGTH = 8
