"""Internal constants shared across the library."""

VENDOR_URL = "https://www.fitnesspark.ch/wp/wp-admin/admin-ajax.php"
VENDOR_ACTION = "single_park_update_visitors"
USER_AGENT = "Mozilla/5.0 (GymPulse Server)"

DEFAULT_CAPACITY = 300

# ------------------------------------------------------------------
# Series retention
# ------------------------------------------------------------------

#: Samples closer than this to the previous one are discarded.
DEDUP_WINDOW_MS = 60_000
#: Upper bound on samples kept per facility (oldest dropped first).
MAX_RETAIN = 5000

# ------------------------------------------------------------------
# Refresh cadence (seconds)
# ------------------------------------------------------------------

REFRESH_INTERVAL_S = 30 * 60
STALE_AFTER_S = 5 * 60
REQUEST_TIMEOUT_S = 15.0

# ------------------------------------------------------------------
# Aggregation
# ------------------------------------------------------------------

RECENT_WINDOW_MS = 24 * 60 * 60 * 1000
RECENT_FALLBACK_COUNT = 20
HOURLY_FIRST_HOUR = 6
HOURLY_LAST_HOUR = 22
WEEKDAY_LABELS: tuple[str, ...] = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
