"""Centralized constants for reviewgate.

Policy defaults and limits live here so every layer imports from a single
source of truth.
"""

# ---------- Daily quotas ----------
DEFAULT_NEW_PER_DAY = 20
DEFAULT_REVIEW_PER_DAY = 200
MAX_NEW_PER_DAY = 200
MAX_REVIEW_PER_DAY = 2000

# ---------- Unlock window ----------
DEFAULT_OVERLAY_INTERVAL = 6  # minutes or launches, see UnlockPolicy

# ---------- Scheduling ----------
DEFAULT_DESIRED_RETENTION = 0.9
FSRS_STATE_VERSION = 1

# ---------- Day key ----------
DAY_KEY_FORMAT = "%Y%m%d"  # e.g. 20250824

# ---------- Server ----------
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8777
