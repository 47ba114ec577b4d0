"""
ToolCrib - Centralised configuration.

All tunables live here.  Every other module imports from config
instead of reading os.environ directly.
"""

from __future__ import annotations
import os
from decimal import Decimal
from pathlib import Path


# ── Paths ──────────────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent

# ── Database ───────────────────────────────────────────────────────────
DB_URL = os.environ.get("TOOLCRIB_DB", f"sqlite:///{BASE_DIR / 'toolcrib.sqlite'}")
# Seconds a SQLite writer waits for the lock before giving up
SQLITE_BUSY_TIMEOUT = float(os.environ.get("TOOLCRIB_SQLITE_TIMEOUT", "30"))

# ── Server ─────────────────────────────────────────────────────────────
HOST      = os.environ.get("TOOLCRIB_HOST", "0.0.0.0")
PORT      = int(os.environ.get("TOOLCRIB_PORT", "5000"))
DEBUG     = os.environ.get("TOOLCRIB_DEBUG", "0") == "1"
SECRET    = os.environ.get("TOOLCRIB_SECRET", "toolcrib-dev-key-change-in-prod")
LOG_LEVEL = os.environ.get("TOOLCRIB_LOG_LEVEL", "INFO").upper()

# ── Identity / QR ──────────────────────────────────────────────────────
# Changing the payload prefixes invalidates every label already printed.
TOOL_ID_PREFIX        = "T"
CONSUMABLE_ID_PREFIX  = "C"
TOOL_QR_PREFIX        = "TOOL#"
CONSUMABLE_QR_PREFIX  = "CONSUMABLE#"
UNIQUE_ID_LENGTH      = 12          # random characters after the prefix
QR_BOX_SIZE           = int(os.environ.get("TOOLCRIB_QR_BOX_SIZE", "10"))
QR_BORDER             = int(os.environ.get("TOOLCRIB_QR_BORDER", "4"))

# ── Stock ──────────────────────────────────────────────────────────────
QUANTITY_PLACES      = 3            # decimal places stored for quantities
DEFAULT_MIN_QUANTITY = Decimal(os.environ.get("TOOLCRIB_DEFAULT_MIN_QTY", "0"))
DEFAULT_MAX_QUANTITY = Decimal(os.environ.get("TOOLCRIB_DEFAULT_MAX_QTY", "100"))

# ── Admin bootstrap ────────────────────────────────────────────────────
ADMIN_EMAIL    = os.environ.get("TOOLCRIB_ADMIN_EMAIL", "")
ADMIN_NAME     = os.environ.get("TOOLCRIB_ADMIN_NAME", "Administrator")
ADMIN_JOB_CODE = os.environ.get("TOOLCRIB_ADMIN_JOB_CODE", "ADMIN")

# ── Pagination ─────────────────────────────────────────────────────────
API_MAX_LIMIT       = 1000
API_DEFAULT_LIMIT   = 100
RECENT_TRANSACTIONS = 100
AUTH_EVENTS_LIMIT   = 100

# ── API tokens ─────────────────────────────────────────────────────────
# Bearer tokens returned by POST /api/v1/session, signed with SECRET
TOKEN_SALT    = "toolcrib-staff-token"
TOKEN_MAX_AGE = int(os.environ.get("TOOLCRIB_TOKEN_MAX_AGE", str(12 * 3600)))
