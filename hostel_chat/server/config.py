"""Server configuration values."""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
DATABASE_URL = os.environ.get("HOSTEL_CHAT_DATABASE_URL", f"sqlite:///{BASE_DIR / 'hostel_chat.db'}")
LOG_FILE = Path(os.environ.get("HOSTEL_CHAT_LOG_FILE", BASE_DIR / "server.log"))

HOST = os.environ.get("HOSTEL_CHAT_HOST", "0.0.0.0")
PORT = int(os.environ.get("HOSTEL_CHAT_PORT", "8000"))

# History paging; requests above the maximum are clamped rather than rejected.
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200

# Ids are stored as signed 64-bit SQLite integers.
MAX_ID = 2**63 - 1

# Frames queued for one connection before it is dropped as too slow.
OUTBOX_LIMIT = 1000
