"""Constants for Gmail Sender Purge."""

from pathlib import Path

# --- Config paths ---
CONFIG_DIR = Path.home() / ".gmail-sender-purge"
CREDENTIALS_PATH = CONFIG_DIR / "credentials.json"
TOKEN_PATH = CONFIG_DIR / "token.json"
CHECKPOINT_DIR = CONFIG_DIR / "checkpoints"

# --- Gmail API ---
# batchDelete requires full mailbox access
SCOPES = ["https://mail.google.com/"]
PAGE_SIZE = 500  # messages per list page (API maximum)
METADATA_HEADERS = ["From", "Subject", "Date"]

# --- Queries ---
ANALYSIS_QUERY = "is:unread -in:spam -in:trash"
DELETE_CRITERIA = "is:unread"

# --- Rate limiting (seconds) ---
BASE_DELAY = 2.0
MAX_RETRIES = 5
MAX_BACKOFF = 60.0
QUOTA_RESET_DELAY = 60.0
QUOTA_ERROR_SIGNATURES = ("Resource has been exhausted", "Quota exceeded")
HARD_QUOTA_SIGNATURE = "Quota exceeded"
RATE_LIMIT_STATUSES = (429,)

# --- Pagination ---
THROTTLE_EVERY = 500  # refs accumulated between proactive pauses
THROTTLE_PAUSE = 1.0

# --- Analysis ---
BATCH_SIZE = 100  # metadata fetches between pauses
BATCH_PAUSE = 1.0
METADATA_ATTEMPTS = 3
METADATA_RETRY_DELAY = 2.0
PROGRESS_SAVE_INTERVAL = 1000
UNKNOWN_SENDER = "Unknown"

# --- Deletion ---
DELETE_BATCH_SIZE = 500  # ids per batchDelete call
MAX_FAILED_ATTEMPTS = 3

# --- Checkpoint keys ---
ANALYSIS_CHECKPOINT = "analysis-progress"
FETCH_CHECKPOINT = "failed-fetch-progress"
DELETE_CHECKPOINT = "delete-progress"

# --- Reports ---
ANALYSIS_REPORT_PREFIX = "email-analysis"
DELETION_REPORT_PREFIX = "deletion-report"
ANALYSIS_REPORT_HEADER = ["senderEmail", "totalEmailCount", "totalSize", "lastEmail"]
DELETION_REPORT_HEADER = ["email", "deletedCount"]

# --- Display ---
TOP_SENDERS_LIMIT = 20
