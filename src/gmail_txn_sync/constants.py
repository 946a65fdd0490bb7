"""Constants for Gmail Transaction Sync."""

from pathlib import Path

# --- Config paths ---
CONFIG_DIR = Path.home() / ".gmail-txn-sync"
CLIENT_SECRETS_PATH = CONFIG_DIR / "credentials.json"
DATABASE_PATH = CONFIG_DIR / "transactions.db"

# --- Gmail API ---
SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
REVOKE_URI = "https://oauth2.googleapis.com/revoke"
BATCH_SIZE = 50  # messages per BatchHttpRequest
PAGE_SIZE = 100  # messages per list page

# --- Gmail search ---
SUBJECT_KEYWORDS = [
    "transaction",
    "payment",
    "credited",
    "debited",
    "alert",
    "receipt",
    "invoice",
    "spent",
    "withdrawn",
    "transfer",
    "deposit",
    "refund",
    "purchase",
    "bill",
    "emi",
    "upi",
    "imps",
    "neft",
    "rtgs",
    "wallet",
    "autopay",
    "cashback",
    "reward",
]
GMAIL_DATE_FORMAT = "%Y/%m/%d"

# --- Bank senders ---
DEFAULT_BANK_DOMAINS = (
    "hdfcbank.net,icicibank.com,axisbank.com,sbi.co.in,kotak.com,yesbank.in,"
    "idfcbank.com,rblbank.com,indusind.com,federalbank.co.in,unionbankofindia.co.in,"
    "bobibanking.com,idbi.com,bankofindia.co.in,canarabank.com,kvbmail.com,aubank.in,"
    "citi.com,hsbc.co.in,standardchartered.com"
)
# Leading labels stripped from the sender domain before the allow-list check
SENDER_SUBDOMAIN_PREFIXES = [
    "mail",
    "alerts",
    "no-reply",
    "noreply",
    "notification",
    "notifications",
    "update",
    "updates",
    "info",
    "support",
    "service",
]

# --- Classification service ---
GEMINI_API_URL = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "gemini-1.5-flash-latest:generateContent"
)
AI_COOLDOWN_DEFAULT_SECONDS = 60
AI_COOLDOWN_LOG_INTERVAL_SECONDS = 5.0

# --- Sync ---
INITIAL_SYNC_DAYS = 30
WATERMARK_MARGIN_DAYS = 1
SYNC_WORKERS = 4
SWEEP_INTERVAL_SECONDS = 30 * 60

# --- Display ---
TRANSACTIONS_LIMIT = 50
