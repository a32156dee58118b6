"""Pure constants for the listing pipeline. No side effects at import time."""

from pathlib import Path

# === Directories ===
_PROJECT_ROOT = Path(__file__).parent.parent.parent
DATA_DIR = _PROJECT_ROOT / "data"

# === eBay hosts ===
SANDBOX_HOST = "api.sandbox.ebay.com"
PRODUCTION_HOST = "api.ebay.com"

# === Trading API (XML) ===
TRADING_ENDPOINT_PATH = "/ws/api.dll"
TRADING_API_VERSION = "1291"
TRADING_REQUESTS_PER_SECOND = 2  # Conservative; daily quota is 5000 calls

# === Browse API (JSON) ===
BROWSE_SEARCH_PATH = "/buy/browse/v1/item_summary/search"
BROWSE_ITEM_PATH = "/buy/browse/v1/item"
BROWSE_REQUESTS_PER_SECOND = 5
BROWSE_MARKETPLACE_ID = "EBAY_US"

# === Marketing API (JSON, promotions) ===
MARKETING_PROMOTION_PATH = "/sell/marketing/v1/promotion"
MARKETING_REQUESTS_PER_SECOND = 5
SANDBOX_PROMOTION_MARKETPLACE_ID = "EBAY_AT"
PROMOTION_STATUSES = ("RUNNING", "SCHEDULED", "PAUSED")  # still able to expire
ALERT_WINDOW_HOURS = 48

# === Pagination ===
SELLER_LIST_PAGE_SIZE = 100  # GetSellerList EntriesPerPage
MY_EBAY_PAGE_SIZE = 200  # GetMyeBaySelling maximum
SEARCH_PAGE_SIZE = 200
PROMOTION_PAGE_SIZE = 50  # Marketing API maximum for /promotion
ITEM_DETAILS_BATCH_SIZE = 20  # Browse API accepts at most 20 ids per call
MAX_PAGES = 500  # Hard ceiling for any page crawl

# === Time-window crawl ===
WINDOW_DAYS = 120  # GetSellerList rejects spans over 121 days
MAX_WINDOWS = 50  # ~16 years of history
MAX_EMPTY_WINDOWS = 3

# === Delays (seconds) ===
SELLER_LIST_PAGE_DELAY = 0.3
MY_EBAY_PAGE_DELAY = 0.5
PROMOTION_PAGE_DELAY = 0.2
WINDOW_DELAY = 1.0
LAUNCH_DELAY = 0.05  # Between worker pool launches

# === Retry ===
MAX_ATTEMPTS = 3
RETRY_BASE_DELAY = 1.0  # delay before attempt k is base * 2**(k-1)
REQUEST_TIMEOUT = 30.0

# === Scale ===
DEFAULT_CONCURRENCY = 50
STREAM_THRESHOLD = 200  # Stream to CSV above this many work items
HISTORICAL_FALLBACK_MIN = 10  # Crawl history when fewer active listings are found

# === Auth ===
TOKEN_EXPIRY_BUFFER = 300  # Treat tokens expiring within 5 minutes as expired

# === Competitor search ===
MIN_SELLER_FEEDBACK_PERCENT = 98.0
MIN_SELLER_FEEDBACK_SCORE = 10000
MIN_TYPE_TOKEN_MATCHES = 3
MAX_RESULTS_PER_ITEM = 50
