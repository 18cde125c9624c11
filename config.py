"""
Centralized Configuration
All tuning constants loaded from environment variables with sensible defaults.
Change behaviour without touching code: just update your .env file.
"""
import os
from decimal import Decimal
from dotenv import load_dotenv

from execution.errors import ConfigError

load_dotenv()


# =============================================================================
# Market Timing
# =============================================================================
MARKET_INTERVAL_SECONDS = int(os.getenv("MARKET_INTERVAL_SECONDS", "900"))   # 15-min markets
MARKET_WINDOW = int(os.getenv("MARKET_WINDOW", "240"))                       # Entry window before close
ENTRY_TIMEOUT = int(os.getenv("ENTRY_TIMEOUT", "210"))                       # Countdown once window opens
RESOLUTION_GRACE = int(os.getenv("RESOLUTION_GRACE", "10"))                  # Stop-loss stands down after close
MARKET_INDEX_DELAY = int(os.getenv("MARKET_INDEX_DELAY", "5"))               # Wait after open for API indexing
TRADED_MARKET_SLEEP = int(os.getenv("TRADED_MARKET_SLEEP", "60"))
MARKET_NOT_LISTED_SLEEP = int(os.getenv("MARKET_NOT_LISTED_SLEEP", "300"))     # Back-off when Gamma has no event yet

# =============================================================================
# Polling
# =============================================================================
POLLING_INTERVAL = float(os.getenv("POLLING_INTERVAL", "1"))
STOP_LOSS_POLL_INTERVAL = float(os.getenv("STOP_LOSS_POLL_INTERVAL", "0.5"))

# =============================================================================
# Entry / Exit Thresholds
# =============================================================================
TRADE_SIDE = os.getenv("TRADE_SIDE", "BOTH").upper()            # YES, NO or BOTH
PRIMARY_SIDE = os.getenv("PRIMARY_SIDE", "YES").upper()         # Evaluated first
ENTRY_TIE_BREAK = os.getenv("ENTRY_TIE_BREAK", "HIGHER_BID").upper()  # PRIMARY or HIGHER_BID

ENTRY_PRICE = Decimal(os.getenv("ENTRY_PRICE", "0.96"))
ENTRY_PRICE_TOLERANCE = Decimal(os.getenv("ENTRY_PRICE_TOLERANCE", "0.01"))
ABORT_ASK_PRICE = Decimal(os.getenv("ABORT_ASK_PRICE", "0.99"))
STOP_LOSS_PRICE = Decimal(os.getenv("STOP_LOSS_PRICE", "0.89"))
STOP_LOSS_TOLERANCE = Decimal(os.getenv("STOP_LOSS_TOLERANCE", "0"))
SUSTAIN_TIME = float(os.getenv("SUSTAIN_TIME", "3"))

# =============================================================================
# Position Sizing
# =============================================================================
POSITION_SIZE = Decimal(os.getenv("POSITION_SIZE", "5"))         # Shares per entry

# =============================================================================
# Retry Budgets
# =============================================================================
MAX_ENTRY_ATTEMPTS = int(os.getenv("MAX_ENTRY_ATTEMPTS", "20"))
MAX_LIQUIDATION_ATTEMPTS = int(os.getenv("MAX_LIQUIDATION_ATTEMPTS", "20"))
LIQUIDATION_RETRY_DELAY = float(os.getenv("LIQUIDATION_RETRY_DELAY", "0.5"))
POSITION_QUERY_ATTEMPTS = int(os.getenv("POSITION_QUERY_ATTEMPTS", "5"))
POSITION_QUERY_DELAY = float(os.getenv("POSITION_QUERY_DELAY", "2"))
BOOK_FETCH_ATTEMPTS = int(os.getenv("BOOK_FETCH_ATTEMPTS", "3"))
BOOK_FETCH_DELAY = float(os.getenv("BOOK_FETCH_DELAY", "1"))
FILL_CHECK_ATTEMPTS = int(os.getenv("FILL_CHECK_ATTEMPTS", "5"))
FILL_CHECK_DELAY = float(os.getenv("FILL_CHECK_DELAY", "0.5"))
MARKET_LOOKUP_ATTEMPTS = int(os.getenv("MARKET_LOOKUP_ATTEMPTS", "3"))
MARKET_LOOKUP_DELAY = float(os.getenv("MARKET_LOOKUP_DELAY", "3"))

# =============================================================================
# Exchange
# =============================================================================
EXCHANGE_VARIANT = os.getenv("EXCHANGE_VARIANT", "hmac").lower()  # direct, hmac, sdk, paper
CLOB_HOST = os.getenv("CLOB_HOST", "https://clob.polymarket.com")
DATA_API_URL = os.getenv("DATA_API_URL", "https://data-api.polymarket.com")
GAMMA_API_URL = os.getenv("GAMMA_API_URL", "https://gamma-api.polymarket.com")
CHAIN_ID = int(os.getenv("CHAIN_ID", "137"))                      # Polygon mainnet
EXCHANGE_CONTRACT = os.getenv(
    "EXCHANGE_CONTRACT", "0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E"
)
TICK_SIZE = Decimal(os.getenv("TICK_SIZE", "0.01"))
FEE_RATE_BPS = int(os.getenv("FEE_RATE_BPS", "0"))
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10"))

# =============================================================================
# Market Slug Pattern
# =============================================================================
MARKET_ASSET = os.getenv("MARKET_ASSET", "eth")
MARKET_TYPE = os.getenv("MARKET_TYPE", "updown")
MARKET_TIMEFRAME = os.getenv("MARKET_TIMEFRAME", "15m")
MARKET_SLUG_PREFIX = f"{MARKET_ASSET}-{MARKET_TYPE}-{MARKET_TIMEFRAME}"

# =============================================================================
# Ledger & Logging
# =============================================================================
LEDGER_FILE = os.getenv("LEDGER_FILE", f"{MARKET_ASSET.upper()}_trading_log.csv")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "./logs")

VALID_TRADE_SIDES = ("YES", "NO", "BOTH")
VALID_TIE_BREAKS = ("PRIMARY", "HIGHER_BID")
VALID_VARIANTS = ("direct", "hmac", "sdk", "paper")


def validate() -> None:
    """Raise ConfigError if the loaded configuration cannot be traded."""
    if TRADE_SIDE not in VALID_TRADE_SIDES:
        raise ConfigError(f"Invalid TRADE_SIDE: {TRADE_SIDE}. Must be 'YES', 'NO', or 'BOTH'")
    if PRIMARY_SIDE not in ("YES", "NO"):
        raise ConfigError(f"Invalid PRIMARY_SIDE: {PRIMARY_SIDE}")
    if ENTRY_TIE_BREAK not in VALID_TIE_BREAKS:
        raise ConfigError(f"Invalid ENTRY_TIE_BREAK: {ENTRY_TIE_BREAK}")
    if EXCHANGE_VARIANT not in VALID_VARIANTS:
        raise ConfigError(f"Invalid EXCHANGE_VARIANT: {EXCHANGE_VARIANT}")
    if STOP_LOSS_PRICE >= ENTRY_PRICE:
        raise ConfigError("STOP_LOSS_PRICE must be below ENTRY_PRICE")
    if ENTRY_PRICE > ABORT_ASK_PRICE:
        raise ConfigError("ENTRY_PRICE must not exceed ABORT_ASK_PRICE")
    if POSITION_SIZE <= 0:
        raise ConfigError("POSITION_SIZE must be positive")
    if MARKET_WINDOW <= 0 or ENTRY_TIMEOUT <= 0:
        raise ConfigError("MARKET_WINDOW and ENTRY_TIMEOUT must be positive")
