"""
Runtime settings for the COT positioning service.

Values come from the environment (optionally a .env file at the repo root)
and are exposed as module constants so services can import what they need.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

APP_ENV = (os.getenv("APP_ENV") or "development").strip().lower()
IS_PRODUCTION = APP_ENV == "production"

# ---- Upstream positions dataset (CFTC Socrata, legacy combined report)
CFTC_URL = os.getenv("CFTC_URL", "https://publicreporting.cftc.gov/resource/6dca-aqww.json")
CFTC_APP_TOKEN = os.getenv("CFTC_APP_TOKEN", "")
CFTC_TIMEOUT_SEC = float(os.getenv("CFTC_TIMEOUT_SEC", "15"))
CFTC_PAGE_SIZE = int(os.getenv("CFTC_PAGE_SIZE", "50000"))
CFTC_MAX_RETRIES = int(os.getenv("CFTC_MAX_RETRIES", "2"))

# ---- Quote source (Yahoo Finance via yahooquery)
YAHOO_TIMEOUT_SEC = float(os.getenv("YAHOO_TIMEOUT_SEC", "10"))

# ---- Fan-out limits
PRICE_MAX_CONCURRENCY = int(os.getenv("PRICE_MAX_CONCURRENCY", "8"))
SNAPSHOT_MAX_CONCURRENCY = int(os.getenv("SNAPSHOT_MAX_CONCURRENCY", "6"))

# ---- TTLs
TTL_COT_RESPONSE_SEC = int(os.getenv("TTL_COT_RESPONSE_SEC", "600"))          # 10m
TTL_COT_ROWS_SEC = int(os.getenv("TTL_COT_ROWS_SEC", str(4 * 60 * 60)))      # 4h
TTL_PRICE_HISTORICAL_SEC = int(os.getenv("TTL_PRICE_HISTORICAL_SEC", str(30 * 24 * 3600)))
TTL_PRICE_SPOT_SEC = int(os.getenv("TTL_PRICE_SPOT_SEC", "60"))
TTL_PRICE_INTRADAY_SEC = int(os.getenv("TTL_PRICE_INTRADAY_SEC", "30"))

# Edge cache: 10m fresh, serve stale for 24h while revalidating
COT_CACHE_CONTROL = os.getenv(
    "COT_CACHE_CONTROL",
    "s-maxage=600, stale-while-revalidate=86400, max-age=0",
)

# ---- Optional shared response cache
REDIS_URL = os.getenv("REDIS_URL")
REDIS_PREFIX = os.getenv("REDIS_PREFIX", "cotdash:")

# ---- HTTP surface
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if o.strip()
]
RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "60/minute")
