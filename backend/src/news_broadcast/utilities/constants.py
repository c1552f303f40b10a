import os

from dotenv import load_dotenv

load_dotenv()

# ------------ Config ------------
# per-tap buffer; 0 means unbounded
TAP_BUFFER_SIZE = int(os.getenv("TAP_BUFFER_SIZE", "0"))
# publish the two welcome items on startup
SEED_DEFAULT_NEWS = os.getenv("SEED_DEFAULT_NEWS", "true").lower() in ("1", "true", "yes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
APP_TITLE = os.getenv("APP_TITLE", "News Broadcast")

# textual form of NewsItem.published_at on the wire
PUBLISHED_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"
# --------------------------------
