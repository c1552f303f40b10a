from .constants import APP_TITLE, LOG_LEVEL, PUBLISHED_TIME_FORMAT, SEED_DEFAULT_NEWS, TAP_BUFFER_SIZE
from .utility_functions import (
    configure_logging,
    format_sse,
    make_ack,
    make_count_event,
    make_error,
    make_info,
    make_news_event,
    make_pong,
    now_ts,
)
