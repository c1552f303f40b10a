import logging
from datetime import datetime, timezone
from typing import Any, Optional


def now_ts() -> str:
    return datetime.now(timezone.utc).isoformat()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


# Server-sent event frame; multi-line data is split over several data: fields
def format_sse(data: str, event: Optional[str] = None, event_id: Optional[Any] = None) -> str:
    lines = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    if event is not None:
        lines.append(f"event: {event}")
    for chunk in data.splitlines() or [""]:
        lines.append(f"data: {chunk}")
    return "\n".join(lines) + "\n\n"


# Server -> client WebSocket messages are built as dicts
def make_ack(request_id: Optional[str], stream: Optional[str], status: str = "ok"):
    return {"type": "ack", "request_id": request_id, "stream": stream, "status": status, "ts": now_ts()}

def make_pong(request_id: Optional[str]):
    return {"type": "pong", "request_id": request_id, "ts": now_ts()}

def make_news_event(news: dict):
    return {"type": "news", "id": news["id"], "news": news, "ts": now_ts()}

def make_count_event(count: int):
    return {"type": "count", "count": count, "ts": now_ts()}

def make_error(request_id: Optional[str], code: str, message: str, stream: Optional[str] = None):
    return {"type": "error", "request_id": request_id, "stream": stream, "error": {"code": code, "message": message}, "ts": now_ts()}

def make_info(stream: Optional[str], msg: str):
    return {"type": "info", "stream": stream, "msg": msg, "ts": now_ts()}
