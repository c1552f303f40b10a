import json
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, List, Tuple, Union

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from .models import CountSubscription, NewsEngine, NewsSubscription, ServiceClosedError, seed_default_news
from .schemas import CreateNewsRequest, NewsItem
from .utilities import (
    APP_TITLE,
    LOG_LEVEL,
    SEED_DEFAULT_NEWS,
    configure_logging,
    format_sse,
    make_ack,
    make_count_event,
    make_error,
    make_info,
    make_news_event,
    make_pong,
)

configure_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

Stream = Union[NewsSubscription, CountSubscription]


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = NewsEngine()
    if SEED_DEFAULT_NEWS:
        seed_default_news(engine)
    app.state.engine = engine
    app.state.started_at = datetime.now(timezone.utc)
    logger.info("App startup event")
    yield
    engine.shutdown()
    logger.info("App shutdown event")


app = FastAPI(title=APP_TITLE, lifespan=lifespan)


def get_engine(request: Request) -> NewsEngine:
    return request.app.state.engine


def _ensure_open(engine: NewsEngine) -> None:
    if engine.closed:
        raise HTTPException(status_code=503, detail="service closing")


# -------------- SSE streams --------------
async def news_event_stream(engine: NewsEngine):
    """
    Backlog then live news as SSE frames. The session is opened lazily so it
    is only counted once the response is actually being streamed.
    """
    try:
        session = engine.subscribe_to_items()
    except ServiceClosedError:
        return
    try:
        async for news in session:
            try:
                frame = format_sse(news.model_dump_json(by_alias=True), event="news", event_id=news.id)
            except Exception as exc:
                session.fail(exc)
                return
            yield frame
    finally:
        # reached on cancellation, or when EventStreamResponse closes the generator
        session.cancel()


async def count_event_stream(engine: NewsEngine):
    try:
        watch = engine.subscribe_to_count()
    except ServiceClosedError:
        return
    try:
        async for count in watch:
            yield format_sse(str(count), event="count", event_id=count)
    finally:
        watch.cancel()


class EventStreamResponse(StreamingResponse):
    """
    SSE response that closes its event generator as soon as the response ends,
    so the generator's cleanup releases the subscription even when the client
    dropped mid-send.
    """

    media_type = "text/event-stream"

    def __init__(self, stream: AsyncGenerator[str, None]):
        super().__init__(stream, headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"})
        self._stream = stream

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self._stream.aclose()


@app.get("/news/subscribe")
async def subscribe_to_news(engine: NewsEngine = Depends(get_engine)):
    _ensure_open(engine)
    return EventStreamResponse(news_event_stream(engine))


@app.get("/news/subscribers/count/stream")
async def subscribe_to_subscriber_count(engine: NewsEngine = Depends(get_engine)):
    _ensure_open(engine)
    return EventStreamResponse(count_event_stream(engine))


# -------------- REST endpoints --------------

@app.post("/news", response_model=NewsItem)
async def add_news(req: CreateNewsRequest, engine: NewsEngine = Depends(get_engine)):
    try:
        return engine.publish(req.title, req.content, req.category, req.author)
    except ServiceClosedError:
        raise HTTPException(status_code=503, detail="service closing")

@app.get("/news", response_model=List[NewsItem])
async def get_all_news(engine: NewsEngine = Depends(get_engine)):
    return list(engine.list_all())

@app.get("/news/subscribers/count")
async def get_subscriber_count(engine: NewsEngine = Depends(get_engine)) -> int:
    return engine.current_subscriber_count()

@app.post("/news/disconnect")
async def disconnect() -> str:
    # subscribers are released when their connection closes
    return "Disconnect request received. Connection will close automatically."

@app.get("/health")
async def rest_health(request: Request, engine: NewsEngine = Depends(get_engine)):
    now = datetime.now(timezone.utc)
    uptime_sec = int((now - request.app.state.started_at).total_seconds())
    return {
        "uptime_sec": uptime_sec,
        "news": len(engine.list_all()),
        "subscribers": engine.current_subscriber_count(),
        "closing": engine.closed,
    }


# -------------- WebSocket handling --------------
async def news_sender_loop(ws: WebSocket, session: NewsSubscription):
    """
    Background task per news subscription: forward items over the websocket.
    """
    try:
        async for news in session:
            try:
                await ws.send_text(json.dumps(make_news_event(news.model_dump(mode="json", by_alias=True))))
            except Exception as exc:
                # (broken pipe / closed) -> this subscriber only
                session.fail(exc)
                break
        if session.termination_reason in ("shutdown", "slow_consumer"):
            await _send_quietly(ws, make_info("news", session.termination_reason))
    finally:
        session.cancel()

async def count_sender_loop(ws: WebSocket, watch: CountSubscription):
    try:
        async for count in watch:
            await ws.send_text(json.dumps(make_count_event(count)))
    except Exception:
        logger.debug("Count stream send failed; dropping watcher", exc_info=True)
    finally:
        watch.cancel()

async def _send_quietly(ws: WebSocket, message: dict):
    try:
        await ws.send_text(json.dumps(message))
    except Exception:
        logger.debug("Could not deliver %s message", message.get("type"), exc_info=True)

async def _stop(entry: Tuple[asyncio.Task, Stream]):
    task, stream = entry
    stream.cancel()
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    engine: NewsEngine = ws.app.state.engine
    # at most one news and one count stream per connection
    streams: Dict[str, Tuple[asyncio.Task, Stream]] = {}
    try:
        while True:
            data = await ws.receive_text()
            try:
                payload = json.loads(data)
            except json.JSONDecodeError:
                await ws.send_text(json.dumps(make_error(None, "BAD_REQUEST", "invalid json")))
                continue
            if not isinstance(payload, dict):
                await ws.send_text(json.dumps(make_error(None, "BAD_REQUEST", "message must be an object")))
                continue
            typ = payload.get("type")
            request_id = payload.get("request_id")
            # ping
            if typ == "ping":
                await ws.send_text(json.dumps(make_pong(request_id)))
                continue

            if typ in ("subscribe", "subscribe_count"):
                name = "news" if typ == "subscribe" else "count"
                if name in streams:
                    await _stop(streams.pop(name))
                try:
                    if name == "news":
                        stream = engine.subscribe_to_items()
                    else:
                        stream = engine.subscribe_to_count()
                except ServiceClosedError:
                    await ws.send_text(json.dumps(make_error(request_id, "SERVICE_CLOSING", "service closing", name)))
                    continue
                # ack goes out before the backlog
                await ws.send_text(json.dumps(make_ack(request_id, name)))
                if name == "news":
                    task = asyncio.create_task(news_sender_loop(ws, stream))
                else:
                    task = asyncio.create_task(count_sender_loop(ws, stream))
                streams[name] = (task, stream)
                continue

            if typ == "unsubscribe":
                name = payload.get("stream") or "news"
                if name not in ("news", "count"):
                    await ws.send_text(json.dumps(make_error(request_id, "BAD_REQUEST", f"unknown stream: {name}")))
                    continue
                entry = streams.pop(name, None)
                if entry:
                    await _stop(entry)
                await ws.send_text(json.dumps(make_ack(request_id, name)))
                continue

            if typ == "publish":
                try:
                    req = CreateNewsRequest(**(payload.get("news") or {}))
                except (TypeError, ValidationError) as exc:
                    await ws.send_text(json.dumps(make_error(request_id, "BAD_REQUEST", f"invalid news: {exc}", "news")))
                    continue
                try:
                    news = engine.publish(req.title, req.content, req.category, req.author)
                except ServiceClosedError:
                    await ws.send_text(json.dumps(make_error(request_id, "SERVICE_CLOSING", "service closing", "news")))
                    continue
                ack = make_ack(request_id, "news")
                ack["id"] = news.id
                await ws.send_text(json.dumps(ack))
                continue

            # unknown type
            await ws.send_text(json.dumps(make_error(request_id, "BAD_REQUEST", f"unknown type: {typ}")))
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
    except Exception:
        logger.exception("Unexpected error on websocket")
        await _send_quietly(ws, make_error(None, "INTERNAL", "server error"))
    finally:
        for entry in list(streams.values()):
            await _stop(entry)
        streams.clear()
