import asyncio
import json
import uuid
import websockets

async def main():
    uri = "ws://localhost:8000/ws"
    async with websockets.connect(uri) as ws:
        # news backlog first, then live items; plus subscriber count updates
        await ws.send(json.dumps({"type": "subscribe", "request_id": str(uuid.uuid4())}))
        await ws.send(json.dumps({"type": "subscribe_count", "request_id": str(uuid.uuid4())}))
        print("Awaiting messages... (press Ctrl+C to exit)")
        try:
            while True:
                msg = json.loads(await ws.recv())
                if msg["type"] == "news":
                    news = msg["news"]
                    print(f"#{news['id']} [{news['category']}] {news['title']} by {news['author']}")
                elif msg["type"] == "count":
                    print("Subscribers:", msg["count"])
                else:
                    print("Received:", msg)
        except KeyboardInterrupt:
            unsub = {"type": "unsubscribe", "stream": "news", "request_id": str(uuid.uuid4())}
            await ws.send(json.dumps(unsub))
            print("Unsubscribed.")

if __name__ == "__main__":
    asyncio.run(main())
