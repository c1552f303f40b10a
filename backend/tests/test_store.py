from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from news_broadcast.models import IdGenerator, ItemStore
from news_broadcast.schemas import NewsItem


def make_item(item_id: int) -> NewsItem:
    return NewsItem(
        id=item_id,
        title=f"t{item_id}",
        content="c",
        published_at=datetime.now(timezone.utc),
        category="cat",
        author="a",
    )


def test_ids_start_at_one_and_increase():
    ids = IdGenerator()
    assert [ids.next_id() for _ in range(3)] == [1, 2, 3]


def test_ids_unique_under_concurrent_callers():
    ids = IdGenerator()
    with ThreadPoolExecutor(max_workers=8) as pool:
        values = list(pool.map(lambda _: ids.next_id(), range(4000)))
    assert len(set(values)) == 4000
    assert sorted(values) == list(range(1, 4001))


def test_snapshot_is_not_affected_by_later_appends():
    store = ItemStore()
    store.append(make_item(1))
    snap = store.snapshot()
    store.append(make_item(2))

    assert [item.id for item in snap] == [1]
    assert [item.id for item in store.snapshot()] == [1, 2]
    assert len(store) == 2


def test_news_item_is_immutable_and_serializes_published_time():
    item = make_item(1)
    with pytest.raises(ValidationError):
        item.title = "changed"
    assert item.title == "t1"

    data = item.model_dump(mode="json", by_alias=True)
    assert "publishedTime" in data
    assert len(data["publishedTime"]) == len("2024-01-01T00:00:00")
