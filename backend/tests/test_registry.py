import asyncio

from news_broadcast.models import BroadcastBus, SubscriberRegistry


def test_changes_are_pushed_in_transition_order():
    async def scenario():
        registry = SubscriberRegistry(BroadcastBus("count"))
        initial, tap = registry.watch()
        assert initial == 0

        assert registry.increment() == 1
        assert registry.increment() == 2
        assert registry.decrement() == 1

        assert [await tap.get() for _ in range(3)] == [1, 2, 1]
        assert registry.current_value() == 1

    asyncio.run(scenario())


def test_decrement_never_goes_below_zero():
    async def scenario():
        registry = SubscriberRegistry(BroadcastBus("count"))
        _, tap = registry.watch()
        assert registry.decrement() == 0
        await asyncio.sleep(0)
        assert tap.pending() == 0

    asyncio.run(scenario())


def test_counting_continues_after_count_bus_closes():
    registry = SubscriberRegistry(BroadcastBus("count"))
    registry.bus.close()
    assert registry.increment() == 1
    assert registry.decrement() == 0
