"""Tests for StateSlot and Publisher.

Test Strategy:
1. Test subscribers get the current value first, then later values in order
2. Test late subscribers and slow subscribers see the latest value
3. Test close() completes subscriptions and rejects further publishes
4. Test players are delivered sorted by points

Each test follows the pattern:
- Given: A slot with or without published values
- When: Values are published and/or the slot is closed
- Then: Subscribers observe the expected sequence
"""
import asyncio
from contextlib import aclosing

import pytest

from fpl_data.core.exceptions import SubscriptionClosedError
from fpl_data.models.entities import Player
from fpl_data.services.publishing.publisher import Publisher, StateSlot, sort_by_points


def _player(id, points):
    return Player(
        id=id,
        name=f"Player {id}",
        team="A",
        photo_url="",
        points=points,
        current_price=5.0,
        goals_scored=0,
        assists=0,
    )


class TestStateSlot:
    """Latest-value broadcast."""

    @pytest.mark.asyncio
    async def test_subscribe_yields_initial_value(self):
        """Should deliver the initial empty value before anything is published."""
        slot = StateSlot("teams", [])

        async with aclosing(slot.subscribe()) as values:
            assert await values.__anext__() == []

    @pytest.mark.asyncio
    async def test_subscribe_yields_published_values_in_order(self):
        """Should deliver each value published while the subscriber keeps up."""
        slot = StateSlot("teams", [])

        async with aclosing(slot.subscribe()) as values:
            assert await values.__anext__() == []

            slot.publish([1])
            assert await asyncio.wait_for(values.__anext__(), 1) == [1]

            slot.publish([1, 2])
            assert await asyncio.wait_for(values.__anext__(), 1) == [1, 2]

    @pytest.mark.asyncio
    async def test_late_subscriber_gets_latest_value(self):
        """Should hand a late subscriber the latest value immediately."""
        slot = StateSlot("teams", [])
        slot.publish([1])
        slot.publish([1, 2])

        async with aclosing(slot.subscribe()) as values:
            assert await values.__anext__() == [1, 2]

    @pytest.mark.asyncio
    async def test_slow_subscriber_skips_to_latest(self):
        """Should coalesce values published while the subscriber was busy."""
        slot = StateSlot("teams", [])

        async with aclosing(slot.subscribe()) as values:
            await values.__anext__()

            slot.publish([1])
            slot.publish([1, 2])
            slot.publish([1, 2, 3])

            assert await asyncio.wait_for(values.__anext__(), 1) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_multiple_subscribers_receive_same_value(self):
        """Should broadcast to every subscriber."""
        slot = StateSlot("teams", [])
        first = slot.subscribe()
        second = slot.subscribe()
        await first.__anext__()
        await second.__anext__()

        slot.publish([1])

        assert await asyncio.wait_for(first.__anext__(), 1) == [1]
        assert await asyncio.wait_for(second.__anext__(), 1) == [1]
        await first.aclose()
        await second.aclose()

    def test_value_property_tracks_latest(self):
        """Should expose the latest published value synchronously."""
        slot = StateSlot("teams", [])
        slot.publish([1, 2])

        assert slot.value == [1, 2]

    def test_fetch_once_delivers_current_value(self):
        """Should call the callback exactly once with the current value."""
        slot = StateSlot("teams", [])
        slot.publish([1])
        received = []

        slot.fetch_once(received.append)
        slot.publish([1, 2])

        assert received == [[1]]

    # Close Tests
    # ─────────────────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_close_completes_subscription(self):
        """Should end iteration after the latest value once closed."""
        slot = StateSlot("teams", [])
        received = []

        async def consume():
            async for value in slot.subscribe():
                received.append(value)

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)
        slot.publish([1])
        slot.close()

        await asyncio.wait_for(consumer, 1)

        assert received[0] == []
        assert received[-1] == [1]

    def test_publish_after_close_raises(self):
        """Should reject publishing to a closed slot."""
        slot = StateSlot("teams", [])
        slot.close()

        with pytest.raises(SubscriptionClosedError):
            slot.publish([1])

    def test_close_is_idempotent(self):
        """Should allow closing twice."""
        slot = StateSlot("teams", [])
        slot.close()
        slot.close()

        assert slot.closed


class TestPublisher:
    """Named slots and the sorted player view."""

    def test_slots_start_empty(self):
        """Should expose three empty slots."""
        publisher = Publisher()

        assert publisher.teams.value == []
        assert publisher.players.value == []
        assert publisher.fixtures.value == []

    def test_sort_by_points_descending(self):
        """Should order players by points, highest first."""
        players = [_player(1, 10), _player(2, 90), _player(3, 40)]

        assert [p.id for p in sort_by_points(players)] == [2, 3, 1]

    def test_sort_by_points_is_stable(self):
        """Should keep the publication order of players with equal points."""
        players = [_player(1, 10), _player(2, 50), _player(3, 50), _player(4, 50)]

        assert [p.id for p in sort_by_points(players)] == [2, 3, 4, 1]

    @pytest.mark.asyncio
    async def test_players_by_points_sorts_each_update(self):
        """Should sort every delivered player list."""
        publisher = Publisher()

        async with aclosing(publisher.players_by_points()) as values:
            assert await values.__anext__() == []

            publisher.players.publish([_player(1, 10), _player(2, 20)])

            assert [p.id for p in await asyncio.wait_for(values.__anext__(), 1)] == [2, 1]

        # The stored value keeps publication order
        assert [p.id for p in publisher.players.value] == [1, 2]

    def test_fetch_players_by_points_once(self):
        """Should deliver the current players sorted, once."""
        publisher = Publisher()
        publisher.players.publish([_player(1, 10), _player(2, 20)])
        received = []

        publisher.fetch_players_by_points_once(received.append)

        assert len(received) == 1
        assert [p.id for p in received[0]] == [2, 1]

    def test_close_closes_every_slot(self):
        """Should complete all three slots."""
        publisher = Publisher()
        publisher.close()

        assert publisher.teams.closed
        assert publisher.players.closed
        assert publisher.fixtures.closed
