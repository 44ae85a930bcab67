"""Tests for entrant transitions and the notification each one sends.

Covers:
- join / leave and duplicate joins
- accept / decline / cancel / uninvite / rejoin edges
- NotFound vs InvalidTransition for stale client views
- Terminal statuses
- Racing transitions on one entrant and randomised join / leave sequences
"""
import asyncio
import random
from collections import Counter

import pytest

from eventpool.errors import DuplicateEntrantError, InvalidTransitionError, NotFoundError
from eventpool.models.entrant import EntrantStatus, NotificationType
from tests.conftest import join_all, make_event


async def _invited(pool, user_id="u1"):
    """Event with limit 1 and ``user_id`` drawn into INVITED."""
    event = await make_event(pool, limit=1)
    await pool.join(event.event_id, user_id)
    await pool.run_lottery(event.event_id)
    assert await pool.get_entrant_status(event.event_id, user_id) == EntrantStatus.invited
    return event


@pytest.mark.asyncio
class TestJoinLeave:
    async def test_join_lands_in_waiting_and_notifies(self, pool, notifier):
        event = await make_event(pool)
        entrant = await pool.join(event.event_id, "u1")
        assert entrant.status == EntrantStatus.waiting
        assert await pool.waiting_count(event.event_id) == 1
        assert [n.type for n in notifier.to("u1")] == [NotificationType.waiting]
        assert event.name in notifier.to("u1")[0].message

    async def test_duplicate_join_refused(self, pool):
        event = await make_event(pool)
        await pool.join(event.event_id, "u1")
        with pytest.raises(DuplicateEntrantError):
            await pool.join(event.event_id, "u1")
        assert await pool.waiting_count(event.event_id) == 1

    async def test_join_refused_from_any_bucket(self, pool):
        event = await _invited(pool)
        with pytest.raises(DuplicateEntrantError):
            await pool.join(event.event_id, "u1")

    async def test_leave_removes_and_only_confirms(self, pool, notifier):
        event = await make_event(pool)
        await pool.join(event.event_id, "u1")
        await pool.leave(event.event_id, "u1")
        assert await pool.get_entrant_status(event.event_id, "u1") is None
        assert len(notifier.to("u1")) == 1  # the join only
        assert notifier.acknowledged[0][:2] == ("u1", event.event_id)

    async def test_leave_when_absent(self, pool):
        event = await make_event(pool)
        with pytest.raises(NotFoundError):
            await pool.leave(event.event_id, "ghost")

    async def test_leave_after_being_drawn(self, pool):
        event = await _invited(pool)
        with pytest.raises(InvalidTransitionError):
            await pool.leave(event.event_id, "u1")

    async def test_join_again_after_leaving(self, pool):
        event = await make_event(pool)
        await pool.join(event.event_id, "u1")
        await pool.leave(event.event_id, "u1")
        await pool.join(event.event_id, "u1")
        assert await pool.get_entrant_status(event.event_id, "u1") == EntrantStatus.waiting


@pytest.mark.asyncio
class TestInvitationResponses:
    async def test_accept(self, pool, notifier):
        event = await _invited(pool)
        entrant = await pool.accept(event.event_id, "u1")
        assert entrant.status == EntrantStatus.accepted
        assert [n.type for n in notifier.to("u1")] == [
            NotificationType.waiting, NotificationType.invited, NotificationType.accepted,
        ]

    async def test_decline(self, pool):
        event = await _invited(pool)
        await pool.decline(event.event_id, "u1")
        counts = await pool.get_bucket_counts(event.event_id)
        assert counts.declined == 1
        assert counts.invited == 0

    async def test_accept_while_waiting(self, pool):
        event = await make_event(pool)
        await pool.join(event.event_id, "u1")
        with pytest.raises(InvalidTransitionError):
            await pool.accept(event.event_id, "u1")
        assert await pool.get_entrant_status(event.event_id, "u1") == EntrantStatus.waiting

    async def test_accept_unknown_user(self, pool):
        event = await make_event(pool)
        with pytest.raises(NotFoundError):
            await pool.accept(event.event_id, "ghost")

    @pytest.mark.parametrize("final", ["accept", "decline"])
    async def test_terminal_statuses_are_final(self, pool, final):
        event = await _invited(pool)
        await getattr(pool, final)(event.event_id, "u1")
        for action in ("accept", "decline", "leave", "rejoin"):
            with pytest.raises(InvalidTransitionError):
                await getattr(pool, action)(event.event_id, "u1")


@pytest.mark.asyncio
class TestOrganizerTransitions:
    async def test_cancel_waiting_entrant(self, pool, notifier):
        event = await make_event(pool)
        await join_all(pool, event.event_id, ["u1", "u2"])
        entrant = await pool.cancel_entrant(event.event_id, "u1")
        assert entrant.status == EntrantStatus.cancelled
        assert notifier.to("u1")[-1].type == NotificationType.cancelled
        with pytest.raises(InvalidTransitionError):
            await pool.rejoin(event.event_id, "u1")
        with pytest.raises(DuplicateEntrantError):
            await pool.join(event.event_id, "u1")

    async def test_cancel_requires_waiting(self, pool):
        event = await _invited(pool)
        with pytest.raises(InvalidTransitionError):
            await pool.cancel_entrant(event.event_id, "u1")

    async def test_uninvite_then_rejoin(self, pool, notifier):
        event = await _invited(pool)
        await pool.uninvite(event.event_id, "u1")
        assert await pool.get_entrant_status(event.event_id, "u1") == EntrantStatus.uninvited

        entrant = await pool.rejoin(event.event_id, "u1")
        assert entrant.status == EntrantStatus.waiting
        assert [n.type for n in notifier.to("u1")][-2:] == [NotificationType.uninvited, NotificationType.waiting]
        assert (await pool.get_bucket_counts(event.event_id)).uninvited == 0

    async def test_uninvited_cannot_accept(self, pool):
        event = await _invited(pool)
        await pool.uninvite(event.event_id, "u1")
        with pytest.raises(InvalidTransitionError):
            await pool.accept(event.event_id, "u1")

    async def test_rejoin_when_not_listed(self, pool):
        event = await make_event(pool)
        with pytest.raises(InvalidTransitionError):
            await pool.rejoin(event.event_id, "ghost")

    async def test_rejoin_while_waiting(self, pool):
        event = await make_event(pool)
        await pool.join(event.event_id, "u1")
        with pytest.raises(InvalidTransitionError):
            await pool.rejoin(event.event_id, "u1")


@pytest.mark.asyncio
class TestNotificationDelivery:
    async def test_unreachable_recipient_does_not_block_transition(self, pool, notifier):
        event = await make_event(pool)
        notifier.fail_for.add("u1")
        entrant = await pool.join(event.event_id, "u1")
        assert entrant.status == EntrantStatus.waiting
        assert notifier.to("u1") == []

    async def test_one_notification_per_transition(self, pool, notifier):
        event = await make_event(pool, limit=1)
        await pool.join(event.event_id, "u1")
        await pool.run_lottery(event.event_id)
        await pool.decline(event.event_id, "u1")
        assert len(notifier.to("u1")) == 3

    async def test_crashing_notifier_does_not_fail_accept(self, pool, notifier):
        event = await _invited(pool)
        notifier.fail_for.add("u1")
        notifier.fail_with = RuntimeError
        entrant = await pool.accept(event.event_id, "u1")
        assert entrant.status == EntrantStatus.accepted
        assert await pool.get_entrant_status(event.event_id, "u1") == EntrantStatus.accepted


def _placements(buckets) -> Counter:
    return Counter(e.user_id for entrants in buckets.values() for e in entrants)


@pytest.mark.asyncio
class TestConcurrency:
    async def test_concurrent_joins_of_distinct_users(self, any_pool):
        event = await make_event(any_pool)
        users = [f"u{i}" for i in range(10)]

        await asyncio.gather(*(any_pool.join(event.event_id, user_id) for user_id in users))

        buckets = await any_pool.waitlist.read_buckets(event.event_id)
        assert _placements(buckets) == Counter(users)
        assert await any_pool.waiting_count(event.event_id) == 10

    async def test_concurrent_duplicate_joins_admit_once(self, any_pool):
        event = await make_event(any_pool)

        results = await asyncio.gather(
            *(any_pool.join(event.event_id, "u1") for _ in range(5)),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 4
        assert all(isinstance(e, DuplicateEntrantError) for e in errors)
        assert len(await any_pool.waitlist.memberships(event.event_id, "u1")) == 1

    async def test_accept_racing_decline(self, any_pool):
        event = await _invited(any_pool)

        results = await asyncio.gather(
            any_pool.accept(event.event_id, "u1"),
            any_pool.decline(event.event_id, "u1"),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1 and isinstance(losers[0], InvalidTransitionError)
        memberships = await any_pool.waitlist.memberships(event.event_id, "u1")
        assert [e.status for e in memberships] == [winners[0].status]

    async def test_gathered_join_leave_rounds_match_reference(self, any_pool):
        event = await make_event(any_pool)
        rng = random.Random(31)
        users = [f"u{i}" for i in range(6)]
        expected: set[str] = set()

        for _ in range(25):
            ops = {user_id: rng.choice(["join", "leave"]) for user_id in users}
            results = await asyncio.gather(
                *(getattr(any_pool, op)(event.event_id, user_id) for user_id, op in ops.items()),
                return_exceptions=True,
            )
            for (user_id, op), result in zip(ops.items(), results):
                if op == "join" and user_id in expected:
                    assert isinstance(result, DuplicateEntrantError)
                elif op == "leave" and user_id not in expected:
                    assert isinstance(result, NotFoundError)
                else:
                    assert not isinstance(result, Exception), result
                    if op == "join":
                        expected.add(user_id)
                    else:
                        expected.discard(user_id)

        buckets = await any_pool.waitlist.read_buckets(event.event_id)
        assert sorted(e.user_id for e in buckets[EntrantStatus.waiting]) == sorted(expected)
        assert _placements(buckets) == Counter(expected)


@pytest.mark.asyncio
class TestRandomisedSequences:
    async def test_join_leave_sequence_matches_reference(self, pool):
        event = await make_event(pool)
        rng = random.Random(77)
        users = [f"u{i}" for i in range(6)]
        expected: set[str] = set()

        for _ in range(200):
            user_id = rng.choice(users)
            if rng.random() < 0.5:
                if user_id in expected:
                    with pytest.raises(DuplicateEntrantError):
                        await pool.join(event.event_id, user_id)
                else:
                    await pool.join(event.event_id, user_id)
                    expected.add(user_id)
            elif user_id in expected:
                await pool.leave(event.event_id, user_id)
                expected.discard(user_id)
            else:
                with pytest.raises(NotFoundError):
                    await pool.leave(event.event_id, user_id)

        waiting = await pool.list_bucket(event.event_id, EntrantStatus.waiting)
        assert sorted(e.user_id for e in waiting) == sorted(expected)
        assert await pool.waiting_count(event.event_id) == len(expected)
