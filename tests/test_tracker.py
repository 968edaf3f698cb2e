from __future__ import annotations

import asyncio

import pytest

from factories import at
from genie_client.models import (
    DateTime,
    EntitledGuest,
    ExperienceData,
    Guest,
    Guests,
    IneligibleReason,
    LightningLane,
    LightningLaneSubtype,
    Park,
)
from genie_client.tracker import BOOKINGS_KEY, BookingTracker

PARK = Park(id="80007944", name="Magic Kingdom")


def lightning_lane(exp_id, *, modifiable, cancellable=True):
    return LightningLane(
        subtype=LightningLaneSubtype.GENIE_PLUS,
        id=exp_id,
        name=exp_id,
        park=PARK,
        start=DateTime(date="2026-10-17", time="11:00:00"),
        end=DateTime(date="2026-10-17", time="23:59:59"),
        cancellable=cancellable,
        modifiable=modifiable,
        booking_id=f"fp-{exp_id}",
        guests=[EntitledGuest(id="g1", name="Mickey", entitlement_id=f"ent-{exp_id}")],
    )


def exp(exp_id):
    return ExperienceData(id=exp_id, name=exp_id, type="ATTRACTION", park=PARK)


class FakeEligibility:
    """Answers guest eligibility lookups with a per-experience limit flag."""

    def __init__(self, limit_reached=()):
        self.limit_reached = set(limit_reached)
        self.queried = []

    async def guests(self, experience_id=None, park_id=None):
        self.queried.append(experience_id)
        if experience_id in self.limit_reached:
            reason = IneligibleReason.EXPERIENCE_LIMIT_REACHED
        else:
            reason = IneligibleReason.TOO_EARLY
        return Guests(ineligible=[Guest(id="g1", name="Mickey", ineligible_reason=reason)])


def test_fresh_tracker_is_empty(store, clock):
    tracker = BookingTracker(store, clock)
    assert tracker.date == "2026-10-17"
    assert tracker.exp_ids == set()
    assert tracker.experienced(exp("A")) is False


def test_non_modifiable_booking_marks_experience_used(store, clock):
    tracker = BookingTracker(store, clock)
    source = FakeEligibility()

    asyncio.run(tracker.update([lightning_lane("A", modifiable=False), lightning_lane("B", modifiable=True)], source))

    assert tracker.experienced(exp("A")) is True
    assert tracker.experienced(exp("B")) is False
    assert tracker.exp_ids == {"A", "B"}
    assert source.queried == []


def test_modifiable_again_clears_experienced(store, clock):
    tracker = BookingTracker(store, clock)
    source = FakeEligibility()
    asyncio.run(tracker.update([lightning_lane("A", modifiable=False)], source))
    asyncio.run(tracker.update([lightning_lane("A", modifiable=True)], source))
    assert tracker.experienced(exp("A")) is False


def test_non_cancellable_bookings_are_ignored(store, clock):
    tracker = BookingTracker(store, clock)
    asyncio.run(tracker.update([lightning_lane("A", modifiable=False, cancellable=False)], FakeEligibility()))
    assert tracker.exp_ids == set()
    assert tracker.experienced(exp("A")) is False


def test_vanished_bookings_are_resolved_by_eligibility(store, clock):
    tracker = BookingTracker(store, clock)
    asyncio.run(
        tracker.update(
            [lightning_lane("A", modifiable=True), lightning_lane("C", modifiable=True), lightning_lane("B", modifiable=False)],
            FakeEligibility(),
        )
    )

    source = FakeEligibility(limit_reached={"C"})
    asyncio.run(tracker.update([], source))

    assert source.queried == ["A", "B", "C"]
    assert tracker.experienced(exp("A")) is False
    assert tracker.experienced(exp("B")) is False
    assert tracker.experienced(exp("C")) is True
    assert tracker.exp_ids == set()


def test_state_survives_reload(store, clock):
    tracker = BookingTracker(store, clock)
    asyncio.run(tracker.update([lightning_lane("A", modifiable=False), lightning_lane("B", modifiable=True)], FakeEligibility()))

    assert store.get(BOOKINGS_KEY) == {"date": "2026-10-17", "expIds": ["A", "B"], "experiencedExpIds": ["A"]}
    reloaded = BookingTracker(store, clock)
    assert reloaded.exp_ids == {"A", "B"}
    assert reloaded.experienced(exp("A")) is True
    assert reloaded.experienced(exp("B")) is False


def test_state_resets_on_new_park_day(store, clock):
    store.set(BOOKINGS_KEY, {"date": "2026-10-16", "expIds": ["A"], "experiencedExpIds": ["A"]})
    tracker = BookingTracker(store, clock)
    assert tracker.date == "2026-10-17"
    assert tracker.exp_ids == set()
    assert tracker.experienced(exp("A")) is False


def test_state_resets_during_update_after_rollover(store, clock):
    clock.set(at(2, 30, day=18))
    tracker = BookingTracker(store, clock)
    asyncio.run(tracker.update([lightning_lane("A", modifiable=False)], FakeEligibility()))
    assert tracker.date == "2026-10-17"

    clock.set(at(3, 0, day=18))
    source = FakeEligibility(limit_reached={"A"})
    asyncio.run(tracker.update([], source))

    assert tracker.date == "2026-10-18"
    assert source.queried == []
    assert tracker.experienced(exp("A")) is False


def test_invalid_state_falls_back_to_empty(store, clock):
    store.set(BOOKINGS_KEY, {"expIds": "not-a-list"})
    tracker = BookingTracker(store, clock)
    assert tracker.date == "2026-10-17"
    assert tracker.experienced_exp_ids == set()


class FailingEligibility(FakeEligibility):
    async def guests(self, experience_id=None, park_id=None):
        self.queried.append(experience_id)
        raise RuntimeError("eligibility lookup failed")


def test_failed_eligibility_query_leaves_state_untouched(store, clock):
    tracker = BookingTracker(store, clock)
    asyncio.run(tracker.update([lightning_lane("A", modifiable=False)], FakeEligibility()))

    with pytest.raises(RuntimeError):
        asyncio.run(tracker.update([lightning_lane("B", modifiable=False)], FailingEligibility()))

    assert tracker.exp_ids == {"A"}
    assert tracker.experienced_exp_ids == {"A"}
    assert store.get(BOOKINGS_KEY) == {"date": "2026-10-17", "expIds": ["A"], "experiencedExpIds": ["A"]}

    source = FakeEligibility()
    asyncio.run(tracker.update([], source))

    assert source.queried == ["A"]
    assert tracker.experienced(exp("A")) is False
    assert store.get(BOOKINGS_KEY)["experiencedExpIds"] == []


def test_locked_booking_that_vanishes_at_its_limit_stays_experienced(store, clock):
    tracker = BookingTracker(store, clock)
    asyncio.run(tracker.update([lightning_lane("A", modifiable=False)], FakeEligibility()))
    assert tracker.experienced(exp("A")) is True

    source = FakeEligibility(limit_reached={"A"})
    asyncio.run(tracker.update([], source))

    assert source.queried == ["A"]
    assert tracker.experienced(exp("A")) is True
    assert BookingTracker(store, clock).experienced(exp("A")) is True


def test_locked_booking_that_vanishes_below_its_limit_is_cleared(store, clock):
    tracker = BookingTracker(store, clock)
    asyncio.run(tracker.update([lightning_lane("A", modifiable=False)], FakeEligibility()))

    asyncio.run(tracker.update([], FakeEligibility()))

    assert tracker.experienced(exp("A")) is False


def test_bookings_answer_experienced_lookups(store, clock):
    tracker = BookingTracker(store, clock)
    booking = lightning_lane("A", modifiable=False)
    asyncio.run(tracker.update([booking], FakeEligibility()))
    assert tracker.experienced(booking) is True
