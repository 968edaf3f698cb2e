from __future__ import annotations

import pytest

from factories import at, fastpass_item, fp_guest, itinerary
from genie_client.itinerary import ItineraryNormalizer, id_num
from genie_client.models import (
    BoardingGroup,
    BoardingGroupStatus,
    BookingType,
    DasBooking,
    DasSubtype,
    DateTime,
    LightningLane,
    LightningLaneSubtype,
    ParkPass,
    Reservation,
    ReservationSubtype,
)
from genie_client.schemas import Itinerary


def normalize(resort, clock, graph, primary_guest_id=""):
    normalizer = ItineraryNormalizer(resort, clock, primary_guest_id=primary_guest_id)
    return normalizer.normalize(Itinerary.model_validate(graph))


def test_id_num_truncates_composite_ids():
    assert id_num("80010208;entityType=Attraction") == "80010208"
    assert id_num("80010208") == "80010208"


def test_modifiable_genie_plus_booking(resort, clock):
    [booking] = normalize(resort, clock, itinerary(fastpass_item()))

    assert isinstance(booking, LightningLane)
    assert booking.type is BookingType.LIGHTNING_LANE
    assert booking.subtype is LightningLaneSubtype.GENIE_PLUS
    assert booking.id == "80010208"
    assert booking.name == "Jungle Cruise"
    assert booking.park.name == "Magic Kingdom"
    assert booking.start == DateTime(date="2026-10-17", time="11:00:00")
    assert booking.end == DateTime(date="2026-10-17", time="23:59:59")
    assert booking.cancellable is True
    assert booking.modifiable is True
    assert booking.booking_id == "fp1"
    assert [(g.id, g.name, g.entitlement_id) for g in booking.guests] == [
        ("g1", "Mickey Mouse", "ent1"),
        ("g2", "Minnie Mouse", "ent2"),
    ]
    assert booking.guests[0].booking_id == "booking-ent1"
    assert booking.guests[0].avatar_image_url.endswith("/15597760.png")


def test_modifiable_flag_from_upstream_is_respected(resort, clock):
    [booking] = normalize(resort, clock, itinerary(fastpass_item(modifiable=False)))
    assert booking.modifiable is False
    assert booking.cancellable is True


@pytest.mark.parametrize(
    "moment, expected",
    [
        (at(23, 59, 59), True),
        (at(0, 0, 0, day=18), False),
        (at(9, 0, 0, day=16), True),
    ],
)
def test_modifiable_window_ends_at_end_time(resort, clock, moment, expected):
    clock.set(moment)
    [booking] = normalize(resort, clock, itinerary(fastpass_item()))
    assert booking.modifiable is expected


def test_only_genie_plus_is_cancellable_or_modifiable(resort, clock):
    [booking] = normalize(resort, clock, itinerary(fastpass_item(kind="STANDARD")))
    assert booking.subtype is LightningLaneSubtype.INDIVIDUAL
    assert booking.cancellable is False
    assert booking.modifiable is False


def test_unknown_kind_is_skipped(resort, clock):
    assert normalize(resort, clock, itinerary(fastpass_item(kind="MYSTERY"))) == []


def test_fully_redeemed_and_duplicate_guests_are_dropped(resort, clock):
    item = fastpass_item(
        guests=[
            fp_guest("g1", "ent1", redemptionsRemaining=0, redemptionsAllowed=1),
            fp_guest("g2", "ent2", redemptionsRemaining=3, redemptionsAllowed=2),
            fp_guest("g2", "ent2-dup"),
            fp_guest("g3", "ent3", redemptionsRemaining=1),
            fp_guest("g4", "ent4"),
        ]
    )
    [booking] = normalize(resort, clock, itinerary(item))

    assert [g.id for g in booking.guests] == ["g2", "g3", "g4"]
    assert [g.redemptions for g in booking.guests] == [2, 1, None]
    assert booking.guests[0].entitlement_id == "ent2"
    assert booking.guests[1].transactional is True


def test_booking_without_redeemable_guests_is_dropped(resort, clock):
    item = fastpass_item(guests=[fp_guest("g1", "ent1", redemptionsRemaining=0)])
    assert normalize(resort, clock, itinerary(item)) == []


def test_past_start_collapses_to_park_day(resort, clock):
    item = fastpass_item(kind="STANDARD", displayStartDate="2026-10-15", displayStartTime="09:00:00")
    [booking] = normalize(resort, clock, itinerary(item))
    assert booking.start == DateTime(date="2026-10-17")


def test_park_day_lags_calendar_day_after_midnight(resort, clock):
    clock.set(at(1, 30, day=18))
    item = fastpass_item(displayStartDate="2026-10-17", displayEndDate="2026-10-18", displayEndTime="02:00:00")
    [booking] = normalize(resort, clock, itinerary(item))
    assert booking.start == DateTime(date="2026-10-17", time="11:00:00")
    assert booking.modifiable is True


def test_unknown_experience_gets_placeholder(resort, clock):
    item = fastpass_item(facility="99999;entityType=Attraction")
    [booking] = normalize(resort, clock, itinerary(item))
    assert booking.id == "99999"
    assert booking.name == "Mystery Ride"
    assert booking.park.id == "77777"
    assert booking.park.name == ""
    assert booking.park.geo is None
    assert booking.park.theme.bg == "bg-blue-500"


def test_multi_experience_booking_uses_original_choice(resort, clock):
    item = fastpass_item(
        kind="OTHER",
        multipleExperiences=True,
        cancellable=True,
        modifiable=True,
        assets=[
            {"content": "80010153;entityType=Attraction", "excluded": False, "original": False},
            {"content": "80010190;entityType=Attraction", "excluded": False, "original": True},
            {"content": "80010208;entityType=Attraction", "excluded": True, "original": False},
        ],
    )
    [booking] = normalize(resort, clock, itinerary(item))

    assert booking.subtype is LightningLaneSubtype.MULTI_EXPERIENCE
    assert booking.id == "80010190"
    assert booking.name == "Haunted Mansion"
    assert [choice.name for choice in booking.choices] == ["Space Mountain"]
    assert booking.cancellable is False
    assert booking.modifiable is False


def test_multi_experience_choices_are_sorted(resort, clock):
    item = fastpass_item(
        multipleExperiences=True,
        assets=[
            {"content": "80010153;entityType=Attraction"},
            {"content": "80010208;entityType=Attraction"},
            {"content": "80010190;entityType=Attraction"},
        ],
    )
    [booking] = normalize(resort, clock, itinerary(item))
    assert (booking.id, booking.name) == ("", "")
    assert [c.id for c in booking.choices] == ["80010190", "80010208", "80010153"]


@pytest.mark.parametrize(
    "kind, subtype, cancellable",
    [("DAS", DasSubtype.IN_PARK, True), ("FDS", DasSubtype.ADVANCE, False)],
)
def test_das_bookings(resort, clock, kind, subtype, cancellable):
    [booking] = normalize(resort, clock, itinerary(fastpass_item(kind=kind)))
    assert isinstance(booking, DasBooking)
    assert booking.type is BookingType.DAS
    assert booking.subtype is subtype
    assert booking.cancellable is cancellable
    assert booking.modifiable is False


def test_reservation_guest_order_and_park(resort, clock):
    item = {
        "id": "res1",
        "type": "DINING",
        "startDateTime": "2026-10-17T17:30:00-04:00",
        "asset": "90001;entityType=restaurant",
        "guests": [{"id": "g2;type=xid"}, {"id": "g4;type=xid"}, {"id": "g3;type=xid"}, {"id": "g1;type=xid"}],
    }
    [res] = normalize(resort, clock, itinerary(item), primary_guest_id="g1")

    assert isinstance(res, Reservation)
    assert res.subtype is ReservationSubtype.DINING
    assert res.id == "90001"
    assert res.name == "Be Our Guest Restaurant"
    assert res.park.name == "Magic Kingdom"
    assert res.start == DateTime(date="2026-10-17", time="17:30:00")
    assert [g.name for g in res.guests] == ["Mickey Mouse", "Chip", "Minnie Mouse", "Donald Duck"]


def test_reservation_in_unknown_park_uses_park_asset_name(resort, clock):
    item = {
        "id": "res2",
        "type": "ACTIVITY",
        "startDateTime": "2026-10-17T21:00:00Z",
        "asset": "90002;entityType=restaurant",
        "guests": [{"id": "g1;type=xid"}],
    }
    [res] = normalize(resort, clock, itinerary(item))
    assert res.subtype is ReservationSubtype.ACTIVITY
    assert res.park.id == "77777"
    assert res.park.name == "New Park"
    assert res.start == DateTime(date="2026-10-17", time="17:00:00")


def test_boarding_group(resort, clock):
    item = {
        "id": "bg1",
        "type": "VIRTUAL_QUEUE_POSITION",
        "status": "SUMMONED",
        "startDateTime": "2026-10-17T13:00:00-04:00",
        "boardingGroup": {"id": 42},
        "asset": "vq1",
        "guests": [{"id": "g1;type=xid"}],
    }
    [bg] = normalize(resort, clock, itinerary(item))

    assert isinstance(bg, BoardingGroup)
    assert bg.type is BookingType.BOARDING_GROUP
    assert bg.id == "411504498"
    assert bg.name == "TRON Lightcycle / Run"
    assert bg.park.name == "TRON"
    assert bg.boarding_group == 42
    assert bg.status is BoardingGroupStatus.SUMMONED


def test_park_pass(resort, clock):
    graph = itinerary(
        fastpass_item("pp1", kind="PARK_PASS", facility="pp-mk"),
        fastpass_item("pp2", kind="PARK_PASS", facility="pp-unknown"),
    )
    graph["assets"]["pp-mk"] = {"id": "pp-mk", "name": "Park Pass", "location": "80007944;entityType=theme-park"}
    graph["assets"]["pp-unknown"] = {"id": "pp-unknown", "name": "Park Pass", "location": "77777"}

    [park_pass] = normalize(resort, clock, graph)

    assert isinstance(park_pass, ParkPass)
    assert park_pass.type is BookingType.PARK_PASS
    assert park_pass.id == "80007944"
    assert park_pass.name == "Magic Kingdom"
    assert park_pass.start == DateTime(date="2026-10-17", time="06:00:00")
    assert park_pass.booking_id == "pp1"


def test_bad_items_are_dropped_without_aborting(resort, clock):
    graph = itinerary(
        fastpass_item("broken", facility="missing-asset"),
        {"id": "weird", "type": None},
        {"id": "no-guests-profile", "type": "DINING", "startDateTime": "2026-10-17T12:00:00Z",
         "asset": "90001;entityType=restaurant", "guests": [{"id": "nobody"}]},
        "not an item",
        fastpass_item("ok"),
    )
    bookings = normalize(resort, clock, graph)
    assert [b.booking_id for b in bookings] == ["ok"]
