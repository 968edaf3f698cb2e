"""Day-scoped tracking of which experiences a party has already used."""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .clock import ResortClock
from .kvdb import KeyValueStore
from .models import Booking, Guests, IneligibleReason, LightningLane

LOGGER = structlog.get_logger(__name__)

BOOKINGS_KEY = "bg1/genie/bookings"


class Identified(Protocol):
    """Anything carrying an experience id: catalog entries, experiences, bookings."""

    @property
    def id(self) -> str:
        ...


class EligibilitySource(Protocol):
    async def guests(self, experience_id: Optional[str] = None, park_id: Optional[str] = None) -> Guests:
        ...


class BookingTrackerData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: str
    exp_ids: List[str] = Field(default_factory=list, alias="expIds")
    experienced_exp_ids: List[str] = Field(default_factory=list, alias="experiencedExpIds")


class BookingTracker:
    """Remembers which experience slots are used up for the operational day.

    State is loaded from the key-value store on construction and written back
    after every ``update``.  A change of operational day wipes it.
    """

    def __init__(self, store: KeyValueStore, clock: ResortClock):
        self._store = store
        self._clock = clock
        data = self._load()
        self.date = data.date
        self.exp_ids = set(data.exp_ids)
        self.experienced_exp_ids = set(data.experienced_exp_ids)
        self._check_date()

    def _load(self) -> BookingTrackerData:
        raw = self._store.get(BOOKINGS_KEY)
        if raw:
            try:
                return BookingTrackerData.model_validate(raw)
            except ValidationError:
                LOGGER.warning("tracker.invalid_state", key=BOOKINGS_KEY)
        return BookingTrackerData(date=self._clock.park_day())

    def experienced(self, experience: Identified) -> bool:
        """Return True if experienced or expired."""
        return experience.id in self.experienced_exp_ids

    async def update(self, bookings: Sequence[Booking], client: EligibilitySource) -> None:
        """Reconcile tracked ids with a fresh booking list and persist the result.

        Nothing is assigned back to the tracker until every eligibility query
        for a vanished booking has returned.
        """
        self._check_date()
        experienced = set(self.experienced_exp_ids)
        cancellable = [b for b in bookings if isinstance(b, LightningLane) and b.cancellable]
        for booking in cancellable:
            if booking.modifiable:
                experienced.discard(booking.id)
            else:
                experienced.add(booking.id)

        exp_ids = {booking.id for booking in cancellable}
        for exp_id in sorted(self.exp_ids - exp_ids):
            guests = await client.guests(experience_id=exp_id)
            limit_reached = any(
                g.ineligible_reason is IneligibleReason.EXPERIENCE_LIMIT_REACHED
                for g in guests.ineligible
            )
            if limit_reached:
                experienced.add(exp_id)
            else:
                experienced.discard(exp_id)
            LOGGER.debug("tracker.vanished_booking", experience_id=exp_id, limit_reached=limit_reached)

        self.exp_ids = exp_ids
        self.experienced_exp_ids = experienced
        self._save()

    def _save(self) -> None:
        data = BookingTrackerData(
            date=self.date,
            exp_ids=sorted(self.exp_ids),
            experienced_exp_ids=sorted(self.experienced_exp_ids),
        )
        self._store.set(BOOKINGS_KEY, data.model_dump(by_alias=True))

    def _check_date(self) -> None:
        today = self._clock.park_day()
        if self.date == today:
            return
        LOGGER.info("tracker.reset", previous_date=self.date, date=today)
        self.date = today
        self.exp_ids = set()
        self.experienced_exp_ids = set()
