"""Domain models shared by the normalizer, the booking lifecycle and the tracker."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from .schemas import ApiFlex, ApiIndividual, ApiStandby, ApiVirtualQueue


class IneligibleReason(str, Enum):
    INVALID_PARK_ADMISSION = "INVALID_PARK_ADMISSION"
    PARK_RESERVATION_NEEDED = "PARK_RESERVATION_NEEDED"
    GENIE_PLUS_NEEDED = "GENIE_PLUS_NEEDED"
    EXPERIENCE_LIMIT_REACHED = "EXPERIENCE_LIMIT_REACHED"
    TOO_EARLY = "TOO_EARLY"
    TOO_EARLY_FOR_PARK_HOPPING = "TOO_EARLY_FOR_PARK_HOPPING"
    NOT_IN_PARTY = "NOT_IN_PARTY"


class BookingType(str, Enum):
    PARK_PASS = "APR"
    LIGHTNING_LANE = "LL"
    DAS = "DAS"
    RESERVATION = "RES"
    BOARDING_GROUP = "BG"


class LightningLaneSubtype(str, Enum):
    GENIE_PLUS = "G+"
    INDIVIDUAL = "ILL"
    MULTI_EXPERIENCE = "MEP"
    OTHER = "OTHER"


class DasSubtype(str, Enum):
    IN_PARK = "IN_PARK"
    ADVANCE = "ADVANCE"


class ReservationSubtype(str, Enum):
    DINING = "DINING"
    ACTIVITY = "ACTIVITY"


class BoardingGroupStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    SUMMONED = "SUMMONED"
    EXPIRED = "EXPIRED"
    RELEASED = "RELEASED"
    OTHER = "OTHER"


@dataclass(frozen=True)
class ParkTheme:
    bg: str = "bg-blue-500"
    text: str = "text-blue-500"


@dataclass(frozen=True)
class Geo:
    n: float
    s: float
    e: float
    w: float


@dataclass(frozen=True)
class Park:
    """Park entry from the reference catalog (or a placeholder for unknown ids)."""

    id: str
    name: str
    icon: str = ""
    geo: Optional[Geo] = None
    theme: ParkTheme = field(default_factory=ParkTheme)
    drop_times: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ExperienceData:
    """Catalog entry for an attraction, show or other experience."""

    id: str
    name: str
    type: str
    park: Park


@dataclass(frozen=True)
class ExperienceRef:
    """Canonical id, name and park of the experience a booking points at."""

    id: str
    name: str
    park: Park


@dataclass
class Experience:
    """Catalog data merged with live availability."""

    id: str
    name: str
    type: str
    park: Park
    standby: ApiStandby
    flex: Optional[ApiFlex] = None
    individual: Optional[ApiIndividual] = None
    virtual_queue: Optional[ApiVirtualQueue] = None
    additional_show_times: List[str] = field(default_factory=list)
    experienced: bool = False


@dataclass
class Guest:
    id: str
    name: str
    primary: bool = False
    avatar_image_url: Optional[str] = None
    transactional: bool = False
    ineligible_reason: Optional[IneligibleReason] = None
    eligible_after: Optional[str] = None


@dataclass
class EntitledGuest(Guest):
    """Guest holding one redeemable entitlement of a booking."""

    entitlement_id: str = ""
    booking_id: Optional[str] = None
    redemptions: Optional[int] = None


@dataclass
class Guests:
    eligible: List[Guest] = field(default_factory=list)
    ineligible: List[Guest] = field(default_factory=list)


@dataclass(frozen=True)
class DateTime:
    """Resort-local date and time strings (``YYYY-MM-DD`` / ``HH:MM:SS``)."""

    date: Optional[str] = None
    time: Optional[str] = None


@dataclass
class Offer:
    """A time-boxed hold on a Lightning Lane return window."""

    id: str
    start: DateTime
    end: DateTime
    active: bool
    changed: bool
    guests: Guests
    experience: Experience


@dataclass(kw_only=True)
class BaseBooking:
    id: str
    name: str
    park: Park
    start: DateTime
    guests: List[Guest]
    booking_id: str
    end: Optional[DateTime] = None
    cancellable: bool = False
    modifiable: bool = False


@dataclass(kw_only=True)
class ParkPass(BaseBooking):
    type: BookingType = field(default=BookingType.PARK_PASS, init=False)


@dataclass(kw_only=True)
class LightningLane(BaseBooking):
    type: BookingType = field(default=BookingType.LIGHTNING_LANE, init=False)
    subtype: LightningLaneSubtype
    end: DateTime = field(default_factory=DateTime)
    guests: List[EntitledGuest]
    choices: List[ExperienceRef] = field(default_factory=list)


@dataclass(kw_only=True)
class DasBooking(BaseBooking):
    type: BookingType = field(default=BookingType.DAS, init=False)
    subtype: DasSubtype
    guests: List[EntitledGuest]


@dataclass(kw_only=True)
class Reservation(BaseBooking):
    type: BookingType = field(default=BookingType.RESERVATION, init=False)
    subtype: ReservationSubtype


@dataclass(kw_only=True)
class BoardingGroup(BaseBooking):
    type: BookingType = field(default=BookingType.BOARDING_GROUP, init=False)
    boarding_group: int
    status: BoardingGroupStatus


Booking = Union[ParkPass, LightningLane, DasBooking, Reservation, BoardingGroup]


def is_modifiable(booking: BaseBooking, now: DateTime) -> bool:
    """Return True while a modifiable booking's return window has not ended.

    ``now`` must be read fresh from the clock for every check so that the
    answer flips at the day boundary.
    """
    if not booking.modifiable or booking.end is None or not booking.end.date:
        return False
    if not now.date:
        return False
    if now.date < booking.end.date:
        return True
    if now.date == booking.end.date:
        return booking.end.time is None or (now.time or "") <= booking.end.time
    return False
