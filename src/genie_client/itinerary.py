"""Normalization of the raw itinerary graph into typed bookings."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Type, TypeVar

import structlog
from pydantic import BaseModel

from .avatar import avatar_url
from .clock import ResortClock
from .errors import NormalizationError, UnknownId
from .models import (
    BoardingGroup,
    BoardingGroupStatus,
    Booking,
    DasBooking,
    DasSubtype,
    DateTime,
    EntitledGuest,
    ExperienceRef,
    Guest,
    LightningLane,
    LightningLaneSubtype,
    Park,
    ParkPass,
    Reservation,
    ReservationSubtype,
    is_modifiable,
)
from .resort import Resort
from .schemas import (
    Asset,
    BoardingGroupItem,
    FastPassItem,
    ItemGuest,
    Itinerary,
    Profile,
    ReservationItem,
)

LOGGER = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

RESERVATION_TYPES = {"DINING", "ACTIVITY"}
LL_KIND_SUBTYPES = {
    "FLEX": LightningLaneSubtype.GENIE_PLUS,
    "STANDARD": LightningLaneSubtype.INDIVIDUAL,
    "OTHER": LightningLaneSubtype.OTHER,
}
DAS_KIND_SUBTYPES = {"DAS": DasSubtype.IN_PARK, "FDS": DasSubtype.ADVANCE}
PARK_PASS_TIME = "06:00:00"


def id_num(ref_id: str) -> str:
    """Strip the ``;type=...`` suffix from composite ids."""
    return ref_id.split(";")[0]


def park_or_placeholder(resort: Resort, park_id: Optional[str]) -> Park:
    park_id = id_num(park_id or "")
    try:
        return resort.park(park_id)
    except UnknownId:
        return Park(id=park_id, name="")


def experience_or_placeholder(
    resort: Resort,
    experience_id: str,
    park_id: Optional[str],
    name: Optional[str] = None,
) -> ExperienceRef:
    experience_id = id_num(experience_id)
    try:
        exp = resort.experience(experience_id)
    except UnknownId:
        return ExperienceRef(
            id=experience_id,
            name=name or "Experience",
            park=park_or_placeholder(resort, park_id),
        )
    return ExperienceRef(id=experience_id, name=exp.name, park=exp.park)


class ReferenceMap(Generic[M]):
    """Id lookup into one of the itinerary's loosely typed maps."""

    def __init__(self, kind: str, raw: Mapping[str, Any], model: Type[M]):
        self._kind = kind
        self._raw = raw
        self._model = model
        self._parsed: Dict[str, M] = {}

    def get(self, ref_id: Optional[str]) -> Optional[M]:
        if not ref_id or ref_id not in self._raw:
            return None
        if ref_id not in self._parsed:
            self._parsed[ref_id] = self._model.model_validate(self._raw[ref_id])
        return self._parsed[ref_id]

    def require(self, ref_id: Optional[str]) -> M:
        value = self.get(ref_id)
        if value is None:
            raise NormalizationError(f"{self._kind} {ref_id!r} is missing from the itinerary")
        return value


@dataclass
class RefreshContext:
    """Everything one normalization pass reads, captured once per refresh."""

    assets: ReferenceMap[Asset]
    profiles: ReferenceMap[Profile]
    today: str
    park_day: str
    now: DateTime


@dataclass
class FastPassCore:
    experience: ExperienceRef
    start: DateTime
    end: DateTime
    guests: List[EntitledGuest]


class ItineraryNormalizer:
    """Turns itinerary items into bookings, dropping items that fail."""

    def __init__(
        self,
        resort: Resort,
        clock: ResortClock,
        *,
        primary_guest_id: str = "",
        avatar: Callable[[Optional[str]], Optional[str]] = avatar_url,
    ):
        self._resort = resort
        self._clock = clock
        self._avatar = avatar
        self.primary_guest_id = primary_guest_id
        self._fastpass_builders: Dict[str, Callable[[FastPassItem, RefreshContext], Optional[Booking]]] = {
            "PARK_PASS": self._park_pass,
            "DAS": self._das_booking,
            "FDS": self._das_booking,
        }

    def normalize(self, itinerary: Itinerary) -> List[Booking]:
        ctx = RefreshContext(
            assets=ReferenceMap("asset", itinerary.assets, Asset),
            profiles=ReferenceMap("profile", itinerary.profiles, Profile),
            today=self._clock.today(),
            park_day=self._clock.park_day(),
            now=self._clock.now(),
        )
        bookings: List[Booking] = []
        for raw in itinerary.items:
            try:
                booking = self._build(raw, ctx)
            except Exception:  # noqa: BLE001
                LOGGER.exception(
                    "itinerary.item_failed",
                    item_id=raw.get("id") if isinstance(raw, dict) else None,
                    item_type=raw.get("type") if isinstance(raw, dict) else None,
                )
                continue
            if booking is None:
                continue
            if not booking.guests:
                LOGGER.debug("itinerary.item_without_guests", booking_id=booking.booking_id)
                continue
            bookings.append(booking)
        LOGGER.info("itinerary.normalized", items=len(itinerary.items), bookings=len(bookings))
        return bookings

    def _build(self, raw: Mapping[str, Any], ctx: RefreshContext) -> Optional[Booking]:
        item_type = raw.get("type")
        if item_type == "FASTPASS":
            item = FastPassItem.model_validate(raw)
            builder = self._fastpass_builders.get(item.kind, self._lightning_lane)
            return builder(item, ctx)
        if item_type == "VIRTUAL_QUEUE_POSITION":
            return self._boarding_group(BoardingGroupItem.model_validate(raw), ctx)
        if item_type in RESERVATION_TYPES:
            return self._reservation(ReservationItem.model_validate(raw), ctx)
        return None

    # Shared resolution

    def _guest(self, item_guest: ItemGuest, ctx: RefreshContext) -> Guest:
        profile = ctx.profiles.require(item_guest.id)
        return Guest(
            id=id_num(item_guest.id),
            name=f"{profile.name.first_name} {profile.name.last_name}".strip(),
            avatar_image_url=self._avatar(profile.avatar_id),
            transactional=profile.type == "transactional",
        )

    def _guests(self, item_guests: List[ItemGuest], ctx: RefreshContext) -> List[Guest]:
        guests: Dict[str, Guest] = {}
        for item_guest in item_guests:
            guest = self._guest(item_guest, ctx)
            guests.setdefault(guest.id, guest)
        return list(guests.values())

    def _fast_pass_core(self, item: FastPassItem, ctx: RefreshContext) -> FastPassCore:
        """Resolve the experience, start/end window and redeemable guests of a FASTPASS item."""
        exp_asset = ctx.assets.require(item.facility)
        start_date = item.display_start_date or ctx.today
        if start_date < ctx.park_day:
            start = DateTime(date=ctx.park_day)
        else:
            start = DateTime(date=start_date, time=item.display_start_time)

        seen: set[str] = set()
        guests: List[EntitledGuest] = []
        for raw_guest in item.guests:
            guest_id = id_num(raw_guest.id)
            if guest_id in seen or raw_guest.redemptions_remaining == 0:
                continue
            seen.add(guest_id)
            redemptions = None
            if raw_guest.redemptions_remaining is not None:
                allowed = 1 if raw_guest.redemptions_allowed is None else raw_guest.redemptions_allowed
                redemptions = min(raw_guest.redemptions_remaining, allowed)
            guest = self._guest(raw_guest, ctx)
            guests.append(
                EntitledGuest(
                    id=guest.id,
                    name=guest.name,
                    avatar_image_url=guest.avatar_image_url,
                    transactional=guest.transactional,
                    entitlement_id=raw_guest.entitlement_id,
                    booking_id=raw_guest.booking_id,
                    redemptions=redemptions,
                )
            )

        return FastPassCore(
            experience=experience_or_placeholder(
                self._resort, item.facility, exp_asset.location, exp_asset.name
            ),
            start=start,
            end=DateTime(date=item.display_end_date, time=item.display_end_time),
            guests=guests,
        )

    # Builders

    def _lightning_lane(self, item: FastPassItem, ctx: RefreshContext) -> Optional[LightningLane]:
        """Build a Lightning Lane booking; unknown kinds yield None."""
        if item.multiple_experiences:
            subtype = LightningLaneSubtype.MULTI_EXPERIENCE
        else:
            subtype = LL_KIND_SUBTYPES.get(item.kind)
        if subtype is None:
            LOGGER.debug("itinerary.unknown_kind", item_id=item.id, kind=item.kind)
            return None
        is_genie_plus = subtype is LightningLaneSubtype.GENIE_PLUS
        core = self._fast_pass_core(item, ctx)
        experience = core.experience
        choices = []
        if item.multiple_experiences:
            original = next((a for a in item.assets if a.original), None)
            if original is None:
                experience = ExperienceRef(id="", name="", park=experience.park)
            else:
                asset = ctx.assets.require(original.content)
                experience = experience_or_placeholder(
                    self._resort, original.content, asset.location, asset.name
                )
            for choice in item.assets:
                if choice.excluded or choice.original:
                    continue
                asset = ctx.assets.require(choice.content)
                choices.append(
                    experience_or_placeholder(self._resort, choice.content, asset.location, asset.name)
                )
            choices.sort(key=lambda ref: ref.name)

        booking = LightningLane(
            subtype=subtype,
            id=experience.id,
            name=experience.name,
            park=experience.park,
            start=core.start,
            end=core.end,
            guests=core.guests,
            booking_id=item.id,
            cancellable=item.cancellable and is_genie_plus,
            modifiable=item.modifiable and is_genie_plus,
            choices=choices,
        )
        booking.modifiable = is_modifiable(booking, ctx.now)
        return booking

    def _das_booking(self, item: FastPassItem, ctx: RefreshContext) -> DasBooking:
        subtype = DAS_KIND_SUBTYPES[item.kind]
        core = self._fast_pass_core(item, ctx)
        return DasBooking(
            subtype=subtype,
            id=core.experience.id,
            name=core.experience.name,
            park=core.experience.park,
            start=core.start,
            end=core.end,
            guests=core.guests,
            booking_id=item.id,
            cancellable=item.cancellable and subtype is DasSubtype.IN_PARK,
        )

    def _park_pass(self, item: FastPassItem, ctx: RefreshContext) -> Optional[ParkPass]:
        """Build a park pass, skipping parks missing from the catalog."""
        asset = ctx.assets.require(item.facility)
        try:
            park = self._resort.park(id_num(asset.location or ""))
        except UnknownId:
            LOGGER.warning("itinerary.unknown_park", item_id=item.id, park_id=asset.location)
            return None
        if not item.display_start_date:
            raise NormalizationError(f"park pass {item.id!r} has no start date")
        return ParkPass(
            id=park.id,
            name=park.name,
            park=park,
            start=DateTime(date=item.display_start_date, time=PARK_PASS_TIME),
            guests=self._guests(item.guests, ctx),
            booking_id=item.id,
        )

    def _reservation(self, item: ReservationItem, ctx: RefreshContext) -> Reservation:
        """Build a dining or activity reservation, primary guest first."""
        activity = ctx.assets.require(item.asset)
        facility = ctx.assets.require(activity.facility)
        park_id = facility.location or ""
        park = park_or_placeholder(self._resort, park_id)
        if park.name == "" and park_id:
            park_asset = ctx.assets.get(park_id)
            if park_asset is not None:
                park = replace(park, name=park_asset.name)
        guests = self._guests(item.guests, ctx)
        guests.sort(
            key=lambda g: (g.id != self.primary_guest_id, g.transactional, g.name.casefold(), g.name)
        )
        return Reservation(
            subtype=ReservationSubtype(item.type),
            id=id_num(item.asset),
            name=activity.name,
            park=park,
            start=self._clock.split_date_time(item.start_date_time),
            guests=guests,
            booking_id=item.id,
        )

    def _boarding_group(self, item: BoardingGroupItem, ctx: RefreshContext) -> BoardingGroup:
        vq_asset = ctx.assets.require(item.asset)
        facility = ctx.assets.require(vq_asset.facility)
        experience = experience_or_placeholder(
            self._resort, vq_asset.facility or "", facility.location, vq_asset.name
        )
        park = experience.park
        if park.name == "":
            park = replace(park, name=facility.name)
        try:
            status = BoardingGroupStatus(item.status)
        except ValueError:
            status = BoardingGroupStatus.OTHER
        return BoardingGroup(
            id=experience.id,
            name=experience.name,
            park=park,
            start=self._clock.split_date_time(item.start_date_time),
            guests=self._guests(item.guests, ctx),
            booking_id=item.id,
            boarding_group=item.boarding_group.id,
            status=status,
        )
