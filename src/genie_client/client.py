"""Session client driving the offer, booking, cancel and modify workflow."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional
from urllib.parse import quote

import structlog

from .avatar import avatar_url
from .clock import ResortClock
from .config import Settings
from .eligibility import GuestClassifier
from .errors import ModifyNotAllowed, UnknownId
from .itinerary import ItineraryNormalizer, experience_or_placeholder
from .kvdb import KeyValueStore
from .models import (
    Booking,
    DateTime,
    EntitledGuest,
    Experience,
    Guest,
    Guests,
    LightningLane,
    LightningLaneSubtype,
    Offer,
    Park,
    is_modifiable,
)
from .resort import Resort
from .schemas import (
    ExperiencesResponse,
    GuestsResponse,
    Itinerary,
    NewBookingResponse,
    OfferResponse,
)
from .tracker import BookingTracker
from .transport import ApiClient, ApiResponse

LOGGER = structlog.get_logger(__name__)

DeviceTokenProvider = Callable[[str], Awaitable[Dict[str, Any]]]

FALLBACK_IDS = {
    "WDW": {"experience": "80010110", "park": "80007944"},
    "DLR": {"experience": "353295", "park": "330339"},
}

ITINERARY_API_NAMES = {
    "WDW": "wdw-itinerary-api",
    "DLR": "dlr-itinerary-web-api",
}

ITINERARY_ITEM_TYPES = ["FASTPASS", "DINING", "ACTIVITY", "VIRTUAL_QUEUE_POSITION"]


async def no_device_token(offer_id: str) -> Dict[str, Any]:
    return {}


def ensure_modifiable(booking: Optional[Booking], now: DateTime) -> None:
    """Raise ModifyNotAllowed unless ``booking`` is absent or still modifiable."""
    if booking is not None and not is_modifiable(booking, now):
        raise ModifyNotAllowed(f"Booking {booking.booking_id} can no longer be modified")


class GenieClient:
    """One guest session against the Lightning Lane APIs."""

    max_party_size = 12

    def __init__(
        self,
        settings: Settings,
        resort: Resort,
        *,
        api: Optional[ApiClient] = None,
        clock: Optional[ResortClock] = None,
        tracker: Optional[BookingTracker] = None,
        device_token: DeviceTokenProvider = no_device_token,
    ):
        self._settings = settings
        self._resort = resort
        self._api = api or ApiClient(settings)
        self._clock = clock or ResortClock(
            str(settings.timezone), rollover_hour=settings.park_day_rollover_hour
        )
        self._tracker = tracker or BookingTracker(KeyValueStore(settings.store_path), self._clock)
        self._device_token = device_token
        self._guests = GuestClassifier(avatar_url)
        self._cache_primed = False
        self.next_book_time: Optional[str] = None

    @property
    def primary_guest_id(self) -> str:
        return self._guests.primary_guest_id

    @property
    def tracker(self) -> BookingTracker:
        return self._tracker

    def set_on_unauthorized(self, callback: Callable[[], None]) -> None:
        """Register a callback run whenever a request comes back 401."""
        self._api.on_unauthorized = callback

    def set_party_ids(self, party_ids: Iterable[str]) -> None:
        """Restrict eligibility to the given travel party; empty means no filter."""
        self._guests.set_party_ids(party_ids)

    def reset(self) -> None:
        """Forget cached guests and the party filter, e.g. after logging out."""
        self._guests.reset()
        self._cache_primed = False
        self.next_book_time = None

    async def experiences(self, park: Park) -> List[Experience]:
        """List a park's experiences with live availability and the experienced flag."""
        await self._prime_guest_cache()
        response = await self._request(
            f"/tipboard-vas/api/v2/parks/{quote(park.id, safe='')}/experiences",
            params={"eligibilityGuestIds": ",".join(self._guests.guest_cache)},
        )
        data = ExperiencesResponse.model_validate(response.data or {})

        windows = []
        if data.eligibility is not None:
            day = data.eligibility.genie_plus_eligibility.get(self._clock.park_day())
            if day is not None:
                windows = [window.time.time for window in day.flex_eligibility_windows]
        self.next_book_time = min(windows) if windows else None

        experiences = []
        for exp in data.available_experiences:
            try:
                catalog = self._resort.experience(exp.id)
            except UnknownId:
                LOGGER.debug("experiences.unknown", experience_id=exp.id)
                continue
            experiences.append(
                Experience(
                    id=catalog.id,
                    name=catalog.name,
                    type=exp.type or catalog.type,
                    park=park,
                    standby=exp.standby,
                    flex=exp.flex,
                    individual=exp.individual,
                    virtual_queue=exp.virtual_queue,
                    additional_show_times=exp.additional_show_times,
                    experienced=self._tracker.experienced(catalog),
                )
            )
        return experiences

    async def guests(self, experience_id: Optional[str] = None, park_id: Optional[str] = None) -> Guests:
        """Fetch and classify the party's eligibility for an experience."""
        fallback = FALLBACK_IDS[self._settings.resort]
        response = await self._request(
            "/ea-vas/api/v1/guests",
            params={
                "productType": "FLEX",
                "experienceId": experience_id or fallback["experience"],
                "parkId": park_id or fallback["park"],
            },
        )
        data = GuestsResponse.model_validate(response.data or {})
        self._guests.primary_guest_id = data.primary_guest_id
        return self._guests.classify(data.guests, data.ineligible_guests)

    async def offer(
        self,
        experience: Experience,
        guests: List[Guest],
        booking_to_modify: Optional[LightningLane] = None,
    ) -> Offer:
        """Request an offer for the guests, optionally as a change to an existing booking."""
        now = self._clock.now()
        ensure_modifiable(booking_to_modify, now)
        if not guests:
            raise ValueError("An offer needs at least one guest")
        body: Dict[str, Any] = {
            "guestIds": [g.id for g in (booking_to_modify.guests if booking_to_modify else guests)],
            "ineligibleGuests": [],
            "primaryGuestId": min(g.id for g in guests),
            "parkId": experience.park.id,
            "experienceId": experience.id,
            "selectedTime": experience.flex.next_available_time if experience.flex else None,
        }
        if booking_to_modify is not None:
            body["date"] = now.date
            body["modificationType"] = _modification_type(experience.id, booking_to_modify)
            path = "/ea-vas/api/v1/products/modifications/flex/offers"
        else:
            path = "/ea-vas/api/v2/products/flex/offers"

        response = await self._request(path, method="POST", data=body, user_id=False)
        data = OfferResponse.model_validate(response.data)
        offer = data.offer
        LOGGER.info("offer.received", offer_id=offer.id, experience_id=experience.id)
        return Offer(
            id=offer.id,
            start=DateTime(date=offer.date, time=offer.start_time),
            end=DateTime(date=offer.date, time=offer.end_time),
            active=offer.status == "ACTIVE",
            changed=offer.change_status != "NONE",
            guests=Guests(
                eligible=self._guests.convert_guests(data.eligible_guests),
                ineligible=self._guests.convert_guests(data.ineligible_guests),
            ),
            experience=experience,
        )

    async def book(
        self,
        offer: Offer,
        booking_to_modify: Optional[LightningLane] = None,
        guests_to_modify: Optional[List[Guest]] = None,
    ) -> LightningLane:
        """Confirm an offer as a new booking or as a modification of ``booking_to_modify``."""
        now = self._clock.now()
        ensure_modifiable(booking_to_modify, now)
        modify_ids = {g.id for g in (guests_to_modify if guests_to_modify is not None else offer.guests.eligible)}
        body: Dict[str, Any] = {"offerId": offer.id}
        body.update(await self._device_token(offer.id))
        if booking_to_modify is not None:
            body.update(
                date=now.date,
                modificationType=_modification_type(offer.experience.id, booking_to_modify),
                existingEntitlements=[
                    {"entitlementId": g.entitlement_id, "entitlementBookingId": g.booking_id}
                    for g in booking_to_modify.guests
                    if g.id in modify_ids
                ],
                guestIdsToExclude=[g.id for g in booking_to_modify.guests if g.id not in modify_ids],
            )
            path = "/ea-vas/api/v2/products/modifications/flex/bookings"
        else:
            path = "/ea-vas/api/v2/products/flex/bookings"

        response = await self._request(path, method="POST", data=body, key="booking", user_id=False)
        data = NewBookingResponse.model_validate(response.data)
        details = data.single_experience_details
        experience = experience_or_placeholder(self._resort, details.experience_id, details.park_id)
        guests = []
        for entitlement in data.entitlements:
            cached = self._guests.cached(entitlement.guest_id)
            guests.append(
                EntitledGuest(
                    id=entitlement.guest_id,
                    name=cached.name if cached else "",
                    avatar_image_url=avatar_url(cached.character_id if cached else None),
                    entitlement_id=entitlement.id,
                )
            )
        LOGGER.info(
            "booking.confirmed",
            experience_id=experience.id,
            modified=booking_to_modify is not None,
            guests=len(guests),
        )
        return LightningLane(
            subtype=LightningLaneSubtype.GENIE_PLUS,
            id=experience.id,
            name=experience.name,
            park=experience.park,
            booking_id=data.entitlements[0].id if data.entitlements else "",
            start=self._clock.split_date_time(data.start_date_time),
            end=self._clock.split_date_time(data.end_date_time),
            cancellable=True,
            modifiable=False,
            guests=guests,
        )

    async def cancel_booking(self, guests: List[EntitledGuest]) -> None:
        """Cancel the entitlements held by ``guests``."""
        ids = ",".join(quote(g.entitlement_id, safe="") for g in guests)
        LOGGER.info("booking.cancel", entitlements=len(guests))
        await self._request(f"/ea-vas/api/v1/entitlements/{ids}", method="DELETE", user_id=False)

    async def bookings(self) -> List[Booking]:
        """Fetch today's itinerary, normalize it and refresh the tracker."""
        swid = self._settings.swid
        api_name = ITINERARY_API_NAMES[self._settings.resort]
        response = await self._request(
            f"/plan/{api_name}/api/v1/itinerary-items/{quote(swid, safe='')}",
            params={
                "item-types": ITINERARY_ITEM_TYPES,
                "destination": self._settings.resort,
                "fields": "items,profiles,assets",
                "guest-locators": f"{swid};type=swid",
                "guest-locator-groups": "MY_FAMILY",
                "start-date": self._clock.today(),
                "show-friends": "false",
            },
            user_id=False,
            ignore_unauth=True,
        )
        itinerary = Itinerary.model_validate(response.data or {})
        normalizer = ItineraryNormalizer(
            self._resort,
            self._clock,
            primary_guest_id=self._guests.primary_guest_id,
            avatar=avatar_url,
        )
        bookings = normalizer.normalize(itinerary)
        await self._tracker.update(bookings, self)
        return bookings

    async def _prime_guest_cache(self) -> None:
        if self._cache_primed:
            return
        self._cache_primed = True
        await self.guests()

    async def _request(
        self,
        path: str,
        *,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
        data: Optional[Mapping[str, Any]] = None,
        key: Optional[str] = None,
        user_id: bool = True,
        ignore_unauth: bool = False,
    ) -> ApiResponse:
        if user_id:
            params = {**(params or {}), "userId": self._settings.swid}
        return await self._api.request(
            path,
            method=method,
            params=params,
            data=data,
            key=key,
            ignore_unauth=ignore_unauth,
        )


def _modification_type(experience_id: str, booking: LightningLane) -> str:
    return "TIME" if experience_id == booking.id else "EXPERIENCE"
