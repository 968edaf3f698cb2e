"""Guest eligibility classification and the session guest cache."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import structlog

from .avatar import avatar_url
from .models import Guest, Guests, IneligibleReason
from .schemas import ApiGuest

LOGGER = structlog.get_logger(__name__)

# Guests with these reasons may not really belong to the party yet.
UNCONFIRMED_REASONS = {
    IneligibleReason.INVALID_PARK_ADMISSION,
    IneligibleReason.PARK_RESERVATION_NEEDED,
    IneligibleReason.GENIE_PLUS_NEEDED,
}


@dataclass(frozen=True)
class CachedGuest:
    name: str
    character_id: Optional[str]


def _reason(value: Optional[str]) -> Optional[IneligibleReason]:
    if not value:
        return None
    try:
        return IneligibleReason(value)
    except ValueError:
        LOGGER.warning("eligibility.unknown_reason", reason=value)
        return None


def _reason_rank(reason: Optional[IneligibleReason]) -> int:
    if reason is IneligibleReason.EXPERIENCE_LIMIT_REACHED:
        return 0
    if reason is IneligibleReason.NOT_IN_PARTY:
        return 2
    return 1


def ineligible_sort_key(guest: Guest) -> Tuple:
    """Sort key for ineligible guests.

    Primary guest first, then guests with an ``eligible_after`` time (earliest
    first), then by reason (limit reached first, not in party last), then by
    name.  The id breaks ties between same-named guests.
    """
    if guest.eligible_after:
        timing: Tuple = (0, guest.eligible_after, 0)
    else:
        timing = (1, "", _reason_rank(guest.ineligible_reason))
    return (not guest.primary, *timing, guest.name.casefold(), guest.name, guest.id)


class GuestClassifier:
    """Session-scoped guest state: party filter, guest cache and primary guest."""

    def __init__(self, avatar: Callable[[Optional[str]], Optional[str]] = avatar_url):
        self._avatar = avatar
        self.party_ids: set[str] = set()
        self.guest_cache: Dict[str, CachedGuest] = {}
        self.primary_guest_id = ""

    def reset(self) -> None:
        self.party_ids = set()
        self.guest_cache = {}
        self.primary_guest_id = ""

    def set_party_ids(self, party_ids: Iterable[str]) -> None:
        self.party_ids = set(party_ids)

    def cached(self, guest_id: str) -> Optional[CachedGuest]:
        return self.guest_cache.get(guest_id)

    def convert_guest(self, guest: ApiGuest) -> Guest:
        name = f"{guest.first_name} {guest.last_name}".strip()
        reason = _reason(guest.ineligible_reason)
        eligible_after = guest.eligible_after
        if guest.id not in self.guest_cache and (guest.primary or reason not in UNCONFIRMED_REASONS):
            self.guest_cache[guest.id] = CachedGuest(name=name, character_id=guest.character_id)
        if self.party_ids and guest.id not in self.party_ids:
            reason = IneligibleReason.NOT_IN_PARTY
            eligible_after = None
        return Guest(
            id=guest.id,
            name=name,
            primary=guest.primary,
            avatar_image_url=self._avatar(guest.character_id),
            ineligible_reason=reason,
            eligible_after=eligible_after,
        )

    def convert_guests(self, guests: Optional[Iterable[ApiGuest]]) -> List[Guest]:
        return [self.convert_guest(guest) for guest in guests or []]

    def classify(self, eligible: Iterable[ApiGuest], ineligible: Iterable[ApiGuest]) -> Guests:
        """Split guests into eligible and ineligible buckets.

        A reason on a guest from the eligible list (from upstream or from the
        party filter) moves it to the ineligible bucket.
        """
        result = Guests(ineligible=self.convert_guests(ineligible))
        for guest in self.convert_guests(eligible):
            if guest.ineligible_reason is None:
                result.eligible.append(guest)
            else:
                result.ineligible.append(guest)
        result.ineligible.sort(key=ineligible_sort_key)
        return result
