"""Pydantic models for the JSON payloads exchanged with the upstream APIs."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base model accepting camelCase payloads and ignoring unknown members."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# Experiences


class ApiStandby(ApiModel):
    available: bool = False
    unavailable_reason: Optional[str] = None
    wait_time: Optional[int] = None
    next_show_time: Optional[str] = None


class ApiFlex(ApiModel):
    available: bool = False
    next_available_time: Optional[str] = None
    enrollment_start_time: Optional[str] = None
    preexisting_plan: Optional[bool] = None


class ApiIndividual(ApiModel):
    available: bool = False
    display_price: str = ""
    next_available_time: Optional[str] = None


class ApiVirtualQueue(ApiModel):
    available: bool = False
    next_available_time: Optional[str] = None


class ApiExperience(ApiModel):
    id: str
    type: str = ""
    standby: ApiStandby = Field(default_factory=ApiStandby)
    additional_show_times: List[str] = Field(default_factory=list)
    flex: Optional[ApiFlex] = None
    individual: Optional[ApiIndividual] = None
    virtual_queue: Optional[ApiVirtualQueue] = None


class FlexWindowTime(ApiModel):
    time: str
    time_display_string: str = ""
    time_status: Optional[str] = None


class FlexEligibilityWindow(ApiModel):
    time: FlexWindowTime
    guest_ids: List[str] = Field(default_factory=list)


class DayEligibility(ApiModel):
    flex_eligibility_windows: List[FlexEligibilityWindow] = Field(default_factory=list)


class Eligibility(ApiModel):
    genie_plus_eligibility: Dict[str, DayEligibility] = Field(default_factory=dict)
    guest_ids: List[str] = Field(default_factory=list)


class ExperiencesResponse(ApiModel):
    available_experiences: List[ApiExperience] = Field(default_factory=list)
    eligibility: Optional[Eligibility] = None


# Guests, offers and bookings


class ApiGuest(ApiModel):
    id: str
    first_name: str = ""
    last_name: str = ""
    primary: bool = False
    character_id: Optional[str] = None
    ineligible_reason: Optional[str] = None
    eligible_after: Optional[str] = None


class GuestsResponse(ApiModel):
    guests: List[ApiGuest] = Field(default_factory=list)
    ineligible_guests: List[ApiGuest] = Field(default_factory=list)
    primary_guest_id: str = ""


class ApiOffer(ApiModel):
    id: str
    date: str
    start_time: str
    end_time: str
    change_status: str = "NONE"
    status: str = "ACTIVE"


class OfferResponse(ApiModel):
    offer: ApiOffer
    eligible_guests: Optional[List[ApiGuest]] = None
    ineligible_guests: Optional[List[ApiGuest]] = None


class UsageDetails(ApiModel):
    status: str = "BOOKED"
    modifiable: bool = False
    redeemable: bool = False


class ApiEntitlement(ApiModel):
    id: str
    guest_id: str
    usage_details: Optional[UsageDetails] = None


class SingleExperienceDetails(ApiModel):
    experience_id: str
    park_id: str


class NewBookingResponse(ApiModel):
    id: str = "NEW_BOOKING"
    start_date_time: str
    end_date_time: str
    entitlements: List[ApiEntitlement] = Field(default_factory=list)
    single_experience_details: SingleExperienceDetails


# Itinerary


class Asset(ApiModel):
    id: str = ""
    type: str = ""
    name: str = ""
    facility: Optional[str] = None
    location: Optional[str] = None


class ProfileName(ApiModel):
    first_name: str = ""
    last_name: str = ""


class Profile(ApiModel):
    id: str = ""
    name: ProfileName = Field(default_factory=ProfileName)
    avatar_id: Optional[str] = None
    type: str = "registered"


class ItemGuest(ApiModel):
    id: str


class FastPassGuest(ItemGuest):
    booking_id: Optional[str] = None
    entitlement_id: str = ""
    redemptions_remaining: Optional[int] = None
    redemptions_allowed: Optional[int] = None


class FastPassAsset(ApiModel):
    content: str
    excluded: bool = False
    original: bool = False


class FastPassItem(ApiModel):
    id: str
    type: Literal["FASTPASS"]
    kind: str
    facility: str
    assets: List[FastPassAsset] = Field(default_factory=list)
    start_date_time: Optional[str] = None
    end_date_time: Optional[str] = None
    display_start_date: Optional[str] = None
    display_start_time: Optional[str] = None
    display_end_date: Optional[str] = None
    display_end_time: Optional[str] = None
    cancellable: bool = False
    modifiable: bool = False
    multiple_experiences: bool = False
    guests: List[FastPassGuest] = Field(default_factory=list)


class ReservationItem(ApiModel):
    id: str
    type: Literal["DINING", "ACTIVITY"]
    start_date_time: str
    guests: List[ItemGuest] = Field(default_factory=list)
    asset: str


class BoardingGroupNumber(ApiModel):
    id: int


class BoardingGroupItem(ApiModel):
    id: str
    type: Literal["VIRTUAL_QUEUE_POSITION"]
    status: str = "OTHER"
    start_date_time: str
    boarding_group: BoardingGroupNumber
    guests: List[ItemGuest] = Field(default_factory=list)
    asset: str


class Itinerary(ApiModel):
    """Raw itinerary graph; items, assets and profiles are validated lazily."""

    items: List[Any] = Field(default_factory=list)
    assets: Dict[str, Any] = Field(default_factory=dict)
    profiles: Dict[str, Any] = Field(default_factory=dict)
