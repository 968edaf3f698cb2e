"""Read-only reference catalog of parks and experiences."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping

from .errors import UnknownId
from .models import ExperienceData, Geo, Park, ParkTheme


class Resort:
    """Looks up canonical parks and experiences by id."""

    def __init__(self, resort_id: str, parks: Iterable[Park], experiences: Iterable[ExperienceData]):
        self.id = resort_id
        self.parks = list(parks)
        self._parks: Dict[str, Park] = {park.id: park for park in self.parks}
        self._experiences: Dict[str, ExperienceData] = {exp.id: exp for exp in experiences}

    def park(self, park_id: str) -> Park:
        try:
            return self._parks[park_id]
        except KeyError:
            raise UnknownId("park", park_id) from None

    def experience(self, experience_id: str) -> ExperienceData:
        try:
            return self._experiences[experience_id]
        except KeyError:
            raise UnknownId("experience", experience_id) from None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Resort":
        """Build a catalog from ``{"id", "parks": [...], "experiences": {id: {...}}}``."""
        parks = [_park_from_dict(raw) for raw in data.get("parks", [])]
        by_id = {park.id: park for park in parks}
        experiences = []
        for exp_id, raw in (data.get("experiences") or {}).items():
            park = by_id.get(raw.get("park", ""))
            if park is None:
                continue
            experiences.append(
                ExperienceData(
                    id=str(exp_id),
                    name=raw.get("name", ""),
                    type=raw.get("type", "ATTRACTION"),
                    park=park,
                )
            )
        return cls(data.get("id", "WDW"), parks, experiences)


def _park_from_dict(raw: Mapping[str, Any]) -> Park:
    geo = raw.get("geo")
    theme = raw.get("theme") or {}
    return Park(
        id=str(raw["id"]),
        name=raw.get("name", ""),
        icon=raw.get("icon", ""),
        geo=Geo(**geo) if geo else None,
        theme=ParkTheme(**theme) if theme else ParkTheme(),
        drop_times=list(raw.get("dropTimes", [])),
    )


def load_resort(path: Path) -> Resort:
    with path.open("r", encoding="utf-8") as handle:
        return Resort.from_dict(json.load(handle))
