"""Avatar image URL builder."""

from __future__ import annotations

from typing import Optional

AVATAR_BASE_URL = (
    "https://cdn1.parksmedia.wdprapps.disney.com/resize/mwImage/1/90/90/75/"
    "wdpromedia.disney.go.com/media/wdpro-assets/avatars/180x180"
)


def avatar_url(character_id: Optional[str]) -> Optional[str]:
    if not character_id:
        return None
    return f"{AVATAR_BASE_URL}/{character_id}.png"
