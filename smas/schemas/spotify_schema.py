# smas/schemas/spotify_schema.py
from pydantic import BaseModel
from typing import Any, Dict, Optional


def _first_image(images: Optional[list]) -> Optional[str]:
    if not images:
        return None
    return images[0].get("url")


class SpotifyProfile(BaseModel):
    id: str
    display_name: str = ""
    email: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SpotifyProfile":
        return cls(
            id=data["id"],
            display_name=data.get("display_name") or data["id"],
            email=data.get("email"),
            image_url=_first_image(data.get("images")),
        )


class SpotifyTrack(BaseModel):
    id: str
    uri: str
    name: str
    artist: str = "Unknown Artist"
    album: str = "Unknown Album"
    image_url: Optional[str] = None
    duration_ms: Optional[int] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SpotifyTrack":
        artists = data.get("artists") or []
        album = data.get("album") or {}
        return cls(
            id=data["id"],
            uri=data.get("uri") or f"spotify:track:{data['id']}",
            name=data.get("name", ""),
            artist=artists[0].get("name", "Unknown Artist") if artists else "Unknown Artist",
            album=album.get("name") or "Unknown Album",
            image_url=_first_image(album.get("images")),
            duration_ms=data.get("duration_ms"),
        )


class SpotifyPlaylist(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    owner_id: Optional[str] = None
    track_total: int = 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SpotifyPlaylist":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            description=data.get("description") or None,
            owner_id=(data.get("owner") or {}).get("id"),
            track_total=(data.get("tracks") or {}).get("total", 0),
        )
