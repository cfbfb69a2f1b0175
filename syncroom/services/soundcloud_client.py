# syncroom/services/soundcloud_client.py
"""
SoundCloud media resolver.

Thin async wrapper over the public SoundCloud v2 API: searches tracks and
playlists and turns tracks into items with a directly playable progressive
stream URL. This is a collaborator of the room engine, not part of it.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import httpx

from syncroom.core.errors import ResolverError, ResolverNotConfigured
from syncroom.core.logging import get_logger
from syncroom.models.models import PlaylistItem, TrackItem

logger = get_logger(__name__)

PLAYLIST_PAGE_SIZE = 200


def is_compact_track(track: Dict[str, Any]) -> bool:
    """Playlist pages may list tracks with just an id; those need a full fetch."""
    return not track.get("media") and not track.get("permalink_url")


def _artwork(obj: Dict[str, Any]) -> Optional[str]:
    return obj.get("artwork_url") or (obj.get("user") or {}).get("avatar_url") or None


def track_to_item(track: Dict[str, Any], stream_url: Optional[str]) -> TrackItem:
    return TrackItem(
        id=track["id"],
        title=track.get("title"),
        username=(track.get("user") or {}).get("username"),
        artwork_url=_artwork(track),
        permalink_url=track.get("permalink_url"),
        duration_ms=track.get("duration"),
        stream_url=stream_url,
    )


def playlist_to_item(playlist: Dict[str, Any]) -> PlaylistItem:
    return PlaylistItem(
        id=playlist["id"],
        title=playlist.get("title"),
        username=(playlist.get("user") or {}).get("username"),
        artwork_url=_artwork(playlist),
        permalink_url=playlist.get("permalink_url"),
        track_count=playlist.get("track_count") or 0,
    )


class SoundCloudClient:
    """
    Async SoundCloud API client.

    Args:
        client_id: SoundCloud client id; every call fails with
            ResolverNotConfigured while it is empty
        base_url: API root
        http: Optional preconfigured httpx.AsyncClient (tests pass one
            built on httpx.MockTransport)
    """

    def __init__(
        self,
        client_id: str,
        base_url: str = "https://api-v2.soundcloud.com",
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.client_id = client_id
        self.base_url = base_url.rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=10.0)

    async def close(self) -> None:
        await self._http.aclose()

    def _require_client_id(self) -> str:
        if not self.client_id:
            raise ResolverNotConfigured("SOUNDCLOUD_CLIENT_ID is not configured on the server")
        return self.client_id

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self._http.get(url, params=params)
        except httpx.HTTPError as e:
            raise ResolverError(f"SoundCloud request failed: {e}") from e

        if response.is_error:
            logger.error("SoundCloud API error %s: %s", response.status_code, response.text[:200])
            raise ResolverError("SoundCloud API error", status_code=response.status_code)
        return response.json()

    async def resolve_stream_url(self, media: Optional[Dict[str, Any]]) -> Optional[str]:
        """
        Resolve the progressive (plain MP3) transcoding to its final URL.

        Returns None when the track has no progressive transcoding or the
        lookup fails; a missing stream is not an error for the caller.
        """
        client_id = self._require_client_id()
        transcodings = (media or {}).get("transcodings")
        if not isinstance(transcodings, list):
            return None

        progressive = next(
            (t for t in transcodings if (t.get("format") or {}).get("protocol") == "progressive"),
            None,
        )
        if not progressive or not progressive.get("url"):
            return None

        try:
            data = await self._get_json(progressive["url"], params={"client_id": client_id})
        except ResolverError as e:
            logger.warning("SoundCloud progressive resolve failed: %s", e)
            return None

        if isinstance(data, dict) and isinstance(data.get("url"), str):
            return data["url"]
        return None

    async def _to_items(self, tracks: List[Dict[str, Any]]) -> List[TrackItem]:
        async def one(track: Dict[str, Any]) -> TrackItem:
            stream_url = await self.resolve_stream_url(track.get("media"))
            return track_to_item(track, stream_url)

        return list(await asyncio.gather(*(one(t) for t in tracks)))

    async def search_tracks(self, query: str, limit: int = 5) -> List[TrackItem]:
        client_id = self._require_client_id()
        data = await self._get_json(
            f"{self.base_url}/search/tracks",
            params={"q": query, "client_id": client_id, "limit": limit},
        )
        return await self._to_items(data.get("collection") or [])

    async def search_playlists(self, query: str, limit: int = 5) -> List[PlaylistItem]:
        client_id = self._require_client_id()
        data = await self._get_json(
            f"{self.base_url}/search/playlists",
            params={"q": query, "client_id": client_id, "limit": limit},
        )
        return [playlist_to_item(p) for p in data.get("collection") or []]

    async def fetch_track(self, track_id: int) -> Optional[Dict[str, Any]]:
        client_id = self._require_client_id()
        try:
            return await self._get_json(
                f"{self.base_url}/tracks/{track_id}", params={"client_id": client_id}
            )
        except ResolverError:
            return None

    async def get_playlist_tracks(self, playlist_id: str) -> List[TrackItem]:
        """
        Return every track of a playlist, following ``next_href`` pages.

        Compact track stubs are hydrated one by one before their stream URL
        is resolved.
        """
        client_id = self._require_client_id()

        tracks: List[Dict[str, Any]] = []
        url: Optional[str] = f"{self.base_url}/playlists/{playlist_id}"
        params: Optional[Dict[str, Any]] = {
            "client_id": client_id,
            "representation": "full",
            "linked_partitioning": 1,
            "limit": PLAYLIST_PAGE_SIZE,
        }

        while url:
            data = await self._get_json(url, params=params)
            batch: List[Dict[str, Any]] = []
            next_href: Optional[str] = None

            page = data.get("tracks")
            if isinstance(page, list):
                batch = page
            elif isinstance(page, dict) and isinstance(page.get("collection"), list):
                batch = page["collection"]
                next_href = page.get("next_href")
            elif isinstance(data.get("collection"), list):
                batch = data["collection"]
                next_href = data.get("next_href")

            tracks.extend(batch)
            url = next_href if isinstance(next_href, str) and next_href else None
            # next_href already carries the paging query; only add the client id if it's missing
            params = None if url is None or "client_id=" in url else {"client_id": client_id}

        hydrated: List[Dict[str, Any]] = []
        for track in tracks:
            if is_compact_track(track) and track.get("id"):
                track = await self.fetch_track(track["id"]) or track
            hydrated.append(track)

        logger.info("Resolved playlist %s: %d tracks", playlist_id, len(hydrated))
        return await self._to_items(hydrated)
