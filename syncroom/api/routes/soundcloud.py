# syncroom/api/routes/soundcloud.py

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query

from syncroom.api.deps import get_app_state
from syncroom.core.errors import ResolverError, ResolverNotConfigured
from syncroom.core.state import AppState
from syncroom.models.models import PlaylistTracksResponse, SearchResponse

router = APIRouter(prefix="/soundcloud", tags=["SoundCloud"])


@router.get("/search", response_model=SearchResponse)
async def search(
    q: str = "",
    limit: int = Query(5, ge=1, le=50),
    filter: Literal["tracks", "playlists"] = "tracks",
    app_state: AppState = Depends(get_app_state),
):
    """
    Search SoundCloud tracks (with playable stream URLs) or playlists.

    Raises:
        HTTPException: 400 on an empty query, 500 if no client id is
            configured, 502 if SoundCloud answers with an error
    """
    if not q.strip():
        raise HTTPException(status_code=400, detail="Query q is required")

    try:
        if filter == "playlists":
            items = await app_state.soundcloud.search_playlists(q, limit)
        else:
            items = await app_state.soundcloud.search_tracks(q, limit)
    except ResolverNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))
    except ResolverError:
        raise HTTPException(status_code=502, detail=f"Failed to fetch {filter} from SoundCloud")

    return SearchResponse(items=items, kind=filter)


@router.get("/playlists/{playlist_id}", response_model=PlaylistTracksResponse)
async def playlist_tracks(playlist_id: str, app_state: AppState = Depends(get_app_state)):
    try:
        items = await app_state.soundcloud.get_playlist_tracks(playlist_id)
    except ResolverNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))
    except ResolverError:
        raise HTTPException(status_code=502, detail="Failed to fetch playlist from SoundCloud")

    return PlaylistTracksResponse(items=items)
