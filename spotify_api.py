# spotify_api.py
import re
from typing import List, Optional

import requests

SPOTIFY_API = "https://api.spotify.com/v1"

# ------------------ tiny utils ------------------

def _bearer_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}

def _json_headers(token: str) -> dict:
    return {**_bearer_headers(token), "Content-Type": "application/json"}

def _sanitize_id(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    tid = str(raw)
    if tid.startswith("spotify:track:"):
        tid = tid.split(":")[-1]
    tid = re.sub(r"\s+", "", tid)
    return tid if re.fullmatch(r"[A-Za-z0-9]{22}", tid) else None

def _first_image(images) -> Optional[str]:
    return (images or [{}])[0].get("url")

# ------------------ profile ------------------

def me(access: str) -> dict:
    r = requests.get(f"{SPOTIFY_API}/me", headers=_bearer_headers(access), timeout=15)
    r.raise_for_status()
    return r.json()

# ------------------ tracks ------------------

def search_tracks(access: str, title: str, artist: Optional[str] = None, limit: int = 5) -> List[dict]:
    q = f"track:{title}"
    if artist:
        q += f" artist:{artist}"
    r = requests.get(f"{SPOTIFY_API}/search", headers=_bearer_headers(access),
                     params={"q": q, "type": "track", "limit": limit}, timeout=15)
    r.raise_for_status()
    items = (r.json().get("tracks") or {}).get("items", []) or []
    out = []
    for t in items:
        if not t: continue
        album = t.get("album") or {}
        out.append({
            "id": t.get("id"),
            "name": t.get("name"),
            "artists": ", ".join(a.get("name", "") for a in (t.get("artists") or [])),
            "album": album.get("name"),
            "image": _first_image(album.get("images")),
            "uri": t.get("uri"),
            "previewUrl": t.get("preview_url"),
        })
    return out

def like_track(access: str, track_id: str) -> None:
    r = requests.put(f"{SPOTIFY_API}/me/tracks", headers=_json_headers(access),
                     json={"ids": [track_id]}, timeout=15)
    r.raise_for_status()

# ------------------ playlist ops ------------------

def list_playlists(access: str, owner_id: str, limit: int = 50) -> List[dict]:
    r = requests.get(f"{SPOTIFY_API}/me/playlists", headers=_bearer_headers(access),
                     params={"limit": limit}, timeout=15)
    r.raise_for_status()
    out = []
    for p in r.json().get("items", []) or []:
        if not p: continue
        out.append({
            "id": p.get("id"),
            "name": p.get("name"),
            "image": _first_image(p.get("images")),
            "trackCount": (p.get("tracks") or {}).get("total", 0),
            "isOwner": (p.get("owner") or {}).get("id") == owner_id,
        })
    return out

def create_playlist(access: str, user_id: str, name: str, desc: Optional[str], public: bool) -> dict:
    r = requests.post(f"{SPOTIFY_API}/users/{user_id}/playlists",
                      headers=_json_headers(access),
                      json={"name": name, "description": desc or "Created by ImageToMusic", "public": public},
                      timeout=15)
    r.raise_for_status()
    p = r.json()
    return {
        "id": p["id"],
        "name": p.get("name"),
        "image": _first_image(p.get("images")),
        "external_url": (p.get("external_urls") or {}).get("spotify"),
    }

def add_tracks(access: str, playlist_id: str, track_ids: List[str]) -> dict:
    uris = [f"spotify:track:{tid}" for tid in (_sanitize_id(i) for i in track_ids) if tid]
    snapshot = None
    # the endpoint takes at most 100 uris per call
    for i in range(0, len(uris), 100):
        r = requests.post(f"{SPOTIFY_API}/playlists/{playlist_id}/tracks",
                          headers=_json_headers(access),
                          json={"uris": uris[i:i+100]}, timeout=15)
        r.raise_for_status()
        snapshot = r.json().get("snapshot_id")
    return {"snapshot_id": snapshot, "added": len(uris)}
