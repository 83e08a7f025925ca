# app.py
import logging, secrets, time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional
from urllib.parse import urlencode

import requests
import uvicorn
from fastapi import APIRouter, Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel
from starlette.middleware.sessions import SessionMiddleware

import spotify_api
import spotify_oauth
from cache import LRUCache
from config import Settings, load_settings
from errors import AuthenticationRequired, ImageToMusicError, InputError, upstream_error_from
from recommender import Recommender
from sessions import IDENTITY_COOKIE, SESSION_COOKIE, InMemorySessionStore, ResolvedSession, SessionContinuity
from tokens import CredentialRecord, TokenLifecycleManager
from vision import GoogleVisionClient, build_analysis

logger = logging.getLogger(__name__)
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

analysis = APIRouter(prefix="/api/analysis", tags=["analysis"])
spotify = APIRouter(prefix="/api/spotify", tags=["spotify"])

# ------------------ request bodies ------------------

class AnalyzeBody(BaseModel):
    imageId: Optional[str] = None

class RecommendBody(BaseModel):
    keywords: List[str] = []
    colors: List[str] = []
    emotion: Optional[str] = None

class SearchBody(BaseModel):
    title: Optional[str] = None
    artist: Optional[str] = None

class LikeBody(BaseModel):
    trackId: Optional[str] = None

class CreatePlaylistBody(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None

class AddTracksBody(BaseModel):
    playlistId: Optional[str] = None
    trackIds: List[str] = []

# ------------------ tiny utils ------------------

@contextmanager
def _upstream(what: str):
    try:
        yield
    except requests.RequestException as e:
        logger.error("%s: %s", what, e)
        raise upstream_error_from(e, what) from e

def _auth_redirect(**params) -> RedirectResponse:
    return RedirectResponse(f"/?{urlencode(params)}", status_code=302)

# ------------------ auth dependencies ------------------

def current_session(request: Request) -> ResolvedSession:
    resolved = request.app.state.continuity.resolve(request.session, request.cookies)
    if resolved is None:
        raise AuthenticationRequired()
    return resolved

def fresh_credentials(request: Request, resolved: ResolvedSession = Depends(current_session)) -> CredentialRecord:
    return request.app.state.tokens.ensure_fresh_token(resolved.credentials, resolved.session_id)

# ------------------ routes: analysis ------------------

@analysis.post("/upload")
async def upload(request: Request, image: Optional[UploadFile] = File(None)):
    settings: Settings = request.app.state.settings
    if image is None:
        raise InputError("No image file uploaded")
    if not (image.content_type or "").startswith("image/"):
        raise InputError("Only image files are allowed!")
    data = await image.read()
    if not data:
        raise InputError("Uploaded image is empty")
    if len(data) > settings.max_upload_bytes:
        raise InputError("Image is larger than the 5 MB limit", status_code=413)

    image_id = secrets.token_urlsafe(16)
    request.app.state.images.put(image_id, data)
    logger.info("stored upload %s (%d bytes)", image_id, len(data))
    return {"message": "Image uploaded successfully", "imageId": image_id}

@analysis.post("/analyze")
def analyze(body: AnalyzeBody, request: Request):
    state = request.app.state
    image_id = (body.imageId or "").strip()
    if not image_id:
        raise InputError("No image id provided")

    cached = state.analyses.get(image_id)
    if cached is not None:
        logger.info("returning cached analysis for %s", image_id)
        return cached.to_dict()

    data = state.images.get(image_id)
    if data is None:
        raise InputError("Image not found", status_code=404)

    result = build_analysis(state.vision.annotate(data))
    state.analyses.put(image_id, result)
    logger.info("analyzed %s: keywords=%s", image_id, list(result.keywords))
    return result.to_dict()

@analysis.post("/recommend")
def recommend(body: RecommendBody, request: Request):
    keywords = [k.strip() for k in body.keywords if k and k.strip()]
    if not keywords:
        raise InputError("No keywords provided")
    recs = request.app.state.recommender.recommend(keywords, body.colors, body.emotion)
    return {"recommendations": recs}

# ------------------ routes: oauth ------------------

@spotify.get("/login")
def login(request: Request):
    state = secrets.token_urlsafe(16)
    request.session["oauth_state"] = state
    return RedirectResponse(spotify_oauth.auth_url(state, request.app.state.settings), status_code=302)

@spotify.get("/callback")
def callback(request: Request, code: Optional[str] = None, state: Optional[str] = None,
             error: Optional[str] = None):
    app_state = request.app.state
    settings: Settings = app_state.settings
    expected = request.session.pop("oauth_state", None)

    if error:
        logger.info("provider returned auth error %s", error)
        return _auth_redirect(auth_error=error)
    if not code:
        return _auth_redirect(auth_error="missing_code")
    if not expected or state != expected:
        logger.warning("oauth state mismatch on callback")
        return _auth_redirect(auth_error="state_mismatch")

    try:
        tokens = spotify_oauth.exchange_code_for_token(code, settings)
        profile = spotify_api.me(tokens["access_token"])
        record = CredentialRecord.from_login(profile, tokens, now=app_state.clock())
    except (requests.RequestException, KeyError, ValueError) as e:
        logger.error("login exchange failed: %s", e)
        return _auth_redirect(auth_error="token_exchange_failed")

    app_state.continuity.login(request.session, record)
    logger.info("user %s logged in", record.subject_id)
    resp = _auth_redirect(auth_status="success")
    resp.set_cookie(IDENTITY_COOKIE, record.subject_id, max_age=settings.session_max_age,
                    httponly=True, samesite="lax", secure=settings.production)
    return resp

@spotify.get("/user")
def user(creds: CredentialRecord = Depends(fresh_credentials)):
    return creds.public_profile()

@spotify.get("/logout")
def logout(request: Request):
    request.app.state.continuity.logout(request.session, request.cookies)
    resp = RedirectResponse("/", status_code=302)
    resp.delete_cookie(IDENTITY_COOKIE)
    return resp

# ------------------ routes: spotify data ------------------

@spotify.post("/search")
def search(body: SearchBody, creds: CredentialRecord = Depends(fresh_credentials)):
    if not (body.title or "").strip():
        raise InputError("Title is required")
    with _upstream("Error searching Spotify"):
        tracks = spotify_api.search_tracks(creds.access_token, body.title.strip(), (body.artist or "").strip() or None)
    return {"tracks": tracks}

@spotify.post("/like")
def like(body: LikeBody, creds: CredentialRecord = Depends(fresh_credentials)):
    if not body.trackId:
        raise InputError("Track ID is required")
    with _upstream("Error adding track to Liked Songs"):
        spotify_api.like_track(creds.access_token, body.trackId)
    return {"success": True, "message": "Track added to Liked Songs"}

@spotify.get("/playlists")
def playlists(creds: CredentialRecord = Depends(fresh_credentials)):
    with _upstream("Error fetching playlists"):
        items = spotify_api.list_playlists(creds.access_token, creds.subject_id)
    return {"playlists": items}

@spotify.post("/playlist/create")
def create_playlist(body: CreatePlaylistBody, request: Request,
                    creds: CredentialRecord = Depends(fresh_credentials)):
    if not (body.name or "").strip():
        raise InputError("Playlist name is required")
    public = request.app.state.settings.playlist_public
    with _upstream("Error creating playlist"):
        playlist = spotify_api.create_playlist(creds.access_token, creds.subject_id,
                                               body.name.strip(), body.description, public)
    return {"success": True, "playlist": playlist}

@spotify.post("/playlist/add")
def add_to_playlist(body: AddTracksBody, creds: CredentialRecord = Depends(fresh_credentials)):
    if not body.playlistId:
        raise InputError("Playlist ID is required")
    if not body.trackIds:
        raise InputError("At least one track ID is required")
    with _upstream("Error adding tracks to playlist"):
        res = spotify_api.add_tracks(creds.access_token, body.playlistId, body.trackIds)
    if not res["added"]:
        raise InputError("None of the track IDs are valid Spotify IDs")
    return {"success": True, "message": f"Added {res['added']} tracks to playlist",
            "snapshotId": res["snapshot_id"]}

# ------------------ app ------------------

def create_app(settings: Optional[Settings] = None, *, vision_client=None,
               token_refresher: Optional[Callable[[str], dict]] = None,
               session_store: Optional[InMemorySessionStore] = None,
               recommender: Optional[Recommender] = None,
               clock: Callable[[], float] = time.time) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    app = FastAPI(title="ImageToMusic")
    app.add_middleware(SessionMiddleware, secret_key=settings.session_secret,
                       session_cookie=SESSION_COOKIE, max_age=settings.session_max_age,
                       same_site="lax", https_only=settings.production)

    store = session_store if session_store is not None else InMemorySessionStore()
    refresher = token_refresher or (lambda rt: spotify_oauth.refresh_token(rt, settings))

    app.state.settings = settings
    app.state.clock = clock
    app.state.sessions = store
    app.state.continuity = SessionContinuity(store)
    app.state.tokens = TokenLifecycleManager(refresher, store=store, clock=clock)
    app.state.vision = vision_client or GoogleVisionClient(settings)
    app.state.images = LRUCache(settings.image_cache_size)
    app.state.analyses = LRUCache(settings.analysis_cache_size)
    app.state.recommender = recommender or Recommender(
        settings.openai_api_key, settings.openai_model, LRUCache(settings.recommendation_cache_size))

    @app.exception_handler(ImageToMusicError)
    async def _app_error(request: Request, exc: ImageToMusicError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _bad_body(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": "Invalid request body", "details": str(exc.errors())}, status_code=400)

    @app.exception_handler(requests.RequestException)
    async def _upstream_error(request: Request, exc: requests.RequestException):
        err = upstream_error_from(exc)
        logger.error("%s %s -> upstream %s", request.method, request.url.path, err.status_code)
        return JSONResponse(err.to_dict(), status_code=err.status_code)

    @app.get("/", response_class=HTMLResponse)
    def home(request: Request):
        return templates.TemplateResponse(request, "index.html", {})

    @app.get("/api/health")
    def health(request: Request):
        return {
            "status": "OK",
            "environment": settings.environment,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "vision": request.app.state.vision.is_initialized(),
        }

    app.include_router(analysis)
    app.include_router(spotify)
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("app:app", host="0.0.0.0", port=app.state.settings.port)
