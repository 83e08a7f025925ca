import json
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from fastapi.testclient import TestClient

import spotify_api
import spotify_oauth
from app import create_app
from config import Settings
from sessions import InMemorySessionStore


def make_response(status_code: int, body=None, url: str = "https://example.test/") -> requests.Response:
    resp = requests.Response()
    resp.status_code = status_code
    resp.reason = "OK" if status_code < 400 else "Error"
    resp.url = url
    resp.headers["Content-Type"] = "application/json"
    resp._content = json.dumps(body).encode() if body is not None else b""
    return resp


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeVision:
    def __init__(self, payload=None):
        self.payload = payload or VISION_PAYLOAD
        self.calls = 0

    def is_initialized(self) -> bool:
        return True

    def annotate(self, image_bytes: bytes) -> dict:
        self.calls += 1
        return self.payload


class FakeRefresher:
    def __init__(self, tokens=None, error=None):
        self.tokens = tokens or {"access_token": "new-access", "expires_in": 3600}
        self.error = error
        self.calls = []

    def __call__(self, refresh_token: str) -> dict:
        self.calls.append(refresh_token)
        if self.error is not None:
            raise self.error
        return dict(self.tokens)


class FakeRecommender:
    def __init__(self, recs=None):
        self.recs = recs if recs is not None else [
            {"title": "Here Comes the Sun", "artist": "The Beatles", "mood": "happy", "reason": "sunny sky"},
        ]
        self.calls = []

    def recommend(self, keywords, colors=(), emotion=None):
        self.calls.append((list(keywords), list(colors), emotion))
        return self.recs


VISION_PAYLOAD = {
    "labelAnnotations": [
        {"description": "Sky", "score": 0.97},
        {"description": "Cloud", "score": 0.95},
        {"description": "Beach", "score": 0.90},
        {"description": "Smile", "score": 0.88},
        {"description": "Sea", "score": 0.85},
        {"description": "Sand", "score": 0.80},
    ],
    "imagePropertiesAnnotation": {"dominantColors": {"colors": [
        {"color": {"red": 30, "green": 120, "blue": 230}, "score": 0.4, "pixelFraction": 0.3},
        {"color": {"red": 250, "green": 250, "blue": 250}, "score": 0.3, "pixelFraction": 0.2},
        {"color": {"red": 230, "green": 200, "blue": 40}, "score": 0.2, "pixelFraction": 0.1},
    ]}},
    "faceAnnotations": [
        {"joyLikelihood": "VERY_LIKELY", "sorrowLikelihood": "VERY_UNLIKELY",
         "angerLikelihood": "VERY_UNLIKELY", "surpriseLikelihood": "UNLIKELY"},
    ],
}

PROFILE = {"id": "user1", "display_name": "Test User", "email": "test@example.com"}


@pytest.fixture
def settings():
    return Settings(
        session_secret="test-secret",
        spotify_client_id="client-id",
        spotify_client_secret="client-secret",
        spotify_redirect_uri="http://testserver/api/spotify/callback",
        openai_api_key="sk-test",
    )

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def vision():
    return FakeVision()

@pytest.fixture
def refresher():
    return FakeRefresher()

@pytest.fixture
def recommender():
    return FakeRecommender()

@pytest.fixture
def store():
    return InMemorySessionStore()

@pytest.fixture
def client(settings, vision, refresher, recommender, store, clock):
    app = create_app(settings, vision_client=vision, token_refresher=refresher,
                     session_store=store, recommender=recommender, clock=clock)
    return TestClient(app)

@pytest.fixture
def login(client, monkeypatch):
    """Run the OAuth round trip against fakes; returns the token dict that was issued."""
    def _login(expires_in=3600, refresh_token="refresh-1"):
        tokens = {"access_token": "access-1", "expires_in": expires_in}
        if refresh_token:
            tokens["refresh_token"] = refresh_token
        monkeypatch.setattr(spotify_oauth, "exchange_code_for_token", lambda code, settings=None: dict(tokens))
        monkeypatch.setattr(spotify_api, "me", lambda access: dict(PROFILE))

        r = client.get("/api/spotify/login", follow_redirects=False)
        state = parse_qs(urlparse(r.headers["location"]).query)["state"][0]
        r = client.get("/api/spotify/callback", params={"code": "abc", "state": state}, follow_redirects=False)
        assert r.headers["location"] == "/?auth_status=success"
        return tokens
    return _login
