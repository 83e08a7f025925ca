import json

import pytest
import requests

import recommender
from cache import LRUCache
from conftest import make_response
from errors import UpstreamError
from recommender import Recommender, build_prompt, parse_recommendations


def chat_response(content):
    return make_response(200, {"choices": [{"message": {"content": content}}]})


def test_prompt_mentions_inputs():
    p = build_prompt(["Sky", "Beach"], ["blue"], "joy")
    assert "[Sky, Beach]" in p
    assert "colors [blue]" in p
    assert "happy and uplifting" in p
    assert "10 song recommendations" in p

def test_prompt_without_colors_or_emotion():
    p = build_prompt(["rain"])
    assert "colors" not in p
    assert "mood" not in p.split("into")[0]

def test_parse_fills_defaults():
    text = json.dumps({"recommendations": [{"title": "Song", "artist": ""}, "junk", {}]})
    assert parse_recommendations(text) == [
        {"title": "Song", "artist": "Unknown Artist", "mood": "Unknown Mood", "reason": "Based on image analysis"},
        {"title": "Unknown Title", "artist": "Unknown Artist", "mood": "Unknown Mood",
         "reason": "Based on image analysis"},
    ]

@pytest.mark.parametrize("text", ["", None, "not json", '{"songs": []}', '"hello"'])
def test_parse_degrades_to_empty(text):
    assert parse_recommendations(text) == []

def test_parse_accepts_fenced_and_bare_list():
    fenced = '```json\n{"recommendations": [{"title": "A", "artist": "B", "mood": "c", "reason": "d"}]}\n```'
    assert parse_recommendations(fenced)[0]["title"] == "A"
    assert parse_recommendations('[{"title": "X"}]')[0]["title"] == "X"


def test_recommend_calls_llm_once_per_input(monkeypatch):
    calls = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append(json)
        return chat_response('{"recommendations": [{"title": "Here Comes the Sun", "artist": "The Beatles"}]}')

    monkeypatch.setattr(recommender.requests, "post", fake_post)
    rec = Recommender("sk-test", cache=LRUCache(8))

    first = rec.recommend(["Sky"], ["blue"], "joy")
    second = rec.recommend(["Sky"], ["blue"], "joy")
    rec.recommend(["Sky"], ["blue"], None)

    assert first == second
    assert first[0]["artist"] == "The Beatles"
    assert len(calls) == 2
    assert calls[0]["response_format"] == {"type": "json_object"}
    assert calls[0]["messages"][0]["role"] == "system"

def test_missing_key_is_service_unavailable():
    with pytest.raises(UpstreamError) as exc:
        Recommender(None).recommend(["Sky"])
    assert exc.value.status_code == 503

def test_upstream_status_is_passed_through(monkeypatch):
    resp = make_response(429, {"error": {"message": "Rate limit reached"}})
    monkeypatch.setattr(recommender.requests, "post", lambda *a, **kw: resp)

    with pytest.raises(UpstreamError) as exc:
        Recommender("sk-test").recommend(["Sky"])
    assert exc.value.status_code == 429
    assert exc.value.to_dict() == {"error": "Error generating recommendations", "details": "Rate limit reached"}

def test_network_error_is_bad_gateway(monkeypatch):
    def boom(*a, **kw):
        raise requests.ConnectionError("no route")
    monkeypatch.setattr(recommender.requests, "post", boom)

    with pytest.raises(UpstreamError) as exc:
        Recommender("sk-test").recommend(["Sky"])
    assert exc.value.status_code == 502

def test_odd_response_shape_gives_no_recommendations(monkeypatch):
    monkeypatch.setattr(recommender.requests, "post", lambda *a, **kw: make_response(200, {"choices": []}))
    assert Recommender("sk-test").recommend(["Sky"]) == []
