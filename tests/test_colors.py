import itertools

import pytest

from colors import COLOR_NAMES, classify_color, hex_to_rgb, hsb, rgb_to_hex

GRAYS = ["black", "dark gray", "gray", "white"]


@pytest.mark.parametrize("rgb,name", [
    ((0, 0, 0), "black"),
    ((100, 100, 100), "dark gray"),
    ((150, 150, 150), "gray"),
    ((255, 255, 255), "white"),
    ((255, 0, 0), "red"),
    ((100, 0, 0), "dark red"),
    ((255, 165, 0), "orange"),
    ((110, 60, 20), "brown"),
    ((255, 255, 0), "yellow"),
    ((100, 100, 0), "olive"),
    ((0, 200, 0), "green"),
    ((0, 100, 0), "dark green"),
    ((0, 255, 255), "cyan"),
    ((0, 100, 100), "teal"),
    ((0, 0, 255), "blue"),
    ((0, 0, 100), "navy"),
    ((128, 0, 255), "purple"),
    ((64, 0, 100), "dark purple"),
    ((255, 0, 255), "pink"),
    ((100, 0, 100), "dark pink"),
    ((40, 0, 0), "dark"),
    ((255, 235, 240), "light gray"),
])
def test_classify_color_named_examples(rgb, name):
    assert classify_color(*rgb) == name

def test_accepts_floats():
    assert classify_color(254.6, 0.2, 0.0) == "red"
    assert classify_color(99.9, 100.2, 100.0) == "dark gray"

def test_total_over_the_cube():
    for rgb in itertools.product(range(0, 256, 15), repeat=3):
        assert classify_color(*rgb) in COLOR_NAMES

def test_grays_are_monotonic_in_lightness():
    triples = []
    for v in range(256):
        triples.append((v, v, v))
        triples.append((v, min(255, v + 10), max(0, v - 5)))
    triples.sort(key=lambda t: sum(t))
    ranks = [GRAYS.index(classify_color(*t)) for t in triples]
    assert ranks == sorted(ranks)

def test_hue_wraps_around_red():
    assert classify_color(255, 0, 10) == classify_color(255, 0, 0) == "red"
    assert hsb(255, 0, 10)[0] == 358

def test_hsb_components():
    hue, sat, bri = hsb(0, 0, 255)
    assert hue == 240 and sat == 1.0 and bri == 1.0
    assert hsb(0, 0, 0) == (0, 0.0, 0.0)

def test_rgb_to_hex_rounds_half_up_and_clamps():
    assert rgb_to_hex(255, 0, 10) == "#ff000a"
    assert rgb_to_hex(12.5, 0.49, 254.5) == "#0d00ff"
    assert rgb_to_hex(300, -4, None) == "#ff0000"

def test_hex_round_trip_within_one():
    for r, g, b in itertools.product([0, 0.4, 17.5, 127.49, 200.7, 254.51, 255], repeat=3):
        back = hex_to_rgb(rgb_to_hex(r, g, b))
        for got, want in zip(back, (r, g, b)):
            assert abs(got - want) <= 1

def test_hex_to_rgb_accepts_both_forms():
    assert hex_to_rgb("#0D00FF") == (13, 0, 255)
    assert hex_to_rgb("0d00ff") == (13, 0, 255)
    with pytest.raises(ValueError):
        hex_to_rgb("#12345")
