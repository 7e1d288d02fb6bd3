import random

from spatialhub.geo.geocode import JITTER_WINDOW, DistrictGeocoder, geocode
from spatialhub.shared.constants import CITY_FALLBACK_CENTROID, DISTRICT_COORDS


def _within_jitter(point, center):
    half = JITTER_WINDOW / 2
    return abs(point[0] - center[0]) <= half and abs(point[1] - center[1]) <= half


def test_address_substring_match():
    lat, lng = geocode("台南市永康區中華路901號")
    assert _within_jitter((lat, lng), DISTRICT_COORDS["永康區"])


def test_district_hint_used_when_address_has_no_district():
    geocoder = DistrictGeocoder(rng=random.Random(1))
    point = geocoder.geocode("大學里", "東區")
    assert _within_jitter(point, DISTRICT_COORDS["東區"])


def test_annan_is_not_mistaken_for_south_district():
    geocoder = DistrictGeocoder(rng=random.Random(2))
    assert geocoder.match("台南市安南區海佃路") == "安南區"
    assert geocoder.match("台南市南區健康路") == "南區"


def test_unknown_address_returns_citywide_centroid():
    geocoder = DistrictGeocoder(rng=random.Random(3))
    assert geocoder.match("somewhere else") is None
    assert _within_jitter(geocoder.geocode("somewhere else"), CITY_FALLBACK_CENTROID)


def test_empty_inputs_never_fail():
    geocoder = DistrictGeocoder(rng=random.Random(4))
    assert _within_jitter(geocoder.geocode("", None), CITY_FALLBACK_CENTROID)
    assert _within_jitter(geocoder.geocode(None), CITY_FALLBACK_CENTROID)


def test_jitter_applied_on_every_call():
    geocoder = DistrictGeocoder(rng=random.Random(5))
    first = geocoder.geocode("台南市北區")
    second = geocoder.geocode("台南市北區")
    assert first != second
    assert first != DISTRICT_COORDS["北區"]


def test_seeded_geocoder_is_reproducible():
    a = DistrictGeocoder(rng=random.Random(42)).geocode("中西區")
    b = DistrictGeocoder(rng=random.Random(42)).geocode("中西區")
    assert a == b


def test_custom_table_and_zero_jitter():
    geocoder = DistrictGeocoder(table={"Alpha": (1.0, 2.0)}, fallback=(0.0, 0.0), jitter_window=0)
    assert geocoder("in Alpha town") == (1.0, 2.0)
    assert geocoder("nowhere") == (0.0, 0.0)
