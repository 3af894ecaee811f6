import pytest

from route_safety.errors import MalformedInputError
from route_safety.models import GeoPoint
from route_safety.polyline import decode, encode

REFERENCE = "_p~iF~ps|U_ulLnnqC_mqNvxq`@"


def test_decode_reference_polyline() -> None:
    points = decode(REFERENCE)

    assert points == [
        GeoPoint(lat=38.5, lng=-120.2),
        GeoPoint(lat=40.7, lng=-120.95),
        GeoPoint(lat=43.252, lng=-126.453),
    ]


def test_encode_reference_points() -> None:
    points = [
        GeoPoint(lat=38.5, lng=-120.2),
        GeoPoint(lat=40.7, lng=-120.95),
        GeoPoint(lat=43.252, lng=-126.453),
    ]
    assert encode(points) == REFERENCE


def test_round_trip_within_precision() -> None:
    points = [
        GeoPoint(lat=37.56651, lng=126.97801),
        GeoPoint(lat=37.56652, lng=126.97899),
        GeoPoint(lat=-33.86882, lng=151.20930),
        GeoPoint(lat=0.0, lng=0.0),
        GeoPoint(lat=-0.00001, lng=179.99999),
    ]
    decoded = decode(encode(points))

    assert len(decoded) == len(points)
    for original, restored in zip(points, decoded):
        assert abs(original.lat - restored.lat) <= 1e-5
        assert abs(original.lng - restored.lng) <= 1e-5


def test_decode_empty_string_returns_no_points() -> None:
    assert decode("") == []
    assert encode([]) == ""


def test_decode_returns_materialized_list() -> None:
    points = decode(REFERENCE)
    assert isinstance(points, list)
    assert list(points) == list(points)


def test_decode_rejects_truncated_group() -> None:
    with pytest.raises(MalformedInputError):
        decode("_p~iF~ps|U_")


def test_decode_rejects_latitude_without_longitude() -> None:
    with pytest.raises(MalformedInputError):
        decode("_p~iF")


def test_decode_rejects_characters_outside_alphabet() -> None:
    with pytest.raises(MalformedInputError):
        decode("_p~iF ps|U")


def test_malformed_input_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        decode("~")
