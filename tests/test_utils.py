import pytest

from civic_reporter.utils import (
    haversine_meters,
    new_id,
    parse_coordinate,
    parse_location,
    validate_email,
)


def test_haversine_one_degree_of_longitude_at_equator():
    distance = haversine_meters({'lat': 0, 'lng': 0}, {'lat': 0, 'lng': 1})
    assert distance == pytest.approx(111195, rel=1e-3)


def test_haversine_zero_for_same_point():
    point = {'lat': 28.6139, 'lng': 77.2090}
    assert haversine_meters(point, point) == 0


def test_haversine_short_city_distance():
    # Roughly 0.004 degrees of latitude is about 445 m
    a = {'lat': 19.0760, 'lng': 72.8777}
    b = {'lat': 19.0800, 'lng': 72.8777}
    assert haversine_meters(a, b) == pytest.approx(444.8, abs=1)


def test_parse_coordinate():
    assert parse_coordinate('12.5') == 12.5
    assert parse_coordinate(3) == 3.0
    assert parse_coordinate(None) is None
    assert parse_coordinate('abc') is None
    assert parse_coordinate(True) is None
    assert parse_coordinate('nan') is None


def test_parse_location():
    assert parse_location(None) is None
    assert parse_location({'lat': '10', 'lng': 20}) == {'lat': 10.0, 'lng': 20.0}
    with pytest.raises(ValueError):
        parse_location({'lat': 91, 'lng': 0})
    with pytest.raises(ValueError):
        parse_location({'lat': 10})
    with pytest.raises(ValueError):
        parse_location([10, 20])


def test_validate_email():
    assert validate_email('someone@example.com')
    assert validate_email('first.last+tag@city.gov.in')
    assert not validate_email('no-at-sign')
    assert not validate_email('')
    assert not validate_email(None)


def test_new_id_is_unique():
    ids = {new_id() for _ in range(200)}
    assert len(ids) == 200
