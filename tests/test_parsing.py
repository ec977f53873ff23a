import pytest

from citygrid.geo import GeoPoint
from citygrid.geocode_client import GeocodeError, parse_geocode_response
from citygrid.places_client import PlacesResponseError, build_nearby_search_body, parse_places_response


def test_parse_places_missing_fields():
    response = {
        "places": [
            {"id": "p1"},
            {"id": "p2", "displayName": {"text": "Name", "languageCode": "en"}},
            {
                "id": "p3",
                "location": {"latitude": 1.0, "longitude": 2.0},
                "rating": 4.5,
                "userRatingCount": 12,
                "websiteUri": "https://p3.example",
                "formattedAddress": "1 Main St",
            },
            {"displayName": {"text": "no-id"}},
        ]
    }

    parsed = parse_places_response(response)
    assert [p.id for p in parsed] == ["p1", "p2", "p3"]
    assert parsed[0].display_name is None
    assert parsed[0].rating is None
    assert parsed[0].lat is None
    assert parsed[1].display_name == "Name"
    assert parsed[2].lat == 1.0
    assert parsed[2].lng == 2.0
    assert parsed[2].user_rating_count == 12
    assert parsed[2].website_uri == "https://p3.example"


def test_parse_places_empty_response():
    assert parse_places_response({}) == []


@pytest.mark.parametrize("payload", [{"places": {"id": "p1"}}, {"places": ["p1"]}])
def test_parse_places_malformed(payload):
    with pytest.raises(PlacesResponseError):
        parse_places_response(payload)


def test_nearby_body_shape():
    body = build_nearby_search_body(GeoPoint(52.2, 21.0), ["restaurant", "cafe"], 3000)
    assert body == {
        "includedTypes": ["restaurant", "cafe"],
        "locationRestriction": {
            "circle": {"center": {"latitude": 52.2, "longitude": 21.0}, "radius": 3000}
        },
    }


def test_geocode_prefers_bounds_over_viewport():
    response = {
        "status": "OK",
        "results": [
            {
                "geometry": {
                    "bounds": {
                        "southwest": {"lat": 10.0, "lng": 20.0},
                        "northeast": {"lat": 10.05, "lng": 20.05},
                    },
                    "viewport": {
                        "southwest": {"lat": 9.0, "lng": 19.0},
                        "northeast": {"lat": 11.0, "lng": 21.0},
                    },
                }
            }
        ],
    }
    bbox = parse_geocode_response(response, "Town")
    assert bbox.southwest == GeoPoint(10.0, 20.0)
    assert bbox.northeast == GeoPoint(10.05, 20.05)


def test_geocode_falls_back_to_viewport():
    response = {
        "results": [
            {
                "geometry": {
                    "viewport": {
                        "southwest": {"lat": 9.0, "lng": 19.0},
                        "northeast": {"lat": 11.0, "lng": 21.0},
                    }
                }
            }
        ]
    }
    bbox = parse_geocode_response(response, "Town")
    assert bbox.southwest == GeoPoint(9.0, 19.0)


def test_geocode_zero_results_is_fatal():
    with pytest.raises(GeocodeError) as excinfo:
        parse_geocode_response({"status": "ZERO_RESULTS", "results": []}, "Nowhere")
    assert "Nowhere" in str(excinfo.value)


@pytest.mark.parametrize(
    "place",
    [
        {"id": "a", "location": "oops"},
        {"id": "a", "location": [1.0, 2.0]},
        {"id": "a", "userRatingCount": {"x": 1}},
        {"id": "a", "userRatingCount": "many"},
        {"id": "a", "displayName": ["x"]},
    ],
)
def test_parse_places_malformed_fields(place):
    with pytest.raises(PlacesResponseError):
        parse_places_response({"places": [place]})


def test_parse_places_plain_string_display_name():
    parsed = parse_places_response({"places": [{"id": "a", "displayName": "Plain"}]})
    assert parsed[0].display_name == "Plain"
