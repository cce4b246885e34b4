"""Tests for the geocoding adapter, driven through httpx.MockTransport."""

import asyncio

import httpx

from location_intelligence.core.clients.geocoding import GeocodeProvider, parse_geocode_payload
from location_intelligence.core.models import Coordinates, ProviderStatus


def _ok_payload(lat=-16.7286, lng=-43.8582, locality="Montes Claros", state="MG"):
    return {
        "status": "OK",
        "results": [{
            "formatted_address": f"Centro, {locality} - {state}, Brazil",
            "geometry": {"location": {"lat": lat, "lng": lng}},
            "address_components": [
                {"long_name": "Centro", "short_name": "Centro", "types": ["sublocality_level_1", "sublocality"]},
                {"long_name": locality, "short_name": locality, "types": ["administrative_area_level_2", "political"]},
                {"long_name": "Minas Gerais", "short_name": state, "types": ["administrative_area_level_1", "political"]},
            ],
        }],
    }


def _run_with(handler, coro_fn, api_key="test-key"):
    calls = []

    def recording(request):
        calls.append(request)
        return handler(request)

    async def _main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(recording)) as client:
            provider = GeocodeProvider(api_key, client=client)
            return await coro_fn(provider)

    return asyncio.run(_main()), calls


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------

class TestParsePayload:
    def test_ok(self):
        result = parse_geocode_payload(_ok_payload())
        assert result.ok
        assert result.match.coordinates == Coordinates(lat=-16.7286, lng=-43.8582)
        assert result.match.locality == "Montes Claros"
        assert result.match.state_code == "MG"

    def test_zero_results(self):
        result = parse_geocode_payload({"status": "ZERO_RESULTS", "results": []})
        assert result.status == ProviderStatus.EMPTY
        assert not result.ok

    def test_not_ok_status(self):
        result = parse_geocode_payload({"status": "REQUEST_DENIED", "error_message": "bad key"})
        assert result.status == ProviderStatus.NOT_OK
        assert result.upstream_status == "REQUEST_DENIED"
        assert result.detail == "bad key"

    def test_ok_with_empty_results(self):
        assert parse_geocode_payload({"status": "OK", "results": []}).status == ProviderStatus.EMPTY

    def test_missing_geometry(self):
        result = parse_geocode_payload({"status": "OK", "results": [{"geometry": {}}]})
        assert result.status == ProviderStatus.UNPARSEABLE

    def test_out_of_range_coordinates(self):
        payload = _ok_payload(lat=123.0)
        assert parse_geocode_payload(payload).status == ProviderStatus.UNPARSEABLE

    def test_locality_prefers_locality_type(self):
        payload = _ok_payload()
        payload["results"][0]["address_components"].insert(
            0, {"long_name": "Montes Claros City", "short_name": "MOC", "types": ["locality", "political"]}
        )
        assert parse_geocode_payload(payload).match.locality == "Montes Claros City"


# ---------------------------------------------------------------------------
# Provider behaviour
# ---------------------------------------------------------------------------

class TestGeocodeProvider:
    def test_resolve_success_sends_address_and_key(self):
        coords, calls = _run_with(
            lambda request: httpx.Response(200, json=_ok_payload()),
            lambda p: p.resolve("Centro, Montes Claros, MG"),
        )
        assert coords == Coordinates(lat=-16.7286, lng=-43.8582)
        assert len(calls) == 1
        assert calls[0].url.params["address"] == "Centro, Montes Claros, MG"
        assert calls[0].url.params["key"] == "test-key"

    def test_locate_returns_components(self):
        match, _ = _run_with(
            lambda request: httpx.Response(200, json=_ok_payload()),
            lambda p: p.locate("Centro, Montes Claros, MG"),
        )
        assert match.locality == "Montes Claros"
        assert match.state_code == "MG"

    def test_empty_address_makes_no_request(self):
        result, calls = _run_with(
            lambda request: httpx.Response(200, json=_ok_payload()),
            lambda p: p.geocode("   "),
        )
        assert result.status == ProviderStatus.INVALID_INPUT
        assert calls == []

    def test_missing_api_key_makes_no_request(self):
        result, calls = _run_with(
            lambda request: httpx.Response(200, json=_ok_payload()),
            lambda p: p.geocode("Centro, Montes Claros"),
            api_key=None,
        )
        assert result.status == ProviderStatus.INVALID_INPUT
        assert calls == []

    def test_http_error_is_not_retried(self):
        result, calls = _run_with(
            lambda request: httpx.Response(503, text="unavailable"),
            lambda p: p.geocode("Centro, Montes Claros"),
        )
        assert result.status == ProviderStatus.HTTP_ERROR
        assert len(calls) == 1

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        result, _ = _run_with(handler, lambda p: p.geocode("Centro, Montes Claros"))
        assert result.status == ProviderStatus.TIMEOUT

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result, _ = _run_with(handler, lambda p: p.geocode("Centro, Montes Claros"))
        assert result.status == ProviderStatus.NETWORK_ERROR

    def test_unparseable_body(self):
        result, _ = _run_with(
            lambda request: httpx.Response(200, text="<html>oops</html>"),
            lambda p: p.geocode("Centro, Montes Claros"),
        )
        assert result.status == ProviderStatus.UNPARSEABLE

    def test_resolve_returns_none_on_failure(self):
        coords, _ = _run_with(
            lambda request: httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []}),
            lambda p: p.resolve("Nowhere"),
        )
        assert coords is None


class TestResolveMany:
    def test_preserves_input_order_with_gaps(self):
        known = {
            "A": (-10.0, -40.0),
            "C": (-12.0, -42.0),
            "D": (-13.0, -43.0),
        }

        def handler(request):
            address = request.url.params["address"]
            if address not in known:
                return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})
            lat, lng = known[address]
            return httpx.Response(200, json=_ok_payload(lat=lat, lng=lng))

        results, calls = _run_with(
            handler,
            lambda p: p.resolve_many(["A", "B", "C", "D"], batch_size=3, pause=0),
        )
        assert len(calls) == 4
        assert results == [
            Coordinates(lat=-10.0, lng=-40.0),
            None,
            Coordinates(lat=-12.0, lng=-42.0),
            Coordinates(lat=-13.0, lng=-43.0),
        ]

    def test_empty_input(self):
        results, calls = _run_with(
            lambda request: httpx.Response(200, json=_ok_payload()),
            lambda p: p.resolve_many([]),
        )
        assert results == []
        assert calls == []
