"""Reverse-geocoding client for sighting locations.

Wraps the Google Geocoding JSON API. Callers react differently to the three
failure kinds, so they are distinct exception types:

- `GeocodingNetworkError`: no connectivity or timeout (prompt a retry);
- `GeocodingNoResults`: the service answered ZERO_RESULTS (accept empty fields);
- `GeocodingServiceError`: HTTP failure or an error status from the API.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from ..core.config import Settings

_logger = logging.getLogger("geocoding")


class GeocodingError(Exception):
    pass


class GeocodingNetworkError(GeocodingError):
    pass


class GeocodingNoResults(GeocodingError):
    pass


class GeocodingServiceError(GeocodingError):
    def __init__(self, message: str, *, status: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status
        self.status_code = status_code


@dataclass
class GeocodeResult:
    city: str
    state: str
    country: str
    full_address: str


def _first_component(components: list[dict], wanted: tuple[str, ...], key: str = "long_name") -> str:
    for component in components:
        types = component.get("types") or []
        if any(t in types for t in wanted):
            return str(component.get(key) or "")
    return ""


def parse_address_components(result: dict[str, Any]) -> GeocodeResult:
    components = result.get("address_components") or []
    city = _first_component(components, ("locality", "administrative_area_level_2"))
    if not city:
        city = _first_component(components, ("administrative_area_level_3", "sublocality"))
    # Short state names ("CA" rather than "California") match plate jurisdictions.
    state = _first_component(components, ("administrative_area_level_1",), key="short_name")
    if not state:
        state = _first_component(components, ("administrative_area_level_2",), key="short_name")
    country = _first_component(components, ("country",))
    return GeocodeResult(
        city=city or "Unknown City",
        state=state or "Unknown State",
        country=country or "Unknown Country",
        full_address=str(result.get("formatted_address") or ""),
    )


class GeocodingClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://maps.googleapis.com/maps/api/geocode/json",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise RuntimeError("Geocoding config missing: PLATELOG_GEOCODING_API_KEY")
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, cfg: Settings) -> "GeocodingClient":
        return cls(
            cfg.geocoding_api_key or "",
            base_url=cfg.geocoding_base_url,
            timeout=cfg.geocoding_timeout_sec,
        )

    def _request(self, params: dict[str, str]) -> list[dict]:
        try:
            response = self.session.get(
                self.base_url,
                params={**params, "key": self.api_key},
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise GeocodingNetworkError(f"No network connection: {exc}") from exc
        except requests.RequestException as exc:
            raise GeocodingServiceError(f"Geocoding request failed: {exc}") from exc

        if response.status_code // 100 != 2:
            raise GeocodingServiceError(
                f"Geocoding HTTP error {response.status_code}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise GeocodingServiceError(f"Geocoding response was not JSON: {exc}") from exc

        status = str(data.get("status") or "")
        if status == "ZERO_RESULTS" or (status == "OK" and not data.get("results")):
            raise GeocodingNoResults("No results found for the request")
        if status != "OK":
            detail = data.get("error_message") or "Unknown error"
            raise GeocodingServiceError(f"Geocoding API error: {status} - {detail}", status=status)
        return list(data["results"])

    def reverse_geocode(self, latitude: float, longitude: float) -> GeocodeResult:
        results = self._request({"latlng": f"{latitude},{longitude}"})
        parsed = parse_address_components(results[0])
        _logger.debug("Reverse geocoded lat=%s lon=%s city=%s", latitude, longitude, parsed.city)
        return parsed

    def geocode_address(self, address: str) -> tuple[float, float]:
        results = self._request({"address": address})
        location = (results[0].get("geometry") or {}).get("location") or {}
        try:
            return float(location["lat"]), float(location["lng"])
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocodingServiceError(f"Geocoding result missing location: {exc}") from exc
