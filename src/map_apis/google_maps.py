from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Mapping, Optional

import requests

from map_apis.map_api import MapAPI

logger = logging.getLogger(__name__)


def _serialize_for_log(payload: Mapping[str, Any]) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False, default=str)
    except TypeError:
        return repr(payload)


def _log_function_call(name: str, payload: Mapping[str, Any]) -> None:
    logger.info("GoogleMaps.%s input=%s", name, _serialize_for_log(payload))


class GoogleMaps(MapAPI):
    """Concrete MapAPI adapter backed by the Google Geocoding API."""

    BASE_URL = "https://maps.googleapis.com/maps/api"
    GEOCODE_PATH = "/geocode/json"

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.api_key = api_key or os.getenv("GEOCODING_API_KEY") or os.getenv("GOOGLE_MAPS_API_KEY")
        self.has_valid_api_key = True
        if not self.api_key:
            warning_msg = (
                "Google Geocoding API key is missing! "
                "Set GEOCODING_API_KEY/GOOGLE_MAPS_API_KEY or pass api_key. "
                "Geocoding requests will fail until a key is configured."
            )
            logger.warning(warning_msg)
            self.has_valid_api_key = False
        self.session = session or requests.Session()
        self.timeout = timeout
        super().__init__("google_maps")

    def getPlaceInfo(self, address: str) -> Mapping[str, Any]:
        _log_function_call("getPlaceInfo", {"address": address})
        if not self.has_valid_api_key:
            raise RuntimeError("Google Geocoding API key is not configured")

        payload = self._request(self.GEOCODE_PATH, {"address": address})
        results = payload.get("results") or []
        if not results:
            raise ValueError(f"Google Maps could not geocode: {address!r}")

        record = results[0]
        location = (record.get("geometry") or {}).get("location") or {}
        lat = self._safe_float(location.get("lat"))
        lng = self._safe_float(location.get("lng"))
        if lat is None or lng is None:
            raise ValueError(f"Google Maps returned no coordinates for: {address!r}")

        return {
            "provider": self.provider,
            "place_id": record.get("place_id") or f"{lng},{lat}",
            "address": record.get("formatted_address"),
            "lat": lat,
            "lng": lng,
        }

    # --------------------------------------------------------------------- #
    # Internal helpers
    # --------------------------------------------------------------------- #

    def _request(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        merged_params = {"key": self.api_key, **params}
        safe_params = {k: v for k, v in merged_params.items() if k != "key"}
        logger.info("Google Maps request path=%s params=%s", path, safe_params)

        try:
            response = self.session.get(
                f"{self.BASE_URL}{path}", params=merged_params, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error(
                "Google Maps HTTP error path=%s params=%s error=%s", path, safe_params, exc
            )
            raise

        try:
            payload = response.json()
        except ValueError as exc:
            logger.error(
                "Google Maps JSON decode error path=%s params=%s error=%s body=%s",
                path,
                safe_params,
                exc,
                response.text,
            )
            raise

        status = payload.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            error_message = payload.get("error_message", "unknown error")
            logger.error(
                "Google Maps API error path=%s params=%s status=%s message=%s",
                path,
                safe_params,
                status,
                error_message,
            )
            raise RuntimeError(f"Google Maps API error: {status} - {error_message}")

        return payload

    def _safe_float(self, value: Any) -> Optional[float]:
        try:
            if value in (None, "", "null"):
                return None
            return float(value)
        except (TypeError, ValueError):
            return None
