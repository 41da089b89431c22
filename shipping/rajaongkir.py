"""
shipping/rajaongkir.py

RajaOngkir (Komerce) API client for destinations and domestic shipping costs.
"""

import logging
from typing import Dict, List

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)

COURIER_PLANS = {
    "free": ["jne", "pos", "tiki"],
    "all": [
        "jne",
        "pos",
        "tiki",
        "sicepat",
        "ide",
        "sap",
        "ninja",
        "jnt",
        "wahana",
        "lion",
        "rex",
    ],
}

INTERNATIONAL_COURIERS = ["jne", "tiki", "pos"]

COURIER_NAMES = {
    "jne": "JNE",
    "pos": "POS Indonesia",
    "tiki": "TIKI",
    "sicepat": "SiCepat",
    "ide": "ID Express",
    "sap": "SAP Express",
    "ninja": "Ninja Xpress",
    "jnt": "J&T Express",
    "wahana": "Wahana Express",
    "lion": "Lion Parcel",
    "rex": "Royal Express Asia",
}

HTTP_ERROR_MESSAGES = {
    401: "RajaOngkir API key is invalid",
    410: "RajaOngkir API key expired or suspended",
    429: "RajaOngkir API quota exceeded",
}


def available_couriers(is_international: bool = False, plan: str = "free") -> List[str]:
    if is_international:
        return list(INTERNATIONAL_COURIERS)
    return list(COURIER_PLANS.get(plan, COURIER_PLANS["free"]))


def courier_name(code: str) -> str:
    return COURIER_NAMES.get((code or "").lower(), (code or "").upper())


class RajaOngkirError(Exception):
    """Base exception for RajaOngkir API errors."""

    def __init__(self, message: str, status_code: int = None, response_data: dict = None):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


class RajaOngkirClient:
    """Client for the Komerce RajaOngkir v1 API"""

    def __init__(self, api_key: str = None, base_url: str = None, timeout: float = 15.0):
        self.api_key = api_key or settings.RAJAONGKIR_API_KEY
        if not self.api_key:
            raise RajaOngkirError("RAJAONGKIR_API_KEY is not configured")
        self.base_url = (base_url or settings.RAJAONGKIR_BASE_URL).rstrip("/")
        self.timeout = timeout

    def _request(self, method: str, endpoint: str, params: dict = None, form_data: dict = None):
        url = f"{self.base_url}{endpoint}"
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.request(
                    method=method,
                    url=url,
                    headers={"key": self.api_key},
                    params=params,
                    data=form_data,
                )
        except httpx.HTTPError as e:
            logger.error(f"RajaOngkir request failed: {method} {endpoint}: {str(e)}")
            raise RajaOngkirError("Could not reach RajaOngkir")

        if response.status_code in HTTP_ERROR_MESSAGES:
            logger.error(f"RajaOngkir HTTP {response.status_code} on {endpoint}")
            raise RajaOngkirError(
                HTTP_ERROR_MESSAGES[response.status_code], status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError:
            raise RajaOngkirError(
                f"Invalid response from RajaOngkir (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        meta = data.get("meta") if isinstance(data, dict) else None
        if not response.is_success or not meta or meta.get("code") != 200:
            message = (meta or {}).get("message") or f"HTTP {response.status_code}"
            logger.error(f"RajaOngkir error on {endpoint}: {message}")
            raise RajaOngkirError(
                f"RajaOngkir API error: {message}",
                status_code=response.status_code,
                response_data=data if isinstance(data, dict) else {},
            )

        return data.get("data")

    def get_provinces(self) -> List[Dict]:
        return self._request("GET", "/destination/province") or []

    def search_destinations(
        self, search: str = "", limit: int = 50, offset: int = 0, province_id: str = None
    ) -> List[Dict]:
        params = {"search": search or "", "limit": limit, "offset": offset}
        if province_id:
            params["province"] = province_id
        return self._request("GET", "/destination/domestic-destination", params=params) or []

    def domestic_cost(self, origin: str, destination: str, weight: int, courier: str) -> List[Dict]:
        """
        Shipping options for one courier, each as
        ``{courier, courier_name, service, description, cost, etd}``.
        """
        data = self._request(
            "POST",
            "/calculate/district/domestic-cost",
            form_data={
                "origin": str(origin),
                "destination": str(destination),
                "weight": str(int(weight)),
                "courier": courier,
            },
        )
        if not isinstance(data, list):
            raise RajaOngkirError("No shipping options available from RajaOngkir")

        return [
            {
                "courier": item.get("code") or courier,
                "courier_name": item.get("name") or courier_name(courier),
                "service": item.get("service", ""),
                "description": item.get("description", ""),
                "cost": item.get("cost", 0),
                "etd": item.get("etd", ""),
            }
            for item in data
        ]

    def all_shipping_options(
        self, origin: str, destination: str, weight: int, couriers: List[str]
    ) -> List[Dict]:
        """Query every courier, skipping the ones that fail, cheapest first"""
        options = []
        for courier in couriers:
            try:
                options.extend(self.domestic_cost(origin, destination, weight, courier))
            except RajaOngkirError as e:
                logger.warning(f"[{courier}] shipping cost unavailable: {e.message}")
        return sorted(options, key=lambda option: option["cost"])

    def is_international(self, destination_name: str) -> bool:
        """A destination unknown to the domestic search is treated as international"""
        try:
            return len(self.search_destinations(destination_name, limit=1)) == 0
        except RajaOngkirError as e:
            logger.error(f"International check failed for {destination_name}: {e.message}")
            return False
