"""
payments/midtrans.py

Midtrans Snap and Core API client, notification signature check and
transaction status mapping.
"""

import hashlib
import hmac
import logging
from typing import Dict, List, Optional, Tuple

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)

SNAP_URLS = {
    True: "https://app.midtrans.com/snap/v1",
    False: "https://app.sandbox.midtrans.com/snap/v1",
}
CORE_URLS = {
    True: "https://api.midtrans.com/v2",
    False: "https://api.sandbox.midtrans.com/v2",
}

ENABLED_PAYMENTS = [
    "credit_card",
    "gopay",
    "shopeepay",
    "other_qris",
    "bca_va",
    "bni_va",
    "bri_va",
    "permata_va",
    "other_va",
    "echannel",
    "alfamart",
    "indomaret",
]

SNAP_EXPIRY_HOURS = 24


class MidtransError(Exception):
    """Base exception for Midtrans API errors."""

    def __init__(self, message: str, status_code: int = None, response_data: dict = None):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


def map_transaction_status(
    transaction_status: str, fraud_status: Optional[str] = None
) -> Tuple[str, str]:
    """
    Map a Midtrans transaction status to ``(payment_status, order_status)``.
    Refunds are not mapped here; the caller keeps the payment and cancels
    the order.
    """
    if transaction_status == "capture":
        if fraud_status == "accept":
            return "paid", "paid"
        if fraud_status == "challenge":
            return "pending", "pending_payment"
        return "failed", "cancelled"
    if transaction_status == "settlement":
        return "paid", "paid"
    if transaction_status == "pending":
        return "pending", "pending_payment"
    if transaction_status in ("deny", "cancel"):
        return "failed", "cancelled"
    if transaction_status == "expire":
        return "expired", "cancelled"
    return "pending", "pending_payment"


def signature_for(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    payload = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(payload.encode("utf-8")).hexdigest()


def verify_signature(
    order_id: str, status_code: str, gross_amount: str, signature_key: str, server_key: str = None
) -> bool:
    server_key = server_key if server_key is not None else settings.MIDTRANS_SERVER_KEY
    if not signature_key or not server_key:
        return False
    expected = signature_for(str(order_id), str(status_code), str(gross_amount), server_key)
    return hmac.compare_digest(expected, str(signature_key))


class MidtransClient:
    """Client for the Midtrans Snap and Core APIs (HTTP basic auth with the server key)"""

    def __init__(self, server_key: str = None, is_production: bool = None, timeout: float = 30.0):
        self.server_key = server_key or settings.MIDTRANS_SERVER_KEY
        if not self.server_key:
            raise MidtransError("MIDTRANS_SERVER_KEY is not configured")
        if is_production is None:
            is_production = settings.MIDTRANS_IS_PRODUCTION
        self.is_production = bool(is_production)
        self.snap_url = SNAP_URLS[self.is_production]
        self.core_url = CORE_URLS[self.is_production]
        self.timeout = timeout

    def _request(self, method: str, url: str, json_data: dict = None) -> Dict:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.request(
                    method=method,
                    url=url,
                    auth=(self.server_key, ""),
                    headers={"Accept": "application/json"},
                    json=json_data,
                )
        except httpx.HTTPError as e:
            logger.error(f"Midtrans request failed: {method} {url}: {str(e)}")
            raise MidtransError("Could not reach Midtrans")

        try:
            data = response.json()
        except ValueError:
            raise MidtransError(
                f"Invalid response from Midtrans (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        if not response.is_success:
            messages = data.get("error_messages") or [data.get("status_message") or ""]
            message = "; ".join(m for m in messages if m) or f"HTTP {response.status_code}"
            logger.error(f"Midtrans API error: {response.status_code} - {message}")
            raise MidtransError(
                f"Midtrans API error: {message}",
                status_code=response.status_code,
                response_data=data,
            )

        return data

    def create_transaction(
        self,
        order_id: str,
        gross_amount: int,
        customer_details: Dict,
        item_details: List[Dict],
        shipping_address: Dict = None,
        finish_url: str = None,
    ) -> Dict:
        """Create a Snap transaction. Returns ``{token, redirect_url}``."""
        payload = {
            "transaction_details": {"order_id": order_id, "gross_amount": gross_amount},
            "customer_details": customer_details,
            "item_details": item_details,
            "enabled_payments": ENABLED_PAYMENTS,
            "credit_card": {"secure": True},
            "expiry": {"unit": "hours", "duration": SNAP_EXPIRY_HOURS},
        }
        if shipping_address:
            payload["customer_details"] = {
                **customer_details,
                "shipping_address": shipping_address,
            }
        if finish_url:
            payload["callbacks"] = {"finish": finish_url}

        data = self._request("POST", f"{self.snap_url}/transactions", json_data=payload)
        if not data.get("token"):
            raise MidtransError("Midtrans did not return a Snap token", response_data=data)
        return {"token": data["token"], "redirect_url": data.get("redirect_url", "")}

    def get_status(self, order_id: str) -> Dict:
        data = self._request("GET", f"{self.core_url}/{order_id}/status")
        # Core API reports a missing transaction with HTTP 200 and status_code 404
        if str(data.get("status_code")) == "404":
            raise MidtransError("Transaction not found on Midtrans", status_code=404, response_data=data)
        return data

    def cancel(self, order_id: str) -> Dict:
        return self._request("POST", f"{self.core_url}/{order_id}/cancel")
