# orders/gateway.py
"""Midtrans Snap client.

Creates Snap transactions, polls transaction status and verifies the
``signature_key`` carried by HTTP notifications. All calls carry a timeout;
``requests.Timeout`` surfaces as :class:`GatewayTimeout`, any other failure
as :class:`GatewayFailure`.
"""

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass

import requests
from django.conf import settings
from requests import RequestException
from requests.auth import HTTPBasicAuth

from .errors import GatewayFailure, GatewayTimeout

logger = logging.getLogger(__name__)

SANDBOX_SNAP_URL = "https://app.sandbox.midtrans.com"
SANDBOX_API_URL = "https://api.sandbox.midtrans.com"
PRODUCTION_SNAP_URL = "https://app.midtrans.com"
PRODUCTION_API_URL = "https://api.midtrans.com"

COMMON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


@dataclass(frozen=True)
class GatewayTransaction:
    token: str
    redirect_url: str


def notification_signature(order_id, status_code, gross_amount, server_key) -> str:
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


class SnapClient:
    def __init__(self, server_key: str, is_production: bool = False, timeout: float = 15):
        self.server_key = server_key
        self.is_production = is_production
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "SnapClient":
        return cls(
            server_key=getattr(settings, "MIDTRANS_SERVER_KEY", ""),
            is_production=getattr(settings, "MIDTRANS_IS_PRODUCTION", False),
            timeout=getattr(settings, "MIDTRANS_TIMEOUT", 15),
        )

    @property
    def snap_base_url(self) -> str:
        return PRODUCTION_SNAP_URL if self.is_production else SANDBOX_SNAP_URL

    @property
    def api_base_url(self) -> str:
        return PRODUCTION_API_URL if self.is_production else SANDBOX_API_URL

    def _request(self, method, url, **kwargs):
        if not self.server_key:
            raise GatewayFailure("Missing MIDTRANS_SERVER_KEY")
        try:
            resp = requests.request(
                method, url,
                headers=COMMON_HEADERS,
                auth=HTTPBasicAuth(self.server_key, ""),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.Timeout as e:
            logger.warning("Midtrans %s %s timed out after %ss", method, url, self.timeout)
            raise GatewayTimeout() from e
        except RequestException as e:
            logger.warning("Midtrans %s %s failed: %s", method, url, e)
            raise GatewayFailure(f"Gateway request failed: {e}") from e

        try: data = resp.json()
        except ValueError: data = {"raw": resp.text}
        if resp.status_code >= 400:
            logger.error(
                "Midtrans %s %s rejected: status=%s body=%s",
                method, url, resp.status_code, json.dumps(data)[:800],
            )
            raise GatewayFailure(f"Gateway rejected request with HTTP {resp.status_code}")
        return data

    def create_transaction(self, params: dict) -> GatewayTransaction:
        """POST a Snap transaction and return its token and redirect URL."""
        data = self._request("POST", f"{self.snap_base_url}/snap/v1/transactions", json=params)
        token = data.get("token")
        if not token:
            logger.error("Midtrans response missing token: %s", json.dumps(data)[:800])
            raise GatewayFailure("Gateway response missing token")
        return GatewayTransaction(token=token, redirect_url=data.get("redirect_url", ""))

    def transaction_status(self, order_id) -> dict:
        return self._request("GET", f"{self.api_base_url}/v2/{order_id}/status")

    def verify_notification(self, payload: dict) -> bool:
        """Check ``signature_key`` = sha512(order_id + status_code + gross_amount + server_key)."""
        received = (payload or {}).get("signature_key") or ""
        if not (self.server_key and received):
            return False
        expected = notification_signature(
            payload.get("order_id", ""),
            payload.get("status_code", ""),
            payload.get("gross_amount", ""),
            self.server_key,
        )
        return hmac.compare_digest(expected, str(received).strip())
