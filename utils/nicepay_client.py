"""
NicePay Client - two-step card capture (access token, then approval)
"""
import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

import config

logger = logging.getLogger(__name__)

RESULT_OK = "0000"


class PaymentGatewayError(Exception):
    """Base exception for gateway operations; funds are treated as not captured"""

    def __init__(self, message: str, *, result_code: Optional[str] = None):
        self.result_code = result_code
        super().__init__(message)


class PaymentGatewayTimeout(PaymentGatewayError):
    """The gateway did not answer within the configured timeout"""
    pass


class PaymentDeclined(PaymentGatewayError):
    """The gateway answered with a non-success result code"""
    pass


@dataclass
class CaptureResult:
    tid: str
    amount: int
    result_code: str
    result_msg: str
    order_id: Optional[str] = None
    pay_method: Optional[str] = None
    paid_at: Optional[str] = None


class NicePayClient:
    """
    Thin async client for the NicePay v1 REST API.

    One instance is built per request by ``get_payment_gateway``; it holds only
    the credentials it was given.
    """

    def __init__(
        self,
        *,
        base_url: str,
        client_id: str,
        secret_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.secret_key = secret_key
        self.timeout = timeout
        self._transport = transport

    def _basic_authorization(self) -> str:
        raw = f"{self.client_id}:{self.secret_key}".encode("utf-8")
        return f"Basic {base64.b64encode(raw).decode('ascii')}"

    async def _post(self, client: httpx.AsyncClient, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await client.post(path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"NicePay request timed out: {path}")
            raise PaymentGatewayTimeout(f"Gateway timeout on {path}") from e
        except httpx.HTTPError as e:
            logger.error(f"NicePay request failed: {path}: {e}")
            raise PaymentGatewayError(f"Gateway unreachable: {type(e).__name__}") from e

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"NicePay returned non-JSON response ({response.status_code}) for {path}")
            raise PaymentGatewayError(
                f"Gateway returned an unreadable response ({response.status_code})"
            ) from e

    async def request_access_token(self, client: httpx.AsyncClient) -> str:
        result = await self._post(
            client,
            "/v1/access-token",
            json={},
            headers={"Authorization": self._basic_authorization()},
        )
        if result.get("resultCode") != RESULT_OK or not result.get("accessToken"):
            raise PaymentDeclined(
                f"Failed to get access token: {result.get('resultMsg')}",
                result_code=result.get("resultCode"),
            )
        return result["accessToken"]

    async def approve(
        self,
        *,
        tid: str,
        amount: int,
        order_id: str,
        idempotency_key: str,
    ) -> CaptureResult:
        """
        Capture funds for an authenticated transaction.

        Args:
            tid: Gateway transaction reference from the auth callback
            amount: Amount to capture
            order_id: Our order reference
            idempotency_key: Stable key so a retried approval does not capture twice

        Returns:
            CaptureResult with the amount the gateway reports as captured

        Raises:
            PaymentGatewayTimeout, PaymentDeclined, PaymentGatewayError
        """
        if not self.client_id or not self.secret_key:
            raise PaymentGatewayError("Gateway credentials not configured")

        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            access_token = await self.request_access_token(client)
            result = await self._post(
                client,
                f"/v1/payments/{tid}",
                json={"amount": amount, "orderId": order_id},
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Idempotency-Key": idempotency_key,
                },
            )

        result_code = result.get("resultCode")
        logger.info(f"NicePay approval result | tid={tid} | code={result_code} | msg={result.get('resultMsg')}")
        if result_code != RESULT_OK:
            raise PaymentDeclined(
                result.get("resultMsg") or "Payment approval failed",
                result_code=result_code,
            )

        try:
            captured_amount = int(result.get("amount"))
        except (TypeError, ValueError) as e:
            raise PaymentGatewayError("Gateway did not report a captured amount") from e

        return CaptureResult(
            tid=result.get("tid") or tid,
            amount=captured_amount,
            result_code=result_code,
            result_msg=result.get("resultMsg") or "",
            order_id=result.get("orderId"),
            pay_method=result.get("payMethod"),
            paid_at=result.get("paidAt"),
        )


def get_payment_gateway() -> NicePayClient:
    """Dependency building a gateway client from configuration"""
    return NicePayClient(
        base_url=config.NICEPAY_API_BASE_URL,
        client_id=config.NICEPAY_CLIENT_ID,
        secret_key=config.NICEPAY_SECRET_KEY,
        timeout=config.NICEPAY_TIMEOUT_SECONDS,
    )
