"""
OTP Notifiers
=============
Delivery of the plaintext code to the user. Message formatting and
channel selection belong to the receiving service, not to this library.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

import httpx
import structlog

from otp_core.logging_config import mask_identity
from otp_core.otp.models import OTPKind

logger = structlog.get_logger(__name__)


@dataclass
class DeliveryResult:
    """Result of a delivery attempt."""
    success: bool
    provider_message_id: Optional[str] = None
    error_message: Optional[str] = None


class BaseNotifier(ABC):
    """
    Abstract base class for OTP delivery.

    Implementations must never log or persist the code they are given.
    """

    name: str = "base"

    def __init__(self):
        self._is_initialized = False

    async def initialize(self) -> None:
        """Initialize the notifier (e.g., create HTTP clients)."""
        self._is_initialized = True
        logger.info("Notifier initialized", notifier=self.name)

    async def close(self) -> None:
        """Clean up resources (e.g., close HTTP clients)."""
        self._is_initialized = False
        logger.info("Notifier closed", notifier=self.name)

    @abstractmethod
    async def send(
        self,
        identity: str,
        code: str,
        kind: OTPKind,
        display_name: str,
    ) -> DeliveryResult:
        """
        Deliver a code.

        Args:
            identity: Recipient (e.g., email address)
            code: Plaintext OTP code
            kind: Purpose of the code, selects message content downstream
            display_name: Name to greet the recipient with

        Returns:
            DeliveryResult; implementations may also raise on transport failure
        """


class HttpNotifier(BaseNotifier):
    """
    Posts the code to a mail/SMS delivery webhook as JSON.

    Payload: {"to", "code", "kind", "display_name"}
    """

    name = "http"

    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__()
        self.url = url
        self.headers = headers or {}
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self) -> None:
        self._client = httpx.AsyncClient(
            headers=self.headers,
            timeout=self.timeout,
            transport=self._transport,
        )
        await super().initialize()

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
        await super().close()

    async def send(
        self,
        identity: str,
        code: str,
        kind: OTPKind,
        display_name: str,
    ) -> DeliveryResult:
        if not self._client:
            await self.initialize()

        payload = {
            "to": identity,
            "code": code,
            "kind": OTPKind(kind).value,
            "display_name": display_name,
        }

        try:
            response = await self._client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            logger.error(
                "OTP delivery request failed",
                recipient=mask_identity(identity),
                error=type(e).__name__,
            )
            return DeliveryResult(success=False, error_message=f"Transport error: {type(e).__name__}")

        if response.is_success:
            return DeliveryResult(success=True, provider_message_id=self._message_id(response))

        logger.warning(
            "OTP delivery rejected",
            recipient=mask_identity(identity),
            status_code=response.status_code,
        )
        return DeliveryResult(
            success=False,
            error_message=f"Delivery endpoint returned {response.status_code}",
        )

    @staticmethod
    def _message_id(response: httpx.Response) -> Optional[str]:
        """Provider message id from a JSON body, if there is a usable one."""
        if not response.headers.get("content-type", "").startswith("application/json"):
            return None
        try:
            body = response.json()
        except ValueError:
            logger.warning("OTP delivery response body is not valid JSON")
            return None
        if not isinstance(body, dict) or body.get("id") is None:
            return None
        return str(body["id"])
