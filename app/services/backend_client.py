"""
app/services/backend_client.py

Purpose: External account backend and card issuing partner

- Profile lookup by user handle
- Step-completion command (registration, KYC, verification, funding, activation)
- Personal collection account allocation
- Virtual card issuance through the issuing partner
- Every call has a bounded timeout; lookups are retried once, commands never
- Timeouts and 5xx map to UpstreamTimeout
  (retryable), 404 to NotFoundError, other 4xx to UpstreamRejection
"""

import httpx
from typing import Any, Dict, Optional

from app.core.config import settings
from app.core.exceptions import NotFoundError, UpstreamRejection, UpstreamTimeout
from app.core.logging import get_logger

logger = get_logger(__name__)


class HttpServiceClient:
    """Shared request/translate logic for JSON HTTP collaborators."""

    service_name = "service"

    def __init__(self, base_url: str, timeout: float, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def _request(self, method: str, path: str, retry: Optional[bool] = None, **kwargs) -> Dict[str, Any]:
        """
        Sends a request and translates failures.

        Args:
            method: HTTP method
            path: Path relative to base_url
            retry: Retry once on timeout/5xx (default: GET requests only)

        Returns:
            Decoded JSON body ({} when empty)
        """
        if retry is None:
            retry = method.upper() == "GET"
        attempts = 2 if retry else 1

        for attempt in range(1, attempts + 1):
            try:
                response = await self.client.request(method, path, **kwargs)
            except httpx.TimeoutException:
                logger.warning(f"{self.service_name} timeout: {method} {path} (attempt {attempt}/{attempts})")
                if attempt < attempts:
                    continue
                raise UpstreamTimeout(f"{self.service_name} did not respond in time")
            except httpx.RequestError as e:
                logger.warning(f"{self.service_name} unreachable: {method} {path}: {e}")
                if attempt < attempts:
                    continue
                raise UpstreamTimeout(f"{self.service_name} is unreachable")

            if response.status_code >= 500:
                logger.warning(f"{self.service_name} error {response.status_code}: {method} {path}")
                if attempt < attempts:
                    continue
                raise UpstreamTimeout(
                    f"{self.service_name} failed with status {response.status_code}",
                    details={"status": response.status_code},
                )

            if response.status_code == 404:
                raise NotFoundError(f"{self.service_name}: resource not found", details={"path": path})

            if response.status_code >= 400:
                reason = _error_reason(response)
                logger.warning(f"{self.service_name} rejected {method} {path}: {reason}")
                raise UpstreamRejection(reason, details={"status": response.status_code})

            if not response.content:
                return {}
            return response.json()

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _error_reason(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"status {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


class AccountBackendClient(HttpServiceClient):
    """Client for the Toki account backend."""

    service_name = "Account backend"

    async def get_user(self, phone: str) -> Optional[Dict[str, Any]]:
        """
        Fetches the backend's view of a user.

        Returns:
            Profile document, or None if the backend does not know the user
        """
        try:
            body = await self._request("GET", "/user", params={"phone": phone})
        except NotFoundError:
            return None

        if isinstance(body, dict) and isinstance(body.get("user"), dict):
            body = body["user"]
        if not body:
            return None
        return body

    async def complete_step(self, phone: str, step: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Marks a journey step complete; the backend treats repeats as no-ops."""
        payload = {"phone": phone, "step": step, **(params or {})}
        logger.info(f"Completing step '{step}' on backend", extra={"user_id": phone})
        return await self._request("POST", "/steps/complete", json=payload)

    async def create_collection_account(self, phone: str, account_name: str) -> Dict[str, Any]:
        """Allocates the user's permanent NGN deposit account."""
        return await self._request(
            "POST",
            "/collection-account",
            json={"phone": phone, "accountName": account_name},
        )


class CardIssuerClient(HttpServiceClient):
    """Client for the virtual card issuing partner."""

    service_name = "Card issuer"

    async def issue_card(self, phone: str, name_on_card: str) -> Dict[str, Any]:
        """
        Requests a virtual card. Sent once; a timeout surfaces as
        UpstreamTimeout for the caller to redeliver.
        """
        logger.info("Requesting virtual card", extra={"user_id": phone})
        return await self._request(
            "POST",
            "/cards",
            json={"phone": phone, "nameOnCard": name_on_card, "currency": "USD"},
        )


_backend_client: Optional[AccountBackendClient] = None
_card_issuer: Optional[CardIssuerClient] = None


def get_backend_client() -> AccountBackendClient:
    """Get or create the global backend client."""
    global _backend_client
    if _backend_client is None:
        _backend_client = AccountBackendClient(settings.BACKEND_BASE_URL, settings.HTTP_TIMEOUT_SECONDS)
    return _backend_client


def get_card_issuer() -> CardIssuerClient:
    """Get or create the global card issuer client."""
    global _card_issuer
    if _card_issuer is None:
        _card_issuer = CardIssuerClient(settings.CARD_ISSUER_BASE_URL, settings.HTTP_TIMEOUT_SECONDS)
    return _card_issuer


async def close_backend_clients():
    """Close HTTP clients on shutdown."""
    global _backend_client, _card_issuer
    if _backend_client:
        await _backend_client.close()
        _backend_client = None
    if _card_issuer:
        await _card_issuer.close()
        _card_issuer = None
