"""
HTTP client for the Consent Service.

The consent service is the authoritative store and exposes a REST API for:
- Listing consents (optionally by subject and status)
- Creating a consent and updating its status
- Listing anchoring transactions and platform statistics
"""

import logging
from typing import Any, Optional

import httpx

from consent_registry.config import get_settings
from consent_registry.core.consent.errors import (
    NotFound,
    TransitionRejected,
    TransportFailure,
)
from consent_registry.core.consent.types import (
    ConsentCreatePayload,
    ConsentRecord,
    ConsentStatus,
    ConsentStatusUpdate,
    PlatformStats,
    TransactionRecord,
)

logger = logging.getLogger(__name__)

# Status codes the service uses to refuse a write it understood
REJECTION_STATUS_CODES = {400, 403, 409, 412, 422}


def normalize_collection(payload: Any, key: str) -> list:
    """Normalize a list response to a plain list.

    The service answers either ``{key: [...]}`` or a bare array.
    Any other shape resolves to an empty list.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get(key), list):
        return payload[key]
    return []


def _unwrap_record(payload: Any) -> dict:
    """Single-record responses may be bare or wrapped in ``{"consent": ...}``."""
    if isinstance(payload, dict) and isinstance(payload.get("consent"), dict):
        return payload["consent"]
    if isinstance(payload, dict):
        return payload
    raise TransportFailure("Unexpected consent payload from service")


def _parse_record(data: dict) -> ConsentRecord:
    try:
        return ConsentRecord.from_dict(data)
    except (ValueError, TypeError) as e:
        raise TransportFailure(
            f"Malformed consent record from service: {e}",
            context={"record_id": data.get("id")},
        ) from e


class ConsentServiceClient:
    """
    HTTP client for the Consent Service API.

    Consent Service exposes:
    - GET /consents?subjectId=&status= - List consents
    - POST /consents - Create consent
    - PATCH /consents/{id} - Update consent status
    - GET /transactions?walletAddress= - Anchoring transactions
    - GET /stats - Platform statistics

    No call is retried; every transport fault surfaces as TransportFailure.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        token: Optional[str] = None,
    ):
        """Initialize client.

        Args:
            base_url: Consent Service base URL (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
            token: Bearer token (defaults to settings)
        """
        settings = get_settings()
        self.base_url = base_url or settings.consent_api_url
        self.timeout = timeout if timeout is not None else settings.consent_api_timeout
        self._token = token if token is not None else settings.consent_api_token
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    # === Consents ===

    async def list_consents(
        self,
        subject_id: Optional[str] = None,
        status: Optional[ConsentStatus] = None,
    ) -> list[ConsentRecord]:
        """List consents in server order.

        Args:
            subject_id: Restrict to one patient (None for all)
            status: Restrict to one status (None for all)

        Returns:
            List of consent records

        Raises:
            TransportFailure: If the request fails or the payload is malformed
        """
        client = await self._get_client()

        params: dict = {}
        if subject_id is not None:
            params["subjectId"] = subject_id
        if status is not None:
            params["status"] = ConsentStatus(status).value

        try:
            response = await client.get("/consents", params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to list consents: {e}")
            raise TransportFailure(
                "Failed to fetch consents",
                context={"subject_id": subject_id, "status": params.get("status")},
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to list consents: {e}")
            raise TransportFailure(
                f"Failed to fetch consents: {e}",
                context={"subject_id": subject_id, "status": params.get("status")},
            ) from e

        return [_parse_record(c) for c in normalize_collection(data, "consents")]

    async def create_consent(self, payload: ConsentCreatePayload) -> ConsentRecord:
        """Submit a new signed consent.

        Returns:
            The persisted record as returned by the service

        Raises:
            TransportFailure: If the service is unreachable or refuses the record
        """
        client = await self._get_client()

        try:
            response = await client.post("/consents", json=payload.to_wire())
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to create consent: {e}")
            raise TransportFailure(
                "Consent service refused the consent",
                context={
                    "subject_id": payload.subject_id,
                    "detail": _error_detail(e.response),
                },
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to create consent: {e}")
            raise TransportFailure(
                f"Unable to reach consent service: {e}",
                context={"subject_id": payload.subject_id},
            ) from e

        return _parse_record(_unwrap_record(data))

    async def update_consent_status(
        self,
        consent_id: str,
        status: ConsentStatus,
    ) -> ConsentRecord:
        """Write a new status for a consent.

        Raises:
            NotFound: If ``consent_id`` is unknown
            TransitionRejected: If the service refuses the change
                (e.g. a concurrent update won)
            TransportFailure: For any other fault
        """
        client = await self._get_client()
        body = ConsentStatusUpdate(status=status)
        context = {"consent_id": consent_id, "status": body.status.value}

        try:
            response = await client.patch(f"/consents/{consent_id}", json=body.to_wire())
            if response.status_code == 404:
                raise NotFound(f"Consent {consent_id} not found", context=context)
            if response.status_code in REJECTION_STATUS_CODES:
                context["detail"] = _error_detail(response)
                raise TransitionRejected(
                    f"Consent service rejected status change to {body.status.value}",
                    context=context,
                )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to update consent {consent_id}: {e}")
            raise TransportFailure(
                f"Failed to update consent {consent_id}",
                context=context,
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to update consent {consent_id}: {e}")
            raise TransportFailure(
                f"Failed to update consent {consent_id}: {e}",
                context=context,
            ) from e

        return _parse_record(_unwrap_record(data))

    # === Transactions & stats ===

    async def list_transactions(
        self,
        wallet_address: Optional[str] = None,
    ) -> list[TransactionRecord]:
        """List anchoring transactions, optionally for one wallet.

        Raises:
            TransportFailure: If the request fails
        """
        client = await self._get_client()
        params = {"walletAddress": wallet_address} if wallet_address else {}

        try:
            response = await client.get("/transactions", params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to list transactions: {e}")
            raise TransportFailure(
                f"Failed to fetch transactions: {e}",
                context={"wallet_address": wallet_address},
            ) from e

        return [
            TransactionRecord.from_dict(t)
            for t in normalize_collection(data, "transactions")
            if isinstance(t, dict)
        ]

    async def get_stats(self) -> PlatformStats:
        """Fetch platform statistics.

        Raises:
            TransportFailure: If the request fails
        """
        client = await self._get_client()

        try:
            response = await client.get("/stats")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to get stats: {e}")
            raise TransportFailure(f"Failed to fetch statistics: {e}") from e

        if not isinstance(data, dict):
            raise TransportFailure("Unexpected statistics payload from service")
        return PlatformStats.model_validate(data)


def _error_detail(response: httpx.Response) -> Optional[str]:
    """Best-effort extraction of the service's error message."""
    try:
        data = response.json()
    except ValueError:
        return response.text or None
    if isinstance(data, dict):
        return data.get("message", data.get("error", data.get("detail")))
    return None
