"""Tests for the Consent Service HTTP client."""

import pytest
from unittest.mock import AsyncMock, MagicMock
import httpx

from consent_registry.core.consent import (
    ConsentCreatePayload,
    ConsentServiceClient,
    ConsentStatus,
    NotFound,
    Purpose,
    TransitionRejected,
    TransportFailure,
    normalize_collection,
)


def make_response(status_code: int, json=None, method: str = "GET", path: str = "/consents"):
    """Build an httpx response bound to a request so raise_for_status works."""
    request = httpx.Request(method, f"http://test:5000/api{path}")
    return httpx.Response(status_code, json=json, request=request)


CONSENT = {
    "id": "consent-1",
    "subjectId": "patient-001",
    "purpose": "Research Study Participation",
    "walletAddress": "0xABC",
    "message": "I consent to: Research Study Participation for patient: patient-001",
    "signature": "0xsig",
    "status": "pending",
    "createdAt": "2024-01-15T10:00:00Z",
}


class TestNormalizeCollection:
    """Test list response normalization."""

    def test_wrapped(self):
        assert normalize_collection({"consents": [1, 2]}, "consents") == [1, 2]

    def test_bare_array(self):
        assert normalize_collection([1, 2], "consents") == [1, 2]

    @pytest.mark.parametrize(
        "payload",
        [None, {}, {"consents": None}, {"consents": "x"}, {"data": [1]}, "text", 42],
    )
    def test_unrecognized_shapes_are_empty(self, payload):
        """Test anything else resolves to an empty list."""
        assert normalize_collection(payload, "consents") == []


class TestConsentServiceClient:
    """Test ConsentServiceClient."""

    @pytest.fixture
    def client(self):
        """Create client pointing at a test URL."""
        return ConsentServiceClient(base_url="http://test:5000/api", timeout=5.0, token="")

    @pytest.fixture
    def mock_httpx_client(self):
        """Create mock httpx client."""
        return AsyncMock()

    @pytest.mark.asyncio
    async def test_list_consents_wrapped(self, client, mock_httpx_client):
        """Test listing consents from a wrapped response."""
        mock_httpx_client.get = AsyncMock(
            return_value=make_response(200, {"consents": [CONSENT]})
        )
        client._client = mock_httpx_client

        consents = await client.list_consents("patient-001", ConsentStatus.PENDING)

        assert len(consents) == 1
        assert consents[0].id == "consent-1"
        assert consents[0].purpose == Purpose.RESEARCH_STUDY_PARTICIPATION
        mock_httpx_client.get.assert_called_once_with(
            "/consents",
            params={"subjectId": "patient-001", "status": "pending"},
        )

    @pytest.mark.asyncio
    async def test_list_consents_bare_array(self, client, mock_httpx_client):
        """Test a bare array is treated like the wrapped form."""
        mock_httpx_client.get = AsyncMock(return_value=make_response(200, [CONSENT, CONSENT]))
        client._client = mock_httpx_client

        consents = await client.list_consents()

        assert len(consents) == 2
        mock_httpx_client.get.assert_called_once_with("/consents", params={})

    @pytest.mark.asyncio
    async def test_list_consents_unexpected_shape(self, client, mock_httpx_client):
        """Test an unexpected payload shape yields no records."""
        mock_httpx_client.get = AsyncMock(return_value=make_response(200, {"ok": True}))
        client._client = mock_httpx_client

        assert await client.list_consents() == []

    @pytest.mark.asyncio
    async def test_list_consents_server_error(self, client, mock_httpx_client):
        """Test non-2xx answers become TransportFailure with the status code."""
        mock_httpx_client.get = AsyncMock(return_value=make_response(500, {"error": "boom"}))
        client._client = mock_httpx_client

        with pytest.raises(TransportFailure) as exc_info:
            await client.list_consents()

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_list_consents_network_error(self, client, mock_httpx_client):
        """Test connection faults become TransportFailure."""
        mock_httpx_client.get = AsyncMock(side_effect=httpx.ConnectError("refused"))
        client._client = mock_httpx_client

        with pytest.raises(TransportFailure):
            await client.list_consents()

    @pytest.mark.asyncio
    async def test_list_consents_malformed_record(self, client, mock_httpx_client):
        """Test records with unknown status are rejected as a service fault."""
        bad = dict(CONSENT, status="approved")
        mock_httpx_client.get = AsyncMock(return_value=make_response(200, [bad]))
        client._client = mock_httpx_client

        with pytest.raises(TransportFailure):
            await client.list_consents()

    @pytest.mark.asyncio
    async def test_create_consent(self, client, mock_httpx_client):
        """Test the create body uses camelCase keys and the purpose label."""
        mock_httpx_client.post = AsyncMock(
            return_value=make_response(201, CONSENT, method="POST")
        )
        client._client = mock_httpx_client

        payload = ConsentCreatePayload(
            subject_id="patient-001",
            purpose=Purpose.RESEARCH_STUDY_PARTICIPATION,
            wallet_address="0xABC",
            signature="0xsig",
            message=CONSENT["message"],
        )
        record = await client.create_consent(payload)

        assert record.status == ConsentStatus.PENDING
        call_args = mock_httpx_client.post.call_args
        assert call_args[0][0] == "/consents"
        assert call_args[1]["json"] == {
            "subjectId": "patient-001",
            "purpose": "Research Study Participation",
            "walletAddress": "0xABC",
            "signature": "0xsig",
            "message": CONSENT["message"],
        }

    @pytest.mark.asyncio
    async def test_create_consent_refused(self, client, mock_httpx_client):
        """Test a refused create carries the service's message."""
        mock_httpx_client.post = AsyncMock(
            return_value=make_response(400, {"message": "Invalid signature"}, method="POST")
        )
        client._client = mock_httpx_client

        payload = ConsentCreatePayload(
            subject_id="patient-001",
            purpose=Purpose.RESEARCH_STUDY_PARTICIPATION,
            wallet_address="0xABC",
            signature="0xsig",
            message=CONSENT["message"],
        )
        with pytest.raises(TransportFailure) as exc_info:
            await client.create_consent(payload)

        assert exc_info.value.status_code == 400
        assert exc_info.value.context["detail"] == "Invalid signature"

    @pytest.mark.asyncio
    async def test_update_consent_status(self, client, mock_httpx_client):
        """Test PATCH body and parsed result."""
        updated = dict(CONSENT, status="active")
        mock_httpx_client.patch = AsyncMock(
            return_value=make_response(200, updated, method="PATCH", path="/consents/consent-1")
        )
        client._client = mock_httpx_client

        record = await client.update_consent_status("consent-1", ConsentStatus.ACTIVE)

        assert record.status == ConsentStatus.ACTIVE
        mock_httpx_client.patch.assert_called_once_with(
            "/consents/consent-1", json={"status": "active"}
        )

    @pytest.mark.asyncio
    async def test_update_consent_status_wrapped(self, client, mock_httpx_client):
        """Test single-record answers wrapped in a consent key."""
        updated = dict(CONSENT, status="revoked")
        mock_httpx_client.patch = AsyncMock(
            return_value=make_response(
                200, {"consent": updated}, method="PATCH", path="/consents/consent-1"
            )
        )
        client._client = mock_httpx_client

        record = await client.update_consent_status("consent-1", ConsentStatus.REVOKED)

        assert record.status == ConsentStatus.REVOKED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [400, 403, 409, 412, 422])
    async def test_update_consent_rejected(self, client, mock_httpx_client, status_code):
        """Test refusal codes map to TransitionRejected."""
        mock_httpx_client.patch = AsyncMock(
            return_value=make_response(
                status_code, {"error": "conflict"}, method="PATCH", path="/consents/consent-1"
            )
        )
        client._client = mock_httpx_client

        with pytest.raises(TransitionRejected) as exc_info:
            await client.update_consent_status("consent-1", ConsentStatus.REVOKED)

        assert exc_info.value.context["detail"] == "conflict"

    @pytest.mark.asyncio
    async def test_update_consent_not_found(self, client, mock_httpx_client):
        """Test 404 on PATCH maps to NotFound."""
        mock_httpx_client.patch = AsyncMock(
            return_value=make_response(404, {}, method="PATCH", path="/consents/nope")
        )
        client._client = mock_httpx_client

        with pytest.raises(NotFound):
            await client.update_consent_status("nope", ConsentStatus.ACTIVE)

    @pytest.mark.asyncio
    async def test_update_consent_server_error(self, client, mock_httpx_client):
        """Test other failures map to TransportFailure."""
        mock_httpx_client.patch = AsyncMock(
            return_value=make_response(503, {}, method="PATCH", path="/consents/consent-1")
        )
        client._client = mock_httpx_client

        with pytest.raises(TransportFailure) as exc_info:
            await client.update_consent_status("consent-1", ConsentStatus.ACTIVE)

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_list_transactions(self, client, mock_httpx_client):
        """Test transactions for one wallet."""
        mock_httpx_client.get = AsyncMock(
            return_value=make_response(
                200,
                {
                    "transactions": [
                        {
                            "id": "tx-1",
                            "type": "consent",
                            "blockchainTxHash": "0x" + "ab" * 32,
                            "from": "0xABC",
                            "timestamp": "2024-01-15T10:00:00Z",
                        },
                        {"id": "tx-2", "type": "record"},
                    ]
                },
                path="/transactions",
            )
        )
        client._client = mock_httpx_client

        transactions = await client.list_transactions("0xABC")

        assert [t.id for t in transactions] == ["tx-1", "tx-2"]
        assert transactions[0].from_address == "0xABC"
        assert not transactions[0].is_pending
        assert transactions[1].is_pending
        mock_httpx_client.get.assert_called_once_with(
            "/transactions", params={"walletAddress": "0xABC"}
        )

    @pytest.mark.asyncio
    async def test_get_stats(self, client, mock_httpx_client):
        """Test statistics parsing."""
        mock_httpx_client.get = AsyncMock(
            return_value=make_response(
                200,
                {
                    "totalPatients": 4,
                    "totalRecords": 10,
                    "totalConsents": 8,
                    "activeConsents": 5,
                    "pendingConsents": 2,
                    "totalTransactions": 12,
                },
                path="/stats",
            )
        )
        client._client = mock_httpx_client

        stats = await client.get_stats()

        assert stats.total_consents == 8
        assert stats.approval_rate == 62.5
        assert stats.pending_rate == 25.0

    @pytest.mark.asyncio
    async def test_close(self, client):
        """Test close releases the HTTP client."""
        mock = MagicMock()
        mock.aclose = AsyncMock()
        client._client = mock

        await client.close()

        mock.aclose.assert_called_once()
        assert client._client is None

    @pytest.mark.asyncio
    async def test_bearer_token_header(self):
        """Test the token becomes an Authorization header."""
        client = ConsentServiceClient(base_url="http://test:5000/api", token="secret")

        http = await client._get_client()

        assert http.headers["Authorization"] == "Bearer secret"
        await client.close()
