"""
Consent Registry

Entry point that ties the consent components together for a presentation
layer: one object exposing create, transition, load and project.
"""

import logging
from typing import Optional, Union

from consent_registry.config import Settings, get_settings
from consent_registry.core.consent import (
    ConsentAuditLogger,
    ConsentLifecycleEngine,
    ConsentRecord,
    ConsentRecordStore,
    ConsentServiceClient,
    ConsentStatus,
    IdentityProvider,
    LoadResult,
    PlatformStats,
    Purpose,
    SignatureBinder,
    SigningCapability,
    TransactionRecord,
    project,
    verify_consent_signature,
)
from consent_registry.infra.wallet import LocalWalletSigner, StaticIdentityProvider


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure logging based on environment."""
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


class ConsentRegistry:
    """
    Facade over the consent lifecycle components.

    Usage:
        registry = ConsentRegistry.from_settings()
        await registry.load(status="pending")
        record = await registry.create("patient-001", "Research Study Participation")
        await registry.transition(record.id, "active")
        view = registry.project(status="active")
        await registry.aclose()
    """

    def __init__(
        self,
        client: ConsentServiceClient,
        signer: SigningCapability,
        identity_provider: Optional[IdentityProvider] = None,
        audit_logger: Optional[ConsentAuditLogger] = None,
    ):
        self.client = client
        self.audit = audit_logger or ConsentAuditLogger()
        self.identity_provider = identity_provider
        self.binder = SignatureBinder(signer)
        self.store = ConsentRecordStore(client, audit_logger=self.audit)
        self.engine = ConsentLifecycleEngine(
            client=client,
            binder=self.binder,
            store=self.store,
            identity_provider=identity_provider,
            audit_logger=self.audit,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        signer: Optional[SigningCapability] = None,
        identity_provider: Optional[IdentityProvider] = None,
    ) -> "ConsentRegistry":
        """Build a registry from configuration.

        Without an explicit signer, a local wallet signer is created from
        ``wallet_private_key`` (development only).
        """
        settings = settings or get_settings()
        client = ConsentServiceClient(
            base_url=settings.consent_api_url,
            timeout=settings.consent_api_timeout,
            token=settings.consent_api_token,
        )

        if signer is None:
            if settings.is_production:
                raise ValueError("A wallet signing capability is required in production")
            keys = [settings.wallet_private_key] if settings.wallet_private_key else []
            local = LocalWalletSigner(keys)
            signer = local
            if identity_provider is None:
                identity_provider = local
        if identity_provider is None:
            identity_provider = StaticIdentityProvider()

        logger.info(
            f"Consent registry configured: api={settings.consent_api_url}, env={settings.app_env}"
        )
        return cls(
            client=client,
            signer=signer,
            identity_provider=identity_provider,
            audit_logger=ConsentAuditLogger(enable_hash_chain=settings.audit_hash_chain),
        )

    # === Core operations ===

    async def create(
        self,
        subject_id: str,
        purpose: Union[Purpose, str],
        requester_identity: Optional[str] = None,
    ) -> ConsentRecord:
        return await self.engine.create(subject_id, purpose, requester_identity)

    async def transition(
        self,
        record_id: str,
        target_status: Union[ConsentStatus, str],
    ) -> ConsentRecord:
        return await self.engine.transition(record_id, target_status)

    async def load(
        self,
        subject_id: Optional[str] = None,
        status: Union[ConsentStatus, str, None] = None,
    ) -> LoadResult:
        return await self.store.load(subject_id, status)

    def project(
        self,
        status: Union[ConsentStatus, str, None] = None,
        wallet_address: Optional[str] = None,
    ) -> list[ConsentRecord]:
        """Filter the currently loaded records."""
        return project(self.store.records, status=status, wallet_address=wallet_address)

    # === Supplementary reads ===

    def verify(self, record: ConsentRecord) -> bool:
        return verify_consent_signature(record)

    async def transactions(self, wallet_address: Optional[str] = None) -> list[TransactionRecord]:
        return await self.client.list_transactions(wallet_address)

    async def stats(self) -> PlatformStats:
        return await self.client.get_stats()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.close()

