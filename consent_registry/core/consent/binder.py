"""
Signature Binder.

Builds the canonical consent statement and obtains a wallet signature
over it. Verifiers rebuild the same statement from the record's purpose
and subject, so the template below must never change.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from eth_account import Account
from eth_account.messages import encode_defunct

from consent_registry.core.consent.errors import (
    NoSigningIdentity,
    SigningError,
    SigningUnavailable,
)
from consent_registry.core.consent.types import ConsentRecord, Purpose

logger = logging.getLogger(__name__)

CONSENT_MESSAGE_TEMPLATE = "I consent to: {purpose} for patient: {subject_id}"


class SigningCapability(Protocol):
    """External signer bound to a wallet identity (e.g. a browser wallet)."""

    async def sign(self, message: str, identity: str) -> str:
        """Sign ``message`` as ``identity``.

        Must raise SigningRejected when the holder declines and
        SigningUnavailable for any other fault.
        """
        ...


class IdentityProvider(Protocol):
    """Source of the currently connected wallet address."""

    def current_address(self) -> Optional[str]:
        ...


@dataclass(frozen=True)
class BoundConsent:
    """A consent statement together with its signature."""

    message: str
    signature: str
    wallet_address: str


def build_consent_message(subject_id: str, purpose: Union[Purpose, str]) -> str:
    """Build the canonical consent statement.

    Args:
        subject_id: Patient identifier
        purpose: Purpose member or any form accepted by Purpose.parse()

    Returns:
        The exact string to be signed
    """
    return CONSENT_MESSAGE_TEMPLATE.format(
        purpose=Purpose.parse(purpose).value,
        subject_id=subject_id,
    )


class SignatureBinder:
    """
    Binds a consent statement to a wallet signature.

    Usage:
        binder = SignatureBinder(signer)
        bound = await binder.bind("patient-001", Purpose.RESEARCH_STUDY_PARTICIPATION, "0xAbc...")
        bound.message    # "I consent to: Research Study Participation for patient: patient-001"
        bound.signature  # "0x..."
    """

    def __init__(self, signer: SigningCapability):
        """Initialize binder.

        Args:
            signer: External signing capability
        """
        self._signer = signer

    async def bind(
        self,
        subject_id: str,
        purpose: Union[Purpose, str],
        wallet_address: Optional[str],
    ) -> BoundConsent:
        """Build the statement and have ``wallet_address`` sign it.

        Raises:
            NoSigningIdentity: If no wallet address is available
            SigningRejected: If the signer declines
            SigningUnavailable: For any other signing fault
        """
        if not wallet_address:
            raise NoSigningIdentity("No wallet is available to sign the consent")

        message = build_consent_message(subject_id, purpose)
        logger.debug(f"Requesting signature: wallet={wallet_address}, subject={subject_id}")

        try:
            signature = await self._signer.sign(message, wallet_address)
        except SigningError:
            raise
        except Exception as e:
            raise SigningUnavailable(
                f"Signing failed: {e}",
                context={"wallet_address": wallet_address},
            ) from e

        if not signature:
            raise SigningUnavailable(
                "Signer returned an empty signature",
                context={"wallet_address": wallet_address},
            )

        return BoundConsent(
            message=message,
            signature=signature,
            wallet_address=wallet_address,
        )


def recover_signer(message: str, signature: str) -> str:
    """Recover the address that produced an EIP-191 personal_sign signature."""
    signable = encode_defunct(text=message)
    return Account.recover_message(
        signable,
        signature=bytes.fromhex(signature.removeprefix("0x")),
    )


def verify_consent_signature(record: ConsentRecord) -> bool:
    """Independently verify a consent record.

    Rebuilds the statement from purpose and subject rather than trusting
    the stored message, then checks the signature recovers to the
    record's wallet address.

    Returns:
        True if the stored message is canonical and the signature matches
    """
    expected = build_consent_message(record.subject_id, record.purpose)
    if record.message != expected:
        logger.warning(
            f"Consent message mismatch: id={record.id}, "
            f"stored={record.message!r}, expected={expected!r}"
        )
        return False

    try:
        recovered = recover_signer(expected, record.signature)
    except Exception as e:
        logger.error(f"Consent signature unreadable: id={record.id}, error={e}")
        return False

    # Hex addresses differ only in EIP-55 checksum casing
    return recovered.lower() == record.wallet_address.lower()
