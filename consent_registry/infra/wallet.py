"""
Local Wallet Signing

eth_account backed signing capability and identity providers. In
production signatures come from the patient's own wallet (e.g. a browser
extension); these classes stand in for it in scripts, development and
tests.
"""

import logging
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount

from consent_registry.core.consent.errors import SigningRejected, SigningUnavailable

logger = logging.getLogger(__name__)


class StaticIdentityProvider:
    """Identity provider holding a single connectable wallet address."""

    def __init__(self, address: Optional[str] = None):
        self._address = address

    def current_address(self) -> Optional[str]:
        return self._address

    def connect(self, address: str) -> None:
        self._address = address

    def disconnect(self) -> None:
        self._address = None


class LocalWalletSigner:
    """
    Signs consent statements with locally held secp256k1 keys.

    Signatures follow EIP-191 personal_sign, the scheme browser wallets use
    for ``signMessage``, so they verify the same way.

    Usage:
        signer = LocalWalletSigner.create()
        signature = await signer.sign("I consent to: ...", signer.default_address)
    """

    def __init__(self, private_keys: Optional[list[str]] = None):
        """Initialize signer.

        Args:
            private_keys: Hex private keys; the first becomes the default account
        """
        self._accounts: dict[str, LocalAccount] = {}
        self._default: Optional[str] = None
        self._declining = False

        for key in private_keys or []:
            self.add_key(key)

    @classmethod
    def create(cls) -> "LocalWalletSigner":
        """Create a signer with one freshly generated account."""
        signer = cls()
        account: LocalAccount = Account.create()
        signer._add_account(account)
        return signer

    def add_key(self, private_key: str) -> str:
        """Load a private key.

        Returns:
            The checksummed address of the key
        """
        account: LocalAccount = Account.from_key(private_key)
        return self._add_account(account)

    def _add_account(self, account: LocalAccount) -> str:
        self._accounts[account.address.lower()] = account
        if self._default is None:
            self._default = account.address
        logger.debug(f"Wallet loaded: {account.address}")
        return account.address

    @property
    def default_address(self) -> Optional[str]:
        """Address of the first loaded account."""
        return self._default

    @property
    def addresses(self) -> list[str]:
        return [a.address for a in self._accounts.values()]

    def current_address(self) -> Optional[str]:
        """Identity provider interface: the default account."""
        return self._default

    def decline(self, declining: bool = True) -> None:
        """Make every subsequent sign() call be declined (or stop declining)."""
        self._declining = declining

    async def sign(self, message: str, identity: str) -> str:
        """Sign ``message`` with the key for ``identity``.

        Raises:
            SigningRejected: While the signer is declining
            SigningUnavailable: If no key is held for ``identity``
        """
        if self._declining:
            raise SigningRejected(
                "User declined the signature request",
                context={"wallet_address": identity},
            )

        account = self._accounts.get((identity or "").lower())
        if account is None:
            raise SigningUnavailable(
                f"No key available for wallet {identity}",
                context={"wallet_address": identity},
            )

        signed = account.sign_message(encode_defunct(text=message))
        signature = signed.signature.hex()
        if not signature.startswith("0x"):
            signature = f"0x{signature}"
        return signature
