"""
Query/Filter Projector.

Pure functions deriving filtered views from a loaded record sequence.
Nothing here mutates its input or performs I/O.
"""

from typing import Iterable, Optional, Union

from consent_registry.core.consent.types import ConsentRecord, ConsentStatus, coerce_status


def filter_by_status(
    records: Iterable[ConsentRecord],
    status: Union[ConsentStatus, str, None] = None,
) -> list[ConsentRecord]:
    """Keep records with the given status ("all" or None keeps everything).

    Raises:
        ValueError: If ``status`` is not a known status or "all"
    """
    wanted = coerce_status(status)
    if wanted is None:
        return list(records)
    return [r for r in records if r.status == wanted]


def filter_by_wallet(
    records: Iterable[ConsentRecord],
    wallet_address: Optional[str] = None,
) -> list[ConsentRecord]:
    """Keep records signed by ``wallet_address`` (exact match).

    An empty or None address applies no restriction.
    """
    if not wallet_address:
        return list(records)
    return [r for r in records if r.wallet_address == wallet_address]


def project(
    records: Iterable[ConsentRecord],
    status: Union[ConsentStatus, str, None] = None,
    wallet_address: Optional[str] = None,
) -> list[ConsentRecord]:
    """Apply the status and wallet filters together, preserving order."""
    return filter_by_wallet(filter_by_status(records, status), wallet_address)


def count_by_status(records: Iterable[ConsentRecord]) -> dict[str, int]:
    """Count records per status; every status is present in the result."""
    counts = {status.value: 0 for status in ConsentStatus}
    for record in records:
        counts[record.status.value] += 1
    return counts


def shorten_address(value: Optional[str], head: int = 6, tail: int = 4) -> str:
    """Abbreviate a wallet address for display: 0x1234...abcd."""
    if not value:
        return "N/A"
    if len(value) <= head + tail:
        return value
    return f"{value[:head]}...{value[-tail:]}"


def shorten_hash(value: Optional[str], head: int = 10, tail: int = 8) -> str:
    """Abbreviate a transaction hash; unmined transactions show as Pending."""
    if not value:
        return "Pending"
    return shorten_address(value, head=head, tail=tail)
