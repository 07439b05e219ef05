#!/usr/bin/env python3
"""
Setup Verification Script

Validates configuration, the consent service connection and the local
signer before using the consent registry.

Usage:
    python scripts/verify_setup.py
"""

import asyncio
import os
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Load environment variables
from dotenv import load_dotenv
load_dotenv()


def print_header(title: str) -> None:
    """Print section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print(f"{'='*60}")


def print_result(name: str, success: bool, message: str = "") -> None:
    """Print check result."""
    status = "[PASS]" if success else "[FAIL]"
    color = "\033[92m" if success else "\033[91m"
    reset = "\033[0m"
    msg = f" - {message}" if message else ""
    print(f"  {color}{status}{reset} {name}{msg}")


def check_env_file() -> bool:
    """Check if .env file exists."""
    env_path = project_root / ".env"
    exists = env_path.exists()
    if not exists:
        print_result(".env file", False, "File not found (defaults will be used)")
    else:
        print_result(".env file", True, "Found")
    return exists


def check_vars() -> None:
    """Show effective configuration."""
    from consent_registry.config import get_settings

    settings = get_settings()
    print_result("CONSENT_API_URL", True, settings.consent_api_url)
    print_result("CONSENT_API_TIMEOUT", True, f"{settings.consent_api_timeout}s")
    print_result("APP_ENV", True, settings.app_env)

    token = settings.consent_api_token or ""
    if token:
        masked = f"{token[:8]}...{token[-4:]}" if len(token) > 12 else "***"
        print_result("CONSENT_API_TOKEN", True, f"Set ({masked})")
    else:
        print_result("CONSENT_API_TOKEN", True, "Not set (anonymous requests)")


def check_signer() -> bool:
    """Verify the local wallet key (development only) signs and verifies."""
    key = os.getenv("WALLET_PRIVATE_KEY", "")
    if not key:
        print_result("Local signer", True, "Skipped - WALLET_PRIVATE_KEY not set")
        return True

    try:
        from consent_registry.core.consent import Purpose, build_consent_message, recover_signer
        from consent_registry.infra.wallet import LocalWalletSigner

        signer = LocalWalletSigner([key])
        address = signer.default_address
        message = build_consent_message("setup-check", Purpose.RESEARCH_STUDY_PARTICIPATION)
        signature = asyncio.run(signer.sign(message, address))
        ok = recover_signer(message, signature).lower() == address.lower()
        print_result("Local signer", ok, f"Wallet {address}")
        return ok

    except Exception as e:
        print_result("Local signer", False, str(e)[:50])
        return False


async def check_consent_service() -> bool:
    """Check the consent service answers a list request."""
    from consent_registry.core.consent import ConsentError, ConsentServiceClient

    client = ConsentServiceClient()
    try:
        consents = await client.list_consents()
        print_result("Consent Service", True, f"Reachable ({len(consents)} consents)")
        return True
    except ConsentError as e:
        print_result("Consent Service", False, e.message[:50])
        return False
    finally:
        await client.close()


def check_dependencies() -> bool:
    """Check if required Python packages are installed."""
    required_packages = [
        "pydantic",
        "pydantic_settings",
        "httpx",
        "eth_account",
        "dotenv",
    ]

    missing = []
    for package in required_packages:
        try:
            __import__(package.replace("-", "_"))
        except ImportError:
            missing.append(package)

    if missing:
        print_result("Python packages", False, f"Missing: {', '.join(missing)}")
        return False
    else:
        print_result("Python packages", True, "All required packages installed")
        return True


def main() -> int:
    """Run all verification checks."""
    print("\n" + "="*60)
    print(" Consent Registry - Setup Verification")
    print("="*60)

    print_header("Environment File")
    check_env_file()

    print_header("Python Dependencies")
    if not check_dependencies():
        print("\n  \033[91mCRITICAL: Install the missing packages first.\033[0m\n")
        return 1

    print_header("Configuration")
    check_vars()

    print_header("Signing")
    signer_ok = check_signer()

    print_header("Service Connections")
    service_ok = asyncio.run(check_consent_service())

    print_header("Summary")
    if not service_ok:
        print("\n  \033[91mCRITICAL: Consent service is not reachable.\033[0m")
        print("  Check CONSENT_API_URL and that the service is running.\n")
        return 1
    if not signer_ok:
        print("\n  \033[93mWARNING: Local signer check failed.\033[0m\n")
        return 0

    print("\n  \033[92mAll checks passed!\033[0m\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
