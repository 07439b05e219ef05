"""Consent registry tests."""
