"""
Consent Registry

Patient consent lifecycle for a healthcare data-sharing platform: signed
consent statements bound to wallet identities, status transitions checked
against a fixed state machine, and filtered views over the consent service.
"""

__version__ = "0.1.0"
