"""
Verification Registry: access-controlled record of wallet risk verifications.

Stores a risk score, risk level, sanction flag, timestamp and verifier identity
per wallet address. Only the owner fixed at construction may write; every
successful write emits a WalletVerified notification.
"""

__version__ = "0.1.0"
