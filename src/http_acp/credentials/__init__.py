"""Credential decoding and verification.

Two credential shapes are read from requests:
- Consent cookie: percent-encoded JSON, fails open to an empty state
- Capability token: verified through a pluggable CredentialVerifier,
  fails closed with an error

Structure:
    models.py     - ConsentState, CapabilityGrant, VerificationResult
    consent.py    - Consent cookie codec
    capability.py - CredentialVerifier protocol, unsigned base64-JSON codec
    signed.py     - JWT verifier (PyJWT)
    cache.py      - Expiry-bounded verification cache
"""

from http_acp.credentials.cache import CachingVerifier
from http_acp.credentials.capability import (
    CredentialVerifier,
    UnsignedTokenVerifier,
    decode_capability_token,
    encode_capability_token,
)
from http_acp.credentials.consent import decode_consent, encode_consent
from http_acp.credentials.models import CapabilityGrant, ConsentState, VerificationResult
from http_acp.credentials.signed import SignedTokenVerifier, issue_signed_token

__all__ = [
    # Records
    "CapabilityGrant",
    "ConsentState",
    "VerificationResult",
    # Consent
    "decode_consent",
    "encode_consent",
    # Capability
    "CachingVerifier",
    "CredentialVerifier",
    "SignedTokenVerifier",
    "UnsignedTokenVerifier",
    "decode_capability_token",
    "encode_capability_token",
    "issue_signed_token",
]
