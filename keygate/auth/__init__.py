"""API key authentication and issuance."""

from keygate.auth.authenticator import AuthResult, KeyAuthenticator, extract_credential
from keygate.auth.keys import APIKeyManager, IssuedKey
from keygate.auth.models import APIKey, AuthIdentity, hash_key

__all__ = [
    "APIKey",
    "APIKeyManager",
    "AuthIdentity",
    "AuthResult",
    "IssuedKey",
    "KeyAuthenticator",
    "extract_credential",
    "hash_key",
]
