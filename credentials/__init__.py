"""
Credentials Module
API key pool with health tracking and rotation
"""
from .key_manager import ApiKeyManager, CredentialRecord, make_key_id
from .validator import KeyValidation, NewsApiKeyValidator

__all__ = [
    "ApiKeyManager",
    "CredentialRecord",
    "KeyValidation",
    "NewsApiKeyValidator",
    "make_key_id",
]
