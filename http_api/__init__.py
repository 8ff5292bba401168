"""
http_api — Authenticated backend client for the sync engine.

Public API:
    APIClient, TokenPair                  -- async client with token refresh coalescing
    APIRequest, HTTPMethod, ContentType   -- request descriptions
    TokenStore, InMemoryTokenStore,
    FileTokenStore                        -- credential storage
    APIError, HttpError, NetworkError,
    DecodingError, EncodingError,
    Unauthorized                          -- failure taxonomy
"""

from http_api.client import APIClient, TokenPair
from http_api.errors import (
    APIError,
    DecodingError,
    EncodingError,
    HttpError,
    NetworkError,
    Unauthorized,
)
from http_api.requests import APIRequest, ContentType, HTTPMethod
from http_api.tokens import FileTokenStore, InMemoryTokenStore, TokenStore

__all__ = [
    "APIClient",
    "TokenPair",
    "APIRequest",
    "ContentType",
    "HTTPMethod",
    "TokenStore",
    "InMemoryTokenStore",
    "FileTokenStore",
    "APIError",
    "DecodingError",
    "EncodingError",
    "HttpError",
    "NetworkError",
    "Unauthorized",
]
