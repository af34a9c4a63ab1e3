"""Access token providers."""

from classification_client.auth.tokens import (
    NativeAppAuthorization,
    StaticTokenProvider,
    TokenProvider,
)

__all__ = ["NativeAppAuthorization", "StaticTokenProvider", "TokenProvider"]
