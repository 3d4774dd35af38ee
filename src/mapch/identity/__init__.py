"""Identity-provider abstraction and the Firebase REST implementation."""

from mapch.identity.base import (
    TERMINAL_SESSION_ERRORS,
    Credential,
    Identity,
    IdentityErrorCode,
    IdentityListener,
    IdentityProvider,
)
from mapch.identity.firebase import FirebaseIdentityProvider

__all__ = [
    "Credential",
    "FirebaseIdentityProvider",
    "Identity",
    "IdentityErrorCode",
    "IdentityListener",
    "IdentityProvider",
    "TERMINAL_SESSION_ERRORS",
]
