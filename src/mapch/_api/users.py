"""Account registration endpoint (phase B of provisioning)."""

from __future__ import annotations

from mapch._transport import RequestDescriptor
from mapch.config import MapchConfig


def registration_request(
    config: MapchConfig,
    *,
    identity_id: str,
    email: str,
    bearer_token: str | None = None,
) -> RequestDescriptor:
    """Build the backend registration call for a freshly created identity.

    The backend keys users by ``uid``.
    """
    headers = {"Accept": "application/json"}
    if bearer_token:
        headers["Authorization"] = f"Bearer {bearer_token}"
    return RequestDescriptor(
        method="POST",
        url=config.url(config.register_path),
        headers=headers,
        json_body={"uid": identity_id, "email": email},
        timeout=config.registration_timeout,
    )
