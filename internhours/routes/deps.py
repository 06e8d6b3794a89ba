"""Request-scoped dependencies shared by the routers.

Authentication lives outside this service; the gateway in front of it is
expected to forward the verified caller as ``X-Actor-Id`` / ``X-Actor-Role``.
Deployments with another identity source override ``get_actor``.
"""
from __future__ import annotations

from fastapi import Header, HTTPException

from internhours.application import Services, get_services
from internhours.core.transitions import Role
from internhours.domain import Actor


def get_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> Actor:
    if not x_actor_id or not x_actor_role:
        raise HTTPException(status_code=401, detail="actor identity is required")
    try:
        role = Role(x_actor_role.strip().lower())
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="unknown actor role") from exc
    return Actor(actor_id=x_actor_id.strip(), role=role)


def services() -> Services:
    return get_services()
