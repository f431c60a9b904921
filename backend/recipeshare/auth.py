"""
RecipeShare Backend - Authentication Boundary
===============================================

What:  Abstract bearer-token verifier plus the FastAPI dependencies that use it.
Why:   Token issuance and verification belong to a separate auth service. The
       recipe backend only needs "who is calling", so that is all this exposes.
How:   create_app() stores an AuthVerifier on app.state. The dependencies read
       the `Authorization: Bearer <token>` header and ask the verifier.
Who:   Recipe routes depend on get_current_user (required auth) or
       get_optional_user (detail view, where anonymous reads are allowed).

Design Decision:
    The default verifier rejects every token. A deployment that forgets to
    wire in a real verifier fails closed (401 on every authenticated route)
    instead of trusting arbitrary callers.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from recipeshare.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: uuid.UUID
    email: str


class AuthVerifier(ABC):
    """
    Contract for the external auth collaborator.

    Implementations verify a bearer credential and return the caller's
    identity, or raise UnauthorizedError. They must not raise anything else
    for a bad token.
    """

    @abstractmethod
    async def verify(self, token: str) -> AuthenticatedUser:
        ...


class RejectingAuthVerifier(AuthVerifier):
    """Placeholder used until a real verifier is configured."""

    async def verify(self, token: str) -> AuthenticatedUser:
        raise UnauthorizedError("Authentication is not configured on this server")


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _verifier(request: Request) -> AuthVerifier:
    return request.app.state.auth_verifier


async def get_current_user(request: Request) -> AuthenticatedUser:
    """Dependency: the verified caller, or 401."""
    token = _bearer_token(request)
    if token is None:
        raise UnauthorizedError()
    return await _verifier(request).verify(token)


async def get_optional_user(request: Request) -> Optional[AuthenticatedUser]:
    """Dependency: the verified caller, or None for anonymous/invalid credentials."""
    token = _bearer_token(request)
    if token is None:
        return None
    try:
        return await _verifier(request).verify(token)
    except UnauthorizedError:
        logger.debug("Ignoring invalid credential on optional-auth route")
        return None
