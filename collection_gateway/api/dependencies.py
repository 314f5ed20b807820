"""Dependency injection for FastAPI endpoints"""

from fastapi import Request
from collection_gateway.config import settings
from collection_gateway.domain.matcher import MatchPolicy
from collection_gateway.infrastructure.clients.backend import BackendClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_backend_client(request: Request) -> BackendClient:
    """Provide backend API client, forwarding the caller's bearer token"""
    authorization = request.headers.get("Authorization", "")
    token = authorization[7:] if authorization.startswith("Bearer ") else None
    return BackendClient(token=token)


def get_match_policy() -> MatchPolicy:
    """Attribution tolerance constants from configuration"""
    return MatchPolicy(
        tolerance_ratio=settings.tolerance_ratio,
        tolerance_floor=settings.tolerance_floor,
    )
