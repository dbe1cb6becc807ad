"""FastAPI dependency injection — provides services via Depends()."""
from __future__ import annotations

from fastapi import Request

from portal.models.config import Settings
from portal.services.auth_service import AuthService
from portal.services.openlist_service import OpenListService
from portal.services.subscription_service import SubscriptionService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_openlist_service(request: Request) -> OpenListService:
    return request.app.state.openlist_service


def get_subscription_service(request: Request) -> SubscriptionService:
    return request.app.state.subscription_service
