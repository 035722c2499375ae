"""
FastAPI dependencies.

Authentication of the caller and construction of the freight services
with their injected collaborators.
"""

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.core.exceptions import AuthenticationError, InactiveAccountError
from backend.app.core.jwt import decode_access_token
from backend.app.db.session import get_db
from backend.app.domain.freight.acceptance import AcceptanceCoordinator
from backend.app.domain.freight.lifecycle import FreightLifecycleService
from backend.app.models.user import User
from backend.app.services.alerts import AlertSink
from backend.app.services.notification_dispatcher import NotificationDispatcher

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Resolve the caller from their bearer token.

    The role in the token must still match the stored profile, so a token
    minted before a role change is refused. The returned profile is
    detached from the session so it stays readable after the freight
    services commit or roll back.

    Raises:
        AuthenticationError: 401 for invalid, stale or unknown-user tokens
        InactiveAccountError: 403 if the account is disabled
    """
    claims = decode_access_token(credentials.credentials)
    if claims is None:
        raise AuthenticationError()

    result = await db.execute(select(User).where(User.id == claims.user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise AuthenticationError("User not found")
    if claims.role is not None and claims.role != user.role:
        raise AuthenticationError("Token role no longer matches the account")
    if not user.is_active:
        raise InactiveAccountError()

    db.expunge(user)
    return user


def get_notification_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.notifications


def get_alert_sink(request: Request) -> AlertSink:
    return request.app.state.alerts


def get_acceptance_coordinator(
    notifications: NotificationDispatcher = Depends(get_notification_dispatcher),
    alerts: AlertSink = Depends(get_alert_sink),
) -> AcceptanceCoordinator:
    return AcceptanceCoordinator(notifications=notifications, alerts=alerts)


def get_lifecycle_service(
    notifications: NotificationDispatcher = Depends(get_notification_dispatcher),
    alerts: AlertSink = Depends(get_alert_sink),
) -> FreightLifecycleService:
    return FreightLifecycleService(notifications=notifications, alerts=alerts)
