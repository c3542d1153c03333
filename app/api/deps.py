from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated
import uuid
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import CheckoutConfig, settings
from app.database import get_db, get_session_factory
from app.core.security import verify_access_token
from app.models.user import UserRole
from app.services.notification_service import NotificationDispatcher
from app.services.order_service import OrderService
from app.services.payment_service import PaymentGateway, MethodRoutingGateway


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller resolved from the bearer token."""
    user_id: uuid.UUID
    role: str


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Identity:
    """
    Dependency to get the authenticated caller.
    Validates the JWT token and returns (user_id, role) without a database read.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    claims = verify_access_token(credentials.credentials)
    if claims is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise credentials_exception

    user_id, role = claims
    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        logger.warning(f"Invalid user_id in token: {user_id}")
        raise credentials_exception

    return Identity(user_id=user_uuid, role=role)


async def require_admin(
    identity: Annotated[Identity, Depends(get_current_identity)],
) -> Identity:
    if identity.role != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required"
        )
    return identity


# Type aliases for cleaner dependency injection
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
AdminIdentity = Annotated[Identity, Depends(require_admin)]
DB = Annotated[AsyncSession, Depends(get_db)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


# ==================== Checkout collaborators ====================

@lru_cache()
def get_checkout_config() -> CheckoutConfig:
    return CheckoutConfig.from_settings(settings)


def get_payment_gateway() -> PaymentGateway:
    return MethodRoutingGateway()


def get_notifier() -> NotificationDispatcher:
    return NotificationDispatcher()


async def get_order_service(
    db: DB,
    session_factory: SessionFactory,
    config: Annotated[CheckoutConfig, Depends(get_checkout_config)],
    gateway: Annotated[PaymentGateway, Depends(get_payment_gateway)],
    notifier: Annotated[NotificationDispatcher, Depends(get_notifier)],
) -> OrderService:
    return OrderService(
        db,
        session_factory=session_factory,
        config=config,
        payment_gateway=gateway,
        notifier=notifier,
    )


OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
