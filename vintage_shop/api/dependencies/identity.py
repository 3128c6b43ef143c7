"""Identity policies. A route picks one by the dependency it declares.

* ``get_identity``: lenient, bad tokens fall back to the guest session or Anonymous
* ``get_known_identity``: lenient, but a token must belong to a stored user
* ``require_user``: a valid bearer token of a stored user is mandatory
* ``require_cart_owner``: a user or a guest, never Anonymous
* ``require_admin``: a valid token with the admin role
"""
from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from vintage_shop.api.dependencies.database import get_db
from vintage_shop.api.dependencies.settings import get_app_settings
from vintage_shop.core.config import Settings
from vintage_shop.core.exceptions import ForbiddenError, UnauthorizedError
from vintage_shop.core.identity import (
    Anonymous,
    Authenticated,
    Guest,
    Identity,
    authenticate_token,
    resolve_identity,
)
from vintage_shop.repositories import user_repo

bearer_scheme = HTTPBearer(auto_error=False)


async def get_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_app_settings),
) -> Identity:
    token = credentials.credentials if credentials else None
    guest_session = request.headers.get(settings.guest_session_header)
    identity = resolve_identity(token, guest_session, secret_key=settings.jwt_secret_key)
    request.state.identity = identity
    return identity


async def _ensure_registered(db: AsyncSession, user: Authenticated) -> Authenticated:
    if await user_repo.get_by_id(db, user.user_id) is None:
        raise UnauthorizedError("Unknown user")
    return user


async def get_known_identity(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
) -> Identity:
    if isinstance(identity, Authenticated):
        await _ensure_registered(db, identity)
    return identity


async def require_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_app_settings),
    db: AsyncSession = Depends(get_db),
) -> Authenticated:
    if not credentials:
        raise UnauthorizedError("Missing authentication token")
    user = authenticate_token(credentials.credentials, settings.jwt_secret_key)
    if user is None:
        raise UnauthorizedError("Invalid or expired token")
    return await _ensure_registered(db, user)


async def require_cart_owner(
    identity: Identity = Depends(get_known_identity),
) -> Authenticated | Guest:
    if isinstance(identity, Anonymous):
        raise UnauthorizedError("Log in or start a guest session to use the cart")
    return identity


async def require_admin(user: Authenticated = Depends(require_user)) -> Authenticated:
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user


def mirror_guest_session(response: Response, identity: Identity, settings: Settings) -> None:
    """Echo the guest session id back so the client can keep sending it."""
    if isinstance(identity, Guest):
        response.headers[settings.guest_session_header] = str(identity.session_id)
