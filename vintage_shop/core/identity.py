"""Resolution of request credentials into a single shopper identity.

Every cart and checkout operation is keyed by exactly one of three identities:

* ``Authenticated`` - a verified bearer token (user id + role),
* ``Guest`` - an anonymous shopper carrying a guest session id,
* ``Anonymous`` - neither of the above.

A valid token always wins over a guest session. Token verification failures
are swallowed here; routes that require a logged-in user reject ``Guest`` and
``Anonymous`` themselves (see ``api.dependencies.identity``).
"""
import logging
from dataclasses import dataclass
from uuid import UUID

from vintage_shop.core.security import verify_access_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Authenticated:
    user_id: UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class Guest:
    session_id: UUID


@dataclass(frozen=True)
class Anonymous:
    pass


Identity = Authenticated | Guest | Anonymous


def parse_guest_session(raw: str | None) -> UUID | None:
    """Parse a guest session id, returning None for anything that is not a UUID."""
    if not raw:
        return None
    try:
        return UUID(raw.strip())
    except ValueError:
        logger.debug("Ignoring malformed guest session id")
        return None


def authenticate_token(token: str | None, secret_key: str) -> Authenticated | None:
    if not token:
        return None
    payload = verify_access_token(token, secret_key)
    if not payload:
        return None
    try:
        user_id = UUID(payload["sub"])
    except (KeyError, TypeError, ValueError):
        logger.warning("Access token without a valid subject")
        return None
    return Authenticated(user_id=user_id, role=payload.get("role", "customer"))


def resolve_identity(
    token: str | None,
    guest_session: str | UUID | None,
    *,
    secret_key: str,
) -> Identity:
    user = authenticate_token(token, secret_key)
    if user is not None:
        return user

    if isinstance(guest_session, UUID):
        return Guest(session_id=guest_session)
    session_id = parse_guest_session(guest_session)
    if session_id is not None:
        return Guest(session_id=session_id)
    return Anonymous()
