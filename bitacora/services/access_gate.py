"""Access gate: validates a client token against stored grants.

State machine (client mode only; the internal view never enters it):

    IDLE ──resolve()──▶ VALIDATING ──▶ RESOLVED
                                   ├─▶ INVALID        (no active grant / empty token)
                                   ├─▶ EXPIRED        (active grant past or unreadable expires_at)
                                   └─▶ LOOKUP_FAILED  (store read errored)

    RESOLVED ──lookup_failed()──▶ LOOKUP_FAILED  (granted project could not be read)

INVALID and LOOKUP_FAILED share one user-facing message so a client cannot
tell a revoked link from a missing one. The gate is read-only and advisory:
it runs in the presenting layer against data read from the store.
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime
from typing import Callable

from bitacora.core.domain import ClientGrant, ResolvedAccess
from bitacora.core.exceptions import AccessDeniedError
from bitacora.integrations.store_gateway import MAYBE_SINGLE, TableStore
from bitacora.utils.helpers import short_token, utcnow

logger = logging.getLogger(__name__)

TOKENS_TABLE = "client_tokens"


class GateState(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RESOLVED = "resolved"
    INVALID = "invalid"
    EXPIRED = "expired"
    LOOKUP_FAILED = "lookup_failed"


_DENIAL_STATES = {
    AccessDeniedError.INVALID: GateState.INVALID,
    AccessDeniedError.EXPIRED: GateState.EXPIRED,
    AccessDeniedError.LOOKUP_FAILED: GateState.LOOKUP_FAILED,
}


class AccessGate:
    """Resolve an opaque token to ``ResolvedAccess`` or raise ``AccessDeniedError``."""

    def __init__(self, store: TableStore, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._store = store
        self._clock = clock
        self.state = GateState.IDLE
        self.error: AccessDeniedError | None = None
        self.resolved: ResolvedAccess | None = None

    @property
    def loading(self) -> bool:
        return self.state == GateState.VALIDATING

    async def resolve(self, token: str | None) -> ResolvedAccess:
        self.state = GateState.VALIDATING
        self.error = None
        self.resolved = None
        try:
            access = await self._lookup(token)
        except AccessDeniedError as exc:
            self.state = _DENIAL_STATES[exc.reason]
            self.error = exc
            raise
        self.state = GateState.RESOLVED
        self.resolved = access
        return access

    def lookup_failed(self) -> AccessDeniedError:
        """Record that a lookup following a valid token failed."""
        self.state = GateState.LOOKUP_FAILED
        self.error = AccessDeniedError(AccessDeniedError.LOOKUP_FAILED)
        self.resolved = None
        return self.error

    async def _lookup(self, token: str | None) -> ResolvedAccess:
        token = (token or "").strip()
        if not token:
            logger.info("Client access denied: empty token")
            raise AccessDeniedError(AccessDeniedError.INVALID)

        data, error = await self._store.select(
            TOKENS_TABLE,
            columns="token, project_name, client_name, active, expires_at",
            filters={"token": token, "active": True},
            mode=MAYBE_SINGLE,
        )
        if error:
            logger.warning("Client token lookup failed token=%s error=%s", short_token(token), error)
            raise AccessDeniedError(AccessDeniedError.LOOKUP_FAILED)
        if not data:
            logger.info("Client access denied: no active grant token=%s", short_token(token))
            raise AccessDeniedError(AccessDeniedError.INVALID)

        grant = ClientGrant.from_row(data)
        if not grant.active:
            # Store ignored the active filter; treat like a missing grant
            raise AccessDeniedError(AccessDeniedError.INVALID)
        if grant.expiry_unreadable:
            logger.warning(
                "Client access denied: unreadable expiry token=%s expires_at=%r",
                short_token(token), data.get("expires_at"),
            )
            raise AccessDeniedError(AccessDeniedError.EXPIRED)
        if grant.is_expired(self._clock()):
            logger.info(
                "Client access denied: grant expired token=%s expires_at=%s",
                short_token(token), grant.expires_at.isoformat(),
            )
            raise AccessDeniedError(AccessDeniedError.EXPIRED)

        logger.info("Client access granted token=%s project=%s", short_token(token), grant.project_name)
        return ResolvedAccess(project_name=grant.project_name, client_name=grant.client_name)
