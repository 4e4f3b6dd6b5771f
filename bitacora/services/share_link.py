"""Share link issuer: mints a client grant and builds the client-view URL."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable
from urllib.parse import urlencode

from bitacora.core.exceptions import IssueError, ValidationError
from bitacora.integrations.store_gateway import TableStore
from bitacora.utils.helpers import short_token, utcnow

logger = logging.getLogger(__name__)

TOKENS_TABLE = "client_tokens"


@dataclass(frozen=True)
class LinkSettings:
    """How client URLs are derived from the internal app URL.

    ``ttl_days`` of None or 0 issues permanent links.
    """

    base_url: str
    internal_segment: str = "bitacora"
    client_segment: str = "bitacora-client"
    ttl_days: int | None = None

    @classmethod
    def from_config(cls, config) -> "LinkSettings":
        return cls(
            base_url=config["PUBLIC_BASE_URL"],
            internal_segment=config.get("INTERNAL_HOST_SEGMENT", "bitacora"),
            client_segment=config.get("CLIENT_HOST_SEGMENT", "bitacora-client"),
            ttl_days=config.get("SHARE_LINK_TTL_DAYS"),
        )


@dataclass(frozen=True)
class ShareLink:
    token: str
    url: str
    project_name: str
    expires_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "url": self.url,
            "project_name": self.project_name,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


def build_client_url(settings: LinkSettings, token: str) -> str:
    base = settings.base_url.rstrip("/")
    if settings.internal_segment:
        base = base.replace(settings.internal_segment, settings.client_segment, 1)
    return f"{base}/?{urlencode({'token': token})}"


class ShareLinkIssuer:
    def __init__(
        self,
        store: TableStore,
        settings: LinkSettings,
        *,
        clock: Callable[[], datetime] = utcnow,
        token_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._store = store
        self._settings = settings
        self._clock = clock
        self._token_factory = token_factory

    async def issue(self, project_name: str, client_name: str = "") -> ShareLink:
        if not project_name:
            raise ValidationError("Select a project before sharing")

        token = self._token_factory()
        expires_at = None
        if self._settings.ttl_days:
            expires_at = self._clock() + timedelta(days=self._settings.ttl_days)

        row = {
            "token": token,
            "project_name": project_name,
            "client_name": client_name or "",
            "active": True,
        }
        if expires_at is not None:
            row["expires_at"] = expires_at.isoformat()

        _, error = await self._store.insert(TOKENS_TABLE, [row])
        if error:
            logger.warning("Share link issue failed project=%s error=%s", project_name, error)
            raise IssueError("Could not create the share link.", details={"store": error})

        url = build_client_url(self._settings, token)
        logger.info("Share link issued project=%s token=%s expires_at=%s",
                    project_name, short_token(token), expires_at.isoformat() if expires_at else "never")
        return ShareLink(token=token, url=url, project_name=project_name, expires_at=expires_at)
