from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.errors import NotFoundError
from app.core.security import create_scoped_token, decode_token
from app.models.installation import Installation
from app.services.installation_service import InstallationService

logger = logging.getLogger(__name__)

SHARE_SCOPE = "installation:share"


@dataclass(frozen=True)
class ShareLink:
    token: str
    installation: Installation
    expires_at: datetime


class ShareService:
    """
    Signed, expiring read links for one installation record.

    The token is a JWT carrying the record id and a share scope, so nothing
    is stored server side; tampered or expired tokens fail signature or
    expiry checks on decode.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.records = InstallationService()

    def create_link(
        self, db: Session, *, installation_id: Any, now: Optional[datetime] = None
    ) -> ShareLink:
        inst = self.records.get(db, installation_id=installation_id)
        # jwt exp has second resolution
        now = (now or datetime.now(timezone.utc)).replace(microsecond=0)
        hours = self.settings.share_link_hours

        token = create_scoped_token(str(inst.id), SHARE_SCOPE, hours, now=now)
        return ShareLink(token=token, installation=inst, expires_at=now + timedelta(hours=hours))

    def resolve(self, db: Session, *, token: str) -> Installation:
        try:
            payload = decode_token(token)
        except JWTError as exc:
            logger.info("share token rejected", extra={"token_prefix": token[:10], "error": str(exc)})
            raise NotFoundError("Invalid or expired share link.")

        if payload.get("scope") != SHARE_SCOPE or not payload.get("sub"):
            raise NotFoundError("Invalid or expired share link.")

        return self.records.get(db, installation_id=payload["sub"])
