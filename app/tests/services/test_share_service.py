from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import NotFoundError
from app.core.security import create_access_token, create_scoped_token
from app.services.share_service import SHARE_SCOPE, ShareService


def test_link_resolves_to_record(db, make_installation):
    inst = make_installation()
    svc = ShareService()

    link = svc.create_link(db, installation_id=inst.id)

    assert svc.resolve(db, token=link.token).id == inst.id
    assert link.expires_at - datetime.now(timezone.utc) <= timedelta(hours=24)


def test_expired_link_is_rejected(db, make_installation):
    inst = make_installation()
    svc = ShareService()

    link = svc.create_link(db, installation_id=inst.id, now=datetime.now(timezone.utc) - timedelta(hours=25))

    with pytest.raises(NotFoundError, match="Invalid or expired share link"):
        svc.resolve(db, token=link.token)


def test_tampered_link_is_rejected(db, make_installation):
    inst = make_installation()
    svc = ShareService()
    token = svc.create_link(db, installation_id=inst.id).token

    head, body, sig = token.split(".")
    forged = ".".join([head, body, sig[:-2] + ("AA" if not sig.endswith("AA") else "BB")])

    with pytest.raises(NotFoundError):
        svc.resolve(db, token=forged)


def test_login_token_is_not_a_share_link(db, make_installation):
    inst = make_installation()
    token = create_access_token(subject=str(inst.id), claims={"user_type": "Admin"})

    with pytest.raises(NotFoundError):
        ShareService().resolve(db, token=token)


def test_link_to_deleted_record_is_not_found(db, make_installation):
    inst = make_installation()
    token = create_scoped_token(str(inst.id), SHARE_SCOPE, 24)
    inst.record_state = "deleted"
    db.commit()

    with pytest.raises(NotFoundError):
        ShareService().resolve(db, token=token)
