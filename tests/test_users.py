from __future__ import annotations

from datetime import date, datetime, timezone
from pathlib import Path

from app.core.config import settings
from app.core.moodboards.models import MoodBoard
from app.core.users.models import User


def _board(user_id: str) -> MoodBoard:
    return MoodBoard(
        user_id=user_id,
        image_url=f"/uploads/{user_id}/moodboards/a.png",
        description="Warm oak and linen.",
        style="Scandinavian",
        room_type="bedroom",
        color_palette=["white", "oak"],
        status="completed",
        created_at=datetime.now(timezone.utc),
    )


def test_ensure_creates_default_record(client, db_session):
    resp = client.post("/api/v1/users/ensure", json={"userId": "u1", "email": "a@b.c"})

    assert resp.status_code == 200
    assert resp.json()["result"] == {"success": True, "created": True, "userId": "u1"}

    db_session.expire_all()
    user = db_session.get(User, "u1")
    assert user.subscription_status == "inactive"
    assert user.subscription_tier == "free"
    assert user.images_used_this_month == 0
    assert user.images_limit_per_month == 0
    assert user.last_reset_date == date.today()


def test_ensure_is_idempotent(client, db_session, make_user):
    make_user(status="active", tier="pro", used=4, limit=25, email=None)

    resp = client.post("/api/v1/users/ensure", json={"userId": "u1", "email": "late@b.c"})

    assert resp.json()["result"]["created"] is False
    db_session.expire_all()
    user = db_session.get(User, "u1")
    assert user.subscription_tier == "pro"
    assert user.images_used_this_month == 4
    assert user.email == "late@b.c"


def test_delete_account_removes_everything(client, db_session, make_user):
    make_user()
    make_user("u2")
    db_session.add_all([_board("u1"), _board("u1"), _board("u2")])
    db_session.commit()

    uploads = Path(settings.uploads_dir) / "u1" / "moodboards"
    uploads.mkdir(parents=True, exist_ok=True)
    (uploads / "a.png").write_bytes(b"png")

    resp = client.post("/api/v1/delete-account", json={"userId": "u1"})

    assert resp.status_code == 200
    assert resp.json()["result"] == {"success": True}
    db_session.expire_all()
    assert db_session.get(User, "u1") is None
    assert db_session.query(MoodBoard).filter(MoodBoard.user_id == "u1").count() == 0
    assert db_session.query(MoodBoard).filter(MoodBoard.user_id == "u2").count() == 1
    assert not (Path(settings.uploads_dir) / "u1").exists()


def test_delete_unknown_account_succeeds(client, db_session):
    resp = client.post("/api/v1/delete-account", json={"userId": "ghost"})

    assert resp.status_code == 200


def test_delete_rejects_path_like_user_id(client, db_session):
    resp = client.post("/api/v1/delete-account", json={"userId": "../etc"})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "USER_INVALID_ID"
