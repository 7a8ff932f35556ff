from __future__ import annotations

from typing import Generator

from sqlalchemy.orm import Session

from app.database.session import SessionLocal, is_configured
from app.response.response import server_misconfigured


def get_db() -> Generator[Session, None, None]:
    if not is_configured():
        raise server_misconfigured()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


__all__ = ["get_db"]
