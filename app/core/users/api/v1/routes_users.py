from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.dependencies import get_db
from app.core.users.schemas import (
    DeleteAccountResponse,
    EnsureUserRequest,
    EnsureUserResponse,
    UserIdRequest,
)
from app.core.users.services import delete_account, ensure_user_record
from app.response import StandardResponse, make_success_response


router = APIRouter(tags=["users"])


@router.post(
    "/users/ensure",
    response_model=StandardResponse,
    summary="Create the default user record on first login",
)
def ensure_user(
    payload: EnsureUserRequest,
    db: Session = Depends(get_db),
) -> StandardResponse:
    user, created = ensure_user_record(
        db,
        user_id=payload.user_id,
        email=payload.email,
    )
    db.commit()
    result = EnsureUserResponse(created=created, user_id=user.user_id)
    return make_success_response(result=result.to_result())


@router.post(
    "/delete-account",
    response_model=StandardResponse,
    summary="Delete the user record, mood boards and uploads",
)
def delete_user_account(
    payload: UserIdRequest,
    db: Session = Depends(get_db),
) -> StandardResponse:
    delete_account(db, payload.user_id)
    return make_success_response(result=DeleteAccountResponse().to_result())


__all__ = ["router"]
