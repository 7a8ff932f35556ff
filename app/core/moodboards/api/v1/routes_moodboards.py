from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.dependencies import get_db
from app.core.moodboards.dependencies import consume_image_quota
from app.core.moodboards.schemas import MoodBoardGenerateIn, MoodBoardPublic
from app.core.moodboards.services import generate_mood_board, list_mood_boards
from app.response import StandardResponse, make_success_response


router = APIRouter(prefix="/moodboards", tags=["moodboards"])


@router.post(
    "/generate",
    response_model=StandardResponse,
    summary="Generate a mood board (spends one image)",
)
def generate_view(
    payload: MoodBoardGenerateIn = Depends(consume_image_quota),
    db: Session = Depends(get_db),
) -> StandardResponse:
    board = generate_mood_board(
        db,
        user_id=payload.user_id,
        room_type=payload.room_type,
        design_style=payload.design_style,
        color_palette=payload.color_palette,
        budget=payload.budget,
    )
    return make_success_response(result=MoodBoardPublic.model_validate(board).to_result())


@router.get(
    "",
    response_model=StandardResponse,
    summary="User's mood boards, newest first",
)
def history_view(
    user_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
) -> StandardResponse:
    boards = list_mood_boards(db, user_id)
    result = [MoodBoardPublic.model_validate(board).to_result() for board in boards]
    return make_success_response(result=result)


__all__ = ["router"]
