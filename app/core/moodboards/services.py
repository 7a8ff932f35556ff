from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

import httpx
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.moodboards.models import MoodBoard
from app.core.users.services import user_uploads_dir
from app.response.response import APIError


logger = logging.getLogger(__name__)


DESCRIPTION_SYSTEM_PROMPT = (
    "You are an expert interior designer with knowledge of various design "
    "styles, materials, and furniture. Provide detailed and specific design "
    "recommendations."
)

IMAGE_PROMPT_SYSTEM_PROMPT = (
    "You are an expert at creating detailed prompts for DALL-E to generate "
    "interior design mood boards. Create prompts that will result in "
    "photorealistic, magazine-quality interior design images."
)


def build_description_prompt(
    room_type: str,
    design_style: str,
    color_palette: List[str],
    budget: Optional[str],
) -> str:
    palette = ", ".join(color_palette) if color_palette else "a neutral palette"
    budget_part = f" The budget is in the {budget} range." if budget else ""
    return (
        f"Create a detailed interior design description for a {design_style} "
        f"style {room_type} with a color palette including {palette}."
        f"{budget_part} Include specific furniture pieces, materials, textures, "
        "lighting suggestions, and decor elements that would create a cohesive "
        "and appealing space. The description should be informative and "
        "inspirational, suitable for an interior design mood board."
    )


def build_image_prompt_request(
    room_type: str,
    design_style: str,
    description: str,
) -> str:
    return (
        "Based on this design description, create a detailed prompt for DALL-E "
        f"to generate a photorealistic mood board image of a {design_style} "
        f"{room_type}:\n\n{description}\n\nMake sure the prompt includes "
        "specific details about furniture, materials, lighting, and atmosphere."
    )


def _call_ai_proxy(system_prompt: str, user_prompt: str, max_tokens: int) -> str:
    request_body = {
        "model": settings.ai_proxy_model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "temperature": 0.7,
        "max_tokens": max_tokens,
    }
    with httpx.Client(timeout=settings.ai_proxy_timeout_seconds) as client:
        response = client.post(settings.ai_proxy_url, json=request_body)
    response.raise_for_status()

    content = response.json().get("content")
    if not isinstance(content, str) or not content.strip():
        raise ValueError("AI proxy returned empty content")
    return content.strip()


def _call_image_proxy(prompt: str) -> str:
    payload = {
        "prompt": prompt,
        "model": settings.ai_proxy_image_model,
        "n": 1,
        "size": "1024x1024",
        "style": "vivid",
        "quality": "standard",
        "response_format": "url",
    }
    with httpx.Client(timeout=settings.ai_proxy_timeout_seconds) as client:
        response = client.post(settings.ai_proxy_image_url, json=payload)
    response.raise_for_status()

    url = response.json().get("url")
    if not isinstance(url, str) or not url:
        raise ValueError("AI image proxy returned an empty url")
    return url


def _download_image(url: str) -> bytes:
    with httpx.Client(timeout=settings.ai_proxy_timeout_seconds) as client:
        response = client.get(url)
    response.raise_for_status()
    return response.content


def _save_image(user_id: str, content: bytes) -> str:
    rel_dir = user_uploads_dir(user_id) / "moodboards"
    rel_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    filename = f"{timestamp}_{uuid.uuid4().hex[:8]}.png"
    (rel_dir / filename).write_bytes(content)
    return f"/uploads/{user_id}/moodboards/{filename}"


def generate_mood_board(
    db: Session,
    *,
    user_id: str,
    room_type: str,
    design_style: str,
    color_palette: List[str],
    budget: Optional[str] = None,
) -> MoodBoard:
    try:
        description = _call_ai_proxy(
            DESCRIPTION_SYSTEM_PROMPT,
            build_description_prompt(room_type, design_style, color_palette, budget),
            max_tokens=500,
        )
        image_prompt = _call_ai_proxy(
            IMAGE_PROMPT_SYSTEM_PROMPT,
            build_image_prompt_request(room_type, design_style, description),
            max_tokens=300,
        )
        temp_url = _call_image_proxy(image_prompt)
        content = _download_image(temp_url)
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("mood board generation failed for %s: %r", user_id, exc)
        raise APIError(
            code="MOODBOARD_AI_FAILED",
            http_code=502,
            message="Failed to generate mood board",
        )

    board = MoodBoard(
        user_id=user_id,
        image_url=_save_image(user_id, content),
        description=description,
        style=design_style,
        room_type=room_type,
        color_palette=color_palette,
        budget=budget,
        status="completed",
        ai_prompt=image_prompt,
        provider=settings.ai_proxy_image_model,
    )
    db.add(board)
    db.commit()
    db.refresh(board)
    return board


def list_mood_boards(db: Session, user_id: str) -> List[MoodBoard]:
    return (
        db.query(MoodBoard)
        .filter(MoodBoard.user_id == user_id)
        .order_by(MoodBoard.created_at.desc())
        .all()
    )


__all__ = [
    "build_description_prompt",
    "build_image_prompt_request",
    "generate_mood_board",
    "list_mood_boards",
]
