"""Feed endpoints: posts, likes and comments."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import AliasChoices, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import CurrentUser, get_current_user
from ..db import get_session
from ..schemas import CamelModel, MessageResponse, Page, non_blank, one_of, pagination
from ..services import posts as service
from ..services.posts import MEDIA_TYPES, PostView

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/posts", tags=["posts"])


class PostDTO(CamelModel):
    id: int
    user_id: str
    content: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    likes_count: int = 0
    comments_count: int = 0
    created_at: datetime
    updated_at: datetime


class CreatePostRequest(CamelModel):
    content: str | None = None
    media_url: str | None = Field(default=None, validation_alias=AliasChoices("mediaUrl", "media_url", "mediaDataUrl"))
    media_type: Annotated[str, one_of("INVALID_MEDIA_TYPE", "mediaType", MEDIA_TYPES)] | None = None


class CommentDTO(CamelModel):
    id: int
    post_id: int
    user_id: str
    text: str
    created_at: datetime


class CreateCommentRequest(CamelModel):
    text: Annotated[str, non_blank("MISSING_TEXT", "Comment text")]


class LikesResponse(CamelModel):
    post_id: int
    likes_count: int
    liked: bool


def _to_dto(view: PostView) -> PostDTO:
    return PostDTO(
        **PostDTO.model_validate(view.post).model_dump(exclude={"likes_count", "comments_count"}),
        likes_count=view.likes_count,
        comments_count=view.comments_count,
    )


@router.get("", response_model=list[PostDTO])
async def list_posts(
    user_id: str | None = Query(default=None, alias="userId"),
    page: Page = Depends(pagination(default=10, maximum=50)),
    session: AsyncSession = Depends(get_session),
) -> list[PostDTO]:
    views = await service.list_posts(session, user_id=user_id, limit=page.limit, offset=page.offset)
    return [_to_dto(view) for view in views]


@router.get("/{post_id}", response_model=PostDTO)
async def get_post(post_id: int, session: AsyncSession = Depends(get_session)) -> PostDTO:
    return _to_dto(await service.get_post(session, post_id))


@router.post("", response_model=PostDTO, status_code=status.HTTP_201_CREATED)
async def create_post(
    request: CreatePostRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> PostDTO:
    view = await service.create_post(
        session,
        user,
        content=request.content,
        media_url=request.media_url,
        media_type=request.media_type,
    )
    return _to_dto(view)


@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    await service.delete_post(session, post_id, user.id)
    return MessageResponse(message="Post deleted successfully")


@router.post("/{post_id}/likes", response_model=LikesResponse)
async def like_post(
    post_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> LikesResponse:
    count = await service.like_post(session, post_id, user.id)
    return LikesResponse(post_id=post_id, likes_count=count, liked=True)


@router.delete("/{post_id}/likes", response_model=LikesResponse)
async def unlike_post(
    post_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> LikesResponse:
    count = await service.unlike_post(session, post_id, user.id)
    return LikesResponse(post_id=post_id, likes_count=count, liked=False)


@router.get("/{post_id}/comments", response_model=list[CommentDTO])
async def list_comments(
    post_id: int,
    page: Page = Depends(pagination(default=50, maximum=200)),
    session: AsyncSession = Depends(get_session),
):
    return await service.list_comments(session, post_id, limit=page.limit, offset=page.offset)


@router.post("/{post_id}/comments", response_model=CommentDTO, status_code=status.HTTP_201_CREATED)
async def add_comment(
    post_id: int,
    request: CreateCommentRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await service.add_comment(session, post_id, user.id, request.text)
