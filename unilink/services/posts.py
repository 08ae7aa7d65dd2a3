"""Global feed: posts, likes and comments."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..auth import CurrentUser
from ..errors import Forbidden, NotFound, ValidationFailed
from .notifications import NotificationService

logger = logging.getLogger(__name__)

MEDIA_TYPES = ("image", "video")
MENTION_PATTERN = re.compile(r"(?<![\w@])@([A-Za-z0-9_-]+)")


@dataclass
class PostView:
    post: models.Post
    likes_count: int = 0
    comments_count: int = 0


def extract_mentions(text: str | None) -> list[str]:
    """User ids mentioned as ``@<id>``, in order of first appearance."""
    if not text:
        return []
    seen: dict[str, None] = {}
    for match in MENTION_PATTERN.finditer(text):
        seen.setdefault(match.group(1), None)
    return list(seen)


def _likes_count():
    return (
        select(func.count())
        .select_from(models.PostLike)
        .where(models.PostLike.post_id == models.Post.id)
        .correlate(models.Post)
        .scalar_subquery()
    )


def _comments_count():
    return (
        select(func.count(models.PostComment.id))
        .where(models.PostComment.post_id == models.Post.id)
        .correlate(models.Post)
        .scalar_subquery()
    )


async def list_posts(
    session: AsyncSession,
    *,
    user_id: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> list[PostView]:
    query = select(models.Post, _likes_count(), _comments_count())
    if user_id:
        query = query.where(models.Post.user_id == user_id)
    query = query.order_by(models.Post.created_at.desc(), models.Post.id.desc()).limit(limit).offset(offset)
    rows = (await session.execute(query)).all()
    return [PostView(post=post, likes_count=likes, comments_count=comments) for post, likes, comments in rows]


async def get_post(session: AsyncSession, post_id: int) -> PostView:
    query = select(models.Post, _likes_count(), _comments_count()).where(models.Post.id == post_id)
    row = (await session.execute(query)).first()
    if row is None:
        raise NotFound("Post not found", "POST_NOT_FOUND")
    post, likes, comments = row
    return PostView(post=post, likes_count=likes, comments_count=comments)


async def _require_post(session: AsyncSession, post_id: int) -> models.Post:
    post = await session.get(models.Post, post_id)
    if post is None:
        raise NotFound("Post not found", "POST_NOT_FOUND")
    return post


async def create_post(
    session: AsyncSession,
    author: CurrentUser,
    *,
    content: str | None = None,
    media_url: str | None = None,
    media_type: str | None = None,
) -> PostView:
    content = content.strip() if content else None
    if not content and not media_url:
        raise ValidationFailed("Provide content or media", "MISSING_CONTENT")

    post = models.Post(user_id=author.id, content=content, media_url=media_url, media_type=media_type)
    session.add(post)
    await session.flush()

    mentioned = [m for m in extract_mentions(content) if m != author.id]
    if mentioned:
        existing = (await session.execute(select(models.User.id).where(models.User.id.in_(mentioned)))).scalars().all()
        for user_id in existing:
            await NotificationService.mention(
                session,
                user_id=user_id,
                mentioner_name=author.name,
                mentioner_id=author.id,
                post_id=post.id,
            )

    await session.commit()
    await session.refresh(post)
    logger.info(f"User {author.id} created post {post.id} ({len(mentioned)} mention(s))")
    return PostView(post=post)


async def delete_post(session: AsyncSession, post_id: int, user_id: str) -> None:
    post = await _require_post(session, post_id)
    if post.user_id != user_id:
        raise Forbidden("You can only delete your own posts", "FORBIDDEN_NOT_AUTHOR")
    await session.delete(post)
    await session.commit()
    logger.info(f"Deleted post {post_id}")


async def like_post(session: AsyncSession, post_id: int, user_id: str) -> int:
    """Like a post (idempotent); returns the new like count."""
    await _require_post(session, post_id)
    if await session.get(models.PostLike, (post_id, user_id)) is None:
        session.add(models.PostLike(post_id=post_id, user_id=user_id))
        try:
            await session.commit()
        except IntegrityError:
            # concurrent like of the same post by the same user
            await session.rollback()
    return (await get_post(session, post_id)).likes_count


async def unlike_post(session: AsyncSession, post_id: int, user_id: str) -> int:
    await _require_post(session, post_id)
    await session.execute(
        delete(models.PostLike).where(models.PostLike.post_id == post_id, models.PostLike.user_id == user_id)
    )
    await session.commit()
    return (await get_post(session, post_id)).likes_count


async def list_comments(
    session: AsyncSession,
    post_id: int,
    *,
    limit: int = 50,
    offset: int = 0,
) -> list[models.PostComment]:
    await _require_post(session, post_id)
    query = (
        select(models.PostComment)
        .where(models.PostComment.post_id == post_id)
        .order_by(models.PostComment.created_at.asc(), models.PostComment.id.asc())
        .limit(limit)
        .offset(offset)
    )
    return list((await session.execute(query)).scalars().all())


async def add_comment(session: AsyncSession, post_id: int, user_id: str, text: str) -> models.PostComment:
    await _require_post(session, post_id)
    comment = models.PostComment(post_id=post_id, user_id=user_id, text=text)
    session.add(comment)
    await session.commit()
    await session.refresh(comment)
    logger.info(f"User {user_id} commented on post {post_id}")
    return comment
