"""Loading and querying the post dataset produced by the content build."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
import json
import logging
import math
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..domain.model import PostRecord
from ..exceptions import PostsLoadError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageMeta:
    page: int
    per_page: int
    total: int
    total_pages: int

    def to_dict(self) -> dict[str, int]:
        return {
            "page": self.page,
            "per_page": self.per_page,
            "total": self.total,
            "total_pages": self.total_pages,
        }


@dataclass(frozen=True)
class Page:
    data: list[Any]
    meta: PageMeta


def load_posts(path: str | Path, *, include_drafts: bool = False) -> list[PostRecord]:
    """Read ``posts.json`` and return validated posts, newest first.

    Args:
        path: Location of the JSON array written by the content build
        include_drafts: Keep posts whose ``published`` flag is false

    Raises:
        PostsLoadError: If the file is missing, is not a JSON array, or a
            record fails validation
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise PostsLoadError(str(path), "file not found") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise PostsLoadError(str(path), str(exc)) from exc

    if not isinstance(raw, list):
        raise PostsLoadError(str(path), f"expected a JSON array, got {type(raw).__name__}")

    try:
        posts = [PostRecord.model_validate(item) for item in raw]
    except ValidationError as exc:
        raise PostsLoadError(str(path), f"invalid post record: {exc.error_count()} validation error(s)") from exc

    if not include_drafts:
        posts = [post for post in posts if post.published]

    logger.info("Loaded %d posts from %s", len(posts), path)
    return sort_posts_by_date(posts)


def sort_posts_by_date(posts: Iterable[PostRecord], *, descending: bool = True) -> list[PostRecord]:
    """Sort by ISO date string; equal dates keep their input order."""
    return sorted(posts, key=lambda post: post.date, reverse=descending)


def filter_by_tag(posts: Iterable[PostRecord], tag: str | None) -> list[PostRecord]:
    """Keep posts carrying ``tag`` (case-insensitive); no tag keeps all."""
    if not tag:
        return list(posts)
    wanted = tag.lower()
    return [post for post in posts if any(item.lower() == wanted for item in post.tags)]


def paginate(items: Sequence[Any], page: int = 1, per_page: int = 10) -> Page:
    """Slice ``items`` into a page, clamping ``page`` into ``1..total_pages``."""
    if per_page < 1:
        raise ValueError("per_page must be at least 1")
    total = len(items)
    total_pages = max(1, math.ceil(total / per_page))
    current = min(max(page, 1), total_pages)
    start = (current - 1) * per_page
    return Page(
        data=list(items[start : start + per_page]),
        meta=PageMeta(page=current, per_page=per_page, total=total, total_pages=total_pages),
    )


def canonical_url(post: PostRecord, base_url: str = "") -> str:
    base = base_url.rstrip("/")
    return f"{base}/{post.slug}" if base else f"/{post.slug}"


def to_feed_item(post: PostRecord, base_url: str = "") -> dict[str, Any]:
    """Public JSON shape of a post (no body)."""
    return {
        "slug": post.slug,
        "slugAsParams": post.slug_as_params,
        "title": post.title,
        "description": post.description,
        "date": post.date,
        "tags": list(post.tags),
        "canonicalUrl": canonical_url(post, base_url),
    }
