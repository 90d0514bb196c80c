"""Tag counts and blog statistics."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from ..domain.model import PostRecord
from .posts import sort_posts_by_date


TECH_KEYWORDS: tuple[str, ...] = (
    "JavaScript",
    "TypeScript",
    "React",
    "Next.js",
    "Node.js",
    "Python",
    "AWS",
    "Docker",
    "MongoDB",
    "PostgreSQL",
    "GraphQL",
    "Vue",
    "Angular",
    "Svelte",
    "Tailwind",
    "CSS",
    "HTML",
    "Git",
    "API",
    "Database",
    "Frontend",
    "Backend",
    "Full Stack",
)
MOST_USED_TECH_LIMIT = 6


class BlogStats(BaseModel):
    """Aggregate numbers shown on the blog and tags pages."""

    model_config = ConfigDict(frozen=True)

    total_posts: int
    total_tags: int
    writing_years: int
    most_used_tech: list[str] = Field(default_factory=list)
    first_post_date: str | None = None
    latest_post_date: str | None = None
    tags_with_counts: dict[str, int] = Field(default_factory=dict)


def get_all_tags(posts: Iterable[PostRecord]) -> dict[str, int]:
    """Count posts per tag, in first-seen order."""
    counts: Counter[str] = Counter()
    for post in posts:
        counts.update(post.tags)
    return dict(counts)


def sort_tags_by_count(tags: Mapping[str, int]) -> list[str]:
    """Tag names by descending count; ties keep first-seen order."""
    return sorted(tags, key=lambda tag: tags[tag], reverse=True)


def _is_tech_tag(tag: str) -> bool:
    lowered = tag.lower()
    return any(keyword.lower() in lowered or lowered in keyword.lower() for keyword in TECH_KEYWORDS)


def blog_stats(posts: Iterable[PostRecord], today: date | None = None) -> BlogStats:
    """Summarize published posts: counts, writing span and top tech tags."""
    published = [post for post in posts if post.published]
    tags = get_all_tags(published)
    ordered = sort_posts_by_date(published)
    latest = ordered[0] if ordered else None
    first = ordered[-1] if ordered else None

    current_year = (today or date.today()).year
    first_year = first.year if first else current_year
    tech = [tag for tag in sort_tags_by_count(tags) if _is_tech_tag(tag)]

    return BlogStats(
        total_posts=len(published),
        total_tags=len(tags),
        writing_years=max(1, current_year - first_year + 1),
        most_used_tech=tech[:MOST_USED_TECH_LIMIT],
        first_post_date=first.date if first else None,
        latest_post_date=latest.date if latest else None,
        tags_with_counts=tags,
    )
