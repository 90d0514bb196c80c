"""Content source: the post dataset and the queries the site runs over it."""

from .posts import Page, PageMeta, filter_by_tag, load_posts, paginate, sort_posts_by_date, to_feed_item
from .stats import BlogStats, blog_stats, get_all_tags, sort_tags_by_count


__all__ = [
    "BlogStats",
    "Page",
    "PageMeta",
    "blog_stats",
    "filter_by_tag",
    "get_all_tags",
    "load_posts",
    "paginate",
    "sort_posts_by_date",
    "sort_tags_by_count",
    "to_feed_item",
]
