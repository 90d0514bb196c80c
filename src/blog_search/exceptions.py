"""Exceptions raised by blog-search."""


class BlogSearchError(Exception):
    """Base class for all blog-search errors."""


class PostsLoadError(BlogSearchError):
    """The posts dataset is missing, unreadable or fails validation."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Could not load posts from {path}: {reason}")


class DuplicateSlugError(BlogSearchError):
    """Two posts handed to the search index share a slug."""

    def __init__(self, slug: str) -> None:
        self.slug = slug
        super().__init__(f"Duplicate post slug: {slug}")


class SearchSessionClosedError(BlogSearchError):
    """A query was issued to a search session after it was closed."""
