"""Fuzzy post search, query caching and the JSON content API for the blog."""

__version__ = "0.1.0"
