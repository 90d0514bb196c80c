"""
Post search package.

- analyzers: Tokenizer/filter pipeline and query normalization
- fuzzy: Approximate substring matching with highlight ranges
- index: Weighted fuzzy index over the post collection
"""
