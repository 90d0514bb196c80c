"""Domain model for blog posts.

Posts are produced by the content build (velite) and are read-only here.
The model is frozen so search results and cache entries can share the same
instance without copying it.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PostRecord(BaseModel):
    """A single blog post as emitted by the content pipeline.

    ``slugAsParams`` is accepted under its JSON name. When the dataset omits
    it, it is derived from ``slug`` by dropping the leading path segment
    (``blog/react-hooks`` becomes ``react-hooks``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    slug: str = Field(min_length=1)
    slug_as_params: str = Field(default="", alias="slugAsParams")
    title: str
    description: str | None = None
    body: str | None = None
    date: str = Field(min_length=1)
    tags: tuple[str, ...] = ()
    published: bool = True

    @model_validator(mode="before")
    @classmethod
    def _derive_slug_as_params(cls, data):
        if isinstance(data, dict) and not (data.get("slugAsParams") or data.get("slug_as_params")):
            slug = str(data.get("slug") or "")
            head, _, rest = slug.partition("/")
            data = {**data, "slugAsParams": rest or head}
        return data

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_default(cls, value):
        return () if value is None else value

    @property
    def year(self) -> int:
        """Publication year taken from the ISO date prefix."""
        return int(self.date[:4])
