"""Editor content models."""

from pydantic import BaseModel, Field


class ContentTriple(BaseModel):
    """Three projections of one editor document.

    - html: editor DOM markup, variables rendered as atomic tags
    - raw_text: identifier-bearing text used for storage and the API
    - plain_text: visible text for display and search
    """

    html: str = Field(default="", description="Editor HTML fragment")
    raw_text: str = Field(default="", description="Text with identifier strings")
    plain_text: str = Field(default="", description="Visible text only")
