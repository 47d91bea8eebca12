"""Content conversion and resolution API routes."""

import logging

from fastapi import APIRouter
from pydantic import BaseModel, Field

from varref.api.dependencies import Converter, Engine, Registry
from varref.models.content import ContentTriple
from varref.utils.text import safe_truncate

logger = logging.getLogger(__name__)

router = APIRouter()


class RenderRequest(BaseModel):
    """Raw text to render as editor HTML."""
    raw_text: str = Field(default="", description="Text containing identifiers")
    markup: bool = Field(default=False, description="Parse raw_text as HTML")


class ExtractRequest(BaseModel):
    """Editor HTML to convert back to text."""
    html: str = Field(default="", description="Editor HTML fragment")


class ResolveRequest(BaseModel):
    """Raw text to resolve."""
    text: str = Field(default="", description="Text containing identifiers")
    refresh: bool = Field(default=False, description="Refetch the catalog first")


class ResolveResponse(BaseModel):
    """Resolved text and the identifiers left as they were."""
    text: str
    unresolved: list[str]


@router.post("/content/render")
async def render_content(
    request: RenderRequest,
    registry: Registry,
    converter: Converter,
) -> ContentTriple:
    """Render raw text into all three content projections."""
    await registry.load()
    return converter.triple_from_raw(request.raw_text, markup=request.markup)


@router.post("/content/extract")
async def extract_content(
    request: ExtractRequest,
    converter: Converter,
) -> ContentTriple:
    """Compute raw and plain text for editor HTML."""
    return converter.triple_from_html(request.html)


@router.post("/content/resolve")
async def resolve_content(
    request: ResolveRequest,
    registry: Registry,
    engine: Engine,
) -> ResolveResponse:
    """Substitute variable values into text.

    Identifiers that match no variable stay verbatim and are listed in
    `unresolved`.
    """
    if request.refresh:
        registry.clear_cache()
    await registry.load()

    unresolved = engine.find_unresolved(request.text)
    if unresolved:
        logger.info(
            "Unresolved identifiers %s in: %s",
            unresolved,
            safe_truncate(request.text),
        )
    return ResolveResponse(text=engine.resolve(request.text), unresolved=unresolved)
