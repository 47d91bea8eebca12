"""Variable catalog and identifier API routes."""

import logging
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from varref.api.dependencies import Registry, Translator
from varref.core.identifiers.grammar import tokenize
from varref.models.variables import VariableRecord

logger = logging.getLogger(__name__)

router = APIRouter()


class VariableListResponse(BaseModel):
    """Current registry contents."""
    variables: list[VariableRecord]
    total: int
    last_error: Optional[str] = None


class CacheClearResponse(BaseModel):
    """Cache clear response."""
    entries_dropped: int
    action: str


class TextRequest(BaseModel):
    """Request carrying raw text."""
    text: str = Field(default="", description="Raw text containing identifiers")


class IdentifierResponse(BaseModel):
    """One identifier found in text."""
    match: str
    start: int
    end: int
    kind: str
    field: Optional[str] = None
    source: Optional[str] = None
    short_id: Optional[str] = None
    id: Optional[str] = None


class ParseResponse(BaseModel):
    """Identifiers found in the normalized text."""
    text: str
    identifiers: list[IdentifierResponse]


class TranslateResponse(BaseModel):
    """Result of a translator pass."""
    text: str
    changed: bool


@router.get("/variables")
async def list_variables(registry: Registry) -> VariableListResponse:
    """List cached variables, fetching the catalog on first use."""
    records = await registry.load()
    return VariableListResponse(
        variables=records,
        total=len(records),
        last_error=str(registry.last_error) if registry.last_error else None,
    )


@router.post("/variables/cache/clear")
async def clear_variable_cache(registry: Registry) -> CacheClearResponse:
    """Invalidate the registry cache; the next lookup refetches the catalog."""
    dropped = registry.stats()["fetched"]
    registry.clear_cache()
    return CacheClearResponse(entries_dropped=dropped, action="clear_all")


@router.post("/identifiers/parse")
async def parse_identifiers(request: TextRequest) -> ParseResponse:
    """Tokenize text into identifiers.

    Identifiers written back to back are separated by one space first; the
    returned offsets refer to that normalized text.
    """
    normalized, matches = tokenize(request.text)
    return ParseResponse(
        text=normalized,
        identifiers=[
            IdentifierResponse(
                match=m.match,
                start=m.start,
                end=m.end,
                kind=m.kind,
                field=m.field,
                source=m.source,
                short_id=m.short_id,
                id=m.id,
            )
            for m in matches
        ],
    )


@router.post("/identifiers/system-form")
async def convert_to_system_form(
    request: TextRequest,
    registry: Registry,
    translator: Translator,
) -> TranslateResponse:
    """Rewrite display identifiers as system identifiers."""
    await registry.load()
    text = translator.to_system_form(request.text)
    return TranslateResponse(text=text, changed=text != request.text)


@router.post("/identifiers/display-form")
async def convert_to_display_form(
    request: TextRequest,
    registry: Registry,
    translator: Translator,
) -> TranslateResponse:
    """Rewrite system and outdated display identifiers to current display form."""
    await registry.load()
    text = translator.to_display_form(request.text)
    return TranslateResponse(text=text, changed=text != request.text)
