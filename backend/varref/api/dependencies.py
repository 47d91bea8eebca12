"""API dependencies.

The registry, translator and converter are created once in the application
lifespan and stored on `app.state`; these dependencies hand them to routes.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from varref.core.content.converter import ContentFormatConverter
from varref.core.identifiers.translator import IdentifierTranslator
from varref.core.registry.cache import VariableRegistry
from varref.core.resolution.engine import ResolutionEngine


def get_registry(request: Request) -> VariableRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(status_code=503, detail="Variable registry not initialized")
    return registry


def get_translator(request: Request) -> IdentifierTranslator:
    translator = getattr(request.app.state, "translator", None)
    if translator is None:
        raise HTTPException(status_code=503, detail="Identifier translator not initialized")
    return translator


def get_converter(
    registry: Annotated[VariableRegistry, Depends(get_registry)],
) -> ContentFormatConverter:
    return ContentFormatConverter(registry)


def get_engine(
    registry: Annotated[VariableRegistry, Depends(get_registry)],
) -> ResolutionEngine:
    return ResolutionEngine(registry)


# Type aliases for cleaner dependency injection
Registry = Annotated[VariableRegistry, Depends(get_registry)]
Translator = Annotated[IdentifierTranslator, Depends(get_translator)]
Converter = Annotated[ContentFormatConverter, Depends(get_converter)]
Engine = Annotated[ResolutionEngine, Depends(get_engine)]
