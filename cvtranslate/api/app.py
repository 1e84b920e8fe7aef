"""
FastAPI application for the CV translation service.

Thin wiring around DocumentTranslator: one-shot and streamed document
translation, field-by-field text translation, CV extraction and cache
maintenance.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from cvtranslate.config import get_settings
from cvtranslate.core.errors import (
    InvalidRequestError,
    TranslationError,
    UpstreamError,
)
from cvtranslate.core.models import ModelTier, ProgressEvent, TranslateRequest
from cvtranslate.i18n.cache import CacheFlusher, DocumentTranslationCache
from cvtranslate.i18n.languages import LANGUAGE_NAMES, SUPPORTED_LANGUAGES, is_rtl
from cvtranslate.i18n.pipeline import DocumentTranslator
from cvtranslate.services.ai.client import GeminiTextService, TextService, list_models
from cvtranslate.services.ai.cv_extractor import extract_cv
from cvtranslate.storage.local import LocalContentStorage


logger = logging.getLogger(__name__)

TEST_MODEL_PROMPT = "Say 'Model is working!' in one sentence."


# =============================================================================
# App State
# =============================================================================


class AppState:
    """Application state - initialized at startup."""

    text_service: TextService
    cache: DocumentTranslationCache
    flusher: CacheFlusher
    translator: DocumentTranslator


state = AppState()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup app resources."""
    settings = get_settings()
    configure_logging(settings.log_level)

    state.text_service = GeminiTextService(settings)
    state.cache = DocumentTranslationCache(
        ttl_seconds=settings.cache_ttl_seconds,
        storage=LocalContentStorage(settings.cache_dir),
    )
    await state.cache.load()
    state.translator = DocumentTranslator(state.text_service, cache=state.cache, settings=settings)

    state.flusher = CacheFlusher(state.cache, interval=settings.cache_flush_interval)
    state.flusher.start()

    logger.info("CV translation API starting in %s mode", settings.environment)

    yield

    await state.flusher.stop()
    logger.info("CV translation API shutting down")


# =============================================================================
# App Setup
# =============================================================================


app = FastAPI(
    title="CV Translation API",
    description="Structure-preserving translation of CV documents",
    version="0.1.0",
    lifespan=lifespan,
)


# CORS
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Dependencies
# =============================================================================


def get_translator() -> DocumentTranslator:
    return state.translator


def get_cache() -> DocumentTranslationCache:
    return state.cache


def get_text_service() -> TextService:
    return state.text_service


# =============================================================================
# Request/Response Models
# =============================================================================


class TranslateTextRequest(BaseModel):
    model_config = {"populate_by_name": True}

    text: str = ""
    target_lang: str = Field("", alias="targetLang")


class ExtractCVRequest(BaseModel):
    text: str = ""


def _error_status(error: TranslationError) -> int:
    if isinstance(error, InvalidRequestError):
        return 400
    if isinstance(error, UpstreamError):
        return 502
    return 500


def format_sse(event: ProgressEvent) -> str:
    data = json.dumps(event.wire_data(), ensure_ascii=False)
    return f"event: {event.kind.value}\ndata: {data}\n\n"


# =============================================================================
# Health Check
# =============================================================================


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "cvtranslate-api"}


# =============================================================================
# Translation
# =============================================================================


@app.post("/api/translate-fast")
async def translate_fast(
    request: TranslateRequest,
    translator: DocumentTranslator = Depends(get_translator),
) -> Any:
    """Translate a whole document and reply once."""
    try:
        return await translator.translate(request.data, request.target_lang)
    except TranslationError as e:
        logger.error("Fast translate error: %s", e)
        raise HTTPException(status_code=_error_status(e), detail=str(e))


@app.post("/api/translate-stream")
async def translate_stream(
    request: TranslateRequest,
    http_request: Request,
    translator: DocumentTranslator = Depends(get_translator),
) -> StreamingResponse:
    """
    Translate a document as server-sent events.

    Emits `start`, one `chunk` per segment in order, then `done` or `error`.
    A client disconnect stops further upstream calls.
    """
    cancel = asyncio.Event()

    async def events() -> AsyncIterator[str]:
        try:
            async for event in translator.stream(request.data, request.target_lang, cancel):
                yield format_sse(event)
                if await http_request.is_disconnected():
                    logger.info("Client disconnected, cancelling stream")
                    cancel.set()
        except Exception as e:
            logger.error("Stream error: %s", e)
            yield format_sse(ProgressEvent.error(str(e)))
        finally:
            cancel.set()

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@app.post("/api/translate-text")
async def translate_text(
    request: TranslateTextRequest,
    translator: DocumentTranslator = Depends(get_translator),
):
    """Translate one plain-text CV field."""
    try:
        translated = await translator.translate_text(request.text, request.target_lang)
    except TranslationError as e:
        raise HTTPException(status_code=_error_status(e), detail=str(e))
    return {"original": request.text, "translated": translated, "targetLang": request.target_lang}


# =============================================================================
# CV Extraction
# =============================================================================


@app.post("/api/extract-cv")
async def extract_cv_endpoint(
    request: ExtractCVRequest,
    service: TextService = Depends(get_text_service),
):
    """Extract a structured CV from pasted text."""
    try:
        return await extract_cv(request.text, service)
    except TranslationError as e:
        logger.error("Extract CV endpoint: %s", e)
        raise HTTPException(status_code=_error_status(e), detail=str(e))


# =============================================================================
# Cache Maintenance & Diagnostics
# =============================================================================


@app.get("/api/cache/stats")
async def cache_stats(cache: DocumentTranslationCache = Depends(get_cache)):
    return cache.stats().model_dump()


@app.delete("/api/cache")
async def clear_cache(cache: DocumentTranslationCache = Depends(get_cache)):
    await cache.clear()
    return {"cleared": True}


@app.get("/api/list-models")
async def list_models_endpoint():
    """List models visible to the configured key."""
    try:
        models = await list_models(get_settings())
    except UpstreamError as e:
        raise HTTPException(status_code=_error_status(e), detail=str(e))
    return {"success": True, "availableModels": models}


@app.get("/api/test-model")
async def check_model(
    tier: ModelTier = ModelTier.PRIMARY,
    service: TextService = Depends(get_text_service),
):
    """Send one short prompt to the primary (or fallback) model."""
    settings = get_settings()
    model = settings.fallback_model if tier == ModelTier.FALLBACK else settings.primary_model
    try:
        response = await service.generate(TEST_MODEL_PROMPT, tier)
    except UpstreamError as e:
        logger.error("Model test failed for %s: %s", model, e)
        raise HTTPException(status_code=_error_status(e), detail=str(e))
    return {"success": True, "response": response.strip(), "model": model, "tier": tier.value}


@app.get("/api/languages")
async def languages():
    """Target languages with a known display name."""
    return [
        {"code": lang.value, "name": LANGUAGE_NAMES[lang.value], "rtl": is_rtl(lang.value)}
        for lang in SUPPORTED_LANGUAGES
    ]
