"""EduScout Backend — FastAPI application entry point.

Endpoints: search, content availability check, summary generation, AI chat.
"""

import hashlib
import logging
import time
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from eduscout.config import settings
from eduscout.exceptions import InvalidRequestError
from eduscout.orchestrator.router import OrchestratorRouter
from eduscout.services.rate_limit import RateLimiter, RedisRateLimitStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("eduscout")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
}


# ═══════════════ RATE LIMITING ═══════════════

rate_limit_store = RedisRateLimitStore(settings.redis_url)
search_limiter = RateLimiter(rate_limit_store, settings.rate_limit_per_minute, name="search")
chat_limiter = RateLimiter(rate_limit_store, settings.chat_rate_limit_per_minute, name="chat")
orchestrator = OrchestratorRouter()


# ═══════════════ LIFESPAN ═══════════════

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("EduScout backend starting | demo_mode=%s", settings.is_demo_mode)

    # Database-backed search cache (graceful degradation if unavailable)
    from eduscout.database import close_db, get_session_factory, init_db
    from eduscout.services.cache import search_cache

    db_ok = await init_db()
    if db_ok:
        search_cache.attach(get_session_factory())
    logger.info("Database: %s", "connected" if db_ok else "unavailable (in-memory cache only)")

    redis_ok = await rate_limit_store.connect()
    logger.info("Redis: %s", "connected" if redis_ok else "unavailable (in-memory rate limits)")

    yield

    search_cache.detach()
    await rate_limit_store.disconnect()
    await close_db()
    logger.info("EduScout backend shutting down")


# ═══════════════ APP ═══════════════

app = FastAPI(
    title="EduScout API",
    description="Educational content discovery API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["POST", "OPTIONS", "GET"],
    allow_headers=["Authorization", "Content-Type"],
)


# ═══════════════ HELPERS ═══════════════

def _client_ip(request: Request) -> str:
    client_ip = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.client.host if request.client else "unknown"
    return client_ip


def _chat_key(request: Request) -> str:
    auth = request.headers.get("authorization", "")
    parts = auth.split(" ", 1)
    if len(parts) == 2 and parts[0].lower() == "bearer" and parts[1].strip():
        return hashlib.sha256(parts[1].strip().encode()).hexdigest()
    return _client_ip(request)


def _error(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


async def _read_body(request: Request) -> dict | JSONResponse:
    try:
        body = await request.json()
    except Exception:
        return _error(400, "Invalid request format")
    if not isinstance(body, dict):
        return _error(400, "Invalid request format")
    return body


async def _log_search_history(
    query: str,
    learning_level: str,
    results_count: int,
    user_id: str | None,
    execution_time_ms: int,
    client_ip_hash: str,
    cached: bool,
):
    """Fire-and-forget background task to log search history to DB."""
    try:
        from eduscout.database import get_session_factory
        from eduscout.models.search_history import SearchHistory

        async with get_session_factory()() as session:
            session.add(SearchHistory(
                query=query,
                learning_level=learning_level,
                results_count=results_count,
                user_id=user_id,
                execution_time_ms=execution_time_ms,
                client_ip_hash=client_ip_hash,
                cached=cached,
            ))
            await session.commit()
    except Exception as e:
        logger.debug("Search history logging skipped: %s", str(e)[:100])


# ═══════════════ ENDPOINTS ═══════════════

@app.get("/health")
async def health():
    return {
        "status": "ok",
        "demo_mode": settings.is_demo_mode,
        "youtube": settings.has_youtube_key,
        "llm": settings.has_llm_key,
    }


@app.post("/api/search-content")
async def search_content(request: Request, background_tasks: BackgroundTasks):
    client_ip = _client_ip(request)
    if await search_limiter.is_limited(client_ip):
        return _error(429, "Too many requests. Please wait a minute.")

    body = await _read_body(request)
    if isinstance(body, JSONResponse):
        return body

    start = time.monotonic()
    try:
        result, cached = await orchestrator.search(body)
    except InvalidRequestError as e:
        return _error(400, e.message)
    except Exception as e:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.error("Search failed | %dms | %s", elapsed_ms, str(e)[:300])
        return _error(500, "Search failed. Please try again.")

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.info(
        "Search completed | level=%s | results=%d | cached=%s | %dms",
        result.learningLevel, result.totalResults, cached, elapsed_ms,
    )
    response_data = result.model_dump(mode="json")
    response_data["_pipeline"] = {"ms": elapsed_ms, "cached": cached}

    user_id = body.get("userId", body.get("user_id"))
    background_tasks.add_task(
        _log_search_history,
        query=str(body.get("query", "")).strip(),
        learning_level=result.learningLevel,
        results_count=result.totalResults,
        user_id=str(user_id) if user_id else None,
        execution_time_ms=elapsed_ms,
        client_ip_hash=hashlib.sha256(client_ip.encode()).hexdigest(),
        cached=cached,
    )
    return JSONResponse(content=response_data)


@app.post("/api/check-content-availability")
async def check_content_availability(request: Request):
    body = await _read_body(request)
    if isinstance(body, JSONResponse):
        return body
    try:
        result = await orchestrator.check_availability(body)
    except InvalidRequestError as e:
        return _error(400, e.message)
    except Exception as e:
        logger.error("Availability check failed | %s", str(e)[:300])
        return _error(500, "Content availability check failed. Please try again.")
    return JSONResponse(content=result.model_dump(mode="json"))


@app.post("/api/generate-summary")
async def generate_summary(request: Request):
    body = await _read_body(request)
    if isinstance(body, JSONResponse):
        return body
    try:
        result = await orchestrator.generate_summary(body)
    except InvalidRequestError as e:
        return _error(400, e.message)
    except Exception as e:
        logger.error("Summary generation failed | %s", str(e)[:300])
        return _error(500, "Failed to generate summary.")
    return JSONResponse(content=result.model_dump(mode="json"))


@app.post("/api/ai-chat")
async def ai_chat(request: Request):
    if await chat_limiter.is_limited(_chat_key(request)):
        return _error(429, "Rate limit exceeded", headers=SECURITY_HEADERS)

    body = await _read_body(request)
    if isinstance(body, JSONResponse):
        return body
    try:
        reply = await orchestrator.chat(body)
    except InvalidRequestError as e:
        return _error(400, e.message, headers=SECURITY_HEADERS)
    except Exception as e:
        logger.error("AI chat failed | %s", str(e)[:300])
        return _error(500, "Service temporarily unavailable", headers=SECURITY_HEADERS)
    return JSONResponse(content=reply.model_dump(), headers=SECURITY_HEADERS)
