# viewer.py
import hmac
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from idearater import database as db
from idearater.config import ALLOWED_METHODS, LIST_LIMIT, MAX_IDEA_LENGTH, Settings
from idearater.errors import (
    AuthorizationError,
    ConfigurationError,
    IdeaRaterError,
    MethodNotAllowedError,
    ValidationError,
)
from idearater.llm import IdeaRater
from idearater.models import IdeaRecord
from idearater.ratings import display_note
from idearater.text import validate_idea_text

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"

IDEAS_PATHS = ("/api/ideas", "/ideas")

# The common methods reach the handler, which answers 405 itself. Any other
# method is turned into the same 405 by handle_http_exception.
ROUTED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

RERATE_ACTION = "rerate_all"
BODY_ERROR_MESSAGE = "Request body must be a JSON object."

# --- Initialize and configure FastAPI ---
app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=ALLOWED_METHODS,
    allow_headers=["*"],
)

app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

templates = Jinja2Templates(directory=STATIC_DIR / "html")


@app.middleware("http")
async def empty_preflight(request: Request, call_next):
    """Answer CORS preflights on the ideas endpoint with an empty 204."""
    response = await call_next(request)
    if request.method != "OPTIONS" or request.url.path not in IDEAS_PATHS:
        return response
    if response.status_code == 204:
        return response
    headers = {
        key: value for key, value in response.headers.items()
        if key not in ("content-length", "content-type")
    }
    return Response(status_code=204, headers=headers)


@app.middleware("http")
async def no_store(request: Request, call_next):
    response = await call_next(request)
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(IdeaRaterError)
async def handle_idea_rater_error(request: Request, exc: IdeaRaterError):
    if exc.status_code >= 500:
        # Wrapped failures carry their cause; log its traceback here only.
        logger.error(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
            exc_info=exc if exc.__cause__ is not None else None,
        )
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
    return JSONResponse({"error": exc.public_message}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405 and request.url.path in IDEAS_PATHS:
        return await handle_idea_rater_error(request, MethodNotAllowedError(ALLOWED_METHODS))
    return await http_exception_handler(request, exc)


# --------------------------------------------------
# Request helpers
# --------------------------------------------------

def parse_request_body(raw: Any) -> Dict[str, Any]:
    """
    Turn a request body into a dict.

    Mappings are taken as already parsed, bytes and strings are decoded as
    JSON (an empty body is an empty dict). Anything else, or JSON that isn't
    an object, raises ValidationError.
    """
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)

    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValidationError(BODY_ERROR_MESSAGE) from e

    if not isinstance(raw, str):
        raise ValidationError(BODY_ERROR_MESSAGE)
    if not raw.strip():
        return {}

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(BODY_ERROR_MESSAGE) from e
    if not isinstance(parsed, dict):
        raise ValidationError(BODY_ERROR_MESSAGE)
    return parsed


def check_configuration(settings: Settings) -> None:
    if not settings.database_url:
        raise ConfigurationError("Missing DATABASE_URL environment variable.")
    if not settings.ai_api_key:
        raise ConfigurationError("Missing DEEPSEEK_API_KEY environment variable.")


def check_admin_token(settings: Settings, provided: Any) -> None:
    if not settings.admin_token:
        raise ConfigurationError("Missing RERATE_ADMIN_TOKEN environment variable.")
    if not isinstance(provided, str) or not provided:
        raise AuthorizationError("Admin token is required.")
    if not hmac.compare_digest(provided.encode("utf-8"), settings.admin_token.encode("utf-8")):
        logger.warning("Rejected re-rate request with a wrong admin token")
        raise AuthorizationError("Invalid admin token.")


def serialize_idea(record: IdeaRecord) -> Dict[str, Any]:
    return record.model_dump(mode="json")


def present_ideas(records: List[IdeaRecord]) -> List[IdeaRecord]:
    """Swap blank and legacy placeholder notes for the current defaults."""
    return [
        record.model_copy(update={"rating_note": display_note(record.rating_note, record.rating)})
        for record in records
    ]


# --------------------------------------------------
# Handlers
# --------------------------------------------------

def _list_ideas(engine: Engine) -> JSONResponse:
    records = present_ideas(db.list_recent_ideas(engine, limit=LIST_LIMIT))
    return JSONResponse({"ideas": [serialize_idea(r) for r in records]})


def _create_idea(engine: Engine, settings: Settings, idea_text: str) -> JSONResponse:
    rater = IdeaRater.from_settings(settings)
    result = rater.rate(idea_text)
    record = db.insert_idea(engine, idea_text, result.rating, result.note)
    return JSONResponse({"idea": serialize_idea(record)}, status_code=201)


def _rerate_ideas(engine: Engine, settings: Settings, limit: int) -> JSONResponse:
    rater = IdeaRater.from_settings(settings)
    summary = db.rerate_recent_ideas(engine, limit, rater.rate)
    return JSONResponse({
        "message": f"Re-rated {summary.updated} of {summary.selected} ideas.",
        "selected": summary.selected,
        "updated": summary.updated,
    })


def handle_ideas_request(method: str, raw_body: Any) -> Response:
    """Validate, authorize and dispatch one /ideas request."""
    if method not in ALLOWED_METHODS:
        raise MethodNotAllowedError(ALLOWED_METHODS)

    if method == "OPTIONS":
        return Response(status_code=204)

    settings = Settings.from_env()
    check_configuration(settings)

    if method == "GET":
        action = None
    else:
        body = parse_request_body(raw_body)
        action = body.get("action")
        if action == RERATE_ACTION:
            check_admin_token(settings, body.get("adminToken"))
            limit = db.clamp_rerate_limit(body.get("limit"))
        else:
            idea_text = validate_idea_text(body.get("idea"))

    try:
        engine = db.get_engine(settings.database_url)
        db.ensure_schema(engine)
        if method == "GET":
            return _list_ideas(engine)
        if action == RERATE_ACTION:
            logger.info(f"Re-rating up to {limit} recent ideas")
            return _rerate_ideas(engine, settings, limit)
        return _create_idea(engine, settings, idea_text)
    except IdeaRaterError:
        raise
    except Exception as e:
        raise IdeaRaterError(f"Unexpected error: {e}") from e


# --------------------------------------------------
# Routes
# --------------------------------------------------

@app.get("/")
def serve_board(request: Request):
    """Serves the idea board with the most recent ideas"""
    ideas: List[IdeaRecord] = []
    status = ""
    try:
        settings = Settings.from_env()
        check_configuration(settings)
        engine = db.get_engine(settings.database_url)
        db.ensure_schema(engine)
        ideas = present_ideas(db.list_recent_ideas(engine, limit=LIST_LIMIT))
        if not ideas:
            status = "No ideas yet. Add the first one."
    except Exception as e:
        logger.exception(f"Could not load ideas for the board: {e}")
        status = "Could not load ideas."

    return templates.TemplateResponse(request, "index.html", {
        "ideas": ideas,
        "status": status,
        "max_length": MAX_IDEA_LENGTH,
    })


@app.api_route(IDEAS_PATHS[0], methods=ROUTED_METHODS)
@app.api_route(IDEAS_PATHS[1], methods=ROUTED_METHODS)
async def ideas_endpoint(request: Request):
    """List ideas (GET), submit or re-rate ideas (POST), CORS preflight (OPTIONS)"""
    raw_body = await request.body() if request.method == "POST" else None
    return await run_in_threadpool(handle_ideas_request, request.method, raw_body)
