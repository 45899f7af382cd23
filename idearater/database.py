# Database module for the ideas table
# Schema setup, inserts, listing and bulk re-rating over SQLAlchemy Core

import logging
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    func,
    inspect,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine

from idearater.config import (
    LIST_LIMIT,
    MAX_IDEA_LENGTH,
    MAX_STORED_NOTE_LENGTH,
    RERATE_DEFAULT_LIMIT,
    RERATE_MAX_LIMIT,
    RERATE_MIN_LIMIT,
)
from idearater.models import IdeaRecord, Rating, RatingResult
from idearater.ratings import extract_rating_from_text

logger = logging.getLogger(__name__)

metadata = MetaData()

ideas_table = Table(
    "ideas",
    metadata,
    Column("id", BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
    Column("idea_text", String(MAX_IDEA_LENGTH), nullable=False),
    Column("rating", String(20), nullable=False),
    Column("rating_note", String(MAX_STORED_NOTE_LENGTH), nullable=False, server_default=""),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

created_at_index = Index("ideas_created_at_idx", ideas_table.c.created_at.desc())

_COLUMNS = [
    ideas_table.c.id,
    ideas_table.c.idea_text,
    ideas_table.c.rating,
    ideas_table.c.rating_note,
    ideas_table.c.created_at,
]

# Engine (lazy initialization)
_engine: Optional[Engine] = None

# Set once the schema statements have succeeded in this process.
_schema_ready = False


def _normalize_url(database_url: str) -> str:
    # Hosted Postgres providers hand out postgres:// URLs, SQLAlchemy wants postgresql://
    if database_url.startswith("postgres://"):
        return "postgresql://" + database_url[len("postgres://"):]
    return database_url


def get_engine(database_url: str) -> Engine:
    """Get or create the process-wide engine."""
    global _engine
    if _engine is None:
        _engine = create_engine(_normalize_url(database_url), pool_pre_ping=True)
    return _engine


def use_engine(engine: Optional[Engine]) -> None:
    """Replace the process-wide engine and forget schema readiness."""
    global _engine, _schema_ready
    _engine = engine
    _schema_ready = False


def is_schema_ready() -> bool:
    return _schema_ready


def ensure_schema(engine: Engine) -> None:
    """Create the ideas table and its index if missing.

    Every statement is idempotent, so a concurrent second run is harmless.
    """
    global _schema_ready
    if _schema_ready:
        return

    with engine.begin() as conn:
        metadata.create_all(conn, checkfirst=True)

        # Tables from the first deployment predate rating notes.
        columns = {col["name"] for col in inspect(conn).get_columns("ideas")}
        if "rating_note" not in columns:
            logger.info("Adding rating_note column to ideas table")
            conn.execute(text(
                f"ALTER TABLE ideas ADD COLUMN rating_note VARCHAR({MAX_STORED_NOTE_LENGTH}) NOT NULL DEFAULT ''"
            ))

        created_at_index.create(conn, checkfirst=True)

    _schema_ready = True


def _row_to_record(row: Any) -> IdeaRecord:
    data: Dict[str, Any] = dict(row._mapping)
    rating = extract_rating_from_text(data["rating"])
    if rating is None:
        logger.warning(f"Idea {data['id']} has unknown rating {data['rating']!r}, showing as Meh")
        rating = Rating.MEH
    return IdeaRecord(
        id=data["id"],
        idea_text=data["idea_text"],
        rating=rating,
        rating_note=data["rating_note"] or "",
        created_at=data["created_at"],
    )


def insert_idea(engine: Engine, idea_text: str, rating: Rating, note: str) -> IdeaRecord:
    """Insert one idea and return it with its generated id and timestamp."""
    stmt = (
        insert(ideas_table)
        .values(idea_text=idea_text, rating=Rating(rating).value, rating_note=note)
        .returning(*_COLUMNS)
    )
    with engine.begin() as conn:
        row = conn.execute(stmt).one()
    record = _row_to_record(row)
    logger.info(f"Saved idea {record.id} rated {record.rating.value!r}")
    return record


def _fetch_recent_rows(engine: Engine, limit: int) -> List[Any]:
    stmt = (
        select(*_COLUMNS)
        .order_by(ideas_table.c.created_at.desc(), ideas_table.c.id.desc())
        .limit(limit)
    )
    with engine.connect() as conn:
        return list(conn.execute(stmt))


def list_recent_ideas(engine: Engine, limit: int = LIST_LIMIT) -> List[IdeaRecord]:
    """Up to `limit` ideas, newest first. Notes are returned as stored."""
    return [_row_to_record(row) for row in _fetch_recent_rows(engine, limit)]


def update_idea_rating(engine: Engine, idea_id: int, rating: Rating, note: str) -> bool:
    stmt = (
        update(ideas_table)
        .where(ideas_table.c.id == idea_id)
        .values(rating=Rating(rating).value, rating_note=note)
    )
    with engine.begin() as conn:
        result = conn.execute(stmt)
    return result.rowcount > 0


def clamp_rerate_limit(value: Any) -> int:
    """Parse a requested re-rate batch size and clamp it to the allowed range."""
    if value is None or isinstance(value, bool):
        return RERATE_DEFAULT_LIMIT
    try:
        limit = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return RERATE_DEFAULT_LIMIT
    return max(RERATE_MIN_LIMIT, min(RERATE_MAX_LIMIT, limit))


class RerateSummary(NamedTuple):
    selected: int
    updated: int


def rerate_recent_ideas(
    engine: Engine,
    limit: int,
    rate_fn: Callable[[str], RatingResult],
) -> RerateSummary:
    """
    Re-rate the most recent ideas one at a time.

    Each idea is rated and written before the next one starts. The first
    failure propagates; ideas already written keep their new rating.
    """
    rows = _fetch_recent_rows(engine, limit)
    updated = 0

    for row in rows:
        result = rate_fn(row.idea_text)
        if update_idea_rating(engine, row.id, result.rating, result.note):
            updated += 1
        logger.info(f"Re-rated idea {row.id}: {row.rating!r} -> {result.rating.value!r}")

    return RerateSummary(selected=len(rows), updated=updated)
