import json
import logging
import sqlite3
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


def _db_path() -> Path:
    from config import settings
    p = Path(settings.db_path).expanduser()
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


def get_conn() -> sqlite3.Connection:
    conn = sqlite3.connect(str(_db_path()))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def init_db() -> None:
    with get_conn() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS saved_posts (
                id              INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id         INTEGER NOT NULL,
                title           TEXT    NOT NULL,
                original_text   TEXT    NOT NULL,
                output_text     TEXT    NOT NULL,
                style           TEXT    NOT NULL,
                author_name     TEXT,
                created_at      TEXT    NOT NULL,
                updated_at      TEXT    NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_saved_posts_user
                ON saved_posts (user_id, created_at);

            CREATE TABLE IF NOT EXISTS user_preferences (
                user_id         INTEGER PRIMARY KEY,
                default_style   TEXT    NOT NULL,
                favorite_themes TEXT    NOT NULL DEFAULT '[]',
                created_at      TEXT    NOT NULL,
                updated_at      TEXT    NOT NULL
            );
        """)


def _post_row(row: sqlite3.Row) -> dict:
    post = dict(row)
    post["style"] = json.loads(post["style"])
    return post


# ── saved_posts ───────────────────────────────────────────────────────────────

def save_post(
    user_id: int,
    title: str,
    original_text: str,
    output_text: str,
    style: dict,
    author_name: Optional[str] = None,
) -> Optional[int]:
    """Insert a post. Returns the new id, or None if the write failed."""
    now = _now()
    try:
        with get_conn() as conn:
            cur = conn.execute(
                """INSERT INTO saved_posts
                   (user_id, title, original_text, output_text, style, author_name,
                    created_at, updated_at)
                   VALUES (?,?,?,?,?,?,?,?)""",
                (
                    user_id, title, original_text, output_text,
                    json.dumps(style, ensure_ascii=False), author_name, now, now,
                ),
            )
            return cur.lastrowid
    except sqlite3.Error:
        logger.exception("Error saving post")
        return None


def get_saved_posts(user_id: int, limit: int = 20) -> list[dict]:
    """Newest first."""
    try:
        with get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM saved_posts WHERE user_id=? ORDER BY created_at DESC, id DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
    except sqlite3.Error:
        logger.exception("Error fetching saved posts")
        return []
    return [_post_row(r) for r in rows]


def get_post(post_id: int, user_id: int) -> Optional[dict]:
    try:
        with get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM saved_posts WHERE id=? AND user_id=?",
                (post_id, user_id),
            ).fetchone()
    except sqlite3.Error:
        logger.exception("Error fetching post %s", post_id)
        return None
    return _post_row(row) if row else None


def delete_post(post_id: int, user_id: int) -> bool:
    """True only when a post owned by ``user_id`` was removed."""
    try:
        with get_conn() as conn:
            cur = conn.execute(
                "DELETE FROM saved_posts WHERE id=? AND user_id=?",
                (post_id, user_id),
            )
            return cur.rowcount > 0
    except sqlite3.Error:
        logger.exception("Error deleting post %s", post_id)
        return False


def get_post_count(user_id: int) -> int:
    try:
        with get_conn() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM saved_posts WHERE user_id=?",
                (user_id,),
            ).fetchone()
    except sqlite3.Error:
        logger.exception("Error counting posts")
        return 0
    return row[0] if row else 0


# ── user_preferences ──────────────────────────────────────────────────────────

def get_user_preferences(user_id: int) -> Optional[dict]:
    """Stored preferences, or None for a user who never saved any."""
    try:
        with get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM user_preferences WHERE user_id=?",
                (user_id,),
            ).fetchone()
    except sqlite3.Error:
        logger.exception("Error fetching user preferences")
        return None
    if not row:
        return None
    prefs = dict(row)
    prefs["default_style"] = json.loads(prefs["default_style"])
    prefs["favorite_themes"] = json.loads(prefs["favorite_themes"])
    return prefs


def save_user_preferences(
    user_id: int,
    default_style: dict,
    favorite_themes: Optional[list[str]] = None,
) -> bool:
    now = _now()
    try:
        with get_conn() as conn:
            conn.execute(
                """INSERT INTO user_preferences
                   (user_id, default_style, favorite_themes, created_at, updated_at)
                   VALUES (?,?,?,?,?)
                   ON CONFLICT(user_id) DO UPDATE SET
                       default_style=excluded.default_style,
                       favorite_themes=excluded.favorite_themes,
                       updated_at=excluded.updated_at""",
                (
                    user_id,
                    json.dumps(default_style, ensure_ascii=False),
                    json.dumps(favorite_themes or []),
                    now, now,
                ),
            )
        return True
    except sqlite3.Error:
        logger.exception("Error saving user preferences")
        return False
