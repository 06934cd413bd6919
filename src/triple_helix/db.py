"""SQLite storage for scheduler state snapshots."""
import json
import sqlite3
from pathlib import Path

from loguru import logger

from triple_helix.config import get_settings

DEFAULT_DB_PATH = get_settings().db_path

SCHEMA = """
CREATE TABLE IF NOT EXISTS scheduler_state (
    user_id TEXT PRIMARY KEY,
    state TEXT NOT NULL,
    last_updated INTEGER
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating the state table if it doesn't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()


def save_state(db_path: str, state: dict) -> None:
    """Insert or replace the snapshot for state["userId"]."""
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO scheduler_state (user_id, state, last_updated) VALUES (?, ?, ?)
        ON CONFLICT(user_id) DO UPDATE SET state=excluded.state, last_updated=excluded.last_updated""",
        (state.get("userId") or "anonymous", json.dumps(state), state.get("lastUpdated")),
    )
    conn.commit()
    conn.close()


def load_state(db_path: str, user_id: str) -> dict | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT state FROM scheduler_state WHERE user_id = ?", (user_id,)).fetchone()
    conn.close()
    if row is None:
        return None
    try:
        return json.loads(row["state"])
    except json.JSONDecodeError as e:
        logger.warning("Stored state for {} is unreadable, ignoring it: {}", user_id, e)
        return None


def delete_state(db_path: str, user_id: str) -> None:
    conn = get_connection(db_path)
    conn.execute("DELETE FROM scheduler_state WHERE user_id = ?", (user_id,))
    conn.commit()
    conn.close()


def make_save_hook(db_path: str = DEFAULT_DB_PATH):
    """Build a scheduler save hook that writes each snapshot to db_path."""

    def save(state: dict) -> None:
        save_state(db_path, state)

    return save
