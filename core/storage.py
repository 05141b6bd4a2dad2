# core/storage.py
"""
SQLite copy of the stored lists that /api/compare-merge compares against.

The list-management application owns this table and writes it with
save_list_items after a user accepts a merge; this service only reads it.
"""
import datetime
import os
import sqlite3
from typing import Iterable, List

import pytz

from .config import DB_PATH
from .logger import get_logger
from .models import NormalizedItem

logger = get_logger(__name__)


def _connect(db_path: str):
    directory = os.path.dirname(db_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    return sqlite3.connect(db_path)


def now_utc_iso() -> str:
    return datetime.datetime.now(tz=pytz.UTC).isoformat()


def ensure_db(db_path: str = DB_PATH):
    with _connect(db_path) as con:
        cur = con.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS list_items (
                list_id TEXT,
                position INTEGER,
                name TEXT NOT NULL,
                price TEXT,
                link TEXT,
                image TEXT,
                updated_at TEXT,
                PRIMARY KEY (list_id, position)
            )
        """
        )
        con.commit()


def get_list_items(list_id: str, db_path: str = DB_PATH) -> List[NormalizedItem]:
    """
    Return the stored items for a list, in their saved order. Unknown lists are empty.
    """
    ensure_db(db_path)
    with _connect(db_path) as con:
        cur = con.cursor()
        cur.execute(
            """
            SELECT name, price, link, image
            FROM list_items
            WHERE list_id=?
            ORDER BY position
        """,
            (list_id,),
        )
        rows = cur.fetchall()

    return [NormalizedItem(name=name, price=price, link=link, image=image) for name, price, link, image in rows]


def save_list_items(list_id: str, items: Iterable[NormalizedItem], db_path: str = DB_PATH) -> int:
    """
    Replace the stored contents of a list. Returns the number of rows written.
    """
    ensure_db(db_path)
    ts = now_utc_iso()
    count = 0
    with _connect(db_path) as con:
        cur = con.cursor()
        cur.execute("DELETE FROM list_items WHERE list_id=?", (list_id,))
        for position, it in enumerate(items):
            cur.execute(
                """
                INSERT INTO list_items (list_id, position, name, price, link, image, updated_at)
                VALUES (?,?,?,?,?,?,?)
            """,
                (list_id, position, it.name, it.price, it.link, it.image, ts),
            )
            count += 1
        con.commit()
    logger.debug("Saved %d items for list %s", count, list_id)
    return count
