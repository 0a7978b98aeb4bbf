"""
Local transcription history, kept in an SQLite file next to config.json.
"""

import sqlite3
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from config import get_config_dir

logger = logging.getLogger(__name__)

DB_FILENAME = "history.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS transcriptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date TEXT NOT NULL,
    original_text TEXT NOT NULL,
    final_text TEXT NOT NULL,
    language TEXT NOT NULL,
    mode TEXT NOT NULL
)
"""

_COLUMNS = "id, date, original_text, final_text, language, mode"


@dataclass
class TranscriptionEntry:
    id: int
    timestamp: str
    original_text: str
    final_text: str
    language: str
    mode: str

    @property
    def display_text(self) -> str:
        return self.final_text or self.original_text

    @property
    def word_count(self) -> int:
        return len(self.display_text.split())

    @classmethod
    def from_row(cls, row) -> "TranscriptionEntry":
        return cls(
            id=row["id"],
            timestamp=row["date"],
            original_text=row["original_text"],
            final_text=row["final_text"],
            language=row["language"],
            mode=row["mode"],
        )


def get_db_path() -> Path:
    return get_config_dir() / DB_FILENAME


@contextmanager
def _connect(db_path: Optional[Union[str, Path]] = None):
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    try:
        conn.execute(_SCHEMA)
        yield conn
        conn.commit()
    finally:
        conn.close()


def add_transcription(
    original_text: str,
    final_text: str,
    language: str,
    mode: str,
    db_path: Optional[Union[str, Path]] = None,
) -> int:
    now = datetime.now(timezone.utc).isoformat()
    with _connect(db_path) as conn:
        cursor = conn.execute(
            "INSERT INTO transcriptions (date, original_text, final_text, language, mode) VALUES (?, ?, ?, ?, ?)",
            (now, original_text, final_text, language, mode),
        )
        entry_id = cursor.lastrowid
    logger.debug(f"Saved transcription #{entry_id} ({mode}, {language})")
    return entry_id


def get_transcriptions(limit: int = 50, db_path: Optional[Union[str, Path]] = None) -> List[TranscriptionEntry]:
    with _connect(db_path) as conn:
        rows = conn.execute(
            f"SELECT {_COLUMNS} FROM transcriptions ORDER BY date DESC, id DESC LIMIT ?",
            (limit,),
        ).fetchall()
    return [TranscriptionEntry.from_row(row) for row in rows]


def search_transcriptions(
    query: str,
    limit: int = 50,
    db_path: Optional[Union[str, Path]] = None,
) -> List[TranscriptionEntry]:
    needle = f"%{(query or '').strip()}%"
    with _connect(db_path) as conn:
        rows = conn.execute(
            f"SELECT {_COLUMNS} FROM transcriptions "
            "WHERE original_text LIKE ? OR final_text LIKE ? "
            "ORDER BY date DESC, id DESC LIMIT ?",
            (needle, needle, limit),
        ).fetchall()
    return [TranscriptionEntry.from_row(row) for row in rows]


def delete_transcription(entry_id: int, db_path: Optional[Union[str, Path]] = None) -> bool:
    with _connect(db_path) as conn:
        cursor = conn.execute("DELETE FROM transcriptions WHERE id = ?", (entry_id,))
        return cursor.rowcount > 0


def clear_transcriptions(db_path: Optional[Union[str, Path]] = None) -> int:
    with _connect(db_path) as conn:
        cursor = conn.execute("DELETE FROM transcriptions")
        return cursor.rowcount


def get_storage_info(db_path: Optional[Union[str, Path]] = None) -> Dict:
    path = Path(db_path) if db_path else get_db_path()
    with _connect(path) as conn:
        rows = conn.execute(f"SELECT {_COLUMNS} FROM transcriptions").fetchall()
    entries = [TranscriptionEntry.from_row(row) for row in rows]

    mode_breakdown: Dict[str, int] = {}
    for entry in entries:
        mode_breakdown[entry.mode] = mode_breakdown.get(entry.mode, 0) + 1

    return {
        "storage_path": str(path),
        "statistics": {
            "total_transcriptions": len(entries),
            "total_words": sum(entry.word_count for entry in entries),
            "total_characters": sum(len(entry.display_text) for entry in entries),
            "mode_breakdown": mode_breakdown,
        },
    }


def export_all_to_text(
    path: Union[str, Path],
    include_metadata: bool = True,
    db_path: Optional[Union[str, Path]] = None,
) -> str:
    """Write every entry, oldest first, to a plain text file and return the content."""
    entries = list(reversed(get_transcriptions(limit=-1, db_path=db_path)))
    blocks = []
    for entry in entries:
        if include_metadata:
            header = f"[{entry.timestamp[:19]}] mode={entry.mode} language={entry.language}"
            blocks.append(f"{header}\n{entry.display_text}")
        else:
            blocks.append(entry.display_text)
    content = "\n\n".join(blocks) + ("\n" if blocks else "")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return content
