"""
File: documents/create_tables.py
Created: 2026-10-12
Last Modified: 2026-10-13
"""

import logging
from pathlib import Path
from typing import Optional

import aiosqlite

from .common import LOCAL_DB_PATH

log = logging.getLogger(__name__)


async def init_document_store(db_path: Optional[Path] = None) -> Path:
    """Initialize the local SQLite document store with required tables."""
    db_path = Path(db_path or LOCAL_DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    async with aiosqlite.connect(db_path) as conn:
        # One row per document, addressed by its full path
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS documents (
                path TEXT PRIMARY KEY,
                collection TEXT NOT NULL,   -- parent collection path, e.g. users/abc/contacts
                doc_id TEXT NOT NULL,
                data TEXT NOT NULL,         -- JSON object
                updated_at TEXT NOT NULL
            )
        """)

        await conn.execute("CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection)")

        await conn.commit()
        log.info(f"Document store initialized at {db_path}")

    return db_path
