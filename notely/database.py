"""aiosqlite database setup: users table for registration and login."""
import time
import uuid

import aiosqlite
from notely.config import settings

_db: aiosqlite.Connection | None = None

# Columns safe to hand back to clients (no password hash).
_PUBLIC_COLUMNS = "id, first_name, last_name, email, username, date_joined"


async def get_db() -> aiosqlite.Connection:
    global _db
    if _db is None:
        _db = await aiosqlite.connect(settings.database_url)
        _db.row_factory = aiosqlite.Row
        await _create_tables(_db)
    return _db


async def close_db() -> None:
    global _db
    if _db is not None:
        await _db.close()
        _db = None


async def _create_tables(db: aiosqlite.Connection) -> None:
    await db.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            first_name TEXT NOT NULL,
            last_name TEXT NOT NULL,
            email TEXT NOT NULL UNIQUE,
            username TEXT NOT NULL UNIQUE,
            password TEXT NOT NULL,
            date_joined REAL NOT NULL,
            is_deleted INTEGER NOT NULL DEFAULT 0
        )
    """)
    await db.commit()


async def insert_user(
    first_name: str,
    last_name: str,
    email: str,
    username: str,
    password_hash: str,
) -> dict:
    db = await get_db()
    user_id = str(uuid.uuid4())
    await db.execute(
        """INSERT INTO users
           (id, first_name, last_name, email, username, password, date_joined)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (user_id, first_name, last_name, email, username, password_hash, time.time()),
    )
    await db.commit()
    return await fetch_user(user_id)


async def find_conflicting_user(email: str, username: str) -> dict | None:
    """Return any user (deleted or not) already holding this email or username."""
    db = await get_db()
    cursor = await db.execute(
        f"SELECT {_PUBLIC_COLUMNS} FROM users WHERE email = ? OR username = ? LIMIT 1",
        (email, username),
    )
    row = await cursor.fetchone()
    return dict(row) if row else None


async def fetch_login_user(email_or_username: str) -> dict | None:
    """Active user by email or username, including the password hash."""
    db = await get_db()
    cursor = await db.execute(
        f"""SELECT {_PUBLIC_COLUMNS}, password FROM users
           WHERE (email = ? OR username = ?) AND is_deleted = 0
           LIMIT 1""",
        (email_or_username, email_or_username),
    )
    row = await cursor.fetchone()
    return dict(row) if row else None


async def fetch_user(user_id: str) -> dict | None:
    db = await get_db()
    cursor = await db.execute(
        f"SELECT {_PUBLIC_COLUMNS} FROM users WHERE id = ? AND is_deleted = 0",
        (user_id,),
    )
    row = await cursor.fetchone()
    return dict(row) if row else None
