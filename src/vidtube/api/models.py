from __future__ import annotations

import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from vidtube.utils.crypto import random_id
from vidtube.utils.locks import file_lock


class DuplicateUserError(RuntimeError):
    """Raised when a write violates the username/email UNIQUE constraints."""


def now_ts() -> int:
    return int(time.time())


def _iso(ts: int) -> str:
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class User:
    id: str
    username: str
    email: str
    full_name: str
    password_hash: str
    avatar: str
    cover_image: str
    refresh_token: str | None
    created_at: int
    updated_at: int

    def to_public(self) -> dict[str, Any]:
        # password_hash and refresh_token never leave the store layer.
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "fullName": self.full_name,
            "avatar": self.avatar,
            "coverImage": self.cover_image,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


def _user_from_row(row: sqlite3.Row) -> User:
    return User(
        id=str(row["id"]),
        username=str(row["username"]),
        email=str(row["email"]),
        full_name=str(row["full_name"]),
        password_hash=str(row["password_hash"]),
        avatar=str(row["avatar"]),
        cover_image=str(row["cover_image"] or ""),
        refresh_token=(str(row["refresh_token"]) if row["refresh_token"] is not None else None),
        created_at=int(row["created_at"]),
        updated_at=int(row["updated_at"]),
    )


class UserStore:
    """
    SQLite-backed store for users and channel subscriptions.

    Uniqueness of username/email and of subscriber->channel edges is enforced by the
    schema; callers may pre-check but the constraint is the authority.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock_path = self.db_path.with_suffix(self.db_path.suffix + ".lock")
        self._init()

    def _conn(self) -> sqlite3.Connection:
        con = sqlite3.connect(str(self.db_path), timeout=30.0)
        con.row_factory = sqlite3.Row
        con.execute("PRAGMA foreign_keys = ON;")
        return con

    def _write_lock(self):
        return file_lock(self._lock_path)

    def _init(self) -> None:
        with self._write_lock():
            con = self._conn()
            try:
                con.execute(
                    """
                    CREATE TABLE IF NOT EXISTS users (
                      id TEXT PRIMARY KEY,
                      username TEXT UNIQUE NOT NULL,
                      email TEXT UNIQUE NOT NULL,
                      full_name TEXT NOT NULL,
                      password_hash TEXT NOT NULL,
                      avatar TEXT NOT NULL,
                      cover_image TEXT NOT NULL DEFAULT '',
                      refresh_token TEXT,
                      created_at INTEGER NOT NULL,
                      updated_at INTEGER NOT NULL
                    );
                    """
                )
                con.execute(
                    """
                    CREATE TABLE IF NOT EXISTS subscriptions (
                      subscriber_id TEXT NOT NULL,
                      channel_id TEXT NOT NULL,
                      created_at INTEGER NOT NULL,
                      PRIMARY KEY(subscriber_id, channel_id),
                      FOREIGN KEY(subscriber_id) REFERENCES users(id),
                      FOREIGN KEY(channel_id) REFERENCES users(id)
                    );
                    """
                )
                con.execute(
                    "CREATE INDEX IF NOT EXISTS subscriptions_channel_id ON subscriptions(channel_id);"
                )
                con.commit()
            finally:
                con.close()

    # --- users: reads ---

    def get_user(self, user_id: str) -> User | None:
        con = self._conn()
        try:
            row = con.execute("SELECT * FROM users WHERE id = ?", (str(user_id),)).fetchone()
            return _user_from_row(row) if row is not None else None
        finally:
            con.close()

    def get_user_by_username(self, username: str) -> User | None:
        con = self._conn()
        try:
            row = con.execute(
                "SELECT * FROM users WHERE username = ?", (str(username).lower(),)
            ).fetchone()
            return _user_from_row(row) if row is not None else None
        finally:
            con.close()

    def find_user(self, *, username: str | None = None, email: str | None = None) -> User | None:
        """First user whose username OR email matches (case-insensitive)."""
        uname = str(username or "").strip().lower()
        mail = str(email or "").strip().lower()
        if not uname and not mail:
            return None
        con = self._conn()
        try:
            row = con.execute(
                "SELECT * FROM users WHERE username = ? OR email = ? LIMIT 1",
                (uname or None, mail or None),
            ).fetchone()
            return _user_from_row(row) if row is not None else None
        finally:
            con.close()

    # --- users: writes ---

    def create_user(
        self,
        *,
        username: str,
        email: str,
        full_name: str,
        password_hash: str,
        avatar: str,
        cover_image: str = "",
    ) -> User:
        user_id = random_id("u_", 16)
        now = now_ts()
        with self._write_lock():
            con = self._conn()
            try:
                con.execute(
                    """
                    INSERT INTO users (id, username, email, full_name, password_hash, avatar,
                                       cover_image, refresh_token, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, NULL, ?, ?)
                    """,
                    (
                        user_id,
                        str(username).lower(),
                        str(email).lower(),
                        str(full_name),
                        str(password_hash),
                        str(avatar),
                        str(cover_image or ""),
                        now,
                        now,
                    ),
                )
                con.commit()
            except sqlite3.IntegrityError as ex:
                raise DuplicateUserError("username or email already exists") from ex
            finally:
                con.close()
        user = self.get_user(user_id)
        if user is None:
            raise RuntimeError("user row missing after insert")
        return user

    def _update(self, user_id: str, assignments: dict[str, Any]) -> User | None:
        cols = ", ".join(f"{k} = ?" for k in assignments)
        params = [*assignments.values(), now_ts(), str(user_id)]
        with self._write_lock():
            con = self._conn()
            try:
                cur = con.execute(
                    f"UPDATE users SET {cols}, updated_at = ? WHERE id = ?", params
                )
                con.commit()
                if cur.rowcount == 0:
                    return None
            except sqlite3.IntegrityError as ex:
                raise DuplicateUserError("username or email already exists") from ex
            finally:
                con.close()
        return self.get_user(user_id)

    def set_refresh_token(self, user_id: str, token: str | None) -> None:
        """Unconditional write (login issues a new session, logout clears it)."""
        self._update(user_id, {"refresh_token": token})

    def swap_refresh_token(self, user_id: str, *, expected: str, new: str) -> bool:
        """
        Compare-and-swap on the stored refresh token.

        Returns False when the stored value is no longer `expected` (a concurrent
        rotation, a newer login or a logout got there first).
        """
        with self._write_lock():
            con = self._conn()
            try:
                cur = con.execute(
                    """
                    UPDATE users SET refresh_token = ?, updated_at = ?
                    WHERE id = ? AND refresh_token = ?
                    """,
                    (str(new), now_ts(), str(user_id), str(expected)),
                )
                con.commit()
                return cur.rowcount == 1
            finally:
                con.close()

    def update_password(self, user_id: str, password_hash: str) -> User | None:
        return self._update(user_id, {"password_hash": str(password_hash)})

    def update_account(self, user_id: str, *, full_name: str, email: str) -> User | None:
        return self._update(user_id, {"full_name": str(full_name), "email": str(email).lower()})

    def update_avatar(self, user_id: str, url: str) -> User | None:
        return self._update(user_id, {"avatar": str(url)})

    def update_cover_image(self, user_id: str, url: str) -> User | None:
        return self._update(user_id, {"cover_image": str(url)})

    # --- subscriptions ---

    def add_subscription(self, *, subscriber_id: str, channel_id: str) -> bool:
        """Returns False if the edge already exists."""
        with self._write_lock():
            con = self._conn()
            try:
                con.execute(
                    "INSERT INTO subscriptions (subscriber_id, channel_id, created_at) VALUES (?, ?, ?)",
                    (str(subscriber_id), str(channel_id), now_ts()),
                )
                con.commit()
                return True
            except sqlite3.IntegrityError:
                return False
            finally:
                con.close()

    def remove_subscription(self, *, subscriber_id: str, channel_id: str) -> bool:
        with self._write_lock():
            con = self._conn()
            try:
                cur = con.execute(
                    "DELETE FROM subscriptions WHERE subscriber_id = ? AND channel_id = ?",
                    (str(subscriber_id), str(channel_id)),
                )
                con.commit()
                return cur.rowcount > 0
            finally:
                con.close()

    def is_subscribed(self, *, subscriber_id: str, channel_id: str) -> bool:
        con = self._conn()
        try:
            row = con.execute(
                "SELECT 1 FROM subscriptions WHERE subscriber_id = ? AND channel_id = ? LIMIT 1",
                (str(subscriber_id), str(channel_id)),
            ).fetchone()
            return row is not None
        finally:
            con.close()

    def count_subscribers(self, channel_id: str) -> int:
        con = self._conn()
        try:
            row = con.execute(
                "SELECT COUNT(*) AS n FROM subscriptions WHERE channel_id = ?", (str(channel_id),)
            ).fetchone()
            return int(row["n"])
        finally:
            con.close()

    def count_subscriptions(self, subscriber_id: str) -> int:
        con = self._conn()
        try:
            row = con.execute(
                "SELECT COUNT(*) AS n FROM subscriptions WHERE subscriber_id = ?",
                (str(subscriber_id),),
            ).fetchone()
            return int(row["n"])
        finally:
            con.close()

    def list_subscribers(self, channel_id: str) -> list[User]:
        con = self._conn()
        try:
            rows = con.execute(
                """
                SELECT u.* FROM subscriptions s JOIN users u ON u.id = s.subscriber_id
                WHERE s.channel_id = ? ORDER BY s.created_at DESC, u.username
                """,
                (str(channel_id),),
            ).fetchall()
            return [_user_from_row(r) for r in rows]
        finally:
            con.close()

    def list_subscribed_channels(self, subscriber_id: str) -> list[User]:
        con = self._conn()
        try:
            rows = con.execute(
                """
                SELECT u.* FROM subscriptions s JOIN users u ON u.id = s.channel_id
                WHERE s.subscriber_id = ? ORDER BY s.created_at DESC, u.username
                """,
                (str(subscriber_id),),
            ).fetchall()
            return [_user_from_row(r) for r in rows]
        finally:
            con.close()
