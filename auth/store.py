"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper (same as posts/store.py).
AccountStore is the repository; _row_to_account is the mapper.
Route, gate and service code never touches SQL directly.

Hidden fields:
  password_hash and verified are only mapped onto the returned Account when
  the caller names them in include_hidden. Everything else sees None. Login
  asks for password_hash; the gate and refresh flow ask for verified.

Password hashing:
  There is no implicit save hook. create() and update() check whether a
  plaintext "password" is present in the field set and, if so, hash it with
  auth.passwords.hash_password() before the write. "password_confirm" is
  dropped before storage and never persisted.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Emails are normalized (strip + lower) on write and on lookup, and the
  UNIQUE constraint on email surfaces as DuplicateEmailError.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateEmailError
from auth.models import HIDDEN_FIELDS, Account
from auth.passwords import hash_password
from auth.validation import normalize_email

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("photo", String(255), nullable=False, server_default="default.jpeg"),
    Column("password_hash", Text, nullable=False),
    Column("verified", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Columns a caller may set through update(). id, email and timestamps are
# managed by the store.
_MUTABLE_FIELDS: frozenset[str] = frozenset({"name", "role", "photo", "verified", "password"})


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _prepare_password(values: dict[str, Any]) -> dict[str, Any]:
    """Replace a plaintext "password" entry with its hash; drop "password_confirm"."""
    values = dict(values)
    values.pop("password_confirm", None)
    if "password" in values:
        values["password_hash"] = hash_password(values.pop("password"))
    return values


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        store = AccountStore("sqlite:///postgate.db")
        account = store.create({"name": "Ada", "email": "ada@x.com", "password": "longenough1"})
        found = store.find_by_email("ada@x.com", include_hidden=["password_hash"])
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_id(self, account_id: str, include_hidden: Iterable[str] = ()) -> Account | None:
        """Look up an account by id. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row, include_hidden) if row is not None else None

    def find_by_email(self, email: str, include_hidden: Iterable[str] = ()) -> Account | None:
        """Look up an account by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == normalize_email(email))).fetchone()
        return _row_to_account(row, include_hidden) if row is not None else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, fields: dict[str, Any]) -> Account:
        """Insert a new account and return it (public fields plus verified).

        fields must contain name, email and a plaintext password. Optional:
        role, photo, verified (defaults to True).

        Raises DuplicateEmailError if the email is already registered.
        """
        values = _prepare_password(fields)
        now = _now_iso()
        account_id = uuid.uuid4().hex
        row = {
            "id": account_id,
            "name": values["name"].strip(),
            "email": normalize_email(values["email"]),
            "role": values.get("role") or "user",
            "photo": values.get("photo") or "default.jpeg",
            "password_hash": values["password_hash"],
            "verified": 1 if values.get("verified", True) else 0,
            "created_at": now,
            "updated_at": now,
        }
        try:
            with self.engine.connect() as conn:
                conn.execute(_accounts.insert().values(**row))
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateEmailError() from exc
        return self.find_by_id(account_id, include_hidden=["verified"])

    def update(self, account_id: str, **fields: Any) -> bool:
        """Update mutable fields on an existing account.

        Accepted fields: name, role, photo, verified, password (plaintext,
        hashed here before the write). Unknown fields raise ValueError.

        Returns True if a row was updated, False if account_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown account fields: {sorted(unknown)!r}")
        values = _prepare_password(fields)
        if "verified" in values:
            values["verified"] = 1 if values["verified"] else 0
        values["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row, include_hidden: Iterable[str] = ()) -> Account:
    hidden = set(include_hidden) & HIDDEN_FIELDS
    return Account(
        id=row.id,
        name=row.name,
        email=row.email,
        role=row.role,
        photo=row.photo,
        password_hash=row.password_hash if "password_hash" in hidden else None,
        verified=bool(row.verified) if "verified" in hidden else None,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
