"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper. UserStore is the repository;
_row_to_user / _row_to_profile are the mappers. The controller and the
dependency layer never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  The store never hashes. It receives a finished bcrypt hash from the caller
  at exactly two points (create_user, update_password_hash) and no other
  write path touches the password_hash column, so an unrelated update can
  never re-hash an already-hashed value.

  Anything returned to a caller outside auth/ is a UserProfile, which has no
  password_hash or refresh_token_hash fields. The internal User (with both)
  is only returned by the two lookups that need the hash: login and
  change-password.

  username and email are normalized to lowercase before every write and
  lookup, so UNIQUE constraints are effectively case-insensitive.

The refresh_token_hash column belongs to SessionStore (auth/sessions.py),
which shares this store's engine and table.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    or_,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import Conflict
from auth.models import User, UserProfile

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(64), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("full_name", String(255), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("avatar_url", Text, nullable=False),
    Column("refresh_token_hash", String(64)),  # SHA-256 hex; NULL = no session
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

saved_products = Table(
    "saved_products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("product_id", String(64), nullable=False),
    Column("saved_at", String(32), nullable=False),
    UniqueConstraint("user_id", "product_id", name="uq_saved_product"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by a rotation write.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _norm(value: str | None) -> str | None:
    return value.strip().lower() if value else None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for user accounts and their saved products.

    Usage:
        store = UserStore("sqlite:///tradepost.db")
        profile = store.create_user("alice", "alice@x.com", "Alice", avatar_url, password_hash)
        user = store.find_by_username_or_email("alice", None)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Account creation
    # ------------------------------------------------------------------

    def create_user(
        self,
        username: str,
        email: str,
        full_name: str,
        avatar_url: str,
        password_hash: str,
    ) -> UserProfile:
        """Insert a new user and return its public profile.

        Raises Conflict if the username or email is taken. The pre-check gives
        the common case a clean answer; the UNIQUE constraints catch the
        concurrent case where two registrations pass the pre-check together.
        """
        if not password_hash:
            raise ValueError("password_hash must not be empty")
        username = _norm(username)
        email = _norm(email)
        if self.username_or_email_taken(username, email):
            raise Conflict()
        stamp = now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    users.insert().values(
                        username=username,
                        email=email,
                        full_name=full_name.strip(),
                        password_hash=password_hash,
                        avatar_url=avatar_url,
                        created_at=stamp,
                        updated_at=stamp,
                    )
                )
                user_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise Conflict() from exc
        return self.find_by_id(user_id)

    def username_or_email_taken(self, username: str | None, email: str | None) -> bool:
        return self.find_by_username_or_email(username, email) is not None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_username_or_email(self, username: str | None, email: str | None) -> User | None:
        """Return the internal record matching either identifier, or None.

        Internal use only: the result carries password_hash.
        """
        clauses = []
        if _norm(username):
            clauses.append(users.c.username == _norm(username))
        if _norm(email):
            clauses.append(users.c.email == _norm(email))
        if not clauses:
            return None
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(or_(*clauses)).order_by(users.c.id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_credentials(self, user_id: int) -> User | None:
        """Return the internal record by id. Internal use only."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: int) -> UserProfile | None:
        """Return the public profile by id, or None if the user does not exist."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
            if row is None:
                return None
            saved = conn.execute(
                select(saved_products.c.product_id)
                .where(saved_products.c.user_id == user_id)
                .order_by(saved_products.c.id)
            ).scalars()
            return _row_to_profile(row, list(saved))

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update_password_hash(self, user_id: int, password_hash: str, revoke_session: bool = False) -> bool:
        """Replace the stored hash. The only write path for password_hash.

        With revoke_session=True the current refresh token is cleared in the
        same statement, so the new password and the ended session commit
        together.

        Returns True if a row was updated, False if user_id was not found.
        """
        if not password_hash:
            raise ValueError("password_hash must not be empty")
        values = {"password_hash": password_hash, "updated_at": now_iso()}
        if revoke_session:
            values["refresh_token_hash"] = None
        with self.engine.begin() as conn:
            result = conn.execute(users.update().where(users.c.id == user_id).values(**values))
        return result.rowcount > 0

    def update_account(self, user_id: int, full_name: str, email: str) -> UserProfile | None:
        """Set full_name and email. Raises Conflict if the email belongs to someone else."""
        email = _norm(email)
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    users.update()
                    .where(users.c.id == user_id)
                    .values(full_name=full_name.strip(), email=email, updated_at=now_iso())
                )
        except IntegrityError as exc:
            raise Conflict("Email is already in use.") from exc
        if result.rowcount == 0:
            return None
        return self.find_by_id(user_id)

    def update_avatar(self, user_id: int, avatar_url: str) -> UserProfile | None:
        with self.engine.begin() as conn:
            result = conn.execute(
                users.update().where(users.c.id == user_id).values(avatar_url=avatar_url, updated_at=now_iso())
            )
        if result.rowcount == 0:
            return None
        return self.find_by_id(user_id)

    # ------------------------------------------------------------------
    # Saved products
    # ------------------------------------------------------------------

    def add_saved_product(self, user_id: int, product_id: str) -> bool:
        """Add product_id to the user's saved set. Returns False if already present."""
        try:
            with self.engine.begin() as conn:
                conn.execute(saved_products.insert().values(user_id=user_id, product_id=product_id, saved_at=now_iso()))
        except IntegrityError:
            return False
        return True

    def remove_saved_product(self, user_id: int, product_id: str) -> bool:
        """Remove product_id from the saved set. Returns False if it was not there."""
        with self.engine.begin() as conn:
            result = conn.execute(
                saved_products.delete().where(
                    (saved_products.c.user_id == user_id) & (saved_products.c.product_id == product_id)
                )
            )
        return result.rowcount > 0

    def list_saved_products(self, user_id: int) -> list[str]:
        """Return saved product ids, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(saved_products.c.product_id)
                .where(saved_products.c.user_id == user_id)
                .order_by(saved_products.c.id)
            ).scalars()
            return list(rows)

    def ping(self) -> bool:
        """Cheap liveness check used by the health endpoint."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        full_name=row.full_name,
        password_hash=row.password_hash,
        avatar_url=row.avatar_url,
        refresh_token_hash=row.refresh_token_hash,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_profile(row, saved_content: list[str]) -> UserProfile:
    return UserProfile(
        id=row.id,
        username=row.username,
        email=row.email,
        full_name=row.full_name,
        avatar_url=row.avatar_url,
        saved_content=saved_content,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
