"""
Database store layer for the booking core.

Provides the Job Store: one SQLite transaction per unit of work with
automatic rollback on exceptions, field-based lookup/update of jobs, users
and translator assignments, and the atomic claim primitive that decides
which translator wins a pending job.
"""

import os
import sqlite3
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from models.errors import (
    create_conflict_error,
    create_db_error,
    create_db_not_found_error,
    create_not_found_error,
    create_validation_error,
)
from models.classification import UserType
from models.status import JobStatus
from schemas.records import AssignmentRecord, JobRecord, UserRecord

# Default database path relative to repository root
DEFAULT_DB_PATH = "data/booking.db"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS languages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    language TEXT NOT NULL,
    active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT,
    email TEXT NOT NULL UNIQUE,
    mobile TEXT,
    user_type TEXT NOT NULL,
    status INTEGER NOT NULL DEFAULT 1,
    consumer_type TEXT,
    customer_type TEXT,
    city TEXT,
    address TEXT,
    instructions TEXT,
    translator_type TEXT,
    gender TEXT,
    translator_level TEXT,
    not_get_notification TEXT NOT NULL DEFAULT 'no',
    not_get_emergency TEXT NOT NULL DEFAULT 'no',
    not_get_nighttime TEXT NOT NULL DEFAULT 'no'
);

CREATE TABLE IF NOT EXISTS user_languages (
    user_id INTEGER NOT NULL REFERENCES users(id),
    lang_id INTEGER NOT NULL,
    PRIMARY KEY (user_id, lang_id)
);

CREATE TABLE IF NOT EXISTS users_blacklist (
    user_id INTEGER NOT NULL REFERENCES users(id),
    translator_id INTEGER NOT NULL REFERENCES users(id),
    PRIMARY KEY (user_id, translator_id)
);

CREATE TABLE IF NOT EXISTS jobs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    from_language_id INTEGER NOT NULL,
    immediate TEXT NOT NULL DEFAULT 'no',
    due TEXT NOT NULL,
    duration INTEGER,
    status TEXT NOT NULL DEFAULT 'pending',
    job_type TEXT,
    certified TEXT,
    gender TEXT,
    customer_phone_type TEXT,
    customer_physical_type TEXT,
    town TEXT,
    address TEXT,
    instructions TEXT,
    user_email TEXT,
    reference TEXT,
    admin_comments TEXT,
    session_time TEXT,
    end_at TEXT,
    withdraw_at TEXT,
    will_expire_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT,
    b_created_at TEXT,
    by_admin TEXT NOT NULL DEFAULT 'no',
    flagged TEXT NOT NULL DEFAULT 'no',
    manually_handled TEXT NOT NULL DEFAULT 'no',
    emailsent INTEGER NOT NULL DEFAULT 0,
    emailsenttovirpal INTEGER NOT NULL DEFAULT 0,
    cust_16_hour_email INTEGER NOT NULL DEFAULT 0,
    cust_48_hour_email INTEGER NOT NULL DEFAULT 0,
    ignore INTEGER NOT NULL DEFAULT 0,
    ignore_expired INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_jobs_status_due ON jobs(status, due);

CREATE TABLE IF NOT EXISTS translator_job_rel (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    job_id INTEGER NOT NULL REFERENCES jobs(id),
    created_at TEXT NOT NULL,
    will_expire_at TEXT,
    cancel_at TEXT,
    completed_at TEXT,
    completed_by INTEGER
);

-- At most one current assignment per job
CREATE UNIQUE INDEX IF NOT EXISTS idx_translator_job_rel_active
    ON translator_job_rel(job_id)
    WHERE cancel_at IS NULL AND completed_at IS NULL;

CREATE TABLE IF NOT EXISTS distances (
    job_id INTEGER PRIMARY KEY REFERENCES jobs(id),
    distance TEXT,
    time TEXT
);

CREATE TABLE IF NOT EXISTS throttles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER,
    ignore INTEGER NOT NULL DEFAULT 0
);
"""

JOB_COLUMNS = frozenset(JobRecord.model_fields) - {"id"}
USER_COLUMNS = frozenset(UserRecord.model_fields) - {"id"}


def resolve_db_path(db_path: Optional[str] = None) -> Path:
    """
    Resolve the database path with support for overrides and defaults.

    Resolution order:
    1. Provided db_path parameter
    2. BOOKING_DB environment variable
    3. BOOKING_ROOT/data/booking.db
    4. Default path: data/booking.db

    Args:
        db_path: Optional database path override

    Returns:
        Resolved absolute Path to the database
    """
    if db_path is not None:
        path_str = db_path
    else:
        db_env = os.getenv("BOOKING_DB")
        if db_env:
            path_str = db_env
        else:
            root_env = os.getenv("BOOKING_ROOT")
            if root_env:
                return Path(root_env) / "data" / "booking.db"
            path_str = DEFAULT_DB_PATH

    path = Path(path_str)

    # If relative, resolve from repository root
    if not path.is_absolute():
        repo_root = Path(__file__).resolve().parents[1]  # db/ -> repo/
        path = repo_root / path

    return path


def _checked_columns(fields: Dict[str, Any], allowed: Iterable[str], table: str) -> List[str]:
    """Return field names after checking them against the table's column set."""
    allowed = set(allowed)
    unknown = sorted(name for name in fields if name not in allowed)
    if unknown:
        raise create_validation_error(
            f"Unknown {table} column(s): {', '.join(unknown)}", field=unknown[0]
        )
    return list(fields)


class BookingStore:
    """
    Context manager for units of work on the booking database.

    Each ``with`` block is one transaction. The write lock is taken up front
    (``BEGIN IMMEDIATE``) so concurrent claims on the same job serialize; the
    claim itself is still a conditional UPDATE so the loser sees rowcount 0.

    Usage:
        with BookingStore(db_path) as store:
            job = store.require_job(42)
            if store.claim_job(job.id, translator.id, timestamp):
                store.commit()
    """

    def __init__(self, db_path: Optional[str] = None, create: bool = False):
        """
        Initialize store with database path.

        Args:
            db_path: Optional database path override
            create: Create the database file (and parent dirs) if missing
        """
        self.db_path = db_path
        self.create = create
        self.resolved_path: Optional[Path] = None
        self.conn: Optional[sqlite3.Connection] = None
        self._in_transaction = False

    def __enter__(self):
        """
        Open connection and begin transaction.

        Returns:
            self: The BookingStore instance

        Raises:
            ToolError: If database file doesn't exist or connection fails
        """
        self.resolved_path = resolve_db_path(self.db_path)

        if self.create:
            try:
                self.resolved_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise create_db_error(
                    f"Cannot create database directory: {e}", retryable=False, original_error=e
                ) from e
        elif not self.resolved_path.exists() or not self.resolved_path.is_file():
            raise create_db_not_found_error(str(self.resolved_path))

        try:
            self.conn = sqlite3.connect(
                str(self.resolved_path), timeout=30.0, isolation_level=None
            )
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA foreign_keys = ON")

            self.conn.execute("BEGIN IMMEDIATE")
            self._in_transaction = True

            return self

        except sqlite3.OperationalError as e:
            error_msg = str(e)
            if "unable to open database" in error_msg.lower():
                raise create_db_not_found_error(str(self.resolved_path)) from e
            raise create_db_error(error_msg, retryable=True, original_error=e) from e

        except sqlite3.Error as e:
            raise create_db_error(str(e), retryable=False, original_error=e) from e

    def __exit__(self, exc_type, exc_val, exc_tb):
        """
        Rollback on exception or uncommitted work, close connection always.

        Returns:
            False to propagate exceptions
        """
        try:
            if self._in_transaction:
                self.rollback()
        finally:
            if self.conn is not None:
                self.conn.close()
                self.conn = None

        return False

    def _execute(self, query: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        if self.conn is None:
            raise create_db_error("Connection not established", retryable=False)
        try:
            return self.conn.execute(query, tuple(params))
        except sqlite3.IntegrityError as e:
            if "translator_job_rel" in str(e):
                raise create_conflict_error(
                    "Job already has an active translator assignment"
                ) from e
            raise create_db_error(str(e), retryable=False, original_error=e) from e
        except sqlite3.OperationalError as e:
            raise create_db_error(str(e), retryable=True, original_error=e) from e
        except sqlite3.Error as e:
            raise create_db_error(str(e), retryable=False, original_error=e) from e

    def ensure_schema(self) -> None:
        """Create all booking tables and indexes if they do not exist."""
        if self.conn is None:
            raise create_db_error("Connection not established", retryable=False)
        try:
            for statement in SCHEMA_SQL.split(";"):
                if statement.strip():
                    self.conn.execute(statement)
        except sqlite3.Error as e:
            raise create_db_error(str(e), retryable=False, original_error=e) from e

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def get_job(self, job_id: int) -> Optional[JobRecord]:
        row = self._execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return JobRecord.model_validate(dict(row)) if row else None

    def require_job(self, job_id: int) -> JobRecord:
        """Fetch a job or raise NOT_FOUND."""
        job = self.get_job(job_id)
        if job is None:
            raise create_not_found_error("Job", job_id)
        return job

    def find_jobs(self, order_by: str = "due", **filters: Any) -> List[JobRecord]:
        """
        Find jobs by column equality.

        Args:
            order_by: Column to sort ascending by
            **filters: column=value pairs; a list/tuple/set value means IN

        Returns:
            Matching jobs
        """
        _checked_columns(filters, JOB_COLUMNS | {"id"}, "jobs")
        if order_by not in JOB_COLUMNS | {"id"}:
            raise create_validation_error(f"Unknown jobs column: {order_by}", field="order_by")

        clauses = []
        params: List[Any] = []
        for column, value in filters.items():
            if isinstance(value, (list, tuple, set, frozenset)):
                values = list(value)
                if not values:
                    return []
                clauses.append(f"{column} IN ({','.join('?' * len(values))})")
                params.extend(values)
            elif value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = ?")
                params.append(value)

        query = "SELECT * FROM jobs"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += f" ORDER BY {order_by} ASC, id ASC"

        rows = self._execute(query, params).fetchall()
        return [JobRecord.model_validate(dict(row)) for row in rows]

    def create_job(self, fields: Dict[str, Any]) -> int:
        """Insert a job row and return its id."""
        columns = _checked_columns(fields, JOB_COLUMNS, "jobs")
        query = (
            f"INSERT INTO jobs ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' * len(columns))})"
        )
        cursor = self._execute(query, [fields[c] for c in columns])
        return cursor.lastrowid

    def update_job(self, job_id: int, fields: Dict[str, Any]) -> None:
        """
        Update columns of one job.

        Raises:
            ToolError: NOT_FOUND if no row matched
        """
        if not fields:
            return
        columns = _checked_columns(fields, JOB_COLUMNS, "jobs")
        assignments = ", ".join(f"{c} = ?" for c in columns)
        cursor = self._execute(
            f"UPDATE jobs SET {assignments} WHERE id = ?",
            [fields[c] for c in columns] + [job_id],
        )
        if cursor.rowcount == 0:
            raise create_not_found_error("Job", job_id)

    def claim_job(self, job_id: int, translator_id: int, timestamp: str) -> bool:
        """
        Atomically move a pending, unassigned job to 'assigned' for a translator.

        The conditional UPDATE is the compare-and-swap: only the first caller
        sees rowcount 1. The assignment row is created in the same
        transaction.

        Returns:
            True if this translator won the job, False if it was already taken
        """
        cursor = self._execute(
            """
            UPDATE jobs
            SET status = ?,
                updated_at = ?
            WHERE id = ?
              AND status = ?
              AND NOT EXISTS (
                  SELECT 1 FROM translator_job_rel
                  WHERE job_id = ? AND cancel_at IS NULL AND completed_at IS NULL
              )
            """,
            (JobStatus.ASSIGNED.value, timestamp, job_id, JobStatus.PENDING.value, job_id),
        )
        if cursor.rowcount == 0:
            return False

        self.create_assignment(job_id=job_id, user_id=translator_id, created_at=timestamp)
        return True

    def set_job_flag(self, job_id: int, flag: str) -> None:
        """Set one of the admin ignore flags to 1."""
        if flag not in ("ignore", "ignore_expired"):
            raise create_validation_error(f"Unknown job flag: {flag}", field="flag")
        self.update_job(job_id, {flag: 1})

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        row = self._execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return UserRecord.model_validate(dict(row)) if row else None

    def require_user(self, user_id: int, entity: str = "User") -> UserRecord:
        """Fetch a user or raise NOT_FOUND."""
        user = self.get_user(user_id)
        if user is None:
            raise create_not_found_error(entity, user_id)
        return user

    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        row = self._execute(
            "SELECT * FROM users WHERE lower(email) = lower(?)", (email,)
        ).fetchone()
        return UserRecord.model_validate(dict(row)) if row else None

    def create_user(self, fields: Dict[str, Any]) -> int:
        """Insert a user row and return its id."""
        columns = _checked_columns(fields, USER_COLUMNS, "users")
        cursor = self._execute(
            f"INSERT INTO users ({', '.join(columns)}) VALUES ({', '.join('?' * len(columns))})",
            [fields[c] for c in columns],
        )
        return cursor.lastrowid

    def find_active_translators(self, exclude_user_id: Optional[int] = None) -> List[UserRecord]:
        """All translators with status=1, optionally excluding one id."""
        query = "SELECT * FROM users WHERE user_type = ? AND status = 1"
        params: List[Any] = [UserType.TRANSLATOR.value]
        if exclude_user_id is not None:
            query += " AND id != ?"
            params.append(exclude_user_id)
        query += " ORDER BY id ASC"
        rows = self._execute(query, params).fetchall()
        return [UserRecord.model_validate(dict(row)) for row in rows]

    def get_translator_languages(self, user_id: int) -> set:
        rows = self._execute(
            "SELECT lang_id FROM user_languages WHERE user_id = ?", (user_id,)
        ).fetchall()
        return {row["lang_id"] for row in rows}

    def add_translator_language(self, user_id: int, lang_id: int) -> None:
        self._execute(
            "INSERT OR IGNORE INTO user_languages (user_id, lang_id) VALUES (?, ?)",
            (user_id, lang_id),
        )

    def get_blacklisted_translator_ids(self, customer_id: int) -> set:
        rows = self._execute(
            "SELECT translator_id FROM users_blacklist WHERE user_id = ?", (customer_id,)
        ).fetchall()
        return {row["translator_id"] for row in rows}

    def add_to_blacklist(self, customer_id: int, translator_id: int) -> None:
        self._execute(
            "INSERT OR IGNORE INTO users_blacklist (user_id, translator_id) VALUES (?, ?)",
            (customer_id, translator_id),
        )

    # ------------------------------------------------------------------
    # Languages
    # ------------------------------------------------------------------

    def create_language(self, name: str, lang_id: Optional[int] = None) -> int:
        if lang_id is None:
            cursor = self._execute("INSERT INTO languages (language) VALUES (?)", (name,))
        else:
            cursor = self._execute(
                "INSERT OR REPLACE INTO languages (id, language) VALUES (?, ?)", (lang_id, name)
            )
        return cursor.lastrowid

    def get_language_name(self, lang_id: int) -> str:
        """Language display name, falling back to the id when unknown."""
        row = self._execute("SELECT language FROM languages WHERE id = ?", (lang_id,)).fetchone()
        return row["language"] if row else str(lang_id)

    # ------------------------------------------------------------------
    # Translator assignments
    # ------------------------------------------------------------------

    def list_assignments(self, job_id: int) -> List[AssignmentRecord]:
        rows = self._execute(
            "SELECT * FROM translator_job_rel WHERE job_id = ? ORDER BY id ASC", (job_id,)
        ).fetchall()
        return [AssignmentRecord.model_validate(dict(row)) for row in rows]

    def get_active_assignment(self, job_id: int) -> Optional[AssignmentRecord]:
        row = self._execute(
            """
            SELECT * FROM translator_job_rel
            WHERE job_id = ? AND cancel_at IS NULL AND completed_at IS NULL
            ORDER BY id DESC LIMIT 1
            """,
            (job_id,),
        ).fetchone()
        return AssignmentRecord.model_validate(dict(row)) if row else None

    def get_current_assignment(self, job_id: int) -> Optional[AssignmentRecord]:
        """Active assignment, else the most recent completed one (read purposes)."""
        active = self.get_active_assignment(job_id)
        if active is not None:
            return active
        row = self._execute(
            """
            SELECT * FROM translator_job_rel
            WHERE job_id = ? AND completed_at IS NOT NULL
            ORDER BY id DESC LIMIT 1
            """,
            (job_id,),
        ).fetchone()
        return AssignmentRecord.model_validate(dict(row)) if row else None

    def find_active_jobs_for_translator(self, user_id: int) -> List[JobRecord]:
        """Jobs currently held by a translator (active assignment, not finished)."""
        rows = self._execute(
            """
            SELECT jobs.* FROM jobs
            JOIN translator_job_rel rel ON rel.job_id = jobs.id
            WHERE rel.user_id = ?
              AND rel.cancel_at IS NULL
              AND rel.completed_at IS NULL
              AND jobs.status IN (?, ?)
            ORDER BY jobs.due ASC
            """,
            (user_id, JobStatus.ASSIGNED.value, JobStatus.STARTED.value),
        ).fetchall()
        return [JobRecord.model_validate(dict(row)) for row in rows]

    def create_assignment(
        self,
        job_id: int,
        user_id: int,
        created_at: str,
        cancel_at: Optional[str] = None,
        will_expire_at: Optional[str] = None,
    ) -> int:
        """
        Insert a translator assignment row.

        Raises:
            ToolError: CONFLICT if the job already has an active assignment
        """
        cursor = self._execute(
            """
            INSERT INTO translator_job_rel (user_id, job_id, created_at, will_expire_at, cancel_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (user_id, job_id, created_at, will_expire_at, cancel_at),
        )
        return cursor.lastrowid

    def cancel_assignment(self, assignment_id: int, timestamp: str) -> None:
        self._execute(
            "UPDATE translator_job_rel SET cancel_at = ? WHERE id = ? AND cancel_at IS NULL",
            (timestamp, assignment_id),
        )

    def cancel_active_assignments(self, job_id: int, timestamp: str) -> int:
        """Cancel every non-cancelled assignment on a job; returns the count."""
        cursor = self._execute(
            """
            UPDATE translator_job_rel
            SET cancel_at = ?
            WHERE job_id = ? AND cancel_at IS NULL AND completed_at IS NULL
            """,
            (timestamp, job_id),
        )
        return cursor.rowcount

    def complete_assignment(self, assignment_id: int, timestamp: str, completed_by: int) -> None:
        self._execute(
            "UPDATE translator_job_rel SET completed_at = ?, completed_by = ? WHERE id = ?",
            (timestamp, completed_by, assignment_id),
        )

    # ------------------------------------------------------------------
    # Distances and throttles
    # ------------------------------------------------------------------

    def update_distance(self, job_id: int, distance: Optional[str], time: Optional[str]) -> None:
        self._execute(
            """
            INSERT INTO distances (job_id, distance, time) VALUES (?, ?, ?)
            ON CONFLICT(job_id) DO UPDATE SET distance = excluded.distance, time = excluded.time
            """,
            (job_id, distance, time),
        )

    def get_distance(self, job_id: int) -> Optional[Dict[str, Any]]:
        row = self._execute("SELECT * FROM distances WHERE job_id = ?", (job_id,)).fetchone()
        return dict(row) if row else None

    def create_throttle(self, user_id: Optional[int] = None) -> int:
        cursor = self._execute("INSERT INTO throttles (user_id) VALUES (?)", (user_id,))
        return cursor.lastrowid

    def set_throttle_ignored(self, throttle_id: int) -> None:
        cursor = self._execute("UPDATE throttles SET ignore = 1 WHERE id = ?", (throttle_id,))
        if cursor.rowcount == 0:
            raise create_not_found_error("Throttle", throttle_id)

    # ------------------------------------------------------------------
    # Transaction control
    # ------------------------------------------------------------------

    def commit(self, begin_next: bool = True) -> None:
        """
        Commit the transaction and, by default, immediately begin the next one.

        Args:
            begin_next: False leaves the connection in autocommit mode, so
                later reads on this store hold no write lock

        Raises:
            ToolError: If commit fails
        """
        if self.conn is None:
            raise create_db_error("Connection not established", retryable=False)

        if not self._in_transaction:
            return

        try:
            self.conn.execute("COMMIT")
            self._in_transaction = False
            if begin_next:
                # Keep the store reusable for multi-step flows
                self.conn.execute("BEGIN IMMEDIATE")
                self._in_transaction = True

        except sqlite3.Error as e:
            raise create_db_error(
                f"Failed to commit transaction: {str(e)}", retryable=True, original_error=e
            ) from e

    def rollback(self) -> None:
        """
        Rollback the transaction.

        Does not raise exceptions since rollback is often called during
        error handling.
        """
        if self.conn is None:
            return

        if not self._in_transaction:
            return

        try:
            self.conn.execute("ROLLBACK")
        except sqlite3.Error:
            # Suppress rollback errors - we're already in error handling
            pass
        finally:
            self._in_transaction = False



