"""Apply Alembic migrations for the billing schema at startup."""

from __future__ import annotations

import errno
import logging
import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Sequence

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import make_url
from sqlalchemy.engine.reflection import Inspector

from .database import SQLALCHEMY_DATABASE_URL

LOGGER = logging.getLogger(__name__)

BACKEND_DIR = Path(__file__).resolve().parent.parent
LOCK_FILENAME = ".alembic-migration.lock"
LOCK_POLL_SECONDS = 0.25
LOCK_TIMEOUT_ENV = "ALEMBIC_MIGRATION_LOCK_TIMEOUT"
DEFAULT_LOCK_TIMEOUT = 30.0

if os.name == "posix":  # pragma: no cover - platform specific
    import fcntl
else:  # pragma: no cover - platform specific
    import msvcrt

RevisionSentinel = tuple[str, Callable[[Inspector], bool]]


def _column_exists(inspector: Inspector, table_name: str, column_name: str) -> bool:
    if not inspector.has_table(table_name):
        return False
    return column_name in {column["name"] for column in inspector.get_columns(table_name)}


# Newest first: the first matching check names the revision an unversioned
# database already corresponds to.
REVISION_SENTINELS: Sequence[RevisionSentinel] = (
    (
        "20251101_0001",
        lambda inspector: (
            inspector.has_table("class_billing_items")
            and _column_exists(inspector, "class_billing", "due_date")
            and _column_exists(inspector, "classes", "recurring_days")
        ),
    ),
)


def _lock_timeout() -> float:
    raw = os.getenv(LOCK_TIMEOUT_ENV)
    try:
        value = float(raw) if raw else DEFAULT_LOCK_TIMEOUT
    except ValueError:
        LOGGER.warning("Invalid %s=%s; using %.1f seconds", LOCK_TIMEOUT_ENV, raw, DEFAULT_LOCK_TIMEOUT)
        return DEFAULT_LOCK_TIMEOUT
    return value if value > 0 else DEFAULT_LOCK_TIMEOUT


def _try_lock(handle) -> bool:
    try:
        if os.name == "posix":  # pragma: no cover - platform specific
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        else:  # pragma: no cover - platform specific
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
    except BlockingIOError:
        return False
    except OSError as error:
        # 32/33 are the Windows sharing and lock violations.
        if error.errno in {errno.EACCES, errno.EAGAIN, errno.EBUSY} or getattr(
            error, "winerror", None
        ) in {32, 33}:
            return False
        raise
    return True


def _unlock(handle) -> None:
    try:
        if os.name == "posix":  # pragma: no cover - platform specific
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        else:  # pragma: no cover - platform specific
            msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
    except OSError:  # pragma: no cover - released when the file closes anyway
        LOGGER.debug("Could not release migration lock explicitly")


@contextmanager
def migration_lock(path: Path, *, timeout: float) -> Iterator[None]:
    """Serialise migrations across worker processes sharing ``path``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + timeout
    with path.open("a+") as handle:
        while not _try_lock(handle):
            if time.monotonic() >= deadline:
                raise TimeoutError(f"Timed out waiting for the migration lock at {path}")
            time.sleep(LOCK_POLL_SECONDS)
        try:
            yield
        finally:
            _unlock(handle)


def detect_revision(
    inspector: Inspector, sentinels: Iterable[RevisionSentinel] = REVISION_SENTINELS
) -> Optional[str]:
    for revision, check in sentinels:
        if check(inspector):
            return revision
    return None


def build_alembic_config(database_url: Optional[str] = None) -> Config:
    config = Config(str(BACKEND_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
    url = database_url or os.getenv("DATABASE_URL") or SQLALCHEMY_DATABASE_URL
    # ConfigParser interpolation treats "%" specially.
    config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    return config


def run_database_migrations(database_url: Optional[str] = None) -> None:
    """Bring the billing tables to the latest revision, stamping pre-existing schemas."""

    if str(BACKEND_DIR.parent) not in sys.path:
        sys.path.insert(0, str(BACKEND_DIR.parent))

    config = build_alembic_config(database_url)
    url = config.get_main_option("sqlalchemy.url")
    LOGGER.info(
        "Running database migrations at %s", make_url(url).render_as_string(hide_password=True)
    )

    with migration_lock(BACKEND_DIR / LOCK_FILENAME, timeout=_lock_timeout()):
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        engine = create_engine(url, connect_args=connect_args)
        try:
            inspector = inspect(engine)
            if inspector.has_table("alembic_version"):
                command.upgrade(config, "head")
                return

            existing = [name for name in inspector.get_table_names() if name != "alembic_version"]
            detected = detect_revision(inspector) if existing else None
            if detected is None:
                if existing:
                    LOGGER.info("Unversioned tables found without billing schema; running full upgrade")
                command.upgrade(config, "head")
                return

            LOGGER.info("Existing schema matches revision %s; stamping it", detected)
            command.stamp(config, detected)
            if detected != ScriptDirectory.from_config(config).get_current_head():
                command.upgrade(config, "head")
        finally:
            engine.dispose()
