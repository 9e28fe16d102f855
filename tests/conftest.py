"""Shared test fixtures for Health Synergy tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("SCORING_DEFAULTS_PATH", "")
    monkeypatch.setenv("DB_PATH", str(tmp_path / "biosignature.db"))
    # Keep a developer's .env out of Settings
    monkeypatch.chdir(tmp_path)

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def biosig_db():
    """Create an in-memory BiosignatureDatabase for testing."""
    from synergy.core.storage.database import BiosignatureDatabase

    db = BiosignatureDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from synergy.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def biosignature_repository(biosig_db, field_encryptor):
    """Create a BiosignatureRepository backed by in-memory SQLite."""
    from synergy.core.storage.repository import BiosignatureRepository

    return BiosignatureRepository(biosig_db, field_encryptor)


@pytest.fixture
def audit_logger(biosig_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from synergy.core.audit.logger import AuditLogger

    return AuditLogger(biosig_db)


@pytest.fixture
def snapshot_service(biosignature_repository, audit_logger):
    """Create a SnapshotService wired to in-memory storage and audit."""
    from synergy.domains.health.domain_logic.snapshot_service import SnapshotService

    return SnapshotService(biosignature_repository, audit_logger)
