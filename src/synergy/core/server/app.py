"""Health Synergy MCP Server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging
from typing import Mapping

from fastmcp import FastMCP

from synergy.core.audit.logger import AuditLogger
from synergy.core.config.settings import get_settings
from synergy.core.storage.database import BiosignatureDatabase
from synergy.core.storage.encryption import EncryptionError, FieldEncryptor
from synergy.core.storage.repository import BiosignatureRepository
from synergy.domains.health.domain_logic.metric_models import MissingValueDefaults
from synergy.domains.health.domain_logic.missing_defaults import (
    DEFAULT_TABLES,
    load_defaults_file,
)
from synergy.domains.health.tools.synergy_tools import register_synergy_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "Health Synergy"
SERVER_VERSION = "0.1.0"


def create_app(
    *,
    repository_override: BiosignatureRepository | None = None,
    audit_logger_override: AuditLogger | None = None,
    default_tables_override: Mapping[str, MissingValueDefaults] | None = None,
) -> FastMCP:
    """Create and configure the Health Synergy MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Resolves the missing-value default tables (built-in or YAML overrides)
    3. Initializes the encrypted storage layer (biosignature data bank)
    4. Registers the scoring tools, plus storage tools when storage is available

    Raises:
        ScoringConfigError: If the configured defaults file is malformed.
    """
    settings = get_settings()

    # --- Server instance ---
    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "Health Synergy — biosignature scoring server. Normalizes glucose, "
            "activity, recovery, strain, air quality, heart rate and sleep onto a "
            "0-100 scale, combines them into a health synergy score and band, and "
            "keeps a weekly biosignature history."
        ),
    )

    # --- Missing-value defaults ---
    if default_tables_override is not None:
        default_tables = dict(default_tables_override)
    elif settings.scoring_defaults_path:
        default_tables = load_defaults_file(settings.scoring_defaults_path)
        logger.info("Scoring defaults loaded from %s", settings.scoring_defaults_path)
    else:
        default_tables = dict(DEFAULT_TABLES)

    # --- Initialize encrypted storage (biosignature data bank) ---
    repository: BiosignatureRepository | None = None
    audit_logger: AuditLogger | None = audit_logger_override
    if repository_override is not None:
        repository = repository_override
    elif settings.encryption_key:
        try:
            encryptor = FieldEncryptor(settings.encryption_key)
            biosig_db = BiosignatureDatabase(settings.db_path)
            biosig_db.initialize()
            repository = BiosignatureRepository(biosig_db, encryptor)
            if audit_logger is None:
                audit_logger = AuditLogger(biosig_db)
            logger.info(
                "Biosignature data bank initialized: %s (schema v%d)",
                settings.db_path,
                biosig_db.get_schema_version(),
            )
        except EncryptionError as exc:
            logger.error("Failed to initialize storage: %s", exc)
            logger.warning("Continuing without persistence — entries will not be stored")
    else:
        logger.info(
            "No ENCRYPTION_KEY configured — running without persistence. "
            "Set ENCRYPTION_KEY to enable the biosignature data bank."
        )

    # --- Register tools ---
    @server.tool
    async def health_check() -> dict:
        """Check server health and return basic status information."""
        status = {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "storage_enabled": repository is not None,
        }
        if repository is not None:
            status["snapshots_stored"] = repository.count_snapshots()
        return status

    register_synergy_tools(server, default_tables)
    logger.info("Health synergy scoring tools registered")

    # --- Register biosignature tools (requires storage) ---
    if repository is not None:
        from synergy.domains.health.domain_logic.snapshot_service import SnapshotService
        from synergy.domains.health.domain_logic.trend_analyzer import ScoreTrendAnalyzer
        from synergy.domains.health.tools.biosignature_tools import (
            register_biosignature_tools,
        )

        service = SnapshotService(repository, audit_logger, default_tables=default_tables)
        analyzer = ScoreTrendAnalyzer(repository)
        register_biosignature_tools(server, service, repository, analyzer)
        logger.info("Biosignature storage tools registered")

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
