"""Health Synergy server entry point — ``python -m synergy.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from synergy.core.config.settings import get_settings
from synergy.core.server.app import create_app


def _is_loopback_host(host: str) -> bool:
    if host in {"localhost"}:
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run() -> None:
    """Start the Health Synergy MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.synergy_log_level.upper(), logging.INFO)
    )

    logger = logging.getLogger(__name__)
    if not settings.synergy_allow_insecure_bind and not _is_loopback_host(
        settings.synergy_host
    ):
        raise RuntimeError(
            "Refusing to bind the synergy server to a non-loopback host without an "
            "auth layer. Set SYNERGY_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info(
        "Starting Health Synergy server on %s:%d",
        settings.synergy_host,
        settings.synergy_port,
    )

    mcp = create_app()
    mcp.run(
        transport="streamable-http",
        host=settings.synergy_host,
        port=settings.synergy_port,
    )


if __name__ == "__main__":
    run()
