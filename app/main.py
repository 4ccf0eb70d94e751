"""
Server entry point for Finance Tracker

Run with:
    python -m app.main

Reads JWT_SECRET, DATABASE_URL, PORT and RUN_MIGRATIONS from the
environment (or a .env file). The API is served under /api.
"""

import structlog
import uvicorn

from financetracker.config import get_settings, validate_all_settings


logger = structlog.get_logger(__name__)


def main() -> None:
    checks = validate_all_settings()
    failed = [name for name, ok in checks.items() if ok is False]
    if failed:
        for name in failed:
            logger.error("invalid_settings", section=name, error=checks.get(f"{name}_error"))
        raise SystemExit(1)

    settings = get_settings()
    logger.info(
        "starting_server",
        port=settings.app.port,
        database=settings.database.redacted_url,
        environment=settings.app.app_environment,
    )

    uvicorn.run(
        "financetracker.api:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.app.port,
    )


if __name__ == "__main__":
    main()
