"""
Logging setup and security audit events.

Audit events go to the "placement_portal.security" logger so they can be
routed separately from application logs.
"""

import json
import logging
from datetime import datetime, timezone

security_logger = logging.getLogger("placement_portal.security")


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once at startup."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def log_security_event(event: str, level: int = logging.INFO, **details) -> None:
    """
    Write a structured audit line.

    Usage:
        log_security_event("session_started", admin_id=1, session_id=7)
    """
    timestamp = datetime.now(timezone.utc).isoformat()
    security_logger.log(
        level,
        "[SECURITY] %s - %s %s",
        timestamp,
        event,
        json.dumps(details, default=str, sort_keys=True),
    )
