"""Logging configuration for Ignis Patient Auth."""

import logging
import sys
from typing import Any, Dict, Optional

import structlog
from structlog.stdlib import BoundLogger, LoggerFactory

from ignis_auth.config import Settings, get_settings


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure structured logging for the application."""
    settings = settings or get_settings()

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            render_processor(settings),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def render_processor(settings: Settings) -> Any:
    """Choose renderer based on configured log format."""
    if settings.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def get_logger(name: str) -> BoundLogger:
    """Get a configured logger instance."""
    bound_logger: BoundLogger = structlog.get_logger(name)
    return bound_logger


class RequestLogger:
    """Logs HTTP requests without headers or bodies.

    The Authorization header carries bearer credentials and request bodies
    carry identity factors, so neither is ever logged.
    """

    def __init__(self) -> None:
        """Initialize request logger."""
        self.logger = get_logger("ignis_auth.requests")

    def log_request(self, request: Any) -> Dict[str, Any]:
        """Log incoming request details."""
        request_data = {
            "method": request.method,
            "path": request.url.path,
            "client_host": request.client.host if request.client else None,
        }
        self.logger.debug("request_received", **request_data)
        return request_data

    def log_response(
        self, request_data: Dict[str, Any], response: Any, duration: float
    ) -> None:
        """Log response details."""
        response_data = {
            **request_data,
            "status_code": response.status_code,
            "duration_ms": round(duration * 1000, 2),
        }

        if response.status_code >= 500:
            self.logger.error("request_failed", **response_data)
        elif response.status_code >= 400:
            self.logger.warning("request_rejected", **response_data)
        else:
            self.logger.info("request_completed", **response_data)


class AuditLogger:
    """Audit trail for authentication events.

    Failure events never carry personal data: the patient id is only
    attached to successful or blocking events, and failed factors are
    logged by name, never by value.
    """

    def __init__(self) -> None:
        """Initialize audit logger."""
        self.logger = get_logger("audit")

    def log_authentication(
        self,
        channel: str,
        action: str,
        success: bool,
        patient_id: Optional[str] = None,
        level: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log authentication events."""
        self.logger.info(
            "authentication_event",
            channel=channel,
            action=action,
            success=success,
            patient_id=patient_id if success else None,
            level=level,
            details=details or {},
            compliance="GDPR",
        )

    def log_voice_auth_event(
        self,
        patient_id: str,
        success: bool,
        level: int,
        failed_factor: Optional[str] = None,
        blocked: bool = False,
    ) -> None:
        """Log a voice authentication attempt.

        The patient id is kept on success or when the caller is blocked,
        so lockouts can be investigated. Plain failures stay anonymous.
        """
        self.logger.info(
            "voice_auth_event",
            patient_id=patient_id if (success or blocked) else None,
            success=success,
            level=level,
            failed_factor=failed_factor,
            blocked=blocked,
            compliance="GDPR",
        )

    def log_access_denied(
        self, path: str, reason: str, current_level: Optional[int], required_level: int
    ) -> None:
        """Log a rejected request to a level-protected route."""
        self.logger.info(
            "access_denied",
            path=path,
            reason=reason,
            current_level=current_level,
            required_level=required_level,
        )


# Global logger instances
audit_logger = AuditLogger()
request_logger = RequestLogger()
