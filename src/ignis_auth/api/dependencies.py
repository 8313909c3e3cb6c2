"""Wiring of the authentication components and their FastAPI accessors."""

import asyncio
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ignis_auth.auth.attempts import AttemptTracker
from ignis_auth.auth.credentials import SessionCredentialIssuer
from ignis_auth.auth.rate_limiter import IssuanceRateLimiter
from ignis_auth.auth.store import Clock
from ignis_auth.auth.tokens import TokenLifecycleManager
from ignis_auth.config import Settings
from ignis_auth.healthcare.fhir_client_async import FHIRClient
from ignis_auth.healthcare.patient_directory import FHIRPatientDirectory, PatientDirectory
from ignis_auth.middleware.access_control import AccessController
from ignis_auth.services.notification_service import ConsoleTokenDelivery, TokenDelivery
from ignis_auth.services.voice_auth_service import VoiceAuthService
from ignis_auth.services.web_auth_service import WebAuthService
from ignis_auth.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AuthContainer:
    settings: Settings
    directory: PatientDirectory
    delivery: TokenDelivery
    issuer: SessionCredentialIssuer
    tokens: TokenLifecycleManager
    voice_attempts: AttemptTracker
    elevation_attempts: AttemptTracker
    access_controller: AccessController
    web_auth: WebAuthService
    voice_auth: VoiceAuthService

    def clear_state(self) -> None:
        """Forget all tokens, rate limits and failed attempts."""
        self.tokens.clear()
        self.voice_attempts.store.clear()
        self.elevation_attempts.store.clear()

    def cleanup_expired(self) -> int:
        return (
            self.tokens.cleanup_expired()
            + self.voice_attempts.cleanup()
            + self.elevation_attempts.cleanup()
        )

    async def run_cleanup_loop(self, interval_seconds: float) -> None:
        """Purge expired state every ``interval_seconds`` until cancelled.

        Entries are otherwise only dropped when their key is read again,
        which never happens for unredeemed tokens or idle identifiers.
        """
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                removed = self.cleanup_expired()
            except (ValueError, RuntimeError) as e:
                logger.error("state_cleanup_failed", error=str(e))
                continue
            if removed:
                logger.info("expired_state_purged", removed=removed)


def build_fhir_directory(settings: Settings) -> FHIRPatientDirectory:
    client = FHIRClient(
        settings.fhir_server_url,
        timeout=settings.fhir_timeout_seconds,
        max_retries=settings.fhir_max_retries,
        username=settings.fhir_username,
        password=settings.fhir_password,
    )
    return FHIRPatientDirectory(client)


def build_container(
    settings: Settings,
    directory: Optional[PatientDirectory] = None,
    delivery: Optional[TokenDelivery] = None,
    clock: Clock = time.time,
) -> AuthContainer:
    """Assemble the service graph for one application instance."""
    directory = directory or build_fhir_directory(settings)
    delivery = delivery or ConsoleTokenDelivery(
        settings.frontend_url, reveal_tokens=not settings.is_production and settings.debug
    )

    issuer = SessionCredentialIssuer(settings, clock=clock)
    tokens = TokenLifecycleManager(
        settings,
        directory,
        delivery,
        rate_limiter=IssuanceRateLimiter(
            limit=settings.issuance_rate_limit,
            window_seconds=settings.issuance_rate_window_seconds,
            clock=clock,
        ),
        clock=clock,
    )
    voice_attempts = AttemptTracker(
        settings.voice_max_failed_attempts, settings.lockout_seconds, clock=clock
    )
    elevation_attempts = AttemptTracker(
        settings.elevation_max_failed_attempts, settings.lockout_seconds, clock=clock
    )

    return AuthContainer(
        settings=settings,
        directory=directory,
        delivery=delivery,
        issuer=issuer,
        tokens=tokens,
        voice_attempts=voice_attempts,
        elevation_attempts=elevation_attempts,
        access_controller=AccessController(issuer),
        web_auth=WebAuthService(tokens, issuer, directory, elevation_attempts),
        voice_auth=VoiceAuthService(
            directory, voice_attempts, issuer, settings.voice_session_ttl_seconds
        ),
    )


def get_container(request: Request) -> AuthContainer:
    container: AuthContainer = request.app.state.container
    return container


def get_web_auth_service(request: Request) -> WebAuthService:
    return get_container(request).web_auth


def get_voice_auth_service(request: Request) -> VoiceAuthService:
    return get_container(request).voice_auth
