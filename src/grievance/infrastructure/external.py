"""
Grievance External Service Integrations
========================================

External collaborators for the grievance module:
- YAML routing config with watchdog hot-reload
- Ledger anchoring webhook (httpx) behind a circuit breaker
- Trusted-header session verification
"""

import asyncio
import hashlib
import json
import threading
import time
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import httpx
import yaml
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from src.config import UserRole, settings
from src.core import ConfigurationException, UnauthorizedException
from src.grievance.application import (
    ILedgerEventPublisher,
    IRoutingConfigProvider,
    ISessionVerifier,
)
from src.grievance.domain import Actor, GrievanceEvent, RoutingConfig
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for routing config file changes."""

    def __init__(self, config_manager: "RoutingConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.config_path.resolve():
            logger.info("Routing config file changed", extra={"path": event.src_path})
            self.config_manager.reload()


class RoutingConfigManager(IRoutingConfigProvider):
    """
    Thread-safe routing configuration manager with hot-reload support.

    Uses watchdog to monitor file changes and reload configuration
    without restarting the service. A reload that fails validation keeps
    the previous configuration.
    """

    def __init__(self):
        self._config: Optional[RoutingConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> RoutingConfig:
        """
        Initial configuration load.

        Raises:
            ConfigurationException: If the file exists but is invalid
        """
        self._path = Path(path)
        try:
            config = self._load_from_file(self._path)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise ConfigurationException(
                f"Invalid routing config: {self._path}",
                {"error": str(e)}
            ) from e
        with self._lock:
            self._config = config
        return config

    def _load_from_file(self, path: Path) -> RoutingConfig:
        if not path.exists():
            logger.warning("Routing config file not found, using defaults", extra={"path": str(path)})
            return RoutingConfig()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return RoutingConfig(**data)

    def reload(self) -> bool:
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
            logger.error("Failed to reload routing config", extra={"error": str(e)})
            return False

        with self._lock:
            self._config = new_config
        logger.info("Routing configuration reloaded")
        return True

    def start_watching(self) -> None:
        """
        Start watching the configuration file for changes.

        Skipped when the file does not exist or the platform has no inotify.
        """
        if self._path is None:
            raise RuntimeError("Config not loaded. Call load() first.")

        if not self._path.exists():
            logger.info("Routing config file missing, skipping file watch", extra={"path": str(self._path)})
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(handler, str(self._path.parent), recursive=False)
            self._observer.start()
            logger.info("Started watching routing config", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static config", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def config(self) -> RoutingConfig:
        with self._lock:
            if self._config is None:
                raise RuntimeError("Routing configuration not loaded")
            return self._config

    def get_config(self) -> RoutingConfig:
        return self.config


class StaticRoutingConfigProvider(IRoutingConfigProvider):
    """Fixed routing, for scripts and tests."""

    def __init__(self, config: Optional[RoutingConfig] = None):
        self._config = config or RoutingConfig()

    def get_config(self) -> RoutingConfig:
        return self._config


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


def event_digest(event: GrievanceEvent) -> str:
    """SHA-256 over the canonical JSON form of a ledger entry."""
    canonical = json.dumps(event.to_dict(), sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class NullEventPublisher(ILedgerEventPublisher):
    """Publisher used when no anchoring endpoint is configured."""

    async def publish(self, event: GrievanceEvent) -> bool:
        return False


class WebhookAnchorPublisher(ILedgerEventPublisher):
    """
    Posts each committed ledger entry's digest to an anchoring endpoint.

    Fire-and-forget: every failure is logged and reported as False, never
    raised, and the circuit breaker stops hammering a dead endpoint.
    """

    def __init__(
        self,
        webhook_url: str,
        timeout_seconds: float = 5.0,
        max_retries: int = 3,
        client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        self._webhook_url = webhook_url
        self._timeout_seconds = timeout_seconds
        self._max_retries = max_retries
        self._http_client = client
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=5, recovery_timeout=60)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout_seconds)
        return self._http_client

    def _build_message(self, event: GrievanceEvent) -> Dict[str, Any]:
        return {
            "grievance_id": event.grievance_id,
            "event_id": event.id,
            "event_type": event.event_type,
            "sequence": event.sequence,
            "created_at": event.created_at.isoformat(),
            "sha256": event_digest(event),
        }

    async def publish(self, event: GrievanceEvent) -> bool:
        if not self._circuit_breaker.allow_request():
            logger.warning("Circuit breaker open, skipping anchor", extra={"event_id": event.id})
            return False

        message = self._build_message(event)

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)
                if response.is_success:
                    self._circuit_breaker.record_success()
                    logger.info("Ledger event anchored", extra={"event_id": event.id})
                    return True
                logger.warning(
                    "Anchor webhook returned an error status",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                logger.error(
                    "Anchor webhook call failed",
                    extra={"error": str(e), "attempt": attempt + 1, "event_id": event.id}
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


def build_event_publisher() -> ILedgerEventPublisher:
    """Webhook publisher when an anchoring URL is configured, else a no-op."""
    if settings.anchor_webhook_url:
        return WebhookAnchorPublisher(
            settings.anchor_webhook_url,
            timeout_seconds=settings.anchor_timeout_seconds
        )
    return NullEventPublisher()


class TrustedHeaderSessionVerifier(ISessionVerifier):
    """
    Reads the identity an upstream gateway has already verified.

    Expects `X-Actor-Id` and `X-Actor-Role`. The service must only be
    reachable through that gateway.
    """

    ACTOR_ID_HEADER = "x-actor-id"
    ACTOR_ROLE_HEADER = "x-actor-role"

    async def verify(self, credentials: Mapping[str, str]) -> Actor:
        headers = {key.lower(): value for key, value in credentials.items()}
        actor_id = (headers.get(self.ACTOR_ID_HEADER) or "").strip()
        role = (headers.get(self.ACTOR_ROLE_HEADER) or "").strip().lower()
        if not actor_id or not role:
            raise UnauthorizedException()
        try:
            return Actor(actor_id=actor_id, role=UserRole(role))
        except ValueError as e:
            raise UnauthorizedException("Unauthorized: unknown role", {"role": role}) from e
