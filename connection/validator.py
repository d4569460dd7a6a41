"""
Connection validation against the remote chat API.

One probe request per call, no retries and no caching. The outcome is read
from the HTTP status:

    2xx (and 400 for the generate-message probe)  -> valid
    401                                           -> invalid API key
    404                                           -> wrong server URL
    anything else                                 -> generic API error
    transport or request-building failure         -> connection failed
"""

import asyncio
import time
from dataclasses import dataclass
from http import HTTPStatus
from typing import Optional

import aiohttp

from core.logging_config import get_logger, log_api_call
from events import event_bus as default_event_bus, EventBus, EventTypes
from security import mask_api_key
from .probes import ProbeStrategy, DEFAULT_PROBE

logger = get_logger(__name__)

UNAUTHORIZED_MESSAGE = "Invalid API key or unauthorized"
NOT_FOUND_MESSAGE = "API endpoint not found. Please check your server URL"


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of one probe request. Never persisted."""
    valid: bool
    reason: Optional[str] = None
    status: Optional[int] = None
    probe: str = DEFAULT_PROBE.name

    @classmethod
    def ok(cls, status: int, probe: str) -> "ValidationOutcome":
        return cls(True, None, status, probe)

    @classmethod
    def invalid(cls, reason: str, status: Optional[int], probe: str) -> "ValidationOutcome":
        return cls(False, reason, status, probe)


class ConnectionValidationError(Exception):
    """Raised when a probe shows the server URL or API key is not usable"""

    def __init__(self, outcome: ValidationOutcome):
        super().__init__(outcome.reason)
        self.outcome = outcome


def reason_phrase(status: int) -> str:
    """Canonical reason phrase for a status code, or 'Unknown'"""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown"


def classify_status(status: int, probe: ProbeStrategy = DEFAULT_PROBE) -> ValidationOutcome:
    """Map an HTTP status from a probe to a validation outcome"""
    if probe.accepts(status):
        return ValidationOutcome.ok(status, probe.name)
    if status == HTTPStatus.UNAUTHORIZED:
        return ValidationOutcome.invalid(UNAUTHORIZED_MESSAGE, status, probe.name)
    if status == HTTPStatus.NOT_FOUND:
        return ValidationOutcome.invalid(NOT_FOUND_MESSAGE, status, probe.name)
    return ValidationOutcome.invalid(
        f"API returned error: {status} - {reason_phrase(status)}", status, probe.name
    )


def describe_transport_error(error: BaseException) -> str:
    """Readable text for a network-level failure"""
    if isinstance(error, asyncio.TimeoutError) and not str(error):
        return "request timed out"
    return str(error) or type(error).__name__


class ConnectionValidator:
    """Checks a server URL and API key with a single probe request"""

    def __init__(self,
                 probe: ProbeStrategy = DEFAULT_PROBE,
                 session: Optional[aiohttp.ClientSession] = None,
                 bus: Optional[EventBus] = None):
        """
        Initialize the validator

        Args:
            probe: Which probe request to send
            session: HTTP client to use; a fresh session is opened per call when omitted
            bus: Event bus for validation events (defaults to the global bus)
        """
        self.probe = probe
        self.session = session
        self.bus = bus or default_event_bus

    async def probe_connection(self, server_url: str, api_key: str) -> ValidationOutcome:
        """
        Send the probe and classify the answer. Never raises for HTTP or
        network failures; those become invalid outcomes.
        """
        url = self.probe.url_for(server_url)
        self.bus.emit(EventTypes.CONNECTION_VALIDATION_STARTED, {
            "server_url": server_url,
            "probe": self.probe.name,
        }, source="ConnectionValidator")

        start = time.perf_counter()
        status = None
        try:
            if self.session is not None:
                status = await self._send(self.session, url, api_key)
            else:
                async with aiohttp.ClientSession() as session:
                    status = await self._send(session, url, api_key)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            # ValueError: aiohttp refuses headers or URLs with CR, LF or NUL
            outcome = ValidationOutcome.invalid(
                f"Connection failed: {describe_transport_error(e)}", None, self.probe.name
            )
            logger.warning(f"Probe to {url} failed: {type(e).__name__}: {e}")
        else:
            outcome = classify_status(status, self.probe)

        log_api_call(
            logger, "remote-api", f"{self.probe.method} {url}", status,
            (time.perf_counter() - start) * 1000,
            probe=self.probe.name, api_key=mask_api_key(api_key), valid=outcome.valid,
        )

        self.bus.emit(
            EventTypes.CONNECTION_VALIDATED if outcome.valid else EventTypes.CONNECTION_VALIDATION_FAILED,
            {
                "server_url": server_url,
                "probe": outcome.probe,
                "status": outcome.status,
                "reason": outcome.reason,
            },
            source="ConnectionValidator",
        )
        return outcome

    async def validate(self, server_url: str, api_key: str) -> bool:
        """
        Validate a server URL and API key.

        Returns:
            True when the server accepted the credential

        Raises:
            ConnectionValidationError: With a user-facing reason otherwise
        """
        outcome = await self.probe_connection(server_url, api_key)
        if not outcome.valid:
            raise ConnectionValidationError(outcome)
        return True

    async def _send(self, session: aiohttp.ClientSession, url: str, api_key: str) -> int:
        async with session.request(
            self.probe.method,
            url,
            headers=self.probe.headers_for(api_key),
            data=self.probe.body,
        ) as response:
            return response.status
