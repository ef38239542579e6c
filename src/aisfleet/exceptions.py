"""Custom exception hierarchy for aisfleet."""

from __future__ import annotations


class AisFleetError(Exception):
    """Base exception for all aisfleet errors."""


class AisFleetConfigError(AisFleetError):
    """Invalid or missing configuration."""


class AisFleetTransportError(AisFleetError):
    """HTTP-level failure (network, timeout, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
        timed_out: bool = False,
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        self.timed_out = timed_out
        super().__init__(message)

    @property
    def category(self) -> str:
        """Coarse failure category used for logging.

        ``server_error`` for 5xx, ``client_error`` for 4xx, ``network`` when no
        response was received (connection error, timeout) and
        ``invalid_response`` for a successful status with an unusable body.
        """
        if self.status_code is None:
            return "network"
        if self.status_code >= 500:
            return "server_error"
        if self.status_code >= 400:
            return "client_error"
        return "invalid_response"
