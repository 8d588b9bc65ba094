"""Domain-specific exceptions for the audio relay.

These exceptions are safe to import from API layers without pulling in numpy or
transport libraries.
"""

from __future__ import annotations


class RelayError(Exception):
    default_detail: str = "Relay error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class AudioDecodeError(RelayError):
    default_detail = "Audio payload could not be decoded."


class ProtocolDecodeError(RelayError):
    default_detail = "Malformed event message."


class UpstreamConnectError(RelayError):
    default_detail = "Upstream realtime session could not be opened."


class ConfigurationError(RelayError):
    default_detail = "Relay is not configured."
