from __future__ import annotations

from quotesync.core.errors import FetchError, TransientExternalError


class RemoteConfigError(FetchError):
    pass


class RemoteCredentialsError(RemoteConfigError):
    pass


class RemotePermissionError(RemoteConfigError):
    pass


class RemoteNotFoundError(RemoteConfigError):
    pass


class RemotePayloadError(FetchError):
    pass


class RemoteUnavailableError(FetchError, TransientExternalError):
    pass


class RemoteRateLimitError(RemoteUnavailableError):
    pass
