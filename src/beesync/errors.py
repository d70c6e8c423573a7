"""Error types shared by the engine, clients and sync modules."""

from typing import Optional

__all__ = [
    "BeeSyncError",
    "ConfigInvalid",
    "SecretError",
    "MissingSecret",
    "SecretCommandFailed",
    "UpstreamUnavailable",
    "UpstreamRejected",
    "ModuleFetchFailed",
    "SyncCancelled",
]


class BeeSyncError(Exception):
    """Base class for all beesync errors."""

    pass


class ConfigInvalid(BeeSyncError):
    """Configuration could not be loaded. Fatal, raised before any module runs."""

    pass


class SecretError(BeeSyncError):
    """A declared secret could not be resolved."""

    pass


class MissingSecret(SecretError):
    """Environment variable backing a secret is not set."""

    def __init__(self, var_name: str):
        self.var_name = var_name
        super().__init__(f"Environment variable '{var_name}' not found")


class SecretCommandFailed(SecretError):
    """Secret command failed to run, exited non-zero or printed nothing."""

    pass


class UpstreamUnavailable(BeeSyncError):
    """Network, server or auth failure talking to an external service."""

    pass


class UpstreamRejected(BeeSyncError):
    """The external service refused a write request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ModuleFetchFailed(BeeSyncError):
    """A sync module could not produce its candidate records."""

    def __init__(self, module: str, cause: Exception):
        self.module = module
        self.cause = cause
        super().__init__(f"{module}: {cause}")


class SyncCancelled(BeeSyncError):
    """The run was cancelled (e.g. SIGINT) before this module finished."""

    pass
