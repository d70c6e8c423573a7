"""Secret declarations and the resolver that turns them into values.

A secret is declared in config either as ``{ env = "VAR" }`` or as
``{ cmd = "pass show beeminder" }``. Resolution happens when a module is
about to run, never at config load time.
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Any, Optional, Union

from .errors import ConfigInvalid, MissingSecret, SecretCommandFailed

__all__ = [
    "EnvSecret",
    "CmdSecret",
    "SecretSpec",
    "SecretResolver",
    "parse_secret_spec",
    "resolve_secret",
]

logger = logging.getLogger(__name__)

SECRET_COMMAND_TIMEOUT = 60  # seconds


@dataclass(frozen=True)
class EnvSecret:
    """Secret read from a process environment variable."""

    var_name: str

    def describe(self) -> str:
        return f"env:{self.var_name}"


@dataclass(frozen=True)
class CmdSecret:
    """Secret printed to stdout by a shell command."""

    command_line: str

    def describe(self) -> str:
        return f"cmd:{self.command_line}"


SecretSpec = Union[EnvSecret, CmdSecret]


def parse_secret_spec(value: Any, key: str) -> SecretSpec:
    """Build a SecretSpec from its config representation.

    Raises:
        ConfigInvalid: unless value is a table with exactly one of env/cmd
    """
    if not isinstance(value, dict):
        raise ConfigInvalid(f"'{key}' must be a table like {{ env = \"VAR\" }} or {{ cmd = \"...\" }}")

    kinds = set(value) & {"env", "cmd"}
    extra = set(value) - {"env", "cmd"}
    if len(kinds) != 1 or extra:
        raise ConfigInvalid(f"'{key}' must have exactly one of 'env' or 'cmd'")

    kind = kinds.pop()
    raw = value[kind]
    if not isinstance(raw, str) or not raw.strip():
        raise ConfigInvalid(f"'{key}.{kind}' must be a non-empty string")

    if kind == "env":
        return EnvSecret(var_name=raw)
    return CmdSecret(command_line=raw)


def resolve_secret(spec: SecretSpec) -> str:
    """Materialize a secret value.

    Raises:
        MissingSecret: environment variable is unset
        SecretCommandFailed: command could not run, exited non-zero or printed nothing
    """
    if isinstance(spec, EnvSecret):
        value = os.environ.get(spec.var_name)
        if value is None:
            raise MissingSecret(spec.var_name)
        return value

    if isinstance(spec, CmdSecret):
        try:
            result = subprocess.run(
                spec.command_line,
                shell=True,
                capture_output=True,
                text=True,
                timeout=SECRET_COMMAND_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise SecretCommandFailed(
                f"Failed to execute command '{spec.command_line}': {e}"
            ) from e

        if result.returncode != 0:
            stderr = result.stderr.strip()
            raise SecretCommandFailed(
                f"Command '{spec.command_line}' failed ({result.returncode}): {stderr}"
            )

        value = result.stdout.rstrip()
        if not value:
            raise SecretCommandFailed(f"Command '{spec.command_line}' produced no output")
        return value

    raise TypeError(f"Unsupported secret spec: {spec!r}")


class SecretResolver:
    """Resolves secrets, remembering successful results for one run."""

    def __init__(self, cache: bool = True):
        self._cache: Optional[dict[SecretSpec, str]] = {} if cache else None

    def resolve(self, spec: SecretSpec) -> str:
        if self._cache is not None and spec in self._cache:
            return self._cache[spec]

        logger.debug(f"Resolving secret {spec.describe()}")
        value = resolve_secret(spec)

        if self._cache is not None:
            self._cache[spec] = value
        return value

    def resolve_all(self, specs: dict[str, SecretSpec]) -> dict[str, str]:
        """Resolve every named spec, failing on the first one that can't be resolved."""
        return {name: self.resolve(spec) for name, spec in specs.items()}

    def clear(self) -> None:
        if self._cache is not None:
            self._cache.clear()
