"""Sync modules, one per supported service."""

from ..config import Config
from .base import IdentityScheme, SyncModule
from .category import CategorySync
from .clean_tube import CleanTubeSync
from .clean_view import CleanViewSync
from .fatebook import FatebookSync
from .focusmate import FocusmateSync
from .github import GitHubSync

__all__ = [
    "IdentityScheme",
    "SyncModule",
    "CategorySync",
    "CleanTubeSync",
    "CleanViewSync",
    "FatebookSync",
    "FocusmateSync",
    "GitHubSync",
    "MODULE_TYPES",
    "build_modules",
]

MODULE_TYPES: dict[str, type[SyncModule]] = {
    "focusmate": FocusmateSync,
    "fatebook": FatebookSync,
    "clean_tube": CleanTubeSync,
    "clean_view": CleanViewSync,
    "category": CategorySync,
    "github": GitHubSync,
}


def build_modules(config: Config) -> list[SyncModule]:
    """Instantiate the configured modules in config order.

    Repeated sections of the same kind get distinct default names
    (``github``, ``github-2``, ...).
    """
    modules: list[SyncModule] = []
    seen: dict[str, int] = {}
    for kind, settings in config.modules:
        module = MODULE_TYPES[kind](settings)
        seen[module.name] = seen.get(module.name, 0) + 1
        if seen[module.name] > 1:
            module.name = f"{module.name}-{seen[module.name]}"
        modules.append(module)
    return modules
