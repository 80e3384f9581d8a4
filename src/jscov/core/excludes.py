"""Built-in exclusion rules for bundled JavaScript coverage.

Tier 0 (DEPENDENCY_DIRS): Third-party package directories. A script path with
    one of these as a leading or embedded segment is never reported.

Tier 1 (BUNDLER_RUNTIME_*): Files a bundler synthesizes into every bundle
    (module loader, runtime helpers). They have no counterpart in the
    project's sources.

User globs (CoverageConfig.exclude) are applied on top of these tiers.
"""

from __future__ import annotations

# =============================================================================
# Tier 0: dependency directories
# =============================================================================

DEPENDENCY_DIRS: frozenset[str] = frozenset(
    (
        "node_modules",
        "bower_components",
        "jspm_packages",
    )
)

# =============================================================================
# Tier 1: bundler runtime artifacts
# =============================================================================

# Substrings of the raw (pre-normalization) path. Raw webpack paths look like
# webpack:///webpack/bootstrap, which a sourceRoot join turns into
# /root/webpack:/webpack/bootstrap.
BUNDLER_RUNTIME_MARKERS: tuple[str, ...] = ("/webpack:/webpack/",)

# Exact normalized paths
BUNDLER_RUNTIME_FILES: frozenset[str] = frozenset(
    (
        "webpack/bootstrap",
        "webpack/universalModuleDefinition",
        "webpack/startup",
    )
)

# Normalized path prefixes
BUNDLER_RUNTIME_PREFIXES: tuple[str, ...] = (
    "webpack/runtime/",
    "(webpack)/",
)


def is_dependency_path(normalized_path: str) -> bool:
    """Check if a normalized path lies under a dependency directory."""
    return any(
        normalized_path.startswith(f"{d}/") or f"/{d}/" in normalized_path
        for d in DEPENDENCY_DIRS
    )


def is_bundler_runtime(raw_path: str, normalized_path: str) -> bool:
    """Check if a path names a bundler bootstrap/runtime module."""
    if normalized_path in BUNDLER_RUNTIME_FILES:
        return True
    if normalized_path.startswith(BUNDLER_RUNTIME_PREFIXES):
        return True
    return any(marker in raw_path for marker in BUNDLER_RUNTIME_MARKERS)


__all__ = [
    "BUNDLER_RUNTIME_FILES",
    "BUNDLER_RUNTIME_MARKERS",
    "BUNDLER_RUNTIME_PREFIXES",
    "DEPENDENCY_DIRS",
    "is_bundler_runtime",
    "is_dependency_path",
]
