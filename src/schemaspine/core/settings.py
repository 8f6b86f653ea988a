"""
Centralized settings for schema-spine.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    One cached settings object decides the output mode, where the site's
    migration files live, where the last-run timestamp is persisted and
    which recorders are active.

All fields can be set via ``SCHEMASPINE_*`` environment variables (e.g.
``SCHEMASPINE_OUTPUT_MODE=verbose``) or a ``.env`` file.

Fields
──────
output_mode      : quiet / verbose / debug error propagation
always_run       : treat every evaluation as due (development)
mark_mode        : mark last run before (default) or after entries execute
site_dir         : directory holding ``migrate.[yaml|json|py]`` and recorder output
modules_dir      : directory scanned for ``<name>/<name>.migrate.*`` files
state_file       : JSON file persisting the last-run timestamp
save_to_project  : record a read-only dump to ``<site_dir>/project.yaml``
save_to_migrate  : record a watched round-trip file ``<site_dir>/migrate.yaml``
fire_on_refresh  : run migrations when a registry refresh event fires
store_factory    : ``module:callable`` building the content store for the CLI

Tags:
    settings, configuration, pydantic, environment, schema-spine

Doc-Types:
    api-reference
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .enums import MarkMode, OutputMode


class SchemaSpineSettings(BaseSettings):
    """schema-spine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SCHEMASPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Run behaviour ────────────────────────────────────────────
    output_mode: OutputMode = Field(default=OutputMode.QUIET)
    always_run: bool = Field(default=False, description="Every evaluation is due")
    mark_mode: MarkMode = Field(default=MarkMode.BEFORE)
    fire_on_refresh: bool = Field(default=True)

    # ── Paths ────────────────────────────────────────────────────
    site_dir: Path = Field(default=Path("site"))
    modules_dir: Path | None = Field(default=None)
    state_file: Path = Field(
        default_factory=lambda: Path.home() / ".schemaspine" / "state.json",
        description="JSON file persisting the last-run timestamp",
    )

    # ── Recorders ────────────────────────────────────────────────
    save_to_project: bool = Field(default=False)
    save_to_migrate: bool = Field(default=False)

    # ── Host bootstrap ───────────────────────────────────────────
    store_factory: str = Field(default="schemaspine.reconcile.memory:InMemoryContentStore")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    @property
    def migrate_path(self) -> Path:
        """Extension-less path of the site's main migration file."""
        return self.site_dir / "migrate"

    @property
    def project_record_path(self) -> Path:
        return self.site_dir / "project.yaml"

    @property
    def migrate_record_path(self) -> Path:
        return self.site_dir / "migrate.yaml"


_settings_cache: dict[str, SchemaSpineSettings] = {}


def get_settings(*, _force_reload: bool = False) -> SchemaSpineSettings:
    """Load, validate, and cache a :class:`SchemaSpineSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    settings = SchemaSpineSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = ["SchemaSpineSettings", "get_settings", "clear_settings_cache"]
