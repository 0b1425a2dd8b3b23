"""Binder configuration.

BinderConfig is a frozen dataclass — immutable after creation,
IDE-autocompletable, no string-key dict lookups.
"""

from dataclasses import dataclass

from former.errors import ConfigurationError

DEFAULT_MAX_MEMORY = 32 * 1024 * 1024  # 32 MB


@dataclass(frozen=True, slots=True)
class BinderConfig:
    """Binder configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = BinderConfig(tag="form", max_memory=8 * 1024 * 1024)
    """

    # Field metadata key holding the form key
    tag: str = "formfield"

    # Key that excludes a field from binding
    skip_marker: str = "-"

    # Joins a nested record's key to its children's keys
    separator: str = "."

    # Multipart file parts larger than this roll over to a temp file
    max_memory: int = DEFAULT_MAX_MEMORY

    def __post_init__(self) -> None:
        if not self.tag:
            msg = "BinderConfig.tag must be a non-empty string"
            raise ConfigurationError(msg)
        if not self.separator:
            msg = "BinderConfig.separator must be a non-empty string"
            raise ConfigurationError(msg)
        if self.max_memory < 1:
            msg = f"BinderConfig.max_memory must be positive, got {self.max_memory}"
            raise ConfigurationError(msg)
