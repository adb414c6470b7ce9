"""Run configuration for git-baretree"""

from dataclasses import dataclass
from typing import Optional

from git_baretree.constants import MIGRATION_MODES, MODE_DESTINATION, MODE_IN_PLACE, MODE_MANAGED


@dataclass
class MigrateConfig:
    """Configuration for one migration run with validation."""

    source: str = "."
    mode: str = MODE_IN_PLACE  # in-place, destination, managed

    # Where the migrated repository goes
    destination: Optional[str] = None  # Required for destination mode
    managed_path: Optional[str] = None  # host/user/repo under the managed root

    remove_source: bool = False  # Delete the original after a successful copy
    verbose: bool = False
    debug: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_source()
        self._validate_mode()
        self._validate_destination()
        self._validate_managed_path()
        self._validate_remove_source()

    def _validate_source(self):
        """Validate source is not empty."""
        if not self.source or not self.source.strip():
            raise ValueError("source cannot be empty")
        self.source = self.source.strip()

    def _validate_mode(self):
        """Validate mode is one of allowed values."""
        if self.mode not in MIGRATION_MODES:
            raise ValueError(f"mode must be one of {list(MIGRATION_MODES)}, got '{self.mode}'")

    def _validate_destination(self):
        if self.mode == MODE_DESTINATION:
            if not self.destination or not self.destination.strip():
                raise ValueError("destination is required for destination mode")
            self.destination = self.destination.strip()
        elif self.destination:
            raise ValueError(f"destination cannot be used with {self.mode} mode")

    def _validate_managed_path(self):
        if self.managed_path and self.mode != MODE_MANAGED:
            raise ValueError("managed_path can only be used with managed mode")

    def _validate_remove_source(self):
        """Validate remove_source is only set when the source survives the migration."""
        if self.remove_source and self.mode == MODE_IN_PLACE:
            raise ValueError("remove_source cannot be used with in-place mode")

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "source": self.source,
            "mode": self.mode,
            "destination": self.destination,
            "managed_path": self.managed_path,
            "remove_source": self.remove_source,
            "verbose": self.verbose,
            "debug": self.debug,
        }

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "MigrateConfig":
        """Create MigrateConfig from dictionary."""
        # Extract only known fields
        known_fields = {
            "source",
            "mode",
            "destination",
            "managed_path",
            "remove_source",
            "verbose",
            "debug",
        }

        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)
