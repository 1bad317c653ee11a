#!/usr/bin/env python3
"""
Apothesis Configuration Manager

Persistent defaults and run statistics, stored as JSON in a .apothesis
directory. Command line flags override the stored defaults for a single run.
"""

import json
import pathlib
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

from classifiers import HASH_ALGORITHMS


def _default_stats() -> dict:
    return {"total_runs": 0, "total_classified": 0, "total_moved": 0}


@dataclass
class ApothesisConfig:
    """Configuration for Apothesis"""

    version: str = "1.0"
    state_file: str = "state.xml"
    save_interval: int = 50000  # Classifications between mid-run checkpoints
    hash_algorithm: str = "md5"
    chunk_size: int = 65536
    progress_interval: float = 0.1  # Seconds between console status refreshes
    last_run: Optional[str] = None
    stats: dict = field(default_factory=_default_stats)

    def record_run(self, classified: int, moved: int):
        """Update last run timestamp and cumulative statistics"""
        stats = self.stats
        stats["total_runs"] = stats.get("total_runs", 0) + 1
        stats["total_classified"] = stats.get("total_classified", 0) + classified
        stats["total_moved"] = stats.get("total_moved", 0) + moved
        self.last_run = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ApothesisConfig":
        """Create from dictionary"""
        default = cls()
        config = cls(
            version=data.get("version", default.version),
            state_file=str(data.get("state_file", default.state_file)),
            save_interval=int(data.get("save_interval", default.save_interval)),
            hash_algorithm=str(data.get("hash_algorithm", default.hash_algorithm)).lower(),
            chunk_size=int(data.get("chunk_size", default.chunk_size)),
            progress_interval=float(data.get("progress_interval", default.progress_interval)),
            last_run=data.get("last_run"),
            stats={**_default_stats(), **data.get("stats", {})},
        )
        config.validate()
        return config

    def validate(self):
        """Reject values no run could use

        Raises:
            ValueError: If a setting is out of range
        """
        if self.hash_algorithm not in HASH_ALGORITHMS:
            raise ValueError(f"Unknown hash algorithm: {self.hash_algorithm}")
        if self.save_interval < 1:
            raise ValueError("save_interval must be at least 1")
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")


class ConfigManager:
    """Manages loading and saving configuration"""

    def __init__(self, config_dir: Optional[pathlib.Path] = None):
        """Initialize configuration manager

        Args:
            config_dir: Override default .apothesis directory location
        """
        if config_dir:
            self.config_dir = pathlib.Path(config_dir)
        else:
            self.config_dir = pathlib.Path.home() / ".apothesis"

        self.config_file = self.config_dir / "config.json"

    def load(self) -> ApothesisConfig:
        """Load configuration from file"""
        if self.config_file.exists():
            try:
                with self.config_file.open() as f:
                    data = json.load(f)
                    return ApothesisConfig.from_dict(data)
            except (json.JSONDecodeError, AttributeError, TypeError, ValueError, OSError):
                # If config is corrupted, return default
                return ApothesisConfig()
        return ApothesisConfig()

    def save(self, config: ApothesisConfig):
        """Save configuration to file"""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with self.config_file.open("w") as f:
            json.dump(config.to_dict(), f, indent=2)
