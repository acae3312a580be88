"""Configuration settings and models for the segmented archive application."""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..destinations.archive_builder import archive_name
from ..exceptions import ConfigError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class BackupConfig(BaseModel):
    """Main configuration class."""
    output_path: Path = Path("/tmp")
    root_path: Optional[Path] = None  # Prefix stripped from the path stored in archives

    pre_script: Optional[Path] = None  # Run before a segment is archived
    post_script: Optional[Path] = None  # Run for every finished archive part
    skip_script: Optional[Path] = None  # Run for every unchanged segment

    fingerprint_file: Optional[Path] = None
    log_file: Optional[Path] = None  # %D is replaced with the current date
    log_level: str = "INFO"

    compression_level: int = Field(default=6, ge=0, le=9)
    max_size_bytes: Optional[int] = Field(default=None, gt=0)

    segments: Dict[str, Path]
    ignore: Optional[List[str]] = None

    fail_on_fingerprint_error: bool = False
    continue_on_archive_error: bool = False

    @field_validator('segments')
    @classmethod
    def validate_segments(cls, v):
        if not v:
            raise ValueError('at least one segment must be configured')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        if v.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return v.upper()

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "BackupConfig":
        """Load configuration from YAML file."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}", config_path)

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read config file {config_path}: {e}", config_path) from e

        if not isinstance(config_data, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping", config_path)

        try:
            return cls(**config_data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config file {config_path}: {e}", config_path) from e

    def to_yaml(self, config_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.model_dump(mode='json', exclude_none=True), f,
                           default_flow_style=False, indent=2, sort_keys=False)

    def get_log_file(self, now: Optional[datetime] = None) -> Optional[Path]:
        """Log file path with the ``%D`` placeholder replaced by ``YYYYMMDD``."""
        if self.log_file is None:
            return None
        now = now or datetime.now()
        return Path(str(self.log_file).replace("%D", now.strftime("%Y%m%d")))

    def prepare_output_path(self) -> Path:
        """Make sure the output directory exists, creating it if needed.

        Raises:
            ConfigError: If the path is not a directory or its parent is missing
        """
        output_path = self.output_path
        if output_path.exists() and not output_path.is_dir():
            raise ConfigError(f"Output path exists but is not a directory: {output_path}", output_path)
        if not output_path.parent.exists():
            raise ConfigError(f"Output directory not found: {output_path.parent}", output_path.parent)
        if not output_path.exists():
            try:
                output_path.mkdir()
            except OSError as e:
                raise ConfigError(f"Failed to create output directory {output_path}: {e}", output_path) from e
        return output_path

    def archive_path(self, segment_name: str) -> Path:
        """Final archive path for a segment."""
        return self.output_path / archive_name(segment_name)
