"""
Configuration management for readshelf.

Handles loading and saving user configuration from:
- XDG config directory: ~/.config/readshelf/config.json
- Fallback: ~/.readshelf/config.json
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """View engine tuning."""
    data_debounce_seconds: float = 0.1
    search_debounce_seconds: float = 0.3
    coalesce_tolerance_seconds: float = 0.02
    max_animated_growth: int = 5

    def __post_init__(self):
        for name in ("data_debounce_seconds", "search_debounce_seconds", "coalesce_tolerance_seconds"):
            if getattr(self, name) < 0:
                raise ValueError(f"engine.{name} must not be negative")
        if self.max_animated_growth < 0:
            raise ValueError("engine.max_animated_growth must not be negative")


@dataclass
class CLIConfig:
    """CLI default options."""
    verbose: bool = False
    color: bool = True
    page_size: int = 50


@dataclass
class LibraryConfig:
    """Library-related settings."""
    default_path: Optional[str] = None
    presets_path: Optional[str] = None


@dataclass
class ReadShelfConfig:
    """Main readshelf configuration."""
    engine: EngineConfig = field(default_factory=EngineConfig)
    cli: CLIConfig = field(default_factory=CLIConfig)
    library: LibraryConfig = field(default_factory=LibraryConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "engine": asdict(self.engine),
            "cli": asdict(self.cli),
            "library": asdict(self.library),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReadShelfConfig':
        """Create from dictionary."""
        return cls(
            engine=EngineConfig(**data.get("engine", {})),
            cli=CLIConfig(**data.get("cli", {})),
            library=LibraryConfig(**data.get("library", {})),
        )


def get_config_dir() -> Path:
    """
    Get the configuration directory.

    Follows the XDG Base Directory layout:
    1. $XDG_CONFIG_HOME/readshelf (usually ~/.config/readshelf)
    2. Fallback: ~/.readshelf
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    xdg_config_home = Path(xdg) if xdg else Path.home() / ".config"
    if xdg_config_home.exists():
        return xdg_config_home / "readshelf"
    return Path.home() / ".readshelf"


def get_config_path() -> Path:
    return get_config_dir() / "config.json"


def get_presets_path(config: Optional[ReadShelfConfig] = None) -> Path:
    """Presets file from the config, or presets.yaml next to the config file."""
    if config and config.library.presets_path:
        return Path(config.library.presets_path).expanduser()
    return get_config_dir() / "presets.yaml"


def load_config() -> ReadShelfConfig:
    """
    Load configuration from file.

    Returns:
        ReadShelfConfig instance with loaded values or defaults
    """
    config_path = get_config_path()

    if not config_path.exists():
        return ReadShelfConfig()

    try:
        with open(config_path, 'r') as f:
            data = json.load(f)
        return ReadShelfConfig.from_dict(data)
    except (ValueError, OSError, TypeError) as e:
        logger.warning(f"Failed to load config from {config_path}: {e}; using defaults")
        return ReadShelfConfig()


def save_config(config: ReadShelfConfig) -> Path:
    """
    Save configuration to file.

    Returns:
        Path the configuration was written to
    """
    config_path = get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w') as f:
        json.dump(config.to_dict(), f, indent=2)

    logger.debug(f"Configuration saved to {config_path}")
    return config_path


def update_config(
    # Engine settings
    data_debounce_seconds: Optional[float] = None,
    search_debounce_seconds: Optional[float] = None,
    coalesce_tolerance_seconds: Optional[float] = None,
    max_animated_growth: Optional[int] = None,
    # CLI settings
    cli_verbose: Optional[bool] = None,
    cli_color: Optional[bool] = None,
    cli_page_size: Optional[int] = None,
    # Library settings
    library_default_path: Optional[str] = None,
    library_presets_path: Optional[str] = None,
) -> ReadShelfConfig:
    """
    Update configuration.

    Only updates provided values, leaving others unchanged.
    """
    config = load_config()

    if data_debounce_seconds is not None:
        config.engine.data_debounce_seconds = data_debounce_seconds
    if search_debounce_seconds is not None:
        config.engine.search_debounce_seconds = search_debounce_seconds
    if coalesce_tolerance_seconds is not None:
        config.engine.coalesce_tolerance_seconds = coalesce_tolerance_seconds
    if max_animated_growth is not None:
        config.engine.max_animated_growth = max_animated_growth

    if cli_verbose is not None:
        config.cli.verbose = cli_verbose
    if cli_color is not None:
        config.cli.color = cli_color
    if cli_page_size is not None:
        config.cli.page_size = cli_page_size

    if library_default_path is not None:
        config.library.default_path = library_default_path
    if library_presets_path is not None:
        config.library.presets_path = library_presets_path

    save_config(config)
    return config
