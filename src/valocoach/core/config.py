"""
Configuration Management for valocoach

Provides configuration loading from multiple sources:
- Default values
- Configuration files (YAML, TOML, JSON)
- Environment variables

Configuration precedence (highest to lowest):
1. Environment variables (secrets by their well-known names, VALOCOACH_* otherwise)
2. Configuration file
3. Default values

Secrets are loaded but never validated here. A missing key surfaces as an
error the first time the client that needs it makes a call.
"""

import json
import logging
import logging.handlers
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Dataclasses
# ============================================================================


@dataclass
class ValorantAPIConfig:
    """HenrikDev VALORANT API settings."""

    api_key: str | None = None
    base_url: str = "https://api.henrikdev.xyz"
    timeout: float = 10.0


@dataclass
class AimlabConfig:
    """Aim Lab GraphQL settings."""

    endpoint: str = "https://api.aimlab.gg/graphql"
    timeout: float = 10.0


@dataclass
class DatabaseConfig:
    """Relational store for players, matches, rounds and stats."""

    url: str = "sqlite:///valocoach.db"
    auth_token: str | None = None
    echo: bool = False


@dataclass
class VectorStoreConfig:
    """Vector store holding embedded match knowledge."""

    url: str = "sqlite:///knowledge.db"
    auth_token: str | None = None
    index_name: str = "valorant_knowledge"
    # text-embedding-004 produces 768-dimensional vectors
    dimension: int = 768


@dataclass
class LLMConfig:
    """Anthropic settings for narratives, research and agents."""

    api_key: str | None = None
    tier: str = "standard"
    timeout: int = 60


@dataclass
class EmbeddingConfig:
    """Embedding model and chunking settings."""

    api_key: str | None = None
    model: str = "text-embedding-004"
    timeout: float = 30.0
    chunk_size: int = 512
    batch_size: int = 100


@dataclass
class PipelineConfig:
    """Pipeline pacing and defaults."""

    # API budget is ~30 requests/minute, so leave headroom between pages
    page_delay_seconds: float = 5.0
    default_page_size: int = 1
    knowledge_page_size: int = 5


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    file_max_bytes: int = 10 * 1024 * 1024  # 10MB
    file_backup_count: int = 5


@dataclass
class ValoCoachConfig:
    """Main configuration container."""

    valorant_api: ValorantAPIConfig = field(default_factory=ValorantAPIConfig)
    aimlab: AimlabConfig = field(default_factory=AimlabConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Version of the config format
    config_version: str = "1.0"


_SECTIONS = (
    "valorant_api",
    "aimlab",
    "database",
    "vector_store",
    "llm",
    "embedding",
    "pipeline",
    "logging",
)

# Fields that hold credentials; left out of saved config files
_SECRET_FIELDS = {"api_key", "auth_token"}


# ============================================================================
# Configuration Loading
# ============================================================================


def get_default_config_paths() -> list[Path]:
    """Get the default paths to search for configuration files."""
    paths = []

    # Current directory
    paths.append(Path.cwd() / "valocoach.yaml")
    paths.append(Path.cwd() / "valocoach.toml")
    paths.append(Path.cwd() / "valocoach.json")
    paths.append(Path.cwd() / ".valocoach.yaml")

    # User home directory
    home = Path.home()
    paths.append(home / ".config" / "valocoach" / "config.yaml")
    paths.append(home / ".config" / "valocoach" / "config.toml")

    # XDG config directory
    xdg_config = os.environ.get("XDG_CONFIG_HOME", str(home / ".config"))
    paths.append(Path(xdg_config) / "valocoach" / "config.yaml")

    return paths


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load configuration from a YAML file."""
    import yaml

    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from a TOML file."""
    import tomllib

    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(path) as f:
        return json.load(f)


def load_config_file(path: Path) -> dict[str, Any]:
    """Load configuration from a file, detecting format from extension."""
    if not path.exists():
        return {}

    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return load_yaml_config(path)
    elif suffix == ".toml":
        return load_toml_config(path)
    elif suffix == ".json":
        return load_json_config(path)
    else:
        logger.warning(f"Unknown config file format: {suffix}")
        return {}


# Well-known secret/connection variables are read verbatim (no conversion)
_ENV_SECRETS = {
    "VALORANT_API_KEY": ("valorant_api", "api_key"),
    "VALORANT_STORE_URL": ("database", "url"),
    "VALORANT_STORE_AUTH_TOKEN": ("database", "auth_token"),
    "VALORANT_KNOWLEDGE_VECTOR_URL": ("vector_store", "url"),
    "VALORANT_KNOWLEDGE_AUTH_TOKEN": ("vector_store", "auth_token"),
    "ANTHROPIC_API_KEY": ("llm", "api_key"),
    "GOOGLE_API_KEY": ("embedding", "api_key"),
}

_ENV_SETTINGS = {
    "VALOCOACH_LOG_LEVEL": ("logging", "level"),
    "VALOCOACH_LOG_FILE": ("logging", "file"),
    "VALOCOACH_API_BASE_URL": ("valorant_api", "base_url"),
    "VALOCOACH_PAGE_DELAY_SECONDS": ("pipeline", "page_delay_seconds"),
    "VALOCOACH_LLM_TIER": ("llm", "tier"),
    "VALOCOACH_EMBEDDING_MODEL": ("embedding", "model"),
    "VALOCOACH_CHUNK_SIZE": ("embedding", "chunk_size"),
    "VALOCOACH_EMBED_BATCH_SIZE": ("embedding", "batch_size"),
    "VALOCOACH_VECTOR_INDEX": ("vector_store", "index_name"),
    "VALOCOACH_DB_ECHO": ("database", "echo"),
}


def _convert_env_value(value: str) -> Any:
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if value.isdigit():
        return int(value)
    try:
        return float(value)
    except ValueError:
        return value


def load_env_config() -> dict[str, Any]:
    """Load configuration from environment variables."""
    config: dict[str, Any] = {}

    for env_var, (section, key) in _ENV_SECRETS.items():
        value = os.environ.get(env_var)
        if value:
            config.setdefault(section, {})[key] = value

    for env_var, (section, key) in _ENV_SETTINGS.items():
        value = os.environ.get(env_var)
        if value is not None:
            config.setdefault(section, {})[key] = _convert_env_value(value)

    return config


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge two configuration dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def dict_to_config(data: dict[str, Any]) -> ValoCoachConfig:
    """Convert a dictionary to ValoCoachConfig, ignoring unknown keys."""
    config = ValoCoachConfig()

    for section_name in _SECTIONS:
        values = data.get(section_name)
        if not isinstance(values, dict):
            continue
        section = getattr(config, section_name)
        for key, value in values.items():
            if hasattr(section, key):
                setattr(section, key, value)
            else:
                logger.debug("Ignoring unknown config key %s.%s", section_name, key)

    return config


def load_config(config_file: Path | None = None, include_env: bool = True) -> ValoCoachConfig:
    """
    Load configuration from all sources.

    Args:
        config_file: Explicit path to a config file (optional)
        include_env: Whether to include environment variables

    Returns:
        Merged ValoCoachConfig
    """
    config_data: dict[str, Any] = {}

    if config_file:
        config_data = load_config_file(config_file)
        logger.info(f"Loaded config from: {config_file}")
    else:
        for path in get_default_config_paths():
            if path.exists():
                config_data = load_config_file(path)
                logger.info(f"Loaded config from: {path}")
                break

    if include_env:
        config_data = merge_configs(config_data, load_env_config())

    return dict_to_config(config_data)


# ============================================================================
# Configuration Saving
# ============================================================================


def config_to_dict(config: ValoCoachConfig, include_secrets: bool = False) -> dict[str, Any]:
    """Convert ValoCoachConfig to a dictionary."""
    data = asdict(config)
    if not include_secrets:
        for section_name in _SECTIONS:
            for key in _SECRET_FIELDS:
                data[section_name].pop(key, None)
    return data


def save_config(config: ValoCoachConfig, path: Path) -> None:
    """
    Save configuration to a file. Secrets are never written.

    Args:
        config: Configuration to save
        path: Path to save to (format detected from extension)
    """
    data = config_to_dict(config)
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        import yaml

        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    elif suffix == ".json":
        with open(path, "w") as f:
            json.dump(data, f, indent=2)

    else:
        raise ValueError(f"Unknown config format: {suffix}")

    logger.info(f"Saved config to: {path}")


# ============================================================================
# Logging
# ============================================================================


def configure_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """Configure the root logger from a LoggingConfig."""
    level = logging.DEBUG if verbose else getattr(logging, str(config.level).upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                config.file,
                maxBytes=config.file_max_bytes,
                backupCount=config.file_backup_count,
            )
        )

    logging.basicConfig(level=level, format=config.format, handlers=handlers, force=True)


# ============================================================================
# Global Configuration
# ============================================================================

_global_config: ValoCoachConfig | None = None


def get_config() -> ValoCoachConfig:
    """Get the global configuration, loading it if necessary."""
    global _global_config

    if _global_config is None:
        _global_config = load_config()

    return _global_config


def set_config(config: ValoCoachConfig) -> None:
    """Set the global configuration."""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Reset the global configuration to defaults."""
    global _global_config
    _global_config = None


# ============================================================================
# Configuration Templates
# ============================================================================

DEFAULT_CONFIG_YAML = """# valocoach configuration
# Secrets come from the environment:
#   VALORANT_API_KEY, ANTHROPIC_API_KEY, GOOGLE_API_KEY,
#   VALORANT_STORE_AUTH_TOKEN, VALORANT_KNOWLEDGE_AUTH_TOKEN

valorant_api:
  base_url: https://api.henrikdev.xyz
  timeout: 10.0

aimlab:
  endpoint: https://api.aimlab.gg/graphql

# Any SQLAlchemy URL (sqlite, postgresql, sqlite+libsql for Turso)
database:
  url: sqlite:///valocoach.db

vector_store:
  url: sqlite:///knowledge.db
  index_name: valorant_knowledge
  dimension: 768

llm:
  tier: standard  # standard or deep

embedding:
  model: text-embedding-004
  chunk_size: 512
  batch_size: 100

pipeline:
  page_delay_seconds: 5.0
  default_page_size: 1
  knowledge_page_size: 5

logging:
  level: INFO
  # file: /path/to/valocoach.log
"""


def generate_default_config(path: Path) -> None:
    """Generate a default configuration file."""
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        path.write_text(DEFAULT_CONFIG_YAML)
    else:
        save_config(ValoCoachConfig(), path)

    logger.info(f"Generated default config at: {path}")
