import os
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Default config lives alongside the package (repo root)
DEFAULT_CONFIG_PATH: str = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "..", "config.yaml")
)

API_KEY_ENV: Dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "perplexity": "PERPLEXITY_API_KEY",
    "google": "GOOGLE_API_KEY",
}

_DEFAULT_PROVIDERS: Dict[str, Dict[str, Any]] = {
    "openai": {"model": "gpt-4o", "temperature": 0.2, "max_tokens": 4000},
    "anthropic": {"model": "claude-3-5-sonnet-20241022", "temperature": 0.2, "max_tokens": 4000},
    "deepseek": {"model": "deepseek-chat", "temperature": 0.2, "base_url": "https://api.deepseek.com/v1"},
    "perplexity": {
        "model": "llama-3.1-sonar-small-128k-online",
        "temperature": 0.2,
        "base_url": "https://api.perplexity.ai",
    },
    "google": {"model": "gemini-1.5-pro", "temperature": 0.2},
}


@dataclass
class ProviderSettings:
    name: str
    model: str
    temperature: float = 0.2
    max_tokens: Optional[int] = None
    base_url: Optional[str] = None
    api_key_env: Optional[str] = None

    def api_key(self) -> str:
        env_name = self.api_key_env or API_KEY_ENV.get(self.name, "")
        key = os.getenv(env_name) if env_name else None
        if not key:
            raise ConfigError(f"{env_name or 'API key'} not found in environment variables.")
        return key


@dataclass
class GraderConfig:
    default_provider: str = "openai"
    mode: str = "comprehensive"
    timeout_seconds: float = 120.0
    chunk_word_threshold: int = 1000
    chunk_delay_seconds: float = 0.0
    system_prompt: Optional[str] = None
    providers: Dict[str, ProviderSettings] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.providers:
            self.providers = {
                name: ProviderSettings(name=name, **opts) for name, opts in _DEFAULT_PROVIDERS.items()
            }

    def provider_settings(self, name: str) -> ProviderSettings:
        settings = self.providers.get(name)
        if settings is None:
            raise ConfigError(f"Provider '{name}' is not configured.")
        return settings


def _parse_providers(raw: Any) -> Dict[str, ProviderSettings]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("'providers' must be a mapping of provider name -> settings.")
    providers: Dict[str, ProviderSettings] = {}
    for name, opts in raw.items():
        name = str(name).strip().lower()
        # Unspecified fields fall back to the built-in defaults for that provider
        merged = dict(_DEFAULT_PROVIDERS.get(name, {}))
        merged.update(opts or {})
        if "model" not in merged:
            raise ConfigError(f"providers.{name}.model is required.")
        try:
            providers[name] = ProviderSettings(name=name, **merged)
        except TypeError as e:
            raise ConfigError(f"Invalid settings for provider '{name}': {e}")
    return providers


def load_config(config_path: Optional[str] = None, env_path: Optional[str] = None) -> GraderConfig:
    """
    Load GraderConfig from YAML. A missing file yields the defaults.

    Also loads a .env file (if present) so provider API keys resolve from the
    environment when clients are built.
    """
    load_dotenv(env_path)

    path = config_path or DEFAULT_CONFIG_PATH
    if not os.path.exists(path):
        if config_path:
            raise ConfigError(f"Config file not found: {config_path}")
        logger.debug(f"No config file at {path}; using defaults.")
        return GraderConfig()

    with open(path, "r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")

    providers = _parse_providers(data.pop("providers", None))
    known = {"default_provider", "mode", "timeout_seconds", "chunk_word_threshold", "chunk_delay_seconds", "system_prompt"}
    unknown = set(data) - known
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")

    cfg = GraderConfig(
        providers=providers,
        **{k: v for k, v in data.items() if k in known},
    )
    cfg.default_provider = str(cfg.default_provider).strip().lower()
    if cfg.chunk_word_threshold <= 0:
        raise ConfigError("chunk_word_threshold must be positive.")
    if cfg.timeout_seconds <= 0:
        raise ConfigError("timeout_seconds must be positive.")
    logger.info(f"Loaded config from {path} ({len(cfg.providers)} providers)")
    return cfg
