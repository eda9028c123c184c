"""Configuration loading for metricmind (.metricmind.yml plus environment overrides)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

CONFIG_FILENAME = ".metricmind.yml"
SUPPORTED_PROVIDERS: tuple[str, ...] = ("gemini", "ollama")
SUPPORTED_STRATEGIES: tuple[str, ...] = ("pattern", "ai", "layered")


class ConfigError(RuntimeError):
    """Raised when the configuration is missing required values or cannot be parsed."""


@dataclass
class DatabaseConfig:
    """Storage connection settings."""

    url: str = "sqlite:///metricmind.db"
    echo: bool = False


@dataclass
class GeminiConfig:
    """Cloud provider settings; an API key is mandatory."""

    api_key: str
    model: str = "gemini-2.0-flash-exp"
    temperature: float = 0.1


@dataclass
class OllamaConfig:
    """Local HTTP provider settings."""

    url: str = "http://localhost:11434"
    model: str = "llama2"
    temperature: float = 0.1


@dataclass
class AIConfig:
    """LLM categorization settings."""

    provider: Optional[str] = None
    timeout: float = 30.0
    retries: int = 3
    batch_size: int = 50
    prevent_numeric_categories: bool = True
    gemini: Optional[GeminiConfig] = None
    ollama: Optional[OllamaConfig] = None

    @property
    def enabled(self) -> bool:
        return bool(self.provider) and self.provider in SUPPORTED_PROVIDERS


@dataclass
class RepositoryEntry:
    """A repository the workflow extracts from."""

    name: str
    path: str
    description: Optional[str] = None
    enabled: bool = True

    def resolved_path(self) -> Path:
        return Path(self.path).expanduser()


@dataclass
class MetricMindConfig:
    """Effective settings for one pipeline run."""

    root: Path
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    repositories: List[RepositoryEntry] = field(default_factory=list)
    output_dir: Path = Path("data/exports")
    default_from: str = "6 months ago"
    default_to: str = "now"
    strategy: str = "pattern"


def load_config(
    config_path: Path | None = None, *, env: Mapping[str, str] | None = None
) -> MetricMindConfig:
    """Load configuration from disk, then apply environment overrides."""
    environ = os.environ if env is None else env
    config_file = _resolve_config_path(config_path or Path.cwd())
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    database_data = _as_dict(data.get("database"))
    database = DatabaseConfig(
        url=_as_str(database_data.get("url")) or DatabaseConfig.url,
        echo=bool(_as_bool(database_data.get("echo"))),
    )
    if environ.get("DATABASE_URL"):
        database.url = environ["DATABASE_URL"]

    extraction_data = _as_dict(data.get("extraction"))
    default_from = environ.get("DEFAULT_FROM_DATE") or _as_str(extraction_data.get("from")) or "6 months ago"
    default_to = environ.get("DEFAULT_TO_DATE") or _as_str(extraction_data.get("to")) or "now"

    output_dir_raw = environ.get("OUTPUT_DIR") or _as_str(data.get("output_dir")) or "data/exports"
    output_dir = Path(output_dir_raw).expanduser()
    if not output_dir.is_absolute():
        output_dir = root / output_dir

    categorization_data = _as_dict(data.get("categorization"))
    strategy = (
        environ.get("CATEGORIZATION_STRATEGY")
        or _as_str(categorization_data.get("strategy"))
        or "pattern"
    ).strip().lower()
    if strategy not in SUPPORTED_STRATEGIES:
        raise ConfigError(
            f"Unknown categorization strategy '{strategy}'. "
            f"Supported: {', '.join(SUPPORTED_STRATEGIES)}"
        )

    ai = _load_ai_config(_as_dict(data.get("ai")), environ)
    repositories = _load_repositories(data.get("repositories"))

    return MetricMindConfig(
        root=root,
        database=database,
        ai=ai,
        repositories=repositories,
        output_dir=output_dir,
        default_from=default_from,
        default_to=default_to,
        strategy=strategy,
    )


def validate_ai_config(ai: AIConfig) -> List[str]:
    """Return the list of problems that prevent AI categorization from running."""
    errors: List[str] = []
    if not ai.provider:
        return ["AI provider is not set (use ai.provider or AI_PROVIDER)"]
    if ai.provider not in SUPPORTED_PROVIDERS:
        return [
            f"Unsupported AI provider '{ai.provider}'. Supported: {', '.join(SUPPORTED_PROVIDERS)}"
        ]
    if ai.provider == "gemini":
        if ai.gemini is None or not ai.gemini.api_key:
            errors.append("GEMINI_API_KEY must be set when using the gemini provider")
    if ai.provider == "ollama":
        if ai.ollama is None or not ai.ollama.url or not ai.ollama.model:
            errors.append("Ollama url and model must be set when using the ollama provider")
    if ai.timeout <= 0:
        errors.append(f"AI timeout must be positive (got: {ai.timeout})")
    if ai.retries < 0:
        errors.append(f"AI retries must be non-negative (got: {ai.retries})")
    if ai.batch_size <= 0:
        errors.append(f"AI batch size must be positive (got: {ai.batch_size})")
    return errors


def _load_ai_config(ai_data: Dict[str, Any], environ: Mapping[str, str]) -> AIConfig:
    provider = environ.get("AI_PROVIDER") or _as_str(ai_data.get("provider"))
    provider = provider.strip().lower() if provider else None

    timeout = _env_or_value(environ, "AI_TIMEOUT", ai_data.get("timeout"), _as_float, 30.0)
    retries = _env_or_value(environ, "AI_RETRIES", ai_data.get("retries"), _as_int, 3)
    batch_size = _env_or_value(environ, "AI_BATCH_SIZE", ai_data.get("batch_size"), _as_int, 50)
    prevent_numeric = _env_or_value(
        environ,
        "PREVENT_NUMERIC_CATEGORIES",
        ai_data.get("prevent_numeric_categories"),
        _as_bool,
        True,
    )

    gemini = None
    if provider == "gemini":
        gemini_data = _as_dict(ai_data.get("gemini"))
        api_key = environ.get("GEMINI_API_KEY") or _as_str(gemini_data.get("api_key")) or ""
        gemini = GeminiConfig(
            api_key=api_key,
            model=environ.get("GEMINI_MODEL") or _as_str(gemini_data.get("model")) or GeminiConfig.model,
            temperature=_temperature(
                _env_or_value(
                    environ, "GEMINI_TEMPERATURE", gemini_data.get("temperature"), _as_float, 0.1
                )
            ),
        )

    ollama = None
    if provider == "ollama":
        ollama_data = _as_dict(ai_data.get("ollama"))
        ollama = OllamaConfig(
            url=(environ.get("OLLAMA_URL") or _as_str(ollama_data.get("url")) or OllamaConfig.url).rstrip("/"),
            model=environ.get("OLLAMA_MODEL") or _as_str(ollama_data.get("model")) or OllamaConfig.model,
            temperature=_temperature(
                _env_or_value(
                    environ, "OLLAMA_TEMPERATURE", ollama_data.get("temperature"), _as_float, 0.1
                )
            ),
        )

    return AIConfig(
        provider=provider,
        timeout=timeout,
        retries=retries,
        batch_size=batch_size,
        prevent_numeric_categories=prevent_numeric,
        gemini=gemini,
        ollama=ollama,
    )


def _load_repositories(value: Any) -> List[RepositoryEntry]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError("repositories must be a list of mappings")
    entries: List[RepositoryEntry] = []
    for item in value:
        if not isinstance(item, dict):
            raise ConfigError("each repository entry must be a mapping")
        name = _as_str(item.get("name"))
        path = _as_str(item.get("path"))
        if not name or not path:
            raise ConfigError("repository entries require both 'name' and 'path'")
        enabled = _as_bool(item.get("enabled"))
        entries.append(
            RepositoryEntry(
                name=name,
                path=path,
                description=_as_str(item.get("description")),
                enabled=True if enabled is None else enabled,
            )
        )
    return entries


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _env_or_value(environ, key, value, converter, default):  # type: ignore[no-untyped-def]
    raw = environ.get(key)
    if raw is not None and raw != "":
        converted = converter(raw)
        if converted is None:
            raise ConfigError(f"Invalid value for {key}: {raw!r}")
        return converted
    if value is None:
        return default
    converted = converter(value)
    if converted is None:
        raise ConfigError(f"Invalid configuration value: {value!r}")
    return converted


def _temperature(value: float) -> float:
    if not 0.0 <= value <= 2.0:
        raise ConfigError(f"temperature must be between 0.0 and 2.0 (got: {value})")
    return value


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


__all__ = [
    "AIConfig",
    "ConfigError",
    "DatabaseConfig",
    "GeminiConfig",
    "MetricMindConfig",
    "OllamaConfig",
    "RepositoryEntry",
    "load_config",
    "validate_ai_config",
]
