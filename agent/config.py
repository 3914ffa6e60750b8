"""Configuration loading and validation."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import dotenv_values

from agent.exceptions import ConfigError


APP_DIR_NAME = ".clio-ai"
LEGACY_APP_DIR_NAME = ".ai-cli"
CONFIG_FILENAME = "config.json"

PROVIDERS = ("gemini", "groq", "ollama")

# (model id, display name, provider)
MODELS: list[tuple[str, str, str]] = [
    ("gemini-3-flash-preview", "Gemini 3 Flash", "gemini"),
    ("gemini-2.5-flash-lite", "Gemini 2.5 Flash Lite", "gemini"),
    ("gemini-2.5-flash", "Gemini 2.5 Flash", "gemini"),
    ("gemini-2.5-pro", "Gemini 2.5 Pro", "gemini"),
    ("compound-beta", "Groq Compound", "groq"),
    ("meta-llama/llama-4-scout-17b-16e-instruct", "Llama 4 Scout", "groq"),
    ("llama3.2", "Llama 3.2 (Ollama)", "ollama"),
]


def _default_data_dir() -> str:
    return str(Path.home() / APP_DIR_NAME)


@dataclass
class ProviderConfig:
    """Which model answers, and the credentials to reach it."""
    provider: str = "gemini"
    model: str = "gemini-3-flash-preview"
    gemini_api_key: str | None = None
    groq_api_key: str | None = None
    ollama_url: str = "http://localhost:11434"
    temperature: float = 0.7


@dataclass
class HttpSettings:
    """Timeouts and retries for provider HTTP calls."""
    connect_timeout: float = 5.0
    read_timeout: float = 120.0
    total_timeout: float = 300.0
    max_retries: int = 3
    health_check_on_start: bool = True


@dataclass
class ToolsConfig:
    """Configuration for filesystem tool execution."""
    confine_list_dir: bool = False


@dataclass
class AgentConfig:
    """Complete application configuration."""
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    http: HttpSettings = field(default_factory=HttpSettings)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    max_iterations: int = 10
    run_log_enabled: bool = True
    prompt_profile: str = "default"
    data_dir: str = field(default_factory=_default_data_dir)
    log_dir: str = field(default_factory=lambda: os.path.join(_default_data_dir(), "logs"))


def detect_provider(model: str) -> str:
    """Guess the provider that serves a model id."""
    if model.startswith("gemini"):
        return "gemini"
    if model.startswith(("compound", "meta-llama", "llama-")):
        return "groq"
    return "ollama"


def env_paths() -> list[Path]:
    """Home-directory .env files consulted after the one in the current directory."""
    home = Path.home()
    return [
        home / APP_DIR_NAME / ".env",
        home / LEGACY_APP_DIR_NAME / ".env",
    ]


def load_env(cwd: str | None = None) -> dict[str, str]:
    """
    Merge the first .env file found (current dir, then home paths) with the
    process environment. Process variables win; os.environ is not modified.
    """
    candidates = [Path(cwd or os.getcwd()) / ".env", *env_paths()]
    values: dict[str, str] = {}
    for path in candidates:
        if path.is_file():
            values = {k: v for k, v in dotenv_values(path).items() if v is not None}
            break
    values.update(os.environ)
    return values


def load_config(
    config_path: str | None = None,
    env: dict[str, str] | None = None,
) -> AgentConfig:
    """Load configuration from JSON file, .env files and environment, with defaults."""
    if env is None:
        env = load_env()

    if config_path is None:
        default_path = os.path.join(_default_data_dir(), CONFIG_FILENAME)
        config_path = default_path if os.path.exists(default_path) else None
    elif not os.path.exists(config_path):
        raise ConfigError(f"Config file not found: {config_path}")

    raw: dict = {}
    if config_path is not None:
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise ConfigError(f"Failed to load config from {config_path}: {e}")
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {config_path} must contain a JSON object")

    data_dir = os.path.expanduser(raw.get("data_dir", _default_data_dir()))
    log_dir = os.path.expanduser(raw.get("log_dir", os.path.join(data_dir, "logs")))

    provider = _load_provider_settings(raw.get("provider", {}), env)
    http = _load_http_settings(raw.get("http", {}))
    tools = _load_tools_settings(raw.get("tools", {}))

    max_iterations = _coerce_int(raw.get("max_iterations", 10), "max_iterations", 1)

    run_log_enabled = raw.get("run_log_enabled", True)
    if not isinstance(run_log_enabled, bool):
        raise ConfigError("run_log_enabled must be a boolean")

    prompt_profile = raw.get("prompt_profile", "default")
    if not isinstance(prompt_profile, str) or not prompt_profile.strip():
        raise ConfigError("prompt_profile must be a non-empty string")

    os.makedirs(log_dir, exist_ok=True)

    return AgentConfig(
        provider=provider,
        http=http,
        tools=tools,
        max_iterations=max_iterations,
        run_log_enabled=run_log_enabled,
        prompt_profile=prompt_profile.strip(),
        data_dir=data_dir,
        log_dir=log_dir,
    )


def _load_provider_settings(raw: dict, env: dict[str, str]) -> ProviderConfig:
    """Parse provider settings; environment variables override the file."""
    if not isinstance(raw, dict):
        raise ConfigError("provider must be an object")

    defaults = ProviderConfig()
    provider = env.get("PROVIDER") or raw.get("provider", defaults.provider)
    if provider not in PROVIDERS:
        raise ConfigError(f"provider must be one of: {', '.join(PROVIDERS)}")

    model = env.get("MODEL") or raw.get("model", defaults.model)
    if not isinstance(model, str) or not model.strip():
        raise ConfigError("provider.model must be a non-empty string")

    ollama_url = env.get("OLLAMA_URL") or raw.get("ollama_url", defaults.ollama_url)
    if not isinstance(ollama_url, str) or not ollama_url.strip():
        raise ConfigError("provider.ollama_url must be a non-empty string")

    gemini_api_key = env.get("GEMINI_API_KEY") or raw.get("gemini_api_key")
    groq_api_key = env.get("GROQ_API_KEY") or raw.get("groq_api_key")
    for name, value in (("gemini_api_key", gemini_api_key), ("groq_api_key", groq_api_key)):
        if value is not None and not isinstance(value, str):
            raise ConfigError(f"provider.{name} must be a string")

    temperature = _coerce_float(raw.get("temperature", defaults.temperature), "provider.temperature", 0.0)

    return ProviderConfig(
        provider=provider,
        model=model.strip(),
        gemini_api_key=gemini_api_key or None,
        groq_api_key=groq_api_key or None,
        ollama_url=ollama_url.strip(),
        temperature=temperature,
    )


def _load_http_settings(raw: dict) -> HttpSettings:
    """Parse and validate provider HTTP settings."""
    if not isinstance(raw, dict):
        raise ConfigError("http must be an object")

    connect_timeout = _coerce_float(raw.get("connect_timeout", 5.0), "http.connect_timeout", 0.1)
    read_timeout = _coerce_float(raw.get("read_timeout", 120.0), "http.read_timeout", 0.1)
    total_timeout = _coerce_float(raw.get("total_timeout", 300.0), "http.total_timeout", 0.1)
    max_retries = _coerce_int(raw.get("max_retries", 3), "http.max_retries", 1)

    health_check_on_start = raw.get("health_check_on_start", True)
    if not isinstance(health_check_on_start, bool):
        raise ConfigError("http.health_check_on_start must be a boolean")

    return HttpSettings(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        total_timeout=total_timeout,
        max_retries=max_retries,
        health_check_on_start=health_check_on_start,
    )


def _load_tools_settings(raw: dict) -> ToolsConfig:
    """Parse and validate tool execution settings."""
    if not isinstance(raw, dict):
        raise ConfigError("tools must be an object")

    confine_list_dir = raw.get("confine_list_dir", False)
    if not isinstance(confine_list_dir, bool):
        raise ConfigError("tools.confine_list_dir must be a boolean")

    return ToolsConfig(confine_list_dir=confine_list_dir)


def _coerce_float(value: object, name: str, min_value: float) -> float:
    """Coerce config value to float with basic validation."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number")

    if value < min_value:
        raise ConfigError(f"{name} must be >= {min_value}")
    return value


def _coerce_int(value: object, name: str, min_value: int) -> int:
    """Coerce config value to int with basic validation."""
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer")

    if value < min_value:
        raise ConfigError(f"{name} must be >= {min_value}")
    return value
