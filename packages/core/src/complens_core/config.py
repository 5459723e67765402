import os
from pathlib import Path
from typing import Optional

import yaml

from complens_core.errors import ConfigurationError
from complens_core.models import LOCAL_PROVIDERS, PROVIDERS, ProviderConfig

DEFAULT_CONFIG: dict = {
    "provider": "gemini",
    "model": None,  # None = first entry of PROVIDER_MODELS for the provider
    "base_url": None,  # endpoint override (azure, groq) or daemon host (ollama)
    "parse_revision_fallback": False,
    "output": None,  # path the revised artifact is written to, if any
}

PROVIDER_MODELS: dict[str, list[str]] = {
    "openai": ["gpt-4o-mini", "gpt-4o", "o1-mini", "gpt-3.5-turbo-0125"],
    "gemini": ["gemini-1.5-pro-latest", "gemini-1.5-flash-latest", "gemini-pro"],
    "azure": ["gpt-4o", "gpt-35-turbo"],
    "groq": ["llama3-70b-8192", "mixtral-8x7b-32768", "gemma-7b-it"],
    "ollama": ["llama3", "mistral", "phi3"],
    "anthropic": ["claude-sonnet-4-20250514"],
}

API_KEY_ENV: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_OPENAI_API_KEY",
    "groq": "GROQ_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}

DEFAULT_OLLAMA_HOST = "http://localhost:11434"


def load_config(config_path: str = ".complens.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .complens.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    for provider, env_var in API_KEY_ENV.items():
        config[f"{provider}_api_key"] = os.environ.get(env_var)
    config["ollama_host"] = os.environ.get("OLLAMA_HOST")

    return config


def build_provider_config(config: dict) -> ProviderConfig:
    """Turn a loaded config dict into the read-only settings for one review.

    Mode is derived from the provider: the local daemon runs in ``local``
    mode, everything else in ``cloud`` mode.
    """
    provider = (config.get("provider") or "").strip().lower()
    if provider not in PROVIDERS:
        raise ConfigurationError(f"Unknown provider: {provider!r}. Choose one of: {', '.join(PROVIDERS)}.")

    model = config.get("model") or PROVIDER_MODELS[provider][0]
    base_url = config.get("base_url")
    if provider == "ollama" and not base_url:
        base_url = config.get("ollama_host")

    return ProviderConfig(
        provider=provider,
        model=model,
        api_key=config.get(f"{provider}_api_key") or "",
        mode="local" if provider in LOCAL_PROVIDERS else "cloud",
        base_url=base_url,
    )
