# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Agent configuration.

The agent core never reads files or the environment itself: the CLI resolves
an AgentConfig once, with precedence CLI > environment > config file >
defaults, and passes it in.
"""
import os
import json
import yaml
import logging

from pathlib import Path
from typing import Any, Mapping
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .tools import DEFAULT_TOOL_NAMES
from .types.error_types import ConfigError

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

DEFAULT_CONFIG_FILE = "trae_config.json"

# Providers we know how to reach without further configuration. Anything other
# than anthropic is spoken to through the OpenAI-compatible chat API.
PROVIDER_DEFAULTS: dict[str, dict[str, Any]] = {
    "anthropic": dict(model="claude-sonnet-4-20250514"),
    "openai": dict(model="gpt-4o"),
    "openrouter": dict(model="openai/gpt-4o", base_url="https://openrouter.ai/api/v1"),
    "doubao": dict(model="doubao-seed-1.6", base_url="https://ark.cn-beijing.volces.com/api/v3/"),
    "ollama": dict(model="qwen3", base_url="http://localhost:11434/v1", api_key="ollama"),
}

PROVIDERS_WITHOUT_KEY = {"ollama"}


class ModelParameters(BaseModel):
    """Everything needed to talk to one provider."""

    model: str
    api_key: str | None = None
    base_url: str | None = None
    api_version: str | None = None
    max_tokens: int = Field(default=4096, ge=1)
    temperature: float = 0.5
    top_p: float = 1.0
    top_k: int = 0
    parallel_tool_calls: bool = False
    max_retries: int = Field(default=10, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=60.0, ge=0)
    candidate_count: int | None = None
    stop_sequences: list[str] | None = None


class SummaryModelConfig(BaseModel):
    model_provider: str
    model_name: str


class AgentConfig(BaseModel):
    default_provider: str = "anthropic"
    max_steps: int = Field(default=20, ge=1)
    enable_step_summary: bool = False
    summary_model: SummaryModelConfig | None = None
    model_providers: dict[str, ModelParameters] = Field(default_factory=dict)
    tools: list[str] = Field(default_factory=lambda: list(DEFAULT_TOOL_NAMES))
    tool_timeout: float = Field(default=120.0, gt=0)
    max_patch_attempts: int | None = Field(default=None, ge=1)

    def provider_params(self, provider: str | None = None) -> ModelParameters:
        provider = provider or self.default_provider
        params = self.model_providers.get(provider)
        if params is None:
            raise ConfigError(
                f"No configuration for provider '{provider}'. "
                f"Configured providers: {', '.join(self.model_providers) or 'none'}"
            )
        return params

    def summary_params(self) -> tuple[str, ModelParameters]:
        """The provider and parameters used for step summaries.

        Falls back to the main provider when no summary model is configured.
        """
        if self.summary_model is None:
            return self.default_provider, self.provider_params()
        base = self.model_providers.get(self.summary_model.model_provider)
        if base is None:
            defaults = PROVIDER_DEFAULTS.get(self.summary_model.model_provider, {})
            base = ModelParameters(**{**defaults, "model": self.summary_model.model_name})
        return (
            self.summary_model.model_provider,
            base.model_copy(update={"model": self.summary_model.model_name}),
        )

    def masked(self) -> dict[str, Any]:
        """The configuration as a plain dict, with API keys hidden."""
        data = self.model_dump(mode="json")
        for params in data["model_providers"].values():
            params["api_key"] = mask_secret(params.get("api_key"))
        return data


def mask_secret(secret: str | None) -> str | None:
    if not secret:
        return secret
    if len(secret) <= 8:
        return "*" * len(secret)
    return f"{secret[:3]}...{secret[-4:]}"


def load_config_file(path: str | Path | None) -> dict[str, Any]:
    """Read a JSON or YAML config file. A missing file gives an empty config."""
    path = Path(path or DEFAULT_CONFIG_FILE)
    if not path.exists():
        logger.warning(f"Config file not found at {path}. Using defaults and environment variables.")
        return {}

    try:
        text = path.read_text()
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")
    return data


def _env_int(env: Mapping[str, str], name: str) -> int | None:
    value = env.get(name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError as e:
        raise ConfigError(f"Environment variable {name} must be an integer, got '{value}'") from e


def resolve_config(
    config_file: str | Path | None = None,
    provider: str | None = None,
    model: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
    max_steps: int | None = None,
    env: Mapping[str, str] | None = None,
    require_api_key: bool = True,
) -> AgentConfig:
    """Build the effective configuration.

    Args:
        config_file: JSON or YAML file; defaults to ./trae_config.json
        provider, model, api_key, base_url, max_steps: command-line overrides
        env: the environment to read; os.environ (after loading .env) if None
        require_api_key: whether a missing API key is an error

    Raises:
        ConfigError: unknown provider, missing API key or invalid file
    """
    if env is None:
        load_dotenv()
        env = os.environ

    try:
        config = AgentConfig.model_validate(load_config_file(config_file))
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    provider = provider or env.get("TRAE_PROVIDER") or config.default_provider

    providers = dict(config.model_providers)
    if provider not in providers:
        if provider not in PROVIDER_DEFAULTS:
            raise ConfigError(
                f"Unknown provider '{provider}'. Known providers: "
                f"{', '.join(sorted(set(PROVIDER_DEFAULTS) | set(providers)))}"
            )
        providers[provider] = ModelParameters(**PROVIDER_DEFAULTS[provider])

    prefix = provider.upper()
    overrides: dict[str, Any] = {}
    for field, env_name in (
        ("api_key", f"{prefix}_API_KEY"),
        ("base_url", f"{prefix}_BASE_URL"),
        ("model", f"{prefix}_MODEL"),
    ):
        if env.get(env_name):
            overrides[field] = env[env_name]
    for field, value in (("api_key", api_key), ("base_url", base_url), ("model", model)):
        if value:
            overrides[field] = value

    params = providers[provider].model_copy(update=overrides)
    if require_api_key and not params.api_key and provider not in PROVIDERS_WITHOUT_KEY:
        raise ConfigError(
            f"No API key for provider '{provider}'. Set {prefix}_API_KEY, pass "
            f"--api-key, or add it to the config file."
        )
    providers[provider] = params

    steps = max_steps or _env_int(env, "TRAE_MAX_STEPS") or config.max_steps
    if steps < 1:
        raise ConfigError(f"max_steps must be at least 1, got {steps}")

    return config.model_copy(
        update=dict(default_provider=provider, model_providers=providers, max_steps=steps)
    )
