"""Process configuration: environment (and optional .env file) → Settings.

The classifier core never reads the environment itself; this module is
the single place where environment variables become explicit config
values that get passed in.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping, TypeVar

from dotenv import dotenv_values

from heedbot.classifier.config import ClassifierConfig, InvalidConfigField
from heedbot.classifier.models import OutputContract
from heedbot.providers.litellm_provider import (
    DEFAULT_API_BASE,
    DEFAULT_PROVIDER_PREFIX,
    LLM_CALL_TIMEOUT,
)

API_KEY_ENV = "GMI_API_KEY"
ENV_PREFIX = "HEEDBOT_"
_TIMEOUT_ENV = f"{ENV_PREFIX}TIMEOUT"

# ClassifierConfig field → environment variable
_CLASSIFIER_ENV = {
    name: f"{ENV_PREFIX}{name.upper()}"
    for name in (
        "classification_model",
        "repair_model",
        "max_tokens",
        "repair_max_tokens",
        "temperature",
        "max_repairs",
        "max_context",
        "contract",
    )
}

T = TypeVar("T")


@dataclass(frozen=True)
class EndpointConfig:
    """Where and how to reach the generation endpoint."""

    api_base: str = DEFAULT_API_BASE
    api_key: str | None = None
    timeout: float = LLM_CALL_TIMEOUT
    provider_prefix: str = DEFAULT_PROVIDER_PREFIX

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

    def __repr__(self) -> str:
        # Keep the bearer token out of logs and tracebacks
        key = "set" if self.api_key else "unset"
        return (
            f"EndpointConfig(api_base={self.api_base!r}, api_key=<{key}>, "
            f"timeout={self.timeout!r}, provider_prefix={self.provider_prefix!r})"
        )


@dataclass(frozen=True)
class Settings:
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    endpoint: EndpointConfig = field(default_factory=EndpointConfig)


_CONTRACT_ALIASES = {
    "bare": OutputContract.BARE_TOKEN,
    "y/n": OutputContract.BARE_TOKEN,
    "json": OutputContract.FENCED_JSON,
    "structured": OutputContract.FENCED_JSON,
}


def parse_contract(value: str) -> OutputContract:
    """Map a user-facing contract name ('bare' | 'json') to an OutputContract."""
    try:
        return _CONTRACT_ALIASES[value.strip().lower()]
    except KeyError:
        raise ValueError(
            f"Unknown contract {value!r}; expected one of {sorted(_CONTRACT_ALIASES)}"
        ) from None


def _positive_seconds(value: str) -> float:
    seconds = float(value)
    if not seconds > 0:
        raise ValueError("must be a positive number of seconds")
    return seconds


def _read(env:Mapping[str, str], name: str, parse: Callable[[str], T], default: T) -> T:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return parse(raw.strip())
    except ValueError as e:
        raise ValueError(f"Invalid value for {name}: {raw!r} ({e})") from e


def load_settings(
    environ: Mapping[str, str] | None = None,
    env_file: Path | str | None = None,
) -> Settings:
    """Build Settings from environment variables.

    Values from ``env_file`` (if given and present) fill in anything the
    environment does not already define. Invalid values raise ValueError
    naming the variable.
    """
    env: dict[str, str] = {}
    if env_file is not None:
        path = Path(env_file)
        if path.exists():
            env.update({k: v for k, v in dotenv_values(path).items() if v is not None})
        else:
            raise FileNotFoundError(f"Env file not found at {path}")
    env.update(os.environ if environ is None else environ)

    defaults = ClassifierConfig()
    try:
        classifier = ClassifierConfig(
            classification_model=_read(env, _CLASSIFIER_ENV["classification_model"], str, defaults.classification_model),
            repair_model=_read(env, _CLASSIFIER_ENV["repair_model"], str, defaults.repair_model),
            max_tokens=_read(env, _CLASSIFIER_ENV["max_tokens"], int, defaults.max_tokens),
            repair_max_tokens=_read(env, _CLASSIFIER_ENV["repair_max_tokens"], int, defaults.repair_max_tokens),
            temperature=_read(env, _CLASSIFIER_ENV["temperature"], float, defaults.temperature),
            max_repairs=_read(env, _CLASSIFIER_ENV["max_repairs"], int, defaults.max_repairs),
            max_context=_read(env, _CLASSIFIER_ENV["max_context"], int, defaults.max_context),
            contract=_read(env, _CLASSIFIER_ENV["contract"], parse_contract, defaults.contract),
        )
    except InvalidConfigField as e:
        name = _CLASSIFIER_ENV[e.field]
        raise ValueError(f"Invalid value for {name}: {env.get(name)!r} ({e})") from e

    endpoint = EndpointConfig(
        api_base=_read(env, f"{ENV_PREFIX}API_BASE", str, DEFAULT_API_BASE),
        api_key=env.get(API_KEY_ENV) or None,
        timeout=_read(env, _TIMEOUT_ENV, _positive_seconds, LLM_CALL_TIMEOUT),
        provider_prefix=_read(env, f"{ENV_PREFIX}PROVIDER_PREFIX", str, DEFAULT_PROVIDER_PREFIX),
    )

    return Settings(classifier=classifier, endpoint=endpoint)
