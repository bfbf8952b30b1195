"""
Environment defaults resolver — configuration values and their precedence.

Each configuration value has one name, used both as the environment
variable and as the key in the optional config file.  Resolution is
pure: the same answers, environment and file give the same result.

Precedence:
    interactive answer  >  environment variable  >  config file  >  built-in default
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict

from aiforge.core.errors import ConfigError

NONINTERACTIVE_ENV_VAR = "NONINTERACTIVE"
SELECTION_ENV_VAR = "INSTALL_SELECTION"


class ConfigValue(BaseModel):
    """A named setting with a built-in default."""

    model_config = ConfigDict(frozen=True)

    name: str
    default: str
    prompt: str
    allow_empty: bool = False   # empty env value means "empty", not "unset"


CONFIG_VALUES: tuple[ConfigValue, ...] = (
    ConfigValue(name="NODE_MAJOR", default="22", prompt="Node major to install"),
    ConfigValue(name="GO_VERSION", default="1.25.6", prompt="Go version to install"),
    ConfigValue(name="RUBY_VERSION", default="4.0.1", prompt="Ruby version (asdf) to install"),
    ConfigValue(name="ERLANG_VERSION", default="28.3", prompt="Erlang version (asdf) to install"),
    ConfigValue(name="ELIXIR_VERSION", default="1.19.5-otp-28", prompt="Elixir version (asdf) to install"),
    ConfigValue(name="PGVECTOR_VERSION", default="0.8.1", prompt="pgvector version to build"),
    ConfigValue(
        name="OLLAMA_PULL_MODEL",
        default="llama3",
        prompt="Ollama model to pull ('none' to skip)",
        allow_empty=True,
    ),
    ConfigValue(name="PY_VENV_DIR", default="~/.venvs/agents", prompt="Python virtualenv path"),
    ConfigValue(
        name="PIP_CONSTRAINTS",
        default="",
        prompt="pip constraints file ('none' for no constraints)",
        allow_empty=True,
    ),
)

_BY_NAME: dict[str, ConfigValue] = {cv.name: cv for cv in CONFIG_VALUES}


def get_value(name: str) -> ConfigValue:
    """Look up a configuration value definition by name."""
    try:
        return _BY_NAME[name]
    except KeyError:
        raise ConfigError(f"Unknown configuration value: {name}") from None


def resolve(
    name: str,
    *,
    answers: Mapping[str, str] | None = None,
    environ: Mapping[str, str] | None = None,
    file_values: Mapping[str, str] | None = None,
) -> str:
    """Resolve a configuration value by precedence.

    An empty environment or file value counts as unset unless the
    value allows empty (``OLLAMA_PULL_MODEL=""`` skips the pull).
    Interactive answers are taken as given.
    """
    cv = get_value(name)
    env = os.environ if environ is None else environ

    if answers and name in answers:
        return answers[name]

    for source in (env, file_values or {}):
        if name in source:
            value = source[name]
            if value or cv.allow_empty:
                return value

    return cv.default


class Settings(BaseModel):
    """Resolved configuration values for one run (immutable)."""

    model_config = ConfigDict(frozen=True)

    values: dict[str, str]

    def __getitem__(self, name: str) -> str:
        get_value(name)
        return self.values[name]

    def get(self, name: str, default: str = "") -> str:
        return self.values.get(name, default)

    def to_dict(self) -> dict[str, str]:
        return dict(self.values)


def load_settings(
    *,
    answers: Mapping[str, str] | None = None,
    environ: Mapping[str, str] | None = None,
    file_values: Mapping[str, str] | None = None,
) -> Settings:
    """Resolve every configuration value at once."""
    return Settings(values={
        cv.name: resolve(cv.name, answers=answers, environ=environ, file_values=file_values)
        for cv in CONFIG_VALUES
    })


def is_noninteractive(environ: Mapping[str, str] | None = None) -> bool:
    """Whether ``NONINTERACTIVE`` asks for a prompt-free run."""
    env = os.environ if environ is None else environ
    return env.get(NONINTERACTIVE_ENV_VAR, "0").strip().lower() in ("1", "true", "yes")


def value_source(
    name: str,
    *,
    environ: Mapping[str, str] | None = None,
    file_values: Mapping[str, str] | None = None,
) -> str:
    """Which source ``resolve`` would take ``name`` from: env, file or default."""
    cv = get_value(name)
    env = os.environ if environ is None else environ
    for label, source in (("env", env), ("file", file_values or {})):
        if name in source and (source[name] or cv.allow_empty):
            return label
    return "default"
