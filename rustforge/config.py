"""Build configuration — env-driven via BP_* variables.

Centralized config using pydantic-settings. Reads from a .env file and
``BP_*`` environment variables, the same names the buildpack catalog
declares under ``[[metadata.configurations]]``.
"""

from __future__ import annotations

import shlex
from typing import Any

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rustforge.errors import ConfigParseError

ENV_PREFIX = "BP_"

_TRUE_VALUES = ("1", "t", "T", "TRUE", "true", "True")
_FALSE_VALUES = ("0", "f", "F", "FALSE", "false", "False")

# Flags the rustup-init invocation always carries itself.
_RESERVED_INIT_FLAGS = frozenset(
    {"-q", "--quiet", "-y", "--no-modify-path", "-h", "--help", "-V", "--version"}
)


def parse_bool(value: str, key: str) -> bool:
    """Parse a boolean the way the buildpack configuration resolver does."""
    text = value.strip()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigParseError(
        f"invalid value '{value}' for key '{key}': expected one of "
        f"[{', '.join(_TRUE_VALUES + _FALSE_VALUES)}]"
    )


class BuildConfig(BaseSettings):
    """Configuration for one build invocation.

    Examples
    --------
    Override via environment::

        export BP_RUST_TOOLCHAIN=1.79.0
        export BP_RUST_TARGET=aarch64-unknown-linux-musl
        export BP_RUSTUP_INIT_ARGS="--default-host x86_64-unknown-linux-gnu"
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix=ENV_PREFIX,
        env_file_encoding="utf-8",
        extra="ignore",
        str_strip_whitespace=True,
    )

    rustup_enabled: bool = True
    rustup_init_version: str = "1"
    rustup_init_libc: str = "gnu"
    rust_profile: str = "minimal"
    rust_toolchain: str = "stable"
    rust_target: str = ""
    rustup_init_args: str = ""

    log_level: str = "INFO"

    @field_validator("rustup_enabled", mode="before")
    @classmethod
    def _strict_bool(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_bool(value, f"{ENV_PREFIX}RUSTUP_ENABLED")
        return value

    @property
    def profile_set(self) -> bool:
        """Whether the profile was supplied explicitly rather than defaulted."""
        return "rust_profile" in self.model_fields_set

    @property
    def toolchain_set(self) -> bool:
        """Whether the toolchain was supplied explicitly rather than defaulted."""
        return "rust_toolchain" in self.model_fields_set

    @property
    def rustup_init_dependency_id(self) -> str:
        return f"rustup-init-{self.rustup_init_libc}"

    def rustup_init_arguments(self) -> list[str]:
        """Argument list for ``rustup-init``.

        User supplied arguments are kept except for the flags the core
        always passes; default toolchain and profile are appended only when
        the user did not provide them.
        """
        user_args = [
            arg for arg in shlex.split(self.rustup_init_args)
            if arg not in _RESERVED_INIT_FLAGS
        ]

        args = ["-q", "-y", "--no-modify-path", *user_args]
        if not _has_flag(user_args, "--default-toolchain"):
            args.append("--default-toolchain=none")
        if not _has_flag(user_args, "--profile"):
            args.append(f"--profile={self.rust_profile}")
        return args


def _has_flag(args: list[str], flag: str) -> bool:
    return any(arg == flag or arg.startswith(f"{flag}=") for arg in args)


def load_build_config(**overrides: Any) -> BuildConfig:
    """Build a BuildConfig, converting validation failures to ConfigParseError.

    The strict boolean check raises ConfigParseError directly; any other
    pydantic validation failure is reported under its BP_* key.
    """
    try:
        return BuildConfig(**overrides)
    except ValidationError as exc:
        first = exc.errors()[0]
        key = ENV_PREFIX + ".".join(str(loc) for loc in first["loc"]).upper()
        raise ConfigParseError(
            f"invalid value '{first.get('input')}' for key '{key}': {first['msg']}"
        ) from exc
