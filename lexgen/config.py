"""Configuration for the lexicon generator using Pydantic Settings.

Supports environment variables, .env files and explicit keyword arguments
(explicit arguments win, which is how CLI flags override the environment).

Environment variables:
    LEXGEN_INPUT_DIR: Root of the lexicon document tree
    LEXGEN_OUTPUT_DIR: Root of the generated code tree
    LEXGEN_PACKAGE: Import prefix of the generated tree
    LEXGEN_RUNTIME_PACKAGE: Module providing Did/AtUri and the XRPC transport shape
    LEXGEN_STRICT: Exit non-zero when any document is skipped
    LEXGEN_LOG_LEVEL: Logging level
"""

import re
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DOTTED_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


class GeneratorSettings(BaseSettings):
    """Settings for one generation run.

    Example:
        From environment:
        >>> import os
        >>> os.environ['LEXGEN_OUTPUT_DIR'] = 'src/client'
        >>> settings = GeneratorSettings()

        From kwargs:
        >>> settings = GeneratorSettings(
        ...     input_dir='lexicons',
        ...     output_dir='src/client',
        ...     package='client',
        ... )
    """

    model_config = SettingsConfigDict(
        env_prefix="LEXGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    input_dir: Path = Field(
        default=Path("lexicons"),
        description="Directory tree containing lexicon JSON documents",
    )

    output_dir: Path = Field(
        default=Path("generated"),
        description="Root directory of the generated code",
    )

    package: str = Field(
        default="",
        description="Import prefix under which output_dir is importable (empty: top level)",
    )

    runtime_package: str = Field(
        default="lexgen.runtime",
        description="Package providing Did, AtUri and the XRPC transport abstraction",
    )

    strict: bool = Field(
        default=False,
        description="Treat skipped documents as a failed run",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("package")
    @classmethod
    def _check_package(cls, value: str) -> str:
        value = value.strip()
        if value and not _DOTTED_NAME.match(value):
            raise ValueError(f"package must be a dotted Python name, got {value!r}")
        return value

    @field_validator("runtime_package")
    @classmethod
    def _check_runtime_package(cls, value: str) -> str:
        value = value.strip()
        if not _DOTTED_NAME.match(value):
            raise ValueError(
                f"runtime_package must be a dotted Python name, got {value!r}"
            )
        return value


__all__ = ["GeneratorSettings"]
