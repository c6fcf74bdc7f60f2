"""Tests for GeneratorSettings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from lexgen.config import GeneratorSettings


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    for name in ("INPUT_DIR", "OUTPUT_DIR", "PACKAGE", "RUNTIME_PACKAGE", "STRICT", "LOG_LEVEL"):
        monkeypatch.delenv(f"LEXGEN_{name}", raising=False)
    monkeypatch.chdir(tmp_path)


class TestGeneratorSettings:
    def test_defaults(self):
        settings = GeneratorSettings()
        assert settings.input_dir == Path("lexicons")
        assert settings.output_dir == Path("generated")
        assert settings.package == ""
        assert settings.runtime_package == "lexgen.runtime"
        assert settings.strict is False
        assert settings.log_level == "INFO"

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("LEXGEN_INPUT_DIR", "schemas")
        monkeypatch.setenv("LEXGEN_OUTPUT_DIR", "src/client")
        monkeypatch.setenv("LEXGEN_PACKAGE", "client")
        monkeypatch.setenv("LEXGEN_STRICT", "1")

        settings = GeneratorSettings()

        assert settings.input_dir == Path("schemas")
        assert settings.output_dir == Path("src/client")
        assert settings.package == "client"
        assert settings.strict is True

    def test_from_env_file(self, tmp_path):
        (tmp_path / ".env").write_text("LEXGEN_PACKAGE=from_dotenv\n", encoding="utf-8")
        assert GeneratorSettings().package == "from_dotenv"

    def test_kwargs_override_environment(self, monkeypatch):
        monkeypatch.setenv("LEXGEN_PACKAGE", "client")
        assert GeneratorSettings(package="other").package == "other"

    @pytest.mark.parametrize("value", ["my-pkg", "1abc", "a..b"])
    def test_invalid_package(self, value):
        with pytest.raises(ValidationError):
            GeneratorSettings(package=value)

    def test_invalid_runtime_package(self):
        with pytest.raises(ValidationError):
            GeneratorSettings(runtime_package="")
