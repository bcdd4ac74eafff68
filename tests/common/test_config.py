from __future__ import annotations

import os

import pytest

from cinetrust.config import (
    ConfigurationError,
    MissingConfigurationError,
    get_resolution_config,
    get_tmdb_config,
    get_wikidata_config,
    optional_int_env,
    require_env_vars,
)


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_raises_when_any_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PRESENT_VAR", "value")
    monkeypatch.delenv("MISSING_VAR", raising=False)

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["PRESENT_VAR", "MISSING_VAR"])

    assert "MISSING_VAR" in str(exc.value)
    assert "PRESENT_VAR" not in str(exc.value)


def test_require_env_vars_handles_blank_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "   ")

    with pytest.raises(MissingConfigurationError):
        require_env_vars(["EXAMPLE_VAR"])


def test_require_env_vars_restores_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEMP_VAR", "123")

    assert os.getenv("TEMP_VAR") == "123"
    assert require_env_vars(["TEMP_VAR"]) == {"TEMP_VAR": "123"}


def test_optional_int_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CINETRUST_WORKERS", raising=False)
    assert optional_int_env("CINETRUST_WORKERS", 4) == 4

    monkeypatch.setenv("CINETRUST_WORKERS", "8")
    assert optional_int_env("CINETRUST_WORKERS", 4) == 8
    assert get_resolution_config().workers == 8


@pytest.mark.parametrize("raw", ["many", "0"])
def test_optional_int_env_rejects_bad_values(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("CINETRUST_WORKERS", raw)

    with pytest.raises(ConfigurationError, match="CINETRUST_WORKERS"):
        optional_int_env("CINETRUST_WORKERS", 4)


def test_tmdb_config_requires_an_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TMDB_API_KEY", raising=False)

    with pytest.raises(MissingConfigurationError, match="TMDB_API_KEY"):
        get_tmdb_config()


def test_tmdb_config_reads_the_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TMDB_API_KEY", "secret")

    config = get_tmdb_config()

    assert config.api_key == "secret"
    assert config.resilience.name == "tmdb"
    assert config.certification_country == "IN"


def test_wikidata_config_sends_the_user_agent(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WIKIDATA_USER_AGENT", "cinetrust-tests/1.0 (ops@example.com)")

    config = get_wikidata_config()

    assert config.resilience.headers["User-Agent"] == "cinetrust-tests/1.0 (ops@example.com)"
    assert config.languages == ("en", "te")
