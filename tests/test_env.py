import pytest

from chatdispatch import ConfigError, load_settings_from_env

VARS = [
    "AZURE_OPENAI_ENDPOINT",
    "AZURE_OPENAI_DEPLOYMENT_NAME",
    "AZURE_OPENAI_API_VERSION",
    "AZURE_OPENAI_API_KEY",
    "AZURE_OPENAI_MAX_RETRIES",
    "AZURE_OPENAI_TIMEOUT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for v in VARS:
        monkeypatch.delenv(v, raising=False)


def test_required_and_defaults(monkeypatch):
    monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://unit.openai.azure.com")
    monkeypatch.setenv("AZURE_OPENAI_DEPLOYMENT_NAME", "gpt4o")
    s = load_settings_from_env()
    assert s.endpoint.base_url == "https://unit.openai.azure.com"
    assert s.endpoint.deployment_name == "gpt4o"
    assert s.endpoint.api_version == "2024-10-21"
    assert s.api_key is None
    assert s.retry.max_retries == 5  # noqa: PLR2004
    assert s.retry.timeout == 600.0  # noqa: PLR2004


def test_missing_required(monkeypatch):
    monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://unit.openai.azure.com")
    with pytest.raises(ConfigError) as ei:
        load_settings_from_env()
    assert "AZURE_OPENAI_DEPLOYMENT_NAME" in str(ei.value)


def test_env_file_and_precedence(monkeypatch, tmp_path):
    envp = tmp_path / ".env"
    envp.write_text(
        "# azure\n"
        "AZURE_OPENAI_ENDPOINT=https://from-file.openai.azure.com\n"
        "AZURE_OPENAI_DEPLOYMENT_NAME='file-dep'\n"
        'export AZURE_OPENAI_API_KEY="file-key"\n'
        "AZURE_OPENAI_MAX_RETRIES=2\n"
    )
    monkeypatch.setenv("AZURE_OPENAI_DEPLOYMENT_NAME", "env-dep")
    s = load_settings_from_env(env_path=str(envp))
    assert s.endpoint.base_url == "https://from-file.openai.azure.com"
    assert s.endpoint.deployment_name == "env-dep"
    assert s.api_key == "file-key"
    assert s.retry.max_retries == 2  # noqa: PLR2004
    assert "file-key" not in repr(s)


def test_missing_env_file_is_ignored(monkeypatch, tmp_path):
    monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://unit.openai.azure.com")
    monkeypatch.setenv("AZURE_OPENAI_DEPLOYMENT_NAME", "gpt4o")
    s = load_settings_from_env(env_path=str(tmp_path / "nope.env"))
    assert s.endpoint.deployment_name == "gpt4o"


def test_custom_prefix_and_bad_number(monkeypatch):
    monkeypatch.setenv("MYAPP_ENDPOINT", "https://unit.openai.azure.com")
    monkeypatch.setenv("MYAPP_DEPLOYMENT_NAME", "gpt4o")
    monkeypatch.setenv("MYAPP_TIMEOUT", "fast")
    with pytest.raises(ConfigError):
        load_settings_from_env(prefix="MYAPP_")


@pytest.mark.parametrize("raw", ["0", "-5", "nan"])
def test_non_positive_timeout_rejected(monkeypatch, raw):
    monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://unit.openai.azure.com")
    monkeypatch.setenv("AZURE_OPENAI_DEPLOYMENT_NAME", "gpt4o")
    monkeypatch.setenv("AZURE_OPENAI_TIMEOUT", raw)
    with pytest.raises(ConfigError, match="TIMEOUT"):
        load_settings_from_env()
