import pytest

from ado_browser.config import Settings, get_settings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("ORGANIZATION", "PAT", "BASE_URL", "API_VERSION", "TIMEOUT_SECONDS"):
        monkeypatch.delenv(f"AZURE_DEVOPS_{name}", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults():
    settings = Settings()
    assert settings.ORGANIZATION == ""
    assert settings.BASE_URL == "https://dev.azure.com"
    assert settings.API_VERSION == "6.0"
    assert settings.TIMEOUT_SECONDS == 30.0


def test_reads_prefixed_environment(monkeypatch):
    monkeypatch.setenv("AZURE_DEVOPS_ORGANIZATION", "contoso")
    monkeypatch.setenv("AZURE_DEVOPS_PAT", "secret")
    monkeypatch.setenv("AZURE_DEVOPS_TIMEOUT_SECONDS", "5")
    settings = Settings()
    assert (settings.ORGANIZATION, settings.PAT) == ("contoso", "secret")
    assert settings.TIMEOUT_SECONDS == 5.0


def test_reads_dotenv_file(tmp_path):
    (tmp_path / ".env").write_text("AZURE_DEVOPS_ORGANIZATION=fabrikam\nUNRELATED=1\n")
    assert Settings().ORGANIZATION == "fabrikam"


def test_base_url_trailing_slash_stripped(monkeypatch):
    monkeypatch.setenv("AZURE_DEVOPS_BASE_URL", "https://ado.example/tfs/")
    assert Settings().BASE_URL == "https://ado.example/tfs"


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setenv("AZURE_DEVOPS_ORGANIZATION", "contoso")
    first = get_settings()
    monkeypatch.setenv("AZURE_DEVOPS_ORGANIZATION", "other")
    assert get_settings() is first
