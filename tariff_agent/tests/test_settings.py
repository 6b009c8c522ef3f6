import pydantic
import pytest

from tariff_agent.config.settings import Settings


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ("TARIFF_AGENT_CONFIG_FILE", "SEARCH_TOP_K", "STORE_BACKEND", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


def test_defaults(isolated):
    cfg = Settings(_env_file=None)
    assert cfg.default_provider == "openai"
    assert cfg.gateway_temperature == 0.1
    assert cfg.store_backend == "memory"
    assert cfg.weaviate_collection == "hs_codes_transformer"
    assert (cfg.search_top_k, cfg.max_search_top_k) == (5, 25)
    assert cfg.store_retry_attempts == 3


def test_yaml_then_env(isolated, monkeypatch):
    path = isolated / "tariff.yaml"
    path.write_text("store_backend: weaviate\nweaviate_url: http://weaviate:8080\nsearch_top_k: 3\n", encoding="utf-8")
    monkeypatch.setenv("TARIFF_AGENT_CONFIG_FILE", str(path))

    cfg = Settings(_env_file=None)
    assert cfg.store_backend == "weaviate"
    assert cfg.weaviate_url == "http://weaviate:8080"
    assert cfg.search_top_k == 3

    monkeypatch.setenv("SEARCH_TOP_K", "7")
    assert Settings(_env_file=None).search_top_k == 7


def test_short_api_key_rejected(isolated):
    with pytest.raises(pydantic.ValidationError):
        Settings(_env_file=None, openai_api_key="short")
