"""Tests for settings loaded from the environment."""

from elastiq.settings import ElastiqSettings


class TestElastiqSettings:
    def test_defaults(self, monkeypatch):
        for key in ("ES_HOSTS", "ES_REFRESH", "ES_BULK_CHUNK_SIZE", "ES_ALLOW_ID_SORT"):
            monkeypatch.delenv(key, raising=False)
        settings = ElastiqSettings(_env_file=None)
        assert settings.ES_HOSTS == ["http://localhost:9200"]
        assert settings.ES_REFRESH == "wait_for"
        assert settings.ES_BULK_CHUNK_SIZE == 1000
        assert settings.ES_ALLOW_ID_SORT is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("ES_HOSTS", '["http://a:9200", "http://b:9200"]')
        monkeypatch.setenv("ES_BULK_CHUNK_SIZE", "250")
        monkeypatch.setenv("ES_INDEX_PREFIX", "staging_")
        monkeypatch.setenv("ES_BYPASS_MAP_VALIDATION", "true")
        settings = ElastiqSettings(_env_file=None)
        assert settings.ES_HOSTS == ["http://a:9200", "http://b:9200"]
        assert settings.ES_BULK_CHUNK_SIZE == 250
        assert settings.ES_INDEX_PREFIX == "staging_"
        assert settings.ES_BYPASS_MAP_VALIDATION is True
