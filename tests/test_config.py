"""Settings parsing and database client lifecycle."""
import database
from config import Settings


class TestAllowedOrigins:
    def test_default_origins(self, monkeypatch):
        monkeypatch.delenv("ALLOWED_ORIGINS", raising=False)

        assert "http://localhost:3000" in Settings().ALLOWED_ORIGINS

    def test_comma_separated_env_value(self, monkeypatch):
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example.com, https://b.example.com,")

        assert Settings().ALLOWED_ORIGINS == ["https://a.example.com", "https://b.example.com"]

    def test_single_origin(self, monkeypatch):
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://wards.example.com")

        assert Settings().ALLOWED_ORIGINS == ["https://wards.example.com"]


class TestCloseDb:
    def test_closes_and_forgets_client(self, monkeypatch):
        class Client:
            closed = False

            def close(self):
                self.closed = True

        client = Client()
        monkeypatch.setattr(database, "_client", client)

        database.close_db()

        assert client.closed is True
        assert database._client is None

    def test_noop_without_client(self, monkeypatch):
        monkeypatch.setattr(database, "_client", None)

        database.close_db()

        assert database._client is None
