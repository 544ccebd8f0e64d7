from backend.app import main as main_module
from backend.app.main import _resolve_allowed_origins, _split_raw_origins, ensure_database_is_ready


def test_split_raw_origins_accepts_commas_and_whitespace():
    raw = "http://localhost:5173, http://127.0.0.1:5173 http://0.0.0.0:5173"
    assert _split_raw_origins(raw) == [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://0.0.0.0:5173",
    ]


def test_allowed_origins_from_env_are_normalized(monkeypatch):
    monkeypatch.setenv(
        "BACKEND_ALLOWED_ORIGINS",
        "https://salon.example.com/ http://localhost:5173",
    )

    assert _resolve_allowed_origins() == [
        "http://localhost:5173",
        "https://salon.example.com",
    ]


def test_allowed_origins_fall_back_to_local_defaults(monkeypatch):
    monkeypatch.delenv("BACKEND_ALLOWED_ORIGINS", raising=False)

    assert "http://localhost:5173" in _resolve_allowed_origins()


def test_preflight_includes_cors_headers_for_local_dev_origin(client):
    origin = "http://localhost:5173"
    response = client.options(
        "/cycles",
        headers={"Origin": origin, "Access-Control-Request-Method": "GET"},
    )

    assert response.status_code == 200
    assert response.headers.get("access-control-allow-origin") == origin


def test_health_check(client):
    assert client.get("/").json() == {"status": "ok"}


def test_auto_migrate_can_be_disabled(monkeypatch):
    calls = []
    monkeypatch.setattr(main_module, "run_database_migrations", lambda: calls.append(True))

    monkeypatch.setenv("AUTO_MIGRATE", "0")
    ensure_database_is_ready()
    assert calls == []

    monkeypatch.setenv("AUTO_MIGRATE", "1")
    ensure_database_is_ready()
    assert calls == [True]
