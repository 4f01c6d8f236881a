import pytest

from factoring.db.url import normalize_database_url
from factoring.middlewares.request_context import company_id_from_path


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("postgres://u:p@db:5432/app", "postgresql+asyncpg://u:p@db:5432/app"),
        ("postgresql+psycopg://u:p@db/app", "postgresql+asyncpg://u:p@db/app"),
        ("postgresql://u:p@db/app?sslmode=require", "postgresql+asyncpg://u:p@db/app?ssl=require"),
        ("postgresql://u:p@db/app?ssl=true", "postgresql+asyncpg://u:p@db/app?ssl=require"),
        ("postgresql://u:p@db/app?sslmode=disable", "postgresql+asyncpg://u:p@db/app?ssl=disable"),
        ("sqlite+aiosqlite:///tmp/test.db", "sqlite+aiosqlite:///tmp/test.db"),
    ],
)
def test_normalize_database_url(raw, expected):
    assert normalize_database_url(raw) == expected


def test_company_id_is_read_from_path():
    company_id = "0b9c6f4e-52a7-4e55-9a3f-2d0f3c1b7a10"
    assert company_id_from_path(f"/api/v1/c/{company_id}/requests/x") == company_id
    assert company_id_from_path(f"/api/v1/c/{company_id.upper()}/me") == company_id
    assert company_id_from_path("/api/v1/c/not-a-uuid/requests") is None
    assert company_id_from_path("/api/v1/health") is None
