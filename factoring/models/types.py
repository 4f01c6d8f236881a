from sqlalchemy import JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB

# Postgres in production, SQLite in the test suite.
GUID = Uuid(as_uuid=True)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


__all__ = ["GUID", "JSONDocument"]
