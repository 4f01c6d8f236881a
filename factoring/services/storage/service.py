from enum import Enum
from uuid import UUID

from factoring.core.settings import settings
from factoring.services.storage.adapter import (
    GCSStorageAdapter,
    LocalFileSystemAdapter,
    StorageAdapter,
)


class StorageBucket(str, Enum):
    CONTRACTS = "contracts"
    REQUESTS = "requests"


PLACEHOLDER_PDF = b"%PDF-1.4\n% Placeholder PDF (demo)\n"


def get_storage_adapter(bucket: StorageBucket | str) -> StorageAdapter:
    name = bucket.value if isinstance(bucket, StorageBucket) else str(bucket)
    if settings.storage_provider == "gcs":
        prefix = settings.gcs_bucket_prefix
        if not prefix:
            raise ValueError("GCS bucket prefix is not configured")
        return GCSStorageAdapter(bucket=f"{prefix}-{name}")
    return LocalFileSystemAdapter(base_path=settings.local_upload_dir, bucket=name)


def contract_object_key(company_id: UUID, document_id: UUID) -> str:
    return f"{company_id}/{document_id}.pdf"


def is_company_scoped_key(company_id: UUID, object_key: str) -> bool:
    return object_key.startswith(f"{company_id}/") and ".." not in object_key.split("/")
