from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath


class StorageAdapter(ABC):
    provider: str = "local"
    bucket: str | None = None

    @abstractmethod
    def upload_bytes(self, object_key: str, content: bytes, content_type: str) -> str:
        """Store ``content`` and return the object key it was written under."""

    @abstractmethod
    def delete_object(self, object_key: str) -> None:
        pass

    @abstractmethod
    def object_exists(self, object_key: str) -> bool:
        pass


def validate_object_key(object_key: str) -> str:
    if not object_key or "\\" in object_key:
        raise ValueError("Invalid object key")
    key_path = PurePosixPath(object_key)
    if key_path.is_absolute() or ".." in key_path.parts:
        raise ValueError("Invalid object key")
    return object_key


class LocalFileSystemAdapter(StorageAdapter):
    def __init__(self, base_path: str, bucket: str):
        self.provider = "local"
        self.bucket = bucket
        self.base_path = Path(base_path) / bucket
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve_safe_path(self, object_key: str) -> Path:
        validate_object_key(object_key)
        base = self.base_path.resolve()
        resolved = (base / Path(object_key)).resolve()
        if resolved != base and base not in resolved.parents:
            raise ValueError("Invalid object key")
        return resolved

    def resolve_path(self, object_key: str) -> Path:
        return self._resolve_safe_path(object_key)

    def upload_bytes(self, object_key: str, content: bytes, content_type: str) -> str:
        path = self._resolve_safe_path(object_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return object_key

    def delete_object(self, object_key: str) -> None:
        path = self._resolve_safe_path(object_key)
        if path.exists():
            path.unlink()

    def object_exists(self, object_key: str) -> bool:
        try:
            path = self._resolve_safe_path(object_key)
        except ValueError:
            return False
        return path.exists()


class GCSStorageAdapter(StorageAdapter):
    def __init__(self, bucket: str):
        # Lazy import to avoid requiring dependency unless used
        from google.cloud import storage

        self.provider = "gcs"
        self.bucket = bucket
        self.client = storage.Client()
        self._bucket_ref = self.client.bucket(bucket)

    def upload_bytes(self, object_key: str, content: bytes, content_type: str) -> str:
        blob = self._bucket_ref.blob(validate_object_key(object_key))
        blob.upload_from_string(content, content_type=content_type)
        return object_key

    def delete_object(self, object_key: str) -> None:
        blob = self._bucket_ref.blob(validate_object_key(object_key))
        blob.delete()

    def object_exists(self, object_key: str) -> bool:
        blob = self._bucket_ref.blob(object_key)
        return blob.exists()
