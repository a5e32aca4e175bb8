from __future__ import annotations

import os
import tempfile
import uuid
from pathlib import Path, PurePosixPath
from typing import Protocol

from engagement.errors import ArtifactStoreError


class ArtifactStore(Protocol):
    def upload(self, key: str, data: bytes, content_type: str, upsert: bool = True) -> str: ...


def signed_letter_key(client_id: uuid.UUID, letter_id: uuid.UUID) -> str:
    return f"{client_id}/{letter_id}_signed.pdf"


def _validate_key(key: str) -> PurePosixPath:
    candidate = PurePosixPath(key)
    if not key or candidate.is_absolute() or ".." in candidate.parts:
        raise ArtifactStoreError("Invalid storage key", key=key)
    return candidate


class LocalArtifactStore:
    """Bucket-per-directory store on the local filesystem.

    Writes go to a temporary file in the target directory and are moved into place with
    `os.replace`, so a key always resolves to one complete object.
    """

    def __init__(self, root: str | Path, bucket: str) -> None:
        self.root = Path(root)
        self.bucket = bucket

    def _bucket_dir(self) -> Path:
        return self.root / self.bucket

    def path_for(self, key: str) -> Path:
        return self._bucket_dir().joinpath(*_validate_key(key).parts)

    def upload(self, key: str, data: bytes, content_type: str, upsert: bool = True) -> str:
        target = self.path_for(key)
        if target.exists() and not upsert:
            raise ArtifactStoreError("The resource already exists", key=key)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".upload-", suffix=target.suffix)
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise ArtifactStoreError("Failed to store PDF", detail=str(exc), key=key) from exc
        return key
