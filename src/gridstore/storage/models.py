"""gridstore Object Storage data models.

Provides typed dataclasses for object identifiers, metadata documents and
stored objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from gridstore.storage.identifiers import is_object_id

if TYPE_CHECKING:
    from gridstore.storage.store import ReadStream


@dataclass(frozen=True)
class ObjectKey:
    """Native object identifier of the filesystem store.

    Attributes:
        hex: Lowercase 24-character hex string.
    """

    hex: str

    def __post_init__(self) -> None:
        if not is_object_id(self.hex):
            raise ValueError(f"'{self.hex}' is not a valid object id")
        object.__setattr__(self, "hex", self.hex.lower())

    def __str__(self) -> str:
        return self.hex


@dataclass(frozen=True)
class ObjectDocument:
    """Metadata document for a stored object.

    Attributes:
        id: Object identifier (string form of the native id).
        filename: Store-facing filename. When the object was written by name
            this is the derived identifier, not the human name.
        root: Namespace the object lives in.
        content_type: MIME type of the content, if supplied.
        length: Size of the content in bytes.
        chunk_size: Chunk size the content was transferred with.
        upload_date: Timestamp when the content was published.
        sha256: SHA256 hash of the content (hex string).
        metadata: Custom metadata; holds ``filename`` when written by name.
    """

    id: str
    filename: str
    root: str
    content_type: str | None
    length: int
    chunk_size: int
    upload_date: datetime
    sha256: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def original_filename(self) -> str | None:
        """Return the human-readable name the object was written under."""
        value = self.metadata.get("filename")
        return str(value) if value is not None else None

    def to_dict(self) -> dict[str, Any]:
        """Convert the document to a JSON-serializable dictionary."""
        return {
            "_id": self.id,
            "filename": self.filename,
            "root": self.root,
            "contentType": self.content_type,
            "length": self.length,
            "chunkSize": self.chunk_size,
            "uploadDate": self.upload_date.isoformat(),
            "sha256": self.sha256,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ObjectDocument:
        """Create a document from its dictionary form."""
        upload_date_raw = data.get("uploadDate")
        if isinstance(upload_date_raw, str):
            upload_date = datetime.fromisoformat(upload_date_raw)
        elif isinstance(upload_date_raw, datetime):
            upload_date = upload_date_raw
        else:
            upload_date = datetime.now(UTC)

        content_type_raw = data.get("contentType")
        metadata_raw = data.get("metadata")

        return cls(
            id=str(data["_id"]),
            filename=str(data.get("filename") or data["_id"]),
            root=str(data["root"]),
            content_type=str(content_type_raw) if content_type_raw else None,
            length=int(data.get("length") or 0),
            chunk_size=int(data.get("chunkSize") or 0),
            upload_date=upload_date,
            sha256=str(data.get("sha256") or ""),
            metadata=dict(metadata_raw) if isinstance(metadata_raw, dict) else {},
        )


@dataclass(frozen=True)
class StoredObject:
    """A stored object: its metadata document and a readable content stream.

    The content stream is owned by the caller and must be closed (or fully
    consumed) to release the store's read lock.

    Attributes:
        metadata: Metadata document of the object.
        content: Readable byte stream of the object content.
    """

    metadata: ObjectDocument
    content: ReadStream
