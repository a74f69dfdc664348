"""Request option normalization for object service operations.

Callers pass a loose option mapping (or a ``RequestOptions``); the service
turns it into a ``RequestDescriptor`` before touching the store:

- Only ``id`` (alias ``_id``), ``filename``, ``metadata``, ``root`` and
  ``content_type`` (alias ``contentType``) are recognized. Unknown fields are
  ignored so newer callers keep working against this service.
- ``metadata`` is always a fresh dict, never the caller's object.
- A filename always wins: it is copied to ``metadata["filename"]`` and the id
  is derived from it, replacing any explicit id.
- Textual ids are converted to the store's native id type.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from gridstore.storage.config import DEFAULT_ROOT
from gridstore.storage.errors import InvalidRequestError
from gridstore.storage.identifiers import derive_object_id
from gridstore.storage.store import NativeId


class RequestOptions(BaseModel):
    """Caller-supplied request options.

    Attributes:
        id: Explicit object id, textual or store-native.
        filename: Human-readable name; the id is derived from it.
        metadata: Custom metadata stored with the object.
        root: Namespace (bucket) of the object.
        content_type: MIME type of the content.
    """

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        arbitrary_types_allowed=True,
    )

    id: Annotated[
        Any,
        Field(default=None, validation_alias=AliasChoices("id", "_id")),
    ]
    filename: Annotated[str | None, Field(default=None)]
    metadata: Annotated[dict[str, Any] | None, Field(default=None)]
    root: Annotated[str | None, Field(default=None)]
    content_type: Annotated[
        str | None,
        Field(default=None, validation_alias=AliasChoices("content_type", "contentType")),
    ]


@dataclass(frozen=True)
class RequestDescriptor:
    """Normalized, validated request.

    Attributes:
        id: Store-native object id.
        filename: Store-facing filename (the derived id when written by name).
        original_filename: Human-readable name, if one was supplied.
        root: Namespace (bucket) of the object.
        content_type: MIME type of the content, if supplied.
        metadata: Fresh metadata dict; holds ``filename`` when a name was supplied.
    """

    id: NativeId
    filename: str
    original_filename: str | None
    root: str
    content_type: str | None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def object_id(self) -> str:
        """Return the textual form of the id."""
        return str(self.id)


OptionsInput = RequestOptions | Mapping[str, Any] | None


def parse_options(raw: OptionsInput) -> RequestOptions:
    """Project the recognized fields out of ``raw``.

    Raises:
        InvalidRequestError: If ``raw`` is not a mapping or a field has the wrong type.
    """
    if isinstance(raw, RequestOptions):
        return raw
    if raw is None:
        return RequestOptions()
    if not isinstance(raw, Mapping):
        raise InvalidRequestError(
            f"Request options must be a mapping, got {type(raw).__name__}"
        )
    try:
        return RequestOptions.model_validate(dict(raw))
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise InvalidRequestError(f"Invalid request options: {fields}") from e


def normalize_options(
    raw: OptionsInput,
    *,
    to_native_id: Callable[[str], NativeId],
    default_root: str = DEFAULT_ROOT,
    action: str = "access object",
) -> RequestDescriptor:
    """Validate and canonicalize request options.

    Args:
        raw: Caller options.
        to_native_id: Converts a textual id to the store's native id.
        default_root: Namespace used when ``raw`` names none.
        action: Verb phrase used in the error message (e.g. "create object").

    Returns:
        RequestDescriptor for the request.

    Raises:
        InvalidRequestError: If no id can be established or a supplied id is malformed.
    """
    options = parse_options(raw)
    metadata = dict(options.metadata or {})
    root = options.root or default_root

    object_id: Any = options.id
    filename: str | None = None
    original_filename: str | None = None

    if options.filename:
        original_filename = options.filename
        metadata["filename"] = options.filename
        object_id = derive_object_id(options.filename)
        filename = object_id

    if isinstance(object_id, str) and object_id:
        try:
            object_id = to_native_id(object_id)
        except ValueError as e:
            raise InvalidRequestError(
                f"Cannot {action}: malformed id", root=root, object_id=object_id
            ) from e

    if object_id is None or object_id == "":
        raise InvalidRequestError(f"Cannot {action} without filename or id", root=root)

    return RequestDescriptor(
        id=object_id,
        filename=filename or str(object_id),
        original_filename=original_filename,
        root=root,
        content_type=options.content_type,
        metadata=metadata,
    )
