"""Tests for request option normalization.

- A filename derives the id and survives in metadata["filename"]
- Filename always wins over an explicit id
- Missing filename and id is an InvalidRequestError
- Unknown fields are ignored; caller metadata is never aliased
"""

from __future__ import annotations

from typing import Any

import pytest

from gridstore.storage.errors import InvalidRequestError
from gridstore.storage.identifiers import derive_object_id
from gridstore.storage.models import ObjectKey
from gridstore.storage.options import (
    RequestDescriptor,
    RequestOptions,
    normalize_options,
    parse_options,
)


def _normalize(raw: Any, **kwargs: Any) -> RequestDescriptor:
    return normalize_options(raw, to_native_id=ObjectKey, **kwargs)


class TestFilename:
    """Tests for filename-based identifiers."""

    def test_filename_derives_id(self) -> None:
        descriptor = _normalize({"filename": "report.pdf"})

        assert descriptor.id == ObjectKey(derive_object_id("report.pdf"))
        assert descriptor.object_id == derive_object_id("report.pdf")

    def test_filename_copied_into_metadata(self) -> None:
        descriptor = _normalize({"filename": "report.pdf"})

        assert descriptor.metadata["filename"] == "report.pdf"
        assert descriptor.original_filename == "report.pdf"

    def test_store_facing_filename_is_derived_id(self) -> None:
        descriptor = _normalize({"filename": "report.pdf"})

        assert descriptor.filename == derive_object_id("report.pdf")

    def test_filename_wins_over_explicit_id(self) -> None:
        descriptor = _normalize({"filename": "a", "id": "000000000000000000000000"})

        assert descriptor.object_id == derive_object_id("a")

    def test_filename_overrides_metadata_filename(self) -> None:
        descriptor = _normalize({"filename": "new.txt", "metadata": {"filename": "old.txt"}})

        assert descriptor.metadata["filename"] == "new.txt"

    def test_empty_filename_is_ignored(self) -> None:
        descriptor = _normalize({"filename": "", "id": "0123456789abcdef01234567"})

        assert descriptor.object_id == "0123456789abcdef01234567"
        assert descriptor.original_filename is None
        assert "filename" not in descriptor.metadata


class TestExplicitId:
    """Tests for explicit identifiers."""

    def test_string_id_converted_to_native(self) -> None:
        descriptor = _normalize({"id": "0123456789abcdef01234567"})

        assert isinstance(descriptor.id, ObjectKey)
        assert descriptor.filename == "0123456789abcdef01234567"
        assert descriptor.metadata == {}

    def test_underscore_id_alias(self) -> None:
        descriptor = _normalize({"_id": "0123456789ABCDEF01234567"})

        assert descriptor.object_id == "0123456789abcdef01234567"

    def test_native_id_passes_through(self) -> None:
        calls: list[str] = []

        def to_native_id(value: str) -> ObjectKey:
            calls.append(value)
            return ObjectKey(value)

        native = ObjectKey("0123456789abcdef01234567")
        descriptor = normalize_options({"id": native}, to_native_id=to_native_id)

        assert descriptor.id is native
        assert calls == []

    def test_malformed_id_is_invalid_request(self) -> None:
        with pytest.raises(InvalidRequestError, match="malformed id"):
            _normalize({"id": "not-an-object-id"})


class TestMissingIdentifier:
    """Tests for requests with no resolvable id."""

    @pytest.mark.parametrize(
        "raw",
        [{}, None, {"metadata": {"a": 1}}, {"id": ""}, {"filename": ""}, {"root": "photos"}],
    )
    def test_no_filename_or_id_is_invalid(self, raw: Any) -> None:
        with pytest.raises(InvalidRequestError, match="without filename or id"):
            _normalize(raw)

    def test_action_appears_in_message(self) -> None:
        with pytest.raises(InvalidRequestError, match="Cannot remove object without"):
            _normalize({}, action="remove object")


class TestProjection:
    """Tests for field projection and shape validation."""

    def test_unknown_fields_are_ignored(self) -> None:
        descriptor = _normalize(
            {"filename": "a.txt", "chunkSize": 17, "mode": "w", "aliases": ["b"]}
        )

        assert descriptor.metadata == {"filename": "a.txt"}

    def test_content_type_aliases(self) -> None:
        camel = _normalize({"filename": "a.txt", "contentType": "text/plain"})
        snake = _normalize({"filename": "a.txt", "content_type": "text/plain"})

        assert camel.content_type == snake.content_type == "text/plain"

    def test_root_defaults(self) -> None:
        assert _normalize({"filename": "a"}).root == "fs"
        assert _normalize({"filename": "a"}, default_root="media").root == "media"
        assert _normalize({"filename": "a", "root": "photos"}).root == "photos"

    def test_metadata_is_not_aliased(self) -> None:
        caller_metadata = {"owner": "ops"}
        descriptor = _normalize({"filename": "a", "metadata": caller_metadata})

        assert caller_metadata == {"owner": "ops"}
        assert descriptor.metadata == {"owner": "ops", "filename": "a"}
        assert descriptor.metadata is not caller_metadata

    def test_metadata_of_wrong_type_is_invalid(self) -> None:
        with pytest.raises(InvalidRequestError, match="metadata"):
            _normalize({"filename": "a", "metadata": ["not", "a", "mapping"]})

    def test_non_mapping_options_are_invalid(self) -> None:
        with pytest.raises(InvalidRequestError, match="mapping"):
            _normalize("report.pdf")

    def test_request_options_instance_accepted(self) -> None:
        options = RequestOptions(filename="a", root="photos")
        descriptor = _normalize(options)

        assert descriptor.root == "photos"
        assert parse_options(options) is options

    def test_normalization_does_not_mutate_options_model(self) -> None:
        options = RequestOptions(filename="a", metadata={"k": "v"})
        _normalize(options)

        assert options.metadata == {"k": "v"}
