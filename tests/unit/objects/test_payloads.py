"""Document validation and typed payload views."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from src.objects.payloads import (
    CtxJobData,
    MessageData,
    ObjectType,
    SessionData,
    apply_increments,
    ensure_json_value,
    validate_document,
)
from src.shared.errors import ValidationError
from src.shared.types import ObjectRecord


def _record(type_: str, data: dict) -> ObjectRecord:
    return ObjectRecord(
        id=uuid4(),
        org_id="org_alpha",
        type=type_,
        data=data,
        created_at=datetime.now(UTC),
    )


@pytest.mark.unit
class TestEnsureJsonValue:
    def test_accepts_nested_json(self) -> None:
        ensure_json_value({"a": [1, 2.5, "x", None, True, {"b": {}}]}, field="data")

    def test_accepts_fifty_levels_of_nesting(self) -> None:
        doc: dict = {}
        node = doc
        for i in range(50):
            node["level"] = {"depth": i}
            node = node["level"]
        ensure_json_value(doc, field="data")

    def test_deep_nesting_does_not_hit_recursion_limit(self) -> None:
        doc: list = []
        node = doc
        for _ in range(5000):
            child: list = []
            node.append(child)
            node = child
        ensure_json_value(doc, field="data")

    def test_shared_subobject_is_not_a_cycle(self) -> None:
        shared = {"k": 1}
        ensure_json_value({"a": shared, "b": shared, "c": [shared, shared]}, field="data")

    def test_rejects_self_reference(self) -> None:
        doc: dict = {"a": 1}
        doc["self"] = doc
        with pytest.raises(ValidationError, match="cycle"):
            ensure_json_value(doc, field="data")

    def test_rejects_indirect_cycle_through_list(self) -> None:
        inner: list = []
        doc = {"items": inner}
        inner.append(doc)
        with pytest.raises(ValidationError, match="cycle"):
            ensure_json_value(doc, field="data")

    def test_rejects_non_string_key(self) -> None:
        with pytest.raises(ValidationError, match="non-string key"):
            ensure_json_value({1: "x"}, field="data")

    def test_rejects_nan(self) -> None:
        with pytest.raises(ValidationError, match="non-finite"):
            ensure_json_value({"x": float("nan")}, field="data")

    def test_rejects_non_json_type(self) -> None:
        with pytest.raises(ValidationError, match="set"):
            ensure_json_value({"x": {1, 2}}, field="metadata")

    def test_accepts_nul_character(self) -> None:
        ensure_json_value({"x": "a\x00b", "a\x00": ["\x00"]}, field="data")

    def test_error_names_the_field(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ensure_json_value({"x": object()}, field="metadata")
        assert exc_info.value.field == "metadata"


@pytest.mark.unit
class TestValidateDocument:
    def test_valid_document(self) -> None:
        validate_document("Product", {"name": "x"}, {"tag": "y"}, ["id-1"])

    @pytest.mark.parametrize("type_", ["", None, 5])
    def test_type_must_be_non_empty_string(self, type_) -> None:
        with pytest.raises(ValidationError, match='"type"'):
            validate_document(type_, {})

    def test_data_must_be_object(self) -> None:
        with pytest.raises(ValidationError, match='"data" must be an object'):
            validate_document("Product", ["not", "a", "dict"])

    def test_metadata_must_be_object(self) -> None:
        with pytest.raises(ValidationError, match='"metadata"'):
            validate_document("Product", {}, "meta")

    def test_links_must_be_strings(self) -> None:
        with pytest.raises(ValidationError, match='"links"'):
            validate_document("Product", {}, None, [1, 2])

    def test_emoji_and_unicode_are_valid(self) -> None:
        validate_document("Note", {"text": "Zażółć gęślą jaźń 🚀🔥"})


@pytest.mark.unit
class TestApplyIncrements:
    def test_adds_to_existing_and_missing_fields(self) -> None:
        data = {"views": 3}
        apply_increments(data, {"views": 2, "likes": 1})
        assert data == {"views": 5, "likes": 1}

    def test_float_delta(self) -> None:
        data = {"score": 1}
        apply_increments(data, {"score": 0.5})
        assert data["score"] == 1.5

    def test_rejects_bool_delta(self) -> None:
        with pytest.raises(ValidationError):
            apply_increments({}, {"views": True})

    def test_rejects_non_numeric_target(self) -> None:
        with pytest.raises(ValidationError, match="not numeric"):
            apply_increments({"views": "many"}, {"views": 1})


@pytest.mark.unit
class TestTypedViews:
    def test_object_type_values(self) -> None:
        assert ObjectType.AI_SESSION.value == "AiSession"
        assert ObjectType.AI_MESSAGE.value == "AiMessage"
        assert ObjectType.AI_CTX_JOB.value == "AiCtxJob"

    def test_session_data_from_record(self) -> None:
        data = SessionData(user_id="u1", name="Chat", system_prompt="Be brief").to_data()
        view = SessionData.from_record(_record("AiSession", data))
        assert view.user_id == "u1"
        assert view.name == "Chat"
        assert view.system_prompt == "Be brief"
        assert view.version == 1

    def test_message_data_defaults(self) -> None:
        view = MessageData.from_record(_record("AiMessage", {"session_id": "s", "role": "user"}))
        assert view.status is None
        assert view.content is None

    def test_ctx_job_defaults_to_pending(self) -> None:
        data = CtxJobData(session_id="s", task="t", history_hash="sha256:x", model="m").to_data()
        assert data["status"] == "pending"
        view = CtxJobData.from_record(_record("AiCtxJob", data))
        assert view.status == "pending"
        assert view.result is None
