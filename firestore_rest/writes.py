"""
Write Assembler

Turns a caller's field mapping into a write descriptor: literal fields, an
update mask, and server-side field transforms. Sentinels are resolved here and
nowhere else; every other value goes through the codec.

Modes:
  insert  : whole document, must not already exist
  replace : whole document, no precondition, mask ignored
  merge   : only the masked fields are touched
  update  : merge + the document must already exist

A field lands in exactly one of: literal fields, delete-by-mask, transforms.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from firestore_rest.codec import encode_value
from firestore_rest.errors import ValidationError
from firestore_rest.types import (
    ArrayRemove,
    ArrayUnion,
    DeleteField,
    FieldPath,
    Increment,
    ServerTimestamp,
    field_path_string,
)

WriteMode = Literal["insert", "replace", "merge", "update"]

WRITE_MODES: set[str] = {"insert", "replace", "merge", "update"}

TransformKind = Literal["setToServerValue", "increment", "appendMissingElements", "removeAllFromArray"]


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


@dataclass
class FieldTransform:
    """A server-applied mutation of one field."""

    field_path: str
    kind: TransformKind
    operand: Any = None  # already in wire form

    def to_wire(self) -> dict[str, Any]:
        if self.kind == "setToServerValue":
            return {"fieldPath": self.field_path, "setToServerValue": "REQUEST_TIME"}
        if self.kind == "increment":
            return {"fieldPath": self.field_path, "increment": self.operand}
        return {"fieldPath": self.field_path, self.kind: {"values": self.operand}}


@dataclass
class Write:
    """
    One staged write, ready for the commit endpoint.

    kind="update" carries fields/mask/transforms; kind="delete" only a name.
    exists is the precondition: True (must exist), False (must not exist) or
    None (no precondition).
    """

    name: str
    kind: Literal["update", "delete"] = "update"
    fields: dict[str, Any] = field(default_factory=dict)
    update_mask: list[str] | None = None
    transforms: list[FieldTransform] = field(default_factory=list)
    exists: bool | None = None

    @property
    def has_transforms(self) -> bool:
        return bool(self.transforms)

    def to_wire(self) -> dict[str, Any]:
        if self.kind == "delete":
            d: dict[str, Any] = {"delete": self.name}
        else:
            d = {"update": {"name": self.name, "fields": self.fields}}
            if self.update_mask is not None:
                d["updateMask"] = {"fieldPaths": self.update_mask}
            if self.transforms:
                d["updateTransforms"] = [t.to_wire() for t in self.transforms]
        if self.exists is not None:
            d["currentDocument"] = {"exists": self.exists}
        return d


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def _transform_for(key: str, value: Any) -> FieldTransform | None:
    if isinstance(value, ServerTimestamp):
        return FieldTransform(key, "setToServerValue")
    if isinstance(value, Increment):
        return FieldTransform(key, "increment", encode_value(value.operand))
    if isinstance(value, ArrayUnion):
        return FieldTransform(key, "appendMissingElements", [encode_value(x) for x in value.elements])
    if isinstance(value, ArrayRemove):
        return FieldTransform(key, "removeAllFromArray", [encode_value(x) for x in value.elements])
    return None


def assemble(
    name: str,
    data: Mapping[str, Any],
    mode: WriteMode,
    merge_fields: Iterable[str | FieldPath] | None = None,
) -> Write:
    """
    Build the write descriptor for one document.

    Args:
        name: Fully qualified document resource name
        data: Field name -> Python value, sentinels allowed at the top level
        mode: insert | replace | merge | update
        merge_fields: merge mode only; restricts the mask to these fields

    Returns:
        Write descriptor

    Raises:
        ValidationError: Unknown mode, bad keys, or a merge field not in data
        UnsupportedValueType: A value has no wire representation
    """
    if mode not in WRITE_MODES:
        raise ValidationError(f"Unknown write mode: {mode!r}")
    if not isinstance(data, Mapping):
        raise ValidationError(f"Document data must be a mapping, got {type(data).__name__}")

    fields: dict[str, Any] = {}
    mask: list[str] = []
    transforms: list[FieldTransform] = []

    for key, value in data.items():
        if not isinstance(key, str) or not key:
            raise ValidationError(f"Invalid field name: {key!r}")

        if isinstance(value, DeleteField):
            # Named in the mask but absent from fields: the server removes it
            mask.append(key)
            continue

        transform = _transform_for(key, value)
        if transform is not None:
            transforms.append(transform)
            continue

        fields[key] = encode_value(value)
        mask.append(key)

    if mode == "insert":
        return Write(name=name, fields=fields, transforms=transforms, exists=False)

    if mode == "replace":
        return Write(name=name, fields=fields, transforms=transforms)

    if mode == "update":
        return Write(name=name, fields=fields, update_mask=mask, transforms=transforms, exists=True)

    if merge_fields is None:
        return Write(name=name, fields=fields, update_mask=mask, transforms=transforms)

    wanted: list[str] = []
    tops: set[str] = set()
    for f in merge_fields:
        top = f.segments[0] if isinstance(f, FieldPath) else field_path_string(f).split(".", 1)[0]
        if top not in data:
            raise ValidationError(f"Merge field {f!r} is not present in the data")
        wanted.append(field_path_string(f))
        tops.add(top)

    transform_paths = {t.field_path for t in transforms}
    return Write(
        name=name,
        fields={k: v for k, v in fields.items() if k in tops},
        update_mask=[f for f in wanted if f not in transform_paths],
        transforms=[t for t in transforms if t.field_path in tops],
    )


def delete_write(name: str, exists: bool | None = None) -> Write:
    """Write descriptor that deletes a document."""
    return Write(name=name, kind="delete", exists=exists)
