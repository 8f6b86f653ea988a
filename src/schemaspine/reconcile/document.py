"""
Reconciliation document model.

A document is the declarative description of the desired schema state::

    fields:
      body: {type: textarea, label: Body}
    compositeTypes:          # aliases: templates, types
      article:
        fields: [title, body]
    roles:
      editor:
        permissions: [page-edit]
        access: {article: [view, edit]}
    records:                 # alias: pages
      about:
        template: article
        parent: /
        title: About us

Every section is an ordered mapping; order is the order entries are applied
in. Unknown top-level keys are ignored so documents can carry host-specific
extras.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _entries(value: Any) -> dict[Any, Any]:
    if value is None:
        return {}
    if isinstance(value, list):
        return dict(enumerate(value))
    if not isinstance(value, Mapping):
        raise ValueError("section must be a mapping")
    return {key: ({} if item is None else item) for key, item in value.items()}


class ReconciliationDocument(BaseModel):
    """Declarative schema document applied by the reconciler."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    fields: dict[str, Any] = Field(default_factory=dict)
    composite_types: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("compositeTypes", "templates", "types", "composite_types"),
        serialization_alias="compositeTypes",
    )
    roles: dict[str, Any] = Field(default_factory=dict)
    records: dict[Any, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("records", "pages"),
    )

    @field_validator("fields", "composite_types", "roles", mode="before")
    @classmethod
    def _named_section(cls, value: Any) -> dict[str, Any]:
        return {str(key): item for key, item in _entries(value).items()}

    @field_validator("records", mode="before")
    @classmethod
    def _record_section(cls, value: Any) -> dict[Any, Any]:
        return _entries(value)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | ReconciliationDocument | None) -> ReconciliationDocument:
        """Build a document from a decoded mapping (or pass one through)."""
        if isinstance(data, ReconciliationDocument):
            return data
        return cls.model_validate(dict(data or {}))

    def is_empty(self) -> bool:
        return not (self.fields or self.composite_types or self.roles or self.records)

    def to_mapping(self) -> dict[str, Any]:
        """Dump back to the document's wire shape (canonical key names)."""
        return self.model_dump(by_alias=True)


__all__ = ["ReconciliationDocument"]
