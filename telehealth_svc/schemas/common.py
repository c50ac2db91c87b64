"""
Shared pydantic bases for API payloads.

Documents travel as camelCase JSON. Request models accept both camelCase and
snake_case keys and dump back to camelCase for storage.
"""
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from telehealth_svc.repositories import Page


class ApiModel(BaseModel):
    """camelCase request/response model that rejects unknown keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class DocumentModel(ApiModel):
    """Request body that becomes (part of) a stored document."""

    def to_document(self, partial: bool = False) -> Dict[str, Any]:
        """
        Dump to the camelCase mapping written to the store.

        Args:
            partial: Dump only the fields the client sent (PATCH semantics);
                otherwise dump every field that is not None.
        """
        if partial:
            return self.model_dump(mode="json", by_alias=True, exclude_unset=True)
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class DocumentUpdateModel(DocumentModel):
    """
    PATCH body. Fields in `not_nullable` may be left out but not sent as null,
    because the stored document always carries them.
    """

    not_nullable: ClassVar[FrozenSet[str]] = frozenset()

    @model_validator(mode="after")
    def _reject_nulls(self):
        nulled = sorted(
            name for name in self.model_fields_set & self.not_nullable
            if getattr(self, name) is None
        )
        if nulled:
            raise ValueError(f"Fields cannot be null: {', '.join(to_camel(name) for name in nulled)}")
        return self


class FreeFormDocument(DocumentModel):
    """Schemaless document: any keys are accepted and stored as given."""

    model_config = ConfigDict(extra="allow")


class PageResponse(ApiModel):
    """One page of a collection listing."""
    items: List[Dict[str, Any]] = Field(..., description="Documents on this page")
    has_more: bool = Field(..., description="Whether another page follows")
    last_id: Optional[str] = Field(None, description="Cursor for the next page (pass as startAfter)")
    total: int = Field(..., description="Documents matching the filters across all pages")

    @classmethod
    def from_page(cls, page: Page) -> "PageResponse":
        return cls(items=page.items, has_more=page.has_more, last_id=page.last_id, total=page.total)

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class DeletedResponse(ApiModel):
    id: str
    deleted: bool = True
