"""
Response shapes of the Firestore REST API.

Only the parts the client reads are modelled; everything else is ignored.
Field values stay in their tagged wire form and go through the codec.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = {"extra": "ignore", "populate_by_name": True}


class Document(WireModel):
    name: str
    fields: dict[str, Any] = Field(default_factory=dict)
    create_time: str | None = Field(default=None, alias="createTime")
    update_time: str | None = Field(default=None, alias="updateTime")


class ListDocumentsResponse(WireModel):
    documents: list[Document] = Field(default_factory=list)
    next_page_token: str | None = Field(default=None, alias="nextPageToken")


class BatchGetItem(WireModel):
    """One entry of a batchGet response: exactly one of found / missing."""

    found: Document | None = None
    missing: str | None = None
    read_time: str | None = Field(default=None, alias="readTime")
    transaction: str | None = None


class RunQueryItem(WireModel):
    """One streamed row of runQuery; rows without a document carry progress only."""

    document: Document | None = None
    read_time: str | None = Field(default=None, alias="readTime")
    skipped_results: int | None = Field(default=None, alias="skippedResults")
    transaction: str | None = None


class AggregationResult(WireModel):
    aggregate_fields: dict[str, Any] = Field(default_factory=dict, alias="aggregateFields")


class RunAggregationQueryItem(WireModel):
    result: AggregationResult | None = None
    read_time: str | None = Field(default=None, alias="readTime")


class WriteResultPayload(WireModel):
    update_time: str | None = Field(default=None, alias="updateTime")
    transform_results: list[dict[str, Any]] = Field(default_factory=list, alias="transformResults")


class CommitResponse(WireModel):
    write_results: list[WriteResultPayload] = Field(default_factory=list, alias="writeResults")
    commit_time: str | None = Field(default=None, alias="commitTime")


class BeginTransactionResponse(WireModel):
    transaction: str = Field(min_length=1)
