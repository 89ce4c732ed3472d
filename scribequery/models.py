from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from scribequery.chat.base import ChatMessage
from scribequery.vector.base import Point


class ChatMessageRequest(BaseModel):
    role: str = "user"
    content: str

    def to_message(self) -> ChatMessage:
        return ChatMessage(role=self.role, content=self.content)


class ChatResponseBody(BaseModel):
    content: str
    model: str = ""
    finish_reason: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None


class CreateCollectionRequest(BaseModel):
    collection_name: str
    vector_size: int
    distance: str = "cosine"


class PointBody(BaseModel):
    id: str
    vector: List[float] = Field(default_factory=list)
    payload: Optional[Dict[str, Any]] = None

    def to_point(self) -> Point:
        return Point(id=self.id, vector=list(self.vector), payload=self.payload)

    @classmethod
    def from_point(cls, point: Point) -> "PointBody":
        return cls(id=point.id, vector=point.vector, payload=point.payload)


class UpsertPointsRequest(BaseModel):
    points: List[PointBody]
    wait: bool = False


class SearchRequest(BaseModel):
    vector: List[float]
    limit: int = 10
    score_threshold: Optional[float] = None
    filter: Optional[Dict[str, Any]] = None
    with_payload: bool = True
    with_vector: bool = False


class SearchResultBody(BaseModel):
    id: str
    score: float
    payload: Optional[Dict[str, Any]] = None
    vector: Optional[List[float]] = None


class SearchResponse(BaseModel):
    results: List[SearchResultBody]


class DeletePointsRequest(BaseModel):
    point_ids: List[str]
    wait: bool = False


class GetPointsRequest(BaseModel):
    point_ids: List[str]
    with_payload: bool = True
    with_vector: bool = False


class GetPointsResponse(BaseModel):
    points: List[PointBody]


class IndexDocumentsRequest(BaseModel):
    documents: List[Dict[str, Any]]
    wait: bool = False


class QueryRequest(BaseModel):
    query: str
    limit: int = 10
    score_threshold: Optional[float] = None
    filter: Optional[Dict[str, Any]] = None
