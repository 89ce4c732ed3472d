from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Union

from scribequery.errors import ValidationError

JSONValue = Union[Dict[str, "JSONValue"], List["JSONValue"], str, int, float, bool, None]
Payload = Dict[str, JSONValue]
Vector = List[float]

DEFAULT_TOP_K = 10

COSINE = "cosine"
EUCLIDEAN = "euclidean"
DOT = "dot"


@dataclass
class Point:
    id: str
    vector: Vector = field(default_factory=list)
    payload: Optional[Payload] = None


@dataclass
class SearchResult:
    id: str
    score: float
    payload: Optional[Payload] = None
    vector: Optional[Vector] = None


class VectorStore(Protocol):
    def create_collection(self, name: str, dimension: int, distance: str = COSINE) -> None:
        ...

    def upsert_points(self, collection: str, points: list[Point], wait: bool = False) -> None:
        ...

    def search(
        self,
        collection: str,
        vector: Vector,
        top_k: int = DEFAULT_TOP_K,
        score_threshold: float | None = None,
        filter: Payload | None = None,
        with_payload: bool = True,
        with_vector: bool = False,
    ) -> list[SearchResult]:
        ...

    def delete_points(self, collection: str, ids: list[str], wait: bool = False) -> None:
        ...

    def get_points(
        self,
        collection: str,
        ids: list[str],
        with_payload: bool = True,
        with_vector: bool = False,
    ) -> list[Point]:
        ...

    def health(self) -> None:
        ...


def normalize_distance(distance: str | None) -> str:
    value = (distance or "").strip().lower()
    if value in ("euclid", "euclidean", "l2"):
        return EUCLIDEAN
    if value in ("dot", "dotproduct"):
        return DOT
    return COSINE


def euclidean_similarity(distance: float, squared: bool = False) -> float:
    """Map a euclidean distance onto (0, 1], higher is closer."""
    distance = max(float(distance), 0.0)
    if squared:
        distance = math.sqrt(distance)
    return 1.0 / (1.0 + distance)


def require_collection(name: str) -> str:
    if not name or not name.strip():
        raise ValidationError("collection name is required")
    return name.strip()


def validate_create(name: str, dimension: int) -> str:
    name = require_collection(name)
    if dimension is None or dimension <= 0:
        raise ValidationError("vector size must be a positive integer")
    return name


def validate_points(collection: str, points: list[Point]) -> str:
    collection = require_collection(collection)
    if not points:
        raise ValidationError("at least one point is required")
    for point in points:
        if not point.id or not point.id.strip():
            raise ValidationError("point ID is required")
        if point.payload is not None:
            validate_payload(point.payload, where=f"payload of point {point.id!r}")
    return collection


def validate_search(collection: str, vector: Vector) -> str:
    collection = require_collection(collection)
    if not vector:
        raise ValidationError("search vector is required")
    return collection


def validate_ids(collection: str, ids: list[str]) -> str:
    collection = require_collection(collection)
    if not ids:
        raise ValidationError("at least one point id is required")
    for point_id in ids:
        if not point_id or not point_id.strip():
            raise ValidationError("point id must not be empty")
    return collection


def validate_payload(value: Any, where: str = "payload") -> None:
    if not isinstance(value, dict):
        raise ValidationError(f"{where} must be an object")
    _check_json(value, where)


def _check_json(value: Any, where: str) -> None:
    if value is None or isinstance(value, (str, bool, int)):
        return
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValidationError(f"{where} contains a non-finite number")
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValidationError(f"{where} has a non-string key {key!r}")
            _check_json(item, f"{where}.{key}")
        return
    if isinstance(value, list):
        for i, item in enumerate(value):
            _check_json(item, f"{where}[{i}]")
        return
    raise ValidationError(f"{where} holds a {type(value).__name__}, which is not a JSON value")


def resolve_top_k(top_k: int | None) -> int:
    if top_k is None or top_k <= 0:
        return DEFAULT_TOP_K
    return top_k


def rank_results(results: list[SearchResult], top_k: int, score_threshold: float | None) -> list[SearchResult]:
    """Drop results under a positive threshold, sort by score, cut to top_k."""
    if score_threshold is not None and score_threshold > 0:
        results = [r for r in results if r.score >= score_threshold]
    results = sorted(results, key=lambda r: r.score, reverse=True)
    return results[:top_k]


def order_by_ids(points: list[Point], ids: list[str]) -> list[Point]:
    by_id = {p.id: p for p in points}
    ordered: list[Point] = []
    seen: set[str] = set()
    for point_id in ids:
        if point_id in seen or point_id not in by_id:
            continue
        seen.add(point_id)
        ordered.append(by_id[point_id])
    return ordered


def matches_filter(payload: Payload | None, filter: Payload | None) -> bool:
    """Evaluate the flat filter format against a payload.

    A scalar filter value means equality, a list value means "any of".
    """
    if not filter:
        return True
    payload = payload or {}
    for key, expected in filter.items():
        if key not in payload:
            return False
        actual = payload[key]
        if isinstance(expected, list):
            if isinstance(actual, list):
                if not any(a in expected for a in actual):
                    return False
            elif actual not in expected:
                return False
        elif isinstance(actual, list):
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True
