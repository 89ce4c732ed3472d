from __future__ import annotations

import copy
import logging
import math
import threading
from dataclasses import dataclass, field

from scribequery.errors import BackendUnavailable
from scribequery.vector.base import (
    COSINE,
    DEFAULT_TOP_K,
    DOT,
    EUCLIDEAN,
    Payload,
    Point,
    SearchResult,
    Vector,
    euclidean_similarity,
    matches_filter,
    normalize_distance,
    order_by_ids,
    rank_results,
    resolve_top_k,
    validate_create,
    validate_ids,
    validate_points,
    validate_search,
)

logger = logging.getLogger(__name__)


@dataclass
class _Collection:
    dimension: int
    distance: str
    points: dict[str, Point] = field(default_factory=dict)


class InMemoryVectorStore:
    def __init__(self) -> None:
        self._collections: dict[str, _Collection] = {}
        self._lock = threading.Lock()

    def create_collection(self, name: str, dimension: int, distance: str = COSINE) -> None:
        name = validate_create(name, dimension)
        with self._lock:
            if name in self._collections:
                return
            self._collections[name] = _Collection(dimension=dimension, distance=normalize_distance(distance))
        logger.info("created collection %s", name)

    def upsert_points(self, collection: str, points: list[Point], wait: bool = False) -> None:
        collection = validate_points(collection, points)
        with self._lock:
            col = self._get(collection, "upsert_points")
            for p in points:
                if len(p.vector) != col.dimension:
                    raise BackendUnavailable(
                        "upsert_points",
                        collection,
                        ValueError(f"point {p.id!r} has dimension {len(p.vector)}, expected {col.dimension}"),
                    )
            for p in points:
                col.points[p.id] = Point(id=p.id, vector=list(p.vector), payload=copy.deepcopy(p.payload))
        logger.debug("upserted points", extra={"data": {"collection": collection, "count": len(points)}})

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
        collection = validate_search(collection, vector)
        with self._lock:
            col = self._get(collection, "search")
            rows = list(col.points.values())
            distance = col.distance

        scored = []
        for rec in rows:
            if not matches_filter(rec.payload, filter):
                continue
            scored.append(
                SearchResult(
                    id=rec.id,
                    score=_score(distance, vector, rec.vector),
                    payload=copy.deepcopy(rec.payload) if with_payload else None,
                    vector=list(rec.vector) if with_vector else None,
                )
            )
        return rank_results(scored, resolve_top_k(top_k), score_threshold)

    def delete_points(self, collection: str, ids: list[str], wait: bool = False) -> None:
        collection = validate_ids(collection, ids)
        with self._lock:
            col = self._get(collection, "delete_points")
            for point_id in ids:
                col.points.pop(point_id, None)
        logger.debug("deleted points", extra={"data": {"collection": collection, "count": len(ids)}})

    def get_points(
        self,
        collection: str,
        ids: list[str],
        with_payload: bool = True,
        with_vector: bool = False,
    ) -> list[Point]:
        collection = validate_ids(collection, ids)
        with self._lock:
            col = self._get(collection, "get_points")
            found = [col.points[i] for i in ids if i in col.points]
        points = [
            Point(
                id=p.id,
                vector=list(p.vector) if with_vector else [],
                payload=copy.deepcopy(p.payload) if with_payload else None,
            )
            for p in found
        ]
        return order_by_ids(points, ids)

    def health(self) -> None:
        return None

    def _get(self, collection: str, operation: str) -> _Collection:
        col = self._collections.get(collection)
        if col is None:
            raise BackendUnavailable(operation, collection, KeyError("collection does not exist"))
        return col


def _score(distance: str, a: Vector, b: Vector) -> float:
    if distance == DOT:
        return sum(x * y for x, y in zip(a, b))
    if distance == EUCLIDEAN:
        return euclidean_similarity(sum((x - y) ** 2 for x, y in zip(a, b)), squared=True)
    return _cosine_similarity(a, b)


def _cosine_similarity(a: Vector, b: Vector) -> float:
    if not a or not b:
        return 0.0
    n = min(len(a), len(b))
    a1, b1 = a[:n], b[:n]
    dot = sum(x * y for x, y in zip(a1, b1))
    na = math.sqrt(sum(x * x for x in a1))
    nb = math.sqrt(sum(y * y for y in b1))
    if na == 0 or nb == 0:
        return 0.0
    return dot / (na * nb)
