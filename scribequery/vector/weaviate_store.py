from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from scribequery.config import Settings
from scribequery.errors import BackendUnavailable, ValidationError
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
    normalize_distance,
    order_by_ids,
    rank_results,
    resolve_top_k,
    validate_create,
    validate_ids,
    validate_points,
    validate_search,
)
from scribequery.vector.cache import HandleCache

logger = logging.getLogger(__name__)

# Property holding the caller's point ID; Weaviate object IDs must be UUIDs
POINT_ID_PROPERTY = "point_id"

T = TypeVar("T")

# Index distance names as reported by collection config
INDEX_METRICS = {"cosine": COSINE, "l2-squared": EUCLIDEAN, "dot": DOT}


def weaviate_distance(distance: str | None) -> str:
    metric = normalize_distance(distance)
    if metric == EUCLIDEAN:
        return "l2"
    if metric == DOT:
        return "dot"
    return "cosine"


@dataclass(frozen=True)
class _CollectionHandle:
    collection: Any
    metric: str | None


def split_host(host: str, default_port: int) -> tuple[str, int]:
    host = host.strip()
    if "://" in host:
        host = host.split("://", 1)[1]
    host = host.rstrip("/")
    if ":" in host:
        name, port = host.rsplit(":", 1)
        if port.isdigit():
            return name, int(port)
    return host, default_port


class WeaviateVectorStore:
    """Vector store backed by Weaviate collections (self-provided vectors)."""

    def __init__(self, settings: Settings, client: Any = None) -> None:
        try:
            import weaviate
            from weaviate.classes.config import Configure, VectorDistances
            from weaviate.classes.data import DataObject
            from weaviate.classes.init import AdditionalConfig, Auth, Timeout
            from weaviate.classes.query import Filter, MetadataQuery
            from weaviate.util import generate_uuid5
        except ImportError as exc:
            raise RuntimeError("weaviate-client is required for WeaviateVectorStore") from exc

        self._configure = Configure
        self._distances = {
            "cosine": VectorDistances.COSINE,
            "l2": VectorDistances.L2_SQUARED,
            "dot": VectorDistances.DOT,
        }
        self._data_object_cls = DataObject
        self._filter_cls = Filter
        self._metadata_query_cls = MetadataQuery
        self._uuid5 = generate_uuid5
        self._handles: HandleCache[_CollectionHandle] = HandleCache()

        if client is None:
            if not settings.weaviate_host.strip():
                raise ValueError("weaviate host is required")
            scheme = settings.weaviate_scheme or "http"
            if scheme not in ("http", "https"):
                raise ValueError(f"unsupported weaviate scheme: {scheme}")
            secure = scheme == "https"
            http_host, http_port = split_host(settings.weaviate_host, 443 if secure else 8080)
            grpc_host, grpc_port = split_host(settings.weaviate_grpc_host or http_host, 50051)
            client = weaviate.connect_to_custom(
                http_host=http_host,
                http_port=http_port,
                http_secure=secure,
                grpc_host=grpc_host,
                grpc_port=grpc_port,
                grpc_secure=secure,
                auth_credentials=Auth.api_key(settings.weaviate_api_key) if settings.weaviate_api_key else None,
                additional_config=AdditionalConfig(
                    timeout=Timeout(init=settings.vector_timeout, query=settings.vector_timeout, insert=settings.vector_timeout)
                ),
            )
            logger.info("connected to weaviate at %s:%s", http_host, http_port)
        self.client = client

    def create_collection(self, name: str, dimension: int, distance: str = COSINE) -> None:
        name = validate_create(name, dimension)
        metric = self._distances[weaviate_distance(distance)]
        try:
            self.client.collections.create(
                name=name,
                vectorizer_config=self._configure.Vectorizer.none(),
                vector_index_config=self._configure.VectorIndex.hnsw(distance_metric=metric),
            )
        except Exception as exc:
            if "already exist" not in str(exc).lower():
                logger.error("create collection %s failed: %s", name, exc)
                raise BackendUnavailable("create_collection", name, exc) from exc
            logger.info("collection %s already exists", name)
        else:
            logger.info("created collection %s", name)

    def upsert_points(self, collection: str, points: list[Point], wait: bool = False) -> None:
        collection = validate_points(collection, points)
        objects = []
        for p in points:
            properties = dict(p.payload or {})
            if POINT_ID_PROPERTY in properties:
                raise ValidationError(f"payload key {POINT_ID_PROPERTY!r} is reserved")
            properties[POINT_ID_PROPERTY] = p.id
            objects.append(
                self._data_object_cls(
                    properties=properties,
                    uuid=self.object_id(p.id),
                    vector=[float(v) for v in p.vector],
                )
            )

        # Batch writes are synchronous in Weaviate, so wait is always honoured
        result = self._call("upsert_points", collection, lambda handle: handle.data.insert_many(objects))
        if getattr(result, "has_errors", False):
            messages = sorted({getattr(e, "message", str(e)) for e in result.errors.values()})
            logger.error("upsert to %s rejected: %s", collection, messages)
            raise BackendUnavailable("upsert_points", collection, RuntimeError("; ".join(messages)))
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
        limit = resolve_top_k(top_k)
        metric = self._handle(collection, "search").metric
        cosine = metric == COSINE

        # Weaviate computes certainty for cosine only; it is (1 + cos) / 2
        certainty = None
        if cosine and score_threshold is not None and score_threshold > 0:
            certainty = (1.0 + min(score_threshold, 1.0)) / 2.0

        response = self._call(
            "search",
            collection,
            lambda handle: handle.query.near_vector(
                near_vector=[float(v) for v in vector],
                limit=limit,
                certainty=certainty,
                filters=self._to_filter(filter),
                return_metadata=self._metadata_query_cls(certainty=cosine, distance=True),
                include_vector=with_vector,
            ),
        )

        results = []
        for obj in getattr(response, "objects", None) or []:
            point = self._to_point(obj, with_payload, with_vector)
            results.append(
                SearchResult(
                    id=point.id,
                    score=_score(metric, obj.metadata),
                    payload=point.payload,
                    vector=point.vector or None,
                )
            )
        return rank_results(results, limit, score_threshold)

    def delete_points(self, collection: str, ids: list[str], wait: bool = False) -> None:
        collection = validate_ids(collection, ids)
        object_ids = [self.object_id(i) for i in ids]

        if len(object_ids) == 1:
            self._call("delete_points", collection, lambda handle: handle.data.delete_by_id(object_ids[0]))
        else:
            where = self._filter_cls.any_of([self._filter_cls.by_id().equal(oid) for oid in object_ids])
            self._call("delete_points", collection, lambda handle: handle.data.delete_many(where=where))
        logger.debug("deleted points", extra={"data": {"collection": collection, "count": len(ids)}})

    def get_points(
        self,
        collection: str,
        ids: list[str],
        with_payload: bool = True,
        with_vector: bool = False,
    ) -> list[Point]:
        collection = validate_ids(collection, ids)
        points = []
        for point_id in dict.fromkeys(ids):
            obj = self._call(
                "get_points",
                collection,
                lambda handle: handle.query.fetch_object_by_id(self.object_id(point_id), include_vector=with_vector),
            )
            if obj is None:
                continue
            point = self._to_point(obj, with_payload, with_vector)
            point.id = point_id
            points.append(point)
        return order_by_ids(points, ids)

    def health(self) -> None:
        try:
            ready = self.client.is_ready()
        except Exception as exc:
            raise BackendUnavailable("health", None, exc) from exc
        if not ready:
            raise BackendUnavailable("health", None, RuntimeError("weaviate is not ready"))

    def close(self) -> None:
        self.client.close()

    def object_id(self, point_id: str) -> str:
        try:
            return str(uuid.UUID(point_id))
        except ValueError:
            return str(self._uuid5(point_id))

    def _to_filter(self, filter: Payload | None) -> Any:
        if not filter:
            return None
        clauses = []
        for key, value in filter.items():
            prop = self._filter_cls.by_property(key)
            clauses.append(prop.contains_any(value) if isinstance(value, list) else prop.equal(value))
        if len(clauses) == 1:
            return clauses[0]
        return self._filter_cls.all_of(clauses)

    def _to_point(self, obj: Any, with_payload: bool, with_vector: bool) -> Point:
        properties = dict(obj.properties or {})
        point_id = properties.pop(POINT_ID_PROPERTY, None) or str(obj.uuid)
        return Point(
            id=point_id,
            vector=_extract_vector(obj.vector) if with_vector else [],
            payload=properties if with_payload else None,
        )

    def _handle(self, collection: str, operation: str) -> _CollectionHandle:
        try:
            return self._handles.get_or_create(collection, self._resolve)
        except Exception as exc:
            logger.error("resolve collection %s failed: %s", collection, exc)
            raise BackendUnavailable(operation, collection, exc) from exc

    def _resolve(self, collection: str) -> _CollectionHandle:
        handle = self.client.collections.get(collection)
        index_config = getattr(handle.config.get(), "vector_index_config", None)
        distance = getattr(index_config, "distance_metric", None)
        metric = INDEX_METRICS.get(str(getattr(distance, "value", distance)))
        if metric is None:
            logger.warning("collection %s uses distance %s; scoring by negative distance", collection, distance)
        return _CollectionHandle(collection=handle, metric=metric)

    def _call(self, operation: str, collection: str, fn: Callable[[Any], T]) -> T:
        handle = self._handle(collection, operation)
        try:
            return fn(handle.collection)
        except Exception as exc:
            self._handles.invalidate(collection)
            logger.error("%s on %s failed: %s", operation, collection, exc)
            raise BackendUnavailable(operation, collection, exc) from exc


def _score(metric: str | None, metadata: Any) -> float:
    """Convert Weaviate's distance into the shared higher-is-closer score."""
    distance = getattr(metadata, "distance", None)
    if distance is None:
        certainty = getattr(metadata, "certainty", None)
        if metric == COSINE and certainty is not None:
            return 2.0 * float(certainty) - 1.0
        return 0.0
    distance = float(distance)
    if metric == COSINE:
        return 1.0 - distance
    if metric == EUCLIDEAN:
        return euclidean_similarity(distance, squared=True)
    # dot distance is the negated product
    return -distance


def _extract_vector(raw: Any) -> Vector:
    if not raw:
        return []
    if isinstance(raw, dict):
        raw = raw.get("default") or next(iter(raw.values()), [])
    return [float(v) for v in raw]
