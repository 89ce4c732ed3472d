from __future__ import annotations

import json
import logging
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

# Metadata key listing the payload keys stored as JSON text
JSON_KEYS_FIELD = "_json_keys"

T = TypeVar("T")


def to_index_metric(distance: str | None) -> str:
    metric = normalize_distance(distance)
    if metric == EUCLIDEAN:
        return "euclidean"
    if metric == DOT:
        return "dotproduct"
    return "cosine"


def is_local_host(host: str) -> bool:
    host = host.strip()
    return host.startswith("http://localhost") or host.startswith("http://127.0.0.1")


def encode_metadata(payload: Payload | None) -> dict[str, Any] | None:
    """Fit a payload into Pinecone metadata.

    Pinecone accepts strings, numbers, booleans and lists of strings; any
    other value is stored as JSON text and its key listed under
    ``JSON_KEYS_FIELD``.
    """
    if not payload:
        return None
    if JSON_KEYS_FIELD in payload:
        raise ValidationError(f"payload key {JSON_KEYS_FIELD!r} is reserved")
    metadata: dict[str, Any] = {}
    json_keys: list[str] = []
    for key, value in payload.items():
        if isinstance(value, (str, bool, int, float)):
            metadata[key] = value
        elif isinstance(value, list) and value and all(isinstance(v, str) for v in value):
            metadata[key] = value
        else:
            metadata[key] = json.dumps(value)
            json_keys.append(key)
    if json_keys:
        metadata[JSON_KEYS_FIELD] = json_keys
    return metadata


def decode_metadata(metadata: dict[str, Any] | None) -> Payload | None:
    if metadata is None:
        return None
    payload = dict(metadata)
    json_keys = payload.pop(JSON_KEYS_FIELD, None) or []
    for key in json_keys:
        if key in payload and isinstance(payload[key], str):
            payload[key] = json.loads(payload[key])
    return payload


def to_metadata_filter(filter: Payload | None) -> dict[str, Any] | None:
    """Translate the flat filter format into a Pinecone metadata filter.

    Only natively stored values can be matched; keys kept as JSON text
    (objects, nulls, non-string lists) are not filterable.
    """
    if not filter:
        return None
    clauses: dict[str, Any] = {}
    for key, value in filter.items():
        if key == JSON_KEYS_FIELD:
            raise ValidationError(f"filter key {JSON_KEYS_FIELD!r} is reserved")
        if isinstance(value, list):
            if not value or not all(_is_filter_scalar(v) for v in value):
                raise ValidationError(f"filter on {key!r} needs a non-empty list of strings, numbers or booleans")
            clauses[key] = {"$in": value}
        elif _is_filter_scalar(value):
            clauses[key] = {"$eq": value}
        else:
            raise ValidationError(f"filter on {key!r} must be a string, number or boolean")
    return clauses


def _is_filter_scalar(value: Any) -> bool:
    return isinstance(value, (str, bool, int, float))


def to_similarity(metric: str, score: float) -> float:
    # Euclidean indexes report squared distance, lower is closer
    if metric == "euclidean":
        return euclidean_similarity(score, squared=True)
    return float(score)


@dataclass(frozen=True)
class _IndexHandle:
    index: Any
    metric: str


class PineconeVectorStore:
    """Vector store backed by Pinecone indexes, one index per collection.

    Every SDK call carries ``VECTOR_TIMEOUT``. Scores are normalised so that
    higher is always closer, whatever the index metric.
    """

    def __init__(self, settings: Settings, client: Any = None) -> None:
        try:
            from pinecone import Pinecone, ServerlessSpec
        except ImportError as exc:
            raise RuntimeError("pinecone is required for PineconeVectorStore") from exc

        host = settings.pinecone_host.strip()
        if not is_local_host(host) and not settings.pinecone_api_key.strip():
            raise ValueError("pinecone API key is required for non-local deployments")

        self._serverless_spec_cls = ServerlessSpec
        self._host = host
        self._namespace = settings.pinecone_namespace or None
        self._cloud = settings.pinecone_cloud
        self._region = settings.pinecone_region
        self._local_metric = to_index_metric(settings.pinecone_metric)
        self._timeout = settings.vector_timeout
        self._handles: HandleCache[_IndexHandle] = HandleCache()

        if client is None:
            kwargs: dict[str, Any] = {"api_key": settings.pinecone_api_key or "pclocal"}
            if host:
                kwargs["host"] = host
            if settings.pinecone_source_tag:
                kwargs["source_tag"] = settings.pinecone_source_tag
            client = Pinecone(**kwargs)
            logger.info("created pinecone client")
        self.client = client

    def create_collection(self, name: str, dimension: int, distance: str = COSINE) -> None:
        name = validate_create(name, dimension)

        # Local mode: the configured host is the data plane, nothing to create
        if self._host:
            self._index(name, "create_collection")
            logger.info("connected to local pinecone index %s", name)
            return

        try:
            self.client.create_index(
                name=name,
                dimension=dimension,
                metric=to_index_metric(distance),
                spec=self._serverless_spec_cls(cloud=self._cloud, region=self._region),
                timeout=int(self._timeout),
            )
        except Exception as exc:
            if "already exist" not in str(exc).lower():
                logger.error("create index %s failed: %s", name, exc)
                raise BackendUnavailable("create_collection", name, exc) from exc
            logger.info("index %s already exists", name)
        else:
            logger.info("created collection %s", name)

        self._index(name, "create_collection")

    def upsert_points(self, collection: str, points: list[Point], wait: bool = False) -> None:
        collection = validate_points(collection, points)
        vectors = []
        for p in points:
            record: dict[str, Any] = {"id": p.id, "values": [float(v) for v in p.vector]}
            metadata = encode_metadata(p.payload)
            if metadata:
                record["metadata"] = metadata
            vectors.append(record)

        # Pinecone has no synchronous-indexing switch; wait is advisory
        self._call(
            "upsert_points",
            collection,
            lambda h: h.index.upsert(vectors=vectors, namespace=self._namespace, _request_timeout=self._timeout),
        )
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
        metadata_filter = to_metadata_filter(filter)
        metric, response = self._call(
            "search",
            collection,
            lambda h: (
                h.metric,
                h.index.query(
                    vector=[float(v) for v in vector],
                    top_k=limit,
                    filter=metadata_filter,
                    include_metadata=with_payload,
                    include_values=with_vector,
                    namespace=self._namespace,
                    _request_timeout=self._timeout,
                ),
            ),
        )

        results = []
        for match in getattr(response, "matches", None) or []:
            if match is None:
                continue
            results.append(
                SearchResult(
                    id=match.id,
                    score=to_similarity(metric, match.score),
                    payload=decode_metadata(match.metadata) if with_payload else None,
                    vector=list(match.values) if with_vector and match.values else None,
                )
            )
        return rank_results(results, limit, score_threshold)

    def delete_points(self, collection: str, ids: list[str], wait: bool = False) -> None:
        collection = validate_ids(collection, ids)
        # Pinecone deletes any number of IDs in one call, no filter needed
        self._call(
            "delete_points",
            collection,
            lambda h: h.index.delete(ids=list(ids), namespace=self._namespace, _request_timeout=self._timeout),
        )
        logger.debug("deleted points", extra={"data": {"collection": collection, "count": len(ids)}})

    def get_points(
        self,
        collection: str,
        ids: list[str],
        with_payload: bool = True,
        with_vector: bool = False,
    ) -> list[Point]:
        collection = validate_ids(collection, ids)
        response = self._call(
            "get_points",
            collection,
            lambda h: h.index.fetch(ids=list(ids), namespace=self._namespace, _request_timeout=self._timeout),
        )

        points = []
        for point_id, record in (getattr(response, "vectors", None) or {}).items():
            if record is None:
                continue
            points.append(
                Point(
                    id=point_id,
                    vector=list(record.values) if with_vector and record.values else [],
                    payload=decode_metadata(record.metadata) if with_payload else None,
                )
            )
        return order_by_ids(points, ids)

    def health(self) -> None:
        try:
            self.client.list_indexes()
        except Exception as exc:
            # Local deployments may not expose the control plane
            if self._host:
                logger.warning("list indexes failed: %s", exc)
                return
            raise BackendUnavailable("health", None, exc) from exc

    def _index(self, collection: str, operation: str) -> _IndexHandle:
        try:
            return self._handles.get_or_create(collection, self._connect)
        except Exception as exc:
            logger.error("resolve index %s failed: %s", collection, exc)
            raise BackendUnavailable(operation, collection, exc) from exc

    def _connect(self, collection: str) -> _IndexHandle:
        if self._host:
            return _IndexHandle(index=self.client.Index(host=self._host), metric=self._local_metric)
        description = self.client.describe_index(collection)
        return _IndexHandle(
            index=self.client.Index(host=description.host),
            metric=to_index_metric(getattr(description, "metric", None)),
        )

    def _call(self, operation: str, collection: str, fn: Callable[[_IndexHandle], T]) -> T:
        handle = self._index(collection, operation)
        try:
            return fn(handle)
        except Exception as exc:
            self._handles.invalidate(collection)
            logger.error("%s on %s failed: %s", operation, collection, exc)
            raise BackendUnavailable(operation, collection, exc) from exc
