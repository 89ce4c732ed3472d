from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from scribequery.api.deps import Services, get_services
from scribequery.models import (
    CreateCollectionRequest,
    DeletePointsRequest,
    GetPointsRequest,
    GetPointsResponse,
    IndexDocumentsRequest,
    PointBody,
    QueryRequest,
    SearchRequest,
    SearchResponse,
    SearchResultBody,
    UpsertPointsRequest,
)
from scribequery.vector.base import normalize_distance

router = APIRouter(prefix="/collections", tags=["vector"])


@router.post("")
def create_collection(payload: CreateCollectionRequest, services: Services = Depends(get_services)):
    services.vector_store.create_collection(payload.collection_name, payload.vector_size, payload.distance)
    return {
        "status": "ok",
        "collection_name": payload.collection_name,
        "vector_size": payload.vector_size,
        "distance": normalize_distance(payload.distance),
    }


@router.put("/{collection}/points")
def upsert_points(collection: str, payload: UpsertPointsRequest, services: Services = Depends(get_services)):
    points = [p.to_point() for p in payload.points]
    services.vector_store.upsert_points(collection, points, wait=payload.wait)
    return {"status": "ok", "upserted": len(points)}


@router.post("/{collection}/points/search", response_model=SearchResponse)
def search_points(collection: str, payload: SearchRequest, services: Services = Depends(get_services)):
    results = services.vector_store.search(
        collection,
        payload.vector,
        top_k=payload.limit,
        score_threshold=payload.score_threshold,
        filter=payload.filter,
        with_payload=payload.with_payload,
        with_vector=payload.with_vector,
    )
    return SearchResponse(results=[SearchResultBody(**asdict(r)) for r in results])


@router.post("/{collection}/points/delete")
def delete_points(collection: str, payload: DeletePointsRequest, services: Services = Depends(get_services)):
    services.vector_store.delete_points(collection, payload.point_ids, wait=payload.wait)
    return {"status": "ok", "deleted": len(payload.point_ids)}


@router.post("/{collection}/points/get", response_model=GetPointsResponse)
def get_points(collection: str, payload: GetPointsRequest, services: Services = Depends(get_services)):
    points = services.vector_store.get_points(
        collection,
        payload.point_ids,
        with_payload=payload.with_payload,
        with_vector=payload.with_vector,
    )
    return GetPointsResponse(points=[PointBody.from_point(p) for p in points])


@router.post("/{collection}/documents")
def index_documents(collection: str, payload: IndexDocumentsRequest, services: Services = Depends(get_services)):
    count = services.vector_index.index_documents(collection, payload.documents, wait=payload.wait)
    return {"status": "ok", "indexed": count, "collection": collection}


@router.post("/{collection}/query", response_model=SearchResponse)
def query_documents(collection: str, payload: QueryRequest, services: Services = Depends(get_services)):
    results = services.vector_index.search(
        collection,
        payload.query,
        top_k=payload.limit,
        score_threshold=payload.score_threshold,
        filter=payload.filter,
    )
    return SearchResponse(results=[SearchResultBody(**asdict(r)) for r in results])
