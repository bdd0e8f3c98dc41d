"""Vector store implementations."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, Sequence

import chromadb
import httpx
from chromadb.api import ClientAPI
from chromadb.api.types import Documents, Embeddings as ChromaEmbeddings, IDs, Metadatas

from askmuni.embeddings.service import EmbeddingBackend
from askmuni.models import Chunk, IndexedChunk


class VectorStoreError(RuntimeError):
    """Raised when the vector search backend answers with an error."""


class EmbeddingStore(Protocol):
    """Protocol for vector search backends."""

    def similarity_search(self, query: str, *, top_k: int = 20) -> Sequence[Chunk]:
        """Return up to ``top_k`` scored chunks for the query string."""

    def count(self) -> int:
        """Return total number of stored chunks."""

    def close(self) -> None:
        """Release connections held by the store."""


class QdrantHttpStore:
    """Searches a Qdrant collection through its REST API."""

    def __init__(
        self,
        embedding_backend: EmbeddingBackend,
        url: str,
        collection_name: str = "municipal_council_minutes",
        *,
        api_key: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["api-key"] = api_key
        self._client = http_client or httpx.Client(base_url=url.rstrip("/"), timeout=timeout)
        self._headers = headers
        self._collection = collection_name
        self._backend = embedding_backend

    def similarity_search(self, query: str, *, top_k: int = 20) -> Sequence[Chunk]:
        if top_k <= 0:
            return []
        vector = list(self._backend.embed_query(query))
        response = self._client.post(
            f"/collections/{self._collection}/points/search",
            headers=self._headers,
            json={"vector": vector, "limit": top_k, "with_payload": True, "with_score": True},
        )
        body = self._json(response)
        if response.is_error:
            raise VectorStoreError(self._error_message(body, response))
        return self._deserialize_points(body.get("result") or [])

    def count(self) -> int:
        response = self._client.get(f"/collections/{self._collection}", headers=self._headers)
        body = self._json(response)
        if response.is_error:
            raise VectorStoreError(self._error_message(body, response))
        result = body.get("result") or {}
        return int(result.get("points_count") or 0)

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def _deserialize_points(points: Iterable[Mapping[str, Any]]) -> list[Chunk]:
        chunks: list[Chunk] = []
        for point in points:
            payload = point.get("payload") or {}
            if not payload.get("text"):
                continue
            chunks.append(Chunk.from_payload(payload, float(point.get("score") or 0.0)))
        return chunks

    @staticmethod
    def _json(response: httpx.Response) -> Mapping[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _error_message(body: Mapping[str, Any], response: httpx.Response) -> str:
        status = body.get("status")
        if isinstance(status, dict) and status.get("error"):
            return str(status["error"])
        return f"Qdrant search failed with HTTP {response.status_code}"


class ChromaEmbeddingStore:
    """Chroma-backed store for local development and tests."""

    def __init__(
        self,
        embedding_backend: EmbeddingBackend,
        collection_name: str = "municipal_council_minutes",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif persist_directory is not None:
            self._client = chromadb.PersistentClient(path=str(persist_directory))
        else:
            self._client = chromadb.EphemeralClient()
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )
        self._backend = embedding_backend

    def upsert(self, chunks: Sequence[IndexedChunk]) -> Sequence[str]:
        if not chunks:
            return []
        ids: IDs = [chunk.chunk_id for chunk in chunks]
        documents: Documents = [chunk.text for chunk in chunks]
        metadatas: Metadatas = [self._serialize_chunk(chunk) for chunk in chunks]
        vectors: ChromaEmbeddings = [list(vector) for vector in self._backend.embed_texts(documents)]
        self._collection.upsert(ids=ids, documents=documents, embeddings=vectors, metadatas=metadatas)
        return list(ids)

    def similarity_search(self, query: str, *, top_k: int = 20) -> Sequence[Chunk]:
        if top_k <= 0:
            return []
        vector = list(self._backend.embed_query(query))
        results = self._collection.query(query_embeddings=[vector], n_results=top_k)
        return self._deserialize_results(results)

    def count(self) -> int:
        return int(self._collection.count())

    def close(self) -> None:
        """Nothing to release: the Chroma client is owned by the caller or by chromadb."""

    @staticmethod
    def _serialize_chunk(chunk: IndexedChunk) -> dict[str, Any]:
        metadata = chunk.to_payload()
        metadata.pop("text", None)
        return metadata

    def _deserialize_results(self, results: Mapping[str, object]) -> Sequence[Chunk]:
        documents = self._first(results.get("documents", []))
        metadatas = self._first(results.get("metadatas", []))
        distances = self._first(results.get("distances", []))
        retrieved: list[Chunk] = []
        if not documents:
            return retrieved
        metadatas = list(metadatas or []) or [{}] * len(documents)
        distances = list(distances or []) or [None] * len(documents)
        for document, metadata, distance in zip(documents, metadatas, distances, strict=False):
            if not document:
                continue
            payload = dict(metadata or {})
            payload["text"] = document
            score = 1.0 - float(distance) if distance is not None else 0.0
            retrieved.append(Chunk.from_payload(payload, score))
        return retrieved

    @staticmethod
    def _first(value: object) -> Iterable:
        if isinstance(value, list):
            return value[0] if value else []
        return []
