from __future__ import annotations

import math

import pytest

from askmuni.embeddings.service import (
    EmbeddingConfig,
    HashEmbeddingBackend,
    HuggingFaceEmbeddingBackend,
    as_vector,
)


class _FakeInferenceClient:
    def __init__(self, response):
        self.response = response
        self.calls: list[tuple[str, str]] = []

    def feature_extraction(self, text, model=None):
        self.calls.append((text, model))
        return self.response


def test_hash_embedding_dim_matches_config():
    backend = HashEmbeddingBackend(EmbeddingConfig(dim=64))
    vec = backend.embed_query("budget 2025")
    assert isinstance(vec, tuple)
    assert len(vec) == 64
    assert math.isclose(sum(value * value for value in vec), 1.0, rel_tol=1e-9)


def test_hash_embedding_is_deterministic():
    backend = HashEmbeddingBackend(EmbeddingConfig(dim=32))
    first, second = backend.embed_texts(["voirie", "voirie"])
    assert first == second
    assert backend.embed_query("voirie") == first


def test_as_vector_accepts_flat_and_nested_responses():
    assert as_vector([1, 2, 3]) == (1.0, 2.0, 3.0)
    assert as_vector([[0.5, 0.25]]) == (0.5, 0.25)


def test_as_vector_rejects_empty_response():
    with pytest.raises(ValueError):
        as_vector([])


def test_inference_backend_calls_feature_extraction():
    client = _FakeInferenceClient([[3.0, 4.0]])
    backend = HuggingFaceEmbeddingBackend(
        EmbeddingConfig(provider="inference", dim=2, model="m"),
        client=client,
    )
    vec = backend.embed_query("conseil municipal")
    assert vec == pytest.approx((0.6, 0.8))
    assert client.calls == [("conseil municipal", "m")]
    assert len(backend.embed_texts(["a", "b"])) == 2


def test_hash_provider_matches_hash_backend():
    config = EmbeddingConfig(dim=16)
    assert HuggingFaceEmbeddingBackend(config).embed_query("x") == HashEmbeddingBackend(config).embed_query("x")
    assert HuggingFaceEmbeddingBackend(config).embed_texts([]) == []
