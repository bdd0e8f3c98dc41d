from __future__ import annotations

from askmuni.models import Chunk
from askmuni.retrieval import RetrievalConfig, TemporalRetriever, TemporalSearchConfig


class _StubStore:
    def __init__(self, chunks):
        self._chunks = chunks
        self.calls: list[tuple[str, int]] = []

    def similarity_search(self, query, *, top_k=20):
        self.calls.append((query, top_k))
        return self._chunks[:top_k]

    def count(self):
        return len(self._chunks)


def test_retriever_ranks_candidates_around_query_year():
    store = _StubStore(
        [
            Chunk(text="Projets 2020", score=0.82, filename="2020.pdf", year=2020),
            Chunk(text="", score=0.99, filename="blank.pdf", year=2025),
            Chunk(text="Projets 2025", score=0.78, filename="2025.pdf", year=2025),
        ]
    )
    retriever = TemporalRetriever(store, RetrievalConfig(vector_limit=3))

    result = retriever.retrieve("Quels sont les projets pour 2025?")

    assert store.calls == [("Quels sont les projets pour 2025?", 3)]
    assert [chunk.filename for chunk in result.chunks] == ["2025.pdf"]
    assert result.metadata.original_count == 2
    assert result.metadata.filtered_count == 1
    assert result.duration_seconds >= 0.0


def test_retriever_accepts_per_call_temporal_config():
    store = _StubStore(
        [
            Chunk(text="a", score=0.9, filename="a.pdf", year=2001),
            Chunk(text="b", score=0.8, filename="b.pdf", year=2002),
        ]
    )
    retriever = TemporalRetriever(store)

    empty = retriever.retrieve("Budget 2025")
    fallback = retriever.retrieve("Budget 2025", temporal=TemporalSearchConfig(fallback_to_unfiltered=True))

    assert list(empty.chunks) == []
    assert [chunk.filename for chunk in fallback.chunks] == ["a.pdf", "b.pdf"]
    assert fallback.metadata.temporal_fallback_applied
