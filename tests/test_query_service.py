from __future__ import annotations

from types import SimpleNamespace

from askmuni.models import Chunk, SearchMetadata
from askmuni.retrieval import RetrievalResult
from askmuni.services import HuggingFaceChatGenerator, PromptBuilder, QueryService, TemplateGenerator, build_sources
from askmuni.services.generation import GenerationConfig
from askmuni.services.prompts import LIMITATIONS_NOTICE, NO_ANSWER_REPLY, SYSTEM_PROMPT

_METADATA = SearchMetadata(
    query_year=2025,
    temporal_filter_applied=True,
    temporal_weighting_applied=True,
    original_count=12,
    filtered_count=12,
)


class _StubRetriever:
    def __init__(self, chunks, metadata=_METADATA):
        self._result = RetrievalResult(chunks=chunks, metadata=metadata, duration_seconds=0.01)

    def retrieve(self, query, *, temporal=None):
        return self._result


class _RecordingGenerator:
    def __init__(self):
        self.calls = []

    def generate(self, *, question, system_prompt, user_prompt, chunks):
        self.calls.append(SimpleNamespace(question=question, system_prompt=system_prompt, user_prompt=user_prompt, chunks=chunks))
        return "Réponse"


def _weighted(name: str, year: int | None, page: int | None = 2) -> Chunk:
    return Chunk(
        text=f"Texte {name}",
        score=0.7,
        filename=name,
        page=page,
        year=year,
        temporal_score=0.64 if year else None,
        final_score=0.682 if year else 0.7,
        original_score=0.7 if year else None,
    )


def test_context_block_format():
    context = PromptBuilder().build_context([_weighted("cr-2023.pdf", 2023, page=4), Chunk(text="Brut", score=0.5)])
    first, second = context.split("\n---\n")
    assert first == "[Source: cr-2023.pdf, page 4, année 2023, pertinence temporelle: 64.0%]\nTexte cr-2023.pdf"
    assert second == "[Source: Document]\nBrut"


def test_user_prompt_wraps_context_and_question():
    prompt = PromptBuilder.build_user_prompt("CTX", "Budget ?")
    assert prompt == "Contexte des documents municipaux :\nCTX\n\nQuestion de l'utilisateur : Budget ?"


def test_sources_link_to_year_directory_and_page():
    [dated, legacy, unknown] = build_sources(
        [
            _weighted("budget.pdf", 2024, page=3),
            _weighted("cr-2019-mars.pdf", None, page=None),
            _weighted("notes.pdf", None),
        ],
        base_path="/datas/",
    )
    assert dated.url == "/datas/2024/budget.pdf"
    assert dated.url_with_page == "/datas/2024/budget.pdf#page=3"
    assert dated.score == 0.682
    assert dated.original_score == 0.7
    assert dated.temporal_score == 0.64
    assert legacy.url == "/datas/2019/cr-2019-mars.pdf"
    assert legacy.url_with_page == legacy.url
    assert legacy.original_score == 0.7
    assert unknown.url is None and unknown.url_with_page is None


def test_answer_truncates_context_and_records_prompts():
    chunks = [_weighted(f"cr-{i}.pdf", 2025) for i in range(12)]
    generator = _RecordingGenerator()
    service = QueryService(_StubRetriever(chunks), generator, context_limit=10)

    answer = service.answer("Quels sont les projets pour 2025?")

    assert answer.text == "Réponse"
    assert len(answer.chunks) == 10
    assert len(answer.sources) == 10
    assert answer.search_metadata is _METADATA
    assert answer.system_prompt == SYSTEM_PROMPT
    assert answer.user_prompt.endswith("Question de l'utilisateur : Quels sont les projets pour 2025?")
    assert "cr-9.pdf" in answer.context_text and "cr-10.pdf" not in answer.context_text
    assert answer.latency_ms >= 0
    [call] = generator.calls
    assert len(call.chunks) == 10
    assert call.user_prompt == answer.user_prompt


def test_query_id_is_stable_per_question():
    service = QueryService(_StubRetriever([]))
    assert service.answer("Voirie").query_id == service.answer("Voirie").query_id
    assert service.answer("Voirie").query_id != service.answer("Écoles").query_id


def test_template_generator_cites_best_chunk():
    text = TemplateGenerator().generate(
        question="Budget ?",
        system_prompt="",
        user_prompt="",
        chunks=[_weighted("budget.pdf", 2025)],
    )
    assert "budget.pdf (2025)" in text
    assert "Texte budget.pdf" in text
    assert text.endswith(LIMITATIONS_NOTICE)


def test_template_generator_without_chunks():
    text = TemplateGenerator().generate(question="?", system_prompt="", user_prompt="", chunks=[])
    assert text.startswith("Je n'ai trouvé aucun extrait pertinent")


class _FakeChatClient:
    def __init__(self, content):
        self.content = content
        self.kwargs = None

    def chat_completion(self, **kwargs):
        self.kwargs = kwargs
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def test_chat_generator_sends_system_and_user_messages():
    client = _FakeChatClient("  Les travaux ont commencé.  ")
    generator = HuggingFaceChatGenerator(GenerationConfig(model="m", max_tokens=64), client=client)
    text = generator.generate(question="q", system_prompt="SYS", user_prompt="USER", chunks=[])
    assert text == "Les travaux ont commencé."
    assert client.kwargs["messages"] == [
        {"role": "system", "content": "SYS"},
        {"role": "user", "content": "USER"},
    ]
    assert client.kwargs["model"] == "m"
    assert client.kwargs["max_tokens"] == 64


def test_chat_generator_empty_reply():
    generator = HuggingFaceChatGenerator(client=_FakeChatClient(""))
    assert generator.generate(question="q", system_prompt="s", user_prompt="u", chunks=[]) == NO_ANSWER_REPLY


def test_sources_ignore_non_ascii_digits_in_filename():
    [source] = build_sources([_weighted("cr-٢٠١٩.pdf", None)])
    assert source.url is None
