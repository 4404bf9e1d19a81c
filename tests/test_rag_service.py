import pytest

from tesviksor.gemini_client import _flatten_contents, _normalize_model_name, to_contents
from tesviksor.knowledge import corpus_store as corpus_store_module
from tesviksor.knowledge.corpus_store import CorpusStore
from tesviksor.rag_service import BADGE_TAG, GenerationError, RagService, should_append_badge

DOCUMENT = """# Teşvik Rehberi

## Destek Unsurları

### KDV İstisnası
Yatırım malı makine ve teçhizat için KDV ödenmez.

### Gümrük Vergisi Muafiyeti
İthal makineler için gümrük vergisi ödenmez.

## Bölgeler
Altıncı bölgede destekler en yüksektir.
"""


class FakeGemini:
    def __init__(self, answer="Yatırımınız için KDV istisnası uygulanır.", error=None):
        self.answer = answer
        self.error = error
        self.calls = []

    def generate_content(self, contents, system_instruction=None, **kwargs):
        self.calls.append({"contents": contents, "system_instruction": system_instruction})
        if self.error:
            raise self.error
        return self.answer


@pytest.fixture
def corpus_store(tmp_path):
    corpus = tmp_path / "tesvik"
    corpus.mkdir()
    (corpus / "rehber.md").write_text(DOCUMENT, encoding="utf-8")
    return CorpusStore(tmp_path)


def test_chunk_markdown_splits_on_headings(corpus_store):
    chunks = corpus_store.load_chunks("tesvik")

    assert [chunk["title"] for chunk in chunks] == ["KDV İstisnası", "Gümrük Vergisi Muafiyeti", "Bölgeler"]
    assert chunks[0]["section"] == "Destek Unsurları"
    assert chunks[0]["document"] == "rehber"


def test_retrieve_topk_ranks_matching_chunk_first(corpus_store):
    results = corpus_store.retrieve_topk("tesvik", "KDV istisnası var mı?", topk=2)

    assert results[0]["title"] == "KDV İstisnası"


def test_unknown_corpus_is_empty_and_invalid_id_rejected(corpus_store):
    assert corpus_store.retrieve_topk("yok", "KDV") == []
    with pytest.raises(ValueError):
        corpus_store.load_chunks("../etc")


def test_generate_grounds_instruction_and_returns_citations(corpus_store):
    gemini = FakeGemini()
    service = RagService(gemini, corpus_store, topk=2, support_badge=False)
    messages = [
        {"role": "user", "content": "Merhaba"},
        {"role": "assistant", "content": "Size nasıl yardımcı olabilirim?"},
        {"role": "user", "content": "KDV istisnası var mı?"},
    ]

    result = service.generate("TALİMAT", messages, "tesvik")

    assert result.text == gemini.answer
    assert result.citations[0]["title"] == "KDV İstisnası"
    assert result.citations[0]["source"] == "rehber"
    instruction = gemini.calls[0]["system_instruction"]
    assert instruction.startswith("TALİMAT")
    assert "Bilgi Bankası İçeriği:" in instruction
    assert [entry["role"] for entry in gemini.calls[0]["contents"]] == ["user", "model", "user"]


def test_generate_appends_support_badge(corpus_store):
    service = RagService(FakeGemini(), corpus_store, support_badge=True)

    result = service.generate("TALİMAT", [{"role": "user", "content": "KDV"}], "tesvik")

    assert result.text.endswith(BADGE_TAG)


def test_generate_wraps_model_errors(corpus_store):
    service = RagService(FakeGemini(error=RuntimeError("quota")), corpus_store)

    with pytest.raises(GenerationError):
        service.generate("TALİMAT", [{"role": "user", "content": "KDV"}], "tesvik")


def test_generate_rejects_empty_answer(corpus_store):
    service = RagService(FakeGemini(answer=""), corpus_store)

    with pytest.raises(GenerationError):
        service.generate("TALİMAT", [{"role": "user", "content": "KDV"}], "tesvik")


def test_should_append_badge():
    assert should_append_badge("Teşvik belgesi için başvuru yapılır.") is True
    assert should_append_badge("Merhaba!") is False


def test_gemini_content_helpers():
    contents = to_contents([{"role": "user", "content": "Soru"}, {"role": "assistant", "content": ""}])

    assert contents == [{"role": "user", "parts": [{"text": "Soru"}]}]
    assert _flatten_contents(contents) == "USER: Soru"
    assert _normalize_model_name(" models/gemini-2.5-flash ") == "gemini-2.5-flash"


def test_corpus_store_module_is_documented():
    assert corpus_store_module.__doc__.startswith("Markdown document corpora")
