import pytest

from tesviksor.config import load_settings


def test_defaults(monkeypatch):
    for name in ("GEMINI_MODEL", "INTAKE_KEYWORDS", "RETRIEVAL_TOPK", "SUPPORT_BADGE_ENABLED", "DEFAULT_CORPUS_ID"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.gemini_model == "gemini-2.5-flash"
    assert settings.intake_keywords == ()
    assert settings.retrieval_topk == 6
    assert settings.support_badge_enabled is True
    assert settings.default_corpus_id == "tesvik"
    assert (settings.prompts_dir / "collection.txt").exists()


def test_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("INTAKE_KEYWORDS", "seramik, cam ,")
    monkeypatch.setenv("RETRIEVAL_TOPK", "3")
    monkeypatch.setenv("SUPPORT_BADGE_ENABLED", "0")
    monkeypatch.setenv("DATA_DIR", str(tmp_path))

    settings = load_settings()

    assert settings.intake_keywords == ("seramik", "cam")
    assert settings.retrieval_topk == 3
    assert settings.support_badge_enabled is False
    assert settings.data_dir == tmp_path


def test_invalid_number_raises(monkeypatch):
    monkeypatch.setenv("RETRIEVAL_TOPK", "many")

    with pytest.raises(ValueError):
        load_settings()
