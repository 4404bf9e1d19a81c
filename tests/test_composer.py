from tesviksor.intake.composer import InstructionComposer
from tesviksor.intake.schema import DecisionKind, IntakeSession, IntakeStatus, TurnDecision, ZoneStatus
from tesviksor.prompt_loader import load_prompt


def completed_session():
    return IntakeSession(
        session_id="s1",
        status=IntakeStatus.COMPLETED,
        sector="tekstil",
        province="Adana",
        district="Merkez",
        osb_status=ZoneStatus.INSIDE,
    )


def test_bypass_uses_general_brief(composer):
    instruction = composer.compose(TurnDecision(kind=DecisionKind.BYPASS))

    assert "uzman bir asistansın" in instruction
    assert "Sıradaki eksik bilgi" not in instruction
    assert "{" not in instruction


def test_start_collection_lists_provisional_sector_and_asks_province(composer):
    decision = TurnDecision(
        kind=DecisionKind.START_COLLECTION,
        session=IntakeSession(session_id="s1"),
        provisional_sector="çorap üretimi yapacağım",
    )

    instruction = composer.compose(decision)

    assert "Sektör: çorap üretimi yapacağım" in instruction
    assert "Sıradaki eksik bilgi: İl" in instruction
    assert "En fazla 2 cümle" in instruction
    assert "tek bir soru" in instruction


def test_collection_without_any_known_slot_asks_sector(composer):
    decision = TurnDecision(kind=DecisionKind.START_COLLECTION, session=IntakeSession(session_id=None))

    instruction = composer.compose(decision)

    assert "(henüz yok)" in instruction
    assert "Sıradaki eksik bilgi: Sektör" in instruction


def test_handoff_uses_calculation_brief_with_all_slots(composer):
    decision = TurnDecision(kind=DecisionKind.HANDOFF, session=completed_session())

    instruction = composer.compose(decision)

    assert "- Sektör: tekstil" in instruction
    assert "- İl: Adana" in instruction
    assert "- İlçe: Merkez" in instruction
    assert "- OSB durumu: OSB içi" in instruction


def test_compose_is_pure(composer):
    decision = TurnDecision(kind=DecisionKind.HANDOFF, session=completed_session())

    assert composer.compose(decision) == composer.compose(decision)
    assert decision.session.status == IntakeStatus.COMPLETED


def test_load_prompt_strips_bom(tmp_path):
    path = tmp_path / "general.txt"
    path.write_bytes("\ufeffMerhaba\n".encode("utf-8"))

    assert load_prompt(path) == "Merhaba"


def test_composer_reads_custom_templates(tmp_path):
    (tmp_path / "general.txt").write_text("GENEL", encoding="utf-8")
    (tmp_path / "collection.txt").write_text("TOPLA {known_slots} -> {next_slot}", encoding="utf-8")
    (tmp_path / "calculation.txt").write_text("HESAP {sector}/{province}/{district}/{osb_status}", encoding="utf-8")
    composer = InstructionComposer(tmp_path)

    decision = TurnDecision(kind=DecisionKind.HANDOFF, session=completed_session())

    assert composer.compose(decision) == "HESAP tekstil/Adana/Merkez/OSB içi"
    assert composer.compose(TurnDecision(kind=DecisionKind.BYPASS)) == "GENEL"
