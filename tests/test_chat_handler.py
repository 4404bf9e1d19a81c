import pytest

from tesviksor.chat_handler import GENERATION_FAILED_REPLY, ChatTurnHandler
from tesviksor.intake.controller import COMPLETION_REPLY, SLOT_PROMPTS
from tesviksor.intake.schema import DecisionKind, IntakeStatus, ZoneStatus
from tesviksor.turn_runtime import TurnRunner, TurnStep


def converse(handler, session_id, texts):
    messages = []
    contexts = []
    for text in texts:
        messages.append({"role": "user", "content": text})
        context = handler.handle(session_id, list(messages), "tesvik")
        messages.append({"role": "assistant", "content": context.answer_text})
        contexts.append(context)
    return contexts


def test_trigger_turn_is_generated_in_collection_mode(handler, generator, store):
    (context,) = converse(handler, "s1", ["çorap üretimi yapacağım"])

    assert context.decision.kind == DecisionKind.START_COLLECTION
    assert context.answer_text == generator.text
    assert context.steps_run == ["decide", "compose", "generate", "commit"]
    assert "Sıradaki eksik bilgi: İl" in generator.calls[0]["instruction"]
    assert generator.calls[0]["corpus_id"] == "tesvik"
    assert store.load_active_session("s1").sector == "çorap üretimi yapacağım"


def test_slot_turns_are_deterministic(handler, generator, store):
    contexts = converse(handler, "s1", ["çorap üretimi yapacağım", "Adana'da", "Merkez", "OSB dışında"])

    assert [ctx.answer_text for ctx in contexts[1:]] == [
        SLOT_PROMPTS["district"],
        SLOT_PROMPTS["osb_status"],
        COMPLETION_REPLY,
    ]
    assert all(ctx.citations == [] for ctx in contexts[1:])
    assert contexts[1].steps_run == ["decide", "deterministic_reply", "commit"]
    assert len(generator.calls) == 1

    session = store.load_latest_session("s1")
    assert session.status == IntakeStatus.COMPLETED
    assert session.osb_status == ZoneStatus.OUTSIDE


def test_completed_session_hands_off_with_history(handler, generator):
    contexts = converse(
        handler,
        "s1",
        ["çorap üretimi yapacağım", "Adana'da", "Merkez", "OSB dışında", "Hangi destekleri alırım?"],
    )

    handoff = contexts[-1]
    assert handoff.decision.kind == DecisionKind.HANDOFF
    assert handoff.citations[0]["title"] == "KDV İstisnası"
    call = generator.calls[-1]
    assert "- İl: Adana" in call["instruction"]
    assert "- OSB durumu: OSB dışı" in call["instruction"]
    assert len(call["messages"]) == 9


def test_bypass_uses_general_instruction(handler, generator, store):
    (context,) = converse(handler, "s1", ["Merhaba, nasılsınız?"])

    assert context.decision.kind == DecisionKind.BYPASS
    assert "Sıradaki eksik bilgi" not in generator.calls[0]["instruction"]
    assert store.load_latest_session("s1") is None


def test_generation_failure_returns_apology_and_writes_nothing(controller, composer, store, failing_generator):
    handler = ChatTurnHandler(controller, composer, failing_generator)

    (context,) = converse(handler, "s1", ["çorap üretimi yapacağım"])

    assert context.answer_text == GENERATION_FAILED_REPLY
    assert context.generation_failed is True
    assert "commit" not in context.steps_run
    assert store.load_latest_session("s1") is None


def test_history_without_user_message_is_rejected(handler):
    with pytest.raises(ValueError):
        handler.handle("s1", [{"role": "assistant", "content": "Merhaba"}], "tesvik")


def test_turn_runner_honours_skip_if():
    seen = []
    runner = TurnRunner(
        steps=[
            TurnStep("a", lambda ctx: seen.append("a")),
            TurnStep("b", lambda ctx: seen.append("b"), skip_if=lambda ctx: True),
            TurnStep("c", lambda ctx: seen.append("c")),
        ]
    )

    assert runner.run(object()) == ["a", "c"]
    assert seen == ["a", "c"]
