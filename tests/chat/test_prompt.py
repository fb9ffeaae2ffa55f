"""Tests for the reply prompt builder."""

from chatforge.chat import PERSONA_TOKEN, build_system_prompt, clean_reply, select_history
from chatforge.chat.prompt import build_identity, to_provider_messages
from chatforge.store import Character, Message


def msg(id: int, text: str, from_character: bool = False) -> Message:
    return Message(id=id, chat_id="chat1", character_id="c1" if from_character else None, text=text)


class TestBuildIdentity:
    def test_instructions_win(self):
        character = Character(
            id="c1", creator_id="x", name="Mia", description="A barista.", instructions="Be Mia."
        )
        assert build_identity(character) == "Be Mia."

    def test_name_and_description(self):
        character = Character(id="c1", creator_id="x", name="Mia", description="A barista.")
        assert build_identity(character) == "You are Mia. A barista."

    def test_name_only(self):
        assert build_identity(Character(id="c1", creator_id="x", name="Mia")) == "You are Mia."


class TestBuildSystemPrompt:
    """Tests for assembling the system prompt."""

    def test_sections_in_order(self, character: Character):
        memory = "\n\n[What you know about Sam]\n- Likes tea"

        prompt = build_system_prompt(character, "Sam", memory)

        assert prompt.startswith("You are Mia. A barista who loves hiking.")
        assert prompt.index("[What you know about Sam]") < prompt.index("[How you write]")
        assert "react to what Sam said" in prompt

    def test_without_memory(self, character: Character):
        prompt = build_system_prompt(character, "Sam")
        assert "[What you know" not in prompt
        assert "[How you write]" in prompt


class TestSelectHistory:
    """Tests for choosing the history sent to the model."""

    def test_skips_pending_placeholders(self):
        history = select_history([msg(1, "hi"), msg(2, "", from_character=True), msg(3, "still there?")])

        assert [m.id for m in history] == [1, 3]

    def test_drops_trailing_character_message(self):
        history = select_history([msg(1, "hi"), msg(2, "hey!", from_character=True)])

        assert [m.id for m in history] == [1]

    def test_regenerate_window_ends_on_user_turn(self):
        """Regenerating reply 4 uses only what came before it."""
        messages = [
            msg(1, "hi"),
            msg(2, "hey you", from_character=True),
            msg(3, "how was work?"),
        ]

        history = select_history(messages)

        assert history[-1].id == 3
        assert not history[-1].from_character

    def test_empty(self):
        assert select_history([]) == []


class TestProviderMessages:
    def test_roles_and_persona_token(self):
        history = [msg(1, "hi"), msg(2, f"hello {PERSONA_TOKEN}!", from_character=True), msg(3, "sup")]

        messages = to_provider_messages("system text", history, "Sam")

        assert messages[0] == {"role": "system", "content": "system text"}
        assert [m["role"] for m in messages[1:]] == ["user", "assistant", "user"]
        assert messages[2]["content"] == "hello Sam!"


class TestCleanReply:
    def test_replaces_token_and_trailing_hashes(self):
        assert clean_reply(f"  hey {PERSONA_TOKEN} ###", "Sam") == "hey Sam"

    def test_whitespace_only(self):
        assert clean_reply("   ", "Sam") == ""

    def test_inner_hashes_kept(self):
        assert clean_reply("#1 fan", "Sam") == "#1 fan"
