"""Records read from and written to the conversation store."""

from dataclasses import dataclass


@dataclass(frozen=True)
class User:
    """A chat user and their crystal balance."""

    id: str
    name: str = ""
    crystals: int = 0
    subscription_tier: str = "free"
    language_tag: str | None = None
    auto_translate: bool = True
    primary_persona_id: str | None = None


@dataclass(frozen=True)
class Persona:
    """A name and description the user role-plays as."""

    id: str
    user_id: str
    name: str
    description: str = ""


@dataclass(frozen=True)
class Character:
    """An AI character users chat with.

    Attributes:
        image_prompt_instructions: Style instructions for image generation.
            The first word names the style adapter.
        model: Chat model override, None for the default model.
        visibility: 'public' or 'private'.
    """

    id: str
    creator_id: str
    name: str
    description: str = ""
    instructions: str = ""
    image_prompt_instructions: str = ""
    model: str | None = None
    visibility: str = "public"
    is_archived: bool = False
    is_blacklisted: bool = False


@dataclass(frozen=True)
class Chat:
    """A conversation between a user and a character."""

    id: str
    user_id: str
    character_id: str


@dataclass(frozen=True)
class Message:
    """A chat message.

    A message with ``character_id`` set was authored by the character;
    otherwise by the user. Placeholders start with empty text.
    """

    id: int
    chat_id: str
    character_id: str | None
    text: str = ""
    image_url: str | None = None
    translation: str | None = None
    created_at: str | None = None

    @property
    def from_character(self) -> bool:
        return self.character_id is not None

    @property
    def is_pending(self) -> bool:
        """True while the message is still an unresolved placeholder."""
        return not self.text and not self.image_url


@dataclass(frozen=True)
class Media:
    """A generated image or video in a user's collection."""

    id: int
    user_id: str
    character_id: str
    media_url: str
    storage_id: str | None = None
    media_type: str = "image"
    prompt: str | None = None
    created_at: str | None = None
