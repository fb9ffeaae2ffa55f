"""Tests for BlobStore and MediaStore."""

from pathlib import Path

import pytest

from chatforge.store import BlobStore, Character, ConversationStore, Database, MediaStore
from chatforge.store.blobs import PNG_MAGIC, sniff_extension

PNG_BYTES = PNG_MAGIC + b"\x00" * 16


@pytest.fixture
def blobs(tmp_path: Path) -> BlobStore:
    return BlobStore(tmp_path / "blobs", "https://cdn.example.com/media/")


@pytest.fixture
def media(db: Database, blobs: BlobStore) -> MediaStore:
    return MediaStore(db, blobs)


class TestBlobStore:
    """Tests for file-backed blobs."""

    def test_store_and_read(self, blobs: BlobStore):
        storage_id = blobs.store(PNG_BYTES)

        assert storage_id.endswith(".png")
        assert blobs.read(storage_id) == PNG_BYTES

    def test_get_url(self, blobs: BlobStore):
        storage_id = blobs.store(PNG_BYTES)
        assert blobs.get_url(storage_id) == f"https://cdn.example.com/media/{storage_id}"

    def test_missing_blob_has_no_url(self, blobs: BlobStore):
        assert blobs.get_url("missing.png") is None

    def test_empty_data_rejected(self, blobs: BlobStore):
        with pytest.raises(ValueError):
            blobs.store(b"")

    def test_delete(self, blobs: BlobStore):
        storage_id = blobs.store(PNG_BYTES)
        assert blobs.delete(storage_id) is True
        assert blobs.delete(storage_id) is False
        assert blobs.get_url(storage_id) is None

    def test_rejects_path_traversal(self, blobs: BlobStore):
        with pytest.raises(ValueError):
            blobs.read("../secret")

    def test_sniff_extension(self):
        assert sniff_extension(PNG_BYTES) == ".png"
        assert sniff_extension(b"\xff\xd8\xff\xe0rest") == ".jpg"
        assert sniff_extension(b"RIFF\x00\x00\x00\x00WEBPVP8") == ".webp"
        assert sniff_extension(b"plain") == ".bin"


class TestMediaStore:
    """Tests for the media collection."""

    def test_save_and_list(self, media: MediaStore, blobs: BlobStore, user, character):
        storage_id = blobs.store(PNG_BYTES)
        url = blobs.get_url(storage_id)

        saved = media.save_media(user.id, character.id, url, storage_id=storage_id, prompt="a hike")

        items = media.list_for_character(user.id, character.id)
        assert items == [saved]
        assert items[0].media_url == url
        assert items[0].prompt == "a hike"

    def test_list_newest_first(self, media: MediaStore, user, character):
        first = media.save_media(user.id, character.id, "https://x/1.png")
        second = media.save_media(user.id, character.id, "https://x/2.png")

        assert [m.id for m in media.list_for_character(user.id, character.id)] == [
            second.id,
            first.id,
        ]

    def test_unsupported_media_type(self, media: MediaStore, user, character):
        with pytest.raises(ValueError):
            media.save_media(user.id, character.id, "https://x/1.gif", media_type="gif")

    def test_collection_sorting(
        self, media: MediaStore, conversations: ConversationStore, user, character
    ):
        """Collections group by character and sort by time or name."""
        other = conversations.add_character(Character(id="c2", creator_id="x", name="Zoe"))
        media.save_media(user.id, character.id, "https://x/1.png")
        media.save_media(user.id, other.id, "https://x/2.png")

        assert [g.character_name for g in media.list_collection(user.id, "newest")] == ["Zoe", "Mia"]
        assert [g.character_name for g in media.list_collection(user.id, "oldest")] == ["Mia", "Zoe"]
        assert [g.character_name for g in media.list_collection(user.id, "az")] == ["Mia", "Zoe"]
        assert [g.character_name for g in media.list_collection(user.id, "za")] == ["Zoe", "Mia"]

    def test_invalid_sort(self, media: MediaStore, user):
        with pytest.raises(ValueError):
            media.list_collection(user.id, "random")

    def test_delete_removes_blob(self, media: MediaStore, blobs: BlobStore, user, character):
        storage_id = blobs.store(PNG_BYTES)
        saved = media.save_media(
            user.id, character.id, blobs.get_url(storage_id), storage_id=storage_id
        )

        media.delete_media(saved.id, user.id)

        assert media.list_for_character(user.id, character.id) == []
        assert blobs.read(storage_id) is None

    def test_delete_other_users_media(self, media: MediaStore, user, character):
        saved = media.save_media(user.id, character.id, "https://x/1.png")

        with pytest.raises(LookupError):
            media.delete_media(saved.id, "someone-else")
