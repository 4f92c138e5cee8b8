"""
Tag storage for Herald.

Tags are short text snippets stored per guild and looked up by name. This
module holds the in-memory store, the JSON persistence adapter and the
``TagService`` facade that both command surfaces (prefix and slash) call into.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_serializer,
    field_validator,
)

logger = logging.getLogger("herald.tags")

ZERO_WIDTH_SPACE = "\u200b"

# Substrings that would ping people if echoed back verbatim.
_MENTION_TRIGGERS: tuple[tuple[str, str], ...] = (
    ("@everyone", f"@{ZERO_WIDTH_SPACE}everyone"),
    ("@here", f"@{ZERO_WIDTH_SPACE}here"),
    ("<@", f"<@{ZERO_WIDTH_SPACE}"),
)


# ============================================================================
# Errors
# ============================================================================


class TagError(Exception):
    """Base class for tag store errors."""


class TagAlreadyExistsError(TagError):
    """A tag with the same (case-folded) name already exists in the guild."""

    def __init__(self, name: str):
        super().__init__(f"Tag '{name}' already exists")
        self.name = name


class TagNotFoundError(TagError):
    """No tag with the given name exists in the guild."""

    def __init__(self, name: str):
        super().__init__(f"Tag '{name}' not found")
        self.name = name


class TagPersistenceError(TagError):
    """Writing the tag document to disk failed."""


class TagStoreCorruptedError(TagError):
    """The tag document on disk could not be parsed."""


# ============================================================================
# Models
# ============================================================================


class Tag(BaseModel):
    """A stored tag. Tags are never edited in place."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    content: str = Field(
        validation_alias=AliasChoices("content", "Content"),
        description="Literal tag text exactly as submitted",
    )
    owner_id: int = Field(
        ge=0,
        validation_alias=AliasChoices("owner_id", "OwnerId"),
        description="Discord user ID of the tag creator",
    )

    @field_validator("owner_id")
    @classmethod
    def _check_owner_id(cls, owner_id: int) -> int:
        if owner_id >= 2**64:
            raise ValueError("owner_id must fit in 64 bits")
        return owner_id

    @field_serializer("owner_id")
    def _serialize_owner_id(self, owner_id: int) -> str:
        # Snowflakes exceed the safe integer range of many JSON readers.
        return str(owner_id)


_DOCUMENT = TypeAdapter(dict[str, dict[str, Tag]])


def _parse_guild_id(key: str) -> int:
    """Guild IDs are stored as canonical unsigned 64-bit decimal strings."""
    guild_id = int(key)
    if str(guild_id) != key or not 0 <= guild_id < 2**64:
        raise ValueError(f"'{key}' is not a valid guild ID")
    return guild_id


def _unique_keys(pairs: list[tuple[str, object]]) -> dict[str, object]:
    seen = set()
    for key, _ in pairs:
        if key in seen:
            raise ValueError(f"duplicate key '{key}'")
        seen.add(key)
    return dict(pairs)


def normalize_tag_name(name: str) -> str:
    """Fold a tag name to its storage/lookup key."""
    return name.lower()


def defuse_mentions(text: str) -> str:
    """Break ``@everyone``, ``@here`` and user mentions with a zero-width space."""
    for trigger, replacement in _MENTION_TRIGGERS:
        text = text.replace(trigger, replacement)
    return text


def render_tag_content(content: str) -> str:
    """
    Prepare stored tag content for sending.

    Literal ``\\n`` sequences become real newlines, then mentions are defused.
    The stored content itself is never changed.
    """
    return defuse_mentions(content.replace("\\n", "\n"))


# ============================================================================
# Persistence Adapter
# ============================================================================


class JsonTagPersistence:
    """
    Reads and writes the whole tag store as one JSON document.

    Layout: ``{"<guild_id>": {"<tag name>": {"content": ..., "owner_id": "..."}}}``.
    """

    def __init__(self, path: str | Path = "settings.json"):
        self.path = Path(path)

    def load(self) -> dict[int, dict[str, Tag]]:
        """
        Load the document from disk.

        Returns:
            Mapping of guild ID to tag collection. Empty if the file is missing.

        Raises:
            TagStoreCorruptedError: If the file exists but is not a valid document.
        """
        if not self.path.exists():
            logger.info(f"No tag file at {self.path}, starting with an empty store")
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f, object_pairs_hook=_unique_keys)
            document = _DOCUMENT.validate_python(raw)
            guilds: dict[int, dict[str, Tag]] = {}
            for key, tags in document.items():
                guild_id = _parse_guild_id(key)
                for name in tags:
                    if normalize_tag_name(name) != name:
                        raise ValueError(f"tag name '{name}' in guild {key} is not lower-case")
                guilds[guild_id] = dict(tags)
        except (json.JSONDecodeError, ValidationError, ValueError) as e:
            raise TagStoreCorruptedError(
                f"Tag file {self.path} is corrupt and was not loaded: {e}"
            ) from e
        except OSError as e:
            raise TagStoreCorruptedError(f"Could not read tag file {self.path}: {e}") from e

        logger.info(
            f"Loaded {sum(len(t) for t in guilds.values())} tags "
            f"across {len(guilds)} guilds from {self.path}"
        )
        return guilds

    def save(self, guilds: dict[int, dict[str, Tag]]) -> None:
        """
        Atomically replace the document on disk.

        Raises:
            TagPersistenceError: If the document could not be written.
        """
        document = {
            str(guild_id): {name: tag.model_dump(mode="json") for name, tag in tags.items()}
            for guild_id, tags in guilds.items()
        }
        directory = self.path.parent
        tmp_name: Optional[str] = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise TagPersistenceError(f"Failed to write tag file {self.path}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass


# ============================================================================
# Tag Store
# ============================================================================


class TagStore:
    """
    Per-guild tag collections with save-on-write.

    Every mutation holds the store lock across the change and the flush, so a
    flush never observes a half-applied update and writers never interleave.
    """

    def __init__(
        self,
        persistence: JsonTagPersistence,
        guilds: Optional[dict[int, dict[str, Tag]]] = None,
    ):
        self.persistence = persistence
        self._guilds: dict[int, dict[str, Tag]] = guilds if guilds is not None else {}
        self._lock = threading.RLock()
        self.flush_pending = False

    @property
    def lock(self) -> threading.RLock:
        """Store lock; hold it to read ``flush_pending`` together with a mutation."""
        return self._lock

    @classmethod
    def load(cls, path: str | Path = "settings.json") -> TagStore:
        """Build a store from the document at ``path``."""
        persistence = JsonTagPersistence(path)
        return cls(persistence, persistence.load())

    def get_or_create_guild_collection(self, guild_id: int) -> dict[str, Tag]:
        """Get the guild's collection, registering an empty one if needed."""
        with self._lock:
            return self._guilds.setdefault(guild_id, {})

    def add_tag(self, guild_id: int, name: str, content: str, owner_id: int) -> Tag:
        """
        Create a tag.

        Raises:
            TagAlreadyExistsError: If the folded name is already taken.
        """
        key = normalize_tag_name(name)
        with self._lock:
            if key in self._guilds.get(guild_id, {}):
                raise TagAlreadyExistsError(name)
            tag = Tag(content=content, owner_id=owner_id)
            collection = self.get_or_create_guild_collection(guild_id)
            collection[key] = tag
            logger.info(f"Added tag '{key}' in guild {guild_id} (owner {owner_id})")
            self.persist()
            return tag

    def remove_tag(self, guild_id: int, name: str) -> Tag:
        """
        Delete a tag and return it.

        Raises:
            TagNotFoundError: If the guild has no tag with that name.
        """
        key = normalize_tag_name(name)
        with self._lock:
            collection = self._guilds.get(guild_id)
            if not collection or key not in collection:
                raise TagNotFoundError(name)
            tag = collection.pop(key)
            if not collection:
                del self._guilds[guild_id]
            logger.info(f"Removed tag '{key}' from guild {guild_id}")
            self.persist()
            return tag

    def get_tag(self, guild_id: int, name: str) -> Optional[Tag]:
        with self._lock:
            return self._guilds.get(guild_id, {}).get(normalize_tag_name(name))

    def list_tags(self, guild_id: int) -> list[str]:
        """Tag names of a guild in alphabetical order."""
        with self._lock:
            return sorted(self._guilds.get(guild_id, {}))

    def remove_guild(self, guild_id: int) -> bool:
        """
        Drop every tag a guild owns.

        Returns:
            True if the guild had tags, False if there was nothing to remove.
        """
        with self._lock:
            collection = self._guilds.pop(guild_id, None)
            if not collection:
                return False
            logger.info(f"Purged {len(collection)} tags from guild {guild_id}")
            self.persist()
            return True

    def persist(self) -> bool:
        """
        Flush the whole store to disk.

        A failed flush keeps the in-memory state and leaves ``flush_pending``
        set; the next mutation retries it.

        Returns:
            True if the document on disk now matches memory.
        """
        with self._lock:
            try:
                self.persistence.save(self._guilds)
            except TagPersistenceError as e:
                self.flush_pending = True
                logger.error(f"{e}; changes are kept in memory and will be retried")
                return False
            if self.flush_pending:
                logger.info("Pending tag changes flushed to disk")
            self.flush_pending = False
            return True

    def snapshot(self) -> dict[int, dict[str, Tag]]:
        """Copy of the store contents."""
        with self._lock:
            return {guild_id: dict(tags) for guild_id, tags in self._guilds.items()}


# ============================================================================
# Tag Service (used by command surfaces)
# ============================================================================


class TagService:
    """The operations both command surfaces expose to users."""

    def __init__(self, store: TagStore):
        self.store = store

    def show(self, guild_id: int, name: str) -> str:
        """Rendered content of a tag, safe to send."""
        tag = self.store.get_tag(guild_id, name)
        if tag is None:
            raise TagNotFoundError(name)
        return render_tag_content(tag.content)

    def list(self, guild_id: int) -> list[str]:
        return self.store.list_tags(guild_id)

    def add(self, guild_id: int, name: str, content: str, owner_id: int) -> bool:
        """Create a tag. Returns whether the change reached disk."""
        with self.store.lock:
            self.store.add_tag(guild_id, name, content, owner_id)
            return not self.store.flush_pending

    def remove(self, guild_id: int, name: str) -> bool:
        """Delete a tag. Returns whether the change reached disk."""
        with self.store.lock:
            self.store.remove_tag(guild_id, name)
            return not self.store.flush_pending

    def purge(self, guild_id: int) -> bool:
        """Delete all of a guild's tags. False means there was nothing to purge."""
        return self.store.remove_guild(guild_id)
