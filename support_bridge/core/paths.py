"""
Typed document path templates.

Support documents live at slash-separated, Firestore-style paths such as
``users/{userId}/support/default``. A template is parsed and validated once;
afterwards it renders the concrete path for a user and parses a stored path
back into the owning user id.

MongoDB has no nested collections, so a path maps onto storage as:

- collection templates (odd number of segments): documents go into the
  collection named by the last segment and carry the rendered path as
  ``parentPath``;
- document templates (even number of segments): the document goes into the
  collection named by the second-to-last segment, keyed by the rendered path.
"""

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Tuple

from support_bridge.config import settings
from support_bridge.core.exceptions import PathTemplateError

USER_ID_PLACEHOLDER = "{userId}"


class PathKind(str, Enum):
    DOCUMENT = "document"
    COLLECTION = "collection"


@dataclass(frozen=True)
class DocumentPathTemplate:
    """A validated path template with exactly one ``{userId}`` segment."""

    template: str
    kind: PathKind
    segments: Tuple[str, ...]
    user_id_index: int

    @classmethod
    def parse(cls, template: str, kind: PathKind) -> "DocumentPathTemplate":
        if not template or not template.strip():
            raise PathTemplateError(f"Empty {kind.value} path template")

        segments = tuple(template.strip().strip("/").split("/"))
        if any(not segment for segment in segments):
            raise PathTemplateError(f"Path template '{template}' contains an empty segment")

        placeholders = [i for i, segment in enumerate(segments) if segment == USER_ID_PLACEHOLDER]
        if len(placeholders) != 1:
            raise PathTemplateError(
                f"Path template '{template}' must contain exactly one '{USER_ID_PLACEHOLDER}' segment"
            )

        stray = [s for s in segments if s != USER_ID_PLACEHOLDER and ("{" in s or "}" in s)]
        if stray:
            raise PathTemplateError(f"Path template '{template}' has unsupported placeholders: {stray}")

        # Collections sit at odd depths, documents at even depths
        expected_parity = 0 if kind == PathKind.DOCUMENT else 1
        if len(segments) % 2 != expected_parity:
            raise PathTemplateError(
                f"Path template '{template}' has {len(segments)} segments, "
                f"which does not point at a {kind.value}"
            )

        collection_index = len(segments) - 2 if kind == PathKind.DOCUMENT else len(segments) - 1
        if collection_index == placeholders[0]:
            raise PathTemplateError(
                f"Path template '{template}' uses '{USER_ID_PLACEHOLDER}' as its collection name"
            )

        return cls(
            template=template,
            kind=kind,
            segments=segments,
            user_id_index=placeholders[0],
        )

    @property
    def collection_name(self) -> str:
        """Name of the collection the rendered path ends in (or lives in)."""
        if self.kind == PathKind.DOCUMENT:
            return self.segments[-2]
        return self.segments[-1]

    def render(self, user_id: str) -> str:
        if not user_id or "/" in user_id:
            raise PathTemplateError(f"Invalid user id for path '{self.template}': {user_id!r}")
        segments = list(self.segments)
        segments[self.user_id_index] = user_id
        return "/".join(segments)

    def extract_user_id(self, path: str) -> str:
        """Return the user id from a concrete path rendered from this template."""
        parts = path.strip("/").split("/")
        if len(parts) != len(self.segments):
            raise PathTemplateError(f"Path '{path}' does not match template '{self.template}'")

        for index, (part, segment) in enumerate(zip(parts, self.segments)):
            if index == self.user_id_index:
                continue
            if part != segment:
                raise PathTemplateError(f"Path '{path}' does not match template '{self.template}'")

        user_id = parts[self.user_id_index]
        if not user_id:
            raise PathTemplateError(f"Path '{path}' has an empty user id")
        return user_id


@dataclass(frozen=True)
class PathConfig:
    thread_document: DocumentPathTemplate
    messages_collection: DocumentPathTemplate


@lru_cache(maxsize=1)
def get_path_config() -> PathConfig:
    """Parse CONFIG_PATH and MESSAGES_PATH once per process."""
    return PathConfig(
        thread_document=DocumentPathTemplate.parse(settings.CONFIG_PATH, PathKind.DOCUMENT),
        messages_collection=DocumentPathTemplate.parse(settings.MESSAGES_PATH, PathKind.COLLECTION),
    )
