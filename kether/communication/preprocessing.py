"""Message preprocessing — annotate messages with parsed markup and mentions.

Every outbound and inbound message flows through the same parser and
extractor. Outbound messages get a provisional record; server responses
and notifications produce the final one.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from .mentions import MentionSet, extract_mentions
from .tags import Content, TagParser

logger = logging.getLogger("kether.preprocessing")


@dataclass
class AnnotatedMessage:
    """A message with its parsed markup, mentions and server metadata.

    ``sequence_ordinal == 0`` is a valid ordinal; ``None`` means not yet known.
    ``original_text`` cannot be reassigned once set.
    """
    original_text: str
    wire_text: str
    parsed_content: list[Content]
    mentions: Optional[MentionSet] = None
    server_timestamp: Optional[int] = None
    sequence_ordinal: Optional[int] = None
    warnings: list[str] = field(default_factory=list, compare=False)
    _backfilled: bool = field(default=False, init=False, repr=False, compare=False)

    def __setattr__(self, name, value):
        if name == "original_text" and "original_text" in self.__dict__:
            raise AttributeError("original_text is immutable once set")
        super().__setattr__(name, value)

    @property
    def is_deliverable(self) -> bool:
        """True once both timestamp and ordinal are known (needed for deletion)."""
        return self.server_timestamp is not None and self.sequence_ordinal is not None

    def backfill_delivery(self, sequence_ordinal: int, server_timestamp: int) -> None:
        """Set the late-bound delivery fields. Allowed once per message."""
        if self._backfilled:
            raise RuntimeError("delivery metadata already backfilled")
        self.sequence_ordinal = sequence_ordinal
        self.server_timestamp = server_timestamp
        self._backfilled = True


class _TextNotification(Protocol):
    message: str
    timestamp: int
    ordinal: int


class MessagePreprocessor:
    """Builds AnnotatedMessage records from raw and server-confirmed text."""

    def __init__(self, parser: Optional[TagParser] = None):
        self.parser = parser or TagParser()

    def preprocess(self, text: str) -> AnnotatedMessage:
        """Provisional record for text that has not been through the server."""
        logger.debug(f"Preprocessing message ({len(text)} chars)")
        return AnnotatedMessage(
            original_text=text,
            wire_text=text,
            parsed_content=self.parser.parse(text),
            mentions=extract_mentions(text),
        )

    @staticmethod
    def prepare_for_sending(raw_text: str) -> str:
        """Unescape ``\\[`` and ``\\]`` so literal brackets reach the wire."""
        return raw_text.replace("\\[", "[").replace("\\]", "]")

    def prepare_outbound(self, raw_text: str) -> tuple[AnnotatedMessage, str]:
        """Annotate raw text for display and compute its wire rendering.

        Returns:
            Tuple of (provisional record, wire_text)
        """
        wire_text = self.prepare_for_sending(raw_text)
        message = self.preprocess(raw_text)
        message.wire_text = wire_text
        return message, wire_text

    def annotate_response(
        self,
        original_text: str,
        server_text: str,
        server_timestamp: int,
        raw_ordinal: Optional[int],
    ) -> AnnotatedMessage:
        """Final record built from the server's rendering of a message.

        Parsing runs over ``server_text`` since the server may have altered
        it. The ordinal is stored as given; 0 is kept as 0. ``None`` is only
        for responses that lack the field entirely.
        """
        return AnnotatedMessage(
            original_text=original_text,
            wire_text=server_text,
            parsed_content=self.parser.parse(server_text),
            mentions=extract_mentions(server_text),
            server_timestamp=server_timestamp,
            sequence_ordinal=raw_ordinal,
        )

    def update_from_notification(
        self,
        message: AnnotatedMessage,
        notification: _TextNotification,
    ) -> AnnotatedMessage:
        """New record keeping the original text, re-annotated from a notification."""
        return self.annotate_response(
            message.original_text,
            notification.message,
            notification.timestamp,
            notification.ordinal,
        )


_default_preprocessor = MessagePreprocessor()


def preprocess_message(text: str) -> AnnotatedMessage:
    return _default_preprocessor.preprocess(text)


def prepare_outbound(raw_text: str) -> tuple[AnnotatedMessage, str]:
    return _default_preprocessor.prepare_outbound(raw_text)


def annotate_response(
    original_text: str,
    server_text: str,
    server_timestamp: int,
    raw_ordinal: Optional[int],
) -> AnnotatedMessage:
    return _default_preprocessor.annotate_response(
        original_text, server_text, server_timestamp, raw_ordinal
    )
