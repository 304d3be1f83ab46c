"""Communication sub-core — channel-agnostic message annotation.

- Tags: flat parsing of allow-listed inline markup
- Mentions: @all / @here / bracketed user id extraction
- Preprocessing: outbound preparation and response annotation
"""

from .tags import (
    DEFAULT_ALLOWED_TAGS,
    Content,
    TagNode,
    TagParser,
    Text,
    format_with_tag,
    parse_tags,
    segments_to_text,
)
from .mentions import (
    MENTION_ALL,
    MENTION_HERE,
    MentionSet,
    create_all_mention,
    create_here_mention,
    create_mention,
    create_message_with_all_mention,
    create_message_with_here_mention,
    create_message_with_mentions,
    extract_mentions,
    has_mentions,
)
from .preprocessing import (
    AnnotatedMessage,
    MessagePreprocessor,
    annotate_response,
    prepare_outbound,
    preprocess_message,
)

__all__ = [
    # Tags
    "DEFAULT_ALLOWED_TAGS",
    "Content",
    "TagNode",
    "TagParser",
    "Text",
    "format_with_tag",
    "parse_tags",
    "segments_to_text",
    # Mentions
    "MENTION_ALL",
    "MENTION_HERE",
    "MentionSet",
    "create_all_mention",
    "create_here_mention",
    "create_mention",
    "create_message_with_all_mention",
    "create_message_with_here_mention",
    "create_message_with_mentions",
    "extract_mentions",
    "has_mentions",
    # Preprocessing
    "AnnotatedMessage",
    "MessagePreprocessor",
    "annotate_response",
    "prepare_outbound",
    "preprocess_message",
]
