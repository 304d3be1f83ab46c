"""Inline markup parsing — extract allow-listed ``[tag]`` markers from text.

Supported syntax:
  [name]          — bare tag
  [name=value]    — tag with a single ``value`` attribute

The parser is flat: it never pairs opening and closing markers and never
builds a tree. ``[spoiler]hidden[/spoiler]`` yields a spoiler tag followed
by the literal text ``hidden[/spoiler]``, because ``/spoiler`` is not an
allowed name. Anything bracketed that is not allow-listed stays literal.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

logger = logging.getLogger("kether.tags")

DEFAULT_ALLOWED_TAGS = frozenset({
    "emoticon", "code", "pre", "img", "url", "spoiler", "quote", "random", "flip",
    "tradeofferlink", "tradeoffer", "sticker", "gameinvite", "og", "roomeffect",
})

TAG_SPOILER = "spoiler"
TAG_CODE = "code"
TAG_URL = "url"
TAG_EMOTICON = "emoticon"


@dataclass
class TagNode:
    """A single recognised tag occurrence. Never owns a body."""
    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    content: None = None

    @property
    def value(self) -> Optional[str]:
        return self.attrs.get("value")

    def to_text(self) -> str:
        if self.value is not None:
            return f"[{self.tag}={self.value}]"
        return f"[{self.tag}]"


@dataclass
class Text:
    """A run of literal text."""
    text: str


Content = Union[Text, TagNode]


class TagParser:
    """Single-pass scanner over a fixed allow-list of tag names."""

    def __init__(self, allowed_tags: Iterable[str] = DEFAULT_ALLOWED_TAGS):
        self.allowed_tags = frozenset(allowed_tags)

    def parse(self, text: str) -> list[Content]:
        """Split text into literal and tag segments.

        Empty input yields ``[Text("")]``, never an empty list.
        """
        if not text:
            return [Text(text)]

        parsed: list[Content] = []
        pending = ""
        i = 0

        while i < len(text):
            start = text.find("[", i)
            if start == -1:
                pending += text[i:]
                break
            end = text.find("]", start)
            if end == -1:
                # Unterminated bracket: the rest is literal
                pending += text[i:]
                break

            pending += text[i:start]
            node = self._parse_tag(text[start + 1:end])
            if node is None:
                pending += text[start:end + 1]
            else:
                if pending:
                    parsed.append(Text(pending))
                    pending = ""
                parsed.append(node)
            i = end + 1

        if pending:
            parsed.append(Text(pending))

        return parsed

    def _parse_tag(self, tag_content: str) -> Optional[TagNode]:
        name, sep, raw_value = tag_content.partition("=")
        name = name.strip()
        if name not in self.allowed_tags:
            return None

        attrs = {}
        value = raw_value.strip() if sep else ""
        if value:
            attrs["value"] = value
        return TagNode(tag=name, attrs=attrs)


_default_parser = TagParser()


def parse_tags(text: str) -> list[Content]:
    """Parse text with the default allow-list."""
    return _default_parser.parse(text)


def segments_to_text(segments: Iterable[Content]) -> str:
    """Render a parsed sequence back to markup text."""
    parts = []
    for segment in segments:
        if isinstance(segment, TagNode):
            parts.append(segment.to_text())
        else:
            parts.append(segment.text)
    return "".join(parts)


# ============================================================
# FORMATTING
# ============================================================
# One formatter per tag type; unknown types pass the message through.

def _format_spoiler(message: str, value: str) -> str:
    return f"[{TAG_SPOILER}]{message}[/{TAG_SPOILER}]"


def _format_code(message: str, value: str) -> str:
    return f"[{TAG_CODE}]{message}[/{TAG_CODE}]"


def _format_url(message: str, value: str) -> str:
    return f"[{TAG_URL}={value}]{message}[/{TAG_URL}]"


def _format_emoticon(message: str, value: str) -> str:
    return f"[{TAG_EMOTICON}:{value}]"


_FORMATTERS = {
    TAG_SPOILER: _format_spoiler,
    TAG_CODE: _format_code,
    TAG_URL: _format_url,
    TAG_EMOTICON: _format_emoticon,
}


def format_with_tag(message: str, tag_type: str, value: str = "") -> str:
    """Wrap a message in markup for the given tag type.

    Args:
        message: Body text (ignored for emoticons)
        tag_type: One of spoiler, code, url, emoticon
        value: Attribute value (URL target or emoticon name)

    Returns:
        The formatted message, or the message unchanged for unknown types.
    """
    formatter = _FORMATTERS.get(tag_type)
    if formatter is None:
        logger.debug(f"No formatter for tag type {tag_type!r}; passing message through")
        return message
    return formatter(message, value)
