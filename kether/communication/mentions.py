"""Mention extraction — broadcast and user-targeted mentions in a message.

Recognised tokens (whole-token matches only, after trimming ``!?,.;``):
  @all            — everyone in the group
  @here           — members currently present
  [U:1:<digits>]  — a specific user
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..ids import UserId

MENTION_ALL = "@all"
MENTION_HERE = "@here"

MENTION_PUNCTUATION = "!?,.;"
USER_MENTION_PREFIX = "[U:1:"
USER_MENTION_SUFFIX = "]"


@dataclass
class MentionSet:
    """Combined mention signals of one message."""
    mentions_everyone: bool = False
    mentions_present: bool = False
    mentioned_ids: list[UserId] = field(default_factory=list)

    def has_any(self) -> bool:
        return self.mentions_everyone or self.mentions_present or bool(self.mentioned_ids)


def _is_user_mention(token: str) -> bool:
    return token.startswith(USER_MENTION_PREFIX) and token.endswith(USER_MENTION_SUFFIX)


def extract_mentions(text: str) -> Optional[MentionSet]:
    """Scan text for mentions.

    Returns:
        A MentionSet with whichever signals fired, or None when none did.
        Malformed id-like tokens are skipped.
    """
    mentions = MentionSet()

    for raw_token in text.split():
        token = raw_token.strip(MENTION_PUNCTUATION)
        if token == MENTION_ALL:
            mentions.mentions_everyone = True
        elif token == MENTION_HERE:
            mentions.mentions_present = True
        elif _is_user_mention(token):
            try:
                mentions.mentioned_ids.append(UserId.parse(token))
            except ValueError:
                continue

    return mentions if mentions.has_any() else None


# ============================================================
# HELPERS
# ============================================================

def create_mention(user_id: UserId) -> str:
    """Mention token for a user, in the form the extractor recognises."""
    return user_id.bracketed()


def create_all_mention() -> str:
    return MENTION_ALL


def create_here_mention() -> str:
    return MENTION_HERE


def has_mentions(text: str) -> bool:
    """Cheap pre-check: True if the text might contain a mention.

    Looser than extract_mentions(); use it only to skip work.
    """
    return MENTION_ALL in text or MENTION_HERE in text or "@" in text or USER_MENTION_PREFIX in text


def create_message_with_mentions(message: str, user_ids: Iterable[UserId]) -> str:
    """Append a mention for each user id to the message."""
    result = message
    for user_id in user_ids:
        result += f" {create_mention(user_id)}"
    return result


def create_message_with_all_mention(message: str) -> str:
    return f"{MENTION_ALL} {message}"


def create_message_with_here_mention(message: str) -> str:
    return f"{MENTION_HERE} {message}"
