"""
Conversation Context Manager - token-budgeted context assembly.
Builds the message list sent to a provider from stored conversation history.
"""
import math
import re
from collections import Counter
from datetime import datetime
from typing import Any, List, Optional, Sequence

from pydantic import Field

from aigateway.core.config import settings
from aigateway.core.logging import get_logger
from aigateway.services.gateway.types import ChatMessage, GatewayModel

logger = get_logger(__name__)

# Fixed overhead charged for the system message on top of its content
SYSTEM_MESSAGE_TOKENS = 50

DEFAULT_TITLE = "New Conversation"

_CJK = re.compile(r"[\u4e00-\u9fff]")
_GREETINGS = ("hello", "hi", "hey", "please", "你好", "請問", "我想", "能否", "可以")
_STOP_WORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "is", "are",
    "can", "you", "me", "my", "what", "how", "的", "了", "在", "是", "我", "你",
}


class ConversationContext(GatewayModel):
    messages: List[ChatMessage] = Field(default_factory=list)
    token_count: int = 0
    max_tokens: Optional[int] = None


def estimate_tokens(text: str) -> int:
    """
    Coarse token estimate: CJK ideographs at 1.5 characters per token,
    everything else at 4.
    """
    cjk = len(_CJK.findall(text))
    other = len(text) - cjk
    return math.ceil(cjk / 1.5 + other / 4)


class ConversationContextManager:
    """Builds bounded, chronologically ordered context windows."""

    def __init__(self, response_reserve: Optional[float] = None):
        self.response_reserve = settings.CONTEXT_RESPONSE_RESERVE if response_reserve is None else response_reserve

    def build_context(
        self,
        recent_messages: Sequence[ChatMessage],
        system_prompt: Optional[str] = None,
        token_budget: Optional[int] = None,
    ) -> ConversationContext:
        """
        Assemble the context for a follow-up request.

        Walks history from newest to oldest and stops at the first message
        that would overflow the budget, so newer turns are never dropped
        before older ones. Without a budget every message is included.

        Args:
            recent_messages: Stored history, oldest first
            system_prompt: Optional instructions placed first
            token_budget: Total token budget; a share is reserved for the reply

        Returns:
            ConversationContext with messages in chronological order
        """
        context: List[ChatMessage] = []
        token_count = 0

        if system_prompt:
            context.append(ChatMessage(role="system", content=system_prompt))
            token_count += estimate_tokens(system_prompt) + SYSTEM_MESSAGE_TOKENS

        if token_budget is None:
            history = list(recent_messages)
            token_count += sum(estimate_tokens(m.content) for m in history)
            return ConversationContext(messages=context + history, token_count=token_count)

        usable = token_budget * (1 - self.response_reserve)
        selected: List[ChatMessage] = []
        for message in reversed(recent_messages):
            message_tokens = estimate_tokens(message.content)
            if token_count + message_tokens > usable:
                break
            selected.append(message)
            token_count += message_tokens
        selected.reverse()

        if len(selected) < len(recent_messages):
            logger.debug(
                "Context truncated",
                kept=len(selected),
                dropped=len(recent_messages) - len(selected),
                token_count=token_count,
                token_budget=token_budget,
            )

        return ConversationContext(messages=context + selected, token_count=token_count, max_tokens=token_budget)

    @staticmethod
    def truncate_context(messages: Sequence[ChatMessage], max_tokens: int) -> List[ChatMessage]:
        """Trailing window under max_tokens that does not open with an assistant turn."""
        kept: List[ChatMessage] = []
        total = 0
        for message in reversed(messages):
            message_tokens = estimate_tokens(message.content)
            if total + message_tokens > max_tokens:
                break
            kept.append(message)
            total += message_tokens
        kept.reverse()

        if kept and kept[0].role == "assistant":
            kept = kept[1:]
        return kept

    @staticmethod
    def generate_conversation_summary(messages: Sequence[ChatMessage], max_length: int = 100) -> str:
        if not messages:
            return "Empty conversation"
        first_user = next((m for m in messages if m.role == "user"), None)
        if first_user is None:
            return "No user messages"
        summary = first_user.content
        if len(summary) > max_length:
            summary = summary[:max_length - 3] + "..."
        return summary

    @staticmethod
    def analyze_conversation_pattern(messages: Sequence[ChatMessage]) -> dict[str, Any]:
        user_count = sum(1 for m in messages if m.role == "user")
        assistant_count = sum(1 for m in messages if m.role == "assistant")
        total_length = sum(len(m.content) for m in messages)
        timestamps: List[datetime] = [m.timestamp for m in messages if m.timestamp is not None]

        return {
            "totalMessages": len(messages),
            "userMessages": user_count,
            "assistantMessages": assistant_count,
            "averageMessageLength": round(total_length / len(messages)) if messages else 0,
            # one turn per user message
            "conversationTurns": user_count,
            "lastActivity": max(timestamps) if timestamps else None,
        }

    @staticmethod
    def should_update_title(title: str, messages: Sequence[ChatMessage]) -> bool:
        """A default or very short title is replaced once two full turns exist."""
        is_default = DEFAULT_TITLE.lower() in title.lower() or "新對話" in title or len(title) < 10
        return is_default and len(messages) >= 4

    @staticmethod
    def _extract_keywords(text: str) -> List[str]:
        words = [
            word.lower()
            for word in re.sub(r"[^\w\s]", " ", text).split()
            if len(word) > 1 and word.lower() not in _STOP_WORDS
        ]
        counts = Counter(words)
        # stable sort keeps first-seen order among equal counts
        return sorted(counts, key=lambda w: -counts[w])

    @classmethod
    def generate_title_suggestion(cls, messages: Sequence[ChatMessage]) -> str:
        first_user = next((m for m in messages if m.role == "user"), None)
        if first_user is None:
            return DEFAULT_TITLE

        title = first_user.content.strip()
        for greeting in _GREETINGS:
            rest = title[len(greeting):]
            # latin greetings must end at a word boundary ("hi" but not "history")
            if title.lower().startswith(greeting) and not (greeting.isascii() and rest[:1].isalnum()):
                title = rest.strip(" ,.!?")
                break

        keywords = cls._extract_keywords(title)
        if keywords:
            title = " ".join(keywords[:3])

        if len(title) > 30:
            title = title[:27] + "..."
        return title or DEFAULT_TITLE
