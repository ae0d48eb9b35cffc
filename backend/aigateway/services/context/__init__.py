"""
Conversation context module.
Builds token-budgeted message windows from conversation history.
"""
from aigateway.services.context.manager import (
    ConversationContext,
    ConversationContextManager,
    estimate_tokens,
)

__all__ = ["ConversationContext", "ConversationContextManager", "estimate_tokens"]
