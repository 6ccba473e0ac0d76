"""Shared clients for external services."""

from .chat_completions import ChatCompletion, ChatCompletionsClient, ChatMessage

__all__ = [
    "ChatCompletion",
    "ChatCompletionsClient",
    "ChatMessage",
]
