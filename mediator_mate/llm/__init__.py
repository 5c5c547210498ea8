"""
LLM Package - chat completion client
"""

from .completion_client import CompletionClient, CompletionResult, DEFAULT_BASE_URL

__all__ = ["CompletionClient", "CompletionResult", "DEFAULT_BASE_URL"]
