"""LLM transport used by action and remediation requests."""

from actionflow.llm.client import HttpLlmClient, LlmClient, normalize_response_text

__all__ = [
    "HttpLlmClient",
    "LlmClient",
    "normalize_response_text",
]
