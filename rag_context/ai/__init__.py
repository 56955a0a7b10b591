"""
rag-context AI Module
=====================

LLM client used to answer chat questions from retrieved context.
"""

from .llm_client import LLMClient, LLMResponse, OpenAIClient, get_llm_client

__all__ = ["LLMClient", "LLMResponse", "OpenAIClient", "get_llm_client"]
