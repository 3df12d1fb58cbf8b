"""Groq LLM Service for warm transfer briefings."""
from warm_transfer.services.groq.llm_service import GroqLLMService, LLMResponse

__all__ = ["GroqLLMService", "LLMResponse"]
