"""LLM adapter layer for provider-agnostic streaming generation.

- Provider adapters (OpenAI, Gemini) speaking the providers' SSE APIs
- Error classification and normalization
- The Terms-of-Service system instruction
- Feature-flag enforcement

Usage:
    from termsmith.services.llm import LLMRouter, LLMRequest, Turn

    router = LLMRouter(httpx_client, enable_openai=True, enable_gemini=True)
    request = LLMRequest(
        model_name="gemini-2.5-flash-lite",
        messages=[Turn(role="user", content="Hello!")],
        max_tokens=100,
    )
    async for chunk in router.generate_stream("gemini", request, api_key="..."):
        ...

Rules:
- Adapters are async using httpx.AsyncClient
- No retries inside adapters
- No DB access inside adapters
- No logging of request/response bodies
"""

from termsmith.services.llm.adapter import LLMAdapter
from termsmith.services.llm.errors import LLMError, LLMErrorClass, classify_provider_error
from termsmith.services.llm.prompt import build_system_prompt, compose_first_message
from termsmith.services.llm.router import LLMRouter
from termsmith.services.llm.types import LLMChunk, LLMRequest, LLMUsage, Turn

__all__ = [
    # Core types
    "Turn",
    "LLMRequest",
    "LLMChunk",
    "LLMUsage",
    # Adapter interface
    "LLMAdapter",
    # Router
    "LLMRouter",
    # Errors
    "LLMError",
    "LLMErrorClass",
    "classify_provider_error",
    # Prompt
    "build_system_prompt",
    "compose_first_message",
]
