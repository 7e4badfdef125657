"""
LLM Backend Abstraction for deckforge
=====================================

The core only needs one capability from the generative collaborator: take an
ordered list of role-tagged messages and return free-form text, or fail with
an exception. Two adapters are provided over httpx:

1. OllamaLLM             - SOVEREIGN: local Ollama server (/api/chat)
2. OpenAICompatibleLLM   - CLOUD: any OpenAI-compatible /chat/completions endpoint

Request latency is bounded here, through the HTTP client timeout. The
pipeline itself never enforces a timeout.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional
import logging

import httpx

from deckforge.config import LLMConfig
from deckforge.errors import ConfigurationError, GenerationError
from deckforge.logging_utils import mask_secrets

logger = logging.getLogger(__name__)

Message = Dict[str, str]  # {"role": "system"|"user"|"assistant", "content": "..."}


class SovereigntyStatus(str, Enum):
    """Indicates whether prompts leave your machine."""
    SOVEREIGN = "sovereign"
    CLOUD = "cloud"


# =============================================================================
# Base LLM Interface
# =============================================================================

class BaseLLM(ABC):
    """
    Abstract base class for generative backends.

    Subclasses implement _request(); generate() wraps transport failures into
    GenerationError so callers see a single failure type.
    """

    def __init__(
        self,
        model: str,
        base_url: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = client

    @property
    @abstractmethod
    def sovereignty(self) -> SovereigntyStatus:
        """Return the sovereignty status of this backend."""

    @property
    def model_name(self) -> str:
        return self.model

    async def generate(self, messages: List[Message], **params: Any) -> str:
        """
        Send messages and return the generated text.

        Args:
            messages: Ordered role-tagged messages
            **params: Per-call overrides (temperature, max_tokens, model)

        Raises:
            GenerationError: transport failure, non-2xx status, or empty reply
        """
        try:
            if self._client is not None:
                return await self._request(self._client, messages, params)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await self._request(client, messages, params)
        except httpx.HTTPError as e:
            raise GenerationError(mask_secrets(f"{type(e).__name__}: {e}")) from e
        except ValueError as e:
            raise GenerationError(f"Malformed response body: {e}") from e

    @abstractmethod
    async def _request(self, client: httpx.AsyncClient, messages: List[Message], params: Dict[str, Any]) -> str:
        ...

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        message = f"HTTP {response.status_code}"
        try:
            body = response.json()
            error = body.get("error") if isinstance(body, dict) else None
            if isinstance(error, dict) and error.get("message"):
                message = error["message"]
            elif isinstance(error, str):
                message = error
        except ValueError:
            if response.text:
                message = f"HTTP {response.status_code}: {response.text[:200]}"
        raise GenerationError(mask_secrets(message), status_code=response.status_code)


# =============================================================================
# SOVEREIGN: Ollama Backend
# =============================================================================

class OllamaLLM(BaseLLM):
    """
    SOVEREIGN: Ollama backend, 100% local execution.

    Example:
        llm = OllamaLLM("mistral", base_url="http://localhost:11434")
        text = await llm.generate([{"role": "user", "content": "Hello"}])
    """

    def __init__(self, model: str, base_url: str = "http://localhost:11434", **kwargs):
        super().__init__(model, base_url, **kwargs)
        logger.info(f"Initialized OllamaLLM (SOVEREIGN) with model: {model}")

    @property
    def sovereignty(self) -> SovereigntyStatus:
        return SovereigntyStatus.SOVEREIGN

    async def _request(self, client: httpx.AsyncClient, messages: List[Message], params: Dict[str, Any]) -> str:
        payload = {
            "model": params.get("model", self.model),
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": params.get("temperature", self.temperature),
                "num_predict": params.get("max_tokens", self.max_tokens),
            },
        }
        response = await client.post(f"{self.base_url}/api/chat", json=payload, timeout=self.timeout)
        self._raise_for_status(response)
        data = response.json()
        content = (data.get("message") or {}).get("content", "")
        if not content:
            raise GenerationError("Ollama returned an empty message")
        return content.strip()


# =============================================================================
# CLOUD: OpenAI-compatible Backend
# =============================================================================

class OpenAICompatibleLLM(BaseLLM):
    """
    CLOUD: OpenAI-compatible chat completions backend.

    Prompts are sent to an external API. A credential is mandatory and is
    checked at construction time, before any slide is processed.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        base_url: str = "https://api.openai.com/v1",
        **kwargs,
    ):
        if not api_key:
            raise ConfigurationError(
                "API key required for the openai backend. Set DECKFORGE_API_KEY "
                "(or OPENAI_API_KEY) or llm.api_key in deckforge.yaml."
            )
        super().__init__(model, base_url, **kwargs)
        self._api_key = api_key
        logger.warning(f"Initialized OpenAICompatibleLLM (CLOUD) with model: {model}; prompts leave this machine")

    @property
    def sovereignty(self) -> SovereigntyStatus:
        return SovereigntyStatus.CLOUD

    async def _request(self, client: httpx.AsyncClient, messages: List[Message], params: Dict[str, Any]) -> str:
        payload = {
            "model": params.get("model", self.model),
            "messages": messages,
            "temperature": params.get("temperature", self.temperature),
            "max_tokens": params.get("max_tokens", self.max_tokens),
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }
        response = await client.post(
            f"{self.base_url}/chat/completions", json=payload, headers=headers, timeout=self.timeout,
        )
        self._raise_for_status(response)
        data = response.json()
        choices = data.get("choices") or []
        if not choices:
            raise GenerationError("No choices in completion response")
        content = (choices[0].get("message") or {}).get("content")
        if not content:
            raise GenerationError("Empty completion content")
        return content


# =============================================================================
# Factory Function
# =============================================================================

def create_llm_backend(config: LLMConfig, client: Optional[httpx.AsyncClient] = None) -> BaseLLM:
    """
    Create the backend named by config.backend.

    Raises:
        ConfigurationError: unknown backend or missing credential
    """
    common = dict(
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        timeout=config.timeout,
        client=client,
    )
    backend = config.backend.lower()

    if backend == "ollama":
        return OllamaLLM(model=config.model, base_url=config.base_url, **common)

    if backend in ("openai", "chatgpt", "gpt"):
        return OpenAICompatibleLLM(
            model=config.model, api_key=config.api_key, base_url=config.base_url, **common,
        )

    raise ConfigurationError(f"Unknown backend: {config.backend}. Supported: ollama (sovereign), openai (cloud)")
