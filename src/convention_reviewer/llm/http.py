"""
Chat Completions Backend

Language model served over an OpenAI-compatible ``/chat/completions`` HTTP
API. Requests go through a ``requests`` session with a urllib3 retry
strategy and run in a worker thread so concurrent invocations don't block
the event loop.
"""

import logging
import threading
from typing import Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .base import LanguageModelError, LLMResponse, PromptInput, SyncLanguageModel, as_messages


logger = logging.getLogger(__name__)


class ChatCompletionsModel(SyncLanguageModel):
    """
    Language model client for OpenAI-compatible chat completion endpoints.

    Works with OpenAI, OpenRouter, vLLM, Ollama and similar servers.
    """

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: str = "https://api.openai.com/v1",
        temperature: float = 0.2,
        max_tokens: int = 2048,
        request_timeout: float = 60.0,
    ):
        """
        Initialize chat completions client.

        Args:
            model: Model name sent with every request
            api_key: Bearer token, if the server requires one
            base_url: API base URL (without ``/chat/completions``)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            request_timeout: Per-request socket timeout in seconds
        """
        self.model = model
        self.name = model
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.request_timeout = request_timeout
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        # Sessions are not thread-safe; each worker thread gets its own.
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._create_session()
            self._local.session = session
        return session

    def _create_session(self) -> requests.Session:
        """Create requests session with retry strategy and authentication."""
        session = requests.Session()

        retry_strategy = Retry(
            total=3,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["POST"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': 'Convention-Reviewer/1.0',
        })
        if self.api_key:
            session.headers['Authorization'] = f'Bearer {self.api_key}'

        return session

    def _build_payload(self, prompt: PromptInput) -> Dict:
        return {
            'model': self.model,
            'messages': [message.to_dict() for message in as_messages(prompt)],
            'temperature': self.temperature,
            'max_tokens': self.max_tokens,
        }

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            error = response.json().get('error')
        except (ValueError, AttributeError):
            return response.text[:200] or 'Unknown error'
        if isinstance(error, dict):
            return error.get('message', 'Unknown error')
        return str(error or 'Unknown error')

    def invoke_sync(self, prompt: PromptInput) -> LLMResponse:
        """
        Send one chat completion request.

        Raises:
            LanguageModelError: On transport errors, non-2xx responses or
                responses without a message
        """
        url = f"{self.base_url}/chat/completions"
        payload = self._build_payload(prompt)

        try:
            response = self.session.post(url, json=payload, timeout=self.request_timeout)
        except requests.RequestException as e:
            logger.error(f"Request to {url} failed: {e}")
            raise LanguageModelError(f"Request failed: {str(e)}")

        if not response.ok:
            raise LanguageModelError(
                f"Model API error: {response.status_code} - {self._error_message(response)}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise LanguageModelError(f"Model API returned invalid JSON: {e}")
        choices: List[Dict] = data.get('choices') or []
        if not choices:
            raise LanguageModelError("Model API returned no choices")

        content = (choices[0].get('message') or {}).get('content') or ""
        logger.debug(f"{self.model} returned {len(content)} characters")

        return LLMResponse(
            content=content,
            model=data.get('model', self.model),
            usage=data.get('usage') or {},
        )
