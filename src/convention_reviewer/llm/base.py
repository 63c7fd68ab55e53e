"""
Language Model Contract

Backend-agnostic interface for invoking a language model: a prompt or a
list of chat messages goes in, text comes out.
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union


logger = logging.getLogger(__name__)


class LanguageModelError(Exception):
    """Language model invocation errors (including timeouts)"""
    pass


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role="user", content=content)

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


PromptInput = Union[str, Sequence[ChatMessage]]


@dataclass
class LLMResponse:
    """Text produced by a language model"""
    content: str
    model: Optional[str] = None
    usage: Dict[str, Any] = field(default_factory=dict)


def as_messages(prompt: PromptInput) -> List[ChatMessage]:
    if isinstance(prompt, str):
        return [ChatMessage.user(prompt)]
    return list(prompt)


def render_messages(prompt: PromptInput) -> str:
    """Flatten chat messages into one plain-text prompt"""
    if isinstance(prompt, str):
        return prompt
    sections = []
    for message in prompt:
        sections.append(f"### {message.role.capitalize()}\n{message.content}")
    sections.append("### Assistant\n")
    return "\n\n".join(sections)


def system_text(prompt: PromptInput) -> str:
    """Content of the first message, or the prompt itself"""
    if isinstance(prompt, str):
        return prompt
    return prompt[0].content if prompt else ""


class LanguageModel(ABC):
    """
    Asynchronous language model.

    Implementations must tolerate concurrent ``invoke`` calls. Retries are
    the implementation's business; callers treat any raised exception as a
    failed invocation.
    """

    name: str = "language-model"

    @abstractmethod
    async def invoke(self, prompt: PromptInput) -> LLMResponse:
        """Run the model on a prompt or chat messages"""


class SyncLanguageModel(LanguageModel):
    """Base for blocking backends; ``invoke`` runs them in a worker thread."""

    @abstractmethod
    def invoke_sync(self, prompt: PromptInput) -> LLMResponse:
        """Blocking model call"""

    async def invoke(self, prompt: PromptInput) -> LLMResponse:
        return await asyncio.to_thread(self.invoke_sync, prompt)


async def invoke_with_timeout(
    model: LanguageModel,
    prompt: PromptInput,
    timeout: Optional[float] = None,
) -> LLMResponse:
    """
    Invoke a model under a deadline.

    Args:
        model: Model to call
        prompt: Prompt text or chat messages
        timeout: Seconds before giving up; None waits indefinitely

    Returns:
        LLMResponse

    Raises:
        LanguageModelError: If the call times out or the backend fails
    """
    try:
        return await asyncio.wait_for(model.invoke(prompt), timeout=timeout)
    except asyncio.TimeoutError:
        raise LanguageModelError(f"{model.name} timed out after {timeout}s")
    except LanguageModelError:
        raise
    except Exception as e:
        raise LanguageModelError(f"{model.name} failed: {e}") from e


_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def parse_json_array(content: str) -> List[Any]:
    """
    Extract the outermost JSON array from model output.

    Raises:
        ValueError: If no JSON array can be parsed
    """
    match = _JSON_ARRAY.search(content or "")
    if not match:
        raise ValueError("No JSON array found in model output")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON array: {e}")
    except RecursionError:
        raise ValueError("JSON array is nested too deeply")
    if not isinstance(data, list):
        raise ValueError("Model output is not a JSON array")
    return data


def parse_json_object(content: str) -> Dict[str, Any]:
    """
    Extract the outermost JSON object from model output.

    Raises:
        ValueError: If no JSON object can be parsed
    """
    match = _JSON_OBJECT.search(content or "")
    if not match:
        raise ValueError("No JSON object found in model output")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON object: {e}")
    except RecursionError:
        raise ValueError("JSON object is nested too deeply")
    if not isinstance(data, dict):
        raise ValueError("Model output is not a JSON object")
    return data
