"""
Language Models

Backend-agnostic model contract, HTTP and local backends, and prompt
construction.
"""

from .base import (
    ChatMessage,
    LanguageModel,
    LanguageModelError,
    LLMResponse,
    SyncLanguageModel,
    invoke_with_timeout,
    parse_json_array,
    parse_json_object,
)
from .factory import TASK_TEMPERATURES, create_language_model
from .http import ChatCompletionsModel
from .prompts import PromptBuilder

__all__ = [
    'ChatMessage',
    'LanguageModel',
    'LanguageModelError',
    'LLMResponse',
    'SyncLanguageModel',
    'invoke_with_timeout',
    'parse_json_array',
    'parse_json_object',
    'TASK_TEMPERATURES',
    'create_language_model',
    'ChatCompletionsModel',
    'PromptBuilder',
]
