"""
Model Factory

Creates language model backends for pipeline tasks from configuration.
"""

import logging
from typing import Dict

from .base import LanguageModel


logger = logging.getLogger(__name__)


TASK_TEMPERATURES: Dict[str, float] = {
    "learner": 0.3,
    "reviewer": 0.2,
    "tutor": 0.5,
    "feedback": 0.3,
}


def create_language_model(llm_config, task: str = "reviewer") -> LanguageModel:
    """
    Create a language model for a pipeline task.

    Args:
        llm_config: LLMConfig section of the application config
        task: One of learner, reviewer, tutor, feedback

    Returns:
        LanguageModel instance

    Raises:
        ValueError: If the provider is unknown
    """
    temperature = llm_config.task_temperatures.get(task, TASK_TEMPERATURES.get(task, 0.2))

    if llm_config.provider == "local":
        # transformers/torch are an optional extra; import only when asked for
        from .local import LocalTransformersModel

        logger.info(f"Creating local model {llm_config.model_name} for {task}")
        return LocalTransformersModel(
            model_name=llm_config.model_name,
            device=llm_config.device,
            temperature=temperature,
            max_new_tokens=llm_config.max_tokens,
        )

    if llm_config.provider == "chat":
        from .http import ChatCompletionsModel

        logger.info(f"Creating chat completions model {llm_config.model_name} for {task}")
        return ChatCompletionsModel(
            model=llm_config.model_name,
            api_key=llm_config.api_key,
            base_url=llm_config.base_url,
            temperature=temperature,
            max_tokens=llm_config.max_tokens,
            request_timeout=llm_config.request_timeout,
        )

    raise ValueError(f"Unknown LLM provider: {llm_config.provider}")
