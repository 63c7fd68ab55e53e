"""
Local Transformers Backend

Runs an open-source causal language model in-process with Hugging Face
transformers. Install with ``pip install convention-reviewer[local]``.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

try:
    from transformers import AutoTokenizer, AutoModelForCausalLM
    import torch
except ImportError as e:
    logger = logging.getLogger(__name__)
    logger.error(f"Required ML dependencies not installed: {e}")
    logger.error("Install with: pip install transformers torch")
    raise

from .base import LanguageModelError, LLMResponse, PromptInput, SyncLanguageModel, render_messages


logger = logging.getLogger(__name__)


@dataclass
class GenerationConfig:
    """Configuration for LLM generation."""
    max_new_tokens: int = 512
    temperature: float = 0.2
    top_p: float = 0.9
    do_sample: bool = True
    pad_token_id: Optional[int] = None


class LocalTransformersModel(SyncLanguageModel):
    """
    Language model backed by a local transformers checkpoint.

    Generation holds a lock: one model instance serves one request at a
    time, concurrent callers queue behind it.
    """

    def __init__(
        self,
        model_name: str,
        device: Optional[str] = None,
        temperature: float = 0.2,
        max_new_tokens: int = 512,
    ):
        """
        Initialize local model.

        Args:
            model_name: Hugging Face model id or local path
            device: Device to run model on ('cpu', 'cuda', etc.)
            temperature: Sampling temperature
            max_new_tokens: Maximum tokens to generate per call
        """
        self.model_name = model_name
        self.name = model_name
        self.device = device or ("cuda" if torch.cuda.is_available() else "cpu")
        self._lock = threading.Lock()

        logger.info(f"Loading LLM model: {model_name}")
        try:
            self.tokenizer = AutoTokenizer.from_pretrained(model_name)
            self.model = AutoModelForCausalLM.from_pretrained(model_name)

            if self.tokenizer.pad_token is None:
                self.tokenizer.pad_token = self.tokenizer.eos_token

            self.model.to(self.device)
            logger.info(f"Model loaded successfully on {self.device}")

        except Exception as e:
            logger.error(f"Failed to load model {model_name}: {e}")
            raise

        self.generation_config = GenerationConfig(
            max_new_tokens=max_new_tokens,
            temperature=temperature,
            do_sample=temperature > 0,
            pad_token_id=self.tokenizer.pad_token_id,
        )

    def _prompt_text(self, prompt: PromptInput) -> str:
        if isinstance(prompt, str):
            return prompt
        if getattr(self.tokenizer, "chat_template", None):
            return self.tokenizer.apply_chat_template(
                [message.to_dict() for message in prompt],
                tokenize=False,
                add_generation_prompt=True,
            )
        return render_messages(prompt)

    def invoke_sync(self, prompt: PromptInput) -> LLMResponse:
        """Generate a completion; the prompt itself is stripped from the output."""
        text = self._prompt_text(prompt)
        config = self.generation_config

        try:
            with self._lock:
                inputs = self.tokenizer(text, return_tensors="pt").to(self.device)
                with torch.no_grad():
                    outputs = self.model.generate(
                        **inputs,
                        max_new_tokens=config.max_new_tokens,
                        temperature=config.temperature if config.do_sample else None,
                        top_p=config.top_p if config.do_sample else None,
                        do_sample=config.do_sample,
                        pad_token_id=config.pad_token_id,
                        eos_token_id=self.tokenizer.eos_token_id,
                        num_return_sequences=1,
                    )
            generated = outputs[0][inputs["input_ids"].shape[1]:]
            content = self.tokenizer.decode(generated, skip_special_tokens=True).strip()
        except Exception as e:
            logger.error(f"Text generation failed: {e}")
            raise LanguageModelError(f"Text generation failed: {e}") from e

        return LLMResponse(content=content, model=self.model_name)
