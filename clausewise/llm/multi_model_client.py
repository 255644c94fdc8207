# clausewise/llm/multi_model_client.py

import os
import logging
import time
from typing import Optional, Dict

import google.generativeai as genai
from openai import OpenAI

from clausewise.config import (
    GEMINI_GENERATION_MODEL,
    OPENAI_GENERATION_MODEL,
    LLM_TEMPERATURE,
    LLM_MAX_TOKENS,
    GENERATION_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


class MultiModelLLMClient:
    """
    Multi-provider text generation client.

    Fallback order (STRICT):

    1. Gemini (primary)
    2. OpenAI (secondary)

    A provider is only tried when its API key is configured.
    """

    def __init__(
        self,
        gemini_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        timeout: float = GENERATION_TIMEOUT_SECONDS,
    ):

        self._timeout = timeout

        self.gemini_model = None
        self.openai: Optional[OpenAI] = None

        self.gemini_available = False
        self.openai_available = False

        self._init_gemini(gemini_api_key or os.getenv("GEMINI_API_KEY"))
        self._init_openai(openai_api_key or os.getenv("OPENAI_API_KEY"))

        logger.info(
            "LLM initialization complete",
            extra={
                "gemini_available": self.gemini_available,
                "openai_available": self.openai_available,
            },
        )

    # ============================================================
    # INITIALIZATION
    # ============================================================

    def _init_gemini(self, key: Optional[str]):

        if not key:
            logger.warning("Gemini API key missing")
            return

        try:

            genai.configure(api_key=key)

            self.gemini_model = genai.GenerativeModel(
                model_name=GEMINI_GENERATION_MODEL,
                generation_config={
                    "temperature": LLM_TEMPERATURE,
                    "max_output_tokens": LLM_MAX_TOKENS,
                },
            )

            self.gemini_available = True

            logger.info("Gemini initialized successfully")

        except Exception as e:

            logger.error(
                "Gemini initialization failed",
                extra={"error": str(e)},
            )

    def _init_openai(self, key: Optional[str]):

        if not key:
            logger.warning("OpenAI API key missing")
            return

        try:

            self.openai = OpenAI(api_key=key, timeout=self._timeout)

            self.openai_available = True

            logger.info("OpenAI initialized successfully")

        except Exception as e:

            logger.error(
                "OpenAI initialization failed",
                extra={"error": str(e)},
            )

    # ============================================================
    # PUBLIC API
    # ============================================================

    def generate(self, prompt: str) -> str:

        logger.info(
            "LLM request started",
            extra={
                "gemini_available": self.gemini_available,
                "openai_available": self.openai_available,
                "prompt_length": len(prompt),
            },
        )

        if self.gemini_available:

            try:

                return self._timed_call(
                    provider="gemini",
                    fn=self._generate_gemini,
                    prompt=prompt,
                )

            except Exception as e:

                logger.warning(
                    "Gemini failed",
                    extra={"error": str(e)},
                )

        if self.openai_available:

            return self._timed_call(
                provider="openai",
                fn=self._generate_openai,
                prompt=prompt,
            )

        raise RuntimeError("No LLM backend available")

    # ============================================================
    # PROVIDERS
    # ============================================================

    def _generate_gemini(self, prompt: str) -> str:

        response = self.gemini_model.generate_content(
            prompt,
            request_options={"timeout": self._timeout},
        )

        if not response or not response.text:
            raise RuntimeError("Gemini returned empty response")

        return response.text.strip()

    def _generate_openai(self, prompt: str) -> str:

        response = self.openai.chat.completions.create(
            model=OPENAI_GENERATION_MODEL,
            messages=[
                {
                    "role": "user",
                    "content": prompt,
                },
            ],
            temperature=LLM_TEMPERATURE,
            max_tokens=LLM_MAX_TOKENS,
        )

        text = response.choices[0].message.content

        if not text:
            raise RuntimeError("OpenAI returned empty response")

        return text.strip()

    # ============================================================
    # LATENCY OBSERVABILITY
    # ============================================================

    def _timed_call(self, provider: str, fn, prompt: str):

        start = time.time()

        result = fn(prompt)

        latency = time.time() - start

        logger.info(
            "LLM provider success",
            extra={
                "provider": provider,
                "latency_seconds": round(latency, 3),
            },
        )

        return result

    # ============================================================
    # STATUS
    # ============================================================

    def get_usage_stats(self) -> Dict:

        return {
            "gemini_available": self.gemini_available,
            "openai_available": self.openai_available,
        }
