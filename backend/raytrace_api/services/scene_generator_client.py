"""
Text-generation client for AI scene requests.

Turns a free-text scene description into C++ source code by asking the
configured text-generation provider, primed with few-shot examples.
"""

import logging
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import httpx
import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..config import settings
from ..middleware import UpstreamError

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"
INSTRUCTION_TEMPLATE = "generate_scene.j2"
EXAMPLES_FILE = "examples.yaml"


class SceneGeneratorClient(ABC):
    """Abstract interface for text-generation providers."""

    @abstractmethod
    async def generate_source(self, prompt: str) -> str:
        """
        Generate scene source code from a free-text description.

        Args:
            prompt: User's scene description

        Returns:
            str: Raw generated text (may still contain markdown fences)

        Raises:
            UpstreamError: Provider unreachable or reply malformed
        """
        pass


@lru_cache(maxsize=1)
def _load_examples() -> dict[str, Any]:
    with open(PROMPTS_DIR / EXAMPLES_FILE) as f:
        return yaml.safe_load(f)


def render_instruction() -> str:
    """Render the instruction text that opens every generation conversation."""
    examples = _load_examples()
    env = Environment(
        loader=FileSystemLoader(PROMPTS_DIR),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )
    template = env.get_template(INSTRUCTION_TEMPLATE)
    return template.render(
        headers=examples["headers"],
        output_name=examples["output_name"],
        max_width=examples["max_width"],
        max_samples=examples["max_samples"],
        examples=examples["examples"],
    )


def build_contents(prompt: str) -> list[dict[str, Any]]:
    """
    Build the conversation sent to the provider.

    Instruction plus worked example request, the example answer as a model
    turn, then the user's own request.
    """
    exchange = _load_examples()["exchange"]
    instruction = f"{render_instruction()}\n{exchange['request']}"
    return [
        {"role": "user", "parts": [{"text": instruction}]},
        {"role": "model", "parts": [{"text": exchange["answer"]}]},
        {"role": "user", "parts": [{"text": prompt}]},
    ]


def extract_text(payload: Any) -> str:
    """
    Pull candidates[0].content.parts[0].text out of a provider reply.

    Raises:
        UpstreamError: If the reply does not have that shape or the text is empty
    """
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        reason = None
        if isinstance(payload, dict):
            reason = (payload.get("promptFeedback") or {}).get("blockReason")
        raise UpstreamError(
            "Text-generation provider returned no candidate text",
            details={"block_reason": reason} if reason else None,
        )

    if not isinstance(text, str) or not text.strip():
        raise UpstreamError("Text-generation provider returned empty text")
    return text


class GeminiSceneGenerator(SceneGeneratorClient):
    """
    Client for the Gemini ``generateContent`` REST endpoint.

    An ``httpx.AsyncClient`` may be injected (tests pass one built on
    ``httpx.MockTransport``); otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = 60.0,
        temperature: float = 1.0,
        max_output_tokens: int = 8192,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.client = client

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1beta/models/{self.model}:generateContent"

    def build_payload(self, prompt: str) -> dict[str, Any]:
        return {
            "contents": build_contents(prompt),
            "generationConfig": {
                "temperature": self.temperature,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": self.max_output_tokens,
                "responseMimeType": "text/plain",
            },
        }

    async def generate_source(self, prompt: str) -> str:
        payload = self.build_payload(prompt)
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["x-goog-api-key"] = self.api_key

        logger.info(f"Requesting scene source from {self.model} ({len(prompt)} char prompt)")
        try:
            if self.client is not None:
                response = await self.client.post(
                    self.endpoint, json=payload, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as session:
                    response = await session.post(self.endpoint, json=payload, headers=headers)
            response.raise_for_status()
            body = response.json()

        except httpx.TimeoutException as e:
            logger.error(f"Text-generation request timed out: {e}")
            raise UpstreamError(f"Text-generation provider timed out after {self.timeout}s")

        except httpx.HTTPStatusError as e:
            logger.error(f"Text-generation provider returned {e.response.status_code}")
            raise UpstreamError(
                f"Text-generation provider returned HTTP {e.response.status_code}",
                details={"status_code": e.response.status_code},
            )

        except httpx.HTTPError as e:
            logger.error(f"Text-generation provider unreachable: {e}")
            raise UpstreamError(f"Text-generation provider unreachable: {e}")

        except ValueError:
            raise UpstreamError("Text-generation provider returned invalid JSON")

        text = extract_text(body)
        logger.info(f"Received {len(text)} chars of generated source")
        return text


# Singleton client instance
_generator_instance: Optional[SceneGeneratorClient] = None


def get_scene_generator() -> SceneGeneratorClient:
    """Get the configured text-generation client."""
    global _generator_instance

    if _generator_instance is None:
        if not settings.LLM_API_KEY:
            logger.warning("LLM_API_KEY is not set; AI renders will likely be rejected upstream")
        _generator_instance = GeminiSceneGenerator(
            base_url=settings.LLM_API_URL,
            api_key=settings.LLM_API_KEY,
            model=settings.LLM_MODEL,
            timeout=settings.LLM_TIMEOUT,
            temperature=settings.LLM_TEMPERATURE,
            max_output_tokens=settings.LLM_MAX_OUTPUT_TOKENS,
        )
    return _generator_instance


def reset_scene_generator() -> None:
    """Reset the client singleton (for testing purposes)."""
    global _generator_instance
    _generator_instance = None
