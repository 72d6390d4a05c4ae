import json
import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI
from langchain_google_vertexai import VertexAI

from museum.config import Settings
from museum.errors import GenerationError
from museum.model_props import is_openai_model, parse_model_name, supports_temperature

logger = logging.getLogger("museum_backend")


class TextGenerator:
    """
    Narrow text-generation interface the services depend on:

        text = generator.generate_text("prompt", temperature=0.7)

    No retries anywhere: a failed call surfaces immediately as GenerationError.
    """

    def generate_text(
        self,
        prompt: str,
        *,
        temperature: Optional[float] = None,
        system_prompt: Optional[str] = None,
        json_mode: bool = False,
    ) -> str:
        raise NotImplementedError


class LlmClient(TextGenerator):
    """
    Minimal wrapper for "completion-style" use.

    Under the hood:
    - Vertex: VertexAI.invoke(prompt)
    - OpenAI: Responses API (client.responses.create)
    """

    def __init__(
        self,
        model_name: str,
        *,
        vertex_project: str = "",
        vertex_region: str = "us-central1",
        timeout: float | None = None,
    ):
        self.provider = "openai" if is_openai_model(model_name) else "vertex"
        self._timeout = timeout
        self.model_name = model_name
        self._openai_params: Dict[str, Any] = {}

        if self.provider == "vertex":
            self._vertex = VertexAI(
                project=vertex_project,
                location=vertex_region,
                model_name=model_name,
                timeout=timeout,
            )
            self._client = None
        else:
            self._vertex = None
            self.model_name, self._openai_params = parse_model_name(self.model_name)
            client_kwargs: Dict[str, Any] = {"max_retries": 0}
            if timeout is not None:
                client_kwargs["timeout"] = timeout
            self._client = OpenAI(**client_kwargs)

    def _invoke_vertex(self, prompt: str, temperature, system_prompt, json_mode) -> str:
        full_prompt = f"{system_prompt}\n\n{prompt}" if system_prompt else prompt
        kwargs: Dict[str, Any] = {}
        if temperature is not None:
            kwargs["temperature"] = temperature
        if json_mode:
            kwargs["response_mime_type"] = "application/json"
        resp = self._vertex.invoke(full_prompt, **kwargs)
        if isinstance(resp, str):
            return resp
        # LangChain's Vertex types often have .content
        return getattr(resp, "content", str(resp))

    def _invoke_openai(self, prompt: str, temperature, system_prompt, json_mode) -> str:
        params: Dict[str, Any] = json.loads(json.dumps(self._openai_params))
        if temperature is not None and supports_temperature(self.model_name):
            params["temperature"] = temperature
        if json_mode:
            params.setdefault("text", {})["format"] = {"type": "json_object"}

        oai_input: str | List[Dict[str, str]] = prompt
        if system_prompt:
            oai_input = [
                {"role": "developer", "content": system_prompt},
                {"role": "user", "content": prompt},
            ]
        resp = self._client.responses.create(
            model=self.model_name,
            input=oai_input,
            **params,
        )
        return getattr(resp, "output_text", "") or ""

    def generate_text(
        self,
        prompt: str,
        *,
        temperature: Optional[float] = None,
        system_prompt: Optional[str] = None,
        json_mode: bool = False,
    ) -> str:
        """
        Single HTTP call without retries/backoff.
        """
        try:
            if self.provider == "vertex":
                text = self._invoke_vertex(prompt, temperature, system_prompt, json_mode)
            else:
                text = self._invoke_openai(prompt, temperature, system_prompt, json_mode)
        except Exception as e:
            logger.error(f"[LLM] {self.provider}:{self.model_name} call failed: {e}")
            raise GenerationError(f"Text generation failed: {e}") from e
        logger.debug(f"[LLM] {self.provider}:{self.model_name} returned {len(text)} chars")
        return text.strip()


class MockTextGenerator(TextGenerator):
    """
    Canned answers for local development without provider credentials.
    """

    FOLLOW_UP = "그 물건의 색상이나 재질에 대해 조금 더 자세히 알려주실 수 있나요?"

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    def generate_text(
        self,
        prompt: str,
        *,
        temperature: Optional[float] = None,
        system_prompt: Optional[str] = None,
        json_mode: bool = False,
    ) -> str:
        self.calls.append({
            "prompt": prompt,
            "temperature": temperature,
            "system_prompt": system_prompt,
            "json_mode": json_mode,
        })
        if system_prompt and "choice" in system_prompt:
            return json.dumps({
                "choice": 5,
                "reason": "소중한 추억을 간직한 당신에게는, 이 테마가 잘 어울릴 것 같아요.",
            }, ensure_ascii=False)
        if "visual_prompt" in prompt:
            return "Here is the object:\n" + json.dumps({
                "name": "추억이 담긴 빨간 목도리",
                "color": "#C0392B",
                "description": "겨울마다 함께했던 따뜻한 목도리예요.",
                "onType": "Floor",
                "visual_prompt": "A soft red knitted scarf, neatly folded, wool texture",
            }, ensure_ascii=False)
        return self.FOLLOW_UP


def build_text_generator(settings: Settings) -> TextGenerator:
    if settings.ai_provider == "mock":
        return MockTextGenerator()
    if settings.ai_provider == "openai" and not is_openai_model(settings.text_model):
        raise ValueError(f"TEXT_MODEL '{settings.text_model}' is not an OpenAI model")
    if settings.ai_provider == "vertex" and is_openai_model(settings.text_model):
        raise ValueError(f"TEXT_MODEL '{settings.text_model}' is not a Vertex model")
    return LlmClient(
        settings.text_model,
        vertex_project=settings.project_id,
        vertex_region=settings.region,
        timeout=settings.llm_timeout,
    )
