import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from openai import OpenAI
from langchain_core.messages import HumanMessage
from langchain_google_vertexai.vision_models import VertexAIImageGeneratorChat

from museum.config import Settings
from museum.errors import GenerationError
from museum.model_props import is_openai_image_model

logger = logging.getLogger("museum_backend")

# 1x1 transparent png
_PLACEHOLDER_PNG_B64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


@dataclass
class ImageOutput:
    url: Optional[str] = None
    b64_json: Optional[str] = None

    @property
    def data(self) -> Optional[str]:
        return self.b64_json or self.url


class ImageGenerator:
    def generate_image(self, prompt: str, *, size: str = "1024x1024", count: int = 1) -> List[ImageOutput]:
        raise NotImplementedError


class OpenAIImageGenerator(ImageGenerator):
    def __init__(self, model_name: str = "dall-e-3", *, timeout: float | None = None):
        self.model_name = model_name
        client_kwargs: Dict[str, Any] = {"max_retries": 0}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        self._client = OpenAI(**client_kwargs)

    def generate_image(self, prompt: str, *, size: str = "1024x1024", count: int = 1) -> List[ImageOutput]:
        params: Dict[str, Any] = {"model": self.model_name, "prompt": prompt, "n": count, "size": size}
        if self.model_name.startswith("dall-e"):
            params["response_format"] = "b64_json"
        try:
            resp = self._client.images.generate(**params)
        except Exception as e:
            logger.error(f"[IMAGE] openai:{self.model_name} call failed: {e}")
            raise GenerationError(f"Image generation failed: {e}") from e
        return [ImageOutput(url=getattr(d, "url", None), b64_json=getattr(d, "b64_json", None)) for d in resp.data or []]


class VertexImageGenerator(ImageGenerator):
    """
    Imagen through LangChain; images come back as data URIs inside the message content.
    """

    def __init__(self, model_name: str, *, vertex_project: str, vertex_region: str):
        self.model_name = model_name
        self._vertex = VertexAIImageGeneratorChat(
            model_name=model_name,
            project=vertex_project,
            location=vertex_region,
        )

    def generate_image(self, prompt: str, *, size: str = "1024x1024", count: int = 1) -> List[ImageOutput]:
        try:
            resp = self._vertex.invoke([HumanMessage(content=prompt)], number_of_results=count)
        except Exception as e:
            logger.error(f"[IMAGE] vertex:{self.model_name} call failed: {e}")
            raise GenerationError(f"Image generation failed: {e}") from e

        outputs: List[ImageOutput] = []
        content = resp.content if isinstance(resp.content, list) else [resp.content]
        for part in content:
            if isinstance(part, dict) and "image_url" in part:
                url = part["image_url"].get("url") if isinstance(part["image_url"], dict) else part["image_url"]
                if url and url.startswith("data:"):
                    outputs.append(ImageOutput(b64_json=url))
                elif url:
                    outputs.append(ImageOutput(url=url))
        return outputs


class MockImageGenerator(ImageGenerator):
    def __init__(self):
        self.prompts: List[str] = []

    def generate_image(self, prompt: str, *, size: str = "1024x1024", count: int = 1) -> List[ImageOutput]:
        self.prompts.append(prompt)
        return [ImageOutput(b64_json=_PLACEHOLDER_PNG_B64) for _ in range(count)]


def build_image_generator(settings: Settings) -> ImageGenerator:
    if settings.ai_provider == "mock":
        return MockImageGenerator()
    if is_openai_image_model(settings.image_model):
        return OpenAIImageGenerator(settings.image_model, timeout=settings.llm_timeout)
    return VertexImageGenerator(
        settings.image_model,
        vertex_project=settings.project_id,
        vertex_region=settings.region,
    )
