"""Tag suggestion service backed by a local Ollama model."""

import logging

import httpx

from app.config import get_settings
from app.errors import TagSuggestionError

logger = logging.getLogger("product_admin")

MAX_TAGS = 10

PROMPT_TEMPLATE = """Based on the following product information, suggest 5-10 relevant tags that would help categorize \
and find this product. Return only the tags separated by commas, without any additional text or explanation.

Product Name: {name}
Product Description: {description}

Tags:"""


def parse_tags(raw: str) -> list[str]:
    """Split a comma-separated model reply into at most MAX_TAGS non-empty tags."""
    tags = [tag.strip() for tag in raw.split(",")]
    return [tag for tag in tags if tag][:MAX_TAGS]


class TagSuggestionService:
    """Asks an LLM for product tags. The model is treated as an opaque text generator."""

    def __init__(self, client: httpx.Client | None = None) -> None:
        settings = get_settings()
        self.base_url = settings.OLLAMA_URL.rstrip("/")
        self.model = settings.OLLAMA_MODEL
        self._client = client or httpx.Client(timeout=settings.OLLAMA_TIMEOUT_SECONDS)

    def suggest(self, name: str, description: str) -> list[str]:
        """Return suggested tags. Raises TagSuggestionError if the model call fails."""
        prompt = PROMPT_TEMPLATE.format(name=name, description=description)
        try:
            response = self._client.post(
                f"{self.base_url}/api/generate",
                json={"model": self.model, "prompt": prompt, "stream": False},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("LLM API responded with status %d", e.response.status_code)
            raise TagSuggestionError(f"LLM API responded with status: {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error calling LLM API: %s", e)
            raise TagSuggestionError(str(e)) from e

        raw = data.get("response") if isinstance(data, dict) else None
        return parse_tags(raw if isinstance(raw, str) else "")


_tag_suggestion_service: TagSuggestionService | None = None


def get_tag_suggestion_service() -> TagSuggestionService:
    """Get singleton tag suggestion service instance."""
    global _tag_suggestion_service
    if _tag_suggestion_service is None:
        _tag_suggestion_service = TagSuggestionService()
    return _tag_suggestion_service
