from typing import Optional

from openai import OpenAI, OpenAIError

from jobmatch.errors import EmbeddingError
from jobmatch.log import get_logger
from jobmatch.settings import settings

log = get_logger(__name__)


class OpenAIEmbedder:
    """Turns free text into a fixed-size vector via the OpenAI embeddings API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dim: Optional[int] = None,
        timeout: Optional[float] = None,
        client: Optional[OpenAI] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.model = model or settings.EMBEDDING_MODEL
        self.dim = dim or settings.EMBEDDING_DIM
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self._client = client

    def is_configured(self) -> bool:
        return self._client is not None or bool(self.api_key)

    def _get_client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise EmbeddingError("OPENAI_API_KEY is not set")
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def embed(self, text: str) -> list[float]:
        client = self._get_client()
        try:
            response = client.embeddings.create(model=self.model, input=text)
        except OpenAIError as e:
            log.error("embedding request failed: %s", e)
            raise EmbeddingError(f"failed to generate embedding: {e}") from e

        vector = list(response.data[0].embedding)
        if len(vector) != self.dim:
            raise EmbeddingError(f"embedding has {len(vector)} dimensions, expected {self.dim}")
        return vector
