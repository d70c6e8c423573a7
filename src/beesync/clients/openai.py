"""OpenAI chat-completions client and the window-title classifier built on it."""

import logging

from ..errors import UpstreamUnavailable
from ..sync.http_client import BaseApiClient
from ..sync.protocols import Classification

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_URL = "https://api.openai.com/v1"


class OpenAIClient(BaseApiClient):
    SERVICE_NAME = "OpenAI"

    def __init__(self, api_key: str, model: str, base_url: str = DEFAULT_OPENAI_URL, **kwargs):
        kwargs.setdefault("timeout", 120)
        super().__init__(base_url, **kwargs)
        self.api_key = api_key
        self.model = model

    def _auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}"}

    def chat(self, prompt: str) -> str:
        """Single-turn chat completion, returns the assistant message text."""
        body = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        # No datapoint depends on this call, so it is safe to retry like a read
        response = self._request("POST", "chat/completions", json=body, read=True)
        try:
            return response["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise UpstreamUnavailable(f"Unexpected OpenAI response: {response!r}") from e


class GptClassifier:
    """Asks the model whether a day's window titles break the rules.

    The prompt must make the model answer exactly ``no`` for a clean day, or
    ``yes`` followed by a one-line reason on the second line.
    """

    def __init__(self, client: OpenAIClient):
        self.client = client

    def close(self) -> None:
        self.client.close()

    def classify(self, prompt: str, titles: list[str]) -> Classification:
        answer = self.client.chat(prompt)
        if answer.strip().lower() == "no":
            return Classification(label=1)

        lines = answer.strip().splitlines()
        reason = lines[1].strip() if len(lines) > 1 else ""
        logger.debug(f"Classifier flagged {len(titles)} titles: {answer!r}")
        return Classification(label=0, reason=reason)
