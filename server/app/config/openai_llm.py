import logging
from typing import Any, Dict, List, Optional

import httpx

from app.utils.errors import EmptyCompletionError, LLMServiceError

logger = logging.getLogger("o9-generator")


def _upstream_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if isinstance(error, str):
            return error
    return response.text or response.reason_phrase


def extract_completion_text(data: Dict[str, Any]) -> str:
    """Return the first choice's message content or raise EmptyCompletionError."""
    choices = data.get("choices") if isinstance(data, dict) else None
    if not choices:
        raise EmptyCompletionError()
    choice = choices[0] if isinstance(choices, list) else None
    message = choice.get("message") if isinstance(choice, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        raise EmptyCompletionError("AI service returned an empty completion")
    return content


class AzureOpenAIClient:
    """
    Chat-completion client for an Azure OpenAI deployment.
    One POST per call, no retries.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        deployment_name: str,
        api_version: str,
        timeout: float = 120.0,
        temperature: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.deployment_name = deployment_name
        self.api_version = api_version
        self.temperature = temperature
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def chat_url(self) -> str:
        return (
            f"{self.endpoint}/openai/deployments/{self.deployment_name}"
            f"/chat/completions?api-version={self.api_version}"
        )

    async def generate_completion(self, messages: List[Dict[str, str]], max_tokens: int = 4000) -> str:
        payload = {
            "messages": messages,
            "max_completion_tokens": max_tokens,
            "frequency_penalty": 0,
            "presence_penalty": 0,
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        headers = {"Content-Type": "application/json", "api-key": self.api_key}

        logger.debug(f"[Azure OpenAI] Prompt: {messages[-1]['content'][:1000]}... | max_tokens={max_tokens}")
        try:
            response = await self._client.post(self.chat_url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = _upstream_message(e.response)
            logger.error(f"[Azure OpenAI] HTTP {e.response.status_code}: {message}")
            raise LLMServiceError(message, status_code=e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error(f"[Azure OpenAI] Request failed: {e}")
            raise LLMServiceError(str(e) or e.__class__.__name__) from e

        try:
            data = response.json()
        except ValueError as e:
            raise LLMServiceError("Completion service returned a non-JSON body", status_code=response.status_code) from e

        usage = data.get("usage") if isinstance(data, dict) else None
        if usage:
            logger.debug(f"[Azure OpenAI] Token usage: {usage}")
        return extract_completion_text(data)

    async def aclose(self):
        await self._client.aclose()
