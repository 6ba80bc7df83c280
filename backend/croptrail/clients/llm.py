"""OpenAI-compatible chat-completion gateway adapter.

Only the HTTP exchange lives here; prompt construction and result parsing
belong to `croptrail.services.analysis`.

Upstream 429 and 402 are raised as `UpstreamQuotaError` with the same
status code so the caller sees them verbatim.  Every other failure
becomes `UpstreamServiceError(failure_message)`.
"""

import logging

import httpx
from fastapi import status

from croptrail.clients.http import body_excerpt
from croptrail.config import settings
from croptrail.middleware.exceptions import UpstreamQuotaError, UpstreamServiceError

logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "Rate limit exceeded, please try again later."
PAYMENT_REQUIRED_MESSAGE = "Payment required, please add credits."


def function_tool(name: str, description: str, properties: dict[str, str]) -> dict:
    """Build a strict function-tool schema with all properties required."""
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": {k: {"type": v} for k, v in properties.items()},
                "required": list(properties),
                "additionalProperties": False,
            },
        },
    }


async def create_chat_completion(
    client: httpx.AsyncClient,
    messages: list[dict],
    tool: dict | None = None,
    failure_message: str = "LLM request failed",
) -> dict:
    """POST a chat-completion request and return the decoded JSON body."""
    if not settings.llm_api_key:
        raise UpstreamServiceError("LLM gateway key is not configured")

    body: dict = {"model": settings.llm_model, "messages": messages}
    if tool is not None:
        body["tools"] = [tool]
        body["tool_choice"] = {
            "type": "function",
            "function": {"name": tool["function"]["name"]},
        }

    try:
        response = await client.post(
            settings.llm_api_url,
            json=body,
            headers={"Authorization": f"Bearer {settings.llm_api_key}"},
        )
    except httpx.HTTPError as exc:
        logger.error(f"LLM gateway request failed: {exc}")
        raise UpstreamServiceError(failure_message)

    if response.status_code == status.HTTP_429_TOO_MANY_REQUESTS:
        raise UpstreamQuotaError(response.status_code, RATE_LIMITED_MESSAGE)
    if response.status_code == status.HTTP_402_PAYMENT_REQUIRED:
        raise UpstreamQuotaError(response.status_code, PAYMENT_REQUIRED_MESSAGE)
    if response.status_code != 200:
        logger.error(
            f"LLM gateway error {response.status_code}: {body_excerpt(response)}"
        )
        raise UpstreamServiceError(failure_message)

    try:
        return response.json()
    except ValueError:
        logger.error(f"LLM gateway returned non-JSON body: {body_excerpt(response)}")
        raise UpstreamServiceError(failure_message)
