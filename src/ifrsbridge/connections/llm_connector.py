"""
LLM connector for the chat-completion endpoint.

Issues single, non-retried chat-completion calls through the OpenAI async
client and reports token usage and cost in the log. HTTP failures are
re-raised as ``TransportError`` carrying the status.
"""

import asyncio
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from ..errors import PayloadShapeError, TransportError
from ..utils.logging import get_logger
from ..utils.settings import config
from ..utils.settings_store import SettingsStore
from ..utils.ssl import setup_ssl

# Module-level client cache to reuse connections. Pooled connections belong to
# the event loop that opened them, so entries are kept per loop.
_async_client_cache: Dict[str, Tuple[asyncio.AbstractEventLoop, AsyncOpenAI]] = {}


def _calculate_cost(usage: Dict[str, Any], response_time: float, model: str) -> Dict[str, Any]:
    """
    Calculate cost metrics from token usage.

    Args:
        usage: Usage dictionary from the API response
        response_time: Seconds taken by the call
        model: Model used

    Returns:
        Dictionary with token counts, cost in USD and timing
    """
    prompt_tokens = usage.get("prompt_tokens") or 0
    completion_tokens = usage.get("completion_tokens") or 0
    prompt_cost = (prompt_tokens / 1000.0) * config.llm.cost_per_1k_input
    completion_cost = (completion_tokens / 1000.0) * config.llm.cost_per_1k_output

    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": usage.get("total_tokens") or prompt_tokens + completion_tokens,
        "total_cost": round(prompt_cost + completion_cost, 6),
        "response_time": round(response_time, 3),
        "model": model,
    }


class ResponseTimer:
    """
    Context manager for timing API responses.
    """

    def __init__(self):
        self.start_time = None
        self.elapsed = 0.0

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.time() - self.start_time
        return False


def build_context(store: Optional[SettingsStore] = None) -> Dict[str, Any]:
    """
    Assemble the runtime context for one API operation.

    The credential comes from the settings store as-is; an empty credential
    is not rejected here and will fail at the endpoint.
    """
    store = store or SettingsStore()
    return {
        "execution_id": str(uuid.uuid4()),
        "auth_config": {"token": store.get_api_key()},
        "ssl_config": setup_ssl(),
    }


def _get_or_create_async_client(
    auth_token: str, ssl_config: Optional[Dict[str, Any]] = None
) -> AsyncOpenAI:
    """
    Get or create an async OpenAI client for a credential and SSL setting.

    Clients are cached per event loop, token and SSL config so connections
    are reused within a loop. Entries whose loop has closed are dropped.
    Retries are disabled: every call is a single attempt.

    Must be called from a running event loop.
    """
    logger = get_logger()
    loop = asyncio.get_running_loop()

    for key, (owner, _) in list(_async_client_cache.items()):
        if owner.is_closed():
            _async_client_cache.pop(key, None)

    ssl_verify = ssl_config.get("verify", True) if ssl_config else True
    ssl_cert = (ssl_config.get("cert_path") or "") if ssl_config else ""
    cache_key = (
        f"{id(loop)}_{config.llm.base_url}_{auth_token or 'no-auth'}_{ssl_verify}_{ssl_cert}"
    )

    if cache_key in _async_client_cache:
        return _async_client_cache[cache_key][1]

    verify: Any = True
    if not ssl_verify:
        verify = False
    elif ssl_cert:
        verify = ssl_cert

    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(config.llm.timeout, connect=5.0),
        verify=verify,
    )
    client = AsyncOpenAI(
        api_key=auth_token,
        base_url=config.llm.base_url,
        http_client=http_client,
        max_retries=0,
    )
    _async_client_cache[cache_key] = (loop, client)

    logger.info(
        "Created new async LLM client",
        base_url=config.llm.base_url,
        timeout=config.llm.timeout,
        ssl_verify=ssl_verify,
        ssl_cert=bool(ssl_cert),
    )
    return client


async def complete(
    messages: List[Dict[str, str]],
    context: Dict[str, Any],
    llm_params: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Generate a non-streaming chat completion.

    Args:
        messages: Message dictionaries with 'role' and 'content'.
        context: Runtime context containing:
                 - execution_id: Identifier used in every log line
                 - auth_config: ``{"token": <api key>}``
                 - ssl_config: SSL configuration
        llm_params: Optional overrides: model, temperature, max_tokens.

    Returns:
        The response as a dictionary, with a ``metrics`` entry added.

    Raises:
        TransportError: On a non-success HTTP status or a connection failure.
    """
    logger = get_logger()
    llm_params = llm_params or {}

    model = llm_params.get("model") or config.llm.model
    api_params = {
        "model": model,
        "messages": messages,
        "temperature": llm_params.get("temperature", 0.5),
        "max_tokens": llm_params.get("max_tokens", 3000),
    }

    logger.info(
        "Generating async LLM completion",
        execution_id=context["execution_id"],
        model=model,
        temperature=api_params["temperature"],
        max_tokens=api_params["max_tokens"],
        message_count=len(messages),
    )

    client = _get_or_create_async_client(
        context["auth_config"].get("token", ""), context.get("ssl_config")
    )

    try:
        with ResponseTimer() as timer:
            response = await client.chat.completions.create(**api_params)
    except APIStatusError as e:
        status_text = e.response.reason_phrase or str(e)
        logger.error(
            "Async LLM completion failed",
            execution_id=context["execution_id"],
            model=model,
            status_code=e.status_code,
            error=status_text,
        )
        raise TransportError(status_text, status_code=e.status_code) from e
    except APIConnectionError as e:
        logger.error(
            "Async LLM completion failed",
            execution_id=context["execution_id"],
            model=model,
            error=str(e),
        )
        raise TransportError(str(e)) from e

    response_dict = response.model_dump()
    metrics = _calculate_cost(response_dict.get("usage") or {}, timer.elapsed, model)
    response_dict["metrics"] = metrics

    logger.info(
        "LLM async completion successful",
        execution_id=context["execution_id"],
        model=model,
        tokens=metrics["total_tokens"],
        response_time_ms=int(timer.elapsed * 1000),
        cost=f"${metrics['total_cost']:.6f}",
    )
    return response_dict


def extract_content(response: Dict[str, Any]) -> str:
    """
    Return the text of the first choice.

    Raises:
        PayloadShapeError: If the response carries no text content.
    """
    try:
        content = response["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise PayloadShapeError(f"Completion response has no message content: {e}") from e
    if not isinstance(content, str):
        raise PayloadShapeError("Completion response has no message content")
    return content
