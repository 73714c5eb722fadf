"""Runtime infrastructure helpers for credentials, tracing, stores, and provider runnables."""

import json
import logging
import os
from functools import lru_cache
from typing import Any

import boto3
from botocore.config import Config
from langchain_core.runnables import Runnable, RunnableLambda
from langsmith import traceable
from langsmith.run_trees import get_cached_client
from openai import AsyncOpenAI

from chat_relay.constants import (
    LANGSMITH_API_KEY_PARAMETER_NAME,
    LANGSMITH_PROJECT,
    OPENAI_API_KEY_PARAMETER_NAME,
)
from chat_relay.settings import settings
from chat_relay.storage.kv import QuotaStore
from chat_relay.storage.memory_store import InMemoryQuotaStore
from chat_relay.storage.redis_store import RedisQuotaStore

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _get_ssm_client() -> Any:
    return boto3.client("ssm", region_name=settings.aws_region)


def _get_secure_parameter(ssm_client: Any, parameter_name: str) -> str:
    result = ssm_client.get_parameter(Name=parameter_name, WithDecryption=True)
    value = result["Parameter"].get("Value")
    if not value:
        raise RuntimeError(f"SSM parameter {parameter_name} has no value")
    return value


def _get_optional_secure_parameter(ssm_client: Any, parameter_name: str) -> str | None:
    try:
        return _get_secure_parameter(ssm_client, parameter_name)
    except Exception:
        logger.warning(
            "Optional SSM parameter is unavailable; disabling dependent feature",
            extra={"parameter_name": parameter_name},
            exc_info=True,
        )
        return None


@lru_cache(maxsize=1)
def get_openai_api_key() -> str:
    """Environment value wins; otherwise the key is read from SSM Parameter Store."""
    if settings.openai_api_key:
        return settings.openai_api_key
    return _get_secure_parameter(_get_ssm_client(), OPENAI_API_KEY_PARAMETER_NAME)


def _configure_langsmith(langsmith_api_key: str | None) -> None:
    if not langsmith_api_key:
        os.environ.pop("LANGSMITH_TRACING", None)
        os.environ.pop("LANGSMITH_API_KEY", None)
        logger.info("LangSmith tracing disabled because API key is unavailable")
        return

    os.environ["LANGSMITH_TRACING"] = "true"
    os.environ["LANGSMITH_API_KEY"] = langsmith_api_key
    os.environ.setdefault("LANGSMITH_PROJECT", LANGSMITH_PROJECT)


@lru_cache(maxsize=1)
def ensure_langsmith_configured() -> None:
    """Configure LangSmith environment variables (called once via lru_cache)."""
    langsmith_api_key = settings.langsmith_api_key or _get_optional_secure_parameter(
        _get_ssm_client(), LANGSMITH_API_KEY_PARAMETER_NAME
    )
    _configure_langsmith(langsmith_api_key)


def flush_langsmith_traces() -> None:
    if os.environ.get("LANGSMITH_TRACING", "").lower() != "true":
        return
    if not os.environ.get("LANGSMITH_API_KEY"):
        return
    try:
        get_cached_client().flush()
    except Exception:
        logger.warning("Failed to flush LangSmith traces", exc_info=True)


@lru_cache(maxsize=1)
def get_openai_client() -> AsyncOpenAI:
    """Create an async OpenAI client with LangSmith tracing configuration."""
    ensure_langsmith_configured()
    return AsyncOpenAI(
        api_key=get_openai_api_key(),
        timeout=settings.provider_timeout_seconds,
        max_retries=settings.provider_max_retries,
    )


@lru_cache(maxsize=1)
def get_bedrock_runtime_client() -> Any:
    ensure_langsmith_configured()
    return boto3.client(
        "bedrock-runtime",
        region_name=settings.aws_region,
        config=Config(
            read_timeout=settings.provider_timeout_seconds,
            retries={"mode": "standard", "total_max_attempts": settings.provider_max_retries + 1},
        ),
    )


@traceable(run_type="llm", name="openai.chat.completions.create")
async def _invoke_openai_chat(request_params: dict[str, Any]) -> Any:
    client = get_openai_client()
    return await client.chat.completions.create(**request_params)


@lru_cache(maxsize=1)
def get_openai_chat_runnable() -> Runnable[dict[str, Any], Any]:
    return RunnableLambda(_invoke_openai_chat).with_config(
        {"run_name": "chat_relay_openai_chat_completions"}
    )


@traceable(run_type="llm", name="bedrock.invoke_model")
def _invoke_bedrock_model(params: dict[str, Any]) -> Any:
    """Return the parsed message body, or the raw event stream when streaming."""
    client = get_bedrock_runtime_client()
    request_kwargs = {
        "modelId": params["model_id"],
        "body": json.dumps(params["body"]),
        "contentType": "application/json",
        "accept": "application/json",
    }
    if params.get("stream"):
        response = client.invoke_model_with_response_stream(**request_kwargs)
        return response["body"]
    response = client.invoke_model(**request_kwargs)
    return json.loads(response["body"].read())


@lru_cache(maxsize=1)
def get_bedrock_runnable() -> Runnable[dict[str, Any], Any]:
    return RunnableLambda(_invoke_bedrock_model).with_config(
        {"run_name": "chat_relay_bedrock_invoke_model"}
    )


@lru_cache(maxsize=1)
def get_quota_store() -> QuotaStore:
    if settings.quota_store == "redis":
        logger.info("Using Redis quota store", extra={"key_prefix": settings.redis_key_prefix})
        return RedisQuotaStore.from_url(settings.redis_url, settings.redis_key_prefix)
    return InMemoryQuotaStore()
