"""Shared constants and literal types for the chat relay."""

from typing import Literal

OPENAI_API_KEY_PARAMETER_NAME = "/chat-relay/openai-api-key"
LANGSMITH_API_KEY_PARAMETER_NAME = "/chat-relay/langsmith-api-key"
AWS_REGION = "ap-northeast-1"
LANGSMITH_PROJECT = "chat-relay"

# Fixed models per provider to prevent cost issues.
BEDROCK_MODEL_ID = "anthropic.claude-3-5-haiku-20241022-v1:0"
OPENAI_MODEL = "gpt-4o-mini"
BEDROCK_ANTHROPIC_VERSION = "bedrock-2023-05-31"

DEFAULT_MAX_TOKENS = 2048
DEFAULT_TEMPERATURE = 0.0
EPHEMERAL_CACHE_CONTROL = {"type": "ephemeral"}

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "OPTIONS,POST",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
}
PROVIDER_HEADER = "X-Relay-Provider"
DISCONNECT_POLL_SECONDS = 0.5
QUOTA_CAS_MAX_ATTEMPTS = 64

# Lowercased; event-stream errors report codes such as "throttlingException".
BEDROCK_RATE_LIMIT_ERROR_CODES = frozenset(
    {"throttlingexception", "toomanyrequestsexception", "servicequotaexceededexception"}
)

Role = Literal["user", "assistant", "system"]
Provider = Literal["bedrock", "openai"]
QuotaStoreBackend = Literal["memory", "redis"]
