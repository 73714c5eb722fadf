"""Pydantic schemas for the chat relay."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, Role


class ChatMessage(BaseModel):
    role: Role
    content: str
    cacheable: bool = False


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    identity: str | None = Field(
        default=None, validation_alias=AliasChoices("identity", "email")
    )
    messages: list[ChatMessage]
    system: str | None = None
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0, le=2)
    stream: bool = False

    @field_validator("identity")
    @classmethod
    def normalize_identity(cls, identity: str | None) -> str | None:
        if identity is None:
            return None
        return identity.strip() or None


class ErrorDetail(BaseModel):
    message: str
    type: str


class ErrorResponse(BaseModel):
    error: ErrorDetail

    @classmethod
    def build(cls, message: str, error_type: str) -> "ErrorResponse":
        return cls(error=ErrorDetail(message=message, type=error_type))
