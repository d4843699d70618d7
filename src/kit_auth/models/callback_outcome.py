from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ErrorCode(str, Enum):
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    OAUTH_ERROR = "OAUTH_ERROR"
    STATE_ERROR = "STATE_ERROR"
    STATE_MISMATCH = "STATE_MISMATCH"
    CODE_ERROR = "CODE_ERROR"
    SESSION_ERROR = "SESSION_ERROR"
    CODE_VERIFIER_ERROR = "CODE_VERIFIER_ERROR"
    EXCHANGE_ERROR = "EXCHANGE_ERROR"
    REDIRECT_ERROR = "REDIRECT_ERROR"
    INVALID_REDIRECT = "INVALID_REDIRECT"


class CallbackSuccess(BaseModel):
    """The session is established, continue to ``next_path``."""

    model_config = ConfigDict(frozen=True)

    type: Literal["success"] = "success"
    next_path: str


class CallbackFailure(BaseModel):
    """The callback failed, ``next_path`` points at the error page."""

    model_config = ConfigDict(frozen=True)

    type: Literal["error"] = "error"
    error_code: ErrorCode
    message: str
    next_path: str


CallbackOutcome = Annotated[
    Union[CallbackSuccess, CallbackFailure],
    Field(discriminator="type"),
]

callback_outcome_adapter: TypeAdapter[CallbackOutcome] = TypeAdapter(CallbackOutcome)
