from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

AssuranceLevel = Literal["aal1", "aal2"]

ELEVATED_LEVEL: AssuranceLevel = "aal2"


class BackendError(BaseModel):
    message: str = Field(description="Human-readable error reported by the backend")
    code: str | None = Field(
        None, description="Machine readable error code, if the backend sent one"
    )
    status: int | None = Field(None, description="HTTP status of the failed call")


class User(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    email: str | None = None
    factors: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def has_verified_factor(self) -> bool:
        return any(factor.get("status") == "verified" for factor in self.factors)


class Session(BaseModel):
    model_config = ConfigDict(extra="allow")

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str = "bearer"
    user: User | None = None


class SessionData(BaseModel):
    session: Session | None = None
    user: User | None = None


class ExchangeResult(BaseModel):
    """Outcome of trading a code (or token hash) for a session."""

    data: SessionData | None = None
    error: BackendError | None = None

    @property
    def session(self) -> Session | None:
        if self.data is None:
            return None

        return self.data.session


class AssuranceLevels(BaseModel):
    current_level: AssuranceLevel | None = None
    next_level: AssuranceLevel | None = None


class AssuranceLevelResult(BaseModel):
    data: AssuranceLevels | None = None
    error: BackendError | None = None


class UserData(BaseModel):
    user: User | None = None


class UserResult(BaseModel):
    data: UserData = Field(default_factory=UserData)
    error: BackendError | None = None
