"""
Request and response models for the credential service.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from .store import Credential


class TokenInjectionRequest(BaseModel):
    """Body of ``POST``/``PUT /api/tokens``. Field names are camelCase on the wire."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    access_token: str = Field(..., alias="accessToken", min_length=1)
    refresh_token: str = Field(..., alias="refreshToken", min_length=1)
    expires_at: StrictInt = Field(..., alias="expiresAt", gt=0)
    scope: str = Field(..., min_length=1)
    token_type: str = Field(..., alias="tokenType", min_length=1)

    def to_credential(self) -> Credential:
        return Credential(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_at=self.expires_at,
            scope=self.scope,
            token_type=self.token_type,
        )


class TokenInjectionResponse(BaseModel):
    success: bool = True
    message: str = "Tokens injected successfully"
    userId: str
    expiresAt: int
    expiresIn: int
    warning: Optional[str] = None


class TokenStatusResponse(BaseModel):
    userId: str
    hasTokens: bool
    valid: bool
    expiresAt: Optional[int] = None
    expiresIn: Optional[int] = None
    expired: Optional[bool] = None
    scope: Optional[str] = None
    message: Optional[str] = None


class TokenRemovalResponse(BaseModel):
    success: bool = True
    userId: str
    message: str


class ToolInvocationResponse(BaseModel):
    tool: str
    userId: str
    result: Any = None


class ToolListResponse(BaseModel):
    tools: List[str]
    total: int


def dump(model: BaseModel) -> Dict[str, Any]:
    """Serialize without the optional fields that were never set."""
    return model.model_dump(exclude_none=True)
