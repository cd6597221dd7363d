"""
Pydantic schemas for request/response validation.

JSON bodies use camelCase keys; Python attributes stay snake_case.
"""
import binascii
from base64 import b64decode
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models import CreditTransaction, UserRole, UserStatus
from app.users.repository import UserRecord


class CamelModel(BaseModel):
    """Base model accepting and emitting camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Users & auth ---

class UserResponse(CamelModel):
    """A user as returned to clients (never includes the password hash)."""
    id: str
    email: str
    status: UserStatus
    role: UserRole
    credits: float
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, user: UserRecord) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            status=user.status,
            role=user.role,
            credits=float(user.credits),
            created_at=user.created_at,
        )


class AuthActionRequest(CamelModel):
    """Body of POST /api/auth; fields are checked per action."""
    action: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class CredentialsRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class MessageResponse(CamelModel):
    message: str


class UserEnvelope(CamelModel):
    user: UserResponse


class LoginResponse(CamelModel):
    message: str
    user: UserResponse


class UserListResponse(CamelModel):
    users: List[UserResponse]


class AdminUpdateRequest(CamelModel):
    """Admin change to one user; at least one of status/credits is required."""
    user_id: Optional[str] = None
    status: Optional[str] = None
    credits: Optional[Decimal] = None


class AdminUpdateResponse(CamelModel):
    message: str
    user: UserResponse


# --- Generation ---

class ImagePayload(CamelModel):
    """Inline image: base64 bytes plus MIME type."""
    base64: str = Field(..., min_length=1)
    mime_type: str = Field(default="image/png")

    @field_validator("base64")
    @classmethod
    def check_base64(cls, v: str) -> str:
        try:
            b64decode(v, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("Image data must be base64 encoded.")
        return v

    def to_bytes(self) -> bytes:
        return b64decode(self.base64)


class GenerateImageRequest(CamelModel):
    images: List[ImagePayload] = Field(default_factory=list)
    prompt: Optional[str] = None


class AdOptions(CamelModel):
    """Ad composition choices; "Auto" lets the model decide."""
    industry: str = "Auto"
    pose: str = "Auto"
    ratio: str = "Auto"
    background: str = "Auto"
    props: str = "Auto"
    lighting: str = "Auto"


class GenerateAdRequest(CamelModel):
    product_image: Optional[ImagePayload] = None
    model_image: Optional[ImagePayload] = None
    options: AdOptions = Field(default_factory=AdOptions)
    custom_prompt: Optional[str] = None


class ImageResponse(CamelModel):
    data: str
    mime_type: str
    credits: float


class PromptRequest(CamelModel):
    prompt: Optional[str] = None


class OptimizedPromptResponse(CamelModel):
    optimized_prompt: str
    credits: float


class VideoRequest(CamelModel):
    image: Optional[ImagePayload] = None
    prompt: Optional[str] = None


class VideoSubmitResponse(CamelModel):
    operation_name: str
    credits: float


class VideoRef(BaseModel):
    uri: str


class GeneratedVideo(BaseModel):
    video: VideoRef


class VideoResult(CamelModel):
    generated_videos: List[GeneratedVideo]


class OperationError(BaseModel):
    message: str


class VideoStatusResponse(CamelModel):
    """Operation-shaped status of a video job."""
    name: str
    done: bool
    status: str
    response: Optional[VideoResult] = None
    error: Optional[OperationError] = None
    retry_after: Optional[int] = Field(default=None, description="Seconds until the next useful poll")


# --- Credits ---

class BalanceResponse(CamelModel):
    credits: float


class TransactionResponse(CamelModel):
    id: str
    amount: float
    balance_after: float
    transaction_type: str
    operation: Optional[str] = None
    reference_id: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_model(cls, txn: CreditTransaction) -> "TransactionResponse":
        return cls(
            id=txn.id,
            amount=float(txn.amount),
            balance_after=float(txn.balance_after),
            transaction_type=txn.transaction_type.value,
            operation=txn.operation,
            reference_id=txn.reference_id,
            description=txn.description,
            created_at=txn.created_at,
        )


class TransactionHistoryResponse(CamelModel):
    transactions: List[TransactionResponse]
    limit: int
    offset: int


class CostsResponse(CamelModel):
    costs: dict[str, float]
