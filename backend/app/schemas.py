# backend/app/schemas.py
import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictInt

from .models import Role, SentimentLabel


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=1)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: Role
    created_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class ReviewCreate(BaseModel):
    # strict: JSON true or "5" must not become a rating
    rating: StrictInt
    comment: str


class ReviewOut(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str]
    rating: int
    comment: str
    sentiment_score: Optional[float]
    sentiment_label: Optional[SentimentLabel]
    is_flagged: bool
    created_at: datetime.datetime
    likes: int = 0
    dislikes: int = 0


class AdminReviewOut(ReviewOut):
    user_email: Optional[str] = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int = Field(alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)


class ReviewPage(BaseModel):
    items: List[ReviewOut]
    pagination: Pagination


class AdminReviewPage(BaseModel):
    items: List[AdminReviewOut]
    pagination: Pagination


class ReactionCreate(BaseModel):
    # checked against ReactionType in crud.react so a bad value is InvalidInput
    reaction_type: str = Field(alias="reactionType")

    model_config = ConfigDict(populate_by_name=True)


class ReactionCounts(BaseModel):
    likes: int
    dislikes: int


class FlagUpdate(BaseModel):
    is_flagged: bool = Field(alias="isFlagged")

    model_config = ConfigDict(populate_by_name=True)


class MessageOut(BaseModel):
    message: str
