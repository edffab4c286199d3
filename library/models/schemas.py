"""Pydantic schemas for API request/response validation."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class UserCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=100, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: Optional[str] = Field(None, max_length=20)


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=100, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: Optional[str] = Field(None, max_length=20)


class AuthorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    bio: Optional[str] = None


class AuthorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    bio: Optional[str] = None


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)


class BookCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=150)
    category_id: Optional[int] = None
    isbn: Optional[str] = Field(None, max_length=20)
    published_year: Optional[int] = None
    copies_available: int = Field(1, ge=0)


class BookUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=150)
    category_id: Optional[int] = None
    isbn: Optional[str] = Field(None, max_length=20)
    published_year: Optional[int] = None


class BorrowRequest(BaseModel):
    user_id: int
    book_id: int


class ReserveRequest(BaseModel):
    user_id: int
    book_id: int


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class BorrowRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    book_id: int
    borrow_date: datetime
    return_date: Optional[date] = None


class ReservationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    book_id: int
    reservation_date: date


class FineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    amount: Decimal
    issue_date: date
    paid: bool = False
    borrow_record_id: Optional[int] = None


class SweepResponse(BaseModel):
    data: list[FineResponse]
    count: int


class ActiveBorrowRow(BaseModel):
    record_id: int
    user_id: int
    full_name: str
    book_id: int
    title: str
    borrow_date: datetime


class OverdueBookRow(ActiveBorrowRow):
    days_overdue: int


class UserFineRow(BaseModel):
    user_id: int
    full_name: str
    total_fines: Decimal
    fine_count: int


class ErrorResponse(BaseModel):
    detail: str
    code: str
    request_id: Optional[str] = None
