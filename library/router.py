"""Library API router — circulation, reports and catalog CRUD.

Follows the standard router pattern:
- Circulation endpoints delegate to the CirculationEngine, whose errors
  are translated to HTTP by the handlers registered in api.main
- Reporting views are read-only
- Full CRUD for users, authors, categories and books (with search,
  pagination, filtering)
- Repository injection via FastAPI Depends
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from core.database import async_session_factory
from library.config import config
from library.engine import CirculationEngine
from library.models.schemas import (
    ActiveBorrowRow,
    AuthorCreate,
    AuthorUpdate,
    BookCreate,
    BookUpdate,
    BorrowRecordResponse,
    BorrowRequest,
    CategoryCreate,
    ErrorResponse,
    FineResponse,
    OverdueBookRow,
    ReservationResponse,
    ReserveRequest,
    SweepResponse,
    UserCreate,
    UserFineRow,
    UserUpdate,
)
from library.repository import (
    AuthorRepository,
    BookRepository,
    CategoryRepository,
    FineRepository,
    ReportRepository,
    UserRepository,
    get_author_repository,
    get_book_repository,
    get_category_repository,
    get_fine_repository,
    get_report_repository,
    get_user_repository,
)

router = APIRouter()


def get_circulation_engine() -> CirculationEngine:
    """FastAPI dependency for the circulation engine."""
    return CirculationEngine(async_session_factory, config)


def _paginated(items: list[dict], total: int, page: int, limit: int) -> dict:
    return {
        "data": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    }


# ============================================================================
# Circulation Endpoints
# ============================================================================

CIRCULATION_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.post(
    "/borrows",
    status_code=201,
    response_model=BorrowRecordResponse,
    responses=CIRCULATION_ERRORS,
)
async def borrow_book(
    request: BorrowRequest,
    engine: CirculationEngine = Depends(get_circulation_engine),
):
    """Lend one copy of a book to a member."""
    return await engine.borrow_book(request.user_id, request.book_id)


@router.post(
    "/borrows/{record_id}/return",
    response_model=BorrowRecordResponse,
    responses=CIRCULATION_ERRORS,
)
async def return_book(
    record_id: int,
    engine: CirculationEngine = Depends(get_circulation_engine),
):
    """Return a borrowed book; overdue borrows are fined first."""
    return await engine.return_book(record_id)


@router.post(
    "/reservations",
    status_code=201,
    response_model=ReservationResponse,
    responses=CIRCULATION_ERRORS,
)
async def reserve_book(
    request: ReserveRequest,
    engine: CirculationEngine = Depends(get_circulation_engine),
):
    """Reserve a book for a member."""
    return await engine.reserve_book(request.user_id, request.book_id)


@router.post(
    "/fines/sweep",
    response_model=SweepResponse,
    responses=CIRCULATION_ERRORS,
)
async def sweep_overdue(
    engine: CirculationEngine = Depends(get_circulation_engine),
):
    """Fine every overdue borrow that has not been fined yet."""
    fines = await engine.sweep_overdue()
    return SweepResponse(
        data=[FineResponse.model_validate(f) for f in fines],
        count=len(fines),
    )


@router.post(
    "/fines/{fine_id}/pay",
    response_model=FineResponse,
    responses={404: {"model": ErrorResponse}},
)
async def mark_fine_paid(
    fine_id: int,
    repo: FineRepository = Depends(get_fine_repository),
):
    """Flag a fine as paid (payment itself is handled elsewhere)."""
    fine = await repo.mark_paid(fine_id)
    if not fine:
        raise HTTPException(status_code=404, detail="Fine not found")
    return fine


# ============================================================================
# Reporting Endpoints
# ============================================================================

@router.get("/reports/active-borrows", response_model=list[ActiveBorrowRow])
async def active_borrows(
    repo: ReportRepository = Depends(get_report_repository),
):
    return await repo.active_borrows()


@router.get("/reports/overdue", response_model=list[OverdueBookRow])
async def overdue_books(
    repo: ReportRepository = Depends(get_report_repository),
    engine: CirculationEngine = Depends(get_circulation_engine),
):
    """Active borrows past the loan period."""
    return await repo.overdue_books(
        today=engine.today(),
        loan_period_days=engine.config.loan_period_days,
    )


@router.get("/reports/user-fines", response_model=list[UserFineRow])
async def user_fines(
    repo: ReportRepository = Depends(get_report_repository),
):
    """Unpaid fine totals per member."""
    return await repo.user_fines()


# ============================================================================
# User Endpoints
# ============================================================================

@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    repo: UserRepository = Depends(get_user_repository),
):
    users, total = await repo.list(page=page, limit=limit)
    return _paginated(users, total, page, limit)


@router.get("/users/{user_id}")
async def get_user(
    user_id: int,
    repo: UserRepository = Depends(get_user_repository),
):
    user = await repo.get(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.post("/users", status_code=201)
async def create_user(
    request: UserCreate,
    repo: UserRepository = Depends(get_user_repository),
):
    """Register a new member."""
    return await repo.create(data=request.model_dump())


@router.patch("/users/{user_id}")
async def update_user(
    user_id: int,
    request: UserUpdate,
    repo: UserRepository = Depends(get_user_repository),
):
    user = await repo.update(user_id, data=request.model_dump(exclude_unset=True))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.delete("/users/{user_id}", status_code=204)
async def delete_user(
    user_id: int,
    repo: UserRepository = Depends(get_user_repository),
):
    """Remove a member with their borrows, fines and reservations."""
    if not await repo.delete(user_id):
        raise HTTPException(status_code=404, detail="User not found")


@router.get("/users/{user_id}/fines")
async def list_user_fines(
    user_id: int,
    unpaid_only: bool = False,
    repo: FineRepository = Depends(get_fine_repository),
    users: UserRepository = Depends(get_user_repository),
):
    if not await users.exists(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    fines = await repo.list_for_user(user_id, unpaid_only=unpaid_only)
    return {"data": fines, "count": len(fines)}


# ============================================================================
# Author Endpoints
# ============================================================================

@router.get("/authors")
async def list_authors(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    repo: AuthorRepository = Depends(get_author_repository),
):
    authors, total = await repo.list(page=page, limit=limit)
    return _paginated(authors, total, page, limit)


@router.post("/authors", status_code=201)
async def create_author(
    request: AuthorCreate,
    repo: AuthorRepository = Depends(get_author_repository),
):
    return await repo.create(data=request.model_dump())


@router.patch("/authors/{author_id}")
async def update_author(
    author_id: int,
    request: AuthorUpdate,
    repo: AuthorRepository = Depends(get_author_repository),
):
    author = await repo.update(author_id, data=request.model_dump(exclude_unset=True))
    if not author:
        raise HTTPException(status_code=404, detail="Author not found")
    return author


@router.delete("/authors/{author_id}", status_code=204)
async def delete_author(
    author_id: int,
    repo: AuthorRepository = Depends(get_author_repository),
):
    if not await repo.delete(author_id):
        raise HTTPException(status_code=404, detail="Author not found")


# ============================================================================
# Category Endpoints
# ============================================================================

@router.get("/categories")
async def list_categories(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    repo: CategoryRepository = Depends(get_category_repository),
):
    categories, total = await repo.list(page=page, limit=limit)
    return _paginated(categories, total, page, limit)


@router.post("/categories", status_code=201)
async def create_category(
    request: CategoryCreate,
    repo: CategoryRepository = Depends(get_category_repository),
):
    return await repo.create(data=request.model_dump())


@router.delete("/categories/{category_id}", status_code=204)
async def delete_category(
    category_id: int,
    repo: CategoryRepository = Depends(get_category_repository),
):
    """Remove a category; its books become uncategorised."""
    if not await repo.delete(category_id):
        raise HTTPException(status_code=404, detail="Category not found")


# ============================================================================
# Book Endpoints
# ============================================================================

@router.get("/books")
async def list_books(
    query: Optional[str] = None,
    category_id: Optional[int] = None,
    available: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    repo: BookRepository = Depends(get_book_repository),
):
    """Search and list books with filtering and pagination."""
    books, total = await repo.search(
        query=query,
        category_id=category_id,
        available=available,
        page=page,
        limit=limit,
    )
    return _paginated(books, total, page, limit)


@router.get("/books/{book_id}")
async def get_book(
    book_id: int,
    repo: BookRepository = Depends(get_book_repository),
):
    """Get a single book with its authors."""
    book = await repo.get(book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")

    book["authors"] = await repo.list_authors(book_id)
    return book


@router.post("/books", status_code=201)
async def create_book(
    request: BookCreate,
    repo: BookRepository = Depends(get_book_repository),
):
    """Add a new book to the catalog."""
    return await repo.create(data=request.model_dump())


@router.patch("/books/{book_id}")
async def update_book(
    book_id: int,
    request: BookUpdate,
    repo: BookRepository = Depends(get_book_repository),
):
    """Update a book's descriptive fields."""
    book = await repo.update(book_id, data=request.model_dump(exclude_unset=True))
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


@router.delete("/books/{book_id}", status_code=204)
async def delete_book(
    book_id: int,
    repo: BookRepository = Depends(get_book_repository),
):
    """Remove a book with its author links, borrows and reservations."""
    if not await repo.delete(book_id):
        raise HTTPException(status_code=404, detail="Book not found")


@router.post("/books/{book_id}/authors/{author_id}", status_code=201)
async def add_book_author(
    book_id: int,
    author_id: int,
    repo: BookRepository = Depends(get_book_repository),
):
    """Credit an author on a book."""
    if not await repo.exists(book_id):
        raise HTTPException(status_code=404, detail="Book not found")
    await repo.add_author(book_id, author_id)
    return {"book_id": book_id, "authors": await repo.list_authors(book_id)}


@router.delete("/books/{book_id}/authors/{author_id}", status_code=204)
async def remove_book_author(
    book_id: int,
    author_id: int,
    repo: BookRepository = Depends(get_book_repository),
):
    if not await repo.remove_author(book_id, author_id):
        raise HTTPException(status_code=404, detail="Author not linked to book")
