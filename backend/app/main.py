# backend/app/main.py
import logging
import math
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import auth, crud, database, inference, models, schemas
from .config import settings
from .database import get_db
from .errors import NotFound, ReviewAppError, Unauthenticated, Unavailable

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    models.Base.metadata.create_all(bind=database.engine)
    logger.info("Database tables ready")
    yield


app = FastAPI(title="Review & Reaction API", lifespan=lifespan)

# dev CORS for local frontends
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ReviewAppError)
async def review_app_error_handler(request: Request, exc: ReviewAppError):
    if isinstance(exc, Unavailable):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Server error"})
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{where}: {first.get('msg')}" if where else "Invalid request"
    return JSONResponse(status_code=400, content={"detail": message})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("%s %s store failure", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Server error"})


def _page(items, total: int, page: int, limit: int):
    return {
        "items": items,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": math.ceil(total / limit),
        },
    }


# Auth

@app.post("/api/auth/register", response_model=schemas.TokenResponse, status_code=201)
def register(user_in: schemas.UserCreate, db: Session = Depends(get_db)):
    user = crud.create_user(db, user_in)
    return {"access_token": auth.create_token_for_user(user), "user": schemas.UserOut.model_validate(user)}


@app.post("/api/auth/login", response_model=schemas.TokenResponse)
def login(form: schemas.UserLogin, db: Session = Depends(get_db)):
    user = crud.authenticate_user(db, form.email, form.password)
    if user is None:
        logger.warning("Rejected login for %s", form.email)
        raise Unauthenticated("Invalid credentials")
    return {"access_token": auth.create_token_for_user(user), "user": schemas.UserOut.model_validate(user)}


@app.get("/api/auth/me", response_model=schemas.UserOut)
def me(principal: auth.Principal = Depends(auth.get_current_principal), db: Session = Depends(get_db)):
    user = crud.get_user(db, principal.id)
    if user is None:
        raise NotFound("User not found")
    return user


# Reviews

@app.get("/api/reviews", response_model=schemas.ReviewPage)
def list_reviews(
    page: int = 1,
    limit: Optional[int] = None,
    user_id: Optional[int] = Query(None, alias="userId"),
    db: Session = Depends(get_db),
):
    limit = settings.DEFAULT_PAGE_LIMIT if limit is None else limit
    items, total = crud.list_reviews(db, user_id=user_id, page=page, limit=limit)
    return _page(items, total, page, limit)


@app.post("/api/reviews", response_model=schemas.ReviewOut, status_code=201)
def post_review(
    review_in: schemas.ReviewCreate,
    principal: auth.Principal = Depends(auth.get_current_principal),
    classify=Depends(inference.get_classifier),
    db: Session = Depends(get_db),
):
    return crud.create_review(db, principal.id, review_in, classify)


@app.delete("/api/reviews/{review_id}", response_model=schemas.MessageOut)
def delete_review(
    review_id: int,
    principal: auth.Principal = Depends(auth.get_current_principal),
    db: Session = Depends(get_db),
):
    crud.delete_review(db, review_id, principal)
    return {"message": "Review deleted successfully"}


@app.post("/api/reviews/{review_id}/reactions", response_model=schemas.ReactionCounts)
def react(
    review_id: int,
    body: schemas.ReactionCreate,
    principal: auth.Principal = Depends(auth.get_current_principal),
    db: Session = Depends(get_db),
):
    likes, dislikes = crud.react(db, review_id, principal.id, body.reaction_type)
    return {"likes": likes, "dislikes": dislikes}


# Admin

@app.get("/api/admin/reviews", response_model=schemas.AdminReviewPage)
def admin_reviews(
    page: int = 1,
    limit: Optional[int] = None,
    search: str = "",
    principal: auth.Principal = Depends(auth.require_admin),
    db: Session = Depends(get_db),
):
    limit = settings.ADMIN_PAGE_LIMIT if limit is None else limit
    items, total = crud.search_reviews(db, term=search, page=page, limit=limit)
    return _page(items, total, page, limit)


@app.put("/api/admin/reviews/{review_id}/flag", response_model=schemas.MessageOut)
def flag_review(
    review_id: int,
    body: schemas.FlagUpdate,
    principal: auth.Principal = Depends(auth.require_admin),
    db: Session = Depends(get_db),
):
    crud.set_review_flag(db, review_id, body.is_flagged, principal)
    return {"message": "Review flag status updated"}


@app.get("/api/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise Unavailable("Database unreachable") from e
    return {"status": "ok"}
