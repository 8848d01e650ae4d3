"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the academy records backend.
Controllers are intentionally thin: they accept requests, delegate to
services, translate `academy.errors` into HTTP status codes and return
JSON responses.

Endpoints implemented:
- GET /health
- GET, POST /api/students
- GET, PUT, DELETE /api/students/{student_id}
- GET, POST /api/payments
- PUT /api/payments/status/{student_id}
- GET, POST /api/news
- GET, PUT, DELETE /api/news/{post_id}
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlmodel import Session
from typing import Optional
import os
import json
import logging
import time
import uuid
from pathlib import Path
from .database import engine, create_db_and_tables, get_session
from . import errors, models, services
from .schemas import StudentIn, PaymentIn, PaymentStatusUpdateIn, NewsIn
from .config import settings

logger = logging.getLogger("academy.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    engine.dispose()
    logger.info("database engine disposed")


app = FastAPI(title="Table Tennis Academy Records API", lifespan=lifespan)

# Wide-open CORS keeps the academy's static admin pages working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

static_dir = Path(__file__).resolve().parent.parent / "static"
if static_dir.exists():
    app.mount("/static", StaticFiles(directory=static_dir), name="static")

create_db_and_tables()


def _log_request(level: int, event: str, request: Request, req_id: str, started: float, **extra) -> None:
    payload = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        **extra,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client": request.client.host if request.client else "unknown",
    }
    logger.log(level, "%s %s", event, json.dumps(payload, ensure_ascii=True), exc_info=level >= logging.ERROR)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    declared = request.headers.get("content-length")
    if declared is not None:
        if not declared.isdigit():
            return JSONResponse(status_code=400, content={"detail": "invalid Content-Length"},
                                headers={"X-Request-ID": req_id})
        if int(declared) > settings.MAX_BODY_BYTES:
            return JSONResponse(status_code=413, content={"detail": "request body too large"},
                                headers={"X-Request-ID": req_id})
    elif request.method in ("POST", "PUT", "PATCH"):
        # Chunked uploads carry no Content-Length; Starlette caches the body for the endpoint.
        if len(await request.body()) > settings.MAX_BODY_BYTES:
            return JSONResponse(status_code=413, content={"detail": "request body too large"},
                                headers={"X-Request-ID": req_id})
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        _log_request(logging.ERROR, "request_failed", request, req_id, started)
        raise
    response.headers["X-Request-ID"] = req_id
    if request.url.path.startswith("/api"):
        _log_request(logging.INFO, "request_done", request, req_id, started, status_code=response.status_code)
    return response


@app.exception_handler(RequestValidationError)
async def malformed_request_handler(request: Request, exc: RequestValidationError):
    err = errors.MalformedRequestError("malformed request payload")
    return JSONResponse(
        status_code=errors.status_code_for(err),
        content={"detail": str(err), "errors": jsonable_encoder(
            [{k: e[k] for k in ("loc", "msg", "type") if k in e} for e in exc.errors()]
        )},
    )


@app.exception_handler(errors.AcademyError)
async def academy_error_handler(request: Request, exc: errors.AcademyError):
    return JSONResponse(status_code=errors.status_code_for(exc), content={"detail": str(exc)})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    # Already logged with traceback by the request middleware; keep serving.
    return JSONResponse(status_code=500, content={"detail": "internal server error"},
                        headers={"X-Request-ID": getattr(request.state, "request_id", "")})


def _http_error(exc: errors.AcademyError) -> HTTPException:
    return HTTPException(status_code=errors.status_code_for(exc), detail=str(exc))


def _news_out(post: models.NewsPost) -> dict:
    return {
        'id': post.id,
        'title': post.title,
        'content': post.content,
        'category': post.category,
        'image': post.image,
        'status': post.status,
        'isBreaking': bool(post.is_breaking),
        'isHighlighted': bool(post.is_highlighted),
        'date': post.display_date,
        'created_at': post.created_at,
    }


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


@app.get('/api/students')
def list_students(db: Session = Depends(get_session)):
    """List all students, most recently created first."""
    return [s.model_dump() for s in services.StudentService(db).list_students()]


@app.post('/api/students', status_code=201)
def create_student(payload: StudentIn, db: Session = Depends(get_session)):
    """Register a student. Only `name` is required."""
    try:
        student = services.StudentService(db).create_student(payload.model_dump(exclude_unset=True))
    except errors.AcademyError as e:
        raise _http_error(e)
    return student.model_dump()


@app.get('/api/students/{student_id}')
def get_student(student_id: int, db: Session = Depends(get_session)):
    try:
        student = services.StudentService(db).get_student(student_id)
    except errors.AcademyError as e:
        raise _http_error(e)
    return student.model_dump()


@app.put('/api/students/{student_id}')
def update_student(student_id: int, payload: StudentIn, db: Session = Depends(get_session)):
    """Edit a student's profile or amount; omitted fields are kept."""
    try:
        student = services.StudentService(db).update_student(student_id, payload.model_dump(exclude_unset=True))
    except errors.AcademyError as e:
        raise _http_error(e)
    return student.model_dump()


@app.delete('/api/students/{student_id}')
def delete_student(student_id: int, db: Session = Depends(get_session)):
    """Delete a student together with all of its payments.

    Returns `{success, message, deletedPayments}`. Responds 404 when the
    student does not exist and 409 when it vanished mid-delete.
    """
    try:
        return services.StudentLifecycleService(db).delete_student(student_id)
    except errors.AcademyError as e:
        raise _http_error(e)


@app.get('/api/payments')
def list_payments(student_id: Optional[int] = None, db: Session = Depends(get_session)):
    """List payments with `student_name` and, if enabled, `current_status`.

    Pass `student_id` to restrict the list to one student.
    """
    return services.PaymentService(db).list_payments(student_id=student_id)


@app.post('/api/payments', status_code=201)
def create_payment(payload: PaymentIn, db: Session = Depends(get_session)):
    """Record a payment for an existing student."""
    try:
        payment = services.PaymentService(db).create_payment(payload.model_dump(exclude_unset=True))
    except errors.AcademyError as e:
        raise _http_error(e)
    return payment.model_dump()


@app.put('/api/payments/status/{student_id}')
def update_payment_status(student_id: int, payload: PaymentStatusUpdateIn, db: Session = Depends(get_session)):
    """Reconcile a student's payment statuses against the reported `amount`.

    Creates a `System` payment when the student has none yet; otherwise
    recomputes the status of every existing payment.
    """
    try:
        return services.StudentLifecycleService(db).reconcile_payment_status(student_id, payload.amount)
    except errors.AcademyError as e:
        raise _http_error(e)


@app.get('/api/news')
def list_news(status: Optional[str] = None, db: Session = Depends(get_session)):
    """List news posts, newest first; `status=published` filters drafts out."""
    return [_news_out(p) for p in services.NewsService(db).list_posts(status)]


@app.get('/api/news/{post_id}')
def get_news(post_id: int, db: Session = Depends(get_session)):
    try:
        post = services.NewsService(db).get_post(post_id)
    except errors.AcademyError as e:
        raise _http_error(e)
    return _news_out(post)


@app.post('/api/news', status_code=201)
def create_news(payload: NewsIn, db: Session = Depends(get_session)):
    try:
        post = services.NewsService(db).create_post(payload.model_dump(exclude_unset=True))
    except errors.AcademyError as e:
        raise _http_error(e)
    return _news_out(post)


@app.put('/api/news/{post_id}')
def update_news(post_id: int, payload: NewsIn, db: Session = Depends(get_session)):
    try:
        post = services.NewsService(db).update_post(post_id, payload.model_dump(exclude_unset=True))
    except errors.AcademyError as e:
        raise _http_error(e)
    return _news_out(post)


@app.delete('/api/news/{post_id}')
def delete_news(post_id: int, db: Session = Depends(get_session)):
    try:
        services.NewsService(db).delete_post(post_id)
    except errors.AcademyError as e:
        raise _http_error(e)
    return {'success': True, 'message': 'News post deleted successfully'}
