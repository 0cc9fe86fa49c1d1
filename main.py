from __future__ import annotations
import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional, List

import bcrypt
from fastapi import FastAPI, HTTPException, Depends, status, Response, Cookie, Request, Query
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError
from sqlalchemy import select, insert, text

from todo_ai import __version__
from todo_ai.analytics import compute_statistics
from todo_ai.config import (
    AUTH_COOKIE, JWT_ALG, JWT_SECRET, JWT_TTL_SECONDS, LOG_LEVEL, TIMEZONE, is_development,
)
from todo_ai.db import engine, init_db, users
from todo_ai.errors import TodoServiceError, ValidationError
from todo_ai.extractor import GeminiTaskInterpreter, TaskInterpreter, extract_todo
from todo_ai.filtering import ViewState, filter_todos
from todo_ai.models import (
    Analysis, AnalyzeTodosRequest, GeneratedTodo, GenerateTodoRequest, Todo, TodoInput, TodoUpdate,
)
from todo_ai.store import create_todo, delete_todo, gen_id, get_todo, list_todos, now_ms, update_todo
from todo_ai.summary import GeminiNarrativeWriter, NarrativeWriter, summarize_todos
from todo_ai.windows import analysis_window, select_window

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("todo_ai.api")

init_db()

# --- Auth / Users ---

bearer = HTTPBearer(auto_error=False)

def _set_auth_cookie(resp: Response, token: str):
    resp.set_cookie(
        key=AUTH_COOKIE,
        value=token,
        max_age=JWT_TTL_SECONDS,
        httponly=True,
        samesite="lax",
        secure=not is_development(),
        path="/",
    )

def _clear_auth_cookie(resp: Response):
    resp.delete_cookie(key=AUTH_COOKIE, path="/")

def _pw_prehash(pw: str) -> bytes:
    """Pre-hash to avoid bcrypt's 72-byte input limit."""
    return hashlib.sha256(pw.encode("utf-8")).digest()

def hash_password(pw: str) -> str:
    return bcrypt.hashpw(_pw_prehash(pw), bcrypt.gensalt(rounds=12)).decode("utf-8")

def verify_password(pw: str, pw_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_pw_prehash(pw), pw_hash.encode("utf-8"))
    except ValueError:
        return False

def create_token(user_id: str) -> str:
    exp = int(datetime.now(tz=timezone.utc).timestamp()) + JWT_TTL_SECONDS
    return jwt.encode({"sub": user_id, "exp": exp}, JWT_SECRET, algorithm=JWT_ALG)

def require_user(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    session_token: str | None = Cookie(default=None, alias=AUTH_COOKIE),
) -> dict:
    token = None
    if creds and creds.credentials:
        token = creds.credentials
    # Some proxies strip the Authorization header.
    elif request.headers.get("x-auth-token"):
        token = request.headers.get("x-auth-token")
    elif session_token:
        token = session_token
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
        uid = payload.get("sub")
        if not uid:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    with engine.connect() as conn:
        u = conn.execute(select(users).where(users.c.id == uid)).mappings().first()
    if not u:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return u

# --- Collaborators (overridable in tests) ---

def get_task_interpreter() -> TaskInterpreter:
    return GeminiTaskInterpreter()

def get_narrative_writer() -> NarrativeWriter:
    return GeminiNarrativeWriter()

def current_time() -> datetime:
    return datetime.now(tz=TIMEZONE)

app = FastAPI(title="AI To-do", version=__version__)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=False, allow_methods=["*"], allow_headers=["*"])

@app.exception_handler(TodoServiceError)
async def todo_service_error_handler(request: Request, exc: TodoServiceError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message()})

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    if request.url.path.startswith("/api/ai/"):
        return JSONResponse(
            status_code=400,
            content={"error": "요청 본문을 파싱할 수 없습니다. JSON 형식을 확인해주세요."},
        )
    return await request_validation_exception_handler(request, exc)

# --- Auth API ---

class AuthRegister(BaseModel):
    email: str = Field(min_length=3, max_length=200)
    password: str = Field(min_length=6, max_length=200)
    name: Optional[str] = Field(default=None, max_length=100)

class AuthLogin(BaseModel):
    email: str = Field(min_length=3, max_length=200)
    password: str = Field(min_length=1, max_length=200)

class UserOut(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    createdAt: int

class AuthOut(BaseModel):
    token: str
    user: UserOut

def to_user_out(r) -> UserOut:
    return UserOut(id=r["id"], email=r["email"], name=r["name"], createdAt=int(r["created_at"]))

@app.post("/api/auth/register", response_model=AuthOut)
def register(payload: AuthRegister, response: Response):
    email = payload.email.strip().lower()
    if "@" not in email or "." not in email:
        raise HTTPException(status_code=400, detail="올바른 이메일 주소를 입력해주세요.")
    name = (payload.name or "").strip() or email.split("@", 1)[0]
    uid = gen_id()
    with engine.begin() as conn:
        if conn.execute(select(users.c.id).where(users.c.email == email)).first():
            raise HTTPException(status_code=400, detail="이미 가입된 이메일입니다.")
        conn.execute(insert(users).values(
            id=uid, email=email, name=name, password_hash=hash_password(payload.password), created_at=now_ms(),
        ))
        u = conn.execute(select(users).where(users.c.id == uid)).mappings().first()
    logger.info("registered user %s", uid)
    token = create_token(uid)
    _set_auth_cookie(response, token)
    return AuthOut(token=token, user=to_user_out(u))

@app.post("/api/auth/login", response_model=AuthOut)
def login(payload: AuthLogin, response: Response):
    email = payload.email.strip().lower()
    with engine.connect() as conn:
        u = conn.execute(select(users).where(users.c.email == email)).mappings().first()
    if not u or not verify_password(payload.password, u["password_hash"]):
        raise HTTPException(status_code=400, detail="이메일 또는 비밀번호가 올바르지 않습니다.")
    token = create_token(u["id"])
    _set_auth_cookie(response, token)
    return AuthOut(token=token, user=to_user_out(u))

@app.post("/api/auth/logout")
def auth_logout(response: Response):
    _clear_auth_cookie(response)
    return {"ok": True}

@app.get("/api/auth/me", response_model=UserOut)
def me(user=Depends(require_user)):
    return to_user_out(user)

@app.get("/api/health")
def health(now: datetime = Depends(current_time)):
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"ok": True, "today": now.date().isoformat()}

# --- Todos API ---

def _require_title(title: str) -> None:
    if not title.strip():
        raise HTTPException(status_code=400, detail="Title is empty")

def _owned_todos(user) -> List[Todo]:
    with engine.connect() as conn:
        return list_todos(conn, user["id"])

@app.get("/api/todos", response_model=List[Todo])
def get_todos(search: str = "", status_filter: str = Query(default="all", alias="status"), priority: str = "all",
              sort: str = "created", direction: str = "desc", user=Depends(require_user)):
    try:
        view = ViewState(search=search, status=status_filter, priority=priority, sort=sort, direction=direction)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return filter_todos(_owned_todos(user), view, TIMEZONE)

@app.get("/api/todos/stats")
def todo_stats(period: str = "today", user=Depends(require_user), now: datetime = Depends(current_time)):
    window = analysis_window(now, period, TIMEZONE)
    subset = select_window(_owned_todos(user), window)
    return {
        "period": period,
        "start": window.start.isoformat(),
        "end": window.end.isoformat(),
        "stats": compute_statistics(subset, now, TIMEZONE).to_dict(),
    }

@app.get("/api/todos/analysis", response_model=Analysis)
def todo_analysis(period: str = "today", user=Depends(require_user), now: datetime = Depends(current_time),
                  writer: NarrativeWriter = Depends(get_narrative_writer)):
    window = analysis_window(now, period, TIMEZONE)
    subset = select_window(_owned_todos(user), window)
    return summarize_todos(subset, period, writer, now, TIMEZONE)

@app.post("/api/todos", response_model=Todo)
def create_todo_route(payload: TodoInput, user=Depends(require_user)):
    _require_title(payload.title)
    with engine.begin() as conn:
        return create_todo(conn, user["id"], payload)

@app.post("/api/todos/from-text", response_model=Todo)
def create_todo_from_text(payload: GenerateTodoRequest, user=Depends(require_user), now: datetime = Depends(current_time),
                          interpreter: TaskInterpreter = Depends(get_task_interpreter)):
    generated = extract_todo(payload.input, interpreter, now, TIMEZONE)
    todo_in = TodoInput(
        title=generated.title, description=generated.description, due_date=generated.due_date,
        priority=generated.priority, category=generated.category,
    )
    with engine.begin() as conn:
        return create_todo(conn, user["id"], todo_in)

@app.patch("/api/todos/{todo_id}", response_model=Todo)
def update_todo_route(todo_id: str, payload: TodoUpdate, user=Depends(require_user)):
    fields = {k: getattr(payload, k) for k in payload.model_fields_set}
    if "title" in fields:
        if fields["title"] is None:
            raise HTTPException(status_code=400, detail="Title is empty")
        _require_title(fields["title"])
    if not fields:
        raise HTTPException(status_code=400, detail="Nothing to update")
    with engine.begin() as conn:
        todo = update_todo(conn, todo_id, user["id"], fields)
    if not todo:
        raise HTTPException(status_code=404, detail="Todo not found")
    return todo

@app.post("/api/todos/{todo_id}/toggle", response_model=Todo)
def toggle_todo(todo_id: str, user=Depends(require_user)):
    with engine.begin() as conn:
        cur = get_todo(conn, todo_id, user["id"])
        if not cur:
            raise HTTPException(status_code=404, detail="Todo not found")
        return update_todo(conn, todo_id, user["id"], {"completed": not cur.completed})

@app.delete("/api/todos/{todo_id}")
def delete_todo_route(todo_id: str, user=Depends(require_user)):
    with engine.begin() as conn:
        if not delete_todo(conn, todo_id, user["id"]):
            raise HTTPException(status_code=404, detail="Todo not found")
    return {"deleted": True}

# --- AI API ---

@app.post("/api/ai/generate-todo", response_model=GeneratedTodo)
def generate_todo(payload: GenerateTodoRequest, request: Request, now: datetime = Depends(current_time),
                  interpreter: TaskInterpreter = Depends(get_task_interpreter)):
    if is_development():
        logger.info(
            "generate-todo request: input_length=%d user_agent=%s",
            len(payload.input) if isinstance(payload.input, str) else 0,
            request.headers.get("user-agent"),
        )
    return extract_todo(payload.input, interpreter, now, TIMEZONE)

def _parse_todos(raw) -> List[Todo]:
    if not isinstance(raw, list):
        raise ValidationError("할 일 목록이 올바르지 않습니다.")
    try:
        return [Todo.model_validate(item) for item in raw]
    except PydanticValidationError as e:
        raise ValidationError("할 일 목록이 올바르지 않습니다.", detail=str(e))

@app.post("/api/ai/analyze-todos", response_model=Analysis)
def analyze_todos(payload: AnalyzeTodosRequest, now: datetime = Depends(current_time),
                  writer: NarrativeWriter = Depends(get_narrative_writer)):
    todos = _parse_todos(payload.todos)
    if payload.period not in ("today", "week"):
        raise ValidationError("분석 기간은 'today' 또는 'week'여야 합니다.")
    return summarize_todos(todos, payload.period, writer, now, TIMEZONE)
