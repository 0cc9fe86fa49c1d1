"""Natural-language task creation.

The remote model does the interpretation (relative dates, time words,
priority and category keywords). Everything after the round trip is local and
deterministic: :func:`finalize_candidate` clamps and defaults the candidate
record so the caller always receives a storable task.
"""
from __future__ import annotations
from datetime import date, datetime, timezone, tzinfo
import logging
import re
from typing import Dict, Optional, Protocol

from .config import TIMEZONE
from .errors import GENERATE_QUOTA_MESSAGE, ValidationError
from .gemini import GeminiClient
from .models import PRIORITIES, GeneratedTodo
from .windows import to_zone, js_weekday

logger = logging.getLogger(__name__)

MIN_INPUT = 2
MAX_INPUT = 500
TITLE_FALLBACK = 100
SHORT_TITLE_FALLBACK = 50
MAX_TITLE = 200
DEFAULT_TITLE = "할 일"
DEFAULT_PRIORITY = "medium"
DEFAULT_CATEGORY = "개인"
DEFAULT_DUE_TIME = "09:00:00"
EXTRACTION_TEMPERATURE = 0.3

WEEKDAY_NAMES_KO = ("일요일", "월요일", "화요일", "수요일", "목요일", "금요일", "토요일")

_DUE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:T(\d{2}:\d{2}:\d{2}))?")
_WS_RE = re.compile(r"\s+")

def normalize_input(raw) -> str:
    """Collapse whitespace runs, trim, and enforce the 2..500 character bounds."""
    if not isinstance(raw, str):
        raise ValidationError("입력값은 문자열이어야 합니다.")
    text = _WS_RE.sub(" ", raw.strip())
    if not text:
        raise ValidationError("할 일을 입력해주세요.")
    if len(text) < MIN_INPUT:
        raise ValidationError(f"할 일은 최소 {MIN_INPUT}자 이상 입력해주세요.")
    if len(text) > MAX_INPUT:
        raise ValidationError(f"할 일은 최대 {MAX_INPUT}자까지 입력할 수 있습니다. (현재: {len(text)}자)")
    return text

class TaskInterpreter(Protocol):
    def interpret(self, text: str, now: datetime) -> dict: ...

def build_extraction_prompt(text: str, now: datetime) -> str:
    today = now.strftime("%Y-%m-%d")
    clock = now.strftime("%H:%M")
    weekday = WEEKDAY_NAMES_KO[js_weekday(now)]
    return f"""당신은 자연어로 입력된 할 일을 구조화된 데이터로 변환하는 AI 어시스턴트입니다.

현재 날짜/시간 정보:
- 오늘: {today} ({weekday})
- 현재 시간: {clock}

다음 규칙에 따라 입력을 분석하고 JSON 객체로 응답하세요.
필드: title, description, due_date, priority, category

1. title: 핵심 할 일을 간결한 제목으로 (예: "내일 오후 3시까지 중요한 팀 회의 준비하기" → "팀 회의 준비")
2. description: 원본 입력문 또는 보완한 설명, 없으면 null
3. due_date:
   - "오늘" → {today}, "내일" → +1일, "모레" → +2일
   - "이번 주 [요일]" → 가장 가까운 해당 요일, "다음 주 [요일]" → 다음 주의 해당 요일
   - 시간: 아침 09:00, 점심 12:00, 오후 14:00, 저녁 18:00, 밤 21:00, "오전/오후 N시"는 24시간 형식
   - 형식: "YYYY-MM-DDTHH:mm:ss" 또는 시간이 없으면 "YYYY-MM-DD", 마감이 없으면 null
4. priority: "high"(급하게, 중요한, 빨리, 꼭, 반드시), "medium"(보통, 적당히, 키워드 없음), "low"(여유롭게, 천천히, 언젠가)
5. category: 배열. "업무"(회의, 보고서, 프로젝트), "개인"(쇼핑, 친구, 가족), "건강"(운동, 병원, 요가), "학습"(공부, 책, 강의)

입력된 자연어: "{text}"
"""

class GeminiTaskInterpreter:
    def __init__(self, client: Optional[GeminiClient] = None):
        self.client = client or GeminiClient()

    def interpret(self, text: str, now: datetime) -> dict:
        return self.client.generate_json(
            build_extraction_prompt(text, now),
            temperature=EXTRACTION_TEMPERATURE,
            failure_message="할 일 생성 중 오류가 발생했습니다.",
            quota_message=GENERATE_QUOTA_MESSAGE,
        )

class FixedTaskInterpreter:
    """Deterministic interpreter: fixed candidates for fixed inputs.

    Unknown inputs get ``default`` (an empty candidate unless given), which
    exercises every local fallback.
    """

    def __init__(self, mapping: Dict[str, dict], default: Optional[dict] = None):
        self.mapping = dict(mapping)
        self.default = default or {}
        self.calls = []

    def interpret(self, text: str, now: datetime) -> dict:
        self.calls.append(text)
        return dict(self.mapping.get(text, self.default))

def _clean_title(candidate_title, text: str) -> str:
    title = candidate_title if isinstance(candidate_title, str) and candidate_title else text[:TITLE_FALLBACK]
    title = title.strip()
    if len(title) < 2:
        title = text[:SHORT_TITLE_FALLBACK].strip() or DEFAULT_TITLE
    if len(title) > MAX_TITLE:
        title = title[:MAX_TITLE - 3] + "..."
    return title

def _clean_due(value, today: date) -> Optional[str]:
    if not isinstance(value, str):
        return None
    m = _DUE_RE.match(value.strip())
    if not m:
        return None
    day, clock = m.group(1), m.group(2) or DEFAULT_DUE_TIME
    try:
        parsed = datetime.strptime(f"{day}T{clock}", "%Y-%m-%dT%H:%M:%S")
    except ValueError:
        return None
    # Yesterday is tolerated; anything older is dropped.
    if (parsed.date() - today).days < -1:
        return None
    return parsed.strftime("%Y-%m-%dT%H:%M:%S")

def _clean_categories(value) -> list:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return [DEFAULT_CATEGORY]
    cats = [c.strip() for c in value if isinstance(c, str) and c.strip()]
    return cats or [DEFAULT_CATEGORY]

def finalize_candidate(candidate: dict, text: str, now: datetime, tz: tzinfo = TIMEZONE) -> GeneratedTodo:
    today = to_zone(now, tz).date()
    description = candidate.get("description")
    priority = candidate.get("priority")
    return GeneratedTodo(
        title=_clean_title(candidate.get("title"), text),
        description=(description.strip() or None) if isinstance(description, str) else None,
        due_date=_clean_due(candidate.get("due_date"), today),
        priority=priority if priority in PRIORITIES else DEFAULT_PRIORITY,
        category=_clean_categories(candidate.get("category")),
    )

def extract_todo(raw, interpreter: TaskInterpreter, now: Optional[datetime] = None,
                 tz: tzinfo = TIMEZONE) -> GeneratedTodo:
    text = normalize_input(raw)
    local_now = to_zone(now or datetime.now(tz=timezone.utc), tz)
    candidate = interpreter.interpret(text, local_now)
    if not isinstance(candidate, dict):
        candidate = {}
    logger.debug("extracted candidate for %d chars: %s", len(text), candidate)
    return finalize_candidate(candidate, text, local_now, tz)
