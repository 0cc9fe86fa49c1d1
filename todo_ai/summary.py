from __future__ import annotations
from datetime import datetime, timezone, tzinfo
import logging
from typing import List, Optional, Protocol, Sequence

from .analytics import StatisticsSnapshot, compute_statistics, is_overdue
from .config import TIMEZONE
from .errors import UnclassifiedRemoteFailure, ValidationError
from .gemini import GeminiClient
from .models import Analysis, Todo
from .windows import to_zone

logger = logging.getLogger(__name__)

ANALYSIS_TEMPERATURE = 0.7
URGENT_LIMIT = 5
FAILURE_MESSAGE = "할 일 분석 중 오류가 발생했습니다."

PERIOD_LABELS = {"today": "오늘", "week": "이번 주"}
PRIORITY_LABELS = {"high": "높음", "medium": "중간", "low": "낮음", "unset": "미설정"}
WEEKDAY_LABELS = {
    "sunday": "일요일", "monday": "월요일", "tuesday": "화요일", "wednesday": "수요일",
    "thursday": "목요일", "friday": "금요일", "saturday": "토요일",
}
DUE_SLOT_LABELS = {"morning": "오전", "afternoon": "오후", "evening": "저녁", "other": "기타"}
CREATED_SLOT_LABELS = {"dawn": "새벽", "morning": "오전", "afternoon": "오후", "evening": "저녁"}

def empty_analysis(period: str) -> Analysis:
    return Analysis(
        summary=f"{PERIOD_LABELS[period]} 등록된 할 일이 없습니다.",
        urgentTasks=[],
        insights=["할 일을 추가하여 시작해보세요!"],
        recommendations=[],
    )

def _tally_lines(stats, labels) -> List[str]:
    return [
        f"- {labels.get(k, k)}: {t.completed}/{t.total}개 완료 ({t.rate:.1f}%)"
        for k, t in stats.items()
    ]

def _todo_line(idx: int, todo: Todo, now: datetime, tz: tzinfo) -> str:
    fmt = "%Y-%m-%d %H:%M"
    created = to_zone(todo.created_date, tz).strftime(fmt)
    due = to_zone(todo.due_date, tz).strftime(fmt) if todo.due_date else "마감일 없음"
    status = "✅ 완료" if todo.completed else "⏳ 진행중"
    priority = f"[{todo.priority}]" if todo.priority else "[미설정]"
    category = ", ".join(todo.category) if todo.category else "카테고리 없음"
    flag = " ⚠️ 연기됨" if is_overdue(todo, now, tz) else ""
    return f'{idx}. {status} {priority} "{todo.title}" - 생성: {created}, 마감: {due}, 카테고리: {category}{flag}'

def build_analysis_prompt(stats: StatisticsSnapshot, period: str, todos: Sequence[Todo],
                          now: datetime, tz: tzinfo = TIMEZONE) -> str:
    now = to_zone(now, tz)
    lines = [
        "당신은 할 일 관리 전문가이자 생산성 코치입니다. 사용자의 할 일 목록을 분석하여 "
        "실용적이고 동기부여가 되는 인사이트를 제공해주세요.",
        "",
        f"현재 날짜/시간: {now.strftime('%Y-%m-%d %H:%M')}",
        f"분석 기간: {PERIOD_LABELS[period]}",
        "",
        "=== 기본 통계 ===",
        f"- 총 할 일 수: {stats.total}개",
        f"- 완료된 할 일: {stats.completed}개",
        f"- 전체 완료율: {stats.completion_rate:.1f}%",
        "",
        "=== 우선순위별 완료율 분석 ===",
        *_tally_lines(stats.by_priority, PRIORITY_LABELS),
        "",
        "=== 카테고리별 완료율 분석 ===",
        *(_tally_lines(stats.by_category, {}) or ["- 카테고리 정보 없음"]),
        "",
        "=== 시간 관리 분석 ===",
        f"- 마감일이 있는 할 일: {stats.with_due_date}개",
        f"- 마감일 준수율: {stats.deadline_compliance_rate:.1f}% (마감일 전 완료: {stats.completed_on_time}개)",
        f"- 연기된 할 일: {len(stats.overdue)}개 (마감일이 지났지만 미완료)",
    ]
    postponed = stats.most_postponed_category
    if stats.overdue and postponed:
        lines.append(f"- 가장 자주 미루는 카테고리: {postponed[0]} ({postponed[1]}개)")

    lines += ["", "=== 시간대별 업무 집중도 (예정된 할 일) ==="]
    lines += [f"- {DUE_SLOT_LABELS[k]}: {n}개" for k, n in stats.time_distribution.items()]

    lines += ["", "=== 생산성 패턴 분석 ===", "요일별 생산성 (생성일 기준):"]
    lines += _tally_lines(stats.by_weekday, WEEKDAY_LABELS)
    day = stats.most_productive_day
    if day:
        lines.append(f"→ 가장 생산적인 요일: {WEEKDAY_LABELS[day]} (완료율 {stats.by_weekday[day].rate:.1f}%)")
    lines += ["", "시간대별 생산성 (생성 시간 기준):"]
    lines += _tally_lines(stats.by_created_slot, CREATED_SLOT_LABELS)
    slot = stats.most_productive_time
    if slot:
        lines.append(f"→ 가장 생산적인 시간대: {CREATED_SLOT_LABELS[slot]} (완료율 {stats.by_created_slot[slot].rate:.1f}%)")

    lines += ["", "=== 작업 유형 분석 ==="]
    lines.append(f"자주 미루는 작업: {postponed[0]} 카테고리 ({postponed[1]}개)" if postponed else "연기된 할 일 없음")
    best = stats.most_completed_category
    if best:
        lines.append(f"가장 잘 완료하는 작업: {best[0]} 카테고리 ({best[1]}개 완료)")

    lines += ["", "=== 할 일 상세 목록 ==="]
    lines += [_todo_line(i, t, now, tz) for i, t in enumerate(todos, start=1)]

    if period == "today":
        focus = ("오늘의 집중도와 생산성을 요약하고, 남은 할 일의 우선순위를 제시해주세요. "
                 "완료율과 함께 오늘 하루의 성과를 긍정적으로 평가해주세요.")
    else:
        focus = ("이번 주 전체 패턴을 요약하고, 완료율, 생산성 트렌드, 주요 성과를 포함해주세요. "
                 "다음 주 계획에 대한 제안도 포함해주세요.")
    lines += [
        "",
        "=== 분석 요청사항 ===",
        "다음 필드를 가진 JSON 객체로 응답해주세요: summary, urgentTasks, insights, recommendations",
        f"1. summary: {focus}",
        "2. urgentTasks: 미완료이면서 우선순위가 높거나 마감이 24시간 이내인 할 일 제목 (최대 5개)",
        "3. insights: 완료율, 시간 관리, 생산성 패턴, 개선 기회를 다루는 구체적인 수치가 담긴 인사이트 3-5개"
        + (" (주간 트렌드 포함)" if period == "week" else ""),
        "4. recommendations: 즉시 실행 가능한 구체적인 추천 3-4개",
        "",
        "긍정적인 톤으로, 대화하듯 자연스러운 한국어로 작성해주세요.",
    ]
    return "\n".join(lines)

class NarrativeWriter(Protocol):
    def write(self, prompt: str) -> dict: ...

class GeminiNarrativeWriter:
    def __init__(self, client: Optional[GeminiClient] = None):
        self.client = client or GeminiClient()

    def write(self, prompt: str) -> dict:
        return self.client.generate_json(prompt, temperature=ANALYSIS_TEMPERATURE, failure_message=FAILURE_MESSAGE)

class FixedNarrativeWriter:
    """Returns the same narrative for every prompt and remembers the prompts."""

    def __init__(self, response: dict):
        self.response = response
        self.prompts: List[str] = []

    def write(self, prompt: str) -> dict:
        self.prompts.append(prompt)
        return dict(self.response)

def _string_list(data: dict, field: str) -> List[str]:
    value = data.get(field)
    if not isinstance(value, list):
        raise UnclassifiedRemoteFailure(FAILURE_MESSAGE, detail=f"'{field}' is not a list")
    return [str(v) for v in value]

def shape_analysis(data: dict) -> Analysis:
    summary = data.get("summary")
    if not isinstance(summary, str):
        raise UnclassifiedRemoteFailure(FAILURE_MESSAGE, detail="'summary' is missing")
    return Analysis(
        summary=summary,
        urgentTasks=_string_list(data, "urgentTasks")[:URGENT_LIMIT],
        insights=_string_list(data, "insights"),
        recommendations=_string_list(data, "recommendations"),
    )

def summarize_todos(todos: Sequence[Todo], period: str, writer: NarrativeWriter,
                    now: Optional[datetime] = None, tz: tzinfo = TIMEZONE) -> Analysis:
    if period not in PERIOD_LABELS:
        raise ValidationError("분석 기간은 'today' 또는 'week'여야 합니다.")
    if not todos:
        return empty_analysis(period)
    now = to_zone(now or datetime.now(tz=timezone.utc), tz)
    stats = compute_statistics(todos, now, tz)
    prompt = build_analysis_prompt(stats, period, todos, now, tz)
    logger.info("requesting %s analysis for %d todos", period, stats.total)
    return shape_analysis(writer.write(prompt))
