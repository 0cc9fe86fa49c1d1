from __future__ import annotations

import unittest

from todo_ai.errors import ValidationError
from todo_ai.extractor import (
    FixedTaskInterpreter,
    build_extraction_prompt,
    extract_todo,
    finalize_candidate,
    normalize_input,
)

from tests.helpers import KST, NOW


class TestNormalizeInput(unittest.TestCase):
    def test_whitespace_collapsed_and_trimmed(self) -> None:
        self.assertEqual("내일 오후 3시 회의", normalize_input("  내일   오후 3시 회의   "))
        self.assertEqual("a b", normalize_input("a\t\n b"))

    def test_empty_input(self) -> None:
        for raw in ("", "    ", "\n\t"):
            with self.assertRaises(ValidationError) as ctx:
                normalize_input(raw)
            self.assertEqual("할 일을 입력해주세요.", ctx.exception.message)

    def test_too_short(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            normalize_input(" a ")
        self.assertIn("최소 2자", ctx.exception.message)

    def test_too_long_reports_length(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            normalize_input("가" * 501)
        self.assertIn("최대 500자", ctx.exception.message)
        self.assertIn("(현재: 501자)", ctx.exception.message)
        self.assertEqual(500, len(normalize_input("가" * 500)))

    def test_non_string(self) -> None:
        for raw in (None, 42, ["회의"]):
            with self.assertRaises(ValidationError) as ctx:
                normalize_input(raw)
            self.assertEqual(400, ctx.exception.status_code)


class TestFinalizeCandidate(unittest.TestCase):
    text = "내일 오후 3시 회의"

    def finalize(self, **candidate):
        return finalize_candidate(candidate, self.text, NOW, KST)

    def test_full_candidate_passes_through(self) -> None:
        todo = self.finalize(
            title="팀 회의", description=" 회의 준비 ", due_date="2026-10-15T15:00:00",
            priority="high", category=["업무"],
        )
        self.assertEqual("팀 회의", todo.title)
        self.assertEqual("회의 준비", todo.description)
        self.assertEqual("2026-10-15T15:00:00", todo.due_date)
        self.assertEqual("high", todo.priority)
        self.assertEqual(["업무"], todo.category)

    def test_defaults_for_empty_candidate(self) -> None:
        todo = self.finalize()
        self.assertEqual(self.text, todo.title)
        self.assertIsNone(todo.description)
        self.assertIsNone(todo.due_date)
        self.assertEqual("medium", todo.priority)
        self.assertEqual(["개인"], todo.category)

    def test_missing_title_uses_first_hundred_chars(self) -> None:
        text = "가" * 150
        todo = finalize_candidate({}, text, NOW, KST)
        self.assertEqual("가" * 100, todo.title)

    def test_short_title_falls_back_to_input(self) -> None:
        text = "나" * 80
        todo = finalize_candidate({"title": " x "}, text, NOW, KST)
        self.assertEqual("나" * 50, todo.title)

    def test_long_title_is_cut_with_ellipsis(self) -> None:
        todo = self.finalize(title="다" * 250)
        self.assertEqual(200, len(todo.title))
        self.assertTrue(todo.title.endswith("..."))
        self.assertEqual("다" * 197, todo.title[:197])

    def test_date_only_defaults_to_nine(self) -> None:
        self.assertEqual("2026-10-16T09:00:00", self.finalize(due_date="2026-10-16").due_date)

    def test_trailing_zone_suffix_is_dropped(self) -> None:
        self.assertEqual("2026-10-16T18:30:00", self.finalize(due_date="2026-10-16T18:30:00.000Z").due_date)

    def test_three_days_past_is_discarded(self) -> None:
        self.assertIsNone(self.finalize(due_date="2026-10-11T10:00:00").due_date)

    def test_yesterday_is_tolerated(self) -> None:
        self.assertEqual("2026-10-13T09:00:00", self.finalize(due_date="2026-10-13").due_date)

    def test_two_days_past_is_discarded(self) -> None:
        self.assertIsNone(self.finalize(due_date="2026-10-12T23:00:00").due_date)

    def test_unparseable_dates_are_discarded(self) -> None:
        for value in ("next friday", "10/16/2026", "2026-02-30", 20261016, ""):
            self.assertIsNone(self.finalize(due_date=value).due_date, value)

    def test_unknown_priority_becomes_medium(self) -> None:
        self.assertEqual("medium", self.finalize(priority="urgent").priority)
        self.assertEqual("low", self.finalize(priority="low").priority)

    def test_blank_categories_become_personal(self) -> None:
        self.assertEqual(["개인"], self.finalize(category=[]).category)
        self.assertEqual(["개인"], self.finalize(category=["  "]).category)
        self.assertEqual(["건강"], self.finalize(category="건강").category)


class TestExtractTodo(unittest.TestCase):
    def test_interpreter_receives_normalized_text(self) -> None:
        interpreter = FixedTaskInterpreter({
            "내일 오후 3시 회의": {"title": "회의", "due_date": "2026-10-15T15:00:00", "category": ["업무"]},
        })
        todo = extract_todo("  내일   오후 3시 회의   ", interpreter, NOW, KST)
        self.assertEqual(["내일 오후 3시 회의"], interpreter.calls)
        self.assertEqual("회의", todo.title)
        self.assertEqual("2026-10-15T15:00:00", todo.due_date)
        self.assertEqual("medium", todo.priority)

    def test_remote_past_date_is_discarded(self) -> None:
        interpreter = FixedTaskInterpreter({}, default={"title": "보고서 제출", "due_date": "2026-10-11"})
        todo = extract_todo("보고서 제출", interpreter, NOW, KST)
        self.assertIsNone(todo.due_date)

    def test_validation_happens_before_remote_call(self) -> None:
        interpreter = FixedTaskInterpreter({})
        with self.assertRaises(ValidationError):
            extract_todo("x", interpreter, NOW, KST)
        self.assertEqual([], interpreter.calls)

    def test_prompt_carries_local_date_and_weekday(self) -> None:
        prompt = build_extraction_prompt("회의 준비", NOW)
        self.assertIn("2026-10-14 (수요일)", prompt)
        self.assertIn("12:00", prompt)
        self.assertIn('"회의 준비"', prompt)


if __name__ == "__main__":
    unittest.main()
