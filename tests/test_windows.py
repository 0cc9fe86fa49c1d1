from __future__ import annotations

from datetime import datetime, timezone
import unittest

from todo_ai.errors import ValidationError
from todo_ai.windows import analysis_window, js_weekday, select_window, to_zone

from tests.helpers import KST, NOW, kst, make_todo, titles


class TestAnalysisWindow(unittest.TestCase):
    def test_today_spans_local_day(self) -> None:
        window = analysis_window(NOW, "today", KST)
        self.assertEqual(kst(2026, 10, 14), window.start)
        self.assertEqual(datetime(2026, 10, 14, 23, 59, 59, 999000, tzinfo=KST), window.end)
        self.assertEqual("today", window.period)

    def test_week_from_wednesday_runs_monday_to_sunday(self) -> None:
        self.assertEqual(3, js_weekday(NOW))
        window = analysis_window(NOW, "week", KST)
        self.assertEqual(kst(2026, 10, 12), window.start)
        self.assertEqual(datetime(2026, 10, 18, 23, 59, 59, 999000, tzinfo=KST), window.end)

    def test_week_on_sunday_reaches_back_six_days(self) -> None:
        window = analysis_window(kst(2026, 10, 18, 22), "week", KST)
        self.assertEqual(kst(2026, 10, 12), window.start)
        self.assertEqual(18, window.end.day)

    def test_week_on_monday_starts_same_day(self) -> None:
        window = analysis_window(kst(2026, 10, 19, 0, 30), "week", KST)
        self.assertEqual(kst(2026, 10, 19), window.start)
        self.assertEqual(25, window.end.day)

    def test_instant_is_read_in_configured_zone(self) -> None:
        # 20:00 UTC on the 13th is already the 14th in Seoul.
        utc_now = datetime(2026, 10, 13, 20, 0, tzinfo=timezone.utc)
        window = analysis_window(utc_now, "today", KST)
        self.assertEqual(kst(2026, 10, 14), window.start)

    def test_unknown_period_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            analysis_window(NOW, "month", KST)

    def test_naive_values_are_wall_clock(self) -> None:
        self.assertEqual(kst(2026, 10, 14, 9), to_zone(datetime(2026, 10, 14, 9), KST))


class TestSelectWindow(unittest.TestCase):
    def test_created_or_due_inside_window(self) -> None:
        todos = [
            make_todo("created today", created=kst(2026, 10, 14, 8)),
            make_todo("due today", created=kst(2026, 10, 1), due=kst(2026, 10, 14, 18)),
            make_todo("old", created=kst(2026, 10, 1), due=kst(2026, 10, 20)),
            make_todo("old undated", created=kst(2026, 10, 13, 23, 59)),
        ]
        window = analysis_window(NOW, "today", KST)
        self.assertEqual(["created today", "due today"], titles(select_window(todos, window)))

    def test_week_boundaries_are_inclusive(self) -> None:
        todos = [
            make_todo("monday midnight", created=kst(2026, 10, 12)),
            make_todo("sunday late", created=datetime(2026, 10, 18, 23, 59, 59, 999000, tzinfo=KST)),
            make_todo("next monday", created=kst(2026, 10, 19)),
        ]
        window = analysis_window(NOW, "week", KST)
        self.assertEqual(["monday midnight", "sunday late"], titles(select_window(todos, window)))


if __name__ == "__main__":
    unittest.main()
