"""Tests for src.core.email_templates — subjects and bodies."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from src.core.email_templates import deadline_subject, render_deadline_batch, render_digest
from src.data.models import Task, User

IST = ZoneInfo("Asia/Kolkata")


def _user():
    return User(id=1, email="asha@example.edu", display_name="Asha <3")


def _task(title="Lab report", **kwargs):
    return Task(
        id=kwargs.pop("id", 1),
        owner_id=1,
        title=title,
        due_at=kwargs.pop("due_at", datetime(2026, 3, 13, 12, 0, tzinfo=timezone.utc)),
        **kwargs,
    )


class TestDeadlineSubject:
    def test_today(self):
        assert deadline_subject(1, 0) == "🚨 1 academic task due TODAY!"

    def test_tomorrow_plural(self):
        assert deadline_subject(2, 1) == "⏰ 2 academic tasks due TOMORROW!"

    def test_days_out(self):
        assert deadline_subject(3, 7) == "📅 3 academic tasks due in 7 days"


class TestRenderDeadlineBatch:
    def test_lists_every_task_once(self):
        tasks = [_task("Lab report", id=1), _task("Essay", id=2, category="Writing")]
        email = render_deadline_batch(_user(), tasks, 3, IST, "Academic Deadline")
        assert email.subject == "📅 2 academic tasks due in 3 days"
        assert email.html.count("Lab report") == 1
        assert "Essay" in email.html
        assert "Writing" in email.html
        assert "You have 2 tasks due in 3 days." in email.text

    def test_urgent_color_for_tomorrow(self):
        email = render_deadline_batch(_user(), [_task()], 1, IST, "Academic Deadline")
        assert "#dc3545" in email.html

    def test_warning_and_info_colors(self):
        warning = render_deadline_batch(_user(), [_task()], 3, IST, "Academic Deadline")
        info = render_deadline_batch(_user(), [_task()], 7, IST, "Academic Deadline")
        assert "#fd7e14" in warning.html
        assert "#007bff" in info.html

    def test_user_text_is_escaped(self):
        task = _task("<script>alert(1)</script>", notes="a & b")
        email = render_deadline_batch(_user(), [task], 1, IST, "Academic Deadline")
        assert "<script>" not in email.html
        assert "&lt;script&gt;" in email.html
        assert "a &amp; b" in email.html
        assert "Asha &lt;3" in email.html

    def test_priority_star_and_default_category(self):
        email = render_deadline_batch(_user(), [_task(is_priority=True)], 2, IST, "Academic Deadline")
        assert "🌟" in email.html
        assert "General" in email.text

    def test_due_time_in_local_timezone(self):
        email = render_deadline_batch(_user(), [_task()], 2, IST, "Academic Deadline")
        # 12:00 UTC is 17:30 in India
        assert "17:30" in email.text


class TestRenderDigest:
    NOW = datetime(2026, 3, 10, 12, 45, tzinfo=timezone.utc)

    def test_both_sections(self):
        email = render_digest(
            _user(), [_task("Quiz")], [_task("Essay", id=2)], self.NOW, IST, "Academic Deadline",
        )
        assert email.subject == "📚 Your Academic Summary - 10 Mar 2026"
        assert "Quiz" in email.html
        assert "Essay" in email.html
        assert "18:15" in email.html

    def test_empty_today_message(self):
        email = render_digest(_user(), [], [_task("Essay")], self.NOW, IST, "Academic Deadline")
        assert "No tasks due today!" in email.html
        assert "Nothing due today." in email.text

    def test_empty_upcoming_message(self):
        email = render_digest(_user(), [_task("Quiz")], [], self.NOW, IST, "Academic Deadline")
        assert "No upcoming tasks in the next week." in email.html
