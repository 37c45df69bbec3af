"""
Academic Deadline — Reminder email rendering.

Builds subject lines and HTML/plain-text bodies for deadline batches and the
daily digest. Everything the user typed is HTML-escaped.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
from html import escape

from src.core.reminder_window import URGENCY_URGENT, URGENCY_WARNING, urgency_for
from src.data.models import Task, User

_URGENCY_COLORS = {
    URGENCY_URGENT: "#dc3545",
    URGENCY_WARNING: "#fd7e14",
}
_INFO_COLOR = "#007bff"


@dataclass
class RenderedEmail:
    subject: str
    html: str
    text: str


def _plural(count: int) -> str:
    return "task" if count == 1 else "tasks"


def _due_phrase(lead_days: int) -> str:
    if lead_days == 0:
        return "due TODAY!"
    if lead_days == 1:
        return "due TOMORROW!"
    return f"due in {lead_days} days"


def _icon(lead_days: int) -> str:
    if lead_days == 0:
        return "🚨"
    if lead_days == 1:
        return "⏰"
    return "📅"


def _format_due(task: Task, tz: tzinfo) -> str:
    return task.due_at.astimezone(tz).strftime("%a %d %b %Y at %H:%M")


def deadline_subject(task_count: int, lead_days: int) -> str:
    """E.g. "⏰ 2 academic tasks due TOMORROW!"."""
    return f"{_icon(lead_days)} {task_count} academic {_plural(task_count)} {_due_phrase(lead_days)}"


def render_deadline_batch(
    user: User, tasks: list[Task], lead_days: int, tz: tzinfo, app_name: str,
) -> RenderedEmail:
    """Render one reminder covering every task in the batch."""
    color = _URGENCY_COLORS.get(urgency_for(lead_days), _INFO_COLOR)
    count = len(tasks)
    headline = f"You have {count} {_plural(count)} {_due_phrase(lead_days)}"
    if lead_days > 1:
        headline += "."

    cards = []
    lines = []
    for task in tasks:
        star = "🌟 " if task.is_priority else ""
        notes = (
            f'<p style="color: #495057; margin: 10px 0 0 0;"><em>{escape(task.notes)}</em></p>'
            if task.notes else ""
        )
        cards.append(
            '<div style="background-color: #f8f9fa; border: 1px solid #dee2e6; '
            'border-radius: 8px; padding: 15px; margin-bottom: 10px;">'
            f'<h3 style="margin: 0 0 10px 0;">{star}{escape(task.title)}</h3>'
            f'<p style="color: #6c757d; margin: 5px 0;"><strong>Category:</strong> '
            f'{escape(task.category or "General")}</p>'
            f'<p style="color: #6c757d; margin: 5px 0;"><strong>Due:</strong> '
            f'{_format_due(task, tz)}</p>'
            f"{notes}</div>"
        )
        lines.append(f"- {star}{task.title} ({task.category or 'General'}), due {_format_due(task, tz)}")
        if task.notes:
            lines.append(f"  {task.notes}")

    html = (
        '<!DOCTYPE html><html><head><meta charset="utf-8">'
        "<title>Academic Deadline Reminder</title></head>"
        '<body style="font-family: Segoe UI, Tahoma, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<div style="background: {color}; color: white; padding: 30px; text-align: center;">'
        f"<h1>{_icon(lead_days)} Academic Deadline Reminder</h1>"
        f"<p>Hello {escape(user.display_name)}!</p></div>"
        f'<div style="border-left: 4px solid {color}; padding: 15px;">'
        f'<p style="font-weight: bold; color: {color};">{headline}</p></div>'
        "<h2>Your Upcoming Tasks:</h2>"
        + "".join(cards)
        + '<p style="color: #6c757d; font-size: 12px;">'
        "This reminder was sent because you have email reminders enabled. "
        "You can manage your notification preferences in your account settings.</p>"
        f'<p style="color: #6c757d; font-size: 12px;">{escape(app_name)}</p>'
        "</body></html>"
    )
    text = "\n".join(
        [f"Hello {user.display_name}!", "", headline, ""]
        + lines
        + ["", "You can manage your notification preferences in your account settings.", app_name]
    )
    return RenderedEmail(subject=deadline_subject(count, lead_days), html=html, text=text)


def render_digest(
    user: User,
    today_tasks: list[Task],
    upcoming_tasks: list[Task],
    now: datetime,
    tz: tzinfo,
    app_name: str,
) -> RenderedEmail:
    """Render the daily summary of today's and this week's deadlines."""
    local_now = now.astimezone(tz)
    date_label = local_now.strftime("%d %b %Y")

    def _today_item(task: Task) -> str:
        category = f' <span style="color: #6c757d;">({escape(task.category)})</span>' if task.category else ""
        star = " 🌟" if task.is_priority else ""
        return f"<li><strong>{escape(task.title)}</strong>{category}{star}</li>"

    def _upcoming_item(task: Task) -> str:
        star = " 🌟" if task.is_priority else ""
        due = task.due_at.astimezone(tz).strftime("%d %b %Y")
        return (
            f"<li><strong>{escape(task.title)}</strong> - "
            f'<span style="color: #dc3545;">Due: {due}</span>{star}</li>'
        )

    today_html = (
        "".join(_today_item(t) for t in today_tasks)
        if today_tasks
        else '<li style="color: #28a745;">No tasks due today! Great job! 🎉</li>'
    )
    upcoming_html = (
        "".join(_upcoming_item(t) for t in upcoming_tasks)
        if upcoming_tasks
        else '<li style="color: #6c757d;">No upcoming tasks in the next week.</li>'
    )

    html = (
        '<!DOCTYPE html><html><head><meta charset="utf-8">'
        "<title>Daily Academic Summary</title></head>"
        '<body style="font-family: Segoe UI, Tahoma, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<div style="background: {_INFO_COLOR}; color: white; padding: 30px; text-align: center;">'
        "<h1>📚 Your Daily Academic Summary</h1>"
        f"<p>Hello, {escape(user.display_name)}!</p><p>{date_label}</p></div>"
        f'<h2 style="color: #dc3545;">🚨 Due Today:</h2><ul>{today_html}</ul>'
        f'<h2 style="color: #fd7e14;">📅 Coming Up This Week:</h2><ul>{upcoming_html}</ul>'
        f'<p style="color: #6c757d; font-size: 12px;">Daily digest sent at '
        f"{local_now.strftime('%H:%M')} | {escape(app_name)}</p>"
        "</body></html>"
    )

    text_lines = [f"Hello, {user.display_name}!", date_label, "", "Due today:"]
    text_lines += [f"- {t.title}" for t in today_tasks] or ["- Nothing due today."]
    text_lines += ["", "Coming up this week:"]
    text_lines += [
        f"- {t.title} (due {t.due_at.astimezone(tz).strftime('%d %b %Y')})" for t in upcoming_tasks
    ] or ["- No upcoming tasks in the next week."]
    text_lines += ["", app_name]

    return RenderedEmail(
        subject=f"📚 Your Academic Summary - {date_label}",
        html=html,
        text="\n".join(text_lines),
    )
