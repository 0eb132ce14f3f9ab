"""
Email Templates

Subject, text and HTML bodies of the transactional emails.
"""

from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Sequence, Tuple


@dataclass(frozen=True)
class EmailContent:
    subject: str
    text: str
    html: str


_CARD_OPEN = (
    '<div style="margin:0;padding:24px;background:#f5f5f5;color:#111827;'
    'font-family:ui-sans-serif,system-ui,-apple-system,Segoe UI,Roboto,Helvetica,Arial,sans-serif;">'
    '<div style="max-width:560px;margin:0 auto;background:#0a0a0a;border:1px solid #262626;'
    'border-radius:16px;padding:24px;">'
    '<p style="margin:0 0 10px 0;font-size:12px;letter-spacing:0.14em;text-transform:uppercase;'
    'color:#a3a3a3;">SocialVault</p>'
)
_CARD_CLOSE = "</div></div>"


def backup_ready_email(share_url: str, expires_at: datetime) -> EmailContent:
    expires_label = expires_at.strftime("%b %d, %Y")
    safe_url = escape(share_url)
    html = (
        f"{_CARD_OPEN}"
        '<h1 style="margin:0;color:#fafafa;font-size:28px;line-height:1.2;">Your backup is ready.</h1>'
        '<p style="margin:12px 0 20px 0;color:#cbd5e1;font-size:15px;">Open your snapshot in the backup viewer.</p>'
        f'<a href="{safe_url}" style="display:inline-block;background:#fafafa;color:#111827;'
        'text-decoration:none;font-weight:600;font-size:14px;padding:11px 16px;border-radius:10px;">'
        "Open Backup</a>"
        f'<p style="margin:14px 0 0 0;color:#a3a3a3;font-size:12px;">This link is valid until '
        f"<strong>{escape(expires_label)}</strong>.</p>"
        '<p style="margin:14px 0 0 0;color:#71717a;font-size:11px;">If the button does not work, '
        f'copy and paste this URL:<br /><span style="word-break:break-all;">{safe_url}</span></p>'
        f"{_CARD_CLOSE}"
    )
    return EmailContent(
        subject="Your SocialVault backup is ready",
        text="\n".join([
            "Your backup is ready.",
            f"Open: {share_url}",
            f"This URL expires on {expires_label}.",
        ]),
        html=html,
    )


def admin_event_email(
    subject: str,
    title: str,
    details: Sequence[Tuple[str, str]],
) -> EmailContent:
    rows = [(label.strip(), (value or "").strip() or "Not provided") for label, value in details if label.strip()]
    html_rows = "".join(
        f'<p style="margin:0 0 8px;color:#d4d4d8;font-size:13px;">'
        f'<strong style="color:#fafafa;">{escape(label)}:</strong> {escape(value)}</p>'
        for label, value in rows
    )
    return EmailContent(
        subject=subject,
        text="\n".join([title, ""] + [f"{label}: {value}" for label, value in rows]),
        html=(
            f"{_CARD_OPEN}"
            f'<h2 style="margin:0 0 16px 0;color:#fafafa;font-size:24px;">{escape(title)}</h2>'
            f"{html_rows}{_CARD_CLOSE}"
        ),
    )
