"""
Email templates for SkillSwap.

Inline CSS only, light card layout with a teal accent. Every template
function returns (subject, html_body, text_body). User-supplied text is
HTML-escaped before it reaches the markup.
"""

from __future__ import annotations

from html import escape

APP_NAME = "SkillSwap"

BG_PAGE = "#F4F6F8"
BG_CARD = "#FFFFFF"
BG_SURFACE = "#EEF7F6"
ACCENT = "#0F9D8A"
TEXT_PRIMARY = "#1F2933"
TEXT_SECONDARY = "#52606D"
BORDER = "#D9E2EC"

SIGNATURE = f"-- The {APP_NAME} Team"


def _base_layout(content: str) -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{APP_NAME}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_PAGE};">
        <tr>
            <td align="center" style="padding: 32px 16px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="max-width: 600px; width: 100%;">
                    <tr>
                        <td align="center" style="padding-bottom: 24px; font-size: 22px; font-weight: 700; color: {ACCENT};">{APP_NAME}</td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 10px; padding: 32px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 24px; color: {TEXT_SECONDARY}; font-size: 12px;">
                            You are receiving this because you have a {APP_NAME} account.
                            Manage notifications in your profile settings.
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _heading(text: str) -> str:
    return f'<h1 style="color: {TEXT_PRIMARY}; font-size: 22px; margin: 0 0 16px 0;">{text}</h1>'


def _paragraph(text: str) -> str:
    return f'<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 16px 0;">{text}</p>'


def _button(url: str, label: str) -> str:
    """Render the accent CTA button."""
    return f"""\
<table role="presentation" cellspacing="0" cellpadding="0" border="0" style="margin: 24px auto;">
    <tr>
        <td align="center" style="background-color: {ACCENT}; border-radius: 6px;">
            <a href="{url}" target="_blank" style="display: inline-block; padding: 12px 28px; color: #FFFFFF; font-size: 16px; font-weight: 600; text-decoration: none;">{label}</a>
        </td>
    </tr>
</table>"""


def _callout(text: str) -> str:
    return (
        f'<div style="background-color: {BG_SURFACE}; border: 1px solid {BORDER}; border-radius: 6px; '
        f'padding: 16px; margin: 16px 0; color: {TEXT_PRIMARY}; font-size: 15px;">{text}</div>'
    )


def welcome_email(name: str, dashboard_url: str) -> tuple[str, str, str]:
    """
    Welcome email sent after registration.

    Returns:
        (subject, html_body, text_body)
    """
    subject = f"Welcome to {APP_NAME}!"
    content = (
        _heading(f"Welcome, {escape(name)}!")
        + _paragraph("Your account is ready and 50 welcome tokens are already in your wallet.")
        + _paragraph("Add the skills you can teach and the ones you want to learn to get matched.")
        + _button(dashboard_url, "Set up your profile")
    )
    text_body = (
        f"Hi {name},\n\n"
        f"Welcome to {APP_NAME}! Your account is ready and 50 welcome tokens are in your wallet.\n\n"
        f"Set up your profile: {dashboard_url}\n\n{SIGNATURE}"
    )
    return subject, _base_layout(content), text_body


def password_reset(name: str, reset_url: str, expires_minutes: int = 15) -> tuple[str, str, str]:
    """
    Password reset link.

    Returns:
        (subject, html_body, text_body)
    """
    subject = "Reset your password"
    content = (
        _heading("Reset your password")
        + _paragraph(f"Hi {escape(name)}, we received a request to reset your {APP_NAME} password.")
        + _button(reset_url, "Reset Password")
        + _paragraph(f"This link expires in {expires_minutes} minutes. If you didn't ask for it, ignore this email.")
    )
    text_body = (
        f"Hi {name},\n\nReset your password here:\n\n{reset_url}\n\n"
        f"This link expires in {expires_minutes} minutes.\n\n{SIGNATURE}"
    )
    return subject, _base_layout(content), text_body


def verify_email(name: str, verify_url: str, expires_minutes: int = 30) -> tuple[str, str, str]:
    """Email verification link (first step of OTP-based recovery)."""
    subject = "Verify your email address"
    content = (
        _heading("Verify your email")
        + _paragraph(f"Hi {escape(name)}, confirm this address to continue.")
        + _button(verify_url, "Verify Email")
        + _paragraph(f"This link expires in {expires_minutes} minutes.")
    )
    text_body = (
        f"Hi {name},\n\nVerify your email address:\n\n{verify_url}\n\n"
        f"This link expires in {expires_minutes} minutes.\n\n{SIGNATURE}"
    )
    return subject, _base_layout(content), text_body


def otp_code(name: str, otp: str, expires_minutes: int = 10) -> tuple[str, str, str]:
    """One-time password for account recovery."""
    subject = f"Your {APP_NAME} verification code"
    content = (
        _heading("Your verification code")
        + _paragraph(f"Hi {escape(name)}, use this code to reset your password:")
        + _callout(f'<span style="font-size: 28px; letter-spacing: 6px; font-weight: 700;">{otp}</span>')
        + _paragraph(f"The code expires in {expires_minutes} minutes.")
    )
    text_body = f"Hi {name},\n\nYour verification code is {otp}. It expires in {expires_minutes} minutes.\n\n{SIGNATURE}"
    return subject, _base_layout(content), text_body


def password_changed(name: str) -> tuple[str, str, str]:
    """Password changed notification."""
    subject = "Your password has been changed"
    content = (
        _heading("Password changed")
        + _paragraph(f"Hi {escape(name)}, your {APP_NAME} password was just changed.")
        + _callout("Didn't make this change? Reset your password right away.")
    )
    text_body = (
        f"Hi {name},\n\nYour {APP_NAME} password was just changed. "
        f"If this wasn't you, reset your password right away.\n\n{SIGNATURE}"
    )
    return subject, _base_layout(content), text_body


def exchange_request(
    name: str, requester_name: str, requested_skill: str, offered_skill: str, exchange_url: str
) -> tuple[str, str, str]:
    """Sent to the provider when someone requests an exchange."""
    subject = f"New skill exchange request from {requester_name}"
    content = (
        _heading("New exchange request")
        + _paragraph(f"Hi {escape(name)}, {escape(requester_name)} would like to swap skills with you.")
        + _callout(
            f"They want to learn <strong>{escape(requested_skill)}</strong> "
            f"and will teach you <strong>{escape(offered_skill)}</strong>."
        )
        + _button(exchange_url, "Review request")
    )
    text_body = (
        f"Hi {name},\n\n{requester_name} wants to learn {requested_skill} "
        f"and will teach you {offered_skill}.\n\nReview the request: {exchange_url}\n\n{SIGNATURE}"
    )
    return subject, _base_layout(content), text_body


def exchange_accepted(name: str, provider_name: str, requested_skill: str, exchange_url: str) -> tuple[str, str, str]:
    """Sent to the requester when the provider accepts."""
    subject = f"{provider_name} accepted your exchange request"
    content = (
        _heading("Exchange accepted!")
        + _paragraph(
            f"Hi {escape(name)}, {escape(provider_name)} accepted your request to learn "
            f"<strong>{escape(requested_skill)}</strong>. Your learning paths are ready."
        )
        + _button(exchange_url, "Start learning")
    )
    text_body = (
        f"Hi {name},\n\n{provider_name} accepted your request to learn {requested_skill}. "
        f"Your learning paths are ready: {exchange_url}\n\n{SIGNATURE}"
    )
    return subject, _base_layout(content), text_body


def exchange_completed(name: str, partner_name: str, tokens_earned: int, exchange_url: str) -> tuple[str, str, str]:
    """Sent to both participants when both learning paths are done."""
    subject = "Exchange completed: you earned tokens!"
    content = (
        _heading("Exchange completed")
        + _paragraph(f"Congratulations {escape(name)}! You and {escape(partner_name)} finished your exchange.")
        + _callout(f"You earned <strong>{tokens_earned} tokens</strong>.")
        + _button(exchange_url, f"Rate {escape(partner_name)}")
    )
    text_body = (
        f"Congratulations {name}!\n\nYou and {partner_name} finished your exchange "
        f"and you earned {tokens_earned} tokens.\n\nLeave a rating: {exchange_url}\n\n{SIGNATURE}"
    )
    return subject, _base_layout(content), text_body


def new_rating(name: str, rater_name: str, rating: int, review: str | None) -> tuple[str, str, str]:
    """Sent when the other party rates an exchange."""
    subject = f"{rater_name} rated your exchange"
    stars = "★" * rating + "☆" * (5 - rating)
    review_html = _paragraph(f"&ldquo;{escape(review)}&rdquo;") if review else ""
    content = (
        _heading("You received a new rating")
        + _paragraph(f"Hi {escape(name)}, {escape(rater_name)} rated your exchange:")
        + _callout(f'<span style="font-size: 22px; color: {ACCENT};">{stars}</span>')
        + review_html
    )
    text_body = f"Hi {name},\n\n{rater_name} rated your exchange {rating}/5."
    if review:
        text_body += f"\n\n\"{review}\""
    text_body += f"\n\n{SIGNATURE}"
    return subject, _base_layout(content), text_body


def new_message(name: str, sender_name: str, preview: str, conversation_url: str) -> tuple[str, str, str]:
    """Sent when a new chat message arrives."""
    subject = f"New message from {sender_name}"
    content = (
        _heading("New message")
        + _paragraph(f"Hi {escape(name)}, {escape(sender_name)} sent you a message:")
        + _callout(escape(preview))
        + _button(conversation_url, "Reply")
    )
    text_body = f"Hi {name},\n\n{sender_name} wrote:\n\n{preview}\n\nReply: {conversation_url}\n\n{SIGNATURE}"
    return subject, _base_layout(content), text_body
