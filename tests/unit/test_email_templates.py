"""Tests for email template rendering."""

from __future__ import annotations

from skillswap.email.templates import (
    exchange_completed,
    exchange_request,
    new_message,
    new_rating,
    otp_code,
    password_reset,
    welcome_email,
)


class TestTemplates:
    def test_every_template_returns_subject_html_text(self):
        rendered = [
            welcome_email("Ann", "https://app/dashboard"),
            password_reset("Ann", "https://app/reset/abc"),
            otp_code("Ann", "123456"),
            exchange_request("Bob", "Ann", "Guitar", "Spanish", "https://app/exchanges/1"),
            exchange_completed("Ann", "Bob", 20, "https://app/exchanges/1"),
            new_rating("Bob", "Ann", 4, "Great teacher"),
            new_message("Bob", "Ann", "Hello!", "https://app/messages/1"),
        ]
        for subject, html, text in rendered:
            assert subject
            assert html.startswith("<!DOCTYPE html>")
            assert "SkillSwap" in text

    def test_password_reset_contains_link_and_expiry(self):
        _, html, text = password_reset("Ann", "https://app/reset/abc", expires_minutes=15)
        assert "https://app/reset/abc" in html
        assert "https://app/reset/abc" in text
        assert "15 minutes" in text

    def test_exchange_request_names_both_skills(self):
        subject, _, text = exchange_request("Bob", "Ann", "Guitar", "Spanish", "https://app/exchanges/1")
        assert subject == "New skill exchange request from Ann"
        assert "learn Guitar" in text
        assert "teach you Spanish" in text

    def test_completed_mentions_tokens(self):
        _, html, text = exchange_completed("Ann", "Bob", 20, "https://app/exchanges/1")
        assert "20 tokens" in html
        assert "20 tokens" in text

    def test_rating_stars(self):
        _, html, text = new_rating("Bob", "Ann", 3, None)
        assert "★★★☆☆" in html
        assert "3/5" in text

    def test_user_text_is_escaped(self):
        _, html, _ = new_message("Bob", "<script>", "<b>hi</b>", "https://app/messages/1")
        assert "<script>" not in html
        assert "&lt;b&gt;hi&lt;/b&gt;" in html
