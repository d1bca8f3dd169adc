"""
Tests for Slack message formatting helpers.
"""

from support_bridge.services.formatting import (
    build_dashboard_url,
    build_thread_message,
    emojify_message,
    strip_bot_mention,
)


class TestThreadMessage:

    def test_includes_user_and_project(self):
        message = build_thread_message("user-1", project_id="demo", bot_id="U0BOT")
        section = message["blocks"][0]["text"]["text"]

        assert "user-1" in message["text"]
        assert "*Project:* `demo`" in section
        assert "*User:* `user-1`" in section
        assert "<@U0BOT>" in section

    def test_without_bot_id_uses_generic_instructions(self):
        message = build_thread_message("user-1")
        section = message["blocks"][0]["text"]["text"]

        assert "Project" not in section
        assert "To respond, use this thread." in section

    def test_dashboard_button_only_with_url(self):
        assert len(build_thread_message("user-1")["blocks"]) == 1

        message = build_thread_message("user-1", dashboard_url="https://example.test/u/user-1")
        button = message["blocks"][1]["elements"][0]
        assert button["url"] == "https://example.test/u/user-1"
        assert button["action_id"] == "open_dashboard"


class TestDashboardUrl:

    def test_fills_placeholders(self):
        url = build_dashboard_url("https://console.test/{projectId}/users/{userId}", "demo", "u1")
        assert url == "https://console.test/demo/users/u1"

    def test_none_without_project_or_template(self):
        assert build_dashboard_url("https://console.test/{projectId}", None, "u1") is None
        assert build_dashboard_url("", "demo", "u1") is None


class TestInboundText:

    def test_strip_bot_mention(self):
        assert strip_bot_mention("<@U0BOT> thanks, fixed!", "U0BOT") == "thanks, fixed!"

    def test_strip_keeps_other_mentions(self):
        assert strip_bot_mention("<@U0BOT> ask <@U123>", "U0BOT") == "ask <@U123>"

    def test_strip_without_bot_id_only_trims(self):
        assert strip_bot_mention("  <@U0BOT> hi ", None) == "<@U0BOT> hi"

    def test_emojify_known_shortcodes(self):
        assert emojify_message("all done :tada:") == "all done 🎉"

    def test_emojify_drops_custom_shortcodes(self):
        assert emojify_message("shipped :partyparrot: now") == "shipped now"

    def test_emojify_plain_text_unchanged(self):
        assert emojify_message("no emoji here") == "no emoji here"
