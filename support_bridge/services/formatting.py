"""Text helpers for messages crossing between the app and Slack."""

import re
from typing import Any, Dict, List, Optional

import emoji

_SHORTCODE_RE = re.compile(r":([a-zA-Z0-9_+-]+):")
_WHITESPACE_RE = re.compile(r"\s{2,}")


def build_thread_message(
    user_id: str,
    project_id: Optional[str] = None,
    bot_id: Optional[str] = None,
    dashboard_url: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the message that opens a user's support thread.

    Returns ``text`` (notification fallback) and ``blocks``: a mrkdwn section
    naming the project and user with reply instructions, plus a link button
    when a dashboard URL is available.
    """
    project_section = f"*Project:* `{project_id}`\n" if project_id else ""
    if bot_id:
        instructions = f"To respond, mention <@{bot_id}> in the thread."
    else:
        instructions = "To respond, use this thread."

    blocks: List[Dict[str, Any]] = [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f"{project_section}*User:* `{user_id}`\n\n{instructions}",
            },
        }
    ]

    if dashboard_url:
        blocks.append({
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "Open in dashboard 🔗", "emoji": True},
                    "url": dashboard_url,
                    "action_id": "open_dashboard",
                }
            ],
        })

    return {"text": f"Support request from user `{user_id}`", "blocks": blocks}


def build_dashboard_url(template: str, project_id: Optional[str], user_id: str) -> Optional[str]:
    """Fill {projectId}/{userId} in DASHBOARD_URL_TEMPLATE; None without a project."""
    if not template or not project_id:
        return None
    return template.replace("{projectId}", project_id).replace("{userId}", user_id)


def strip_bot_mention(text: str, bot_id: Optional[str]) -> str:
    if bot_id:
        text = text.replace(f"<@{bot_id}>", "")
    return text.strip()


def emojify_message(message: str) -> str:
    """
    Convert Slack short-codes such as ``:tada:`` to unicode emoji.

    Short-codes with no unicode equivalent (custom workspace emoji) are
    removed and the leftover whitespace collapsed.
    """
    with_emojis = emoji.emojize(message, language="alias")
    without_custom = _SHORTCODE_RE.sub("", with_emojis)
    return _WHITESPACE_RE.sub(" ", without_custom).strip()
