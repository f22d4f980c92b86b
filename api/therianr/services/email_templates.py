"""
HTML e-mail templates for Therianr notifications.
"""

from html import escape

from ..config import APP_BASE_URL


def get_email_base_template(content: str) -> str:
    """Dark card layout shared by every notification e-mail."""
    return f"""
<div style="font-family: 'Inter', Arial, sans-serif; max-width: 520px; margin: 0 auto; background: #0F0F1A; color: #E8E4D9; padding: 40px 32px; border-radius: 16px;">
  <div style="text-align: center; margin-bottom: 32px;">
    <span style="font-size: 48px; font-family: Georgia, serif; color: #4ADE80;">&#952;&#916;</span>
  </div>
  {content}
  <p style="font-size: 12px; color: #6B7280; text-align: center;">
    Therianr &mdash; Find Your Pack
  </p>
</div>
"""


def get_match_email(username: str, match_name: str) -> tuple[str, str]:
    """Returns (subject, html). Both names are user-supplied and escaped."""
    safe_username = escape(username or "")
    safe_match_name = escape(match_name or "")
    content = f"""
  <h1 style="color: #FBBF24; font-size: 24px; margin: 8px 0 24px; text-align: center;">Pack Match!</h1>
  <p style="font-size: 16px; line-height: 1.6; color: #E8E4D9;">
    Hey <strong style="color: #FBBF24;">@{safe_username}</strong>,
  </p>
  <p style="font-size: 15px; line-height: 1.6; color: #9CA3AF;">
    You and <strong style="color: #4ADE80;">{safe_match_name}</strong> liked each other. Your paths have crossed in the wild.
  </p>
  <div style="text-align: center; margin: 32px 0;">
    <a href="{APP_BASE_URL}/#/matches" style="display: inline-block; background: #4ADE80; color: #0F0F1A; font-weight: 700; padding: 14px 32px; border-radius: 12px; text-decoration: none; font-size: 15px;">
      Send a Message
    </a>
  </div>
"""
    return f"You matched with {safe_match_name}!", get_email_base_template(content)


def get_super_like_email(username: str, sender_name: str) -> tuple[str, str]:
    safe_username = escape(username or "")
    safe_sender = escape(sender_name or "")
    content = f"""
  <h1 style="color: #FBBF24; font-size: 24px; margin: 8px 0 24px; text-align: center;">Super Like!</h1>
  <p style="font-size: 16px; line-height: 1.6; color: #E8E4D9;">
    Hey <strong style="color: #FBBF24;">@{safe_username}</strong>,
  </p>
  <p style="font-size: 15px; line-height: 1.6; color: #9CA3AF;">
    <strong style="color: #4ADE80;">{safe_sender}</strong> sent you a Super Like. Swipe back to see if it's a match.
  </p>
  <div style="text-align: center; margin: 32px 0;">
    <a href="{APP_BASE_URL}/#/discover" style="display: inline-block; background: #4ADE80; color: #0F0F1A; font-weight: 700; padding: 14px 32px; border-radius: 12px; text-decoration: none; font-size: 15px;">
      Open Discover
    </a>
  </div>
"""
    return f"{safe_sender} sent you a Super Like!", get_email_base_template(content)
