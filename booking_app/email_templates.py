"""
MJML Email Templates
Responsive templates compiled to HTML by email_service
"""

from html import escape
from typing import Optional

THEME = {
    "primary": "#3b82f6",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
}

ROLE_LABELS = {
    "ADMIN": "Administrator",
    "TECHNICIAN": "Technician",
    "CUSTOMER_SERVICE": "Customer Service",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section background-color="#ffffff" padding="0 40px 40px 40px">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="0"
              inner-padding="16px 32px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#1a1a1a" padding="28px 20px">
          <mj-column>
            <mj-text align="center" font-size="22px" font-weight="600" color="#ffffff">
              Booking System
            </mj-text>
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="40px 40px 24px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" padding="0 0 16px 0">
              {title}
            </mj-text>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="24px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="{THEME['text_muted']}">
              This is an automated message, please do not reply.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def invitation_email_template(
    inviter_name: str, invitation_link: str, role: str, expires_label: str
) -> str:
    role_label = ROLE_LABELS.get(role, role)
    content = f"""
            <mj-text>
              <strong>{escape(inviter_name)}</strong> has invited you to join the booking system
              as <strong>{role_label}</strong>.
            </mj-text>
            <mj-text>
              Click the button below to accept the invitation and sign in with your Google account.
            </mj-text>
            <mj-text font-size="14px" color="{THEME['text_muted']}">
              This invitation expires on {expires_label}.
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" />
            <mj-text font-size="13px" color="{THEME['text_muted']}">
              If the button does not work, copy this link into your browser:<br />
              <a href="{invitation_link}" style="color: {THEME['primary']};">{invitation_link}</a>
            </mj-text>
    """
    return get_base_template(
        title="You're invited",
        preview_text=f"{inviter_name} invited you to the booking system",
        content_sections=content,
        cta_url=invitation_link,
        cta_label="Accept invitation",
    )
