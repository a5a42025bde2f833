"""
Outbound mail over SES, and the status notification template.
"""

import logging
from html import escape

from image_pipeline.exceptions import SESError
from image_pipeline.models import ReviewStatus

logger = logging.getLogger(__name__)


class Mailer:
    """Sends HTML email through an SES client."""

    def __init__(self, ses_client):
        self.ses = ses_client

    def send(self, source: str, to: str, subject: str, html_body: str) -> str:
        """
        Send one email.

        Returns:
            The SES message id

        Raises:
            SESError: If SES rejects the message or the call fails
        """
        try:
            response = self.ses.send_email(
                Source=source,
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Charset": "UTF-8", "Data": subject},
                    "Body": {"Html": {"Charset": "UTF-8", "Data": html_body}},
                },
            )
        except Exception as e:
            raise SESError(
                message=f"Failed to send email: {e}",
                recipient=to,
                original_exception=e,
            )
        return response.get("MessageId", "")


def status_subject(image_id: str) -> str:
    return f"Photo Status Update: {image_id}"


def render_status_email(image_id: str, status: str, reason: str, review_date: str) -> str:
    """HTML body summarising a moderation decision."""
    approved = status == ReviewStatus.PASS.value
    status_text = "approved" if approved else "rejected"
    status_color = "#28a745" if approved else "#dc3545"

    return f"""
    <html>
      <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px; border: 1px solid #eee; border-radius: 5px;">
          <h2>Photo Status Update</h2>
          <p>Hello,</p>
          <p>A photo has been reviewed with the following update:</p>
          <div style="margin: 20px 0; padding: 15px; border-left: 4px solid {status_color}; background-color: #f9f9f9;">
            <p><strong>Image:</strong> {escape(image_id)}</p>
            <p><strong>Status:</strong> <span style="color: {status_color}; font-weight: bold;">{status_text.upper()}</span></p>
            <p><strong>Reason:</strong> {escape(reason)}</p>
            <p><strong>Review Date:</strong> {escape(review_date)}</p>
          </div>
        </div>
      </body>
    </html>
    """
