"""
Email background tasks.

Organization invitation emails.
"""

from html import escape

from parley.workers.celery_app import celery_app


@celery_app.task(name="parley.workers.email_tasks.send_invitation_email", bind=True, max_retries=3)
def send_invitation_email(
    self,  # type: ignore[no-untyped-def]
    to_email: str,
    org_name: str,
    inviter_name: str,
    role: str,
    invitation_token: str,
    frontend_url: str,
    personal_message: str | None = None,
) -> dict[str, str]:
    """
    Send an invitation email via Resend.

    Args:
        to_email: Recipient email address.
        org_name: Organization display name.
        inviter_name: Display name of the person who sent the invite.
        role: Role being offered (admin/member/guest).
        invitation_token: Secure token for the invitation link.
        frontend_url: Frontend base URL for constructing the accept link.
        personal_message: Optional note from the inviter.

    Returns:
        Dict with status and message_id.
    """
    try:
        import resend

        from parley.core.config import settings

        resend.api_key = settings.RESEND_API_KEY

        accept_url = f"{frontend_url}/invitations/{invitation_token}"
        note = (
            f"<blockquote>{escape(personal_message)}</blockquote>" if personal_message else ""
        )

        params: resend.Emails.SendParams = {
            "from": settings.EMAIL_FROM,
            "to": [to_email],
            "subject": f"You've been invited to join {org_name} on Parley",
            "html": f"""
                <h2>You've been invited to Parley</h2>
                <p><strong>{escape(inviter_name)}</strong> has invited you to join
                <strong>{escape(org_name)}</strong> as a <strong>{role}</strong>.</p>
                {note}
                <p>
                    <a href="{accept_url}"
                       style="background:#6366f1;color:#fff;padding:12px 24px;
                              border-radius:6px;text-decoration:none;display:inline-block;">
                        View Invitation
                    </a>
                </p>
                <p>This invitation expires in {settings.INVITATION_TTL_DAYS} days.</p>
                <p>If you did not expect this invitation, you can safely ignore this email.</p>
            """,
        }

        response = resend.Emails.send(params)
        return {"status": "sent", "message_id": response["id"]}

    except Exception as exc:
        raise self.retry(exc=exc, countdown=60 * (self.request.retries + 1))
