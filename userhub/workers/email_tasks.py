"""
Email background tasks.

Membership notification emails.
"""

from html import escape

from userhub.workers.celery_app import celery_app


def membership_email_html(inviter_name: str, org_name: str, role: str, org_url: str) -> str:
    inviter_name, org_name, role = escape(inviter_name), escape(org_name), escape(role)
    org_url = escape(org_url, quote=True)
    return f"""
        <h2>You were added to {org_name}</h2>
        <p><strong>{inviter_name}</strong> added you to
        <strong>{org_name}</strong> as a <strong>{role}</strong>.</p>
        <p>
            <a href="{org_url}"
               style="background:#6366f1;color:#fff;padding:12px 24px;
                      border-radius:6px;text-decoration:none;display:inline-block;">
                Open organization
            </a>
        </p>
        <p>If you did not expect this, contact the organization's administrators.</p>
    """


@celery_app.task(name="userhub.workers.email_tasks.send_membership_email", bind=True, max_retries=3)
def send_membership_email(
    self,  # type: ignore[no-untyped-def]
    to_email: str,
    org_name: str,
    org_id: str,
    inviter_name: str,
    role: str,
    frontend_url: str,
) -> dict[str, str]:
    """
    Tell a user they were added to an organization, via Resend.

    Args:
        to_email: Recipient email address.
        org_name: Organization display name.
        org_id: Organization id, used for the link.
        inviter_name: Display name of the admin who added the member.
        role: Role granted (admin/member).
        frontend_url: Frontend base URL for constructing the link.

    Returns:
        Dict with status and message_id.
    """
    try:
        import resend

        from userhub.core.config import settings

        resend.api_key = settings.RESEND_API_KEY

        params: resend.Emails.SendParams = {
            "from": settings.EMAIL_FROM,
            "to": [to_email],
            "subject": f"You've been added to {org_name}",
            "html": membership_email_html(
                inviter_name, org_name, role, f"{frontend_url}/organizations/{org_id}"
            ),
        }

        response = resend.Emails.send(params)
        return {"status": "sent", "message_id": response["id"]}

    except Exception as exc:
        raise self.retry(exc=exc, countdown=60 * (self.request.retries + 1))
