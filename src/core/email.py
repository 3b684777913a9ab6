"""Email utilities for sending branded HTML emails with plain-text fallback."""

from __future__ import annotations

import logging
from typing import Sequence

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

logger = logging.getLogger("ravito")


def brand_context(extra: dict | None = None) -> dict:
    """Context shared by every email template."""
    context = {
        "brand_name": getattr(settings, "BRAND_NAME", "RAVITO"),
        "frontend_url": getattr(settings, "FRONTEND_URL", ""),
        "support_email": getattr(settings, "SUPPORT_EMAIL", settings.DEFAULT_FROM_EMAIL),
    }
    context.update(extra or {})
    return context


def send_branded_email(
    *,
    subject: str,
    template_name: str,
    context: dict,
    recipient_list: Sequence[str],
    from_email: str | None = None,
    fail_silently: bool = False,
) -> int:
    """Render and send an HTML email with a plain-text fallback.

    *template_name* is the base name **without** extension,
    e.g. ``"notifications/email/notification"``. The ``.html`` and
    ``.txt`` variants are both rendered with :func:`brand_context`.

    Returns the number of emails successfully sent (0 or 1).
    """
    recipients = [r for r in recipient_list if r]
    if not recipients:
        logger.warning("Email '%s' not sent: no recipient.", subject)
        return 0

    sender = from_email or getattr(settings, "DEFAULT_FROM_EMAIL", None)
    full_context = brand_context(context)
    brand = full_context["brand_name"]

    text_body = render_to_string(f"{template_name}.txt", full_context).strip()
    html_body = render_to_string(f"{template_name}.html", full_context)

    msg = EmailMultiAlternatives(
        subject=f"[{brand}] {subject}",
        body=text_body,
        from_email=sender,
        to=recipients,
    )
    msg.attach_alternative(html_body, "text/html")
    sent = msg.send(fail_silently=fail_silently)
    logger.info("Email '%s' sent to %d recipient(s).", subject, len(recipients))
    return sent
