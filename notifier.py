"""
Best-effort email notifications.

Messages are POSTed as ``{"to", "subject", "body"}`` records to the mail
endpoint configured in ``NOTIFY_URL``. Nothing here ever raises: a failed
notification is logged and the caller carries on.
"""
import logging
from typing import Optional

import httpx

import config

logger = logging.getLogger(__name__)

TIMEOUT_SECONDS = 5.0


def notify(to: Optional[str], subject: str, body: str) -> bool:
    url = config.get("NOTIFY_URL")
    if not url or not to:
        return False
    try:
        response = httpx.post(
            url,
            json={"type": "email", "to": to, "subject": subject, "body": body},
            timeout=TIMEOUT_SECONDS,
        )
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Notification %r to %s failed: %s", subject, to, exc)
        return False
    logger.info("Notification %r sent to %s", subject, to)
    return True


def _describe(row: dict) -> str:
    disciplines = ", ".join(
        f"{d.get('name')} ({d.get('type')})" for d in row.get("disciplines") or []
    )
    dates = row.get("date") or "TBA"
    if row.get("date_to") and row.get("date_to") != row.get("date"):
        dates = f"{dates} to {row['date_to']}"
    lines = [
        f"Name: {row.get('name')}",
        f"Location: {row.get('location') or '-'}",
        f"Dates: {dates}",
        f"Disciplines: {disciplines or '-'}",
        f"Registration: {row.get('registration_link') or '-'}",
        f"Contact: {row.get('contact_email') or '-'}",
    ]
    return "\n".join(lines)


def submission_summary(row: dict):
    subject = f"New tournament submission: {row.get('name')}"
    body = (
        f"A tournament was submitted by {row.get('submitted_by') or row.get('user_id') or 'unknown'} "
        f"and is waiting for review.\n\n{_describe(row)}"
    )
    return subject, body


def approval_summary(row: dict, tournament_id):
    subject = f"Your tournament was approved: {row.get('name')}"
    body = (
        f"Thanks for your submission. It is now published as tournament #{tournament_id} "
        f"and you can post updates for it.\n\n{_describe(row)}"
    )
    return subject, body
