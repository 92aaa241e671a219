"""Best-effort follow-ups to punch writes.

Activity log entries, applicant-profile notes, manager-note emails (Mailgun)
and the punch webhook. Each one runs on a daemon thread and only logs its
own failure; the punch write that triggered it is already committed.
"""
import logging
import threading

import requests

from punchclock.core.config import settings
from punchclock.core.database import SessionLocal
from punchclock.models.activity import ActivityLog, ApplicantNote
from punchclock.services.windows import utcnow

logger = logging.getLogger(__name__)


def punch_payload(punch, job=None) -> dict:
    """Plain-data snapshot of a punch, safe to hand to another thread."""
    return {
        "punch_id": punch.id,
        "applicant_id": punch.applicant_id,
        "user_id": punch.user_id,
        "job_id": punch.job_id,
        "job_title": job.title if job is not None else None,
        "shift_slug": punch.shift_slug,
        "time_in": punch.time_in.isoformat() if punch.time_in else None,
        "time_out": punch.time_out.isoformat() if punch.time_out else None,
        "status": punch.status,
        "manager_note": punch.manager_note,
    }


class PunchSideEffects:

    def __init__(self, session_factory=None, background: bool = True):
        self.session_factory = session_factory or SessionLocal
        self.background = background
        self.base_timeout = 15

    def _dispatch(self, label: str, fn, *args):
        def _run():
            try:
                fn(*args)
            except Exception as e:
                logger.error(f"{label} failed (ignored): {type(e).__name__}: {e}")

        if self.background:
            threading.Thread(target=_run, daemon=True).start()
        else:
            _run()

    # ── Public hooks ────────────────────────────────────────────────────

    def log_activity(self, action: str, description: str, actor_id=None, target_id=None, details: dict = None):
        self._dispatch(
            f"Activity log '{action}'",
            self._write_activity, action, description,
            str(actor_id) if actor_id is not None else None,
            str(target_id) if target_id is not None else None,
            details or {},
        )

    def manager_note_added(self, punch, job, editor_id):
        """Append the note to the employee profile and tell the job's recipients."""
        payload = punch_payload(punch, job)
        recipients = job.notification_recipients if job is not None else []
        self._dispatch("Applicant note", self._append_applicant_note, payload, str(editor_id))
        if recipients:
            self._dispatch("Manager note email", self._send_manager_note_email, recipients, payload)
        self._dispatch("Punch webhook", self._fire_webhook, payload, "punch_manager_note")

    # ── Workers ─────────────────────────────────────────────────────────

    def _write_activity(self, action, description, actor_id, target_id, details):
        db = self.session_factory()
        try:
            db.add(ActivityLog(
                action=action,
                description=description,
                actor_id=actor_id,
                target_id=target_id,
                details=details,
            ))
            db.commit()
        finally:
            db.close()

    def _append_applicant_note(self, payload: dict, author_id: str):
        db = self.session_factory()
        try:
            db.add(ApplicantNote(
                applicant_id=payload["applicant_id"],
                punch_id=payload["punch_id"],
                author_id=author_id,
                text=payload["manager_note"],
            ))
            db.commit()
            logger.info(f"Manager note added to applicant {payload['applicant_id']} profile")
        finally:
            db.close()

    def _send_manager_note_email(self, recipients: list, payload: dict) -> dict:
        if not settings.MAILGUN_API_KEY or not settings.MAILGUN_DOMAIN:
            logger.warning("Mailgun not configured - skipping manager note email")
            return {"success": False, "error": "Mailgun not configured"}

        subject = f"Punch note for {payload['applicant_id']} at {payload['job_title'] or 'job ' + str(payload['job_id'])}"
        body = (
            f"A manager left a note on punch #{payload['punch_id']}.\n\n"
            f"Clock in: {payload['time_in']}\n"
            f"Clock out: {payload['time_out'] or 'still open'}\n\n"
            f"Note: {payload['manager_note']}\n"
        )
        resp = requests.post(
            f"https://api.mailgun.net/v3/{settings.MAILGUN_DOMAIN}/messages",
            auth=("api", settings.MAILGUN_API_KEY),
            data={
                "from": f"{settings.MAILGUN_FROM_NAME} <{settings.MAILGUN_FROM_EMAIL}>",
                "to": recipients,
                "subject": subject,
                "text": body,
            },
            timeout=self.base_timeout,
        )
        if resp.status_code == 200:
            logger.info(f"Manager note email sent for punch {payload['punch_id']} to {len(recipients)} recipient(s)")
            return {"success": True, "message_id": resp.json().get("id", "")}
        logger.error(f"Mailgun error {resp.status_code}: {resp.text[:200]}")
        return {"success": False, "error": f"Mailgun returned {resp.status_code}"}

    def _fire_webhook(self, payload: dict, event_type: str) -> dict:
        url = settings.PUNCH_WEBHOOK_URL
        if not url:
            logger.debug(f"Punch webhook URL not configured for {event_type}, skipping")
            return {"skipped": True, "reason": "no_url_configured"}

        resp = requests.post(
            url,
            json={**payload, "event_type": event_type},
            headers={
                "Content-Type": "application/json",
                "X-Punch-Event": event_type,
                "X-Punch-Timestamp": utcnow().isoformat(),
            },
            timeout=self.base_timeout,
        )
        if resp.status_code >= 400:
            logger.warning(f"Punch webhook {event_type} returned {resp.status_code}: {resp.text[:200]}")
        else:
            logger.info(f"Punch webhook {event_type} sent ({resp.status_code})")
        return {"success": resp.status_code < 400, "status_code": resp.status_code}
