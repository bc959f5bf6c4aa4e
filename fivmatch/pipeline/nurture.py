"""
Nurture scheduler — walks low-intent leads through a 3-e-mail sequence.

    stage 1  send #1  → stage 2, next due now + 7 days
    stage 2  send #2  → stage 3, next due now + 14 days
    stage 3  send #3  → completed, next due cleared
    other    nothing sent, marked completed

One run takes a fixed snapshot of due leads (capped at the batch size), sends
the e-mails with bounded concurrency, then advances each lead with a
conditional single-row update. A lead is advanced at most once per run, and a
failed send leaves it due for the next run without blocking the others.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fivmatch import database
from fivmatch.services import db
from fivmatch.services.email import nurture_message
from fivmatch.services.notifications import notify_nurture_failures

logger = logging.getLogger('pipeline.nurture')

STAGE_DELAYS = {
    1: timedelta(days=7),
    2: timedelta(days=14),
}
FINAL_STAGE = 3


@dataclass
class NurtureJob:
    lead_id: str
    short_id: str
    email: str
    stage: int
    subject: Optional[str] = None
    html: Optional[str] = None

    @property
    def valid_stage(self) -> bool:
        return self.stage in (1, 2, FINAL_STAGE)


def next_cursor(stage: int, now: datetime):
    """(stage, next_at, completed) after e-mail #stage went out."""
    if stage in STAGE_DELAYS:
        return stage + 1, now + STAGE_DELAYS[stage], False
    return stage, None, True


def _send(email_sender, job: NurtureJob):
    try:
        return email_sender.send(job.email, job.subject, job.html)
    except Exception as e:
        logger.error("Nurture e-mail #%d to lead %s raised", job.stage, job.short_id, exc_info=True)
        return e


def run_nurture_batch(settings, email_sender, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Process one snapshot of due leads. Returns {processed, succeeded, failed, results}."""
    now = now or db.utcnow()
    session = database.get_session()
    try:
        due = db.due_nurture_leads(session, now, limit=settings.nurture_batch_size)
        jobs: List[NurtureJob] = []
        for lead in due:
            job = NurtureJob(lead.id, lead.short_id, lead.email, lead.nurture_stage)
            if job.valid_stage:
                job.subject, job.html = nurture_message(job.stage, lead, settings.site_url)
            jobs.append(job)
        logger.info("Found %d lead(s) due for nurture e-mails", len(jobs))

        sendable = [j for j in jobs if j.valid_stage]
        outcomes = {}
        if sendable:
            workers = min(settings.nurture_max_workers, len(sendable))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                for job, outcome in zip(sendable, executor.map(lambda j: _send(email_sender, j), sendable)):
                    outcomes[job.lead_id] = outcome

        results = []
        for job in jobs:
            results.append(_apply(session, job, outcomes.get(job.lead_id), now))
    finally:
        session.close()

    succeeded = sum(1 for r in results if r['status'] in ('sent', 'completed_invalid_stage'))
    failed = sum(1 for r in results if r['status'] == 'error')
    summary = {
        'processed': len(results),
        'succeeded': succeeded,
        'failed': failed,
        'results': results,
    }
    logger.info("Nurture run: %d processed, %d succeeded, %d failed",
                summary['processed'], succeeded, failed)
    if failed:
        notify_nurture_failures(summary, settings.slack_webhook_url)
    return summary


def _apply(session, job: NurtureJob, outcome, now: datetime) -> Dict[str, Any]:
    result = {'lead_id': job.lead_id, 'stage': job.stage}

    if job.valid_stage:
        if isinstance(outcome, Exception) or outcome is None:
            return {**result, 'status': 'error', 'error': str(outcome or 'not sent')}
        if not outcome.ok:
            return {**result, 'status': 'error', 'error': outcome.error}
        stage, next_at, completed = next_cursor(job.stage, now)
        status = 'sent'
    else:
        logger.warning("Lead %s has invalid nurture stage %s, marking completed", job.short_id, job.stage)
        stage, next_at, completed = job.stage, None, True
        status = 'completed_invalid_stage'

    try:
        applied = db.advance_nurture(session, job.lead_id, job.stage, stage, next_at, completed, now=now)
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error("Failed to advance nurture for lead %s", job.short_id, exc_info=True)
        return {**result, 'status': 'error', 'error': str(e)}

    if not applied:
        # Taken over (verified / re-submitted) while the e-mail was in flight.
        return {**result, 'status': 'skipped'}

    logger.info("Lead %s: nurture e-mail #%s done, next stage %s%s",
                job.short_id, job.stage, stage, ' (completed)' if completed else '')
    return {**result, 'status': status, 'next_stage': stage, 'completed': completed}
