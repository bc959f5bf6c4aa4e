"""
Notifications — Slack webhook alerts for operators.

Notification failure never blocks the caller.
"""
import logging
import requests

logger = logging.getLogger('services.notifications')


def notify_nurture_failures(summary, webhook_url):
    """Post a nurture-run failure alert to Slack."""
    if not webhook_url:
        return

    try:
        failures = [r for r in summary.get('results', []) if r.get('status') == 'error']

        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"Nurture run — {summary.get('failed', 0)} failed",
                }
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Processed:* {summary.get('processed', 0)}"},
                    {"type": "mrkdwn", "text": f"*Succeeded:* {summary.get('succeeded', 0)}"},
                    {"type": "mrkdwn", "text": f"*Failed:* {summary.get('failed', 0)}"},
                ]
            },
        ]

        if failures:
            lines = '\n'.join(
                f"{f['lead_id'][:8].upper()} stage {f.get('stage')}: {(f.get('error') or '')[:120]}"
                for f in failures[:10]
            )
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"```{lines}```"}
            })

        requests.post(webhook_url, json={"blocks": blocks}, timeout=10)
        logger.info("Nurture failure notification sent (%d failed)", summary.get('failed', 0))

    except Exception:
        logger.error("Failed to send nurture failure notification", exc_info=True)


def notify_dispatch_failed(lead, clinic_email, error, webhook_url):
    """Post a clinic-dispatch failure alert to Slack."""
    if not webhook_url:
        return

    try:
        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"Lead dispatch FAILED — {lead.short_id}"}
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Clinic:* {clinic_email}"},
                    {"type": "mrkdwn", "text": f"*Tier:* {lead.lead_tier}"},
                ]
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*Error:* ```{str(error)[:500]}```"}
            },
        ]

        requests.post(webhook_url, json={"blocks": blocks}, timeout=10)
        logger.info("Dispatch failure notification sent for lead %s", lead.short_id)

    except Exception:
        logger.error("Failed to send dispatch notification for lead %s", lead.short_id, exc_info=True)
