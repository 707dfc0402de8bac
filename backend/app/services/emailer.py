import logging
import os
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str = "1") -> bool:
    v = (os.getenv(name, default) or default).strip().lower()
    return v in {"1", "true", "yes", "y", "on"}


def send_email(*, to_email: str, subject: str, body: str) -> None:
    """
    Sends a plain-text email using SMTP (Gmail App Password recommended).

    Env vars:
      SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, SMTP_FROM, SMTP_TLS
    """
    host = (os.getenv("SMTP_HOST") or "").strip()
    port = int((os.getenv("SMTP_PORT") or "587").strip())
    user = (os.getenv("SMTP_USER") or "").strip()
    password = (os.getenv("SMTP_PASS") or "").strip()
    mail_from = (os.getenv("SMTP_FROM") or user).strip()
    use_tls = _env_bool("SMTP_TLS", "1")

    if not host or not user or not password or not mail_from:
        raise RuntimeError("SMTP is not configured (missing SMTP_HOST/SMTP_USER/SMTP_PASS/SMTP_FROM).")

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = mail_from
    msg["To"] = to_email
    msg.set_content(body)

    logger.debug("Connecting to %s:%s (TLS=%s)", host, port, use_tls)
    with smtplib.SMTP(host, port, timeout=15) as smtp:
        smtp.ehlo()
        if use_tls:
            smtp.starttls()
            smtp.ehlo()
        smtp.login(user, password)
        smtp.send_message(msg)
    logger.info("Email sent to %s: %s", to_email, subject)


def _when_text(interview_start: str | None) -> str:
    return f"{interview_start} (UTC)" if interview_start else "To be confirmed"


def send_interview_assignment_to_interviewer(
    *,
    to_email: str,
    interviewer_name: str | None,
    candidate_name: str | None,
    job_title: str | None,
    interview_start: str | None,
    start_url: str | None,
) -> None:
    lines = [
        f"Hi {(interviewer_name or 'there').strip()},",
        "",
        f"You have been assigned to interview {(candidate_name or 'a candidate').strip()} "
        f"for {(job_title or 'an open role').strip()}.",
        "",
        f"When: {_when_text(interview_start)}",
    ]
    if start_url:
        lines.append(f"Start meeting: {start_url}")
    lines += ["", "Please submit your feedback once the interview is done."]
    send_email(
        to_email=to_email,
        subject=f"Interview assigned: {(candidate_name or 'Candidate').strip()}",
        body="\n".join(lines),
    )


def send_interview_assignment_to_candidate(
    *,
    to_email: str,
    candidate_name: str | None,
    job_title: str | None,
    interview_start: str | None,
    join_url: str | None,
) -> None:
    jt = (job_title or "the role").strip()
    lines = [
        f"Hi {(candidate_name or 'Candidate').strip()},",
        "",
        f"Your interview for {jt} has been scheduled.",
        "",
        f"When: {_when_text(interview_start)}",
    ]
    if join_url:
        lines.append(f"Join link: {join_url}")
    lines += ["", "Best regards,", "Recruitment Team"]
    send_email(to_email=to_email, subject=f"Interview scheduled: {jt}", body="\n".join(lines))


def send_hr_notification(*, to_email: str, subject: str, lines: list[str]) -> None:
    send_email(to_email=to_email, subject=subject, body="\n".join(lines))


def safe_send(fn, **kwargs) -> None:  # noqa: ANN001
    """Background-task wrapper: notification failures are logged and never raised."""
    try:
        fn(**kwargs)
    except Exception as e:
        logger.warning("Email to %s failed (non-blocking): %s: %s", kwargs.get("to_email"), type(e).__name__, e)
