import smtplib
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List

from koperasi.core.config import settings

logger = logging.getLogger(__name__)


def smtp_configured() -> bool:
    return all([settings.SMTP_HOST, settings.SMTP_USER, settings.SMTP_PASSWORD, settings.FROM_EMAIL])


def _send_email(to_email: str, subject: str, plain_text: str, html_text: str) -> None:
    """Low-level helper to send one email via SMTP."""
    if not smtp_configured():
        logger.warning("SMTP not fully configured; skipping email to %s.", to_email)
        return

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.FROM_EMAIL
    msg["To"] = to_email
    if settings.REPLY_TO_EMAIL:
        msg["Reply-To"] = settings.REPLY_TO_EMAIL

    msg.attach(MIMEText(plain_text, "plain"))
    msg.attach(MIMEText(html_text, "html"))

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT or 587) as server:
        server.ehlo()
        server.starttls()
        server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.sendmail(settings.FROM_EMAIL, to_email, msg.as_string())


def _rupiah(value) -> str:
    return f"Rp {float(value):,.0f}".replace(",", ".")


def send_overdue_digest(to_emails: List[str], overdue: List[dict]) -> None:
    """Email admins the members that have overdue periods.

    Each overdue dict: {"uuid", "name", "productTitle", "overduePeriods",
    "overdueAmount", "oldestDueMonth"}. Only call this when the list is not empty.
    """
    if not to_emails:
        return

    subject = f"Koperasi - {len(overdue)} member(s) with overdue savings"

    # ---- plain text --------------------------------------------------------
    lines = ["Koperasi Savings - Overdue Installment Digest", ""]
    lines.append(f"MEMBERS WITH OVERDUE PERIODS ({len(overdue)}):")
    for item in overdue:
        lines.append(
            f"  - {item['name']} ({item['uuid']}), {item['productTitle'] or '-'}: "
            f"{item['overduePeriods']} period(s), {_rupiah(item['overdueAmount'])} "
            f"since {item['oldestDueMonth']}"
        )
    lines.append("")
    lines.append("This is an automated notification from the koperasi savings system.")
    plain_text = "\n".join(lines)

    # ---- HTML --------------------------------------------------------------
    rows = ""
    for item in overdue:
        rows += (
            f'<tr><td style="padding:6px 12px;border-bottom:1px solid #e2e8f0;">{item["name"]}<br/>'
            f'<span style="font-size:12px;color:#64748b;">{item["uuid"]}</span></td>'
            f'<td style="padding:6px 12px;border-bottom:1px solid #e2e8f0;">{item["productTitle"] or "-"}</td>'
            f'<td style="padding:6px 12px;border-bottom:1px solid #e2e8f0;text-align:center;">{item["overduePeriods"]}</td>'
            f'<td style="padding:6px 12px;border-bottom:1px solid #e2e8f0;text-align:right;">{_rupiah(item["overdueAmount"])}</td>'
            f'<td style="padding:6px 12px;border-bottom:1px solid #e2e8f0;">{item["oldestDueMonth"]}</td></tr>'
        )

    html_text = f"""
    <html>
    <body style="font-family:Arial,sans-serif;color:#1e3a5f;background:#f0f4ff;padding:24px;">
      <div style="max-width:640px;margin:0 auto;background:#ffffff;border-radius:12px;
                  border:2px solid #bfdbfe;padding:32px;">
        <h2 style="color:#1d4ed8;margin-bottom:4px;">Overdue Installment Digest</h2>
        <p style="font-size:13px;color:#64748b;margin-top:0;">Koperasi Savings System</p>
        <table style="width:100%;border-collapse:collapse;font-size:14px;">
          <tr style="background:#eff6ff;">
            <th style="padding:8px 12px;text-align:left;">Member</th>
            <th style="padding:8px 12px;text-align:left;">Product</th>
            <th style="padding:8px 12px;text-align:center;">Periods</th>
            <th style="padding:8px 12px;text-align:right;">Outstanding</th>
            <th style="padding:8px 12px;text-align:left;">Since</th>
          </tr>
          {rows}
        </table>
        <p style="font-size:12px;color:#94a3b8;margin-top:24px;">
          This is an automated notification. Follow up with the members listed above.
        </p>
      </div>
    </body>
    </html>
    """

    for email_addr in to_emails:
        try:
            _send_email(email_addr, subject, plain_text, html_text)
            logger.info("Overdue digest email sent to %s", email_addr)
        except Exception:
            logger.exception("Failed to send overdue digest to %s", email_addr)
