"""
Mailer - the email collaborator.

``Mailer.send`` delivers one plain-text message over SMTP and returns its
Message-ID. Any SMTP or socket failure is raised as ``DeliveryError``. When no
SMTP host is configured the message is only logged, which keeps local
development and tests free of a mail server.
"""

import smtplib
from email.message import EmailMessage
from email.utils import formataddr, make_msgid

from sims.config import Settings
from sims.errors import DeliveryError
from sims.logging_config import get_logger, log_with_context

logger = get_logger("email")


class Mailer:
    def __init__(self, settings: Settings):
        self.settings = settings

    def send(self, to: str, subject: str, body: str) -> str:
        settings = self.settings
        message = EmailMessage()
        message["From"] = formataddr((settings.mail_from_name, settings.mail_from_address))
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid(domain=settings.mail_from_address.split("@")[-1])
        message.set_content(body)

        if not settings.smtp_host:
            log_with_context(logger, "WARNING", "SMTP not configured, email not sent",
                             extra_data={"to": to, "subject": subject})
            return message["Message-ID"]

        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
                if settings.smtp_use_tls:
                    server.starttls()
                if settings.smtp_username and settings.smtp_password:
                    server.login(settings.smtp_username, settings.smtp_password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            log_with_context(logger, "ERROR", "Email delivery failed: {}".format(e),
                             extra_data={"to": to, "subject": subject})
            raise DeliveryError()

        log_with_context(logger, "INFO", "Email sent",
                         extra_data={"to": to, "subject": subject, "message_id": message["Message-ID"]})
        return message["Message-ID"]
