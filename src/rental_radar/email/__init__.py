import datetime
import logging
import os
from typing import Optional

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
import smtplib
import ssl

from dotenv import load_dotenv
import jinja2

from rental_radar.data import RunSummary
from rental_radar.errors import NotificationError
from rental_radar.settings import EmailSettings

DEFAULT_TEMPLATE = os.path.join(
    os.path.dirname(__file__), "templates", "summary.html")


def generate_email(summary: RunSummary, template_path: Optional[str] = None) -> str:
    """ renders the summary email body with jinja2 """
    template_path = template_path or DEFAULT_TEMPLATE
    template_loader = jinja2.FileSystemLoader(
        searchpath=os.path.dirname(os.path.abspath(template_path)))
    template_env = jinja2.Environment(
        loader=template_loader, autoescape=jinja2.select_autoescape(["html"]))
    template = template_env.get_template(os.path.basename(template_path))
    return template.render(summary=summary, date=datetime.datetime.now())


class EmailNotifier():
    """ emails a summary of a run to the configured recipients when new listings were written """

    def __init__(self, settings: EmailSettings) -> None:
        self.settings = settings

    def notify(self, summary: RunSummary) -> bool:
        """ sends the summary if anything was written, returns whether an email went out.

            a failure to send is logged and never raised, the listings are already stored by then.
        """
        if summary.written == 0:
            logging.info("No new listings, not sending an email")
            return False

        subject = f"{summary.written} new listings for {datetime.datetime.now().strftime('%A, %d %B')}"
        try:
            body = generate_email(summary, self.settings.template)
        except jinja2.TemplateError:
            logging.exception("Could not render email template")
            return False

        try:
            self.dispatch(subject, body)
        except NotificationError as E:
            logging.error(f"Notification not sent: {E}")
            return False
        return True

    def dispatch(self, subject: str, body: str):
        """ sends an html email to the recipients over smtp with starttls

            :raises:
                NotificationError: if the email could not be sent
        """
        load_dotenv()
        login = os.getenv("SMTP_LOGIN")
        password = os.getenv("SMTP_PASSWORD")
        if not login or not password:
            raise NotificationError(
                "SMTP_LOGIN and SMTP_PASSWORD must be set to send emails")

        logging.info(
            f"Sending summary email to {', '.join(self.settings.recipients)}")
        msg = MIMEMultipart()
        msg["Subject"] = subject
        msg["From"] = login
        msg['To'] = ", ".join(self.settings.recipients)
        msg.attach(MIMEText(body, 'html'))

        context = ssl.create_default_context()
        try:
            with smtplib.SMTP(self.settings.smtp_server, self.settings.smtp_port, timeout=30) as server:
                server.ehlo()  # check connection
                server.starttls(context=context)  # Secure the connection
                server.ehlo()
                server.login(login, password)
                server.sendmail(login, self.settings.recipients, msg.as_string())
        except (smtplib.SMTPException, OSError) as E:
            raise NotificationError(f"could not send email: {E}") from E
