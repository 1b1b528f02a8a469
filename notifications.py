"""
Envío de notificaciones por correo.

``LogNotifier`` sólo registra el mensaje (desarrollo y pruebas);
``SmtpNotifier`` lo envía por SMTP. Un fallo al enviar nunca tumba la petición.
"""
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import List, Tuple

from config import Settings

logger = logging.getLogger(__name__)


class LogNotifier:
    def __init__(self):
        self.sent: List[Tuple[str, str, str]] = []

    def send(self, to: str, subject: str, html: str) -> bool:
        self.sent.append((to, subject, html))
        logger.info("Correo (sin SMTP) para %s: %s", to, subject)
        return True


class SmtpNotifier:
    def __init__(self, host: str, port: int, user: str, password: str, sender: str):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender

    def send(self, to: str, subject: str, html: str) -> bool:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = to
        message.attach(MIMEText(html, "html", "utf-8"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as server:
                server.starttls(context=ssl.create_default_context())
                if self.user:
                    server.login(self.user, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Error enviando correo a %s: %s", to, exc)
            return False

        logger.info("Correo enviado a %s: %s", to, subject)
        return True


def build_notifier(settings: Settings):
    if settings.smtp_host:
        return SmtpNotifier(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user or "",
            password=settings.smtp_password or "",
            sender=settings.email_from,
        )
    return LogNotifier()


# ----------------- plantillas ----------------- #

def verification_email(name: str, url: str) -> Tuple[str, str]:
    subject = "Verifica tu correo electrónico"
    name, url = escape(name), escape(url)
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #4CAF50;">Hola {name},</h2>
      <p>Gracias por registrarte en Naxine. Para completar tu registro, verifica tu correo:</p>
      <p style="text-align: center; margin: 30px 0;">
        <a href="{url}" style="background-color: #4CAF50; color: white; padding: 12px 24px;
           text-decoration: none; border-radius: 4px;">Verificar Correo</a>
      </p>
      <p>Este enlace expirará en 24 horas.</p>
    </div>
    """
    return subject, html


def password_reset_email(name: str, url: str) -> Tuple[str, str]:
    subject = "Recupera tu contraseña"
    name, url = escape(name), escape(url)
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2>Hola {name},</h2>
      <p>Para elegir una nueva contraseña entra a: <a href="{url}">{url}</a></p>
      <p>Si no lo pediste, ignora este correo.</p>
    </div>
    """
    return subject, html
