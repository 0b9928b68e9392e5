# utils/notifications.py
import logging

from django.conf import settings
from django.core.mail import EmailMessage
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)

TEMPLATES = {
    "transactionCreated": {
        "subject": "New purchase request for {bookTitle}",
        "template": "emails/transaction_created.txt",
    },
    "welcomeEmail": {
        "subject": "Welcome to Book Market, {userName}!",
        "template": "emails/welcome_email.txt",
    },
}


def send(recipient, template_name, payload):
    """
    Deliver a templated email. Delivery problems are logged and swallowed:
    callers never see a failure from here.

    Returns True when the message was handed to the email backend.
    """
    try:
        entry = TEMPLATES[template_name]
        email = EmailMessage(
            subject=entry["subject"].format(**payload),
            body=render_to_string(entry["template"], payload),
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[recipient],
        )
        email.send(fail_silently=False)
    except Exception as e:
        logger.warning(f"Could not send '{template_name}' email to {recipient}: {str(e)}")
        return False

    logger.info(f"Sent '{template_name}' email to {recipient}")
    return True
