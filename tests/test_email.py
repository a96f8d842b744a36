import pytest

from academy.core.settings import settings
from academy.services import email as email_module
from academy.services.email import (
    send_certificate_issued_email,
    send_email,
    send_welcome_email,
)


class FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.started_tls = False
        self.logged_in = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.started_tls = True

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, message):
        FakeSMTP.sent.append((self, message))


@pytest.fixture
def smtp(monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr(settings, "smtp_host", "smtp.example.com")
    monkeypatch.setattr(settings, "smtp_from_email", "noreply@example.com")
    monkeypatch.setattr(settings, "smtp_user", "mailer")
    monkeypatch.setattr(settings, "smtp_password", "pw")
    monkeypatch.setattr(email_module.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def test_email_skipped_without_smtp(monkeypatch):
    monkeypatch.setattr(settings, "smtp_host", None)
    assert send_welcome_email(email="someone@example.com", name="Sam") is False


def test_email_without_recipients_is_skipped(smtp):
    assert send_email(subject="Hi", to=[""], html_body="<p>Hi</p>") is False
    assert smtp.sent == []


def test_welcome_email_is_sent(smtp):
    assert send_welcome_email(email="sam@example.com", name="Sam") is True

    server, message = smtp.sent[0]
    assert server.host == "smtp.example.com"
    assert server.started_tls is True
    assert server.logged_in == ("mailer", "pw")
    assert message["To"] == "sam@example.com"
    assert "noreply@example.com" in message["From"]
    html = message.get_body(preferencelist=("html",)).get_content()
    assert "Hello Sam" in html


def test_certificate_email_links_to_verification(smtp):
    send_certificate_issued_email(
        email="sam@example.com",
        name="Sam",
        program_name="Robotics",
        certificate_id="ACADEMY-1234ABCD",
    )
    _, message = smtp.sent[0]
    text = message.get_body(preferencelist=("plain",)).get_content()
    assert "cert=ACADEMY-1234ABCD" in text
    assert "Robotics" in text
