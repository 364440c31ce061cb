"""
Unit tests for ConsoleEmailSender adapter.

Tests verify the console email sender implements EmailSender protocol
and logs welcome notices in the correct format.
"""

import logging

import pytest

from src.adapters.smtp.console import ConsoleEmailSender


class TestConsoleEmailSenderProtocol:
    """Tests for EmailSender protocol compliance."""

    def test_implements_email_sender_protocol(self) -> None:
        """ConsoleEmailSender implements EmailSender protocol."""
        from src.domain.ports import EmailSender

        sender = ConsoleEmailSender()
        assert callable(sender.send_welcome)

        def accepts_email_sender(s: EmailSender) -> None:
            pass

        accepts_email_sender(sender)

    def test_no_explicit_inheritance(self) -> None:
        """ConsoleEmailSender uses structural subtyping, not inheritance."""
        assert ConsoleEmailSender.__bases__ == (object,)


class TestSendWelcome:
    """Tests for send_welcome method."""

    def test_logs_message(self, caplog: pytest.LogCaptureFixture) -> None:
        """Welcome notice is logged at INFO level."""
        sender = ConsoleEmailSender()

        with caplog.at_level(logging.INFO):
            sender.send_welcome("user@example.com", "Jane Expert")

        assert "[WELCOME] Email: user@example.com Name: Jane Expert" in caplog.text

    def test_log_record_level(self, caplog: pytest.LogCaptureFixture) -> None:
        sender = ConsoleEmailSender()

        with caplog.at_level(logging.INFO):
            sender.send_welcome("user@example.com", "Jane")

        records = [r for r in caplog.records if "[WELCOME]" in r.getMessage()]
        assert len(records) == 1
        assert records[0].levelno == logging.INFO
        assert records[0].name == "src.adapters.smtp.console"

    def test_returns_none(self) -> None:
        assert ConsoleEmailSender().send_welcome("a@a.com", "A") is None
