import logging

from app.utils.logging_redaction import RedactingFilter, install_redaction_filter, redact_message


def test_redacts_telegram_token_and_bearer():
    message = "POST https://api.telegram.org/bot123456:ABCDEFGHIJKLMNOPQRSTUVWXYZ/sendMessage Bearer abc.def"
    redacted = redact_message(message)
    assert "ABCDEFGHIJ" not in redacted
    assert "bot[REDACTED]" in redacted
    assert "Bearer [REDACTED]" in redacted


def test_redacts_keypair_arrays_only_at_full_length():
    keypair = "[" + ", ".join(str(i) for i in range(64)) + "]"
    assert redact_message(f"loaded {keypair}") == "loaded [KEYPAIR REDACTED]"

    short = "[1, 2, 3]"
    assert redact_message(short) == short


def test_redacts_signature_header():
    redacted = redact_message("headers X-Keeper-Signature: c2lnbmF0dXJl==")
    assert "c2lnbmF0dXJl" not in redacted


def test_filter_rewrites_record_with_args():
    record = logging.LogRecord(
        name="t",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="token %s",
        args=("bot42:abcdefghijklmnopqrstuvwxyz",),
        exc_info=None,
    )
    assert RedactingFilter().filter(record) is True
    assert record.getMessage() == "token bot[REDACTED]"


def test_redacts_url_credentials_and_configured_secrets():
    message = "db=postgresql+asyncpg://keeper:s3cret@db:5432/keeper token=abcdefgh1234"
    redacted = redact_message(message, secrets=["abcdefgh1234"])
    assert "s3cret" not in redacted
    assert "postgresql+asyncpg://keeper:[REDACTED]@db:5432" in redacted
    assert "abcdefgh1234" not in redacted


def test_install_replaces_previous_filter():
    root = logging.getLogger()
    first = install_redaction_filter(["first-secret"])
    second = install_redaction_filter(["second-secret", None, "short"])
    try:
        assert first not in root.filters
        assert second in root.filters
        assert second.secrets == ["second-secret"]
    finally:
        root.removeFilter(second)
        for handler in root.handlers:
            handler.removeFilter(second)
