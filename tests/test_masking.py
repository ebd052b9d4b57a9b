"""Tests for log masking helpers."""

import pytest

from authbridge.app.core.masking import mask_email, mask_identifier, mask_ip


@pytest.mark.parametrize(
    "ip,expected",
    [
        ("192.168.1.100", "192.168.*.*"),
        ("10.0.0.1", "10.0.*.*"),
        ("2001:db8::1", "2001:****"),
        ("::1", ":****"),
        (None, "unknown"),
        ("", "unknown"),
    ],
)
def test_mask_ip(ip, expected):
    assert mask_ip(ip) == expected


def test_mask_ip_never_returns_full_hostname():
    assert mask_ip("testclient") == "tes..."


@pytest.mark.parametrize(
    "email,expected",
    [("ada@example.com", "a***@example.com"), ("not-an-email", "***"), (None, "***")],
)
def test_mask_email(email, expected):
    assert mask_email(email) == expected


def test_mask_identifier():
    assert mask_identifier("abcdefghijklmnop") == "abcdefgh..."
    assert mask_identifier("short") == "s..."
    assert mask_identifier("") == "***"
    assert mask_identifier("abcdefghijk", visible=4) == "abcd..."
