# backend/tests/conftest.py
"""
Pytest configuration for the Dispatchly test suite.

Environment is pinned BEFORE any dispatchly import so the settings object
never points at a real database or real notification providers.
"""

import os
import unittest.mock

# CRITICAL: Set test environment BEFORE any dispatchly imports!
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["NOTIFICATIONS_ENABLED"] = "false"
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("TWILIO_ACCOUNT_SID", None)

# Mock Resend globally so no test can send a real email
global_resend_mock = unittest.mock.patch("resend.Emails.send")
mocked_send = global_resend_mock.start()
mocked_send.return_value = {"id": "test-email-id"}


def pytest_unconfigure(config):
    global_resend_mock.stop()
