import pytest


@pytest.fixture(autouse=True)
def _plain_http_test_settings(settings):
    # Test client talks plain http to "testserver"
    settings.SECURE_SSL_REDIRECT = False
    settings.SESSION_COOKIE_SECURE = False
    settings.CSRF_COOKIE_SECURE = False
    settings.SECURE_HSTS_SECONDS = 0

    # Staff email copies are opt-in per test
    settings.WORKFLOW_EMAIL_NOTIFICATIONS = False
    settings.NOTIFICATION_EMAILS_ENABLED = False
