import pytest


@pytest.fixture(autouse=True)
def _test_client_sessions(settings):
    # The API has no sessions app; the test client's logout (used by
    # force_authenticate(None)) still needs a session store, so use one
    # that does not require a database table.
    settings.SESSION_ENGINE = "django.contrib.sessions.backends.signed_cookies"
