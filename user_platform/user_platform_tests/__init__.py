"""
user_service test suite

- HTTP flows through the FastAPI app with ``TestClient`` (``test_auth.py``,
  ``test_password_reset.py``, ``test_users.py``, ``test_dev_monitor.py``)
- Service-level tests over the in-memory stores (``test_lifecycle.py``,
  ``test_verification.py``)
- Configuration, storage, event logging and database bootstrap
"""
