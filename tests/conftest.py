"""
Shared pytest fixtures for the Passwood test suite.

Autouse fixtures below isolate tests from the live environment:
  - Audit logger -> temp directory  (prevents test events in ./audit_logs)
  - Settings     -> temp data dir   (prevents .env / environment leaking in)
  - PBKDF2       -> low iteration floor (600k iterations per derive is too
                    slow for hundreds of encode/decode calls)
"""

from pathlib import Path

import pytest

# Low enough to be fast, high enough to stay a real PBKDF2 run
TEST_ITERATIONS = 1000
TEST_MAX_ITERATIONS = 5000


@pytest.fixture(autouse=True)
def _fast_kdf(monkeypatch):
    """Lower the KDF iteration floor for every test.

    Module attributes are read at call time by codec/config, so patching
    them here covers encode(), decode() and load_settings().
    """
    import passwood.vault.kdf as kdf_mod

    monkeypatch.setattr(kdf_mod, "MIN_ITERATIONS", TEST_ITERATIONS)
    monkeypatch.setattr(kdf_mod, "DEFAULT_ITERATIONS", TEST_ITERATIONS)
    monkeypatch.setattr(kdf_mod, "MAX_ITERATIONS", TEST_MAX_ITERATIONS)


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path):
    """Redirect the global AuditLogger to a temp directory for every test.

    Without this, anything that calls ``get_audit_logger()`` writes into
    the real ``./audit_logs/`` directory.
    """
    from passwood.core.audit_log import AuditLogger, set_audit_logger

    logger = AuditLogger(log_dir=tmp_path / "audit_logs")
    set_audit_logger(logger)

    yield logger

    logger.close()
    set_audit_logger(None)


@pytest.fixture(autouse=True)
def _isolate_settings(tmp_path):
    """Pin settings to temp paths so no .env or PASSWOOD_* variable leaks in."""
    from passwood.config import Settings, set_settings
    from passwood.vault.cipher import AES_256_GCM

    set_settings(Settings(
        data_dir=tmp_path / "passwords",
        audit_log_dir=tmp_path / "audit_logs",
        kdf_iterations=TEST_ITERATIONS,
        cipher_algorithm_id=AES_256_GCM,
        session_timeout=300.0,
    ))

    yield

    set_settings(None)


@pytest.fixture
def audit_log(_isolate_audit_logs) -> Path:
    """Path of the current test's audit log file."""
    return _isolate_audit_logs.log_file


@pytest.fixture
def github_vault():
    """Vault with the GitHub/GitLab/Email records used across tests."""
    from passwood.vault import operations as ops

    vault = ops.create_vault()
    vault = ops.add_tag(vault, "work")
    vault = ops.add_tag(vault, "temp", "#ff0000")
    vault = ops.add_record(vault, ops.create_record(
        "GitHub", "me@x.com", "p@ss", url="https://github.com", tag_names=["work"],
    ))
    vault = ops.add_record(vault, ops.create_record(
        "GitLab", "me@y.com", "hunter2", tag_names=["work", "temp"],
    ))
    vault = ops.add_record(vault, ops.create_record(
        "Email", "me@mail.com", "s3cret", notes="personal", tag_names=["temp"],
    ))
    return vault
