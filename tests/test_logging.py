import logging

from domainops.core import logging as dlogging


def test_resolve_level_prefers_argument_then_env(monkeypatch):
    monkeypatch.setenv("DOMAINOPS_LOG_LEVEL", "debug")

    assert dlogging.resolve_level("error") == logging.ERROR
    assert dlogging.resolve_level() == logging.DEBUG


def test_resolve_level_falls_back_to_warning(monkeypatch):
    monkeypatch.delenv("DOMAINOPS_LOG_LEVEL", raising=False)

    assert dlogging.resolve_level() == logging.WARNING
    assert dlogging.resolve_level("chatty") == logging.WARNING


def test_configure_logging_installs_one_handler(monkeypatch):
    monkeypatch.setattr(dlogging, "_CONFIGURED", False)
    logger = logging.getLogger("domainops")
    before = list(logger.handlers)

    try:
        dlogging.configure_logging("INFO")
        dlogging.configure_logging("DEBUG")

        added = [h for h in logger.handlers if h not in before]
        assert len(added) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for h in logger.handlers:
            if h not in before:
                logger.removeHandler(h)
        logger.propagate = True
