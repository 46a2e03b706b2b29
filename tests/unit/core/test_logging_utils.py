import logging

import pytest

from sensor_link.core.logging_config import HOT_PATH_LOGGERS, component_levels, configure_logging
from sensor_link.core.logging_utils import get_module_logger


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    configure_logging("warning", console=False)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    for name in (*HOT_PATH_LOGGERS, "sensor_link.host.receiver"):
        logging.getLogger(name).setLevel(logging.NOTSET)


def test_module_logger_namespace_and_component():
    logger = get_module_logger("sensor_link.device.capture")

    assert logger.name == "sensor_link.device.capture"
    assert logger.component == "capture"
    assert get_module_logger("RetryPolicy").name == "sensor_link.RetryPolicy"


def test_messages_are_prefixed(caplog):
    logger = get_module_logger("sensor_link.host.receiver")

    with caplog.at_level(logging.INFO, logger="sensor_link"):
        logger.info("Frame %d timed out", 4)
        logger.info("[receiver] already tagged")

    assert caplog.messages == ["[receiver] Frame 4 timed out", "[receiver] already tagged"]


def test_bad_format_args_do_not_raise(caplog):
    logger = get_module_logger("Formatting")

    with caplog.at_level(logging.WARNING, logger="sensor_link"):
        logger.warning("value %d", "not-a-number")

    assert "args=not-a-number" in caplog.messages[0]


class TestComponentLevels:

    def test_hot_path_held_at_info(self):
        levels = component_levels(logging.DEBUG)

        assert levels == {name: logging.INFO for name in HOT_PATH_LOGGERS}

    def test_hot_path_follows_quieter_root(self):
        assert set(component_levels(logging.WARNING).values()) == {logging.WARNING}

    def test_capture_debug_releases_hot_path(self):
        assert component_levels(logging.DEBUG, capture_debug=True) == {}

    def test_overrides_accept_relative_names(self):
        levels = component_levels(logging.INFO, capture_debug=True, overrides={"host.receiver": "debug"})

        assert levels == {"sensor_link.host.receiver": logging.DEBUG}

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            component_levels(logging.INFO, overrides={"host.receiver": "loud"})


class TestConfigureLogging:

    def test_writes_file_without_hot_path_debug(self, tmp_path, restore_logging):
        log_file = tmp_path / "logs" / "link.log"

        configure_logging("debug", console=False, log_file=log_file)
        get_module_logger("FileCheck").debug("hello")
        get_module_logger("sensor_link.device.capture").debug("per-line detail")
        for handler in logging.getLogger().handlers:
            handler.flush()

        text = log_file.read_text(encoding="utf-8")
        assert "[FileCheck] hello" in text
        assert "per-line detail" not in text

    def test_capture_debug(self, restore_logging):
        configure_logging("debug", console=False, capture_debug=True)

        assert logging.getLogger("sensor_link.device.capture").getEffectiveLevel() == logging.DEBUG

    def test_override_lowers_one_component(self, restore_logging):
        configure_logging("warning", console=False, overrides={"host.receiver": logging.DEBUG})

        assert logging.getLogger("sensor_link.host.receiver").level == logging.DEBUG
        assert logging.getLogger("sensor_link.host.commander").getEffectiveLevel() == logging.WARNING

    def test_reconfigure_clears_previous_levels(self, restore_logging):
        configure_logging("info", console=False, overrides={"host.receiver": "debug"})
        configure_logging("info", console=False, capture_debug=True)

        assert logging.getLogger("sensor_link.host.receiver").level == logging.NOTSET
        assert logging.getLogger("sensor_link.device.capture").level == logging.NOTSET

    def test_rejects_unknown_level(self, restore_logging):
        with pytest.raises(ValueError):
            configure_logging("loud")
