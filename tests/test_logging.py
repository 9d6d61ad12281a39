import io
import logging

from image_build.foundation.logging_utils import (
    attach_log_file,
    detach_log_file,
    setup_build_logger,
    write_text_file,
)


def _file_handlers(logger: logging.Logger) -> list[logging.FileHandler]:
    return [h for h in logger.handlers if isinstance(h, logging.FileHandler)]


def test_writes_unicode_text_with_utf8_encoding(tmp_path):
    path = tmp_path / "nested" / "report.txt"
    write_text_file(str(path), "arrow → and accents é")

    assert path.read_text(encoding="utf-8") == "arrow → and accents é"


def test_setup_build_logger_replaces_handlers_and_does_not_propagate():
    stream = io.StringIO()
    logger = setup_build_logger("demo-logger", stream=stream)
    logger = setup_build_logger("demo-logger", stream=stream)

    assert logger.name == "image_build.demo-logger"
    assert logger.propagate is False
    assert len(logger.handlers) == 1

    logger.info("hello")
    logger.debug("hidden")
    output = stream.getvalue()
    assert " | INFO | hello" in output
    assert "hidden" not in output


def test_debug_enables_console_debug_output():
    stream = io.StringIO()
    logger = setup_build_logger("demo-debug", debug=True, stream=stream)

    logger.debug("visible")
    assert " | DEBUG | visible" in stream.getvalue()


def test_color_only_applied_to_tty_streams():
    stream = io.StringIO()
    logger = setup_build_logger("demo-color", color=True, stream=stream)

    logger.error("plain")
    assert "\033[" not in stream.getvalue()


def test_log_file_switch_appends_header_and_moves_output(tmp_path):
    logger = setup_build_logger("demo-switch", stream=io.StringIO())
    build_log = tmp_path / "build.log"
    test_log = tmp_path / "test" / "test.log"

    attach_log_file(logger, str(build_log), target="build", module_name="demo")
    logger.info("building")
    attach_log_file(logger, str(test_log), target="test", module_name="demo")
    logger.info("testing")
    detach_log_file(logger)
    logger.info("cleaning")

    assert _file_handlers(logger) == []
    build_text = build_log.read_text(encoding="utf-8")
    test_text = test_log.read_text(encoding="utf-8")
    assert "Target: build" in build_text
    assert "building" in build_text
    assert "testing" not in build_text
    assert "Target: test" in test_text
    assert "Module: demo" in test_text
    assert "testing" in test_text
    assert "cleaning" not in build_text + test_text
