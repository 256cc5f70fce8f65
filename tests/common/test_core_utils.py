import logging
import sys
from pathlib import Path
from unittest.mock import MagicMock

from common.core_utils import SymbolFormatter, setup_logging


def test_setup_logging_with_file_and_console(mocker):
    """Test setup_logging when both log_file and log_to_console are provided."""
    mock_file_handler = mocker.patch("logging.FileHandler")
    mock_stream_handler = mocker.patch("logging.StreamHandler")
    mock_formatter = mocker.patch("common.core_utils.SymbolFormatter")
    mocker.patch("pathlib.Path.mkdir")

    mock_root_logger = MagicMock()
    mocker.patch("logging.getLogger", return_value=mock_root_logger)
    mock_root_logger.handlers = []

    log_file_path = str(Path("logs/test.log"))

    handlers = setup_logging(log_file=log_file_path, log_to_console=True)

    mock_file_handler.assert_called_once_with(Path(log_file_path), mode="a")
    mock_stream_handler.assert_called_once_with(sys.stdout)
    assert mock_formatter.call_count == 1
    assert mock_root_logger.addHandler.call_count == 2
    assert len(handlers) == 2


def test_setup_logging_replaces_existing_handlers(mocker):
    """Calling setup_logging twice must not duplicate output."""
    mocker.patch("logging.StreamHandler")
    mocker.patch("common.core_utils.SymbolFormatter")

    old_handler = MagicMock()
    mock_root_logger = MagicMock()
    mock_root_logger.handlers = [old_handler]
    mocker.patch("logging.getLogger", return_value=mock_root_logger)

    setup_logging(log_level=logging.DEBUG, log_to_console=True)

    mock_root_logger.removeHandler.assert_called_once_with(old_handler)
    mock_root_logger.setLevel.assert_called_once_with(logging.DEBUG)


def test_setup_logging_unwritable_file_falls_back_to_console(mocker, capsys):
    mocker.patch("logging.FileHandler", side_effect=OSError("read-only"))
    mock_stream_handler = mocker.patch("logging.StreamHandler")
    mocker.patch("common.core_utils.SymbolFormatter")
    mocker.patch("pathlib.Path.mkdir")
    mock_root_logger = MagicMock()
    mock_root_logger.handlers = []
    mocker.patch("logging.getLogger", return_value=mock_root_logger)

    handlers = setup_logging(log_file="/proc/nope.log", log_to_console=True)

    assert handlers == [mock_stream_handler.return_value]
    assert "Could not create file handler" in capsys.readouterr().err


def test_setup_logging_prefix_in_format(mocker):
    mocker.patch("logging.StreamHandler")
    mock_formatter = mocker.patch("common.core_utils.SymbolFormatter")
    mock_root_logger = MagicMock()
    mock_root_logger.handlers = []
    mocker.patch("logging.getLogger", return_value=mock_root_logger)

    setup_logging(log_prefix="[DOCKER-PROVISION]")

    fmt = mock_formatter.call_args[1]["fmt"]
    assert fmt.startswith("[DOCKER-PROVISION] ")


def test_symbol_formatter_adds_level_symbol():
    formatter = SymbolFormatter(
        fmt="%(symbol)s %(message)s", symbols={"error": "E", "info": "I"}
    )
    record = logging.LogRecord("x", logging.ERROR, __file__, 1, "broken", None, None)

    assert formatter.format(record) == "E broken"


def test_symbol_formatter_defaults():
    formatter = SymbolFormatter(fmt="%(symbol)s %(message)s")
    record = logging.LogRecord("x", logging.WARNING, __file__, 1, "careful", None, None)

    assert formatter.format(record) == "⚠️ careful"


def test_symbol_formatter_marks_successful_audit_entries():
    formatter = SymbolFormatter(
        fmt="%(symbol)s %(message)s", symbols={"success": "S", "info": "I"}
    )
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "[OK] apt update", None, None)
    record.severity = "ok"

    assert formatter.format(record) == "S [OK] apt update"
