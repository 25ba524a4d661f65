"""
Unit tests for the package logging setup.
"""
import io
import logging

from rna_fold.utils.logging_utils import PACKAGE_LOGGER, setup_logger, timestamped_log_path


def test_timestamped_log_path_creates_directory(tmp_path):
    log_dir = tmp_path / "logs"
    path = timestamped_log_path(log_dir)
    assert log_dir.is_dir()
    assert path.parent == log_dir
    assert path.name.startswith(f"{PACKAGE_LOGGER}_")
    assert path.suffix == ".log"


def test_engine_records_reach_the_package_stream():
    """
    Records of engine modules propagate to the handler on the package logger,
    and repeated setup replaces instead of stacking handlers.
    """
    stream = io.StringIO()
    setup_logger(logging.INFO, stream=io.StringIO())
    logger = setup_logger(logging.INFO, stream=stream)
    try:
        logging.getLogger("rna_fold.folding.mccaskill.mccaskill_recurrences").info("inside pass done")
        logging.getLogger("rna_fold.folding.context").debug("hidden")

        assert len(logger.handlers) == 1
        output = stream.getvalue()
        assert output.count("inside pass done") == 1
        assert "rna_fold.folding.mccaskill.mccaskill_recurrences" in output
        assert "hidden" not in output
    finally:
        setup_logger(logging.WARNING, stream=io.StringIO())


def test_setup_logger_with_log_file(tmp_path):
    """
    A log file receives the same records as the console; missing directories are created.
    """
    log_file = tmp_path / "nested" / "run.log"
    logger = setup_logger(logging.DEBUG, log_file=log_file, stream=io.StringIO(), name="rna_fold.test_file")
    logger.debug("debug line")
    for handler in logger.handlers:
        handler.flush()

    assert "debug line" in log_file.read_text()
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
