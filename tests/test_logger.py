"""Test logging setup and failure reports"""

import logging

from moss_music.core.logger import (
    dump_debug_output,
    get_logger,
    log_acquisition_failure,
    setup_logging,
    shutdown_logging,
)


class TestLogging:
    """Test the logging system"""

    def test_setup_creates_log_files(self, temp_dir):
        """Full and error logs are written per run"""
        logs_dir = setup_logging(temp_dir, verbose=True)
        logger = get_logger("moss_music.test")

        logger.debug("debug line")
        logger.error("error line")
        shutdown_logging()

        full_log = next(logs_dir.glob("log_full_*.log")).read_text(encoding="utf-8")
        error_log = next(logs_dir.glob("log_errors_*.log")).read_text(encoding="utf-8")
        assert "debug line" in full_log
        assert "error line" in full_log
        assert "debug line" not in error_log
        assert "error line" in error_log

    def test_acquisition_failure_report(self, temp_dir):
        """Failed items land in the acquisition failure report"""
        logs_dir = setup_logging(temp_dir)
        logger = get_logger("moss_music.test")

        log_acquisition_failure(logger, "dQw4w9WgXcQ", "Song", "PL1", "no output file")
        logger.error("unrelated error")
        shutdown_logging()

        report = next(logs_dir.glob("acquisition_failures_*.log")).read_text(encoding="utf-8")
        assert "[PL1] Song (dQw4w9WgXcQ)" in report
        assert "Reason: no output file" in report
        assert "unrelated" not in report

    def test_dump_requires_setup(self):
        """Debug dumps are skipped when logging isn't configured"""
        assert dump_debug_output("resolver_output", "x") is None

    def test_shutdown_detaches_handlers(self, temp_dir):
        """shutdown_logging leaves the root logger without handlers"""
        setup_logging(temp_dir)
        shutdown_logging()
        assert logging.getLogger().handlers == []
