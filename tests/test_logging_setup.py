import io

import structlog

from batch_mcp.logging_setup import configure_logging


def test_events_go_to_stderr_not_stdout(capsys) -> None:
    configure_logging("INFO")
    structlog.get_logger("batch_mcp.test").info("matlab_server_starting", transport="stdio")
    captured = capsys.readouterr()

    assert captured.out == ""
    assert "matlab_server_starting" in captured.err
    assert "transport=stdio" in captured.err


def test_level_filters_debug_events() -> None:
    stream = io.StringIO()
    configure_logging("INFO", stream=stream)
    logger = structlog.get_logger("batch_mcp.test")
    logger.debug("code_staged", unit="matlab_code_x")
    logger.warning("execution_timed_out", timeout_seconds=1)
    configure_logging("INFO")

    assert "code_staged" not in stream.getvalue()
    assert "execution_timed_out" in stream.getvalue()
