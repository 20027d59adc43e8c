from typing import Annotated

import structlog
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field

from .execution.batch_engine import BatchEngine
from .execution.config import profile_for
from .execution.engine import ExecutionEngine
from .runner import run_code
from .settings import HTTP_PATH, ServerSettings

logger = structlog.get_logger(__name__)

SERVER_NAME = "batch-mcp"
TOOL_NAME = "execute_matlab"
TOOL_DESCRIPTION = "Execute MATLAB code using matlab -batch command"


def build_engine(settings: ServerSettings) -> BatchEngine:
    """Create the batch engine described by the settings.

    Example:
        ```python
        engine = build_engine(ServerSettings(interpreter_path="/opt/matlab/bin/matlab"))
        ```
    """
    return BatchEngine(
        profile=profile_for(settings.interpreter),
        executable=settings.interpreter_path,
    )


def build_server(settings: ServerSettings, engine: ExecutionEngine | None = None) -> FastMCP:
    """Create a FastMCP server exposing the `execute_matlab` tool.

    Example:
        ```python
        server = build_server(ServerSettings())
        ```
    """
    active_engine = engine if engine is not None else build_engine(settings)
    server = FastMCP(
        name=SERVER_NAME,
        host=settings.host,
        port=settings.port,
        streamable_http_path=HTTP_PATH,
        log_level=settings.log_level,
    )

    timeout_help = f"Timeout in seconds (default: {settings.default_timeout_seconds:g})"

    async def execute_matlab(
        code: Annotated[str, Field(description="MATLAB code to execute")],
        timeout: Annotated[
            float,
            Field(gt=0, description=timeout_help),
        ] = settings.default_timeout_seconds,
    ) -> str:
        """Run one code snippet and return its combined output.

        Example:
            ```python
            text = await execute_matlab("disp(2+3)", timeout=30)
            ```
        """
        result = await run_code(
            code,
            active_engine,
            timeout_seconds=timeout,
            staging_root=settings.staging_dir,
        )
        if result.is_error:
            raise ToolError(result.text)
        return result.text

    server.add_tool(execute_matlab, name=TOOL_NAME, description=TOOL_DESCRIPTION)
    return server


def serve(settings: ServerSettings) -> None:
    """Start the MCP server on the configured transport and block until it stops.

    Example:
        ```python
        serve(ServerSettings(transport="http", port=8080))
        ```
    """
    server = build_server(settings)
    logger.info(
        "matlab_server_starting",
        interpreter=settings.interpreter,
        executable=settings.executable,
        transport=settings.transport,
    )
    if settings.transport == "http":
        logger.info("http_server_listening", address=f"{settings.host}:{settings.port}{HTTP_PATH}")
        server.run(transport="streamable-http")
        return
    server.run(transport="stdio")
