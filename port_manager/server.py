"""
Docker Port Manager Server

A FastMCP server that reports host ports published by running Docker
containers, checks single ports for availability and suggests free ports.
The same operations are served as an MCP tool and as a small JSON HTTP API.
"""

import argparse
import os
import random
import sys
import tempfile
from pathlib import Path
from typing import Annotated, Any

from dotenv import load_dotenv
from fastmcp import FastMCP
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent
from pydantic import Field
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from .core.availability import validate_port
from .core.config_loader import DEFAULT_CONFIG_FILE, PortManagerConfig, load_config
from .core.error_response import PortManagerErrorResponse
from .core.exceptions import ConfigurationError, PortManagerError, PortValidationError
from .core.logging_config import get_server_logger
from .core.runtime_client import DockerRuntimeClient
from .middleware import ErrorHandlingMiddleware, LoggingMiddleware, TimingMiddleware
from .models.enums import PortAction
from .resources import PortInventoryResource
from .services import PortService


class PortManagerServer:
    """FastMCP server for Docker host port management."""

    def __init__(
        self,
        config: PortManagerConfig,
        runtime_client: DockerRuntimeClient | None = None,
        rng: random.Random | None = None,
    ):
        self.config = config
        self.logger = get_server_logger()

        self.runtime_client = runtime_client or DockerRuntimeClient.from_config(config.runtime)
        self.port_service = PortService(self.runtime_client, config.generator, rng=rng)

        self.app: FastMCP | None = None

        self.logger.info(
            "Docker Port Manager initialized",
            docker_url=config.runtime.base_url,
            api_prefix=config.server.api_prefix,
            range_low=config.generator.range_low,
            range_high=config.generator.range_high,
        )

    def _parse_env_float(self, var_name: str, default: float) -> float:
        """Safely parse environment variable as float with default fallback."""
        value = os.getenv(var_name)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            self.logger.warning(
                f"Invalid {var_name}; using default", value=value, default=default
            )
            return default

    def _parse_env_int(self, var_name: str, default: int) -> int:
        """Safely parse environment variable as int with default fallback."""
        value = os.getenv(var_name)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            self.logger.warning(
                f"Invalid {var_name}; using default", value=value, default=default
            )
            return default

    def _parse_env_bool(self, var_name: str, default: bool) -> bool:
        """Parse a boolean environment variable."""
        value = os.getenv(var_name)
        if value is None:
            return default
        return value.strip().lower() in ("1", "true", "yes", "on")

    def _initialize_app(self) -> None:
        """Initialize FastMCP app, middleware, tool, resource and HTTP routes."""
        self.app = FastMCP("Docker Port Manager")

        self._configure_middleware()

        threshold_val = self._parse_env_float("SLOW_REQUEST_THRESHOLD_MS", 5000.0)
        self.logger.info(
            "FastMCP middleware initialized",
            error_handling=True,
            timing_monitoring=f"{threshold_val}ms threshold",
            logging="dual output (console + files)",
        )

        self.app.tool(
            self.docker_ports,
            annotations={
                "title": "Docker Port Management",
                "readOnlyHint": True,  # Only reads container state
                "destructiveHint": False,
                "idempotentHint": False,  # random action returns a different port each call
                "openWorldHint": True,  # Talks to the Docker daemon
            },
        )

        self._register_resources()
        self._register_http_routes()

    def _configure_middleware(self) -> None:
        """Configure FastMCP middleware stack."""
        if self.app is None:
            return
        # First added = first executed
        self.app.add_middleware(
            ErrorHandlingMiddleware(
                include_traceback=self.config.server.log_level.upper() == "DEBUG",
                track_error_stats=True,
            )
        )

        slow_threshold = self._parse_env_float("SLOW_REQUEST_THRESHOLD_MS", 5000.0)
        self.app.add_middleware(
            TimingMiddleware(slow_request_threshold_ms=slow_threshold, track_statistics=True)
        )

        include_payloads = self._parse_env_bool("LOG_INCLUDE_PAYLOADS", True)
        max_payload_length = self._parse_env_int("LOG_MAX_PAYLOAD_LENGTH", 1000)
        self.app.add_middleware(
            LoggingMiddleware(
                include_payloads=include_payloads,
                max_payload_length=max_payload_length,
            )
        )

    def _register_resources(self) -> None:
        """Register MCP resources for data access."""
        if self.app is None:
            return
        self.app.add_resource(PortInventoryResource(self.port_service))
        self.logger.info("MCP resources registered successfully", resources_count=1)

    def _register_http_routes(self) -> None:
        """Register the JSON HTTP API under the configured prefix."""
        if self.app is None:
            return
        prefix = self.config.server.api_prefix.strip("/")
        prefix = f"/{prefix}" if prefix else ""

        routes = [
            (f"{prefix}/ports", self.http_list_ports),
            (f"{prefix}/ports/random", self.http_random_port),
            (f"{prefix}/ports/{{port}}/check", self.http_check_port),
            (f"{prefix}/health", self.http_health),
        ]
        for path, handler in routes:
            self.app.custom_route(path, methods=["GET"])(handler)

        self.logger.info("HTTP routes registered", paths=[path for path, _ in routes])

    async def docker_ports(
        self,
        action: Annotated[str | PortAction, Field(description="Action to perform")] = "list",
        port: Annotated[
            int | None, Field(default=None, description="Host port for the check action")
        ] = None,
        range_low: Annotated[
            int | None,
            Field(default=None, description="Lowest port for the random action"),
        ] = None,
        range_high: Annotated[
            int | None,
            Field(default=None, description="Highest port for the random action"),
        ] = None,
    ) -> ToolResult:
        """Docker host port management tool.

        Actions:
        • list: List host ports published by running containers

        • check: Check whether a host port is free
          - Required: port

        • random: Suggest a random free port
          - Optional: range_low, range_high (default 3000-9999)

        • health: Check the Docker daemon connection
        """
        try:
            action_enum = action if isinstance(action, PortAction) else PortAction(action)
        except ValueError:
            valid_actions = [a.value for a in PortAction]
            body = PortManagerErrorResponse.validation_error(
                "action", action, f"must be one of: {', '.join(valid_actions)}"
            )
            text = f"❌ Unknown action '{action}'. Valid actions: {', '.join(valid_actions)}"
            body["formatted_output"] = text
            return ToolResult(content=[TextContent(type="text", text=text)], structured_content=body)

        if action_enum == PortAction.LIST:
            return await self.port_service.list_ports()
        if action_enum == PortAction.CHECK:
            return await self.port_service.check_port_availability(port)
        if action_enum == PortAction.RANDOM:
            return await self.port_service.suggest_random_port(range_low, range_high)
        return await self.port_service.runtime_health()

    # HTTP API

    async def http_list_ports(self, request: Request) -> JSONResponse:
        """GET {prefix}/ports"""
        try:
            inventory = await self.port_service.get_inventory()
        except Exception as e:
            return self._http_error(e, "list_ports", request)
        return JSONResponse(inventory.model_dump())

    async def http_check_port(self, request: Request) -> JSONResponse:
        """GET {prefix}/ports/{port}/check"""
        try:
            result = await self.port_service.check_port(request.path_params.get("port"))
        except Exception as e:
            return self._http_error(e, "check_port", request)
        return JSONResponse(result.model_dump())

    async def http_random_port(self, request: Request) -> JSONResponse:
        """GET {prefix}/ports/random[?low=&high=]"""
        try:
            low = request.query_params.get("low")
            high = request.query_params.get("high")
            result = await self.port_service.random_port(
                validate_port(low, field="range_low") if low is not None else None,
                validate_port(high, field="range_high") if high is not None else None,
            )
        except Exception as e:
            return self._http_error(e, "random_port", request)
        return JSONResponse(result.model_dump())

    async def http_health(self, request: Request) -> JSONResponse:
        """GET {prefix}/health"""
        status = await self.port_service.health()
        return JSONResponse(status.model_dump(), status_code=200 if status.status == "healthy" else 503)

    def _http_error(self, error: Exception, operation: str, request: Request) -> JSONResponse:
        """Translate an exception into an RFC 7807 JSON response."""
        status_code, body = PortManagerErrorResponse.from_exception(error, operation)
        body.setdefault("instance", request.url.path)

        if isinstance(error, PortManagerError):
            self.logger.warning(
                "HTTP request failed",
                operation=operation,
                path=request.url.path,
                status_code=status_code,
                error=str(error),
                error_type=type(error).__name__,
            )
        else:
            self.logger.error(
                "Unexpected error handling HTTP request",
                operation=operation,
                path=request.url.path,
                error=str(error),
                exc_info=True,
            )
        return JSONResponse(body, status_code=status_code)

    def _cors_middleware(self) -> list[Middleware]:
        """CORS middleware for every ASGI app built from this server."""
        return [
            Middleware(
                CORSMiddleware,
                allow_origins=self.config.server.cors_origins,
                allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
                allow_headers=["*"],
            )
        ]

    def http_app(self) -> Any:
        """Build the Streamable HTTP ASGI app with MCP and JSON routes."""
        if self.app is None:
            self._initialize_app()
        return self.app.http_app(middleware=self._cors_middleware())

    def run(self) -> None:
        """Run the FastMCP server."""
        try:
            self._initialize_app()

            self.logger.info(
                "Starting Docker Port Manager",
                host=self.config.server.host,
                port=self.config.server.port,
                cors_origins=self.config.server.cors_origins,
            )

            # FastMCP.run() is synchronous and manages its own event loop
            if self.app is None:
                raise RuntimeError("FastMCP app not initialized")
            self.app.run(
                transport="http",
                host=self.config.server.host,
                port=self.config.server.port,
                middleware=self._cors_middleware(),
            )

        except Exception as e:
            self.logger.error("Server startup failed", error=str(e))
            raise


def _cli_port(value: str) -> int:
    """Argparse type for the --port flag."""
    try:
        return validate_port(value)
    except PortValidationError as e:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}") from e


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    load_dotenv()

    # HOST, PORT and LOG_LEVEL are applied by load_config; flags only override when given
    default_config = os.getenv("PORT_MANAGER_CONFIG", DEFAULT_CONFIG_FILE)

    parser = argparse.ArgumentParser(description="Docker Port Manager")
    parser.add_argument("--host", default=None, help="Server host")
    parser.add_argument("--port", type=_cli_port, default=None, help="Server port")
    parser.add_argument("--config", default=default_config, help="Configuration file path")
    parser.add_argument(
        "--log-level",
        default=None,
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument(
        "--validate-config", action="store_true", help="Validate configuration and exit"
    )

    return parser.parse_args(argv)


def main() -> None:
    """Main entry point."""
    args = parse_args()

    log_dir = _setup_log_directory()
    logger = _setup_logging_system(args, log_dir)

    config = _load_and_configure(args, logger)
    if config is None:  # Validation-only mode
        return

    server = PortManagerServer(config)
    _run_server(server, logger)


def _setup_log_directory() -> Path | None:
    """Setup log directory with fallback options."""
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    log_dir_candidates = [
        os.getenv("LOG_DIR"),
        str(Path(xdg_data_home) / "docker-port-manager" / "logs") if xdg_data_home else None,
        str(Path.home() / ".local" / "share" / "docker-port-manager" / "logs"),
        str(Path(tempfile.gettempdir()) / "docker-port-manager-logs"),
    ]

    for candidate in log_dir_candidates:
        if candidate:
            try:
                candidate_path = Path(candidate)
                candidate_path.mkdir(parents=True, exist_ok=True)
                if candidate_path.is_dir() and os.access(candidate_path, os.W_OK):
                    return candidate_path
            except OSError:
                continue

    print("Warning: Unable to create log directory, using console-only logging")
    return None


def _setup_logging_system(args: argparse.Namespace, log_dir: Path | None) -> Any:
    """Setup logging system and return the server logger."""
    from .core.logging_config import setup_logging

    try:
        max_file_size_mb = int(os.getenv("LOG_FILE_SIZE_MB", "10"))
        if max_file_size_mb < 1 or max_file_size_mb > 100:
            max_file_size_mb = 10
    except ValueError:
        max_file_size_mb = 10

    setup_logging(log_dir=log_dir, log_level=args.log_level, max_file_size_mb=max_file_size_mb)
    return get_server_logger()


def _load_and_configure(args: argparse.Namespace, logger: Any) -> PortManagerConfig | None:
    """Load configuration, returning None for validation-only mode."""
    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        logger.error("Configuration invalid", config_path=args.config, error=str(e))
        sys.exit(1)

    # CLI args override loaded values
    if args.host is not None:
        config.server.host = args.host
    if args.port is not None:
        config.server.port = args.port
    if args.log_level is not None:
        config.server.log_level = args.log_level

    if args.validate_config:
        logger.info("Configuration validation successful", config_path=config.config_file)
        logger.info("✅ Configuration is valid")
        return None

    return config


def _run_server(server: PortManagerServer, logger: Any) -> None:
    """Run server with error handling."""
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception as e:
        logger.error("Server error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
