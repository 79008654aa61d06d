"""
Typed errors for install, uninstall and registry operations.

Every failure that reaches a caller is rendered as a TypedError: a stable
code for programmatic handling, a user-facing title and message, and the
structured details (config path, missing environment variables) a UI needs
to re-prompt or to point a human at the file to repair.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Error codes for programmatic handling."""

    # Lookup errors
    AGENT_NOT_FOUND = "agent_not_found"
    PLUGIN_NOT_FOUND = "plugin_not_found"
    AGENT_CONFIG_MISSING = "agent_config_missing"
    ENTRY_NOT_FOUND = "entry_not_found"

    # Validation errors
    NOT_INSTALLABLE = "not_installable"
    MISSING_ENV_VARS = "missing_env_vars"
    INVALID_AGENT_PATH = "invalid_agent_path"

    # Persistence errors
    CONFIG_WRITE_FAILED = "config_write_failed"
    REGISTRY_WRITE_FAILED = "registry_write_failed"

    # Generic
    UNKNOWN_ERROR = "unknown_error"


class MissingEnvVar(BaseModel):
    """A required environment variable that was not supplied."""

    key: str
    required: bool = True
    description: str = ""
    placeholder: str = ""
    help: str = ""
    secret: bool = False


class TypedError(BaseModel):
    """A structured error with user-friendly info."""

    code: ErrorCode = Field(description="Error code for programmatic handling")
    title: str = Field(description="User-friendly title")
    message: str = Field(description="Detailed message explaining what went wrong")
    config_path: Optional[str] = Field(
        alias="configPath", default=None, description="Config file that was targeted"
    )
    missing: list[MissingEnvVar] = Field(
        default_factory=list, description="Required environment variables not supplied"
    )
    original_error: Optional[str] = Field(
        alias="originalError", default=None, description="Original error message"
    )
    details: Optional[list[str]] = Field(
        default=None, description="Diagnostic details for debugging"
    )

    model_config = {"populate_by_name": True}

    @property
    def is_not_found(self) -> bool:
        return self.code in NOT_FOUND_CODES


NOT_FOUND_CODES = {
    ErrorCode.AGENT_NOT_FOUND,
    ErrorCode.PLUGIN_NOT_FOUND,
    ErrorCode.AGENT_CONFIG_MISSING,
    ErrorCode.ENTRY_NOT_FOUND,
}

ERROR_TITLES: dict[ErrorCode, str] = {
    ErrorCode.AGENT_NOT_FOUND: "Agent Not Found",
    ErrorCode.PLUGIN_NOT_FOUND: "MCP Not Found",
    ErrorCode.AGENT_CONFIG_MISSING: "Agent Config Not Found",
    ErrorCode.ENTRY_NOT_FOUND: "MCP Not Configured",
    ErrorCode.NOT_INSTALLABLE: "Not Installable",
    ErrorCode.MISSING_ENV_VARS: "Missing Environment Variables",
    ErrorCode.INVALID_AGENT_PATH: "Invalid Config Path",
    ErrorCode.CONFIG_WRITE_FAILED: "Config Write Failed",
    ErrorCode.REGISTRY_WRITE_FAILED: "Registry Write Failed",
    ErrorCode.UNKNOWN_ERROR: "Error",
}


class McpKitError(Exception):
    """Base exception for core operations. Renders itself as a TypedError."""

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[Any] = None,
        details: Optional[list[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.config_path = str(config_path) if config_path is not None else None
        self.details = details

    def to_typed_error(self) -> TypedError:
        return TypedError(
            code=self.code,
            title=ERROR_TITLES[self.code],
            message=self.message,
            config_path=self.config_path,
            details=self.details,
        )


class AgentNotFoundError(McpKitError):
    code = ErrorCode.AGENT_NOT_FOUND


class PluginNotFoundError(McpKitError):
    code = ErrorCode.PLUGIN_NOT_FOUND


class AgentConfigPathMissingError(McpKitError):
    code = ErrorCode.AGENT_CONFIG_MISSING


class EntryNotFoundError(McpKitError):
    code = ErrorCode.ENTRY_NOT_FOUND


class NotInstallableError(McpKitError):
    code = ErrorCode.NOT_INSTALLABLE


class InvalidAgentPathError(McpKitError):
    code = ErrorCode.INVALID_AGENT_PATH


class ConfigWriteError(McpKitError):
    code = ErrorCode.CONFIG_WRITE_FAILED


class RegistryWriteError(McpKitError):
    code = ErrorCode.REGISTRY_WRITE_FAILED


class MissingEnvVarsError(McpKitError):
    """Raised when required environment variables are absent or blank."""

    code = ErrorCode.MISSING_ENV_VARS

    def __init__(self, missing: list[MissingEnvVar], *, config_path: Optional[Any] = None):
        keys = ", ".join(m.key for m in missing)
        super().__init__(
            f"Missing required environment variables: {keys}",
            config_path=config_path,
        )
        self.missing = missing

    def to_typed_error(self) -> TypedError:
        error = super().to_typed_error()
        error.missing = list(self.missing)
        return error


def parse_error(error: Exception, config_path: Optional[Any] = None) -> TypedError:
    """
    Convert any exception into a TypedError.

    Core exceptions render themselves; anything else becomes UNKNOWN_ERROR
    with the original message attached.
    """
    if isinstance(error, McpKitError):
        typed = error.to_typed_error()
        if typed.config_path is None and config_path is not None:
            typed.config_path = str(config_path)
        return typed

    return TypedError(
        code=ErrorCode.UNKNOWN_ERROR,
        title=ERROR_TITLES[ErrorCode.UNKNOWN_ERROR],
        message=str(error) or "An unexpected error occurred.",
        config_path=str(config_path) if config_path is not None else None,
        original_error=f"{type(error).__name__}: {error}",
    )
