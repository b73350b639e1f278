"""Toolspine - Schema-validated tool services over HTTP.

Declare a tool's input and configuration with a fluent field DSL, attach an
execute function, and serve it as a small HTTP service with validation,
authentication, rate limiting, timeouts, metrics and health reporting.

Quick Start:
    >>> from toolspine import create_tool, string_field, number_field, api_key_field
    >>>
    >>> async def greet(data, config, ctx):
    ...     return {"greeting": " ".join([f"Hello {data['name']}"] * data["times"])}
    >>>
    >>> tool = create_tool(
    ...     {"name": "greeter", "version": "1.0.0", "description": "Greets people"},
    ...     greet,
    ...     input={
    ...         "name": string_field().required().min_length(1),
    ...         "times": number_field().integer().min(1).max(5).default(1),
    ...     },
    ...     config={"api_key": api_key_field().env_var("GREETER_API_KEY")},
    ... )
    >>> tool.run(port=3000)  # POST /api/execute {"input_data": {"name": "Ada"}}

Fluent Builder:
    >>> tool = (
    ...     ToolBuilder()
    ...     .metadata(name="greeter", version="1.0.0", description="Greets people")
    ...     .input_field("name", string_field().required())
    ...     .input_field("title", string_field())
    ...     .input_field("surname", string_field())
    ...     .rule(dependency("title", requires=["surname"]))
    ...     .execute(greet)
    ...     .build()
    ... )

Validation Without a Server:
    >>> from toolspine import create_schema, email_field
    >>> schema = create_schema().add_input("email", email_field().required())
    >>> schema.validate_input({"email": "not-an-email"}).errors[0].code
    'INVALID_STRING'
"""

from __future__ import annotations

__version__ = "0.1.0"

# Errors
from .foundation.errors import (
    ConfigurationError,
    ErrorCode,
    ErrorInfo,
    ErrorType,
    ExecutionError,
    SchemaCompilationError,
    TimeoutExceededError,
    ToolspineError,
    ValidationError,
)

# Settings
from .foundation.config import ToolspineSettings, clear_settings_cache, get_settings

# Schema DSL and validation
from .schema import (
    SchemaBuilder,
    SchemaCompiler,
    ToolSchema,
    ValidationEngine,
    ValidationOptions,
    ValidationResult,
    all_of,
    any_of,
    api_key_field,
    array_field,
    boolean_field,
    conditional,
    config_enum_field,
    config_number_field,
    config_string_field,
    create_schema,
    create_validator,
    date_field,
    datetime_field,
    dependency,
    email_field,
    enum_field,
    file_field,
    generate_tool_documentation,
    json_field,
    mutual_exclusion,
    number_field,
    object_field,
    secret_field,
    string_field,
    time_field,
    url_config_field,
    url_field,
    uuid_field,
    validate_field,
    when,
)

# Runtime
from .runtime import (
    ExecutionContext,
    ExecutionResult,
    ExecutionStatus,
    Tool,
    ToolBuilder,
    ToolEvent,
    ToolMetadata,
    ToolState,
    create_tool,
)

# Observability
from .runtime.observability import configure_logging, get_logger

__all__ = [
    "__version__",
    # Errors
    "ToolspineError", "ValidationError", "ConfigurationError", "SchemaCompilationError",
    "ExecutionError", "TimeoutExceededError", "ErrorCode", "ErrorType", "ErrorInfo",
    # Settings
    "ToolspineSettings", "get_settings", "clear_settings_cache",
    # Field builders
    "string_field", "number_field", "boolean_field", "enum_field", "array_field", "object_field",
    "date_field", "datetime_field", "time_field", "file_field", "json_field", "api_key_field",
    "secret_field", "config_string_field", "config_number_field", "url_config_field",
    "config_enum_field", "email_field", "url_field", "uuid_field",
    # Rules
    "when", "all_of", "any_of", "conditional", "dependency", "mutual_exclusion",
    # Schemas and validation
    "ToolSchema", "SchemaBuilder", "SchemaCompiler", "ValidationEngine", "ValidationOptions",
    "ValidationResult", "create_schema", "create_validator", "validate_field",
    "generate_tool_documentation",
    # Runtime
    "Tool", "ToolBuilder", "create_tool", "ToolMetadata", "ToolState", "ToolEvent",
    "ExecutionContext", "ExecutionResult", "ExecutionStatus",
    # Observability
    "configure_logging", "get_logger",
]
