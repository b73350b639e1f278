"""Schema definition and validation.

- fields/builders: Immutable field definitions and the fluent DSL producing them
- rules: Cross-field predicates evaluated after per-field validation
- compiler/nodes: Cached validator graphs, one node class per field kind
- engine: Validation entry points and performance metrics
- docs: OpenAPI fragments and example payloads
"""

from .builders import (
    api_key_field,
    array_field,
    boolean_field,
    config_enum_field,
    config_number_field,
    config_string_field,
    date_field,
    datetime_field,
    email_field,
    enum_field,
    file_field,
    json_field,
    number_field,
    object_field,
    secret_field,
    string_field,
    time_field,
    url_config_field,
    url_field,
    uuid_field,
)
from .compiler import CompiledSchema, SchemaCompiler
from .docs import (
    generate_example_request,
    generate_example_value,
    generate_openapi_schema,
    generate_tool_documentation,
)
from .engine import ValidationEngine, ValidationMetrics, ValidationOptions, ValidationResult
from .fields import (
    FieldDefinition,
    FieldKind,
    StringFormat,
    TimezonePolicy,
    Transform,
    parse_field,
    parse_fields,
)
from .nodes import FieldError, ValidationCode
from .rules import (
    CrossFieldRule,
    Operator,
    all_of,
    any_of,
    conditional,
    dependency,
    mutual_exclusion,
    when,
)
from .schema import SchemaBuilder, ToolSchema, create_schema, create_validator, validate_field

__all__ = [
    # Definitions
    "FieldDefinition", "FieldKind", "StringFormat", "TimezonePolicy", "Transform", "parse_field", "parse_fields",
    # Builders
    "string_field", "number_field", "boolean_field", "enum_field", "array_field", "object_field",
    "date_field", "datetime_field", "time_field", "file_field", "json_field", "api_key_field",
    "secret_field", "config_string_field", "config_number_field", "url_config_field", "config_enum_field",
    "email_field", "url_field", "uuid_field",
    # Rules
    "CrossFieldRule", "Operator", "when", "all_of", "any_of", "conditional", "dependency", "mutual_exclusion",
    # Compilation & validation
    "SchemaCompiler", "CompiledSchema", "ValidationEngine", "ValidationOptions", "ValidationResult",
    "ValidationMetrics", "FieldError", "ValidationCode",
    # Schemas
    "ToolSchema", "SchemaBuilder", "create_schema", "create_validator", "validate_field",
    # Documentation
    "generate_openapi_schema", "generate_example_value", "generate_example_request",
    "generate_tool_documentation",
]
