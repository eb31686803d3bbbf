# Runtime API
RUNTIME_API_VERSION = "2018-06-01"
"""Version segment of every control-plane URL."""

NEXT_INVOCATION_PATH = "/runtime/invocation/next"
INVOCATION_RESPONSE_PATH = "/runtime/invocation/{request_id}/response"
INVOCATION_ERROR_PATH = "/runtime/invocation/{request_id}/error"
INIT_ERROR_PATH = "/runtime/init/error"

# Control-plane headers
REQUEST_ID_HEADER = "Lambda-Runtime-Aws-Request-Id"
DEADLINE_HEADER = "Lambda-Runtime-Deadline-Ms"
FUNCTION_ARN_HEADER = "Lambda-Runtime-Invoked-Function-Arn"
TRACE_ID_HEADER = "Lambda-Runtime-Trace-Id"
ERROR_TYPE_HEADER = "Lambda-Runtime-Function-Error-Type"

HEADER_VALUE_SEPARATOR = ","
"""Separator used when a header with several values is read as one."""

# Error types reported to the control plane
INIT_ERROR_TYPE = "InitError"
RUNTIME_ERROR_TYPE = "RuntimeError"

# Environment variables
RUNTIME_API_ENV = "AWS_LAMBDA_RUNTIME_API"
TASK_ROOT_ENV = "LAMBDA_TASK_ROOT"
HANDLER_ENV = "_HANDLER"
LOG_LEVEL_ENV = "LOG_LEVEL"

# Handler discovery
HANDLER_DELIMITER = "::"
"""Separates the entry point from the method name in a handler reference."""

DEPENDENCY_DIR_NAME = "lib"
"""Directory under the task root whose archives join the search path."""

ARCHIVE_SUFFIXES = (".zip", ".whl", ".egg")
"""Archive files importable through zipimport."""

# Fetch backoff
FETCH_BACKOFF_INITIAL = 0.1
"""Seconds to wait after the first failed fetch."""

FETCH_BACKOFF_MAX = 5.0
"""Upper bound for the wait between failed fetches."""
