"""Assistant exception hierarchy.

All assistant-specific exceptions inherit from AssistantError.
"""


class AssistantError(Exception):
    """Base exception for all assistant errors."""


class ConfigurationError(AssistantError):
    """Raised when required environment configuration is missing or invalid."""

    def __init__(self, missing: list[str] | None = None, message: str | None = None) -> None:
        self.missing = missing or []
        if message is None:
            message = f"Missing required environment variables: {', '.join(self.missing)}"
        super().__init__(message)


class ModelCallError(AssistantError):
    """Raised when a model request fails or produces no usable output."""


class FeedError(AssistantError):
    """Raised when the paper feed cannot be fetched or parsed."""


class NotFoundError(AssistantError):
    """Raised when a record lookup by id fails."""

    def __init__(self, record_id: object, message: str | None = None) -> None:
        self.record_id = record_id
        super().__init__(message or f"Record not found: {record_id}")


class UnparsableRatingResponseError(AssistantError):
    """Raised when a rating reply is not a bare JSON array of ratings."""

    def __init__(self, response_text: str, reason: str) -> None:
        self.response_text = response_text
        self.reason = reason
        super().__init__(f"Could not parse rating response: {reason}")


class DispatchError(AssistantError):
    """Base exception for failures resolving a tool call."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        super().__init__(message)


class UnknownToolError(DispatchError):
    """Raised when the model requests a tool that is not in the catalogue."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(tool_name, f"Unknown tool: {tool_name}")


class MalformedArgumentsError(DispatchError):
    """Raised when tool arguments are not a JSON object of the declared types."""

    def __init__(self, tool_name: str, detail: str) -> None:
        self.detail = detail
        super().__init__(tool_name, f"Malformed arguments for {tool_name}: {detail}")


class MissingRequiredParameterError(DispatchError):
    """Raised when tool arguments omit one or more required parameters."""

    def __init__(self, tool_name: str, parameters: list[str]) -> None:
        self.parameters = parameters
        super().__init__(
            tool_name,
            f"Missing required parameter(s) for {tool_name}: {', '.join(parameters)}",
        )


class InvalidEnumValueError(DispatchError):
    """Raised when an enumerated parameter is outside its allowed values."""

    def __init__(self, tool_name: str, parameter: str, value: object, allowed: list[str]) -> None:
        self.parameter = parameter
        self.value = value
        self.allowed = allowed
        super().__init__(
            tool_name,
            f"Invalid value {value!r} for {tool_name}.{parameter}; expected one of: {', '.join(allowed)}",
        )
