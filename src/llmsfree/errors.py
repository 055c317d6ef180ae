"""Error taxonomy for llmsfree.

HTTP and transport failures are not wrapped: they surface as the
``httpx`` exceptions raised by the client.
"""


class LLMsFreeError(Exception):
    """Base for llmsfree errors."""


class StreamDecodeError(LLMsFreeError):
    """A streamed event or response body could not be decoded."""


class UnknownToolError(LLMsFreeError):
    """The model (or the caller's options) named a tool with no handler."""

    def __init__(self, name: str | None) -> None:
        super().__init__(f"No tool handler found for function name: {name}")
        self.name = name


class ToolExecutionError(LLMsFreeError):
    """A tool handler raised while executing a tool call."""

    def __init__(self, name: str, cause: BaseException) -> None:
        super().__init__(f"Tool '{name}' failed: {type(cause).__name__}: {cause}")
        self.name = name


class ToolLoopLimitError(LLMsFreeError):
    """The model kept requesting tools past the configured round limit."""

    def __init__(self, max_rounds: int) -> None:
        super().__init__(
            f"Tool-call loop exceeded {max_rounds} rounds without a final answer"
        )
        self.max_rounds = max_rounds
