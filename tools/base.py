"""
Tool base class and common types.

A tool wraps one comping operation behind named, validated parameters so a
router or CLI can call it without knowing the core's Python types. Tools
never raise: every failure comes back as ToolResult(success=False).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolParameter:
    """
    Tool parameter specification.

    Attributes:
        name: Parameter name
        type: Python type (str, int, float, list, ...)
        description: Human-readable description
        required: Whether parameter is required
        default: Default value if not required
        choices: Allowed values (compared case-insensitively for strings)
        minimum: Inclusive lower bound for numbers
        maximum: Inclusive upper bound for numbers
    """

    name: str
    type: type
    description: str
    required: bool = True
    default: Any = None
    choices: tuple[Any, ...] | None = None
    minimum: float | None = None
    maximum: float | None = None

    def validate(self, value: Any) -> tuple[bool, str | None]:
        """
        Validate parameter value.

        Ints are accepted where floats are expected; bools are never
        accepted as numbers.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if value is None:
            if self.required:
                return False, f"Required parameter '{self.name}' is missing"
            return True, None

        numeric = self.type in (int, float)
        if numeric and isinstance(value, bool):
            return False, f"Parameter '{self.name}' must be {self.type.__name__}, got bool"
        accepted = (int, float) if self.type is float else self.type
        if not isinstance(value, accepted):
            return (
                False,
                f"Parameter '{self.name}' must be {self.type.__name__}, got {type(value).__name__}",
            )

        if self.choices is not None:
            normalized = value.strip().lower() if isinstance(value, str) else value
            allowed = [c.lower() if isinstance(c, str) else c for c in self.choices]
            if normalized not in allowed:
                return False, f"Parameter '{self.name}' must be one of {list(self.choices)}, got {value!r}"

        if numeric:
            if self.minimum is not None and value < self.minimum:
                return False, f"Parameter '{self.name}' must be >= {self.minimum}, got {value}"
            if self.maximum is not None and value > self.maximum:
                return False, f"Parameter '{self.name}' must be <= {self.maximum}, got {value}"

        return True, None


@dataclass(frozen=True)
class ToolResult:
    """
    Result from tool execution.

    Attributes:
        success: Whether execution succeeded
        data: Result data (dict, list, str, etc.)
        error: Error message if success=False
        metadata: Optional metadata (file paths, timings, counts)
    """

    success: bool
    data: Any = None
    error: str | None = None
    metadata: dict[str, Any] | None = None


class MusicalTool(ABC):
    """
    Abstract base class for comping tools.

    Subclasses must implement:
        - name: Unique tool identifier
        - description: What the tool does and when to use it
        - parameters: List of ToolParameter specs
        - execute(): Core tool logic

    Example:
        class VoiceChord(MusicalTool):
            @property
            def name(self) -> str:
                return "voice_chord"

            def execute(self, **kwargs) -> ToolResult:
                return ToolResult(success=True, data={"notes": [...]})
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool identifier (lowercase, underscores)."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description used for tool selection."""

    @property
    @abstractmethod
    def parameters(self) -> list[ToolParameter]:
        """Parameters this tool accepts, required ones first."""

    def validate_inputs(self, **kwargs) -> tuple[bool, str | None]:
        """
        Validate all input parameters, stopping at the first failure.

        Returns:
            Tuple of (is_valid, error_message)
        """
        for param in self.parameters:
            is_valid, error = param.validate(kwargs.get(param.name))
            if not is_valid:
                return False, error
        return True, None

    @abstractmethod
    def execute(self, **kwargs) -> ToolResult:
        """
        Execute tool with validated parameters.

        Returns:
            ToolResult with success status and data
        """

    def __call__(self, **kwargs) -> ToolResult:
        """
        Validate inputs, then execute.

        Invalid input and any exception raised by execute() are both
        reported as a failed ToolResult.
        """
        is_valid, error = self.validate_inputs(**kwargs)
        if not is_valid:
            return ToolResult(success=False, error=error)

        try:
            return self.execute(**kwargs)
        except Exception as e:
            logger.exception("Tool %s failed", self.name)
            return ToolResult(success=False, error=f"Tool execution failed: {e}")

    def to_dict(self) -> dict[str, Any]:
        """Serialize the tool's name, description and parameter specs."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": [
                {
                    "name": p.name,
                    "type": p.type.__name__,
                    "description": p.description,
                    "required": p.required,
                    "default": p.default,
                    **({"choices": list(p.choices)} if p.choices is not None else {}),
                }
                for p in self.parameters
            ],
        }
