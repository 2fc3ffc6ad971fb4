"""Data models for operation definitions, calls, and results."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from flygate.errors import FlyGateError, InputValidationError, MalformedOutputError


class SideEffect(str, Enum):
    READ_ONLY = "read_only"
    MUTATING = "mutating"
    DESTRUCTIVE = "destructive"


_SCALARS: Dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
}


class ToolParam(BaseModel):
    """A single input or output field of a tool."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str = "string"  # string | integer | number | boolean | array | object
    description: str = ""
    required: bool = False
    items: Optional[str] = None  # element type for arrays
    values: Optional[str] = None  # value type for objects (string maps)
    enum: Optional[Tuple[str, ...]] = None
    minimum: Optional[int] = None
    maximum: Optional[int] = None
    nullable: bool = False

    def python_type(self) -> Any:
        if self.enum:
            return Literal[self.enum]  # type: ignore[valid-type]
        if self.type == "array":
            return List[_SCALARS.get(self.items or "", Any)]
        if self.type == "object":
            return Dict[str, _SCALARS.get(self.values or "", Any)]
        return _SCALARS[self.type]

    def field_definition(self) -> Tuple[Any, Any]:
        annotation = self.python_type()
        if self.nullable or not self.required:
            annotation = Optional[annotation]
        default = ... if self.required else None
        return annotation, Field(default, ge=self.minimum, le=self.maximum)

    def json_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type}
        if self.nullable:
            schema["type"] = [self.type, "null"]
        if self.description:
            schema["description"] = self.description
        if self.items:
            schema["items"] = {"type": self.items}
        if self.values:
            schema["additionalProperties"] = {"type": self.values}
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.minimum is not None:
            schema["minimum"] = self.minimum
        if self.maximum is not None:
            schema["maximum"] = self.maximum
        return schema


def _contract_model(name: str, params: List[ToolParam]) -> Type[BaseModel]:
    fields = {p.name: p.field_definition() for p in params}
    return create_model(  # type: ignore[call-overload]
        name,
        __config__=ConfigDict(extra="ignore"),
        **fields,
    )


def _object_schema(params: List[ToolParam]) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {p.name: p.json_schema() for p in params},
        "required": [p.name for p in params if p.required],
    }


class ToolDef(BaseModel):
    """One registered operation: description, input/output contracts, side effect."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    params: List[ToolParam] = Field(default_factory=list)
    outputs: List[ToolParam] = Field(default_factory=list)
    side_effect: SideEffect = SideEffect.READ_ONLY

    @property
    def read_only(self) -> bool:
        return self.side_effect is SideEffect.READ_ONLY

    @property
    def destructive(self) -> bool:
        return self.side_effect is SideEffect.DESTRUCTIVE

    def param(self, name: str) -> Optional[ToolParam]:
        return next((p for p in self.params if p.name == name), None)

    def output(self, name: str) -> Optional[ToolParam]:
        return next((p for p in self.outputs if p.name == name), None)

    # ── Contracts ─────────────────────────────────────────────────────────

    def validate_input(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Check caller input; unknown fields are dropped, missing required ones rejected."""
        model = _contract_model(f"{self.name}_input", self.params)
        try:
            parsed = model.model_validate(arguments)
        except ValidationError as exc:
            raise InputValidationError(
                f"Invalid input for {self.name}: " + "; ".join(_describe(exc)),
                {"errors": _describe(exc)},
            )
        return parsed.model_dump(exclude_none=True)

    def validate_output(self, payload: Dict[str, Any]) -> None:
        model = _contract_model(f"{self.name}_output", self.outputs)
        try:
            model.model_validate(payload)
        except ValidationError as exc:
            raise MalformedOutputError(
                f"{self.name} produced output outside its contract: " + "; ".join(_describe(exc)),
                {"errors": _describe(exc)},
            )

    # ── Rendering ─────────────────────────────────────────────────────────

    @property
    def annotations(self) -> Dict[str, bool]:
        return {"readOnlyHint": self.read_only, "destructiveHint": self.destructive}

    def input_schema(self) -> Dict[str, Any]:
        return _object_schema(self.params)

    def output_schema(self) -> Dict[str, Any]:
        return _object_schema(self.outputs)

    def mcp_definition(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(),
            "outputSchema": self.output_schema(),
            "annotations": self.annotations,
        }

    def prompt_line(self) -> str:
        """One-line representation: name, side effect and first description line."""
        first = self.description.split("\n")[0]
        return f"- {self.name} [{self.side_effect.value}]: {first}"

    def full_schema_text(self) -> str:
        lines = [f"Tool: {self.name} ({self.side_effect.value})", f"  {self.description}", "  Parameters:"]
        if not self.params:
            lines.append("    (none)")
        for p in self.params:
            req = " (required)" if p.required else ""
            lines.append(f"    - {p.name}: {p.type}{req} - {p.description}")
        lines.append("  Returns:")
        for p in self.outputs:
            lines.append(f"    - {p.name}: {p.type}")
        return "\n".join(lines)


def _describe(exc: ValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
        for err in exc.errors()
    ]


class ToolCall(BaseModel):
    """Record of a single tool invocation."""

    call_id: str = ""
    tool_name: str = ""
    arguments: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str = ""

    def model_post_init(self, __context: Any) -> None:
        if not self.call_id:
            raw = f"{self.tool_name}:{self.arguments}:{datetime.now(timezone.utc).isoformat()}"
            self.call_id = hashlib.sha256(raw.encode()).hexdigest()[:12]
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()


class ToolError(BaseModel):
    kind: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Outcome of one operation: either ``data`` (success) or ``error``, never both."""

    call_id: str = ""
    tool_name: str = ""
    success: bool = False
    data: Dict[str, Any] = Field(default_factory=dict)
    summary: str = ""
    error: Optional[ToolError] = None
    duration_ms: int = 0

    @classmethod
    def ok(cls, summary: str, data: Dict[str, Any]) -> "ToolResult":
        return cls(success=True, summary=summary, data=data)

    @classmethod
    def failure(cls, exc: FlyGateError) -> "ToolResult":
        return cls(
            success=False,
            summary=exc.message,
            error=ToolError(kind=exc.kind, message=exc.message, details=exc.details),
        )
