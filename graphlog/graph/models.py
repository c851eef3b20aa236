"""Node schema declarations for the graph client.

A ``NodeModel`` describes which properties a node label carries and checks a
property mapping against it before anything is written.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from graphlog.graph.errors import PersistenceError

FieldType = Literal["string", "datetime"]

_PYTHON_TYPES: dict[str, type] = {
    "string": str,
    "datetime": datetime,
}


class SchemaValidationError(PersistenceError):
    """Exception raised when node properties do not match the declared model."""

    pass


@dataclass(slots=True, frozen=True)
class FieldSpec:
    """Declared type of one node property."""

    type: FieldType
    required: bool = False

    def __post_init__(self) -> None:
        if self.type not in _PYTHON_TYPES:
            raise ValueError(f"Unsupported field type: {self.type!r}")

    @classmethod
    def coerce(cls, spec: "FieldSpec | Mapping[str, Any] | str") -> "FieldSpec":
        """Build a FieldSpec from shorthand.

        ``"string"`` means an optional string; ``{"type": "datetime",
        "required": True}`` spells both out.
        """
        if isinstance(spec, FieldSpec):
            return spec
        if isinstance(spec, str):
            return cls(type=spec)  # type: ignore[arg-type]
        return cls(type=spec["type"], required=bool(spec.get("required", False)))


class NodeModel:
    """Schema for nodes stored under one label.

    Attributes:
        label: Neo4j node label.
        fields: Property name to FieldSpec.
    """

    def __init__(
        self,
        label: str,
        fields: Mapping[str, FieldSpec | Mapping[str, Any] | str],
    ) -> None:
        self.label = label
        self.fields: dict[str, FieldSpec] = {
            name: FieldSpec.coerce(spec) for name, spec in fields.items()
        }

    def validate(self, properties: Mapping[str, Any]) -> dict[str, Any]:
        """Check ``properties`` against the model.

        Required properties must be present and not None. Present values must
        match the declared type; datetimes must be timezone-aware. Properties
        the model does not declare are rejected.

        Returns:
            dict[str, Any]: The properties with None-valued optionals dropped.

        Raises:
            SchemaValidationError: If any property violates the model.
        """
        problems: list[str] = []

        unknown = sorted(set(properties) - set(self.fields))
        if unknown:
            problems.append(f"undeclared properties: {', '.join(unknown)}")

        cleaned: dict[str, Any] = {}
        for name, spec in self.fields.items():
            value = properties.get(name)
            if value is None:
                if spec.required:
                    problems.append(f"'{name}' is required")
                continue

            expected = _PYTHON_TYPES[spec.type]
            if not isinstance(value, expected):
                problems.append(
                    f"'{name}' must be {spec.type}, got {type(value).__name__}"
                )
                continue
            if spec.type == "datetime" and value.tzinfo is None:
                problems.append(f"'{name}' must be timezone-aware")
                continue

            cleaned[name] = value

        if problems:
            raise SchemaValidationError(
                f"Invalid {self.label} node: {'; '.join(problems)}"
            )

        return cleaned

    def __repr__(self) -> str:
        return f"NodeModel(label={self.label!r}, fields={list(self.fields)!r})"


def log_node_model(label: str = "Log") -> NodeModel:
    """Return the schema persisted log nodes follow."""
    return NodeModel(
        label,
        {
            "timestamp": {"type": "datetime", "required": True},
            "level": {"type": "string", "required": True},
            "message": {"type": "string", "required": True},
            "metadata": "string",
        },
    )


__all__ = ["FieldSpec", "FieldType", "NodeModel", "SchemaValidationError", "log_node_model"]
