"""
Parser configuration for VibeScript.

Classes:
    - ParserConfig: Tunables for one parse (nesting limit, error strategy).
    - ConfigError: Raised when a configuration source is invalid.

Configuration can be built in code, from a plain dict, or from a JSON file:

    >>> ParserConfig(max_depth=64, fail_fast=True)
    >>> ParserConfig.from_dict({"max_depth": 64})
    >>> ParserConfig.load_from_json("vibe.json")

Unknown keys and values of the wrong type are rejected rather than ignored.
"""

import json
from typing import Any

DEFAULT_MAX_DEPTH = 100


class ConfigError(Exception):
    """Invalid parser configuration.

    Attributes:
        problems (list[str]): One description per offending key.
    """

    def __init__(self, message: str, problems: list[str] | None = None):
        super().__init__(message)
        self.problems = problems or []


class ParserConfig:
    """Options that control a single parse.

    Attributes:
        max_depth (int): Maximum nesting of expressions and bodies before a
            ResourceLimitError is reported.
        fail_fast (bool): Raise the first error instead of recovering and
            collecting diagnostics.
        keep_error_nodes (bool): Insert `error` nodes for regions skipped
            during recovery.
    """

    _FIELDS: dict[str, type] = {
        "max_depth": int,
        "fail_fast": bool,
        "keep_error_nodes": bool,
    }

    def __init__(
        self,
        max_depth: int = DEFAULT_MAX_DEPTH,
        fail_fast: bool = False,
        keep_error_nodes: bool = True,
    ) -> None:
        if max_depth < 1:
            raise ConfigError(f"max_depth must be positive, got {max_depth}")
        self.max_depth = max_depth
        self.fail_fast = fail_fast
        self.keep_error_nodes = keep_error_nodes

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ParserConfig":
        """Build a config from a mapping of option names to values.

        Raises:
            ConfigError: If the mapping has unknown keys or mistyped values.
        """
        if not isinstance(raw, dict):
            raise ConfigError("Configuration must be a JSON object")
        problems: list[str] = []
        for key, value in raw.items():
            expected = cls._FIELDS.get(key)
            if expected is None:
                problems.append(f"{key!r}: unknown option")
            # bool is an int subclass; keep the two apart
            elif not isinstance(value, expected) or (
                expected is int and isinstance(value, bool)
            ):
                problems.append(f"{key!r}: expected {expected.__name__}, got {type(value).__name__}")
        if problems:
            raise ConfigError("Invalid parser configuration", problems)
        return cls(**raw)

    @classmethod
    def load_from_json(cls, path: str) -> "ParserConfig":
        """Load a config from a JSON file holding one object.

        Raises:
            ConfigError: If the file cannot be read or its contents are invalid.
        """
        try:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Failed to load config file: {e}") from e
        return cls.from_dict(raw)

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self._FIELDS}

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self.to_dict().items())
        return f"ParserConfig({args})"

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, ParserConfig) and self.to_dict() == other.to_dict()


__all__ = ["ConfigError", "DEFAULT_MAX_DEPTH", "ParserConfig"]
