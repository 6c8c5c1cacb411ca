"""
Input validation utilities for tool arguments.
"""

from typing import Any, Callable, List, Optional, Type, Union
from dataclasses import dataclass
from pathlib import Path

from .errors import ValidationError


@dataclass
class ValidationRule:
    """Represents a validation rule."""
    name: str
    validator: Callable[[Any], bool]
    message: str
    code: str


class Validator:
    """Chainable field validator."""

    def __init__(self, field_name: str):
        self.field_name = field_name
        self.rules: List[ValidationRule] = []

    def add_rule(self, rule: ValidationRule) -> 'Validator':
        """Add a validation rule."""
        self.rules.append(rule)
        return self

    def required(self, message: Optional[str] = None) -> 'Validator':
        """Require field to be present and not None."""
        return self.add_rule(ValidationRule(
            name="required",
            validator=lambda x: x is not None,
            message=message or f"{self.field_name} is required",
            code="REQUIRED"
        ))

    def not_empty(self, message: Optional[str] = None) -> 'Validator':
        """Require field to not be empty or whitespace."""
        def is_not_empty(value: Any) -> bool:
            if value is None:
                return False
            if isinstance(value, str):
                return len(value.strip()) > 0
            if isinstance(value, (list, dict)):
                return len(value) > 0
            return True

        return self.add_rule(ValidationRule(
            name="not_empty",
            validator=is_not_empty,
            message=message or f"{self.field_name} cannot be empty",
            code="NOT_EMPTY"
        ))

    def type_check(self, expected_type: Type, message: Optional[str] = None) -> 'Validator':
        """Require field to be of specific type (bool is not accepted as int)."""
        def is_type(value: Any) -> bool:
            if value is None:
                return True
            if isinstance(value, bool) and expected_type is not bool:
                return False
            return isinstance(value, expected_type)

        return self.add_rule(ValidationRule(
            name="type_check",
            validator=is_type,
            message=message or f"{self.field_name} must be of type {expected_type.__name__}",
            code="TYPE_CHECK"
        ))

    def range_check(self, min_val: Optional[Union[int, float]] = None,
                    max_val: Optional[Union[int, float]] = None,
                    message: Optional[str] = None) -> 'Validator':
        """Require field to be within numeric range."""
        def in_range(value: Any) -> bool:
            if value is None:
                return True
            try:
                num_val = float(value)
            except (ValueError, TypeError):
                return False
            if min_val is not None and num_val < min_val:
                return False
            if max_val is not None and num_val > max_val:
                return False
            return True

        range_desc = []
        if min_val is not None:
            range_desc.append(f">= {min_val}")
        if max_val is not None:
            range_desc.append(f"<= {max_val}")

        return self.add_rule(ValidationRule(
            name="range_check",
            validator=in_range,
            message=message or f"{self.field_name} must be {' and '.join(range_desc)}",
            code="RANGE_CHECK"
        ))

    def custom(self, validator_fn: Callable[[Any], bool],
               message: str, code: str = "CUSTOM") -> 'Validator':
        """Add custom validation rule."""
        return self.add_rule(ValidationRule(
            name="custom",
            validator=validator_fn,
            message=message,
            code=code
        ))

    def validate(self, value: Any) -> Any:
        """Validate value against all rules and return it."""
        for rule in self.rules:
            if not rule.validator(value):
                raise ValidationError(
                    field=self.field_name,
                    value=value,
                    constraint=rule.message
                )
        return value


def pid_validator(field_name: str = "pid") -> Validator:
    """Process ID validator."""
    return (Validator(field_name)
            .required(f"Valid {field_name} is required")
            .type_check(int)
            .range_check(min_val=1))


def port_validator(field_name: str = "port") -> Validator:
    """TCP port validator."""
    return (Validator(field_name)
            .required(f"Valid {field_name} number is required")
            .type_check(int)
            .range_check(min_val=1, max_val=65535))


def command_validator(field_name: str = "command") -> Validator:
    """Executable command validator."""
    return (Validator(field_name)
            .required(f"{field_name} is required")
            .type_check(str)
            .not_empty())


def args_validator(field_name: str = "args") -> Validator:
    """Command argument list validator."""
    return (Validator(field_name)
            .type_check(list)
            .custom(
                lambda x: x is None or all(isinstance(a, str) for a in x),
                f"{field_name} must be a list of strings",
                "ARGS_TYPE"
            ))


def directory_validator(field_name: str = "cwd") -> Validator:
    """Optional working directory validator (existence is checked at spawn time)."""
    return (Validator(field_name)
            .type_check(str)
            .custom(
                lambda x: x is None or len(x.strip()) > 0,
                f"{field_name} cannot be empty",
                "NOT_EMPTY"
            ))


def validate_pid(pid: Any) -> int:
    """Validate a process ID."""
    return pid_validator().validate(pid)


def validate_port(port: Any) -> int:
    """Validate a TCP port."""
    return port_validator().validate(port)


def validate_command(command: Any) -> str:
    """Validate a command to execute."""
    return command_validator().validate(command).strip()


def validate_args(args: Any) -> List[str]:
    """Validate command arguments."""
    return list(args_validator().validate(args) or [])


def validate_cwd(cwd: Any) -> Optional[Path]:
    """Validate an optional working directory."""
    directory_validator().validate(cwd)
    return Path(cwd).expanduser() if cwd else None


__all__ = [
    'Validator',
    'ValidationRule',
    'pid_validator',
    'port_validator',
    'command_validator',
    'args_validator',
    'directory_validator',
    'validate_pid',
    'validate_port',
    'validate_command',
    'validate_args',
    'validate_cwd',
]
