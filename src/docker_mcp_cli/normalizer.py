"""Parameter normalization.

One pure mapping per operation, fed by two input adapters:

  - the token adapter reads a flat CLI argument list (``-fv``, ``--tail=5``,
    ``-t 0 web``, passthrough command text)
  - the object adapter reads structured protocol arguments with any key
    spelling (``imageName`` / ``image_name`` / ``image-name``)

Both adapters only *collect* raw values keyed by canonical field name; every
coercion, enum check, default and required-field check happens once in
:func:`_coerce_all` / :func:`_finalize`, so the two call shapes cannot drift.
"""

from __future__ import annotations

import logging
import shlex

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from docker_mcp_cli.errors import NormalizationError
from docker_mcp_cli.registry import (
    BOOLEAN,
    COMMAND,
    INTEGER,
    LIST,
    MAP,
    FieldSpec,
    OperationSpec,
    normalize_identifier,
)

logger = logging.getLogger(__name__)

CanonicalParameters = dict[str, Any]

RawArgs = Mapping[str, Any] | Sequence[str] | None

_TRUTHY = frozenset({"true", "1", "yes", "on", "enabled"})

# Structured keys consumed by the execution layer rather than the operation.
_TIMEOUT_KEY = "timeout"
_LONG_RUNNING_KEY = "longrunning"
# Nested object whose keys are flattened into the top level (docker-run).
_OPTIONS_KEY = "options"


@dataclass(frozen=True)
class ExecutionOptions:
    """Per-call execution overrides taken from structured arguments."""

    timeout: float | None = None
    long_running: bool = False


def _coerce_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        return v.strip().lower() in _TRUTHY
    if isinstance(v, (int, float)):
        return bool(v)
    return bool(v)


def _is_empty(value: Any) -> bool:
    return value is None or value is False or (isinstance(value, (str, list, tuple, dict)) and len(value) == 0)


# ---------------------------------------------------------------------------
# Execution options
# ---------------------------------------------------------------------------


def split_execution_options(operation: str, raw_args: RawArgs) -> tuple[RawArgs, ExecutionOptions]:
    """Pop the reserved ``timeout`` / ``longRunning`` keys from structured arguments.

    Token lists are returned unchanged with default options.
    """
    if not isinstance(raw_args, Mapping):
        return raw_args, ExecutionOptions()

    remaining: dict[str, Any] = {}
    timeout: float | None = None
    long_running = False
    for key, value in raw_args.items():
        norm = normalize_identifier(str(key))
        if norm == _TIMEOUT_KEY:
            if value is None:
                continue
            try:
                timeout = float(value)
            except (TypeError, ValueError):
                raise NormalizationError.invalid(operation, "timeout", f"Parameter 'timeout' must be a number of seconds, got {value!r}") from None
            if timeout <= 0:
                raise NormalizationError.invalid(operation, "timeout", f"Parameter 'timeout' must be positive, got {value!r}")
        elif norm == _LONG_RUNNING_KEY:
            long_running = _coerce_bool(value)
        else:
            remaining[key] = value
    return remaining, ExecutionOptions(timeout=timeout, long_running=long_running)


# ---------------------------------------------------------------------------
# Token adapter
# ---------------------------------------------------------------------------


def _flag_index(op: OperationSpec) -> dict[str, FieldSpec]:
    index: dict[str, FieldSpec] = {}
    for spec in op.fields:
        for flag in spec.flags:
            index[flag] = spec
    return index


def _collect(raw: dict[str, Any], spec: FieldSpec, value: Any) -> None:
    if spec.repeatable:
        raw.setdefault(spec.name, []).append(value)
    else:
        raw[spec.name] = value


class _TokenReader:
    """Walks a CLI token list and collects raw values per canonical field."""

    def __init__(self, op: OperationSpec, tokens: Sequence[str]) -> None:
        self.op = op
        self.tokens = [str(t) for t in tokens]
        self.flags = _flag_index(op)
        self.positionals = list(op.positional_fields)
        self.raw: dict[str, Any] = {}
        self.pos = 0
        self.passthrough: list[str] | None = None

    @property
    def _starts_passthrough_on_unknown(self) -> bool:
        return self.op.passthrough is not None and self.op.passthrough_after is None

    def _next_value(self, flag: str) -> str:
        if self.pos >= len(self.tokens):
            raise NormalizationError.invalid(self.op.name, self.flags[flag].name, f"Option '{flag}' requires a value")
        value = self.tokens[self.pos]
        self.pos += 1
        return value

    def _unknown(self, token: str) -> None:
        if self._starts_passthrough_on_unknown:
            self.passthrough = [token]
            return
        raise NormalizationError.invalid(self.op.name, None, f"Unknown option '{token}' for operation '{self.op.name}'")

    def _long_option(self, token: str) -> None:
        flag, eq, value = token.partition("=")
        spec = self.flags.get(flag)
        if spec is None:
            self._unknown(token)
            return
        if spec.takes_value:
            _collect(self.raw, spec, value if eq else self._next_value(flag))
        else:
            self.raw[spec.name] = _coerce_bool(value) if eq else True

    def _short_option(self, token: str) -> None:
        spec = self.flags.get(token)
        if spec is not None:
            if spec.takes_value:
                _collect(self.raw, spec, self._next_value(token))
            else:
                self.raw[spec.name] = True
            return

        # Cluster such as -fv or -it; a value-taking letter consumes the rest
        # of the cluster, or the next token when it is last.
        letters = token[1:]
        if any(f"-{ch}" not in self.flags for ch in letters) and self._starts_passthrough_on_unknown:
            self.passthrough = [token]
            return
        for idx, ch in enumerate(letters):
            flag = f"-{ch}"
            spec = self.flags.get(flag)
            if spec is None:
                raise NormalizationError.invalid(self.op.name, None, f"Unknown option '{flag}' in '{token}' for operation '{self.op.name}'")
            if not spec.takes_value:
                self.raw[spec.name] = True
                continue
            rest = letters[idx + 1 :]
            _collect(self.raw, spec, rest if rest else self._next_value(flag))
            break

    def _positional(self, token: str) -> None:
        if self.positionals:
            spec = self.positionals[0]
            _collect(self.raw, spec, token)
            # A list positional absorbs every remaining positional token.
            if spec.kind != LIST:
                self.positionals.pop(0)
            if self.op.passthrough and self.op.passthrough_after == spec.name:
                self.passthrough = []
            return
        if self.op.passthrough:
            self.passthrough = [token]
            return
        raise NormalizationError.invalid(self.op.name, None, f"Unexpected argument '{token}' for operation '{self.op.name}'")

    def read(self) -> dict[str, Any]:
        options_done = False
        while self.pos < len(self.tokens):
            token = self.tokens[self.pos]
            self.pos += 1
            if self.passthrough is not None:
                self.passthrough.append(token)
            elif options_done or token == "-" or not token.startswith("-"):
                self._positional(token)
            elif token == "--":
                options_done = True
                if self.op.passthrough and self.op.passthrough_after is None:
                    self.passthrough = []
            elif token.startswith("--"):
                self._long_option(token)
            else:
                self._short_option(token)

        if self.passthrough and self.op.passthrough:
            self.raw.setdefault(self.op.passthrough, []).extend(self.passthrough)
        return self.raw


def _from_tokens(op: OperationSpec, tokens: Sequence[str]) -> dict[str, Any]:
    return _TokenReader(op, tokens).read()


# ---------------------------------------------------------------------------
# Object adapter
# ---------------------------------------------------------------------------


def _key_index(op: OperationSpec) -> dict[str, FieldSpec]:
    index: dict[str, FieldSpec] = {}
    for spec in op.fields:
        for key in (spec.name, *spec.synonyms):
            index.setdefault(normalize_identifier(key), spec)
    return index


def _from_mapping(op: OperationSpec, args: Mapping[str, Any]) -> dict[str, Any]:
    index = _key_index(op)
    items: list[tuple[str, Any]] = []
    for key, value in args.items():
        if normalize_identifier(str(key)) == _OPTIONS_KEY and isinstance(value, Mapping) and _OPTIONS_KEY not in index:
            items.extend((str(k), v) for k, v in value.items())
        else:
            items.append((str(key), value))

    raw: dict[str, Any] = {}
    for key, value in items:
        spec = index.get(normalize_identifier(key))
        if spec is None:
            logger.warning(f"Ignoring unknown parameter '{key}' for operation '{op.name}'")
            continue
        raw[spec.name] = value
    return raw


# ---------------------------------------------------------------------------
# Shared canonical mapping
# ---------------------------------------------------------------------------


def _coerce_string(op: OperationSpec, spec: FieldSpec, value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise NormalizationError.invalid(op.name, spec.name, f"Parameter '{spec.name}' must be a string, got {type(value).__name__}")
    return str(value).strip()


def _coerce_integer(op: OperationSpec, spec: FieldSpec, value: Any) -> int:
    if isinstance(value, bool):
        raise NormalizationError.invalid(op.name, spec.name, f"Parameter '{spec.name}' must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        raise NormalizationError.invalid(op.name, spec.name, f"Parameter '{spec.name}' must be an integer, got {value!r}") from None


def _coerce_list(op: OperationSpec, spec: FieldSpec, value: Any) -> list[str]:
    items = list(value) if isinstance(value, (list, tuple)) else [value]
    strings = [_coerce_string(op, spec, item) for item in items]
    if spec.comma_separated:
        strings = [part.strip() for s in strings for part in s.split(",")]
    return [s for s in strings if s]


def _coerce_map(op: OperationSpec, spec: FieldSpec, value: Any) -> dict[str, str]:
    if isinstance(value, Mapping):
        pairs = [(str(k), v) for k, v in value.items()]
    else:
        pairs = []
        entries = value if isinstance(value, (list, tuple)) else [value]
        for entry in entries:
            entry = _coerce_string(op, spec, entry)
            if not entry:
                continue
            key, eq, val = entry.partition("=")
            if not eq or not key:
                raise NormalizationError.invalid(op.name, spec.name, f"Invalid {spec.name} entry '{entry}': expected KEY=VALUE")
            pairs.append((key, val))

    result: dict[str, str] = {}
    for key, val in pairs:
        if isinstance(val, bool):
            val = "true" if val else "false"
        result[key.strip()] = "" if val is None else str(val)
    return result


def _coerce_command(op: OperationSpec, spec: FieldSpec, value: Any) -> list[str]:
    if isinstance(value, str):
        try:
            return shlex.split(value)
        except ValueError as e:
            raise NormalizationError.invalid(op.name, spec.name, f"Cannot parse {spec.name} {value!r}: {e}") from None
    if isinstance(value, (list, tuple)):
        return [_coerce_string(op, spec, item) if not isinstance(item, str) else item for item in value]
    raise NormalizationError.invalid(op.name, spec.name, f"Parameter '{spec.name}' must be a string or list of strings")


def _coerce(op: OperationSpec, spec: FieldSpec, value: Any) -> Any:
    if value is None:
        return None
    if spec.kind == BOOLEAN:
        return _coerce_bool(value)
    if spec.kind == INTEGER:
        return _coerce_integer(op, spec, value)
    if spec.kind == LIST:
        return _coerce_list(op, spec, value)
    if spec.kind == MAP:
        return _coerce_map(op, spec, value)
    if spec.kind == COMMAND:
        return _coerce_command(op, spec, value)
    # A structured list for a scalar field keeps the last value.
    if isinstance(value, list) and value:
        value = value[-1]
    return _coerce_string(op, spec, value)


def _coerce_all(op: OperationSpec, raw: Mapping[str, Any]) -> CanonicalParameters:
    params: CanonicalParameters = {}
    for spec in op.fields:
        if spec.name not in raw:
            continue
        value = _coerce(op, spec, raw[spec.name])
        if _is_empty(value):
            continue
        if spec.choices is not None and value not in spec.choices:
            allowed = ", ".join(spec.choices)
            raise NormalizationError.invalid(op.name, spec.name, f"Invalid value '{value}' for '{spec.name}'. Must be one of: {allowed}")
        params[spec.name] = value
    return params


def _check_login(op: OperationSpec, params: CanonicalParameters) -> None:
    if "username" in params and "password" not in params and "token" not in params:
        raise NormalizationError.missing(op.name, "password", "Parameter 'password' or 'token' is required when 'username' is given")


_CROSS_FIELD_CHECKS = {"docker-login": _check_login}


def _finalize(op: OperationSpec, params: CanonicalParameters) -> CanonicalParameters:
    for spec in op.fields:
        if spec.name not in params and spec.default is not None:
            params[spec.name] = spec.default

    for spec in op.fields:
        if spec.name in params:
            continue
        if spec.required:
            raise NormalizationError.missing(op.name, spec.name)
        if spec.required_when is not None:
            selector, values = spec.required_when
            if params.get(selector) in values:
                raise NormalizationError.missing(
                    op.name,
                    spec.name,
                    f"Required parameter '{spec.name}' is missing for operation '{op.name}' when {selector} is '{params[selector]}'",
                )

    check = _CROSS_FIELD_CHECKS.get(op.name)
    if check is not None:
        check(op, params)

    # Declared field order keeps the mapping deterministic for both adapters.
    return {spec.name: params[spec.name] for spec in op.fields if spec.name in params}


def _adapt(op: OperationSpec, raw_args: RawArgs) -> dict[str, Any]:
    if raw_args is None:
        return {}
    if isinstance(raw_args, Mapping):
        return _from_mapping(op, raw_args)
    if isinstance(raw_args, str):
        raise TypeError("raw_args must be a token list or a mapping, not a single string")
    return _from_tokens(op, raw_args)


def normalize(
    op: OperationSpec,
    raw_args: RawArgs,
    fixed: Mapping[str, Any] | None = None,
) -> CanonicalParameters:
    """Map raw caller arguments onto the canonical parameters of *op*.

    ``fixed`` holds alias pre-bound values: caller values override them,
    except passthrough commands, which are concatenated (fixed first).

    Raises:
    ------
        NormalizationError: MissingRequiredField or InvalidEnum.
    """
    params = _coerce_all(op, _from_mapping(op, fixed)) if fixed else {}
    for name, value in _coerce_all(op, _adapt(op, raw_args)).items():
        if name == op.passthrough and name in params:
            params[name] = [*params[name], *value]
        else:
            params[name] = value
    return _finalize(op, params)
