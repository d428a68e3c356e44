"""Configuration registry: parse JSON or YAML into per-module config objects."""

from __future__ import annotations

import dataclasses
import inspect
import json
import types
from typing import Any, Callable, Mapping, Optional, Union, get_args, get_origin

import yaml

from trojanfork.common import TrojanError

_SUFFIX = "_CONFIG"

Creator = Callable[[], Any]

_creators: dict[str, Creator] = {}

_NONE_TYPE = type(None)

_BUILTIN_NAMES: dict[str, Any] = {
    "str": str,
    "int": int,
    "bool": bool,
    "float": float,
    "bytes": bytes,
    "list": list,
    "List": list,
    "dict": dict,
    "Dict": dict,
    "Any": Any,
    "object": Any,
    "None": _NONE_TYPE,
}


class Context:
    """Immutable set of key/value bindings; binding returns a new context."""

    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping[Any, Any]] = None) -> None:
        self._values: dict[Any, Any] = dict(values or {})

    def value(self, key: Any) -> Any:
        """Return the value bound to ``key``, or None."""
        return self._values.get(key)

    def with_value(self, key: Any, value: Any) -> "Context":
        """Return a new context that also binds ``key`` to ``value``."""
        return Context({**self._values, key: value})


def register_config_creator(name: str, creator: Creator) -> None:
    """Register a factory for the default config object of module ``name``."""
    _creators[name + _SUFFIX] = creator


def _split_top(text: str, sep: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        if ch == sep and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    parts.append("".join(current).strip())
    return parts


def _module_classes(owner: type) -> dict[str, type]:
    module = inspect.getmodule(owner)
    if module is None:
        return {}
    return dict(inspect.getmembers(module, inspect.isclass))


def _pick_optional(options: list[Any]) -> Any:
    remaining = [opt for opt in options if opt is not _NONE_TYPE]
    return remaining[0] if len(remaining) == 1 else Any


def _parse_annotation(text: str, owner: type) -> Any:
    text = text.strip().strip("'\"")
    union_parts = _split_top(text, "|")
    if len(union_parts) > 1:
        return _pick_optional([_parse_annotation(p, owner) for p in union_parts])
    if text.endswith("]") and "[" in text:
        head, inner = text[:-1].split("[", 1)
        head = head.strip().rsplit(".", 1)[-1]
        args = [_parse_annotation(a, owner) for a in _split_top(inner, ",")]
        if head in ("list", "List", "Sequence"):
            return list[args[0]]
        if head in ("dict", "Dict", "Mapping"):
            return dict[args[0], args[1]] if len(args) == 2 else dict
        if head in ("Optional", "Union"):
            return _pick_optional(args)
        return Any
    name = text.rsplit(".", 1)[-1]
    if name in _BUILTIN_NAMES:
        return _BUILTIN_NAMES[name]
    return _module_classes(owner).get(name, Any)


def _resolve(annotation: Any, owner: type) -> Any:
    if isinstance(annotation, str):
        return _parse_annotation(annotation, owner)
    return annotation


def _lookup(data: Mapping[Any, Any], key: str, fmt: str) -> tuple[bool, Any]:
    if key in data:
        return True, data[key]
    if fmt == "json":
        lowered = key.lower()
        for candidate, value in data.items():
            if isinstance(candidate, str) and candidate.lower() == lowered:
                return True, value
    return False, None


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _mismatch(value: Any, expected: str) -> TrojanError:
    return TrojanError(f"cannot decode {type(value).__name__} value {value!r} as {expected}")


def _convert(value: Any, tp: Any, fmt: str, current: Any) -> Any:
    if value is None:
        return current
    if tp is Any:
        return value
    origin = get_origin(tp)
    if origin is Union or origin is types.UnionType:
        options = [arg for arg in get_args(tp) if arg is not _NONE_TYPE]
        if len(options) == 1:
            return _convert(value, options[0], fmt, current)
        return value
    if isinstance(tp, type) and dataclasses.is_dataclass(tp):
        target = current if isinstance(current, tp) else tp()
        _fill(target, value, fmt)
        return target
    if tp is list or origin is list:
        if not isinstance(value, list):
            raise _mismatch(value, "list")
        args = get_args(tp)
        element = args[0] if args else Any
        return [_convert(item, element, fmt, None) for item in value]
    if tp is dict or origin is dict:
        if not isinstance(value, dict):
            raise _mismatch(value, "mapping")
        args = get_args(tp)
        item_type = args[1] if len(args) == 2 else Any
        return {key: _convert(item, item_type, fmt, None) for key, item in value.items()}
    if tp is bool:
        if not isinstance(value, bool):
            raise _mismatch(value, "bool")
        return value
    if tp is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise _mismatch(value, "int")
        return value
    if tp is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _mismatch(value, "float")
        return float(value)
    if tp is str:
        if isinstance(value, str):
            return value
        if fmt == "yaml" and isinstance(value, (bool, int, float)):
            return _scalar_text(value)
        raise _mismatch(value, "string")
    return value


def _fill(target: Any, data: Any, fmt: str) -> None:
    if not isinstance(data, dict):
        raise _mismatch(data, type(target).__name__)
    owner = type(target)
    for field in dataclasses.fields(target):
        key = field.metadata.get(fmt, field.name)
        found, raw = _lookup(data, key, fmt)
        if not found or raw is None:
            continue
        tp = _resolve(field.type, owner)
        setattr(target, field.name, _convert(raw, tp, fmt, getattr(target, field.name)))


def _decode_into(config: Any, document: Any, fmt: str) -> Any:
    if document is None:
        return config
    if isinstance(config, dict):
        if not isinstance(document, dict):
            raise _mismatch(document, "mapping")
        config.update(document)
        return config
    if dataclasses.is_dataclass(config) and not isinstance(config, type):
        _fill(config, document, fmt)
        return config
    raise TrojanError(f"unsupported config object: {type(config).__name__}")


def _build_configs(document: Any, fmt: str) -> dict[str, Any]:
    return {
        name: _decode_into(creator(), document, fmt)
        for name, creator in list(_creators.items())
    }


def _bind_all(ctx: Context, configs: Mapping[str, Any]) -> Context:
    for name, cfg in configs.items():
        ctx = ctx.with_value(name, cfg)
    return ctx


def with_json_config(ctx: Context, data: bytes | str) -> Context:
    """Parse JSON ``data`` into every registered config and bind them to ``ctx``."""
    try:
        document = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise TrojanError("invalid json config").base(exc) from exc
    return _bind_all(ctx, _build_configs(document, "json"))


def with_yaml_config(ctx: Context, data: bytes | str) -> Context:
    """Parse YAML ``data`` into every registered config and bind them to ``ctx``."""
    try:
        document = yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise TrojanError("invalid yaml config").base(exc) from exc
    return _bind_all(ctx, _build_configs(document, "yaml"))


def with_config(ctx: Context, name: str, cfg: Any) -> Context:
    """Bind ``cfg`` as the config of module ``name``."""
    return ctx.with_value(name + _SUFFIX, cfg)


def from_context(ctx: Context, name: str) -> Any:
    """Return the config of module ``name`` bound to ``ctx``, or None."""
    return ctx.value(name + _SUFFIX)