"""
Versioned schema validation for untrusted model output.

Schemas live under ``<schemas_dir>/<name>/<version>.json`` and use a small
JSON-Schema subset (object ``properties``, ``type``, ``enum``, ``items``,
``required``, ``additionalProperties``). Each schema is compiled once into a
frozen, strict pydantic model so a single validation pass reports every
violation in the order the schema declares its properties.

Property names are kept as aliases, so any JSON key (``_id``, ``unit-price``)
is validated and reported under its schema name.
"""

import json
import keyword
import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Any, List, Literal, Optional

from pydantic import (
    BeforeValidator,
    ConfigDict,
    Field,
    PlainValidator,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError as PydanticValidationError,
    create_model,
)
from pydantic_core import PydanticCustomError

from intake.core.exceptions import SchemaValidationError
from intake.models.dto import FieldViolation, SafeExtractionResult, ValidatedIntent

logger = logging.getLogger(__name__)

ROOT_FIELD = "root"
TOO_DEEP_MESSAGE = "output is nested too deeply"


def _integral_float(value: Any) -> Any:
    # JSON Schema treats 2.0 as an integer
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


_SCALAR_TYPES: dict[str, Any] = {
    "string": StrictStr,
    "integer": Annotated[StrictInt, BeforeValidator(_integral_float)],
    "number": StrictFloat,
    "boolean": StrictBool,
    "array": list,
    "object": dict,
}

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


class UnparsableOutputError(ValueError):
    """Raw output could not be turned into a JSON object."""


def _model_config(schema: Mapping[str, Any]) -> ConfigDict:
    extra = "forbid" if schema.get("additionalProperties") is False else "ignore"
    return ConfigDict(frozen=True, extra=extra, protected_namespaces=())


def _camel(name: str) -> str:
    return "".join(part.capitalize() for part in re.split(r"[^0-9a-zA-Z]+", name) if part)


def _field_name(prop: str, taken: set[str]) -> str:
    """Python attribute name for schema property ``prop``."""
    name = re.sub(r"[^0-9A-Za-z_]", "_", prop).lstrip("_") or "field"
    if (
        name[0].isdigit()
        or keyword.iskeyword(name)
        or name.startswith("model_")
        or hasattr(ValidatedIntent, name)
    ):
        name = f"field_{name}"

    candidate, suffix = name, 2
    while candidate in taken:
        candidate = f"{name}_{suffix}"
        suffix += 1
    taken.add(candidate)
    return candidate


def _any_of(members: list[Any], labels: list[str]) -> Any:
    """One field type accepting the first matching member.

    Failures surface as a single error on the field itself rather than one
    error per member.
    """
    adapters = [TypeAdapter(member) for member in members]
    expected = " or ".join(labels)

    def check(value: Any) -> Any:
        for adapter in adapters:
            try:
                return adapter.validate_python(value)
            except PydanticValidationError:
                continue
        raise PydanticCustomError(
            "type_any_of", "Input should be a valid {expected}", {"expected": expected}
        )

    return Annotated[Any, PlainValidator(check)]


def _annotation(spec: Mapping[str, Any], name: str) -> Any:
    """Translate one property spec into a type annotation."""
    if "enum" in spec:
        values = tuple(spec["enum"])
        if not values:
            raise ValueError(f"Empty enum for property '{name}'")
        return Literal[values]

    declared = spec.get("type", "string")
    types = list(declared) if isinstance(declared, list) else [declared]
    nullable = "null" in types
    types = [t for t in types if t != "null"]

    members = []
    for type_name in types:
        if type_name == "object" and "properties" in spec:
            members.append(_compile_model(spec, _camel(name)))
        elif type_name == "array" and "items" in spec:
            members.append(List[_annotation(spec["items"], f"{name}_item")])
        elif type_name in _SCALAR_TYPES:
            members.append(_SCALAR_TYPES[type_name])
        else:
            raise ValueError(f"Unsupported type '{type_name}' for property '{name}'")

    if not members:
        return type(None)
    annotation = members[0] if len(members) == 1 else _any_of(members, types)
    return Optional[annotation] if nullable else annotation


def _field_definitions(schema: Mapping[str, Any]) -> dict[str, Any]:
    properties = schema.get("properties") or {}
    required = set(schema.get("required") or [])
    unknown = required - set(properties)
    if unknown:
        raise ValueError(f"Required fields not declared in properties: {sorted(unknown)}")

    fields: dict[str, Any] = {}
    taken: set[str] = set()
    for prop, spec in properties.items():
        annotation = _annotation(spec, prop)
        default = ... if prop in required else None
        name = _field_name(prop, taken)
        if name == prop:
            fields[name] = (annotation, default)
        else:
            fields[name] = (annotation, Field(default, alias=prop))
    return fields


def _compile_model(schema: Mapping[str, Any], model_name: str):
    return create_model(
        model_name,
        __config__=_model_config(schema),
        __module__=__name__,
        **_field_definitions(schema),
    )


def compile_intent_model(
    schema: Mapping[str, Any], model_name: str, version: str
) -> type[ValidatedIntent]:
    """Compile a declarative schema into a ``ValidatedIntent`` subclass."""
    if schema.get("type", "object") != "object":
        raise ValueError("Top-level schema must describe an object")

    base = type(
        f"{model_name}Base",
        (ValidatedIntent,),
        {
            "__module__": __name__,
            "model_config": _model_config(schema),
            "schema_version": version,
        },
    )
    return create_model(
        model_name,
        __base__=base,
        __module__=__name__,
        **_field_definitions(schema),
    )


def _try_parse_object(text: str) -> dict[str, Any] | None:
    try:
        obj = json.loads(text)
    except RecursionError as e:
        raise UnparsableOutputError(TOO_DEEP_MESSAGE) from e
    except (ValueError, TypeError):
        return None
    return obj if isinstance(obj, dict) else None


def _unwrap_envelope(obj: dict[str, Any]) -> dict[str, Any]:
    """Return inner JSON when ``obj`` is a provider envelope around it."""
    choices = obj.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        first = choices[0]
        message = first.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            inner = _try_parse_object(message["content"])
            if inner is not None:
                return inner
        if isinstance(first.get("text"), str):
            inner = _try_parse_object(first["text"])
            if inner is not None:
                return inner

    for key in ("response", "content"):
        value = obj.get(key)
        if isinstance(value, str):
            inner = _try_parse_object(value)
            if inner is not None:
                return inner
    return obj


def parse_candidate(raw: Any) -> dict[str, Any]:
    """Turn raw model output into a candidate JSON object.

    Accepts a mapping, JSON text, JSON inside a code fence or surrounding
    prose, JSONL (first object line wins) or a provider envelope.

    Raises:
        UnparsableOutputError: If no JSON object can be recovered
    """
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise UnparsableOutputError("output is not valid UTF-8") from e
    if not isinstance(raw, str):
        raise UnparsableOutputError(
            f"expected JSON object text, got {type(raw).__name__}"
        )

    text = _FENCE_RE.sub("", raw.strip()).strip()
    if not text:
        raise UnparsableOutputError("output is empty")

    obj = _try_parse_object(text)
    if obj is not None:
        return _unwrap_envelope(obj)

    for line in text.splitlines():
        obj = _try_parse_object(line.strip())
        if obj is not None:
            return _unwrap_envelope(obj)

    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        obj = _try_parse_object(text[start : end + 1])
        if obj is not None:
            return _unwrap_envelope(obj)

    raise UnparsableOutputError("output does not contain a JSON object")


def _violations_from(exc: PydanticValidationError) -> list[FieldViolation]:
    """One violation per field path; several errors on a field are joined."""
    messages: dict[str, list[str]] = {}
    for error in exc.errors(include_url=False):
        loc = error.get("loc") or ()
        field = ".".join(str(part) for part in loc) or ROOT_FIELD
        field_messages = messages.setdefault(field, [])
        message = error.get("msg", "invalid")
        if message not in field_messages:
            field_messages.append(message)
    return [
        FieldViolation(field=field, message="; ".join(field_messages))
        for field, field_messages in messages.items()
    ]


class SchemaValidator:
    """Validate structured payloads against a versioned schema file.

    Args:
        schema_name: Schema family (directory name), e.g. ``"intent"``
        version: Version identifier (file stem), e.g. ``"v1"``
        schemas_dir: Root directory holding schema families
    """

    def __init__(
        self,
        schema_name: str,
        version: str,
        schemas_dir: Path | str | None = None,
    ) -> None:
        if schemas_dir is None:
            from intake.core.settings import schema_settings

            schemas_dir = schema_settings.schemas_dir

        self.schema_name = schema_name
        self.version = version
        self.path = Path(schemas_dir) / schema_name / f"{version}.json"

        with open(self.path, encoding="utf-8") as f:
            self.schema = json.load(f)

        self.model = compile_intent_model(
            self.schema,
            model_name=f"{_camel(schema_name)}{_camel(version)}",
            version=version,
        )
        logger.info(
            f"Loaded schema {schema_name}/{version} from {self.path}",
            extra={"schema_version": version},
        )

    def _check(self, raw: Any) -> tuple[ValidatedIntent | None, list[FieldViolation]]:
        try:
            candidate = parse_candidate(raw)
        except UnparsableOutputError as e:
            return None, [FieldViolation(field=ROOT_FIELD, message=str(e))]

        try:
            return self.model.model_validate(candidate), []
        except PydanticValidationError as e:
            return None, _violations_from(e)
        except RecursionError:
            return None, [FieldViolation(field=ROOT_FIELD, message=TOO_DEEP_MESSAGE)]

    def validate_or_throw(self, raw: Any) -> ValidatedIntent:
        """Parse and validate ``raw``.

        Raises:
            SchemaValidationError: With every violation found
        """
        data, violations = self._check(raw)
        if violations:
            logger.info(
                f"Schema {self.schema_name}/{self.version} rejected payload "
                f"with {len(violations)} violations",
                extra={"schema_version": self.version, "violations": len(violations)},
            )
            raise SchemaValidationError(
                [v.model_dump() for v in violations], schema_version=self.version
            )
        return data

    def validate(self, raw: Any) -> SafeExtractionResult:
        """Parse and validate ``raw`` without raising."""
        data, violations = self._check(raw)
        if violations:
            return SafeExtractionResult.failure(violations)
        return SafeExtractionResult.success(data)
