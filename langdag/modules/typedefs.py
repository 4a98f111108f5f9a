"""
Type model for introspected modules.

These models mirror the engine's TypeDef API. They are validated straight
from introspection JSON (camelCase keys) and may be *shallow*: a reference to
an object, interface, input or enum that only carries its name. Shallow
references are upgraded in place by ``ModuleDef.load_type_def``.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator
from pydantic.alias_generators import to_camel

from langdag.modules.naming import cli_name


class TypeDefKind(str, Enum):
    """Kinds of type definitions returned by the engine."""

    STRING = "STRING_KIND"
    INTEGER = "INTEGER_KIND"
    BOOLEAN = "BOOLEAN_KIND"
    VOID = "VOID_KIND"
    SCALAR = "SCALAR_KIND"
    ENUM = "ENUM_KIND"
    INPUT = "INPUT_KIND"
    OBJECT = "OBJECT_KIND"
    INTERFACE = "INTERFACE_KIND"
    LIST = "LIST_KIND"


PRIMITIVE_KINDS = (TypeDefKind.STRING, TypeDefKind.INTEGER, TypeDefKind.BOOLEAN)


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # GraphQL sends explicit nulls; treat them as "not provided"
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class FunctionProvider(Protocol):
    """Anything that exposes callable functions: an object or an interface."""

    def provider_name(self) -> str: ...

    def get_functions(self) -> List["FunctionDef"]: ...

    def is_core(self) -> bool: ...


class TypeDef(_Model):
    """A reference to a type; exactly one payload matches ``kind``."""

    kind: TypeDefKind
    optional: bool = False
    as_object: Optional[ObjectDef] = None
    as_interface: Optional[InterfaceDef] = None
    as_input: Optional[InputDef] = None
    as_list: Optional[ListDef] = None
    as_scalar: Optional[ScalarDef] = None
    as_enum: Optional[EnumDef] = None

    def __str__(self) -> str:
        if self.kind == TypeDefKind.STRING:
            return "string"
        if self.kind == TypeDefKind.INTEGER:
            return "int"
        if self.kind == TypeDefKind.BOOLEAN:
            return "bool"
        if self.kind == TypeDefKind.VOID:
            return "void"
        if self.kind == TypeDefKind.LIST:
            return "[]" + str(self.as_list.element_type_def)
        payload = self._payload()
        return payload.name if payload is not None else ""

    def _payload(self):
        return {
            TypeDefKind.SCALAR: self.as_scalar,
            TypeDefKind.ENUM: self.as_enum,
            TypeDefKind.INPUT: self.as_input,
            TypeDefKind.OBJECT: self.as_object,
            TypeDefKind.INTERFACE: self.as_interface,
        }.get(self.kind)

    @property
    def name(self) -> str:
        fp = self.as_function_provider()
        return fp.provider_name() if fp is not None else ""

    def as_function_provider(self) -> Optional[FunctionProvider]:
        t = self
        if t.as_list is not None:
            t = t.as_list.element_type_def
        if t.as_object is not None:
            return t.as_object
        if t.as_interface is not None:
            return t.as_interface
        return None

    def is_primitive(self) -> bool:
        return self.kind in PRIMITIVE_KINDS

    def is_flat(self) -> bool:
        """Whether a tool schema can carry this type: a primitive or a list of them."""
        if self.kind == TypeDefKind.LIST:
            return self.as_list is not None and self.as_list.element_type_def.is_primitive()
        return self.is_primitive()

    def kind_display(self) -> str:
        if self.kind in PRIMITIVE_KINDS:
            return "Scalar"
        if self.kind in (TypeDefKind.SCALAR, TypeDefKind.VOID):
            return "Custom scalar"
        if self.kind == TypeDefKind.LIST:
            return "List of " + self.as_list.element_type_def.kind_display().lower() + "s"
        return self.kind.name.capitalize()

    @property
    def description(self) -> str:
        if self.kind in PRIMITIVE_KINDS:
            return "Primitive type."
        if self.kind == TypeDefKind.VOID:
            return ""
        if self.kind == TypeDefKind.LIST:
            return self.as_list.element_type_def.description
        payload = self._payload()
        return payload.description if payload is not None else ""

    def short(self) -> str:
        s = str(self)
        if self.description:
            return s + " - " + self.description.split("\n", 1)[0]
        return s

    def long(self) -> str:
        s = str(self)
        if self.description:
            return s + "\n\n" + self.description
        return s


class ListDef(_Model):
    element_type_def: TypeDef


class ScalarDef(_Model):
    name: str
    description: str = ""


class EnumValueDef(_Model):
    name: str
    description: str = ""


class EnumDef(_Model):
    name: str
    description: str = ""
    values: Optional[List[EnumValueDef]] = None

    def value_names(self) -> List[str]:
        return [v.name for v in self.values or []]


class FieldDef(_Model):
    """An object or input field; fields are exposed as zero-argument functions."""

    name: str
    description: str = ""
    type_def: TypeDef

    def as_function(self) -> FunctionDef:
        return FunctionDef(name=self.name, description=self.description, return_type=self.type_def)


class InputDef(_Model):
    name: str
    description: str = ""
    fields: Optional[List[FieldDef]] = None


class ArgumentDef(_Model):
    """A function argument."""

    name: str
    description: str = ""
    type_def: TypeDef
    default_value: Optional[str] = None
    default_path: Optional[str] = None
    ignore: Optional[List[str]] = None

    _flag_name: Optional[str] = PrivateAttr(default=None)

    @field_validator("default_value", mode="before")
    @classmethod
    def _encode_default(cls, value: Any) -> Any:
        # strings are kept as sent; numbers, booleans and lists are re-encoded
        if value is None or isinstance(value, str):
            return value
        return json.dumps(value)

    def flag_name(self) -> str:
        """Name of the argument using CLI naming conventions."""
        if self._flag_name is None:
            self._flag_name = cli_name(self.name)
        return self._flag_name

    def has_default(self) -> bool:
        """Whether the engine supplies a value when the argument is left out."""
        return self.default_value is not None or self.default_path is not None

    def is_required(self) -> bool:
        return not self.type_def.optional and not self.has_default()

    def is_unsupported(self) -> bool:
        return not self.type_def.is_flat()

    def usage(self) -> str:
        return f"--{self.flag_name()} {self.type_def}"

    def short(self) -> str:
        return self.description.split("\n", 1)[0]

    def long(self) -> str:
        parts = []
        multiline = "\n" in self.description
        sep = "\n\n" if multiline else " "
        if self.description:
            parts.append(self.description)
        default = self.display_default()
        if default:
            parts.append(f"(default: {default})")
        if self.type_def.kind == TypeDefKind.ENUM and self.type_def.as_enum is not None:
            parts.append(f"(possible values: {', '.join(self.type_def.as_enum.value_names())})")
        return sep.join(parts)

    def display_default(self) -> str:
        """Default value as text, for usage messages."""
        if self.default_path is not None:
            return json.dumps(self.default_path)
        if self.default_value is None:
            return ""
        try:
            value = json.loads(self.default_value)
        except ValueError:
            # a string default that arrived already decoded
            value = self.default_value
        if self.type_def.kind == TypeDefKind.STRING and isinstance(value, str):
            return json.dumps(value)
        return str(value)


class FunctionDef(_Model):
    """A callable function of an object or interface."""

    name: str = ""
    description: str = ""
    return_type: TypeDef
    args: List[ArgumentDef] = Field(default_factory=list)

    _cmd_name: Optional[str] = PrivateAttr(default=None)

    @field_validator("args", mode="before")
    @classmethod
    def _null_args(cls, value: Any) -> Any:
        return [] if value is None else value

    def cmd_name(self) -> str:
        if self._cmd_name is None:
            self._cmd_name = cli_name(self.name)
        return self._cmd_name

    def short(self) -> str:
        return self.description.split("\n", 1)[0] or "-"

    def get_arg(self, name: str) -> ArgumentDef:
        """Argument by flag name; raises KeyError naming the function."""
        for arg in self.args:
            if arg.flag_name() == name:
                return arg
        raise KeyError(f"no argument {name!r} in function {self.cmd_name()!r}")

    def has_required_args(self) -> bool:
        return any(arg.is_required() for arg in self.args)

    def required_args(self) -> List[ArgumentDef]:
        return [arg for arg in self.args if arg.is_required()]

    def optional_args(self) -> List[ArgumentDef]:
        return [arg for arg in self.args if not arg.is_required()]

    def supported_args(self) -> List[ArgumentDef]:
        return [arg for arg in self.args if not arg.is_unsupported()]

    def has_unsupported_args(self) -> bool:
        """True when a required argument can't be expressed in a tool schema."""
        return any(arg.is_required() and arg.is_unsupported() for arg in self.args)


class ObjectDef(_Model):
    name: str
    description: str = ""
    functions: Optional[List[FunctionDef]] = None
    fields: Optional[List[FieldDef]] = None
    constructor: Optional[FunctionDef] = None
    source_module_name: str = ""

    def provider_name(self) -> str:
        return self.name

    def is_core(self) -> bool:
        return not self.source_module_name

    def get_functions(self) -> List[FunctionDef]:
        """Field functions first, then the object's own functions."""
        return self.get_field_functions() + list(self.functions or [])

    def get_field_functions(self) -> List[FunctionDef]:
        return [f.as_function() for f in self.fields or []]

    def has_function(self, fn: FunctionDef) -> bool:
        return any(f.name == fn.name for f in self.functions or [])


class InterfaceDef(_Model):
    name: str
    description: str = ""
    functions: Optional[List[FunctionDef]] = None
    source_module_name: str = ""

    def provider_name(self) -> str:
        return self.name

    def is_core(self) -> bool:
        return not self.source_module_name

    def get_functions(self) -> List[FunctionDef]:
        return list(self.functions or [])


for _model in (TypeDef, ListDef, FieldDef, InputDef, ArgumentDef, FunctionDef, ObjectDef, InterfaceDef):
    _model.model_rebuild()
