"""
Native declaration model

These nodes are what a declaration source (libclang, or a hand-built document in
tests) hands to the lowering engine. They carry identity, native name, owning
file and byte size; the engine never looks at C syntax.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .constants import DEFAULT_POINTER_SIZE


class PtrKind(Enum):
    """What a pointer-typed argument represents, as classified by the source"""
    NOT_SET = "not_set"
    PLAIN = "plain"
    ARRAY = "array"
    ARRAY_ARRAY = "array_array"
    STRING = "string"
    STRING_ARRAY = "string_array"
    RETURN = "return"
    REFERENCE = "reference"
    TYPEDEF = "typedef"

    @classmethod
    def parse(cls, value: str) -> "PtrKind":
        """Parse a kind from its configuration spelling"""
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown pointer kind '{value}'. Must be one of: {valid}")


@dataclass(eq=False)
class NativeType:
    """Base of every native type node"""
    id: str
    size: int = 0
    spelling: str = ""


@dataclass(eq=False)
class NamedType(NativeType):
    """A type node that carries a native name and owning file"""
    name: str = ""
    file: str = ""


@dataclass(eq=False)
class FundamentalType(NamedType):
    # one of: void, signed, unsigned, float, complex, bool
    kind: str = "signed"


@dataclass(eq=False)
class EnumValue:
    id: str
    name: str
    value: int
    file: str = ""


@dataclass(eq=False)
class Enumeration(NamedType):
    values: list[EnumValue] = field(default_factory=list)
    signed: bool = True


@dataclass(eq=False)
class ArrayType(NativeType):
    element: NativeType = None
    length: int = 0


@dataclass(eq=False)
class Field:
    name: str
    type: NativeType


@dataclass(eq=False)
class Struct(NamedType):
    # None means the layout is unknown (incomplete type or bit-fields)
    fields: Optional[list[Field]] = None


@dataclass(eq=False)
class Union(NamedType):
    fields: Optional[list[Field]] = None


@dataclass(eq=False)
class PointerType(NativeType):
    pointee: NativeType = None


@dataclass(eq=False)
class Typedef(NamedType):
    base: NativeType = None

    def root(self) -> NativeType:
        """The fully resolved type behind a chain of typedefs"""
        t = self.base
        while isinstance(t, Typedef):
            t = t.base
        return t

    def is_fundamental(self) -> bool:
        return isinstance(self.root(), FundamentalType)

    def is_pointer(self) -> bool:
        return isinstance(self.root(), PointerType)

    def is_enum(self) -> bool:
        return isinstance(self.root(), Enumeration)


@dataclass(eq=False)
class Argument:
    name: str
    type: NativeType
    ptr_kind: PtrKind = PtrKind.NOT_SET


@dataclass(eq=False)
class FunctionType(NativeType):
    return_type: NativeType = None
    arguments: list[Argument] = field(default_factory=list)
    variadic: bool = False


@dataclass(eq=False)
class UnsupportedType(NativeType):
    """A native type kind the source could not classify"""
    kind: str = ""


@dataclass(eq=False)
class CallbackInfo:
    """A function-pointer argument paired with its user-data argument"""
    arg_index: int
    data_arg_index: int
    callback_data_index: int
    name: str
    function_type: FunctionType


@dataclass(eq=False)
class Function:
    id: str
    name: str
    file: str
    return_type: NativeType
    arguments: list[Argument] = field(default_factory=list)
    variadic: bool = False
    callback: Optional[CallbackInfo] = None


@dataclass(eq=False)
class Variable:
    id: str
    name: str
    file: str
    type: NativeType


@dataclass(eq=False)
class Macro:
    name: str
    file: str
    body: str


@dataclass
class DeclarationDocument:
    """Everything the declaration source extracted from one translation unit"""
    functions: list[Function] = field(default_factory=list)
    variables: list[Variable] = field(default_factory=list)
    enumerations: list[Enumeration] = field(default_factory=list)
    macros: list[Macro] = field(default_factory=list)
    # source file -> files it includes directly
    includes: dict[str, list[str]] = field(default_factory=dict)
    pointer_size: int = DEFAULT_POINTER_SIZE

    def file_set(self, root: str, exclude: set = None, max_depth: int = None) -> set[str]:
        """Files reachable from root through includes, staying under root's directory

        Files in exclude (owned by another package) are neither collected nor
        followed.
        """
        root = os.path.realpath(root)
        base_dir = os.path.dirname(root)
        exclude = exclude or set()
        files = {root}
        frontier = [root]
        depth = 0
        while frontier and (max_depth is None or depth < max_depth):
            next_frontier = []
            for source in frontier:
                for included in self.includes.get(source, []):
                    included = os.path.realpath(included)
                    if included in files or included in exclude:
                        continue
                    if not included.startswith(base_dir + os.sep):
                        continue
                    files.add(included)
                    next_frontier.append(included)
            frontier = next_frontier
            depth += 1
        return files


def strip_typedefs(t: NativeType) -> NativeType:
    while isinstance(t, Typedef):
        t = t.base
    return t


def is_void(t: NativeType) -> bool:
    t = strip_typedefs(t)
    return isinstance(t, FundamentalType) and t.kind == "void"


def is_c_string(t: NativeType) -> bool:
    """True for a pointer to a character type"""
    t = strip_typedefs(t)
    if not isinstance(t, PointerType):
        return False
    pointee = strip_typedefs(t.pointee)
    return isinstance(pointee, FundamentalType) and pointee.name == "char"


def is_void_pointer(t: NativeType) -> bool:
    t = strip_typedefs(t)
    return isinstance(t, PointerType) and is_void(t.pointee)


def c_spelling(t: NativeType) -> str:
    """C spelling of a type, as reported by the source or rebuilt from the node"""
    if t is None:
        return "void"
    if t.spelling:
        return t.spelling
    if isinstance(t, (PointerType, ArrayType)):
        inner = t.pointee if isinstance(t, PointerType) else t.element
        if isinstance(strip_typedefs(inner), FunctionType) and not isinstance(inner, Typedef):
            ft = strip_typedefs(inner)
            params = ", ".join(c_spelling(a.type) for a in ft.arguments) or "void"
            return f"{c_spelling(ft.return_type)} (*)({params})"
        return c_spelling(inner) + " *"
    if isinstance(t, Struct):
        return "struct " + t.name
    if isinstance(t, Union):
        return "union " + t.name
    if isinstance(t, Enumeration):
        return "enum " + t.name
    if isinstance(t, NamedType) and t.name:
        return t.name
    return "void"
