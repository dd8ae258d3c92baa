"""
Go-side type descriptors

Each descriptor knows its Go name, its cgo name, its byte size and how to emit
the statements that convert a value between the two representations.
Struct, Union, Enum and Typedef are declarable: they own a Go declaration,
methods and a name table of their own.
"""

from typing import Optional

from .constants import GO_NUMBER_MAP, OPAQUE_FUNCTION, OPAQUE_POINTER
from .conversions import CONVERTERS, Conversion, conv, conv_ptr
from .errors import UnsupportedTypeError
from .names import NameTable


class GoType:
    """Common surface of every descriptor"""

    conversion = Conversion.NUM

    def __init__(self, go_name: str = "", cgo_name: str = "", size: int = 0):
        self._go_name = go_name
        self._cgo_name = cgo_name
        self.size = size

    @property
    def go_name(self) -> str:
        return self._go_name

    @property
    def cgo_name(self) -> str:
        return self._cgo_name

    @property
    def named(self) -> bool:
        """False when the type has no Go name a pointer could refer to"""
        return bool(self.go_name)

    def write_spec(self) -> str:
        return self.go_name

    def to_cgo(self, assign: str, g: str, c: str) -> list[str]:
        return [CONVERTERS[self.conversion](assign, g, c, self.cgo_name)]

    def to_go(self, assign: str, g: str, c: str) -> list[str]:
        return [CONVERTERS[self.conversion](assign, c, g, self.go_name)]

    def __repr__(self):
        return f"<{type(self).__name__} {self.go_name or '?'} / {self.cgo_name or '?'}>"


class Void(GoType):
    """Sentinel for "no value"; only valid as a return type or pointee"""

    def to_cgo(self, assign, g, c):
        raise UnsupportedTypeError(f"void cannot be converted as a value ({g})")

    def to_go(self, assign, g, c):
        raise UnsupportedTypeError(f"void cannot be converted as a value ({c})")


VOID = Void()


def is_void(t: Optional[GoType]) -> bool:
    return t is None or isinstance(t, Void)


class Num(GoType):
    pass


class Bool(GoType):
    """A native integer that carries a truth value as 0/1"""

    def __init__(self, cgo_name: str, size: int = 0):
        super().__init__("bool", cgo_name, size)

    def to_cgo(self, assign, g, c):
        lines = []
        if assign:
            lines.append(f"var {c} {self.cgo_name}")
        lines.append(f"if {g} {{")
        lines.append("\t" + conv("", "1", c, self.cgo_name))
        lines.append("}")
        return lines

    def to_go(self, assign, g, c):
        return [conv(assign, f"{c} == 1", g, self.go_name)]


class Array(GoType):
    conversion = Conversion.VALUE

    def __init__(self, element: GoType, length: int):
        super().__init__(size=length * element.size)
        self.element = element
        self.length = length

    @property
    def go_name(self):
        return f"[{self.length}]{self.element.go_name}"

    @property
    def cgo_name(self):
        return f"[{self.length}]{self.element.cgo_name}"

    @property
    def named(self):
        return self.element.named


class FuncType(GoType):
    """A native function used as a value; only its address is meaningful"""

    def __init__(self):
        super().__init__(OPAQUE_FUNCTION, OPAQUE_FUNCTION, 0)


def _slice_to_cgo(assign, g, c, cgo_name):
    lines = []
    if assign:
        lines.append(f"var {c} {cgo_name}")
    lines.append(f"if len({g}) > 0 {{")
    lines.append("\t" + conv_ptr("", f"&{g}[0]", c, cgo_name))
    lines.append("}")
    return lines


class Slice(GoType):
    """Pointer plus implicit length; Go to C only"""

    conversion = Conversion.PTR

    def __init__(self, element: GoType, size: int = 0):
        super().__init__(size=size)
        self.element = element

    @property
    def go_name(self):
        if is_void(self.element) or not self.element.named:
            return "[]byte"
        return "[]" + self.element.go_name

    @property
    def cgo_name(self):
        if is_void(self.element) or not self.element.cgo_name:
            return "unsafe.Pointer"
        return "*" + self.element.cgo_name

    def to_cgo(self, assign, g, c):
        return _slice_to_cgo(assign, g, c, self.cgo_name)

    def to_go(self, assign, g, c):
        return ["// No ToGo conversion for Slice yet."]


class SliceSlice(GoType):
    conversion = Conversion.PTR

    def __init__(self, element: GoType, size: int = 0):
        super().__init__(size=size)
        self.element = element

    @property
    def go_name(self):
        if is_void(self.element) or not self.element.named:
            return "[][]byte"
        return "[][]" + self.element.go_name

    @property
    def inner_cgo_name(self):
        if is_void(self.element) or not self.element.cgo_name:
            return "unsafe.Pointer"
        return "*" + self.element.cgo_name

    @property
    def cgo_name(self):
        return "*" + self.inner_cgo_name

    def to_cgo(self, assign, g, c):
        inner = self.inner_cgo_name
        c_ = c + "_"
        lines = [f"{c_} := make([]{inner}, len({g}))"]
        lines.append(f"for i_ := range {g} {{")
        lines.append(f"\tif len({g}[i_]) > 0 {{")
        lines.append("\t\t" + conv_ptr("", f"&{g}[i_][0]", f"{c_}[i_]", inner))
        lines.append("\t}")
        lines.append("}")
        return lines + _slice_to_cgo(assign, c_, c, self.cgo_name)

    def to_go(self, assign, g, c):
        return ["// No ToGo conversion for SliceSlice yet."]


class String(GoType):
    """A C string; each Go to C conversion owns a copy freed when the call returns"""

    conversion = Conversion.PTR

    def __init__(self, size: int = 0):
        super().__init__("string", "*C.char", size)

    def to_cgo(self, assign, g, c):
        return [
            f"{c} {assign}= C.CString({g})",
            f"defer C.free(unsafe.Pointer({c}))",
        ]

    def to_go(self, assign, g, c):
        return [f"{g} {assign}= C.GoString({c})"]


class StringSlice(GoType):
    conversion = Conversion.PTR

    def __init__(self, size: int = 0):
        super().__init__("[]string", "**C.char", size)

    def to_cgo(self, assign, g, c):
        c_ = c + "_"
        lines = [f"{c_} := make([]*C.char, len({g}))"]
        lines.append(f"for i_ := range {g} {{")
        lines.extend("\t" + line for line in String().to_cgo("", f"{g}[i_]", f"{c_}[i_]"))
        lines.append("}")
        return lines + _slice_to_cgo(assign, c_, c, self.cgo_name)

    def to_go(self, assign, g, c):
        return ["// No ToGo conversion for StringSlice yet."]


class Ptr(GoType):
    """A typed pointer, or an opaque uintptr when the pointee has no Go name"""

    conversion = Conversion.PTR

    def __init__(self, pointee: GoType, size: int = 0):
        super().__init__(size=size)
        self.pointee = pointee

    @property
    def go_name(self):
        if is_void(self.pointee) or not self.pointee.named:
            return OPAQUE_POINTER
        return "*" + self.pointee.go_name

    @property
    def cgo_name(self):
        if is_void(self.pointee) or not self.pointee.cgo_name:
            return "unsafe.Pointer"
        return "*" + self.pointee.cgo_name


class ReturnPtr(GoType):
    """An output argument: Go passes the address of its result variable"""

    conversion = Conversion.PTR

    def __init__(self, pointee: GoType, size: int = 0):
        super().__init__(size=size)
        self.pointee = pointee

    @property
    def go_name(self):
        if is_void(self.pointee) or not self.pointee.named:
            return OPAQUE_POINTER
        return self.pointee.go_name

    @property
    def cgo_name(self):
        if is_void(self.pointee) or not self.pointee.cgo_name:
            return "unsafe.Pointer"
        return "*" + self.pointee.cgo_name

    def to_cgo(self, assign, g, c):
        return [conv_ptr(assign, "&" + g, c, self.cgo_name)]

    def to_go(self, assign, g, c):
        return []


class CallbackReturnPtr(GoType):
    """An output argument seen from inside a trampoline: Go writes through it"""

    conversion = Conversion.PTR

    def __init__(self, return_ptr: ReturnPtr):
        super().__init__(size=return_ptr.size)
        self.return_ptr = return_ptr

    @property
    def go_name(self):
        return self.return_ptr.go_name

    @property
    def cgo_name(self):
        return self.return_ptr.cgo_name

    def to_cgo(self, assign, g, c):
        pointee = self.return_ptr.pointee
        if is_void(pointee) or not pointee.cgo_name:
            return [f"*(*unsafe.Pointer)({c}) = unsafe.Pointer({g})"]
        return pointee.to_cgo("", g, f"*(*{pointee.cgo_name})({c})")

    def to_go(self, assign, g, c):
        return []


class TypeDecl(GoType):
    """A descriptor that owns a Go declaration and methods"""

    def __init__(self, id: str, c_name: str, file: str, cgo_name: str, size: int,
                 conversion: Conversion = None):
        super().__init__("", cgo_name, size)
        self.id = id
        self.c_name = c_name
        self.file = file
        if conversion is not None:
            self.conversion = conversion
        self.methods = []
        self.names = NameTable()
        # the pass-through typedef that took over this declaration's identity
        self.superseded_by = None

    def set_go_name(self, name: str):
        self._go_name = name

    @property
    def assigned_name(self) -> str:
        return self._go_name

    @property
    def go_name(self):
        return self._go_name or f"[{self.size}]byte"

    @property
    def named(self):
        return bool(self._go_name)

    def add_method(self, method) -> bool:
        """Attach a method unless one for the same native function exists"""
        if self.superseded_by is not None:
            return self.superseded_by.add_method(method)
        for m in self.methods:
            if m.id == method.id:
                return False
        self.methods.append(method)
        return True

    def optimize_names(self):
        """Drop the type name from method names where that stays unique"""
        type_name = self._go_name
        if not type_name or "." in type_name:
            return
        for m in self.methods:
            name = m.go_name
            if name.startswith(type_name):
                candidate = name[len(type_name):]
            elif name.endswith(type_name):
                candidate = name[:-len(type_name)]
            else:
                continue
            if not candidate or not candidate[0].isupper():
                continue
            if self.names.rename(m.id, candidate):
                m.set_go_name(candidate)

    def write_extras(self, type_name: str) -> list[str]:
        return []

    def write_methods(self) -> list[str]:
        lines = []
        for m in sorted(self.methods, key=lambda m: m.go_name):
            lines.extend(m.render())
            lines.append("")
        return lines

    def declare(self) -> list[str]:
        """Full Go text for this declaration"""
        lines = [f"// {self.c_name}", f"type {self.go_name} {self.write_spec()}"]
        extras = self.write_extras(self.go_name)
        if extras:
            lines.append("")
            lines.extend(extras)
        lines.append("")
        lines.extend(self.write_methods())
        return lines


class StructField:
    def __init__(self, go_name: str, type: GoType):
        self.go_name = go_name
        self.type = type

    def declare(self) -> str:
        return f"{self.go_name} {self.type.go_name}"


class Struct(TypeDecl):
    conversion = Conversion.VALUE

    def __init__(self, id, c_name, file, cgo_name, size, opaque=False):
        super().__init__(id, c_name, file, cgo_name, size)
        self.opaque = opaque
        self.fields: Optional[list[StructField]] = None

    @property
    def populated(self) -> bool:
        return self.fields is not None

    def write_spec(self):
        if self.opaque or not self.fields:
            return "struct{}" if self.size == 0 else f"[{self.size}]byte"
        lines = ["struct {"]
        lines.extend("\t" + f.declare() for f in self.fields)
        lines.append("}")
        return "\n".join(lines)


class UnionField:
    def __init__(self, go_name: str, type: GoType):
        self.go_name = go_name
        self.type = type

    def accessor(self, receiver: str, pointer_size: int) -> list[str]:
        """A method reinterpreting the union's bytes as this field

        Fields no larger than a pointer are returned by value, bigger ones by
        pointer so no temporary copy is made.
        """
        t = self.type.go_name
        if self.type.size <= pointer_size:
            return [
                f"func (u *{receiver}) {self.go_name}() {t} {{",
                f"\treturn *(*{t})(unsafe.Pointer(u))",
                "}",
            ]
        return [
            f"func (u *{receiver}) {self.go_name}() *{t} {{",
            f"\treturn (*{t})(unsafe.Pointer(u))",
            "}",
        ]


class Union(TypeDecl):
    conversion = Conversion.VALUE

    def __init__(self, id, c_name, file, cgo_name, size, pointer_size, opaque=False):
        super().__init__(id, c_name, file, cgo_name, size)
        self.pointer_size = pointer_size
        self.opaque = opaque
        self.fields: Optional[list[UnionField]] = None

    @property
    def populated(self) -> bool:
        return self.fields is not None

    def write_spec(self):
        return f"[{self.size}]byte"

    def write_extras(self, type_name):
        lines = []
        for f in self.fields or []:
            if lines:
                lines.append("")
            lines.extend(f.accessor(type_name, self.pointer_size))
        return lines


class EnumConst:
    def __init__(self, id: str, c_name: str, value: int, file: str = ""):
        self.id = id
        self.c_name = c_name
        self.file = file
        self.value = value
        self.go_name = ""


def hex_width(values) -> int:
    """Digit count of the longest non-negative value in hexadecimal"""
    width = 1
    for v in values:
        if v >= 0:
            width = max(width, len(format(v, "X")))
    return width


def enum_literal(value: int, width: int) -> str:
    if value < 0:
        return str(value)
    return "0x" + format(value, "X").zfill(width)


class Enum(TypeDecl):
    conversion = Conversion.NUM

    def __init__(self, id, c_name, file, cgo_name, size, signed=True, values=None):
        super().__init__(id, c_name, file, cgo_name, size)
        kind = "signed" if signed else "unsigned"
        self.base_go_name = GO_NUMBER_MAP.get((kind, size * 8), "int32")
        self.values: list[EnumConst] = values or []

    @property
    def go_name(self):
        return self._go_name or self.base_go_name

    @property
    def named(self):
        return True

    def write_spec(self):
        return self.base_go_name

    def declare(self):
        if self._go_name:
            return super().declare()
        # anonymous enumerations only contribute constants
        extras = self.write_extras(self.base_go_name)
        if not extras:
            return []
        return [f"// {self.c_name or 'anonymous enum'}"] + extras + [""]

    def write_extras(self, type_name):
        values = [v for v in self.values if v.go_name and "." not in v.go_name]
        if not values:
            return []
        width = hex_width(v.value for v in self.values)
        lines = ["const ("]
        for v in values:
            lines.append(f"\t{v.go_name} {type_name} = {enum_literal(v.value, width)}")
        lines.append(")")
        return lines


class Typedef(TypeDecl):
    """A named alias; its conversion follows the root of the alias chain"""

    def __init__(self, id, c_name, file, cgo_name, size, literal: GoType, root_id: str,
                 conversion: Conversion):
        super().__init__(id, c_name, file, cgo_name, size, conversion)
        self.literal = literal
        self.root_id = root_id

    def _falls_back_to_literal(self) -> bool:
        return isinstance(self.literal, (Num, Enum, Ptr, Bool, FuncType))

    @property
    def go_name(self):
        if self._go_name:
            return self._go_name
        if self._falls_back_to_literal():
            return self.literal.go_name
        return f"[{self.size}]byte"

    @property
    def named(self):
        return bool(self._go_name) or self._falls_back_to_literal()

    def _inline_literal(self) -> bool:
        """Whether the literal's body is spelled out under this typedef's name"""
        lit = self.literal
        if isinstance(lit, Enum):
            return True
        return isinstance(lit, TypeDecl) and (
            not lit.assigned_name or lit.assigned_name == self._go_name)

    def write_spec(self):
        if self._inline_literal():
            return self.literal.write_spec()
        return self.literal.go_name

    def write_extras(self, type_name):
        if self._inline_literal():
            return self.literal.write_extras(type_name)
        return []
