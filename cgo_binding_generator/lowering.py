"""
Lowering of native type nodes to Go type descriptors

The engine memoizes every declarable descriptor by native identity, records
the ones that need a Go declaration in the declaration map, and populates
struct and union fields from an explicit worklist until no new composite shows
up.
"""

from typing import Iterator

from . import declarations as native
from .constants import CGO_FUNDAMENTAL_MAP, DEFAULT_POINTER_SIZE, GO_NUMBER_MAP, SPECIAL_CGO_NAMES
from .conversions import Conversion
from .declarations import PtrKind
from .errors import UnsupportedTypeError
from .names import upper_name
from .type_model import (
    VOID, Array, Bool, Enum, EnumConst, FuncType, GoType, Num, Ptr, ReturnPtr, Slice,
    SliceSlice, String, StringSlice, Struct, StructField, TypeDecl, Typedef, Union,
    UnionField, is_void,
)


def cgo_name(node: native.NamedType) -> str:
    """cgo spelling of a named native type"""
    name = node.name
    if name in SPECIAL_CGO_NAMES:
        return SPECIAL_CGO_NAMES[name]
    if isinstance(node, native.FundamentalType):
        return CGO_FUNDAMENTAL_MAP.get(name, "")
    if not name:
        return ""
    if isinstance(node, native.Struct):
        return "C.struct_" + name
    if isinstance(node, native.Union):
        return "C.union_" + name
    if isinstance(node, native.Enumeration):
        return "C.enum_" + name
    return "C." + name


def to_pointer(node: native.NativeType):
    """The pointer type behind node and its typedefs, or None"""
    node = native.strip_typedefs(node)
    if isinstance(node, native.PointerType):
        return node
    return None


class TypeLowering:
    """Maps native type nodes to descriptors and owns the declaration map"""

    def __init__(self, pointer_size: int = DEFAULT_POINTER_SIZE, type_rules: dict = None,
                 bool_types=None):
        self.pointer_size = pointer_size
        self.type_rules = dict(type_rules or {})
        self.bool_types = set(bool_types or [])
        # identity -> descriptor that needs a Go declaration
        self.declarations: dict[str, TypeDecl] = {}
        # identity -> every declarable descriptor created so far
        self._descriptors: dict[str, TypeDecl] = {}
        self._nodes = {}
        self._pending = []

    def find(self, identity: str):
        return self._descriptors.get(identity)

    def declare(self, d: TypeDecl):
        self.declarations[d.id] = d

    def delete(self, identity: str):
        self.declarations.pop(identity, None)

    def declare_equal_type(self, node: native.NativeType) -> GoType:
        return self.equal_type(node, declare=True)

    def equal_type(self, node: native.NativeType, declare: bool = False) -> GoType:
        """The descriptor whose values have the same layout as node"""
        if isinstance(node, native.NamedType) and node.name in self.type_rules:
            return Num(self.type_rules[node.name], cgo_name(node), node.size)

        d = self._descriptors.get(node.id)
        if d is not None:
            if declare:
                self.declare(d)
            return d

        if isinstance(node, native.FundamentalType):
            if node.kind == "void":
                return VOID
            return self._new_num(node)
        if isinstance(node, native.ArrayType):
            element = self.declare_equal_type(node.element)
            if is_void(element):
                raise UnsupportedTypeError(f"Array of void: {node.spelling or node.id}")
            return Array(element, node.length)
        if isinstance(node, native.PointerType):
            return Ptr(self.declare_equal_type(node.pointee), self.pointer_size)
        if isinstance(node, native.FunctionType):
            return FuncType()
        if isinstance(node, native.Enumeration):
            d = self._new_enum(node)
        elif isinstance(node, (native.Struct, native.Union)):
            d = self._new_composite(node)
        elif isinstance(node, native.Typedef):
            d = self._new_typedef(node)
            if is_void(d):
                return VOID
        elif isinstance(node, native.UnsupportedType):
            raise UnsupportedTypeError(
                f"Unsupported native type kind {node.kind}: {node.spelling or node.id}")
        else:
            raise UnsupportedTypeError(f"Unknown native type node: {type(node).__name__}")

        self._descriptors[d.id] = d
        if declare:
            self.declare(d)
        return d

    def resolve(self, node: native.NativeType, ptr_kind: PtrKind = PtrKind.NOT_SET) -> GoType:
        """Descriptor for an argument or return value of the given pointer kind"""
        if ptr_kind == PtrKind.NOT_SET:
            if isinstance(node, native.NamedType) and node.name in self.bool_types:
                return Bool(self.declare_equal_type(node).cgo_name, node.size)
            return self.declare_equal_type(node)

        pointer = to_pointer(node)
        if pointer is None:
            return self.declare_equal_type(node)
        pointee = pointer.pointee
        if ptr_kind == PtrKind.ARRAY:
            return Slice(self.declare_equal_type(pointee), self.pointer_size)
        if ptr_kind == PtrKind.ARRAY_ARRAY:
            inner = to_pointer(pointee)
            if inner is None:
                return Slice(self.declare_equal_type(pointee), self.pointer_size)
            return SliceSlice(self.declare_equal_type(inner.pointee), self.pointer_size)
        if ptr_kind == PtrKind.STRING_ARRAY:
            return StringSlice(self.pointer_size)
        if ptr_kind == PtrKind.STRING:
            return String(self.pointer_size)
        if ptr_kind == PtrKind.TYPEDEF:
            return self.declare_equal_type(node)
        if ptr_kind == PtrKind.RETURN:
            return ReturnPtr(self.declare_equal_type(pointee), self.pointer_size)
        return Ptr(self.declare_equal_type(pointee), self.pointer_size)

    def _new_num(self, node: native.FundamentalType) -> Num:
        go_name = GO_NUMBER_MAP.get((node.kind, node.size * 8))
        cgo = CGO_FUNDAMENTAL_MAP.get(node.name)
        if go_name is None or cgo is None:
            raise UnsupportedTypeError(f"Unsupported fundamental type: {node.name}")
        return Num(go_name, cgo, node.size)

    def _new_enum(self, node: native.Enumeration) -> Enum:
        values = [EnumConst(v.id, v.name, v.value, v.file or node.file) for v in node.values]
        return Enum(node.id, node.name, node.file, cgo_name(node), node.size,
                    signed=node.signed, values=values)

    def _new_composite(self, node):
        opaque = node.fields is None
        if isinstance(node, native.Union):
            d = Union(node.id, node.name, node.file, cgo_name(node), node.size,
                      self.pointer_size, opaque=opaque)
        else:
            d = Struct(node.id, node.name, node.file, cgo_name(node), node.size, opaque=opaque)
        self._nodes[node.id] = node
        self._pending.append(d)
        return d

    def _new_typedef(self, node: native.Typedef):
        literal = self.equal_type(node.base, declare=node.is_enum())
        if is_void(literal):
            return VOID
        if node.is_fundamental():
            conversion = Conversion.NUM
        elif node.is_pointer():
            conversion = Conversion.PTR
        else:
            conversion = Conversion.VALUE
        root = node.root()
        return Typedef(node.id, node.name, node.file, cgo_name(node),
                       node.size or literal.size, literal, root.id, conversion)

    def complete(self) -> int:
        """Populate composite fields until a pass adds nothing; returns the pass count"""
        passes = 0
        while self._pending:
            pending, self._pending = self._pending, []
            for d in pending:
                if not d.populated:
                    self._populate(d)
            passes += 1
        return passes

    def _populate(self, d):
        node = self._nodes[d.id]
        if node.fields is None:
            d.fields = []
            return
        if isinstance(d, Union):
            fields = []
            for f in node.fields:
                t = self.declare_equal_type(f.type)
                if not f.name:
                    continue
                name = d.names.bind(upper_name(f.name), f"{d.id}.{f.name}")
                fields.append(UnionField(name, t))
        else:
            fields = []
            for f in node.fields:
                t = self.declare_equal_type(f.type)
                if not f.name:
                    fields.append(StructField("_", t))
                    continue
                name = d.names.bind(upper_name(f.name), f"{d.id}.{f.name}")
                fields.append(StructField(name, t))
        d.fields = fields

    def each_decl(self) -> Iterator[TypeDecl]:
        """Every declared descriptor followed by the declarables behind its typedef literal"""
        seen = set()
        for d in list(self.declarations.values()):
            while isinstance(d, TypeDecl) and id(d) not in seen:
                seen.add(id(d))
                yield d
                d = d.literal if isinstance(d, Typedef) else None
