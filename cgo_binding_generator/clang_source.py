"""
Declaration source backed by libclang

Parses the package headers as one translation unit and turns the cursors into
the native declaration model. Pointer arguments are classified here, so the
lowering engine never has to look at C syntax.
"""

import os
import subprocess
import sys
from typing import Optional

import clang.cindex
from clang.cindex import CursorKind, StorageClass, TypeKind

from . import declarations as native
from .constants import (
    CLANG_CHAR_KINDS, CLANG_FUNDAMENTAL_MAP, CLANG_UNSIGNED_KINDS, DEFAULT_POINTER_SIZE,
    UMBRELLA_HEADER,
)
from .declarations import PtrKind
from .errors import DeclarationSourceError

_ARRAY_KINDS = (TypeKind.CONSTANTARRAY, TypeKind.INCOMPLETEARRAY, TypeKind.VARIABLEARRAY,
                TypeKind.DEPENDENTSIZEDARRAY)


def system_include_dirs() -> list[str]:
    """Ask the system clang for its include search path so standard headers resolve"""
    try:
        result = subprocess.run(
            ["clang", "-E", "-v", "-x", "c", "-"],
            input=b"",
            capture_output=True,
            timeout=5,
        )
    except (OSError, subprocess.SubprocessError):
        return [p for p in ("/usr/local/include", "/usr/include") if os.path.isdir(p)]
    dirs = []
    in_includes = False
    for line in result.stderr.decode("utf-8", errors="ignore").splitlines():
        if "#include <...> search starts here:" in line:
            in_includes = True
            continue
        if in_includes:
            if line.startswith("End of search list"):
                break
            path = line.strip()
            if path.startswith("/"):
                dirs.append(path)
    return dirs


def _file_of(cursor) -> str:
    f = cursor.location.file
    if f is None:
        return ""
    return os.path.realpath(f.name)


def _is_anonymous(decl) -> bool:
    spelling = decl.spelling
    return not spelling or "(" in spelling or decl.is_anonymous()


def _size(t) -> int:
    # libclang reports layout errors as negative sizes
    return max(t.get_size(), 0)


def _function_type(node: native.NativeType) -> Optional[native.FunctionType]:
    """The function type behind a function pointer, through typedefs"""
    node = native.strip_typedefs(node)
    if not isinstance(node, native.PointerType):
        return None
    pointee = native.strip_typedefs(node.pointee)
    if isinstance(pointee, native.FunctionType):
        return pointee
    return None


class _DocumentBuilder:
    """Walks one translation unit into a DeclarationDocument"""

    def __init__(self, tu, arg_rules: dict = None):
        self.tu = tu
        self.arg_rules = arg_rules or {}
        self.document = native.DeclarationDocument()
        self._types = {}
        self._typedef_cursors = {}
        self._pointer_size = None

    def build(self) -> native.DeclarationDocument:
        functions = set()
        variables = set()
        for cursor in self.tu.cursor.get_children():
            if cursor.location.file is None:
                continue
            kind = cursor.kind
            if kind == CursorKind.FUNCTION_DECL:
                self._add_function(cursor, functions)
            elif kind == CursorKind.VAR_DECL:
                self._add_variable(cursor, variables)
            elif kind == CursorKind.ENUM_DECL and cursor.is_definition():
                node = self._type(cursor.type)
                if node not in self.document.enumerations:
                    self.document.enumerations.append(node)
            elif kind == CursorKind.MACRO_DEFINITION:
                self._add_macro(cursor)

        for inclusion in self.tu.get_includes():
            if inclusion.source is None or inclusion.include is None:
                continue
            source = os.path.realpath(inclusion.source.name)
            included = os.path.realpath(inclusion.include.name)
            files = self.document.includes.setdefault(source, [])
            if included not in files:
                files.append(included)

        self.document.pointer_size = self._pointer_size or DEFAULT_POINTER_SIZE
        return self.document

    # Declarations

    def _add_function(self, cursor, seen):
        usr = cursor.get_usr() or cursor.spelling
        if usr in seen:
            return
        seen.add(usr)
        name = cursor.spelling
        arg_cursors = list(cursor.get_arguments())
        arguments = [self._argument(name, a.spelling, a.type) for a in arg_cursors]
        t = cursor.type
        fn = native.Function(
            id=usr,
            name=name,
            file=_file_of(cursor),
            return_type=self._type(cursor.result_type),
            arguments=arguments,
            variadic=t.kind == TypeKind.FUNCTIONPROTO and t.is_function_variadic(),
        )
        fn.callback = self._callback(fn, arg_cursors)
        self.document.functions.append(fn)

    def _add_variable(self, cursor, seen):
        if cursor.storage_class == StorageClass.STATIC:
            return
        usr = cursor.get_usr() or cursor.spelling
        if usr in seen:
            return
        seen.add(usr)
        self.document.variables.append(
            native.Variable(usr, cursor.spelling, _file_of(cursor), self._type(cursor.type)))

    def _add_macro(self, cursor):
        tokens = list(cursor.get_tokens())
        if len(tokens) < 2:
            return
        name, first = tokens[0], tokens[1]
        # function-like macros have "(" directly after the name
        if first.spelling == "(" and first.extent.start.offset == name.extent.end.offset:
            return
        body = " ".join(t.spelling for t in tokens[1:])
        self.document.macros.append(native.Macro(cursor.spelling, _file_of(cursor), body))

    def _argument(self, fn_name: str, arg_name: str, t) -> native.Argument:
        is_array = t.kind in _ARRAY_KINDS
        if is_array:
            element = self._type(t.element_type)
            node = native.PointerType("ptr:" + element.id, self._pointer_size or DEFAULT_POINTER_SIZE,
                                      t.spelling, pointee=element)
        else:
            node = self._type(t)
        return native.Argument(arg_name, node, self._ptr_kind(fn_name, arg_name, t, is_array))

    def _ptr_kind(self, fn_name: str, arg_name: str, t, is_array: bool) -> PtrKind:
        if arg_name:
            rule = self.arg_rules.get(f"{fn_name}.{arg_name}") or self.arg_rules.get(arg_name)
            if rule is not None:
                return rule
        if is_array:
            return PtrKind.ARRAY
        canonical = t.get_canonical()
        if canonical.kind != TypeKind.POINTER:
            return PtrKind.NOT_SET
        while t.kind == TypeKind.ELABORATED:
            t = t.get_named_type()
        if t.kind == TypeKind.TYPEDEF:
            return PtrKind.TYPEDEF
        pointee = canonical.get_pointee()
        if pointee.kind in CLANG_CHAR_KINDS:
            return PtrKind.STRING if pointee.is_const_qualified() else PtrKind.PLAIN
        if pointee.kind == TypeKind.POINTER and pointee.get_pointee().kind in CLANG_CHAR_KINDS:
            return PtrKind.STRING_ARRAY
        return PtrKind.PLAIN

    def _callback(self, fn: native.Function, arg_cursors) -> Optional[native.CallbackInfo]:
        """The first function-pointer argument that comes with a user-data argument"""
        data_indices = [i for i, a in enumerate(fn.arguments) if native.is_void_pointer(a.type)]
        if not data_indices:
            return None
        for i, a in enumerate(fn.arguments):
            ft = _function_type(a.type)
            if ft is None or ft.variadic:
                continue
            inner = [j for j, b in enumerate(ft.arguments) if native.is_void_pointer(b.type)]
            candidates = [j for j in data_indices if j != i]
            if not inner or not candidates:
                continue
            data_index = i + 1 if i + 1 in candidates else candidates[0]
            name = a.type.name if isinstance(a.type, native.Typedef) else ""
            names = self._parameter_names(a.type, arg_cursors[i] if i < len(arg_cursors) else None)
            return native.CallbackInfo(i, data_index, inner[0], name, self._named(ft, names))
        return None

    def _parameter_names(self, node, arg_cursor) -> list[str]:
        cursor = arg_cursor
        if isinstance(node, native.Typedef):
            cursor = self._typedef_cursors.get(node.id, arg_cursor)
        if cursor is None:
            return []
        return [c.spelling for c in cursor.get_children() if c.kind == CursorKind.PARM_DECL]

    @staticmethod
    def _named(ft: native.FunctionType, names: list[str]) -> native.FunctionType:
        if len(names) != len(ft.arguments):
            return ft
        arguments = [native.Argument(n or a.name, a.type, a.ptr_kind)
                     for n, a in zip(names, ft.arguments)]
        return native.FunctionType(ft.id, ft.size, ft.spelling, return_type=ft.return_type,
                                   arguments=arguments, variadic=ft.variadic)

    # Types

    def _type(self, t) -> native.NativeType:
        kind = t.kind
        if kind == TypeKind.ELABORATED:
            return self._type(t.get_named_type())
        if kind in CLANG_FUNDAMENTAL_MAP:
            return self._fundamental(t)
        if kind == TypeKind.COMPLEX:
            element = self._fundamental(t.element_type)
            key = "fundamental:_Complex " + element.name
            if key not in self._types:
                self._types[key] = native.FundamentalType(
                    key, _size(t), "_Complex " + element.name, name="_Complex " + element.name,
                    kind="complex")
            return self._types[key]
        if kind == TypeKind.TYPEDEF:
            return self._typedef(t)
        if kind == TypeKind.RECORD:
            return self._record(t)
        if kind == TypeKind.ENUM:
            return self._enum(t)
        if kind == TypeKind.POINTER:
            size = _size(t)
            if self._pointer_size is None and size > 0:
                self._pointer_size = size
            pointee = self._type(t.get_pointee())
            return native.PointerType("ptr:" + pointee.id, size, t.spelling, pointee=pointee)
        if kind == TypeKind.CONSTANTARRAY:
            element = self._type(t.element_type)
            return native.ArrayType(f"array:{t.element_count}:{element.id}", _size(t), t.spelling,
                                    element=element, length=t.element_count)
        if kind == TypeKind.INCOMPLETEARRAY:
            element = self._type(t.element_type)
            return native.ArrayType("array:0:" + element.id, 0, t.spelling, element=element, length=0)
        if kind in (TypeKind.VARIABLEARRAY, TypeKind.DEPENDENTSIZEDARRAY):
            element = self._type(t.element_type)
            return native.PointerType("ptr:" + element.id, self._pointer_size or DEFAULT_POINTER_SIZE,
                                      t.spelling, pointee=element)
        if kind in (TypeKind.FUNCTIONPROTO, TypeKind.FUNCTIONNOPROTO):
            return self._function(t)
        canonical = t.get_canonical()
        if canonical.kind != kind:
            return self._type(canonical)
        return native.UnsupportedType("unsupported:" + t.spelling, 0, t.spelling, kind=kind.name)

    def _fundamental(self, t) -> native.FundamentalType:
        name, num_kind = CLANG_FUNDAMENTAL_MAP[t.kind]
        key = "fundamental:" + name
        node = self._types.get(key)
        if node is None:
            size = 0 if t.kind == TypeKind.VOID else _size(t)
            node = native.FundamentalType(key, size, name, name=name, kind=num_kind)
            self._types[key] = node
        return node

    def _typedef(self, t) -> native.Typedef:
        decl = t.get_declaration()
        key = decl.get_usr() or "typedef:" + decl.spelling
        node = self._types.get(key)
        if node is None:
            node = native.Typedef(key, _size(t), decl.spelling, name=decl.spelling,
                                  file=_file_of(decl))
            # registered before the base so self-referencing structs terminate
            self._types[key] = node
            self._typedef_cursors[key] = decl
            node.base = self._type(decl.underlying_typedef_type)
        return node

    def _record(self, t):
        decl = t.get_declaration()
        key = decl.get_usr() or "record:" + t.spelling
        node = self._types.get(key)
        if node is None:
            cls = native.Union if decl.kind == CursorKind.UNION_DECL else native.Struct
            name = "" if _is_anonymous(decl) else decl.spelling
            node = cls(key, _size(t), t.spelling, name=name, file=_file_of(decl))
            self._types[key] = node
            node.fields = self._fields(t, decl)
        return node

    def _fields(self, t, decl):
        """Fields in declaration order, or None when the layout is unknown"""
        if decl.get_definition() is None or t.get_size() < 0:
            return None
        fields = []
        for f in t.get_fields():
            if f.is_bitfield():
                return None
            name = "" if "(" in f.spelling else f.spelling
            fields.append(native.Field(name, self._type(f.type)))
        return fields

    def _enum(self, t) -> native.Enumeration:
        decl = t.get_declaration()
        key = decl.get_usr() or "enum:" + t.spelling
        node = self._types.get(key)
        if node is None:
            values = [
                native.EnumValue(c.get_usr() or c.spelling, c.spelling, c.enum_value, _file_of(c))
                for c in decl.get_children() if c.kind == CursorKind.ENUM_CONSTANT_DECL
            ]
            signed = decl.enum_type.get_canonical().kind not in CLANG_UNSIGNED_KINDS
            name = "" if _is_anonymous(decl) else decl.spelling
            node = native.Enumeration(key, _size(t), t.spelling, name=name, file=_file_of(decl),
                                      values=values, signed=signed)
            self._types[key] = node
        return node

    def _function(self, t) -> native.FunctionType:
        arguments = []
        variadic = False
        if t.kind == TypeKind.FUNCTIONPROTO:
            arguments = [self._argument("", "", a) for a in t.argument_types()]
            variadic = t.is_function_variadic()
        return native.FunctionType("function:" + t.spelling, 0, t.spelling,
                                   return_type=self._type(t.get_result()),
                                   arguments=arguments, variadic=variadic)


class ClangDeclarationSource:
    """Reads C declarations through libclang"""

    def __init__(self, system_includes: bool = True):
        self.system_includes = system_includes
        self._index = None

    @property
    def index(self):
        if self._index is None:
            try:
                self._index = clang.cindex.Index.create()
            except clang.cindex.LibclangError as e:
                raise DeclarationSourceError(f"libclang is not available: {e}") from e
        return self._index

    def parse(self, headers, include_dirs=None, clang_args=None,
              arg_rules: dict = None) -> native.DeclarationDocument:
        """Parse the headers (included packages first) as one translation unit"""
        if not headers:
            raise DeclarationSourceError("No header to parse")
        for h in headers:
            if not os.path.isfile(h.path):
                raise DeclarationSourceError("Header file cannot be found", header=h.path)
        main_header = headers[-1].path

        lines = []
        args = ["-x", "c"]
        for h in headers:
            if h.other_code:
                lines.append(h.other_code)
            lines.append(f"#include <{h.file}>")
            args.append("-I" + os.path.dirname(os.path.abspath(h.path)))
        args.extend("-I" + d for d in include_dirs or [])
        args.extend(clang_args or [])
        if self.system_includes:
            args.extend("-I" + d for d in system_include_dirs())

        umbrella = os.path.join(os.getcwd(), UMBRELLA_HEADER)
        try:
            tu = self.index.parse(
                umbrella,
                args=args,
                unsaved_files=[(umbrella, "\n".join(lines) + "\n")],
                options=clang.cindex.TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD,
            )
        except clang.cindex.TranslationUnitLoadError as e:
            raise DeclarationSourceError(f"libclang could not parse the headers: {e}",
                                         header=main_header) from e

        self._check_diagnostics(tu, main_header)
        return _DocumentBuilder(tu, arg_rules).build()

    @staticmethod
    def _check_diagnostics(tu, header: str):
        # Check for parse errors (warnings don't stop processing)
        errors = []
        fatal = False
        for diag in tu.diagnostics:
            if diag.severity >= clang.cindex.Diagnostic.Error:
                print(f"Error in {header}: {diag.spelling}", file=sys.stderr)
                errors.append(diag.spelling)
            if diag.severity >= clang.cindex.Diagnostic.Fatal:
                fatal = True
        if fatal:
            raise DeclarationSourceError(
                f"Fatal parsing errors: {'; '.join(errors)}. "
                "Check include directories and header file accessibility.",
                header=header,
            )
