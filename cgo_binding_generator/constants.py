"""
Constants and mappings for cgo bindings generation
"""

from clang.cindex import TypeKind


# Native pointer width used when the declaration source does not report one
DEFAULT_POINTER_SIZE = 8

# Mapping from (numeric kind, bit width) to Go type names
GO_NUMBER_MAP = {
    ("signed", 8): "int8",
    ("unsigned", 8): "byte",  # byte overrides uint8
    ("signed", 16): "int16",
    ("unsigned", 16): "uint16",
    ("signed", 32): "int32",
    ("unsigned", 32): "uint32",
    ("signed", 64): "int64",
    ("unsigned", 64): "uint64",
    ("float", 32): "float32",
    ("float", 64): "float64",
    ("complex", 64): "complex64",
    ("complex", 128): "complex128",
    ("bool", 8): "bool",
}

# Mapping from C fundamental type names to cgo type names
CGO_FUNDAMENTAL_MAP = {
    "char": "C.char",
    "signed char": "C.schar",
    "unsigned char": "C.uchar",
    "short": "C.short",
    "unsigned short": "C.ushort",
    "int": "C.int",
    "unsigned int": "C.uint",
    "long": "C.long",
    "unsigned long": "C.ulong",
    "long long": "C.longlong",
    "unsigned long long": "C.ulonglong",
    "float": "C.float",
    "double": "C.double",
    "_Complex float": "C.complexfloat",
    "_Complex double": "C.complexdouble",
    "_Bool": "C._Bool",
}

# cgo spells a few C names differently
SPECIAL_CGO_NAMES = {
    "__va_list_tag": "_Ctype_struct___va_list_tag",
}

# Identifiers that cannot be used as Go parameter names
GO_RESERVED_NAMES = {
    "break", "case", "chan", "const", "continue", "default", "defer", "else",
    "fallthrough", "for", "func", "go", "goto", "if", "import", "interface",
    "map", "package", "range", "return", "select", "struct", "switch", "type",
    "var",
    "true", "false", "iota", "nil",
    "append", "cap", "close", "complex", "copy", "delete", "imag", "len",
    "make", "new", "panic", "print", "println", "real", "recover",
    "C", "unsafe",
}

# Go type used for pointers whose pointee cannot be named
OPAQUE_POINTER = "uintptr"

# Go/cgo spelling of a function used as a value
OPAQUE_FUNCTION = "[0]byte"

# Name of the Go result parameter for a native return value
RETURN_NAME = "ret"

# Suffixes of the two halves of a callback trampoline
CALLBACK_GO_SUFFIX = "_Go"
CALLBACK_C_SUFFIX = "_C"

# Headers every generated cgo preamble needs
REQUIRED_C_INCLUDES = ["#include <stdlib.h>"]

# Go imports every generated file needs
REQUIRED_IMPORTS = ['"unsafe"']

# Map from Python platform machine names to GOARCH values
GOARCH_MAP = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
    "riscv64": "riscv64",
}

# Default output file stem, suffixed with the target architecture
DEFAULT_FILE_STEM = "auto_"

# Mapping from libclang fundamental type kinds to (C name, numeric kind)
CLANG_FUNDAMENTAL_MAP = {
    TypeKind.VOID: ("void", "void"),
    TypeKind.BOOL: ("_Bool", "bool"),
    TypeKind.CHAR_S: ("char", "signed"),
    TypeKind.CHAR_U: ("char", "unsigned"),
    TypeKind.SCHAR: ("signed char", "signed"),
    TypeKind.UCHAR: ("unsigned char", "unsigned"),
    TypeKind.SHORT: ("short", "signed"),
    TypeKind.USHORT: ("unsigned short", "unsigned"),
    TypeKind.INT: ("int", "signed"),
    TypeKind.UINT: ("unsigned int", "unsigned"),
    TypeKind.LONG: ("long", "signed"),
    TypeKind.ULONG: ("unsigned long", "unsigned"),
    TypeKind.LONGLONG: ("long long", "signed"),
    TypeKind.ULONGLONG: ("unsigned long long", "unsigned"),
    TypeKind.INT128: ("__int128", "signed"),
    TypeKind.UINT128: ("unsigned __int128", "unsigned"),
    TypeKind.FLOAT: ("float", "float"),
    TypeKind.DOUBLE: ("double", "float"),
    TypeKind.LONGDOUBLE: ("long double", "float"),
}

# Character kinds a C string points to
CLANG_CHAR_KINDS = {TypeKind.CHAR_S, TypeKind.CHAR_U, TypeKind.SCHAR, TypeKind.UCHAR}

# Enumeration backing kinds that make the enumeration unsigned
CLANG_UNSIGNED_KINDS = {
    TypeKind.CHAR_U, TypeKind.UCHAR, TypeKind.USHORT, TypeKind.UINT, TypeKind.ULONG,
    TypeKind.ULONGLONG, TypeKind.UINT128,
}

# Name of the in-memory header that includes every package header
UMBRELLA_HEADER = "_cgo_binding_umbrella.h"
