"""
Pytest configuration and fixtures
"""

import os
import pytest
from pathlib import Path

from cgo_binding_generator import declarations as native
from cgo_binding_generator.clang_source import ClangDeclarationSource
from cgo_binding_generator.config import HeaderConfig
from cgo_binding_generator.declarations import DeclarationDocument, PtrKind
from cgo_binding_generator.errors import DeclarationSourceError
from cgo_binding_generator.package import Package


class NativeBuilder:
    """Builds a declaration document by hand, shaped like the libclang source's output"""

    def __init__(self, file: str, document: DeclarationDocument = None):
        self.file = file
        self.document = document or DeclarationDocument()
        self.document.includes.setdefault(file, [])

    def fundamental(self, name, size, kind="signed"):
        return native.FundamentalType(id="c:" + name.replace(" ", "_"), size=size,
                                      spelling=name, name=name, kind=kind)

    def void(self):
        return self.fundamental("void", 0, "void")

    def int(self):
        return self.fundamental("int", 4)

    def uint(self):
        return self.fundamental("unsigned int", 4, "unsigned")

    def char(self):
        return self.fundamental("char", 1)

    def double(self):
        return self.fundamental("double", 8, "float")

    def pointer(self, pointee):
        return native.PointerType(id=f"ptr({pointee.id})", size=8, pointee=pointee)

    def array(self, element, length):
        return native.ArrayType(id=f"arr({element.id})[{length}]", size=element.size * length,
                                element=element, length=length)

    def struct(self, name, fields=None, size=None, file=None):
        """fields is a list of (name, type); None leaves the layout unknown"""
        if size is None:
            size = sum(t.size for _, t in fields or [])
        fields = None if fields is None else [native.Field(n, t) for n, t in fields]
        return native.Struct(id="c:@S@" + name, size=size, name=name,
                             file=file or self.file, fields=fields)

    def union(self, name, fields, size=None, file=None):
        if size is None:
            size = max(t.size for _, t in fields)
        return native.Union(id="c:@U@" + name, size=size, name=name, file=file or self.file,
                            fields=[native.Field(n, t) for n, t in fields])

    def typedef(self, name, base, file=None):
        return native.Typedef(id="c:lib.h@T@" + name, size=base.size, name=name,
                              file=file or self.file, base=base)

    def enum(self, name, values, size=4, signed=True, file=None):
        file = file or self.file
        ident = "c:@E@" + (name or "anon" + str(len(self.document.enumerations)))
        e = native.Enumeration(
            id=ident, size=size, name=name, file=file, signed=signed,
            values=[native.EnumValue(f"{ident}@{n}", n, v, file) for n, v in values],
        )
        self.document.enumerations.append(e)
        return e

    def function_type(self, ret, *args):
        return native.FunctionType(id=f"fn{len(args)}({ret.id})", return_type=ret,
                                   arguments=[self.argument(*a) for a in args])

    @staticmethod
    def argument(name, type, kind=PtrKind.NOT_SET):
        return native.Argument(name, type, kind)

    def function(self, name, ret, *args, variadic=False, callback=None, file=None):
        fn = native.Function(id="c:@F@" + name, name=name, file=file or self.file,
                             return_type=ret, arguments=[self.argument(*a) for a in args],
                             variadic=variadic, callback=callback)
        self.document.functions.append(fn)
        return fn

    def variable(self, name, type, file=None):
        v = native.Variable(id="c:@" + name, name=name, file=file or self.file, type=type)
        self.document.variables.append(v)
        return v

    def macro(self, name, body, file=None):
        m = native.Macro(name=name, file=file or self.file, body=body)
        self.document.macros.append(m)
        return m

    def include(self, other: "NativeBuilder"):
        self.document.includes.setdefault(self.file, []).append(other.file)


def write_header(directory: Path, name: str, content: str = "") -> str:
    path = directory / name
    path.write_text(content)
    return os.path.realpath(path)


def make_package(builder: NativeBuilder, name="lib", included=None, type_rules=None,
                 prepare=True, **header) -> Package:
    """A package over builder's header, loaded from builder's document"""
    h = HeaderConfig(dir=os.path.dirname(builder.file), file=os.path.basename(builder.file),
                     **header)
    package = Package(name, header=h, included=included, type_rules=type_rules)
    package.load(builder.document)
    if prepare:
        package.prepare()
    return package


@pytest.fixture
def temp_dir(tmp_path):
    """Temporary directory with symlinks resolved, matching the paths the source reports"""
    return Path(os.path.realpath(tmp_path))


@pytest.fixture
def builder(temp_dir):
    """Builder for a document rooted at an empty lib.h"""
    return NativeBuilder(write_header(temp_dir, "lib.h"))


@pytest.fixture
def point_builder(builder):
    """The point_t example: a struct returned by value from make_point"""
    i = builder.int()
    point = builder.struct("point_t", [("x", i), ("y", i)])
    builder.function("make_point", point, ("x", i), ("y", i))
    return builder


@pytest.fixture
def clang_source():
    """A libclang declaration source; skips when libclang cannot be loaded"""
    source = ClangDeclarationSource()
    try:
        source.index
    except DeclarationSourceError as e:
        pytest.skip(str(e))
    return source


@pytest.fixture
def point_header(temp_dir):
    """Create a temporary C header with the point_t example"""
    include_dir = temp_dir / "include"
    include_dir.mkdir()
    write_header(include_dir, "point.h", """
#ifndef POINT_H
#define POINT_H

#define POINT_MAX 100
#define POINT_MIN (-POINT_MAX)

struct point_t {
    int x;
    int y;
};

typedef struct point_t point_t;

typedef enum {
    POINT_RED = 1,
    POINT_GREEN = 2,
    POINT_BLUE = 16
} point_color_t;

point_t point_make(int x, int y);
int point_length(point_t *p);
void point_set_name(point_t *p, const char *name);
const char *point_name(point_t *p);
void point_walk(int (*visit)(point_t *p, void *user_data), void *user_data);
void point_scan(int (*visit)(point_t *p, void *user_data), void *user_data, int limit);

#endif
""")
    return include_dir
