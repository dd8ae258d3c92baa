"""
A generated Go package: the declarations it owns, their names and their order
"""

import re
from dataclasses import dataclass

from .clang_source import ClangDeclarationSource
from .config import HeaderConfig, PackageConfig
from .declarations import DeclarationDocument
from .errors import BindingError
from .functions import Function, FunctionLowering, Trampoline
from .lowering import TypeLowering
from .names import NameFilter, NameTable
from .type_model import Enum, GoType, Struct, TypeDecl, Typedef, Union


# Tokens an object-like macro body may consist of to become a Go constant
_MACRO_TOKEN = re.compile(r"""
    (?P<space>\s+)
  | (?P<float>(?:\d+\.\d*|\.\d+)(?:[eE][-+]?\d+)?[fFlL]?|\d+[eE][-+]?\d+[fFlL]?)
  | (?P<int>(?:0[xX][0-9a-fA-F]+|\d+)[uUlL]*)
  | (?P<string>"(?:\\.|[^"\\])*")
  | (?P<char>'(?:\\.|[^'\\])+')
  | (?P<ident>[A-Za-z_]\w*)
  | (?P<op><<|>>|[-+*/%|&^~()])
""", re.VERBOSE)


@dataclass
class Statistics:
    def_count: int = 0

    def print(self):
        print(f"{self.def_count} declarations wrapped.")


class Variable:
    """A native global variable, copied into a Go variable at package load"""

    def __init__(self, id: str, c_name: str, file: str, type: GoType):
        self.id = id
        self.c_name = c_name
        self.file = file
        self.type = type
        self.go_name = ""

    @property
    def cgo_name(self) -> str:
        return "C." + self.c_name

    def set_go_name(self, name: str):
        self.go_name = name

    def render(self) -> list[str]:
        lines = self.type.to_go("", self.go_name, self.cgo_name)
        return [f"// {self.c_name}", "var " + lines[0]] + lines[1:]


def _sort_key(d) -> str:
    return getattr(d, "assigned_name", d.go_name) or d.c_name


class Package:
    """Owns the declaration map and name tables of one Go package

    Included packages share the declaration document of the package that
    includes them and are only ever queried for names, never mutated.
    """

    def __init__(self, name: str, path: str = "", header: HeaderConfig = None, included=None,
                 type_rules: dict = None, arg_rules: dict = None, include_dirs=None,
                 clang_args=None, source=None, include_depth: int = None):
        self.name = name
        self.path = path or name
        self.header = header or HeaderConfig()
        self.included: list[Package] = list(included or [])
        self.type_rules = dict(type_rules or {})
        self.arg_rules = dict(arg_rules or {})
        self.include_dirs = list(include_dirs or [])
        self.clang_args = list(clang_args or [])
        self.source = source
        self.include_depth = include_depth
        self.filter = NameFilter(self.header.pattern or None, self.header.prefix or None)

        self.document: DeclarationDocument = None
        self.files: set[str] = set()
        self.lowering: TypeLowering = None
        self.function_lowering: FunctionLowering = None
        self.functions: list[Function] = []
        self.callbacks: list[Trampoline] = []
        self.variables: list[Variable] = []
        self.names = NameTable()
        self.statistics = Statistics()
        self.prepared = False
        self._referenced = set()

    @classmethod
    def from_config(cls, config: PackageConfig, included=None, include_dirs=None,
                    clang_args=None, source=None, include_depth: int = None) -> "Package":
        return cls(config.name, config.path, config.header, included, config.type_rules,
                   config.arg_rules, include_dirs, clang_args, source, include_depth)

    def __repr__(self):
        return f"<Package {self.name}>"

    # Loading

    def all_included(self) -> list["Package"]:
        """Included packages, transitively, each once"""
        result = []
        for inc in self.included:
            for p in inc.all_included() + [inc]:
                if p not in result:
                    result.append(p)
        return result

    def included_files(self) -> set[str]:
        files = set()
        for inc in self.all_included():
            files |= inc.files
        return files

    def load(self, document: DeclarationDocument = None):
        """Read the declarations once and share them with included packages"""
        if self.document is not None:
            return
        if document is None:
            document = self._read_document()
        self.document = document
        for inc in self.included:
            if inc.document is None:
                inc.load(document)
        self.files = document.file_set(self.header.path, exclude=self.included_files(),
                                    max_depth=self.include_depth)
        self.lowering = TypeLowering(document.pointer_size, self.type_rules, self.header.bool_types)
        self.function_lowering = FunctionLowering(self.lowering, self.upper_name)

    def _read_document(self) -> DeclarationDocument:
        if self.source is None:
            self.source = ClangDeclarationSource()
        headers = [inc.header for inc in self.all_included()] + [self.header]
        arg_rules = {}
        for p in self.all_included() + [self]:
            arg_rules.update(p.arg_rules)
        clang_args = list(self.clang_args)
        for h in headers:
            clang_args.extend(h.clang_args)
        return self.source.parse(headers, include_dirs=self.include_dirs,
                                 clang_args=clang_args, arg_rules=arg_rules)

    # Names

    def is_excluded(self, c_name: str) -> bool:
        return c_name in self.header.excluded

    def owns(self, file: str) -> bool:
        return file in self.files

    def exported(self, c_name: str, file: str) -> bool:
        return not self.is_excluded(c_name) and self.owns(file) and self.filter.matches(c_name)

    def upper_name(self, c_name: str) -> str:
        return self.filter.upper_name(c_name)

    def local_name(self, decl) -> str:
        """Upper name of decl, unique within the package"""
        return self.names.bind(self.upper_name(decl.c_name), decl.id)

    def global_name(self, decl) -> str:
        """Name of decl in this package or, qualified, in an included one; "" if neither exports it"""
        if not decl.c_name:
            return ""
        if self.owns(decl.file) and self.filter.matches(decl.c_name):
            return self.local_name(decl)
        for inc in self.included:
            name = inc.lookup_name(decl)
            if name and "." not in name:
                self._referenced.add(inc)
                return f"{inc.name}.{name}"
        return ""

    def lookup_name(self, decl) -> str:
        """Read-only counterpart of global_name for packages that include this one"""
        if not decl.c_name or not self.owns(decl.file) or not self.filter.matches(decl.c_name):
            return ""
        return self.names.name_of(decl.id) or self.upper_name(decl.c_name)

    def reset_names(self):
        self.names.reset()
        self._referenced.clear()

    def referenced_packages(self) -> list["Package"]:
        """Included packages whose names appear in this package, in include order"""
        return [p for p in self.included if p in self._referenced]

    # Preparation

    def prepare(self):
        """Lower, name and prune everything this package declares"""
        if self.prepared:
            return
        self.load()
        self.reset_names()
        self._prepare_functions()
        self._prepare_variables()
        self._prepare_types_and_names()
        self.prepared = True

    def _prepare_functions(self):
        functions = []
        callbacks = {}
        for fn in self.document.functions:
            if fn.variadic or not self.exported(fn.name, fn.file):
                continue
            if fn.callback is None:
                functions.append(self.function_lowering.new_function(fn))
                continue
            trampoline = self.function_lowering.new_trampoline(fn.callback)
            trampoline = callbacks.setdefault(trampoline.name, trampoline)
            functions.append(self.function_lowering.transform_callback(fn, trampoline))
        self.functions = functions
        self.callbacks = list(callbacks.values())

    def _prepare_variables(self):
        self.variables = [
            Variable(v.id, v.name, v.file, self.lowering.declare_equal_type(v.type))
            for v in self.document.variables if self.exported(v.name, v.file)
        ]

    def _prepare_types_and_names(self):
        lowering = self.lowering
        lowering.complete()
        declarations = lowering.declarations
        excluded = set()

        # A typedef spelling the same name as its composite takes over the
        # composite's identity, so both resolve to one name and one declaration.
        for d in list(declarations.values()):
            if not isinstance(d, Typedef) or d.id == d.root_id:
                continue
            o = lowering.find(d.root_id)
            if isinstance(o, (Struct, Union)) and o.c_name == d.c_name:
                excluded.add(o.id)
                d.id = d.root_id
                o.superseded_by = d
                d.names = o.names

        # Typedefs are named first so an alias keeps the plain name over its literal.
        ordered = sorted(declarations.items(), key=lambda kv: not isinstance(kv[1], Typedef))
        for key, d in ordered:
            name = self.global_name(d)
            if name:
                d.set_go_name(name)
            else:
                excluded.add(key)

        for d in declarations.values():
            if not isinstance(d, Typedef) or not isinstance(d.literal, (Struct, Union)):
                continue
            lit = d.literal
            if lit.superseded_by is d:
                lit.set_go_name(d.assigned_name)
            elif not lit.assigned_name:
                # an inlined composite's fields share the alias's method scope
                d.names = lit.names

        # Methods need the receiver names settled.
        functions = []
        for f in self.functions:
            m = f.to_method()
            if m is not None and not self.is_excluded(m.owner.c_name):
                owner = m.owner
                while owner.superseded_by is not None:
                    owner = owner.superseded_by
                m.owner = owner
                if owner.add_method(m):
                    m.set_go_name(owner.names.bind(self.upper_name(f.c_name), f.id))
            else:
                f.set_go_name(self.local_name(f))
                functions.append(f)
        self.functions = functions

        # Every owned enumeration is declared, whether referenced or not.
        for em in self.document.enumerations:
            if self.is_excluded(em.name) or not self.owns(em.file):
                continue
            e = lowering.declare_equal_type(em)
            if not isinstance(e, Enum):
                continue
            excluded.discard(e.id)
            name = self.global_name(e)
            if name:
                e.set_go_name(name)
            for v in e.values:
                v.go_name = self.global_name(v)

        # A named typedef writes its enumeration's constants itself.
        for d in list(declarations.values()):
            if isinstance(d, Typedef) and isinstance(d.literal, Enum) and d.assigned_name:
                excluded.add(d.literal.id)
                d.literal.set_go_name(d.assigned_name)

        for d in declarations.values():
            d.optimize_names()

        for v in self.variables:
            v.set_go_name(self.local_name(v))

        for key in excluded:
            lowering.delete(key)

    # Ordered results

    def types(self) -> list[TypeDecl]:
        """Declarations to write, sorted by Go name falling back to native name"""
        ds = [
            d for d in self.lowering.declarations.values()
            if not self.is_excluded(d.c_name) and "." not in d.assigned_name
        ]
        return sorted(ds, key=_sort_key)

    def sorted_functions(self) -> list[Function]:
        fs = [f for f in self.functions if not self.is_excluded(f.c_name)]
        return sorted(fs, key=_sort_key)

    def sorted_variables(self) -> list[Variable]:
        vs = [v for v in self.variables if not self.is_excluded(v.c_name)]
        return sorted(vs, key=_sort_key)

    def sorted_callbacks(self) -> list[Trampoline]:
        return sorted(self.callbacks, key=lambda t: t.go_name)

    # Constants

    def constants(self) -> list[tuple[str, str]]:
        """(Go name, Go expression) for every object-like macro with a constant body"""
        if self.document is None:
            raise BindingError(f"Package '{self.name}' is not loaded")
        macros = [
            m for m in self.document.macros
            if self.exported(m.name, m.file) and m.body.strip()
        ]
        names = {m.name: self.names.bind(self.upper_name(m.name), "macro:" + m.name) for m in macros}
        consts = []
        for m in macros:
            body = self._constant_body(m.body, names)
            if body is not None:
                consts.append((names[m.name], body))
        return consts

    @staticmethod
    def _constant_body(body: str, names: dict) -> str:
        out = []
        pos = 0
        while pos < len(body):
            match = _MACRO_TOKEN.match(body, pos)
            if match is None:
                return None
            pos = match.end()
            kind, text = match.lastgroup, match.group()
            if kind == "space":
                continue
            if kind == "int":
                text = text.rstrip("uUlL")
            elif kind == "float":
                text = text.rstrip("fFlL")
            elif kind == "ident":
                if text not in names:
                    return None
                text = names[text]
            out.append(text)
        result = ""
        for token in out:
            if result and not result.endswith(("(", "-", "~")) and token != ")":
                result += " "
            result += token
        return result or None
