"""
Go, C and header file text for a prepared package
"""

from .constants import REQUIRED_C_INCLUDES, REQUIRED_IMPORTS
from .conversions import Conversion, size_assert
from .type_model import TypeDecl


def _needs_size_assert(d: TypeDecl) -> bool:
    return (d.conversion == Conversion.VALUE and d.size > 0 and bool(d.cgo_name)
            and bool(d.assigned_name))


class OutputBuilder:
    """Builds the generated files of one package"""

    @staticmethod
    def preamble(package, h_file_name: str = None) -> list[str]:
        """The cgo comment block in front of import "C" """
        header = package.header
        parts = ["/*"]
        if header.other_code:
            parts.append(header.other_code)
        parts.append(f"#include <{header.file}>")
        if package.callbacks and h_file_name:
            parts.append(f'#include "{h_file_name}"')
        parts.extend(REQUIRED_C_INCLUDES)
        for directive in header.cgo_directives:
            parts.append(f"#cgo {directive}")
        parts.append("*/")
        parts.append('import "C"')
        return parts

    @staticmethod
    def imports(package) -> list[str]:
        parts = ["import ("]
        for imp in REQUIRED_IMPORTS:
            parts.append("\t" + imp)
        for inc in package.referenced_packages():
            parts.append(f'\t"{inc.path}"')
        parts.append(")")
        return parts

    @staticmethod
    def size_asserts(types) -> list[str]:
        checks = []
        for d in types:
            if _needs_size_assert(d):
                checks.extend(size_assert(d.cgo_name, d.go_name))
        if not checks:
            return []
        return ["func init() {"] + ["\t" + line for line in checks] + ["}", ""]

    @staticmethod
    def build_go(package, h_file_name: str = None) -> str:
        """Build the Go file; counts every written declaration in the package statistics"""
        stats = package.statistics
        types = package.types()
        parts = [f"package {package.name}", ""]
        parts.extend(OutputBuilder.preamble(package, h_file_name))
        parts.append("")
        parts.extend(OutputBuilder.imports(package))
        parts.append("")
        parts.append("var _ unsafe.Pointer")
        parts.append("")
        parts.extend(OutputBuilder.size_asserts(types))

        for v in package.sorted_variables():
            parts.extend(v.render())
            parts.append("")
            stats.def_count += 1

        for d in types:
            lines = d.declare()
            if lines:
                parts.extend(lines)
                stats.def_count += 1

        for f in package.sorted_functions():
            parts.extend(f.render())
            parts.append("")
            stats.def_count += 1

        for t in package.sorted_callbacks():
            parts.extend(t.render())
            parts.append("")

        return "\n".join(parts)

    @staticmethod
    def build_c(package) -> str:
        parts = ['#include "_cgo_export.h"', ""]
        for t in package.sorted_callbacks():
            parts.extend(t.c_stub())
            parts.append("")
        return "\n".join(parts)

    @staticmethod
    def build_h(package) -> str:
        parts = []
        for t in package.sorted_callbacks():
            parts.append(t.c_declaration())
            parts.append("")
        return "\n".join(parts)

    @staticmethod
    def build_constants(package) -> str:
        consts = package.constants()
        parts = [f"package {package.name}", ""]
        if consts:
            parts.append("const (")
            for name, value in consts:
                parts.append(f"\t{name} = {value}")
            parts.append(")")
            parts.append("")
        return "\n".join(parts)
