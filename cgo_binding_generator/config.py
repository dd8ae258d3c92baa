"""
XML configuration file parsing for cgo bindings generator
"""

import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

from .declarations import PtrKind


@dataclass
class HeaderConfig:
    """The entry header of a package and how its names are filtered"""
    dir: str = ""
    file: str = ""
    pattern: str = ""
    prefix: str = ""
    other_code: str = ""
    # native names never declared by the package
    excluded: list[str] = field(default_factory=list)
    cgo_directives: list[str] = field(default_factory=list)
    bool_types: list[str] = field(default_factory=list)
    clang_args: list[str] = field(default_factory=list)

    @property
    def path(self) -> str:
        return os.path.join(self.dir, self.file)


@dataclass
class PackageConfig:
    """Configuration for one generated Go package"""
    name: str
    path: str = ""
    header: HeaderConfig = field(default_factory=HeaderConfig)
    included: list[str] = field(default_factory=list)
    type_rules: dict[str, str] = field(default_factory=dict)
    arg_rules: dict[str, PtrKind] = field(default_factory=dict)
    output_dir: str = ""
    go_file: str = ""
    c_file: str = ""
    h_file: str = ""
    constants_file: str = ""


@dataclass
class BindingConfig:
    """Configuration for cgo bindings generation"""
    packages: list[PackageConfig] = field(default_factory=list)
    include_dirs: list[str] = field(default_factory=list)
    clang_args: list[str] = field(default_factory=list)

    def package(self, name: str) -> PackageConfig:
        for p in self.packages:
            if p.name == name:
                return p
        raise ValueError(f"Unknown package '{name}'")


def _required(element, attribute, what):
    value = element.get(attribute)
    if not value or not value.strip():
        raise ValueError(f"{what} element missing '{attribute}' attribute")
    return value.strip()


def _parse_header(package, package_name, base_dir):
    headers = package.findall("header")
    if len(headers) != 1:
        raise ValueError(f"Package '{package_name}' must have exactly one header element")
    h = headers[0]
    header_dir = h.get("dir", "").strip()
    if header_dir and not os.path.isabs(header_dir):
        header_dir = os.path.join(base_dir, header_dir)
    header = HeaderConfig(
        dir=header_dir,
        file=_required(h, "file", f"Header in package '{package_name}'"),
        pattern=h.get("pattern", "").strip(),
        prefix=h.get("prefix", "").strip(),
    )
    if header.pattern and header.prefix:
        raise ValueError(f"Header in package '{package_name}' cannot have both 'pattern' and 'prefix'")

    other_code = package.find("other_code")
    if other_code is not None and other_code.text:
        header.other_code = other_code.text.strip()

    for exclude in package.findall("exclude"):
        header.excluded.append(_required(exclude, "name", "Exclude"))
    for cgo in package.findall("cgo"):
        header.cgo_directives.append(_required(cgo, "directive", "Cgo"))
    for b in package.findall("bool"):
        header.bool_types.append(_required(b, "type", "Bool"))
    for arg in package.findall("clang_arg"):
        header.clang_args.append(_required(arg, "value", "Clang argument"))
    for include_dir in package.findall("include_directory"):
        path = _required(include_dir, "path", f"Include directory in package '{package_name}'")
        header.clang_args.append("-I" + path)
    return header


def parse_config_file(config_path):
    """Parse XML configuration file and return BindingConfig object"""
    try:
        tree = ET.parse(config_path)
        root = tree.getroot()

        if root.tag != "bindings":
            raise ValueError(f"Expected root element 'bindings', got '{root.tag}'")

        base_dir = os.path.dirname(os.path.abspath(config_path))
        config = BindingConfig()

        # Get global include directories
        for include_dir in root.findall("include_directory"):
            config.include_dirs.append(_required(include_dir, "path", "Include directory"))

        for arg in root.findall("clang_arg"):
            config.clang_args.append(_required(arg, "value", "Clang argument"))

        for package in root.findall("package"):
            package_name = _required(package, "name", "Package")
            pc = PackageConfig(
                name=package_name,
                path=package.get("path", package_name).strip(),
                header=_parse_header(package, package_name, base_dir),
                output_dir=package.get("output", "").strip(),
            )

            for include in package.findall("include"):
                pc.included.append(_required(include, "package", f"Include in package '{package_name}'"))

            # Native type names forced to a Go number type
            for rule in package.findall("type_rule"):
                pc.type_rules[_required(rule, "name", "Type rule")] = _required(rule, "type", "Type rule")

            # Pointer kinds of arguments, "function.argument" or "argument"
            for rule in package.findall("arg_rule"):
                name = _required(rule, "name", "Argument rule")
                pc.arg_rules[name] = PtrKind.parse(_required(rule, "kind", "Argument rule"))

            for output in package.findall("output"):
                pc.go_file = output.get("go", "").strip()
                pc.c_file = output.get("c", "").strip()
                pc.h_file = output.get("h", "").strip()

            constants = package.find("constants")
            if constants is not None:
                pc.constants_file = _required(constants, "file", "Constants")

            config.packages.append(pc)

        if not config.packages:
            raise ValueError("Configuration file defines no package")

        names = [p.name for p in config.packages]
        for p in config.packages:
            for inc in p.included:
                if inc not in names:
                    raise ValueError(f"Package '{p.name}' includes unknown package '{inc}'")
                if inc == p.name:
                    raise ValueError(f"Package '{p.name}' cannot include itself")

        return config

    except ET.ParseError as e:
        raise ValueError(f"XML parsing error: {e}")
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
