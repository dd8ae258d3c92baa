"""
cgo Bindings Generator - Generate Go cgo bindings from C header files
"""

from .generator import CgoBindingsGenerator
from .package import Package
from .config import BindingConfig, HeaderConfig, PackageConfig, parse_config_file
from .errors import BindingError, DeclarationSourceError, UnsupportedTypeError
from .lowering import TypeLowering
from .names import NameFilter, NameTable, lower_name, upper_name

__version__ = "0.1.0"

__all__ = [
    "CgoBindingsGenerator",
    "Package",
    "BindingConfig",
    "HeaderConfig",
    "PackageConfig",
    "parse_config_file",
    "BindingError",
    "DeclarationSourceError",
    "UnsupportedTypeError",
    "TypeLowering",
    "NameFilter",
    "NameTable",
    "lower_name",
    "upper_name",
]
