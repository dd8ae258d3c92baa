"""
Main cgo bindings generator orchestration
"""

import platform
import shutil
import subprocess
import sys
from pathlib import Path

from .config import BindingConfig, PackageConfig
from .constants import DEFAULT_FILE_STEM, GOARCH_MAP
from .package import Package
from .writer import OutputBuilder


def default_goarch() -> str:
    machine = platform.machine().lower()
    return GOARCH_MAP.get(machine, machine)


def gofmt(path) -> bool:
    """Format a Go file in place if gofmt is available"""
    exe = shutil.which("gofmt")
    if exe is None:
        print("Warning: gofmt not found, generated Go code is left unformatted", file=sys.stderr)
        return False
    result = subprocess.run([exe, "-w", str(path)], capture_output=True, text=True)
    if result.returncode != 0:
        print(f"Warning: gofmt failed for {path}: {result.stderr.strip()}", file=sys.stderr)
        return False
    return True


class CgoBindingsGenerator:
    """Main orchestrator for generating cgo bindings from C headers"""

    def __init__(self, source=None, goarch: str = None, run_gofmt: bool = True,
                 include_depth: int = None):
        self.source = source
        self.include_depth = include_depth
        self.goarch = goarch or default_goarch()
        self.run_gofmt = run_gofmt
        self.packages: dict[str, Package] = {}

    def build_packages(self, config: BindingConfig) -> list[Package]:
        """Create the packages, included ones first"""
        by_name = {p.name: p for p in config.packages}
        ordered = []
        visiting = set()

        def visit(pc: PackageConfig):
            if pc.name in self.packages:
                return self.packages[pc.name]
            if pc.name in visiting:
                raise ValueError(f"Package '{pc.name}' is part of an include cycle")
            visiting.add(pc.name)
            included = [visit(by_name[name]) for name in pc.included]
            visiting.discard(pc.name)
            package = Package.from_config(pc, included, config.include_dirs, config.clang_args,
                                          self.source, self.include_depth)
            self.packages[pc.name] = package
            ordered.append(package)
            return package

        for pc in config.packages:
            visit(pc)
        return ordered

    def generate(self, config: BindingConfig, output: str = None) -> dict[str, str]:
        """Generate every configured package; returns written file path -> content"""
        self.packages.clear()
        written = {}
        configs = {p.name: p for p in config.packages}
        packages = self.build_packages(config)
        # including packages load first so their parse is shared with included ones
        for package in reversed(packages):
            package.load()
        for package in packages:
            print(f"Processing: {package.header.path} -> package {package.name}")
            if self.include_depth is not None:
                print(f"Include depth: {self.include_depth}")
            package.prepare()
            print(f"Processing {len(package.files)} file(s) of package {package.name}")
            written.update(self.write_package(package, configs[package.name], output))
        return written

    def output_paths(self, pc: PackageConfig, output: str = None) -> tuple[Path, Path, Path]:
        out_dir = Path(output or ".") / (pc.output_dir or pc.path or pc.name)
        stem = DEFAULT_FILE_STEM + self.goarch
        go_file = Path(pc.go_file) if pc.go_file else out_dir / (stem + ".go")
        c_file = Path(pc.c_file) if pc.c_file else out_dir / (stem + ".c")
        h_file = Path(pc.h_file) if pc.h_file else out_dir / (stem + ".h")
        return go_file, c_file, h_file

    def write_package(self, package: Package, pc: PackageConfig, output: str = None) -> dict[str, str]:
        go_file, c_file, h_file = self.output_paths(pc, output)
        written = {}

        if package.callbacks:
            written[str(c_file)] = self._write(c_file, OutputBuilder.build_c(package))
            written[str(h_file)] = self._write(h_file, OutputBuilder.build_h(package))

        package.statistics.def_count = 0
        written[str(go_file)] = self._write(go_file, OutputBuilder.build_go(package, h_file.name))
        if self.run_gofmt:
            gofmt(go_file)

        if pc.constants_file:
            constants_file = go_file.parent / pc.constants_file
            written[str(constants_file)] = self._write(constants_file, OutputBuilder.build_constants(package))
            if self.run_gofmt:
                gofmt(constants_file)

        package.statistics.print()
        return written

    @staticmethod
    def _write(path: Path, content: str) -> str:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        print(f"Generated bindings: {path}")
        return content
