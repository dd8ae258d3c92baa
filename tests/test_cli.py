"""
CLI integration tests
"""

import subprocess
import sys
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parent.parent


def run_cli(*args):
    return subprocess.run(
        [sys.executable, "-m", "cgo_binding_generator.main", *args],
        capture_output=True,
        text=True,
        cwd=PROJECT_ROOT,
    )


def test_cli_generates_package(clang_source, point_header, temp_dir):
    """Test a full CLI run from an XML configuration"""
    config_file = temp_dir / "bindings.xml"
    config_file.write_text(f"""
<bindings>
    <package name="point" path="example.com/point">
        <header dir="{point_header}" file="point.h" pattern="^(?:point|POINT)_(.*)"/>
        <cgo directive="LDFLAGS: -lpoint"/>
    </package>
</bindings>
""")
    output_dir = temp_dir / "out"

    result = run_cli("-C", str(config_file), "-o", str(output_dir), "--goarch", "amd64", "--no-gofmt")

    assert result.returncode == 0, result.stderr
    go_file = output_dir / "example.com" / "point" / "auto_amd64.go"
    assert go_file.exists()
    content = go_file.read_text()
    assert "package point" in content
    assert "#cgo LDFLAGS: -lpoint" in content
    assert (output_dir / "example.com" / "point" / "auto_amd64.c").exists()
    assert "declarations wrapped." in result.stdout


def test_cli_missing_config(temp_dir):
    """Test that a missing configuration file is reported"""
    result = run_cli("-C", str(temp_dir / "missing.xml"))
    assert result.returncode == 1
    assert "Error reading config file" in result.stderr


def test_cli_invalid_config(temp_dir):
    """Test that a malformed configuration file is reported"""
    config_file = temp_dir / "bindings.xml"
    config_file.write_text("<bindings><package name='a'/></bindings>")
    result = run_cli("--config", str(config_file))
    assert result.returncode == 1
    assert "exactly one header" in result.stderr


def test_cli_missing_header(clang_source, temp_dir):
    """Test that a missing header aborts generation"""
    config_file = temp_dir / "bindings.xml"
    config_file.write_text(f"""
<bindings>
    <package name="a"><header dir="{temp_dir}" file="nothere.h"/></package>
</bindings>
""")
    result = run_cli("-C", str(config_file), "-o", str(temp_dir / "out"), "--no-gofmt")
    assert result.returncode == 1
    assert "Error:" in result.stderr
    assert "nothere.h" in result.stderr


def test_cli_requires_config():
    """Test that the configuration option is required"""
    result = run_cli()
    assert result.returncode != 0
    assert "--config" in result.stderr


def test_cli_include_depth(clang_source, point_header, temp_dir):
    """Test that the include depth option reaches generation"""
    config_file = temp_dir / "bindings.xml"
    config_file.write_text(f"""
<bindings>
    <package name="point">
        <header dir="{point_header}" file="point.h" pattern="^(?:point|POINT)_(.*)"/>
    </package>
</bindings>
""")
    result = run_cli("-C", str(config_file), "-o", str(temp_dir / "out"), "--include-depth", "0",
                     "--no-gofmt")
    assert result.returncode == 0, result.stderr
    assert "Include depth: 0" in result.stdout
    assert "declarations wrapped." in result.stdout


def test_cli_include_depth_must_be_integer(temp_dir):
    """Test that a non-numeric include depth is rejected by argument parsing"""
    result = run_cli("-C", str(temp_dir / "bindings.xml"), "--include-depth", "deep")
    assert result.returncode == 2
    assert "--include-depth" in result.stderr
