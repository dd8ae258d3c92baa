"""
Go statement emitters for moving values across the cgo boundary

Every emitter is side-effect free and returns the generated statement text.
``assign`` is ":" to declare the destination or "" to assign an existing one.
"""

from enum import Enum


class Conversion(Enum):
    """How a value is carried between its Go and cgo representations"""
    NUM = "num"      # plain type conversion
    PTR = "ptr"      # reinterpret a pointer through unsafe.Pointer
    VALUE = "value"  # reinterpret the bytes of a value through its address


def _op(assign: str) -> str:
    return assign + "="


def conv(assign: str, src: str, dst: str, dst_type: str) -> str:
    if dst_type.startswith("*"):
        dst_type = f"({dst_type})"
    return f"{dst} {_op(assign)} {dst_type}({src})"


def conv_ptr(assign: str, src: str, dst: str, dst_type: str) -> str:
    return f"{dst} {_op(assign)} ({dst_type})(unsafe.Pointer({src}))"


def conv_value(assign: str, src: str, dst: str, dst_type: str) -> str:
    return f"{dst} {_op(assign)} *(*{dst_type})(unsafe.Pointer(&{src}))"


CONVERTERS = {
    Conversion.NUM: conv,
    Conversion.PTR: conv_ptr,
    Conversion.VALUE: conv_value,
}


def size_assert(cgo_type: str, go_type: str) -> list[str]:
    """Runtime check that a value-reinterpreted pair has the same byte size"""
    return [
        f"if s1, s2 := unsafe.Sizeof(*new({cgo_type})), unsafe.Sizeof(*new({go_type})); s1 != s2 {{",
        f'\tpanic("size of {cgo_type} differs from Go\'s {go_type}")',
        "}",
    ]
