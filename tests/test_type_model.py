"""
Unit tests for Go type descriptors and their conversion statements
"""

import pytest

from cgo_binding_generator.conversions import Conversion, conv, conv_ptr, conv_value, size_assert
from cgo_binding_generator.errors import UnsupportedTypeError
from cgo_binding_generator.type_model import (
    VOID, Array, Bool, CallbackReturnPtr, Enum, EnumConst, FuncType, Num, Ptr, ReturnPtr,
    Slice, SliceSlice, String, StringSlice, Struct, StructField, Typedef, Union, UnionField,
    enum_literal, hex_width,
)


def int32():
    return Num("int32", "C.int", 4)


class TestConversions:
    """Test the three conversion strategies"""

    def test_cast(self):
        """Test the plain cast"""
        assert conv(":", "g", "c", "C.int") == "c := C.int(g)"
        assert conv("", "c", "g", "int32") == "g = int32(c)"

    def test_cast_parenthesises_pointer_types(self):
        """Test that pointer cast targets are parenthesised"""
        assert conv(":", "g", "c", "*C.int") == "c := (*C.int)(g)"

    def test_pointer_reinterpret(self):
        """Test reinterpreting a pointer"""
        assert conv_ptr(":", "g", "c", "*C.foo") == "c := (*C.foo)(unsafe.Pointer(g))"

    def test_value_reinterpret(self):
        """Test reinterpreting a value through its address"""
        assert conv_value("", "c", "g", "Foo") == "g = *(*Foo)(unsafe.Pointer(&c))"

    def test_size_assert(self):
        """Test the runtime size check"""
        lines = size_assert("C.struct_foo", "Foo")
        assert lines[0].startswith("if s1, s2 := unsafe.Sizeof(*new(C.struct_foo)), unsafe.Sizeof(*new(Foo))")
        assert "panic(" in lines[1]
        assert lines[2] == "}"


class TestRoundTrip:
    """The Go to C statement and its C to Go counterpart invert each other"""

    def test_number(self):
        """Test number conversions"""
        t = int32()
        assert t.to_cgo(":", "x", "_x") == ["_x := C.int(x)"]
        assert t.to_go("", "x", "_x") == ["x = int32(_x)"]

    def test_array(self):
        """Test array conversions"""
        t = Array(int32(), 4)
        assert t.size == 16
        assert t.go_name == "[4]int32"
        assert t.to_cgo(":", "a", "_a") == ["_a := *(*[4]C.int)(unsafe.Pointer(&a))"]
        assert t.to_go("", "a", "_a") == ["a = *(*[4]int32)(unsafe.Pointer(&_a))"]

    def test_struct(self):
        """Test struct conversions"""
        s = Struct("c:@S@foo", "foo", "lib.h", "C.struct_foo", 8)
        s.set_go_name("Foo")
        assert s.conversion == Conversion.VALUE
        assert s.to_cgo(":", "f", "_f") == ["_f := *(*C.struct_foo)(unsafe.Pointer(&f))"]
        assert s.to_go("", "f", "_f") == ["f = *(*Foo)(unsafe.Pointer(&_f))"]

    def test_union(self):
        """Test union conversions"""
        u = Union("c:@U@val", "val", "lib.h", "C.union_val", 8, 8)
        u.set_go_name("Val")
        assert u.to_cgo(":", "v", "_v") == ["_v := *(*C.union_val)(unsafe.Pointer(&v))"]
        assert u.to_go("", "v", "_v") == ["v = *(*Val)(unsafe.Pointer(&_v))"]

    def test_bool(self):
        """Test bool conversions"""
        b = Bool("C.int", 4)
        assert b.go_name == "bool"
        assert b.to_cgo(":", "ok", "_ok") == [
            "var _ok C.int",
            "if ok {",
            "\t_ok = C.int(1)",
            "}",
        ]
        assert b.to_go("", "ok", "_ok") == ["ok = bool(_ok == 1)"]


class TestPointers:
    """Test pointer-like descriptors"""

    def test_typed_pointer(self):
        """Test a pointer to a named type"""
        s = Struct("c:@S@foo", "foo", "lib.h", "C.struct_foo", 8)
        s.set_go_name("Foo")
        p = Ptr(s, 8)
        assert p.go_name == "*Foo"
        assert p.cgo_name == "*C.struct_foo"
        assert p.to_cgo(":", "f", "_f") == ["_f := (*C.struct_foo)(unsafe.Pointer(f))"]

    def test_void_pointer_is_opaque(self):
        """Test that a void pointer is a uintptr"""
        p = Ptr(VOID, 8)
        assert p.go_name == "uintptr"
        assert p.cgo_name == "unsafe.Pointer"

    def test_unnamed_pointee_is_opaque(self):
        """Test that a pointer to an unnamed type is a uintptr"""
        s = Struct("c:@S@hidden", "hidden", "other.h", "C.struct_hidden", 16)
        assert Ptr(s, 8).go_name == "uintptr"

    def test_function_pointer(self):
        """Test function pointer conversions"""
        p = Ptr(FuncType(), 8)
        assert p.go_name == "*[0]byte"
        assert p.cgo_name == "*[0]byte"

    def test_string(self):
        """Test string conversions"""
        s = String(8)
        assert s.to_cgo(":", "name", "_name") == [
            "_name := C.CString(name)",
            "defer C.free(unsafe.Pointer(_name))",
        ]
        assert s.to_go("", "name", "_name") == ["name = C.GoString(_name)"]

    def test_slice_forward_only(self):
        """Test that a slice converts only from Go to C"""
        s = Slice(int32(), 8)
        assert s.go_name == "[]int32"
        assert s.to_cgo(":", "xs", "_xs") == [
            "var _xs *C.int",
            "if len(xs) > 0 {",
            "\t_xs = (*C.int)(unsafe.Pointer(&xs[0]))",
            "}",
        ]
        assert s.to_go("", "xs", "_xs") == ["// No ToGo conversion for Slice yet."]

    def test_void_slice_is_bytes(self):
        """Test that a void slice is a byte slice"""
        s = Slice(VOID, 8)
        assert s.go_name == "[]byte"
        assert s.cgo_name == "unsafe.Pointer"

    def test_slice_slice(self):
        """Test converting a slice of slices"""
        s = SliceSlice(int32(), 8)
        lines = s.to_cgo(":", "m", "_m")
        assert lines[0] == "_m_ := make([]*C.int, len(m))"
        assert "\t\t_m_[i_] = (*C.int)(unsafe.Pointer(&m[i_][0]))" in lines
        assert lines[-3] == "if len(_m_) > 0 {"
        assert s.to_go("", "m", "_m") == ["// No ToGo conversion for SliceSlice yet."]

    def test_void_slice_slice_is_bytes(self):
        """Test that rows of void pointers become byte slices passed as unsafe pointers"""
        s = SliceSlice(VOID, 8)
        assert s.go_name == "[][]byte"
        assert s.cgo_name == "*unsafe.Pointer"
        lines = s.to_cgo(":", "rows", "_rows")
        assert lines[0] == "_rows_ := make([]unsafe.Pointer, len(rows))"
        assert "\t\t_rows_[i_] = (unsafe.Pointer)(unsafe.Pointer(&rows[i_][0]))" in lines
        assert "\t_rows = (*unsafe.Pointer)(unsafe.Pointer(&_rows_[0]))" in lines

    def test_unnamed_element_slice_slice(self):
        """Test that an element without Go or cgo names falls back to bytes and unsafe pointers"""
        s = SliceSlice(Struct("c:@S@anon", "", "lib.h", "", 4), 8)
        assert s.go_name == "[][]byte"
        assert s.cgo_name == "*unsafe.Pointer"

    def test_slice_loop_does_not_shadow_argument(self):
        """Test that the row loop variable cannot clash with an argument named i"""
        lines = SliceSlice(int32(), 8).to_cgo(":", "i", "_i")
        assert "\tif len(i[i_]) > 0 {" in lines
        assert "\t\t_i_[i_] = (*C.int)(unsafe.Pointer(&i[i_][0]))" in lines

    def test_string_slice(self):
        """Test converting a string slice"""
        s = StringSlice(8)
        lines = s.to_cgo(":", "names", "_names")
        assert lines[0] == "_names_ := make([]*C.char, len(names))"
        assert "\t_names_[i_] = C.CString(names[i_])" in lines
        assert s.to_go("", "names", "_names") == ["// No ToGo conversion for StringSlice yet."]

    def test_return_ptr_is_forward_only(self):
        """Test that an output argument passes its address"""
        r = ReturnPtr(int32(), 8)
        assert r.go_name == "int32"
        assert r.to_cgo(":", "out", "_out") == ["_out := (*C.int)(unsafe.Pointer(&out))"]
        assert r.to_go("", "out", "_out") == []

    def test_callback_return_ptr_writes_through(self):
        """Test that a callback output argument writes through the pointer"""
        r = CallbackReturnPtr(ReturnPtr(int32(), 8))
        assert r.to_cgo("", "out", "_out") == ["*(*C.int)(_out) = C.int(out)"]


class TestVoid:
    """Void is only valid as "no value" """

    def test_void_as_value_is_fatal(self):
        """Test that converting void raises"""
        with pytest.raises(UnsupportedTypeError):
            VOID.to_cgo(":", "x", "_x")
        with pytest.raises(UnsupportedTypeError):
            VOID.to_go("", "x", "_x")


class TestUnion:
    """Test union accessors"""

    def test_field_at_pointer_width_is_returned_by_value(self):
        """Test that a pointer wide union field is returned by value"""
        f = UnionField("AsInt", Num("int64", "C.longlong", 8))
        lines = f.accessor("Val", 8)
        assert lines[0] == "func (u *Val) AsInt() int64 {"
        assert lines[1] == "\treturn *(*int64)(unsafe.Pointer(u))"

    def test_field_one_byte_larger_is_returned_by_pointer(self):
        """Test that a wider union field is returned by pointer"""
        f = UnionField("Raw", Array(Num("byte", "C.uchar", 1), 9))
        lines = f.accessor("Val", 8)
        assert lines[0] == "func (u *Val) Raw() *[9]byte {"
        assert lines[1] == "\treturn (*[9]byte)(unsafe.Pointer(u))"

    def test_union_is_a_byte_block(self):
        """Test that a union is declared as a byte block"""
        u = Union("c:@U@val", "val", "lib.h", "C.union_val", 12, 8)
        u.set_go_name("Val")
        u.fields = [UnionField("I", int32())]
        lines = u.declare()
        assert "type Val [12]byte" in lines
        assert "func (u *Val) I() int32 {" in lines


class TestEnum:
    """Test enumeration literals and declarations"""

    def test_hex_width_uses_longest_non_negative_value(self):
        """Test the hex width of enum literals"""
        assert hex_width([1, 2, 0x1000, -70000]) == 4
        assert hex_width([]) == 1

    def test_literals_are_padded(self):
        """Test that hex literals are padded"""
        assert enum_literal(1, 4) == "0x0001"
        assert enum_literal(0xABCD, 4) == "0xABCD"

    def test_negative_literals_are_decimal(self):
        """Test that negative literals are written in decimal"""
        assert enum_literal(-1, 4) == "-1"

    def test_declare_named_enum(self):
        """Test declaring a named enum"""
        e = Enum("c:@E@color", "color", "lib.h", "C.enum_color", 4, signed=False,
                 values=[EnumConst("r", "RED", 1), EnumConst("b", "BLUE", 0x100)])
        e.set_go_name("Color")
        e.values[0].go_name = "Red"
        e.values[1].go_name = "Blue"
        lines = e.declare()
        assert lines[:2] == ["// color", "type Color uint32"]
        assert "\tRed Color = 0x001" in lines
        assert "\tBlue Color = 0x100" in lines

    def test_anonymous_enum_writes_only_constants(self):
        """Test that an anonymous enum writes only constants"""
        e = Enum("c:@Ea@X", "", "lib.h", "", 4, values=[EnumConst("x", "X", -2)])
        e.values[0].go_name = "X"
        lines = e.declare()
        assert not any(line.startswith("type ") for line in lines)
        assert "\tX int32 = -2" in lines

    def test_enum_without_exported_values_writes_nothing(self):
        """Test that an enum without exported values writes nothing"""
        e = Enum("c:@Ea@Y", "", "lib.h", "", 4, values=[EnumConst("y", "Y", 1)])
        assert e.declare() == []


class TestTypedef:
    """Test alias declarations"""

    def test_typedef_of_struct_spells_the_body(self):
        """Test that a typedef of an anonymous struct spells the body"""
        s = Struct("c:@S@foo", "foo", "lib.h", "C.struct_foo", 8)
        s.fields = [StructField("A", int32()), StructField("B", int32())]
        t = Typedef("c:@T@foo_t", "foo_t", "lib.h", "C.foo_t", 8, s, s.id, Conversion.VALUE)
        t.set_go_name("Foo")
        lines = t.declare()
        assert lines[1] == "type Foo struct {\n\tA int32\n\tB int32\n}"

    def test_typedef_of_named_struct_refers_to_it(self):
        """Test that a typedef of a named struct refers to it"""
        s = Struct("c:@S@foo", "foo", "lib.h", "C.struct_foo", 8)
        s.set_go_name("Foo")
        s.fields = []
        t = Typedef("c:@T@handle", "handle", "lib.h", "C.handle", 8, s, s.id, Conversion.VALUE)
        t.set_go_name("Handle")
        assert t.write_spec() == "Foo"

    def test_unnamed_typedef_falls_back(self):
        """Test the fallback of a typedef without name"""
        n = int32()
        t = Typedef("c:@T@size", "size", "lib.h", "C.size", 4, n, "c:int", Conversion.NUM)
        assert t.go_name == "int32"
        s = Struct("c:@S@foo", "foo", "lib.h", "C.struct_foo", 8)
        t2 = Typedef("c:@T@foo_t", "foo_t", "lib.h", "C.foo_t", 8, s, s.id, Conversion.VALUE)
        assert t2.go_name == "[8]byte"
        assert not t2.named
