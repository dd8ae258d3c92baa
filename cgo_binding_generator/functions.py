"""
Lowering of native functions to Go functions, methods and callback trampolines
"""

import re
from typing import Callable, Optional

from . import declarations as native
from .constants import (
    CALLBACK_C_SUFFIX, CALLBACK_GO_SUFFIX, OPAQUE_FUNCTION, OPAQUE_POINTER, RETURN_NAME,
)
from .conversions import Conversion, conv, conv_ptr
from .declarations import PtrKind
from .lowering import TypeLowering
from .names import NameTable, lower_name, snake_to_lower_camel, upper_name
from .type_model import (
    CallbackReturnPtr, GoType, Ptr, ReturnPtr, String, TypeDecl, is_void,
)


class Param:
    """A value crossing the call boundary under a Go name and a cgo name"""

    def __init__(self, go_name: str, cgo_name: str, type: GoType, is_out: bool = False):
        self.go_name = go_name
        self.cgo_name = cgo_name
        self.type = type
        self.is_out = is_out

    @property
    def go_type_name(self) -> str:
        return self.type.go_name

    @property
    def cgo_type_name(self) -> str:
        return self.type.cgo_name

    @property
    def is_ptr(self) -> bool:
        return type(self.type) is Ptr

    def to_cgo(self, assign: str) -> list[str]:
        return self.type.to_cgo(assign, self.go_name, self.cgo_name)

    def to_go(self, assign: str) -> list[str]:
        return self.type.to_go(assign, self.go_name, self.cgo_name)

    def __repr__(self):
        return f"<Param {self.go_name} {self.go_type_name}>"


class Return(Param):
    def __init__(self, type: GoType):
        super().__init__(RETURN_NAME, "_" + RETURN_NAME, type, is_out=True)


def inputs(params) -> list[Param]:
    return [p for p in params if not p.is_out]


def outputs(params) -> list[Param]:
    return [p for p in params if p.is_out]


def go_param_list(params) -> str:
    return "(" + ", ".join(f"{p.go_name} {p.go_type_name}" for p in params) + ")"


def go_result_list(params) -> str:
    if not params:
        return ""
    return " " + go_param_list(params)


def cgo_param_type(t: GoType) -> str:
    """cgo type of a trampoline parameter; C pointers other than strings arrive untyped"""
    cgo_type = t.cgo_name
    if cgo_type != "*C.char" and cgo_type.startswith("*"):
        return "unsafe.Pointer"
    return cgo_type


def cgo_param_list(params) -> str:
    return "(" + ", ".join(f"{p.cgo_name} {cgo_param_type(p.type)}" for p in params) + ")"


class Signature(GoType):
    """A Go func type: the callable a user hands over in place of a C callback"""

    conversion = Conversion.PTR

    def __init__(self, params: list[Param]):
        super().__init__("", OPAQUE_FUNCTION, 0)
        self.params = params

    @property
    def go_name(self):
        ins = ", ".join(p.go_type_name for p in inputs(self.params))
        outs = [p.go_type_name for p in outputs(self.params)]
        results = ""
        if len(outs) == 1:
            results = " " + outs[0]
        elif outs:
            results = " (" + ", ".join(outs) + ")"
        return f"func({ins}){results}"

    def to_cgo(self, assign, g, c):
        return [conv(assign, g, c, self.cgo_name)]

    def to_go(self, assign, g, c):
        return [f"{g} {assign}= *(*{self.go_name})({c})"]

    def go_call(self, func_name: str) -> str:
        call = func_name + "(" + ", ".join(p.go_name for p in inputs(self.params)) + ")"
        outs = outputs(self.params)
        if outs:
            return ", ".join(p.go_name for p in outs) + " := " + call
        return call


class Function:
    """A package-level Go function wrapping one native function"""

    def __init__(self, id: str, c_name: str, file: str, go_params: list[Param],
                 c_args: list[Param], ret: Optional[Return]):
        self.id = id
        self.c_name = c_name
        self.file = file
        self.go_params = go_params
        self.c_args = c_args
        self.ret = ret
        self.go_name = ""

    def set_go_name(self, name: str):
        self.go_name = name

    @property
    def inputs(self) -> list[Param]:
        return inputs(self.go_params)

    @property
    def outputs(self) -> list[Param]:
        return outputs(self.go_params)

    def header(self) -> str:
        return f"func {self.go_name}{go_param_list(self.inputs)}{go_result_list(self.outputs)} {{"

    def cgo_call(self) -> str:
        call = f"C.{self.c_name}(" + ", ".join(a.cgo_name for a in self.c_args) + ")"
        if self.ret is not None:
            return f"{self.ret.cgo_name} := {call}"
        return call

    def body(self) -> list[str]:
        lines = []
        for a in self.c_args:
            lines.extend(a.to_cgo(":"))
        lines.append(self.cgo_call())
        if self.ret is not None:
            lines.extend(self.ret.to_go(""))
        if self.outputs:
            lines.append("return")
        return lines

    def render(self) -> list[str]:
        lines = [f"// {self.c_name}", self.header()]
        lines.extend("\t" + line for line in self.body())
        lines.append("}")
        return lines

    def receiver(self) -> Optional[TypeDecl]:
        """The declarable type this function can be a method of, if any

        The first native argument must be a plain pointer to a declarable type
        whose Go spelling is local, not an array and not the opaque fallback.
        """
        if not self.c_args or not self.go_params or self.go_params[0] is not self.c_args[0]:
            return None
        first = self.c_args[0]
        if not first.is_ptr:
            return None
        name = first.go_type_name
        if "." in name or "[" in name or name == OPAQUE_POINTER:
            return None
        pointee = first.type.pointee
        if not isinstance(pointee, TypeDecl):
            return None
        # Go forbids methods on named pointer types
        if pointee.conversion == Conversion.PTR:
            return None
        return pointee

    def to_method(self) -> Optional["Method"]:
        """Re-express the function as a method of its receiver type"""
        owner = self.receiver()
        if owner is None:
            return None
        return Method(self, owner)

    def __repr__(self):
        return f"<Function {self.c_name} -> {self.go_name or '?'}>"


class Method(Function):
    """A function promoted onto the type its first argument points to"""

    def __init__(self, function: Function, owner: TypeDecl):
        super().__init__(function.id, function.c_name, function.file,
                         function.go_params[1:], function.c_args, function.ret)
        self.receiver_param = function.c_args[0]
        self.owner = owner

    def header(self) -> str:
        r = self.receiver_param
        return (f"func ({r.go_name} {r.go_type_name}) {self.go_name}"
                f"{go_param_list(self.inputs)}{go_result_list(self.outputs)} {{")


def c_decl(function_type: native.FunctionType, name: str) -> str:
    """C declarator of a function with the given name and native signature"""
    params = []
    for i, a in enumerate(function_type.arguments):
        params.append(c_param(a.type, c_arg_name(a, i)))
    ret = native.c_spelling(function_type.return_type)
    return f"{ret} {name}({', '.join(params) or 'void'})"


def c_param(t: native.NativeType, name: str) -> str:
    spelling = native.c_spelling(t)
    if "(*)" in spelling:
        return spelling.replace("(*)", f"(*{name})", 1)
    return f"{spelling} {name}"


def c_arg_name(a: native.Argument, i: int) -> str:
    return a.name or f"arg{i}"


class Trampoline:
    """The exported Go entry point a C callback lands in

    The C stub ``<name>_C`` has the callback's exact native signature and
    forwards to ``<name>_Go``, which decodes the Go callable from the user-data
    argument and calls it.
    """

    def __init__(self, name: str, c_args: list[Param], ret: Optional[Return], data_index: int,
                 function_type: native.FunctionType):
        self.name = name
        self.go_name = name + CALLBACK_GO_SUFFIX
        self.c_func_name = name + CALLBACK_C_SUFFIX
        self.c_args = c_args
        self.ret = ret
        self.data_index = data_index
        self.function_type = function_type
        params = list(c_args)
        if ret is not None:
            params.append(ret)
        self.go_params = params

    def signature(self) -> Signature:
        """Go type of the callable carried through the user-data argument"""
        data = self.c_args[self.data_index]
        return Signature([p for p in self.go_params if p is not data])

    def callback_param(self) -> Param:
        data = self.c_args[self.data_index]
        return Param(data.go_name, data.cgo_name, self.signature())

    def _return_to_cgo(self) -> list[str]:
        r = self.ret
        if isinstance(r.type, String):
            # ownership of the copy passes to the C caller
            return [f"{r.cgo_name} = C.CString({r.go_name})"]
        if cgo_param_type(r.type) != r.cgo_type_name:
            return [conv_ptr("", r.go_name, r.cgo_name, "unsafe.Pointer")]
        return r.to_cgo("")

    def body(self) -> list[str]:
        cb = self.callback_param()
        lines = cb.to_go(":")
        for i, a in enumerate(self.c_args):
            if i != self.data_index:
                lines.extend(a.to_go(":"))
        lines.append(cb.type.go_call(cb.go_name))
        for a in outputs(self.c_args):
            lines.extend(a.to_cgo(""))
        if self.ret is not None:
            lines.extend(self._return_to_cgo())
            lines.append("return")
        return lines

    def render(self) -> list[str]:
        results = ""
        if self.ret is not None:
            results = " " + cgo_param_list([self.ret])
        lines = [f"//export {self.go_name}",
                 f"func {self.go_name}{cgo_param_list(self.c_args)}{results} {{"]
        lines.extend("\t" + line for line in self.body())
        lines.append("}")
        return lines

    def c_declaration(self) -> str:
        return f"extern {c_decl(self.function_type, self.c_func_name)};"

    def c_stub(self) -> list[str]:
        names = [c_arg_name(a, i) for i, a in enumerate(self.function_type.arguments)]
        call = f"{self.go_name}({', '.join(names)})"
        if not native.is_void(self.function_type.return_type):
            call = "return " + call
        return [c_decl(self.function_type, self.c_func_name) + " {", f"\t{call};", "}"]

    def __repr__(self):
        return f"<Trampoline {self.name}>"


def callback_name(info: native.CallbackInfo, name_of: Callable[[str], str]) -> str:
    """Trampoline base name; anonymous callbacks are named after their signature"""
    c_name = info.name
    if not c_name:
        spelling = info.function_type.spelling or c_decl(info.function_type, "")
        c_name = re.sub(r"\W+", "_", spelling.replace("*", " ptr ")).strip("_")
    return snake_to_lower_camel(name_of(c_name)) + "Callback"


class FunctionLowering:
    """Builds Functions and Trampolines on top of the type lowering engine"""

    def __init__(self, lowering: TypeLowering, name_of: Callable[[str], str] = upper_name):
        self.lowering = lowering
        self.name_of = name_of

    def new_args(self, arguments: list[native.Argument], names: NameTable) -> list[Param]:
        args = []
        for i, a in enumerate(arguments):
            go_name = names.bind(lower_name(a.name) or f"arg{i}", f"arg{i}")
            t = self.lowering.resolve(a.type, a.ptr_kind)
            args.append(Param(go_name, "_" + go_name, t, is_out=a.ptr_kind == PtrKind.RETURN))
        return args

    def new_return(self, t: native.NativeType) -> Optional[Return]:
        if native.is_void(t):
            return None
        if native.is_c_string(t):
            return Return(String(self.lowering.pointer_size))
        r = self.lowering.resolve(t)
        if is_void(r):
            return None
        return Return(r)

    def _lower(self, arguments, return_type):
        names = NameTable()
        names.bind(RETURN_NAME, RETURN_NAME)
        c_args = self.new_args(arguments, names)
        ret = self.new_return(return_type)
        go_params = list(c_args)
        if ret is not None:
            go_params.append(ret)
        return c_args, ret, go_params

    def new_function(self, fn: native.Function) -> Function:
        c_args, ret, go_params = self._lower(fn.arguments, fn.return_type)
        return Function(fn.id, fn.name, fn.file, go_params, c_args, ret)

    def new_trampoline(self, info: native.CallbackInfo) -> Trampoline:
        ft = info.function_type
        c_args, ret, _ = self._lower(ft.arguments, ft.return_type)
        for a in c_args:
            if isinstance(a.type, ReturnPtr):
                a.type = CallbackReturnPtr(a.type)
        return Trampoline(callback_name(info, self.name_of), c_args, ret,
                          info.callback_data_index, ft)

    def transform_callback(self, fn: native.Function, trampoline: Trampoline) -> Function:
        """Replace the function-pointer/user-data pair by a Go callable

        The callable takes the callback argument's place among the Go
        parameters and the user-data argument disappears. The C call receives
        the C stub and the address of the callable.
        """
        f = self.new_function(fn)
        info = fn.callback
        cb_arg = f.c_args[info.arg_index]
        data_arg = f.c_args[info.data_arg_index]

        callable_param = trampoline.callback_param()
        callable_param.go_name = cb_arg.go_name
        go_params = []
        for p in f.go_params:
            if p is cb_arg:
                go_params.append(callable_param)
            elif p is not data_arg:
                go_params.append(p)
        f.go_params = go_params

        data_arg.go_name = "&" + cb_arg.go_name
        cb_arg.go_name = "C." + trampoline.c_func_name
        cb_arg.is_out = data_arg.is_out = False
        return f
