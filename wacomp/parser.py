"""Decoding of WebAssembly component binaries into the node tree."""

from __future__ import annotations

from typing import Callable, Dict, List

from .coretypes import parse_core_instance, parse_core_type
from .nodes import (
    Alias,
    AliasDecl,
    BorrowType,
    Canon,
    CanonLift,
    CanonLower,
    CanonOpt,
    CanonResourceDrop,
    CanonResourceNew,
    CanonResourceRep,
    Component,
    ComponentType,
    CoreExportAlias,
    CoreModule,
    CoreSort,
    CoreTypeDecl,
    DefType,
    EnumType,
    EqBound,
    Export,
    ExportAlias,
    ExportDecl,
    ExternDesc,
    FlagsType,
    FuncParam,
    FuncType,
    Import,
    ImportDecl,
    InlineExport,
    InlineExports,
    Instance,
    InstanceType,
    Instantiate,
    InstantiateArg,
    ListType,
    MemoryOpt,
    NestedComponent,
    OptionType,
    OuterAlias,
    OwnType,
    PostReturnOpt,
    PrimValType,
    ReallocOpt,
    RecordField,
    RecordType,
    ResourceType,
    ResultType,
    Sort,
    SortExternDesc,
    SortIdx,
    StringEncoding,
    StringEncodingOpt,
    SubResourceBound,
    TupleType,
    Type,
    TypeBound,
    TypeDecl,
    TypeExternDesc,
    TypeIdx,
    ValType,
    VariantCase,
    VariantType,
)
from .reader import ParseError, Reader

_PREAMBLE = (
    ("magic", b"\x00\x61\x73\x6d"),
    ("version", b"\x0d\x00"),
    ("layer", b"\x01\x00"),
)

_CORE_SORTS = {
    CoreSort.FUNC: Sort.CORE_FUNC,
    CoreSort.TABLE: Sort.CORE_TABLE,
    CoreSort.MEMORY: Sort.CORE_MEMORY,
    CoreSort.GLOBAL: Sort.CORE_GLOBAL,
    CoreSort.TYPE: Sort.CORE_TYPE,
    CoreSort.MODULE: Sort.CORE_MODULE,
    CoreSort.INSTANCE: Sort.CORE_INSTANCE,
}

_COMPONENT_SORTS = {
    0x01: Sort.FUNC,
    0x03: Sort.TYPE,
    0x04: Sort.COMPONENT,
    0x05: Sort.INSTANCE,
}

_UNSUPPORTED_TYPES = {
    0x67: "fixed length list type (0x67) is not yet supported",
    0x66: "stream types (0x66) are not yet supported",
    0x65: "future types (0x65) are not yet supported",
    0x64: "error-context types (0x64) are not yet supported",
    0x43: "async function types (0x43) are not yet supported",
}


def parse_component(data) -> Component:
    """Parse a complete component from bytes or a binary file object."""
    if hasattr(data, "read"):
        data = data.read()
    reader = Reader(data)
    try:
        _parse_preamble(reader)
    except ParseError as exc:
        raise ParseError(f"failed to parse preamble: {exc}") from exc

    component = Component()
    while not reader.at_end():
        section_id = reader.peek_byte()
        try:
            definitions = parse_section(reader)
        except ParseError as exc:
            raise ParseError(f"failed to parse section {section_id}: {exc}") from exc
        component.definitions.extend(definitions)
    return component


def _parse_preamble(reader: Reader) -> None:
    for label, expected in _PREAMBLE:
        for index, want in enumerate(expected):
            try:
                got = reader.read_byte()
            except ParseError as exc:
                raise ParseError(f"failed to read {label} byte {index}: {exc}") from exc
            if got != want:
                raise ParseError(
                    f"invalid {label} byte {index}: expected 0x{want:02x}, got 0x{got:02x}"
                )


def _parse_core_module_section(reader: Reader) -> list:
    return [CoreModule(raw=reader.read_rest())]


def _parse_component_section(reader: Reader) -> list:
    try:
        nested = parse_component(reader.read_rest())
    except ParseError as exc:
        raise ParseError(f"parsing nested component: {exc}") from exc
    return [NestedComponent(component=nested)]


def _parse_start_section(reader: Reader) -> list:
    raise ParseError("start section not yet implemented")


def _vec_section(parse_item: Callable[[Reader], object]) -> Callable[[Reader], list]:
    def parse(reader: Reader) -> list:
        return reader.read_vec(lambda: parse_item(reader))

    return parse


_SECTIONS: Dict[int, Callable[[Reader], list]] = {
    0: lambda reader: [],
    1: _parse_core_module_section,
    2: _vec_section(parse_core_instance),
    3: _vec_section(parse_core_type),
    4: _parse_component_section,
    5: _vec_section(lambda reader: parse_instance(reader)),
    6: _vec_section(lambda reader: parse_alias(reader)),
    7: _vec_section(lambda reader: Type(def_type=parse_def_type(reader))),
    8: _vec_section(lambda reader: parse_canon(reader)),
    9: _parse_start_section,
    10: _vec_section(lambda reader: parse_import(reader)),
    11: _vec_section(lambda reader: parse_export(reader)),
}


def parse_section(reader: Reader) -> list:
    """Read one section and return the definitions it holds."""
    section_id = reader.read_byte()
    try:
        size = reader.read_u32()
    except ParseError as exc:
        raise ParseError(f"failed to read section size: {exc}") from exc
    try:
        payload = reader.read_bytes(size)
    except ParseError as exc:
        raise ParseError(f"failed to read section data: {exc}") from exc

    handler = _SECTIONS.get(section_id)
    if handler is None:
        raise ParseError(f"unknown section ID: {section_id}")
    return handler(Reader(payload))


def parse_sort(reader: Reader) -> Sort:
    """Read a component sort, including the core sorts."""
    discriminator = reader.read_byte()
    if discriminator == 0x00:
        code = reader.read_byte()
        try:
            return _CORE_SORTS[CoreSort(code)]
        except ValueError:
            raise ParseError(f"invalid core sort: 0x{code:02x}") from None
    sort = _COMPONENT_SORTS.get(discriminator)
    if sort is None:
        raise ParseError(f"invalid sort discriminator: 0x{discriminator:02x}")
    return sort


def parse_sort_idx(reader: Reader) -> SortIdx:
    """Read a sort followed by an index."""
    sort = parse_sort(reader)
    return SortIdx(sort=sort, idx=reader.read_u32())


def _parse_instantiate_arg(reader: Reader) -> InstantiateArg:
    name = reader.read_name()
    return InstantiateArg(name=name, sort_idx=parse_sort_idx(reader))


def _parse_inline_export(reader: Reader) -> InlineExport:
    name = reader.read_export_name()
    return InlineExport(name=name, sort_idx=parse_sort_idx(reader))


def parse_instance(reader: Reader) -> Instance:
    """Read a component instance definition."""
    discriminator = reader.read_byte()
    if discriminator == 0x00:
        component_idx = reader.read_u32()
        args = reader.read_vec(lambda: _parse_instantiate_arg(reader))
        return Instance(Instantiate(component_idx=component_idx, args=args))
    if discriminator == 0x01:
        exports = reader.read_vec(lambda: _parse_inline_export(reader))
        return Instance(InlineExports(exports=exports))
    raise ParseError(f"invalid instance expr discriminator: 0x{discriminator:02x}")


def _parse_alias_target(reader: Reader):
    discriminator = reader.read_byte()
    if discriminator == 0x00:
        instance_idx = reader.read_u32()
        return ExportAlias(instance_idx=instance_idx, name=reader.read_name())
    if discriminator == 0x01:
        instance_idx = reader.read_u32()
        return CoreExportAlias(instance_idx=instance_idx, name=reader.read_name())
    if discriminator == 0x02:
        count = reader.read_u32()
        return OuterAlias(count=count, idx=reader.read_u32())
    raise ParseError(f"invalid alias target discriminator: 0x{discriminator:02x}")


def parse_alias(reader: Reader) -> Alias:
    """Read an alias: a sort and the item it refers to."""
    try:
        sort = parse_sort(reader)
    except ParseError as exc:
        raise ParseError(f"failed to parse alias sort: {exc}") from exc
    try:
        target = _parse_alias_target(reader)
    except ParseError as exc:
        raise ParseError(f"failed to parse alias target: {exc}") from exc
    return Alias(sort=sort, target=target)


def parse_def_type(reader: Reader) -> DefType:
    """Read a defined type: a type constructor or a type index."""
    discriminator = reader.peek_byte()
    if 0x3F <= discriminator <= 0x7F:
        return _parse_type_constructor(reader)
    return TypeIdx(idx=reader.read_u32())


def _parse_optional_val_type(reader: Reader):
    if reader.read_byte() == 0x01:
        return parse_val_type(reader)
    return None


def _parse_variant_case(reader: Reader) -> VariantCase:
    label = reader.read_name()
    case_type = _parse_optional_val_type(reader)
    trailing = reader.read_byte()
    if trailing != 0x00:
        raise ParseError(
            f"expected trailing 0x00 in variant case, got 0x{trailing:02x}"
        )
    return VariantCase(label=label, type=case_type)


def _parse_func_param(reader: Reader) -> FuncParam:
    label = reader.read_name()
    return FuncParam(label=label, type=parse_val_type(reader))


def _parse_result_list(reader: Reader):
    discriminator = reader.read_byte()
    if discriminator == 0x00:
        return parse_val_type(reader)
    if discriminator == 0x01:
        count = reader.read_byte()
        if count != 0x00:
            raise ParseError(
                f"invalid leading byte (0x{count:x}) for number of results"
            )
        return None
    raise ParseError(
        f"invalid leading byte (0x{discriminator:x}) for component function results"
    )


def _parse_resource_type(reader: Reader) -> ResourceType:
    rep = reader.read_byte()
    if rep != 0x7F:
        raise ParseError(
            f"resources can only be represented by `i32`, got 0x{rep:02x}"
        )
    dtor = reader.read_u32() if reader.read_byte() == 0x01 else None
    return ResourceType(dtor=dtor)


def _parse_type_constructor(reader: Reader) -> DefType:
    discriminator = reader.read_byte()
    if 0x73 <= discriminator <= 0x7F:
        return PrimValType(discriminator)
    if discriminator in _UNSUPPORTED_TYPES:
        raise ParseError(_UNSUPPORTED_TYPES[discriminator])

    def labels() -> List[str]:
        return reader.read_vec(reader.read_name)

    if discriminator == 0x72:
        fields = reader.read_vec(
            lambda: RecordField(label=reader.read_name(), type=parse_val_type(reader))
        )
        return RecordType(fields=fields)
    if discriminator == 0x71:
        return VariantType(cases=reader.read_vec(lambda: _parse_variant_case(reader)))
    if discriminator == 0x70:
        return ListType(element=parse_val_type(reader))
    if discriminator == 0x6F:
        return TupleType(types=reader.read_vec(lambda: parse_val_type(reader)))
    if discriminator == 0x6E:
        return FlagsType(labels=labels())
    if discriminator == 0x6D:
        return EnumType(labels=labels())
    if discriminator == 0x6B:
        return OptionType(type=parse_val_type(reader))
    if discriminator == 0x6A:
        ok = _parse_optional_val_type(reader)
        error = _parse_optional_val_type(reader)
        return ResultType(ok=ok, error=error)
    if discriminator == 0x69:
        return OwnType(type_idx=reader.read_u32())
    if discriminator == 0x68:
        return BorrowType(type_idx=reader.read_u32())
    if discriminator == 0x40:
        params = reader.read_vec(lambda: _parse_func_param(reader))
        return FuncType(params=params, results=_parse_result_list(reader))
    if discriminator == 0x41:
        decls = reader.read_vec(lambda: parse_component_decl(reader))
        return ComponentType(declarations=decls)
    if discriminator == 0x42:
        decls = reader.read_vec(lambda: parse_instance_decl(reader))
        return InstanceType(declarations=decls)
    if discriminator == 0x3F:
        return _parse_resource_type(reader)
    raise ParseError(f"invalid type constructor: 0x{discriminator:02x}")


def parse_val_type(reader: Reader) -> ValType:
    """Read a value type: a primitive type or a type index."""
    discriminator = reader.peek_byte()
    if 0x73 <= discriminator <= 0x7F:
        reader.read_byte()
        return PrimValType(discriminator)
    if discriminator == 0x64:
        reader.read_byte()
        raise ParseError("error-context types (0x64) are not yet supported")
    return TypeIdx(idx=reader.read_u32())


def _parse_decl(reader: Reader, kind: str, allow_import: bool):
    discriminator = reader.read_byte()
    if discriminator == 0x00:
        return CoreTypeDecl(type=parse_core_type(reader))
    if discriminator == 0x01:
        return TypeDecl(type=Type(def_type=parse_def_type(reader)))
    if discriminator == 0x02:
        return AliasDecl(alias=parse_alias(reader))
    if discriminator == 0x03 and allow_import:
        name = reader.read_import_name()
        return ImportDecl(import_name=name, desc=parse_extern_desc(reader))
    if discriminator == 0x04:
        name = reader.read_export_name()
        return ExportDecl(export_name=name, desc=parse_extern_desc(reader))
    raise ParseError(f"invalid {kind} decl discriminator: 0x{discriminator:02x}")


def parse_component_decl(reader: Reader):
    """Read one declaration of a component type."""
    return _parse_decl(reader, "component", allow_import=True)


def parse_instance_decl(reader: Reader):
    """Read one declaration of an instance type; imports are not allowed."""
    return _parse_decl(reader, "instance", allow_import=False)


def _expect_func_sort(reader: Reader) -> None:
    sort_byte = reader.read_byte()
    if sort_byte != 0x00:
        raise ParseError(f"expected func sort 0x00, got 0x{sort_byte:02x}")


def _parse_canon_opts(reader: Reader) -> List[CanonOpt]:
    return reader.read_vec(lambda: parse_canon_opt(reader))


def parse_canon(reader: Reader) -> Canon:
    """Read a canonical function definition."""
    discriminator = reader.read_byte()
    if discriminator == 0x00:
        _expect_func_sort(reader)
        core_func_idx = reader.read_u32()
        options = _parse_canon_opts(reader)
        type_idx = reader.read_u32()
        return Canon(
            CanonLift(
                core_func_idx=core_func_idx,
                function_type_idx=type_idx,
                options=options,
            )
        )
    if discriminator == 0x01:
        _expect_func_sort(reader)
        func_idx = reader.read_u32()
        return Canon(CanonLower(func_idx=func_idx, options=_parse_canon_opts(reader)))
    if discriminator == 0x02:
        return Canon(CanonResourceNew(type_idx=reader.read_u32()))
    if discriminator == 0x03:
        return Canon(CanonResourceDrop(type_idx=reader.read_u32()))
    if discriminator == 0x04:
        return Canon(CanonResourceRep(type_idx=reader.read_u32()))
    raise ParseError(f"invalid canon discriminator: 0x{discriminator:02x}")


def parse_canon_opt(reader: Reader) -> CanonOpt:
    """Read one canonical ABI option."""
    discriminator = reader.read_byte()
    if discriminator in (0x00, 0x01, 0x02):
        return StringEncodingOpt(encoding=StringEncoding(discriminator))
    if discriminator == 0x03:
        return MemoryOpt(memory_idx=reader.read_u32())
    if discriminator == 0x04:
        return ReallocOpt(func_idx=reader.read_u32())
    if discriminator == 0x05:
        return PostReturnOpt(func_idx=reader.read_u32())
    raise ParseError(f"invalid canon option discriminator: 0x{discriminator:02x}")


def parse_import(reader: Reader) -> Import:
    """Read an import definition."""
    try:
        name = reader.read_import_name()
    except ParseError as exc:
        raise ParseError(f"failed to read import name: {exc}") from exc
    try:
        desc = parse_extern_desc(reader)
    except ParseError as exc:
        raise ParseError(f"failed to parse extern desc: {exc}") from exc
    return Import(import_name=name, desc=desc)


def parse_export(reader: Reader) -> Export:
    """Read an export definition with its optional extern description."""
    try:
        name = reader.read_export_name()
    except ParseError as exc:
        raise ParseError(f"failed to read export name: {exc}") from exc
    try:
        sort_idx = parse_sort_idx(reader)
    except ParseError as exc:
        raise ParseError(f"failed to parse sortidx: {exc} for export {name}") from exc
    try:
        presence = reader.read_byte()
    except ParseError as exc:
        raise ParseError(f"failed to peek byte: {exc}") from exc

    extern_desc = None
    if presence == 0x01:
        try:
            extern_desc = parse_extern_desc(reader)
        except ParseError as exc:
            raise ParseError(f"failed to parse extern desc: {exc}") from exc
    elif presence != 0x00:
        raise ParseError(f"invalid extern desc presence byte: 0x{presence:02x}")
    return Export(export_name=name, sort_idx=sort_idx, extern_desc=extern_desc)


def parse_extern_desc(reader: Reader) -> ExternDesc:
    """Read the description of an imported or exported item."""
    discriminator = reader.read_byte()
    if discriminator == 0x00:
        sort_byte = reader.read_byte()
        if sort_byte != 0x11:
            raise ParseError(
                f"expected core module sort 0x11, got 0x{sort_byte:02x}"
            )
        return SortExternDesc(sort=Sort.CORE_MODULE, type_idx=reader.read_u32())
    if discriminator == 0x01:
        return SortExternDesc(sort=Sort.FUNC, type_idx=reader.read_u32())
    if discriminator == 0x02:
        raise ParseError("value extern desc not yet implemented")
    if discriminator == 0x03:
        return TypeExternDesc(bound=parse_type_bound(reader))
    if discriminator == 0x04:
        return SortExternDesc(sort=Sort.COMPONENT, type_idx=reader.read_u32())
    if discriminator == 0x05:
        return SortExternDesc(sort=Sort.INSTANCE, type_idx=reader.read_u32())
    raise ParseError(f"invalid extern desc discriminator: 0x{discriminator:02x}")


def parse_type_bound(reader: Reader) -> TypeBound:
    """Read a type bound: equality with a type, or a fresh resource."""
    discriminator = reader.read_byte()
    if discriminator == 0x00:
        return EqBound(type_idx=reader.read_u32())
    if discriminator == 0x01:
        return SubResourceBound()
    raise ParseError(f"invalid type bound discriminator: 0x{discriminator:02x}")