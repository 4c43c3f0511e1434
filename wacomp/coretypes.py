"""Decoding of core WebAssembly types, sorts and instances inside components."""

from __future__ import annotations

from .nodes import (
    CoreAbsHeapType,
    CoreAliasDecl,
    CoreConcreteHeapType,
    CoreExportDecl,
    CoreFuncImport,
    CoreFuncType,
    CoreGlobalImport,
    CoreGlobalType,
    CoreHeapType,
    CoreImportDecl,
    CoreImportDesc,
    CoreInlineExport,
    CoreInlineExports,
    CoreInstance,
    CoreInstantiate,
    CoreInstantiateArg,
    CoreLimits,
    CoreMemoryImport,
    CoreMemType,
    CoreModuleType,
    CoreMutability,
    CoreNumType,
    CoreOuterAlias,
    CoreRecType,
    CoreRefType,
    CoreSort,
    CoreSortIdx,
    CoreSubType,
    CoreTableImport,
    CoreTableType,
    CoreType,
    CoreTypeDecl,
    CoreValType,
    CoreVecType,
)
from .reader import ParseError, Reader

_SIMPLE_VAL_TYPES = {
    0x7F: CoreNumType.I32,
    0x7E: CoreNumType.I64,
    0x7D: CoreNumType.F32,
    0x7C: CoreNumType.F64,
    0x7B: CoreVecType.V128,
}

_ABS_HEAP_CODES = frozenset(member.value for member in CoreAbsHeapType)


def parse_core_sort(reader: Reader) -> CoreSort:
    """Read a core sort byte."""
    code = reader.read_byte()
    try:
        return CoreSort(code)
    except ValueError:
        raise ParseError(f"invalid core sort: 0x{code:02x}") from None


def parse_core_sort_idx(reader: Reader) -> CoreSortIdx:
    """Read a core sort followed by an index."""
    sort = parse_core_sort(reader)
    return CoreSortIdx(sort=sort, idx=reader.read_u32())


def parse_core_instantiate_arg(reader: Reader) -> CoreInstantiateArg:
    """Read a named core instance argument of a module instantiation."""
    name = reader.read_name()
    sort_byte = reader.read_byte()
    if sort_byte != CoreSort.INSTANCE:
        raise ParseError(f"expected instance sort 0x12, got 0x{sort_byte:02x}")
    return CoreInstantiateArg(name=name, core_instance_idx=reader.read_u32())


def parse_core_inline_export(reader: Reader) -> CoreInlineExport:
    """Read a named core export of an inline instance."""
    name = reader.read_name()
    return CoreInlineExport(name=name, sort_idx=parse_core_sort_idx(reader))


def parse_core_instance(reader: Reader) -> CoreInstance:
    """Read a core instance definition."""
    discriminator = reader.read_byte()
    if discriminator == 0x00:
        module_idx = reader.read_u32()
        args = reader.read_vec(lambda: parse_core_instantiate_arg(reader))
        return CoreInstance(CoreInstantiate(module_idx=module_idx, args=args))
    if discriminator == 0x01:
        exports = reader.read_vec(lambda: parse_core_inline_export(reader))
        return CoreInstance(CoreInlineExports(exports=exports))
    raise ParseError(
        f"invalid core instance expr discriminator: 0x{discriminator:02x}"
    )


def _parse_module_type(reader: Reader) -> CoreModuleType:
    module_type = CoreModuleType()
    for _ in range(reader.read_u32()):
        discriminator = reader.read_byte()
        if discriminator == 0x00:
            decl = parse_core_import_decl(reader)
        elif discriminator == 0x01:
            decl = CoreTypeDecl(type=parse_core_type(reader))
        elif discriminator == 0x02:
            sort = parse_core_sort(reader)
            alias_type = reader.read_u32()
            if alias_type != 0x01:
                raise ParseError(f"unsupported core alias type: 0x{alias_type:02x}")
            count = reader.read_u32()
            idx = reader.read_u32()
            decl = CoreAliasDecl(sort=sort, target=CoreOuterAlias(count=count, idx=idx))
        elif discriminator == 0x03:
            decl = parse_core_export_decl(reader)
        else:
            raise ParseError(
                f"unknown core module type decl discriminator: 0x{discriminator:02x}"
            )
        module_type.declarations.append(decl)
    return module_type


def parse_core_type(reader: Reader) -> CoreType:
    """Read a core type: a recursion group, a module type or a lone subtype."""
    discriminator = reader.peek_byte()
    if discriminator == 0x4E:
        reader.read_byte()
        count = reader.read_u32()
        sub_types = [parse_sub_type(reader) for _ in range(count)]
        return CoreType(CoreRecType(sub_types=sub_types))
    if discriminator == 0x50:
        reader.read_byte()
        return CoreType(_parse_module_type(reader))
    return CoreType(CoreRecType(sub_types=[parse_sub_type(reader)]))


def parse_sub_type(reader: Reader) -> CoreSubType:
    """Read a subtype, with or without explicit supertypes."""
    discriminator = reader.peek_byte()
    if discriminator in (0x4F, 0x50):
        reader.read_byte()
        count = reader.read_u32()
        supertypes = [reader.read_u32() for _ in range(count)]
        comp_type = parse_core_composite_type(reader)
        return CoreSubType(
            type=comp_type, final=discriminator == 0x4F, supertypes=supertypes
        )
    return CoreSubType(type=parse_core_composite_type(reader), final=True)


def parse_core_composite_type(reader: Reader) -> CoreFuncType:
    """Read a composite type; only function types are supported."""
    discriminator = reader.read_byte()
    if discriminator != 0x60:
        raise ParseError(
            f"unsupported core composite type discriminator: 0x{discriminator:02x}"
        )
    params = reader.read_vec(lambda: parse_core_val_type(reader))
    results = reader.read_vec(lambda: parse_core_val_type(reader))
    return CoreFuncType(params=params, results=results)


def parse_core_val_type(reader: Reader) -> CoreValType:
    """Read a core value type."""
    discriminator = reader.peek_byte()
    simple = _SIMPLE_VAL_TYPES.get(discriminator)
    if simple is not None:
        reader.read_byte()
        return simple
    if discriminator == 0x70:
        reader.read_byte()
        return CoreRefType(nullable=True, heap_type=CoreAbsHeapType.FUNC)
    if discriminator == 0x6F:
        reader.read_byte()
        return CoreRefType(nullable=True, heap_type=CoreAbsHeapType.EXTERN)
    return parse_core_ref_type(reader)


def _translate_abs_heap_type(code: int) -> CoreAbsHeapType:
    try:
        return CoreAbsHeapType(code)
    except ValueError:
        raise ParseError(f"invalid abstract core heap type: 0x{code:02x}") from None


def parse_core_ref_type(reader: Reader) -> CoreRefType:
    """Read a reference type."""
    discriminator = reader.peek_byte()
    if discriminator in (0x63, 0x64):
        reader.read_byte()
        heap_type = parse_core_heap_type(reader)
        return CoreRefType(nullable=discriminator == 0x63, heap_type=heap_type)
    return CoreRefType(
        nullable=False, heap_type=_translate_abs_heap_type(reader.read_byte())
    )


def parse_core_heap_type(reader: Reader) -> CoreHeapType:
    """Read an abstract heap type or a concrete type index."""
    discriminator = reader.peek_byte()
    if discriminator in _ABS_HEAP_CODES:
        reader.read_byte()
        return _translate_abs_heap_type(discriminator)
    idx = reader.read_s32()
    return CoreConcreteHeapType(type_idx=idx & 0xFFFFFFFF)


def parse_core_limits(reader: Reader) -> CoreLimits:
    """Read table or memory limits."""
    discriminator = reader.read_byte()
    if discriminator == 0x00:
        return CoreLimits(min=reader.read_u32())
    if discriminator == 0x01:
        minimum = reader.read_u32()
        return CoreLimits(min=minimum, max=reader.read_u32())
    raise ParseError(f"invalid core limits discriminator: 0x{discriminator:02x}")


def parse_core_import_desc(reader: Reader) -> CoreImportDesc:
    """Read the description of a core import or export."""
    discriminator = reader.read_byte()
    if discriminator == 0x00:
        return CoreFuncImport(type_idx=reader.read_u32())
    if discriminator == 0x01:
        elem_type = parse_core_ref_type(reader)
        limits = parse_core_limits(reader)
        return CoreTableImport(CoreTableType(elem_type=elem_type, limits=limits))
    if discriminator == 0x02:
        return CoreMemoryImport(CoreMemType(limits=parse_core_limits(reader)))
    if discriminator == 0x03:
        val_type = parse_core_val_type(reader)
        mut = reader.read_byte()
        if mut not in (0x00, 0x01):
            raise ParseError(f"invalid global mutability: 0x{mut:02x}")
        return CoreGlobalImport(CoreGlobalType(val=val_type, mut=CoreMutability(mut)))
    raise ParseError(f"invalid core import desc discriminator: 0x{discriminator:02x}")


def parse_core_import_decl(reader: Reader) -> CoreImportDecl:
    """Read a core import declaration of a module type."""
    module = reader.read_name()
    name = reader.read_name()
    return CoreImportDecl(module=module, name=name, desc=parse_core_import_desc(reader))


def parse_core_export_decl(reader: Reader) -> CoreExportDecl:
    """Read a core export declaration of a module type."""
    name = reader.read_name()
    return CoreExportDecl(name=name, desc=parse_core_import_desc(reader))