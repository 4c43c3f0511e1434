"""Syntax tree for WebAssembly component binaries."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union


# ---------------------------------------------------------------------------
# Core sorts and core instances
# ---------------------------------------------------------------------------


class CoreSort(enum.IntEnum):
    """Sort of a core item, valued by its binary code."""

    FUNC = 0x00
    TABLE = 0x01
    MEMORY = 0x02
    GLOBAL = 0x03
    TYPE = 0x10
    MODULE = 0x11
    INSTANCE = 0x12


@dataclass
class CoreSortIdx:
    sort: CoreSort
    idx: int


@dataclass
class CoreInstantiateArg:
    name: str
    core_instance_idx: int


@dataclass
class CoreInstantiate:
    module_idx: int
    args: List[CoreInstantiateArg] = field(default_factory=list)


@dataclass
class CoreInlineExport:
    name: str
    sort_idx: CoreSortIdx


@dataclass
class CoreInlineExports:
    exports: List[CoreInlineExport] = field(default_factory=list)


CoreInstanceExpr = Union[CoreInstantiate, CoreInlineExports]


@dataclass
class CoreInstance:
    expr: CoreInstanceExpr


# ---------------------------------------------------------------------------
# Core types
# ---------------------------------------------------------------------------


class CoreNumType(enum.IntEnum):
    I32 = 0x7F
    I64 = 0x7E
    F32 = 0x7D
    F64 = 0x7C


class CoreVecType(enum.IntEnum):
    V128 = 0x7B


class CoreAbsHeapType(enum.IntEnum):
    """Abstract heap types, valued by their binary code."""

    EXN = 0x69
    ARRAY = 0x6A
    STRUCT = 0x6B
    I31 = 0x6C
    EQ = 0x6D
    ANY = 0x6E
    EXTERN = 0x6F
    FUNC = 0x70
    NONE = 0x71
    NOEXTERN = 0x72
    NOFUNC = 0x73
    NOEXN = 0x74


@dataclass
class CoreConcreteHeapType:
    type_idx: int


CoreHeapType = Union[CoreAbsHeapType, CoreConcreteHeapType]


@dataclass
class CoreRefType:
    nullable: bool
    heap_type: CoreHeapType


CoreValType = Union[CoreNumType, CoreVecType, CoreRefType]


@dataclass
class CoreFuncType:
    params: List[CoreValType] = field(default_factory=list)
    results: List[CoreValType] = field(default_factory=list)


@dataclass
class CoreSubType:
    type: CoreFuncType
    final: bool = True
    supertypes: List[int] = field(default_factory=list)


@dataclass
class CoreRecType:
    sub_types: List[CoreSubType] = field(default_factory=list)


@dataclass
class CoreLimits:
    min: int
    max: Optional[int] = None


@dataclass
class CoreFuncImport:
    type_idx: int


@dataclass
class CoreTableType:
    elem_type: CoreRefType
    limits: CoreLimits


@dataclass
class CoreTableImport:
    type: CoreTableType


@dataclass
class CoreMemType:
    limits: CoreLimits


@dataclass
class CoreMemoryImport:
    type: CoreMemType


class CoreMutability(enum.IntEnum):
    CONST = 0x00
    VAR = 0x01


@dataclass
class CoreGlobalType:
    val: CoreValType
    mut: CoreMutability = CoreMutability.CONST


@dataclass
class CoreGlobalImport:
    type: CoreGlobalType


CoreImportDesc = Union[CoreFuncImport, CoreTableImport, CoreMemoryImport, CoreGlobalImport]


@dataclass
class CoreImportDecl:
    module: str
    name: str
    desc: CoreImportDesc


@dataclass
class CoreExportDecl:
    name: str
    desc: CoreImportDesc


@dataclass
class CoreOuterAlias:
    count: int
    idx: int


@dataclass
class CoreAliasDecl:
    sort: CoreSort
    target: CoreOuterAlias


@dataclass
class CoreModuleType:
    declarations: List[Any] = field(default_factory=list)


@dataclass
class CoreType:
    def_type: Union[CoreRecType, CoreModuleType]


@dataclass
class CoreTypeDecl:
    type: CoreType


# ---------------------------------------------------------------------------
# Component sorts, instances and aliases
# ---------------------------------------------------------------------------


class Sort(enum.Enum):
    CORE_FUNC = "core func"
    CORE_TABLE = "core table"
    CORE_MEMORY = "core memory"
    CORE_GLOBAL = "core global"
    CORE_TYPE = "core type"
    CORE_MODULE = "core module"
    CORE_INSTANCE = "core instance"
    FUNC = "func"
    VALUE = "value"
    TYPE = "type"
    COMPONENT = "component"
    INSTANCE = "instance"

    @property
    def is_core(self) -> bool:
        """True for the sorts that name core items."""
        return self.value.startswith("core ")


@dataclass
class SortIdx:
    sort: Sort
    idx: int


@dataclass
class InstantiateArg:
    name: str
    sort_idx: SortIdx


@dataclass
class Instantiate:
    component_idx: int
    args: List[InstantiateArg] = field(default_factory=list)


@dataclass
class InlineExport:
    name: str
    sort_idx: SortIdx


@dataclass
class InlineExports:
    exports: List[InlineExport] = field(default_factory=list)


InstanceExpr = Union[Instantiate, InlineExports]


@dataclass
class Instance:
    expr: InstanceExpr


@dataclass
class ExportAlias:
    instance_idx: int
    name: str


@dataclass
class CoreExportAlias:
    instance_idx: int
    name: str


@dataclass
class OuterAlias:
    count: int
    idx: int


AliasTarget = Union[ExportAlias, CoreExportAlias, OuterAlias]


@dataclass
class Alias:
    sort: Sort
    target: AliasTarget


# ---------------------------------------------------------------------------
# Component types
# ---------------------------------------------------------------------------


class PrimValType(enum.IntEnum):
    """Primitive value types, valued by their binary code."""

    BOOL = 0x7F
    S8 = 0x7E
    U8 = 0x7D
    S16 = 0x7C
    U16 = 0x7B
    S32 = 0x7A
    U32 = 0x79
    S64 = 0x78
    U64 = 0x77
    F32 = 0x76
    F64 = 0x75
    CHAR = 0x74
    STRING = 0x73

    @property
    def label(self) -> str:
        """Name of the type as written in the text format."""
        return self.name.lower()


@dataclass
class TypeIdx:
    idx: int


ValType = Union[PrimValType, TypeIdx]


@dataclass
class RecordField:
    label: str
    type: ValType


@dataclass
class RecordType:
    fields: List[RecordField] = field(default_factory=list)


@dataclass
class VariantCase:
    label: str
    type: Optional[ValType] = None


@dataclass
class VariantType:
    cases: List[VariantCase] = field(default_factory=list)


@dataclass
class ListType:
    element: ValType


@dataclass
class TupleType:
    types: List[ValType] = field(default_factory=list)


@dataclass
class FlagsType:
    labels: List[str] = field(default_factory=list)


@dataclass
class EnumType:
    labels: List[str] = field(default_factory=list)


@dataclass
class OptionType:
    type: ValType


@dataclass
class ResultType:
    ok: Optional[ValType] = None
    error: Optional[ValType] = None


@dataclass
class OwnType:
    type_idx: int


@dataclass
class BorrowType:
    type_idx: int


@dataclass
class FuncParam:
    label: str
    type: ValType


@dataclass
class FuncType:
    params: List[FuncParam] = field(default_factory=list)
    results: Optional[ValType] = None


@dataclass
class ComponentType:
    declarations: List[Any] = field(default_factory=list)


@dataclass
class InstanceType:
    declarations: List[Any] = field(default_factory=list)


@dataclass
class ResourceType:
    dtor: Optional[int] = None


DefType = Union[
    PrimValType,
    TypeIdx,
    RecordType,
    VariantType,
    ListType,
    TupleType,
    FlagsType,
    EnumType,
    OptionType,
    ResultType,
    OwnType,
    BorrowType,
    FuncType,
    ComponentType,
    InstanceType,
    ResourceType,
]


@dataclass
class Type:
    def_type: DefType


# ---------------------------------------------------------------------------
# Extern descriptions
# ---------------------------------------------------------------------------


@dataclass
class EqBound:
    type_idx: int


@dataclass
class SubResourceBound:
    pass


TypeBound = Union[EqBound, SubResourceBound]


@dataclass
class SortExternDesc:
    sort: Sort
    type_idx: int


@dataclass
class TypeExternDesc:
    bound: TypeBound


ExternDesc = Union[SortExternDesc, TypeExternDesc]


@dataclass
class TypeDecl:
    type: Type


@dataclass
class AliasDecl:
    alias: Alias


@dataclass
class ImportDecl:
    import_name: str
    desc: ExternDesc


@dataclass
class ExportDecl:
    export_name: str
    desc: ExternDesc


# ---------------------------------------------------------------------------
# Canonical definitions
# ---------------------------------------------------------------------------


class StringEncoding(enum.IntEnum):
    UTF8 = 0x00
    UTF16 = 0x01
    LATIN1_UTF16 = 0x02


@dataclass
class StringEncodingOpt:
    encoding: StringEncoding


@dataclass
class MemoryOpt:
    memory_idx: int


@dataclass
class ReallocOpt:
    func_idx: int


@dataclass
class PostReturnOpt:
    func_idx: int


CanonOpt = Union[StringEncodingOpt, MemoryOpt, ReallocOpt, PostReturnOpt]


@dataclass
class CanonLift:
    core_func_idx: int
    function_type_idx: int
    options: List[CanonOpt] = field(default_factory=list)


@dataclass
class CanonLower:
    func_idx: int
    options: List[CanonOpt] = field(default_factory=list)


@dataclass
class CanonResourceNew:
    type_idx: int


@dataclass
class CanonResourceDrop:
    type_idx: int


@dataclass
class CanonResourceRep:
    type_idx: int


CanonDef = Union[CanonLift, CanonLower, CanonResourceNew, CanonResourceDrop, CanonResourceRep]


@dataclass
class Canon:
    definition: CanonDef


# ---------------------------------------------------------------------------
# Imports, exports and components
# ---------------------------------------------------------------------------


@dataclass
class Import:
    import_name: str
    desc: ExternDesc


@dataclass
class Export:
    export_name: str
    sort_idx: SortIdx
    extern_desc: Optional[ExternDesc] = None


@dataclass
class CoreModule:
    """A core module, kept as its raw binary."""

    raw: bytes = b""


@dataclass
class Component:
    """A component: its definitions in binary order."""

    definitions: List[Any] = field(default_factory=list)


@dataclass
class NestedComponent:
    component: Component