import io

import pytest

from wacomp.nodes import (
    Alias,
    AliasDecl,
    BorrowType,
    Canon,
    CanonLift,
    CanonLower,
    CanonResourceDrop,
    CanonResourceNew,
    CanonResourceRep,
    ComponentType,
    CoreExportAlias,
    CoreFuncType,
    CoreInlineExport,
    CoreInlineExports,
    CoreInstance,
    CoreInstantiate,
    CoreInstantiateArg,
    CoreModule,
    CoreNumType,
    CoreRecType,
    CoreSort,
    CoreSortIdx,
    CoreSubType,
    CoreType,
    CoreTypeDecl,
    EnumType,
    EqBound,
    Export,
    ExportAlias,
    ExportDecl,
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
    TypeDecl,
    TypeExternDesc,
    TypeIdx,
    VariantCase,
    VariantType,
)
from wacomp.parser import (
    parse_alias,
    parse_canon,
    parse_canon_opt,
    parse_component,
    parse_component_decl,
    parse_def_type,
    parse_export,
    parse_extern_desc,
    parse_import,
    parse_instance,
    parse_instance_decl,
    parse_section,
    parse_sort,
    parse_sort_idx,
    parse_type_bound,
    parse_val_type,
)
from wacomp.reader import ParseError, Reader

PREAMBLE = b"\x00asm\x0d\x00\x01\x00"
CORE_MODULE_HEADER = b"\x00asm\x01\x00\x00\x00"


def leb(n):
    out = bytearray()
    while True:
        byte = n & 0x7F
        n >>= 7
        if n:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def name(text):
    raw = text.encode()
    return leb(len(raw)) + raw


def vec(items):
    return leb(len(items)) + b"".join(items)


def section(section_id, payload):
    return bytes([section_id]) + leb(len(payload)) + payload


def component(*sections):
    return PREAMBLE + b"".join(sections)


# --- cases carried over from the source's own tests ---


def test_empty_component():
    assert parse_component(component()).definitions == []


def test_component_with_two_core_modules():
    mod_a = CORE_MODULE_HEADER + section(1, vec([b"\x60\x00\x01\x7f", b"\x60\x00\x01\x7e"]))
    mod_b = CORE_MODULE_HEADER + section(1, vec([b"\x60\x00\x01\x7d", b"\x60\x00\x01\x7c"]))
    parsed = parse_component(component(section(1, mod_a), section(1, mod_b)))
    assert parsed.definitions == [CoreModule(raw=mod_a), CoreModule(raw=mod_b)]


def test_type_parsing():
    inst = b"\x42" + vec(
        [
            b"\x04\x00" + name("person") + b"\x03\x01",
            b"\x01\x69\x00",
            b"\x01\x40" + vec([name("name") + b"\x73"]) + b"\x00\x01",
            b"\x04\x00" + name("[constructor]person") + b"\x01\x02",
            b"\x01\x68\x00",
            b"\x01\x40" + vec([name("self") + b"\x03"]) + b"\x00\x73",
            b"\x04\x00" + name("[method]person.get-name") + b"\x01\x04",
        ]
    )
    comp_type = b"\x41" + vec(
        [b"\x01" + inst, b"\x04\x00" + name("example:gocomponent/people") + b"\x05\x00"]
    )
    data = component(
        section(7, vec([comp_type])),
        section(11, vec([b"\x00" + name("people") + b"\x03\x00" + b"\x00"])),
    )
    parsed = parse_component(data)
    assert len(parsed.definitions) == 2
    first = parsed.definitions[0]
    assert isinstance(first.def_type, ComponentType)
    expected_instance = InstanceType(
        [
            ExportDecl("person", TypeExternDesc(SubResourceBound())),
            TypeDecl(Type(OwnType(0))),
            TypeDecl(Type(FuncType([FuncParam("name", PrimValType.STRING)], TypeIdx(1)))),
            ExportDecl("[constructor]person", SortExternDesc(Sort.FUNC, 2)),
            TypeDecl(Type(BorrowType(0))),
            TypeDecl(Type(FuncType([FuncParam("self", TypeIdx(3))], PrimValType.STRING))),
            ExportDecl("[method]person.get-name", SortExternDesc(Sort.FUNC, 4)),
        ]
    )
    assert first == Type(
        ComponentType(
            [
                TypeDecl(Type(expected_instance)),
                ExportDecl("example:gocomponent/people", SortExternDesc(Sort.INSTANCE, 0)),
            ]
        )
    )
    assert parsed.definitions[1] == Export("people", SortIdx(Sort.TYPE, 0), None)


def test_core_module_instead_of_component_is_invalid_version():
    with pytest.raises(ParseError, match="invalid version"):
        parse_component(CORE_MODULE_HEADER)


# --- preamble and sections ---


def test_invalid_magic():
    with pytest.raises(ParseError, match="invalid magic byte 0: expected 0x00, got 0x01"):
        parse_component(b"\x01asm\x0d\x00\x01\x00")


def test_truncated_preamble():
    with pytest.raises(ParseError, match="failed to parse preamble: failed to read layer byte 1"):
        parse_component(PREAMBLE[:-1])


def test_invalid_layer():
    with pytest.raises(ParseError, match="invalid layer byte 0: expected 0x01, got 0x02"):
        parse_component(b"\x00asm\x0d\x00\x02\x00")


def test_file_object_input():
    mod = CORE_MODULE_HEADER
    parsed = parse_component(io.BytesIO(component(section(1, mod))))
    assert parsed.definitions == [CoreModule(raw=mod)]


def test_custom_section_is_skipped():
    parsed = parse_component(component(section(0, name("note") + b"payload")))
    assert parsed.definitions == []


def test_unknown_section_id():
    with pytest.raises(ParseError, match="failed to parse section 12: unknown section ID: 12"):
        parse_component(component(section(12, b"")))


def test_start_section_not_implemented():
    with pytest.raises(ParseError, match="start section not yet implemented"):
        parse_component(component(section(9, b"\x00")))


def test_truncated_section_data():
    with pytest.raises(ParseError, match="failed to read section data"):
        parse_component(PREAMBLE + b"\x01\x05\x00")


def test_parse_section_returns_definitions_and_advances():
    reader = Reader(section(8, vec([b"\x02\x05"])) + b"\xff")
    assert parse_section(reader) == [Canon(CanonResourceNew(5))]
    assert reader.read_byte() == 0xFF


def test_nested_component():
    inner = component(section(1, CORE_MODULE_HEADER))
    parsed = parse_component(component(section(4, inner)))
    assert parsed.definitions == [
        NestedComponent(component=parse_component(inner))
    ]
    assert parsed.definitions[0].component.definitions == [CoreModule(raw=CORE_MODULE_HEADER)]


def test_nested_component_error_is_wrapped():
    with pytest.raises(ParseError, match="parsing nested component: failed to parse preamble: invalid version byte 0"):
        parse_component(component(section(4, CORE_MODULE_HEADER)))


def test_core_instance_section():
    payload = vec(
        [
            b"\x00\x03" + vec([name("env") + b"\x12\x01"]),
            b"\x01" + vec([name("f") + b"\x00\x04"]),
        ]
    )
    parsed = parse_component(component(section(2, payload)))
    assert parsed.definitions == [
        CoreInstance(CoreInstantiate(3, [CoreInstantiateArg("env", 1)])),
        CoreInstance(CoreInlineExports([CoreInlineExport("f", CoreSortIdx(CoreSort.FUNC, 4))])),
    ]


def test_core_type_section():
    parsed = parse_component(component(section(3, vec([b"\x60\x01\x7f\x01\x7e"]))))
    assert parsed.definitions == [
        CoreType(CoreRecType([CoreSubType(CoreFuncType([CoreNumType.I32], [CoreNumType.I64]))]))
    ]


def test_alias_section():
    payload = vec(
        [
            b"\x01\x00\x00" + name("f"),
            b"\x00\x00\x01\x02" + name("g"),
            b"\x03\x02\x01\x07",
        ]
    )
    parsed = parse_component(component(section(6, payload)))
    assert parsed.definitions == [
        Alias(Sort.FUNC, ExportAlias(0, "f")),
        Alias(Sort.CORE_FUNC, CoreExportAlias(2, "g")),
        Alias(Sort.TYPE, OuterAlias(1, 7)),
    ]


def test_import_section_with_version_suffix():
    payload = vec([b"\x01" + name("wasi:io/streams") + name("0.2.0") + b"\x05\x02"])
    parsed = parse_component(component(section(10, payload)))
    assert parsed.definitions == [Import("wasi:io/streams", SortExternDesc(Sort.INSTANCE, 2))]


def test_instance_section():
    payload = vec(
        [
            b"\x00\x01" + vec([name("dep") + b"\x05\x00"]),
            b"\x01" + vec([b"\x00" + name("run") + b"\x01\x03"]),
        ]
    )
    parsed = parse_component(component(section(5, payload)))
    assert parsed.definitions == [
        Instance(Instantiate(1, [InstantiateArg("dep", SortIdx(Sort.INSTANCE, 0))])),
        Instance(InlineExports([InlineExport("run", SortIdx(Sort.FUNC, 3))])),
    ]


# --- individual parsers ---


def test_parse_instance_invalid():
    with pytest.raises(ParseError, match="invalid instance expr discriminator: 0x02"):
        parse_instance(Reader(b"\x02"))


@pytest.mark.parametrize(
    "data, expected",
    [
        (b"\x00\x00", Sort.CORE_FUNC),
        (b"\x00\x01", Sort.CORE_TABLE),
        (b"\x00\x02", Sort.CORE_MEMORY),
        (b"\x00\x03", Sort.CORE_GLOBAL),
        (b"\x00\x10", Sort.CORE_TYPE),
        (b"\x00\x11", Sort.CORE_MODULE),
        (b"\x00\x12", Sort.CORE_INSTANCE),
        (b"\x01", Sort.FUNC),
        (b"\x03", Sort.TYPE),
        (b"\x04", Sort.COMPONENT),
        (b"\x05", Sort.INSTANCE),
    ],
)
def test_parse_sort(data, expected):
    assert parse_sort(Reader(data)) == expected


def test_parse_sort_errors():
    with pytest.raises(ParseError, match="invalid core sort: 0x05"):
        parse_sort(Reader(b"\x00\x05"))
    with pytest.raises(ParseError, match="invalid sort discriminator: 0x02"):
        parse_sort(Reader(b"\x02"))


def test_parse_sort_idx():
    assert parse_sort_idx(Reader(b"\x01\x80\x01")) == SortIdx(Sort.FUNC, 128)


def test_parse_alias_errors_are_wrapped():
    with pytest.raises(ParseError, match="failed to parse alias sort: invalid sort discriminator"):
        parse_alias(Reader(b"\x09"))
    with pytest.raises(ParseError, match="failed to parse alias target: invalid alias target discriminator: 0x03"):
        parse_alias(Reader(b"\x01\x03"))


@pytest.mark.parametrize("code", range(0x73, 0x80))
def test_parse_def_type_primitives(code):
    assert parse_def_type(Reader(bytes([code]))) == PrimValType(code)


@pytest.mark.parametrize(
    "data, expected",
    [
        (b"\x05", TypeIdx(5)),
        (b"\x72" + vec([name("x") + b"\x79"]), RecordType([RecordField("x", PrimValType.U32)])),
        (
            b"\x71" + vec([name("a") + b"\x00\x00", name("b") + b"\x01\x73\x00"]),
            VariantType([VariantCase("a"), VariantCase("b", PrimValType.STRING)]),
        ),
        (b"\x70\x7d", ListType(PrimValType.U8)),
        (b"\x6f" + vec([b"\x7f", b"\x02"]), TupleType([PrimValType.BOOL, TypeIdx(2)])),
        (b"\x6e" + vec([name("r"), name("w")]), FlagsType(["r", "w"])),
        (b"\x6d" + vec([name("low"), name("high")]), EnumType(["low", "high"])),
        (b"\x6b\x74", OptionType(PrimValType.CHAR)),
        (b"\x6a\x01\x79\x00", ResultType(ok=PrimValType.U32)),
        (b"\x6a\x00\x01\x73", ResultType(error=PrimValType.STRING)),
        (b"\x69\x01", OwnType(1)),
        (b"\x68\x02", BorrowType(2)),
        (b"\x40" + vec([]) + b"\x01\x00", FuncType([], None)),
        (b"\x3f\x7f\x01\x03", ResourceType(dtor=3)),
        (b"\x3f\x7f\x00", ResourceType()),
    ],
)
def test_parse_def_type_constructors(data, expected):
    assert parse_def_type(Reader(data)) == expected


@pytest.mark.parametrize(
    "code, message",
    [
        (0x67, "fixed length list type (0x67) is not yet supported"),
        (0x66, "stream types (0x66) are not yet supported"),
        (0x65, "future types (0x65) are not yet supported"),
        (0x64, "error-context types (0x64) are not yet supported"),
        (0x43, "async function types (0x43) are not yet supported"),
        (0x50, "invalid type constructor: 0x50"),
    ],
)
def test_parse_def_type_unsupported(code, message):
    with pytest.raises(ParseError) as info:
        parse_def_type(Reader(bytes([code])))
    assert str(info.value) == message


def test_variant_case_needs_trailing_zero():
    with pytest.raises(ParseError, match="expected trailing 0x00 in variant case, got 0x01"):
        parse_def_type(Reader(b"\x71" + vec([name("a") + b"\x00\x01"])))


def test_resource_must_be_i32():
    with pytest.raises(ParseError, match="resources can only be represented by `i32`, got 0x7e"):
        parse_def_type(Reader(b"\x3f\x7e\x00"))


def test_func_result_list_errors():
    with pytest.raises(ParseError, match=r"invalid leading byte \(0x5\) for number of results"):
        parse_def_type(Reader(b"\x40\x00\x01\x05"))
    with pytest.raises(ParseError, match=r"invalid leading byte \(0x2\) for component function results"):
        parse_def_type(Reader(b"\x40\x00\x02"))


def test_parse_val_type():
    assert parse_val_type(Reader(b"\x73")) == PrimValType.STRING
    assert parse_val_type(Reader(b"\x90\x01")) == TypeIdx(144)
    with pytest.raises(ParseError, match="error-context types"):
        parse_val_type(Reader(b"\x64"))


def test_parse_component_decl_variants():
    core = parse_component_decl(Reader(b"\x00\x60\x00\x00"))
    assert core == CoreTypeDecl(CoreType(CoreRecType([CoreSubType(CoreFuncType())])))
    alias = parse_component_decl(Reader(b"\x02\x03\x02\x01\x00"))
    assert alias == AliasDecl(Alias(Sort.TYPE, OuterAlias(1, 0)))
    imp = parse_component_decl(Reader(b"\x03\x00" + name("dep") + b"\x04\x06"))
    assert imp == ImportDecl("dep", SortExternDesc(Sort.COMPONENT, 6))


def test_parse_component_decl_invalid():
    with pytest.raises(ParseError, match="invalid component decl discriminator: 0x05"):
        parse_component_decl(Reader(b"\x05"))


def test_parse_instance_decl_rejects_import():
    with pytest.raises(ParseError, match="invalid instance decl discriminator: 0x03"):
        parse_instance_decl(Reader(b"\x03\x00" + name("dep") + b"\x04\x06"))


def test_parse_instance_decl_export():
    decl = parse_instance_decl(Reader(b"\x04\x00" + name("f") + b"\x01\x00"))
    assert decl == ExportDecl("f", SortExternDesc(Sort.FUNC, 0))


def test_parse_canon_lift():
    data = b"\x00\x00\x02" + vec([b"\x00", b"\x03\x00", b"\x04\x01", b"\x05\x02"]) + b"\x07"
    assert parse_canon(Reader(data)) == Canon(
        CanonLift(
            core_func_idx=2,
            function_type_idx=7,
            options=[
                StringEncodingOpt(StringEncoding.UTF8),
                MemoryOpt(0),
                ReallocOpt(1),
                PostReturnOpt(2),
            ],
        )
    )


@pytest.mark.parametrize(
    "data, expected",
    [
        (b"\x01\x00\x04" + vec([b"\x01"]), CanonLower(4, [StringEncodingOpt(StringEncoding.UTF16)])),
        (b"\x02\x01", CanonResourceNew(1)),
        (b"\x03\x02", CanonResourceDrop(2)),
        (b"\x04\x03", CanonResourceRep(3)),
    ],
)
def test_parse_canon_others(data, expected):
    assert parse_canon(Reader(data)) == Canon(expected)


def test_parse_canon_errors():
    with pytest.raises(ParseError, match="expected func sort 0x00, got 0x01"):
        parse_canon(Reader(b"\x00\x01\x00"))
    with pytest.raises(ParseError, match="invalid canon discriminator: 0x09"):
        parse_canon(Reader(b"\x09"))


def test_parse_canon_opt():
    assert parse_canon_opt(Reader(b"\x02")) == StringEncodingOpt(StringEncoding.LATIN1_UTF16)
    with pytest.raises(ParseError, match="invalid canon option discriminator: 0x06"):
        parse_canon_opt(Reader(b"\x06"))


def test_parse_import_errors():
    with pytest.raises(ParseError, match="failed to read import name: invalid import name discriminator: 0x02"):
        parse_import(Reader(b"\x02"))
    with pytest.raises(ParseError, match="failed to parse extern desc: value extern desc not yet implemented"):
        parse_import(Reader(b"\x00" + name("v") + b"\x02"))


def test_parse_export_with_extern_desc():
    data = b"\x00" + name("run") + b"\x01\x02" + b"\x01\x01\x05"
    assert parse_export(Reader(data)) == Export(
        "run", SortIdx(Sort.FUNC, 2), SortExternDesc(Sort.FUNC, 5)
    )


def test_parse_export_errors():
    with pytest.raises(ParseError, match="invalid extern desc presence byte: 0x02"):
        parse_export(Reader(b"\x00" + name("run") + b"\x01\x02\x02"))
    with pytest.raises(ParseError, match="failed to parse sortidx: .* for export run"):
        parse_export(Reader(b"\x00" + name("run") + b"\x09"))


def test_parse_extern_desc():
    assert parse_extern_desc(Reader(b"\x00\x11\x03")) == SortExternDesc(Sort.CORE_MODULE, 3)
    assert parse_extern_desc(Reader(b"\x03\x00\x04")) == TypeExternDesc(EqBound(4))
    with pytest.raises(ParseError, match="expected core module sort 0x11, got 0x10"):
        parse_extern_desc(Reader(b"\x00\x10\x03"))
    with pytest.raises(ParseError, match="invalid extern desc discriminator: 0x06"):
        parse_extern_desc(Reader(b"\x06"))


def test_parse_type_bound():
    assert parse_type_bound(Reader(b"\x00\x09")) == EqBound(9)
    assert parse_type_bound(Reader(b"\x01")) == SubResourceBound()
    with pytest.raises(ParseError, match="invalid type bound discriminator: 0x02"):
        parse_type_bound(Reader(b"\x02"))