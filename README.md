# wacomp

`wacomp` reads WebAssembly Component Model binaries and turns them into a tree of
plain Python dataclasses and enums. It needs only the standard library.

## Installation

```
pip install wacomp
```

## Parsing a component

```python
from wacomp.parser import parse_component
from wacomp.reader import ParseError

with open("component.wasm", "rb") as fh:
    try:
        component = parse_component(fh)
    except ParseError as exc:
        print(f"not a valid component: {exc}")
    else:
        for definition in component.definitions:
            print(type(definition).__name__)
```

`parse_component` takes either bytes or a binary file object (anything with a
`read` method). It first checks the preamble: magic number, component version and
layer. It then reads every section, in order, into `component.definitions`:

- core modules, kept as raw bytes in `CoreModule.raw`
- nested components, parsed recursively into `NestedComponent.component`
- core instances and core types
- instances, aliases and types
- canonical functions (`Canon`, whose `definition` is a `CanonLift`,
  `CanonLower`, `CanonResourceNew`, `CanonResourceDrop` or `CanonResourceRep`)
- imports (`Import`) and exports (`Export`, with an optional `extern_desc`)

Custom sections are skipped. A version suffix on an import or export name is
read and dropped. Anything malformed or not supported raises `ParseError` (a
subclass of `ValueError`), and the message says where the problem is. A core
module given in place of a component, for example, fails with an
"invalid version" message.

The node classes and enums live in `wacomp.nodes`, for example `Component`,
`CoreModule`, `NestedComponent`, `Type`, `PrimValType`, `RecordType`,
`FuncType`, `ComponentType`, `InstanceType`, `ResourceType`, `Sort` and
`CoreSort`.

Some parts of the format are not supported. Reading any of these raises
`ParseError`:

- start sections
- value extern descriptors
- fixed-length lists
- streams and futures
- error-context types
- async function types
- async resource types

## Low-level reading

`wacomp.reader.Reader` is a cursor over a bytes-like object. It offers:

- byte access: `read_byte`, `peek_byte`, `read_bytes`, `read_rest`, `at_end`
  and the `position` property
- LEB128 integer decoding: `read_u32`, `read_s32` and `read_s64`
- name decoding: `read_name`, `read_import_name` and `read_export_name`
- vector decoding: `read_vec`, which calls a function once per element and
  returns the results as a list

The functions in `wacomp.coretypes` (such as `parse_core_type`,
`parse_core_val_type` and `parse_core_import_desc`) and in `wacomp.parser`
(such as `parse_def_type`, `parse_val_type`, `parse_canon` and
`parse_extern_desc`) each take a `Reader` and decode one production of the
grammar, so pieces of a binary can be decoded on their own.

## Checking parsed trees

`wacomp.matcher` provides small composable matchers for asserting on the shape
of a parsed tree. A matcher is any callable that takes a node and raises when
the node does not match; the built-in ones raise `MatchError`, a subclass of
`AssertionError`. Validators passed to the builders take the typed node and
raise to signal failure.

```python
from wacomp.matcher import any_definition, match_component, match_core_module

check = match_component().with_definitions(
    match_core_module().with_raw_size(8),
    any_definition(),
)
check(component)
```

`match_nested_component().with_component(...)` checks a nested component's
inner tree. Helpers such as `empty_component`, `count_definitions`, `all_of`,
`any_of` and `not_` combine matchers.

## What it does not do

`wacomp` only decodes binaries. It does not validate a component against the
type rules of the Component Model, does not instantiate or run components or
core modules, does not decode the contents of core modules, and has no
command-line tool.