"""Parser for the WebAssembly Component Model binary format, with tree matchers."""

__version__ = "0.1.0"

__all__ = ["nodes", "reader", "coretypes", "parser", "matcher"]