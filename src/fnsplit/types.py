"""Fixed-width numeric annotations understood by the binary codec.

They are plain ``NewType`` wrappers, so annotated code runs unchanged::

    from fnsplit.types import u64, i32, f32

    @server
    async def add(a: u64, b: i32) -> f32:
        return float(a) + float(b)
"""

from typing import NewType

u8 = NewType("u8", int)
u16 = NewType("u16", int)
u32 = NewType("u32", int)
u64 = NewType("u64", int)
i8 = NewType("i8", int)
i16 = NewType("i16", int)
i32 = NewType("i32", int)
i64 = NewType("i64", int)
f32 = NewType("f32", float)
f64 = NewType("f64", float)

__all__ = ["u8", "u16", "u32", "u64", "i8", "i16", "i32", "i64", "f32", "f64"]
