"""Fixed-width numeric annotations.

A plain ``int`` binds as a 64-bit signed integer and a plain ``float``
as a 64-bit float. Use these aliases when a field must reject values
outside a narrower range::

    @dataclass
    class Pixel:
        red: UInt8 = formfield("r", default=0)
        gain: Float32 = formfield("gain", default=1.0)
"""

from typing import Annotated

from former.binding.fields import Width

Int8 = Annotated[int, Width(8)]
Int16 = Annotated[int, Width(16)]
Int32 = Annotated[int, Width(32)]
Int64 = Annotated[int, Width(64)]

UInt8 = Annotated[int, Width(8, signed=False)]
UInt16 = Annotated[int, Width(16, signed=False)]
UInt32 = Annotated[int, Width(32, signed=False)]
UInt64 = Annotated[int, Width(64, signed=False)]
UInt = UInt64

Float32 = Annotated[float, Width(32)]
Float64 = Annotated[float, Width(64)]

__all__ = [
    "Float32",
    "Float64",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "UInt",
    "UInt8",
    "UInt16",
    "UInt32",
    "UInt64",
]
