"""
Normalization core for Messages data.

Raw chat.db rows and draft artifacts go in; canonical records and rendered
output come out. Nothing in this subpackage opens the store itself.

Modules:
    timestamps: Apple/Unix timestamp normalization
    normalizers: identifier classification and row field coercion
    handles: session-scoped handle directory
    direction: sender/receiver resolution
    records: canonical record model and run envelope
    assembler: raw rows -> records
    drafts: composition.plist decoding
    renderer: JSON and tabular output
    pipeline: extraction session orchestration
"""

from msgintel.extract.pipeline import ExtractionRequest, ExtractionSession
from msgintel.extract.renderer import RenderFormat, render

__all__ = [
    "ExtractionRequest",
    "ExtractionSession",
    "RenderFormat",
    "render",
]
