from __future__ import annotations

from typing import Dict, List

from .records import Glyph, ResolvedSymbol, StepRecord, SymbolType


# hazard is never part of the fallback cycle
FALLBACK_CYCLE: List[SymbolType] = [
    SymbolType.QUALITY,
    SymbolType.CORRECTNESS,
    SymbolType.TIP,
]

GLYPHS: Dict[SymbolType, Glyph] = {
    SymbolType.QUALITY: Glyph("circle", "quality_color"),
    SymbolType.CORRECTNESS: Glyph("circle", "correctness_color"),
    SymbolType.TIP: Glyph("check", "tip_color"),
    SymbolType.HAZARD: Glyph("square_plus", "hazard_color"),
}

LEGEND_ORDER: List[SymbolType] = [
    SymbolType.HAZARD,
    SymbolType.QUALITY,
    SymbolType.TIP,
    SymbolType.CORRECTNESS,
]


def resolve_symbol(step: StepRecord, index: int) -> ResolvedSymbol:
    symbol_type = step.symbol_type or FALLBACK_CYCLE[index % len(FALLBACK_CYCLE)]
    return ResolvedSymbol(symbol_type=symbol_type, glyph=GLYPHS[symbol_type])
