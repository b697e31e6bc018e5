"""Symbol classification and provider code mapping."""

from quote_resolver.symbols.classifier import (
    INDEX_ALIASES,
    SUFFIX_CURRENCY,
    IndexAlias,
    classify,
    domestic_codes,
    fx_base_currency,
    fx_pair_code,
    global_codes,
    guess_currency,
    normalize,
    pence_factor,
)

__all__ = [
    "INDEX_ALIASES",
    "SUFFIX_CURRENCY",
    "IndexAlias",
    "classify",
    "domestic_codes",
    "fx_base_currency",
    "fx_pair_code",
    "global_codes",
    "guess_currency",
    "normalize",
    "pence_factor",
]
