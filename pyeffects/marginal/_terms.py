"""
Focal term parsing.

Grammar of one term string:

    name                  all levels / default grid
    name [v1,v2,v3]       explicit values, or a level filter for factors
    name [sample=n]       n levels drawn without replacement
    name [all]            every observed unique value
    name [n=k]            k evenly spaced values over the observed range
    name [a:b]            integer range a..b inclusive
    name [minmax]         minimum and maximum
    name [meansd]         mean - sd, mean, mean + sd
    name [quart]          minimum, quartiles and maximum
    name [quart2]         25th, 50th and 75th percentile
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from pyeffects.core.exceptions import InvalidTermError
from pyeffects.marginal._defaults import MAX_FOCAL_TERMS

_TERM_RE = re.compile(r'^\s*([^\s\[\]]+)\s*(?:\[(.*)\])?\s*$')
_RANGE_RE = re.compile(r'^(-?\d+)\s*:\s*(-?\d+)$')
_KEYED_RE = re.compile(r'^(sample|n)\s*=\s*(-?\d+)$')

# Selectors that only make sense for numeric variables
NUMERIC_SELECTORS = frozenset({'n', 'range', 'minmax', 'meansd', 'quart', 'quart2'})

_KEYWORDS = frozenset({'all', 'minmax', 'meansd', 'quart', 'quart2'})


@dataclass(frozen=True)
class TermSpec:
    """One parsed focal term.

    Attributes:
        name: Variable name.
        selector: 'default', 'values', 'sample', 'all', 'n', 'range',
            'minmax', 'meansd', 'quart' or 'quart2'.
        values: Raw value tokens for 'values'; (start, stop) for 'range'.
        size: Requested count for 'sample' and 'n'.
        raw: The term string as given.
    """
    name: str
    selector: str = 'default'
    values: tuple[str, ...] = ()
    size: int | None = None
    raw: str = ''


def parse_term(text: str) -> TermSpec:
    """Parse a single term string.

    Raises:
        InvalidTermError: If the string is malformed.
    """
    if not isinstance(text, str):
        raise InvalidTermError(
            f"terms must be strings, got {type(text).__name__}", term=repr(text)
        )
    match = _TERM_RE.match(text)
    if match is None:
        raise InvalidTermError(f"Cannot parse term {text!r}", term=text)

    name, inner = match.group(1), match.group(2)
    if inner is None:
        return TermSpec(name=name, raw=text)

    inner = inner.strip()
    if not inner:
        raise InvalidTermError(f"Empty selector in term {text!r}", term=text)

    lowered = inner.lower()
    if lowered in _KEYWORDS:
        return TermSpec(name=name, selector=lowered, raw=text)

    keyed = _KEYED_RE.match(lowered)
    if keyed is not None:
        return TermSpec(
            name=name, selector=keyed.group(1), size=int(keyed.group(2)), raw=text,
        )

    ranged = _RANGE_RE.match(inner)
    if ranged is not None:
        return TermSpec(
            name=name, selector='range',
            values=(ranged.group(1), ranged.group(2)), raw=text,
        )

    tokens = [tok.strip() for tok in inner.split(',')]
    if any(not tok for tok in tokens):
        raise InvalidTermError(f"Empty value in term {text!r}", term=text)
    # Duplicates keep their first position
    tokens = list(dict.fromkeys(tokens))
    return TermSpec(name=name, selector='values', values=tuple(tokens), raw=text)


def parse_terms(terms: str | Sequence[str]) -> tuple[TermSpec, ...]:
    """Parse one term string or a sequence of up to MAX_FOCAL_TERMS.

    Raises:
        InvalidTermError: On malformed terms, too many terms, or the
            same variable requested twice.
    """
    if isinstance(terms, str):
        terms = [terms]
    specs = tuple(parse_term(t) for t in terms)
    if not specs:
        raise InvalidTermError("At least one focal term is required")
    if len(specs) > MAX_FOCAL_TERMS:
        raise InvalidTermError(
            f"At most {MAX_FOCAL_TERMS} focal terms are supported, got {len(specs)}"
        )
    names = [s.name for s in specs]
    duplicated = sorted({n for n in names if names.count(n) > 1})
    if duplicated:
        raise InvalidTermError(
            f"Focal terms repeat variables: {duplicated}", term=duplicated[0]
        )
    return specs
