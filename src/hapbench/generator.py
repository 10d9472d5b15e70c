"""Synthetic HapMap-style marker table.

Rows are markers (``id``, ``chromosome``, ``position``) followed by one
genotype-call column per individual. Every genotype cell holds the same
placeholder so load timings measure I/O and parsing, not value variability.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

import numpy as np
import polars as pl

from hapbench.errors import InvalidParameter
from hapbench.util.logging import log_structured_event

LOG = logging.getLogger(__name__)

DEFAULT_NCHROMOSOMES = 12
DEFAULT_MAX_POSITION = 1_000_000
DEFAULT_PLACEHOLDER = "N"
METADATA_COLUMNS = ("id", "chromosome", "position")
SORT_COLUMNS = ("chromosome", "position")

STRING_TYPE = "string"
INT64_TYPE = "int64"


@dataclass(frozen=True)
class MarkerRecord:
    id: str
    chromosome: str
    position: int
    genotypes: tuple[str, ...]


@dataclass(frozen=True)
class GeneratedTable:
    frame: pl.DataFrame
    nchromosomes: int
    max_position: int
    seed: int | None
    placeholder: str

    @property
    def columns(self) -> list[str]:
        return list(self.frame.columns)

    @property
    def nrows(self) -> int:
        return int(self.frame.height)

    @property
    def ngenotype_columns(self) -> int:
        return int(self.frame.width) - len(METADATA_COLUMNS)

    @property
    def genotype_columns(self) -> list[str]:
        return self.columns[len(METADATA_COLUMNS):]

    def column_types(self) -> dict[str, str]:
        """Declared logical type per column, in file order."""
        types = {"id": STRING_TYPE, "chromosome": STRING_TYPE, "position": INT64_TYPE}
        for name in self.genotype_columns:
            types[name] = STRING_TYPE
        return types

    def records(self) -> Iterator[MarkerRecord]:
        for row in self.frame.iter_rows():
            yield MarkerRecord(
                id=row[0],
                chromosome=row[1],
                position=int(row[2]),
                genotypes=tuple(row[3:]),
            )


def genotype_column_names(ngenotype_columns: int) -> list[str]:
    return [f"ind_{index}" for index in range(1, ngenotype_columns + 1)]


def _require_positive_int(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidParameter(f"{name} must be a positive integer, got {value!r}")
    if value <= 0:
        raise InvalidParameter(f"{name} must be a positive integer, got {value!r}")
    return int(value)


def _validate_placeholder(placeholder) -> str:
    if not isinstance(placeholder, str) or not placeholder:
        raise InvalidParameter(f"placeholder must be a non-empty string, got {placeholder!r}")
    if any(ch in placeholder for ch in ("\t", "\r", "\n")):
        raise InvalidParameter("placeholder must not contain tabs or line breaks")
    return placeholder


def generate(
    nrows: int,
    ngenotype_columns: int,
    nchromosomes: int = DEFAULT_NCHROMOSOMES,
    max_position: int = DEFAULT_MAX_POSITION,
    seed: int | None = None,
    placeholder: str = DEFAULT_PLACEHOLDER,
) -> GeneratedTable:
    """Build the sorted synthetic marker table.

    Chromosome labels are ``"chr" + k`` with ``k`` drawn uniformly with
    replacement from ``1..nchromosomes``; positions are uniform in
    ``[0, max_position)`` truncated to integers. Rows are ordered by the
    chromosome *string* and then by position, so ``"chr10"`` sorts before
    ``"chr2"``. The sort is stable: ties keep generation order.

    Raises:
        InvalidParameter: on non-positive counts or a bad placeholder.
    """
    nrows = _require_positive_int("nrows", nrows)
    ngenotype_columns = _require_positive_int("ngenotype_columns", ngenotype_columns)
    nchromosomes = _require_positive_int("nchromosomes", nchromosomes)
    max_position = _require_positive_int("max_position", max_position)
    placeholder = _validate_placeholder(placeholder)

    rng = np.random.default_rng(seed)
    chromosome_index = rng.integers(1, nchromosomes + 1, size=nrows)
    positions = np.floor(rng.uniform(0, max_position, size=nrows)).astype(np.int64)

    frame = pl.DataFrame(
        {
            "id": [f"id_{index}" for index in range(1, nrows + 1)],
            "chromosome": [f"chr{k}" for k in chromosome_index.tolist()],
            "position": positions,
        },
        schema={"id": pl.String, "chromosome": pl.String, "position": pl.Int64},
    )
    frame = frame.sort(list(SORT_COLUMNS), maintain_order=True)
    frame = frame.with_columns(
        [pl.lit(placeholder, dtype=pl.String).alias(name) for name in genotype_column_names(ngenotype_columns)]
    )

    log_structured_event(
        LOG,
        logging.DEBUG,
        "dataset_generated",
        nrows=nrows,
        ngenotype_columns=ngenotype_columns,
        nchromosomes=nchromosomes,
        max_position=max_position,
        seed=seed,
    )
    return GeneratedTable(
        frame=frame,
        nchromosomes=nchromosomes,
        max_position=max_position,
        seed=seed,
        placeholder=placeholder,
    )
