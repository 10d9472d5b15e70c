from __future__ import annotations

import gzip
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
import polars as pl

from hapbench.errors import FixtureWriteFailure
from hapbench.generator import GeneratedTable
from hapbench.util.deps import require_h5py
from hapbench.util.logging import log_structured_event
from hapbench.util.timing import timed

LOG = logging.getLogger(__name__)

TSV_SUFFIX = ".tsv"
GZIP_SUFFIX = ".gz"
HDF5_SUFFIX = ".h5"
DEFAULT_BASENAME = "hapmap"
DEFAULT_HDF5_GROUP = "tables"
DEFAULT_HDF5_DATASET = "hapmap"
DEFAULT_GZIP_LEVEL = 6
_COPY_CHUNK_BYTES = 1 << 20


@dataclass(frozen=True)
class FixtureFile:
    artifact: str
    path: Path
    write_seconds: float
    bytes: int


@dataclass(frozen=True)
class BenchmarkInput:
    label: str
    path: Path
    compressed: bool = False


@dataclass(frozen=True)
class FixtureSet:
    tsv: FixtureFile
    tsv_gz: FixtureFile
    hdf5: FixtureFile
    hdf5_dataset: str

    def benchmark_inputs(self) -> list[BenchmarkInput]:
        # The HDF5 matrix is a write-cost comparison only; it is never loaded by strategies.
        return [
            BenchmarkInput(label="tsv", path=self.tsv.path, compressed=False),
            BenchmarkInput(label="tsv.gz", path=self.tsv_gz.path, compressed=True),
        ]

    def files(self) -> list[FixtureFile]:
        return [self.tsv, self.tsv_gz, self.hdf5]

    def size_stats(self) -> dict[str, Any]:
        tsv_bytes = self.tsv.bytes

        def _ratio(other: int) -> float | None:
            return (tsv_bytes / other) if other else None

        return {
            "tsv_bytes": tsv_bytes,
            "tsv_gz_bytes": self.tsv_gz.bytes,
            "hdf5_bytes": self.hdf5.bytes,
            "tsv_to_gz_ratio": _ratio(self.tsv_gz.bytes),
            "tsv_to_hdf5_ratio": _ratio(self.hdf5.bytes),
            "gz_reduction_pct": ((tsv_bytes - self.tsv_gz.bytes) / tsv_bytes * 100.0) if tsv_bytes else 0.0,
        }


def _fsync_path(path: Path) -> None:
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def write_tsv(table: GeneratedTable, path: Path) -> None:
    table.frame.write_csv(
        path,
        separator="\t",
        include_header=True,
        line_terminator=os.linesep,
        quote_style="never",
    )
    _fsync_path(path)


def gzip_file(source: Path, target: Path, *, compresslevel: int = DEFAULT_GZIP_LEVEL) -> None:
    with source.open("rb") as src, target.open("wb") as raw:
        # mtime=0 and no embedded filename keep the archive byte-stable across runs.
        with gzip.GzipFile(filename="", mode="wb", fileobj=raw, compresslevel=compresslevel, mtime=0) as dst:
            shutil.copyfileobj(src, dst, _COPY_CHUNK_BYTES)
        raw.flush()
        os.fsync(raw.fileno())


def write_hdf5_matrix(
    table: GeneratedTable,
    path: Path,
    *,
    group: str = DEFAULT_HDF5_GROUP,
    dataset: str = DEFAULT_HDF5_DATASET,
) -> None:
    """Store the table as a single byte-string matrix.

    HDF5 datasets hold one element type, so every column (position
    included) is coerced to fixed-width bytes. Column names go into the
    ``columns`` attribute of the dataset.
    """
    h5py = require_h5py("write_hdf5_matrix")
    matrix = table.frame.select(pl.all().cast(pl.String)).to_numpy().astype(np.bytes_)
    with h5py.File(path, "w") as handle:
        node = handle.require_group(group)
        created = node.create_dataset(dataset, data=matrix)
        created.attrs["columns"] = np.array(table.columns, dtype=np.bytes_)
        created.attrs["nrows"] = table.nrows
    _fsync_path(path)


def read_hdf5_matrix(path: Path, dataset: str) -> tuple[list[str], Any]:
    h5py = require_h5py("read_hdf5_matrix")
    with h5py.File(path, "r") as handle:
        node = handle[dataset]
        columns = [value.decode("utf-8") for value in node.attrs["columns"]]
        matrix = node[()]
    return columns, matrix


def verify_gzip_roundtrip(fixtures: FixtureSet) -> bool:
    with fixtures.tsv.path.open("rb") as plain, gzip.open(fixtures.tsv_gz.path, "rb") as packed:
        while True:
            left = plain.read(_COPY_CHUNK_BYTES)
            right = packed.read(_COPY_CHUNK_BYTES)
            if left != right:
                return False
            if not left:
                return True


class FixtureWorkspace:
    """Scratch directory owning the on-disk fixtures of one benchmark run.

    Without ``root`` a temporary directory is created and removed on exit.
    With ``root`` only the files written by this workspace are removed, and
    nothing is removed when ``keep`` is true.
    """

    def __init__(self, root: Path | str | None = None, *, keep: bool = False):
        self._requested_root = Path(root) if root is not None else None
        self.keep = bool(keep)
        self._owns_root = False
        self._written: list[Path] = []
        self.root: Path | None = None

    def __enter__(self) -> "FixtureWorkspace":
        if self._requested_root is None:
            self.root = Path(tempfile.mkdtemp(prefix="hapbench-"))
            self._owns_root = True
        else:
            try:
                self._requested_root.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise FixtureWriteFailure(
                    "unable to create fixture directory", "directory", self._requested_root, exc
                ) from exc
            self.root = self._requested_root
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        if self.keep:
            log_structured_event(LOG, logging.INFO, "fixtures_kept", root=str(self.root))
            return
        for path in self._written:
            path.unlink(missing_ok=True)
        self._written.clear()
        if self._owns_root and self.root is not None:
            shutil.rmtree(self.root, ignore_errors=True)
        log_structured_event(LOG, logging.DEBUG, "fixtures_removed", root=str(self.root))

    def path_for(self, filename: str) -> Path:
        if self.root is None:
            raise RuntimeError("FixtureWorkspace must be entered before use")
        return self.root / filename

    def _write(self, artifact: str, path: Path, writer) -> FixtureFile:
        self._written.append(path)
        try:
            with timed() as timing:
                writer(path)
        except FixtureWriteFailure:
            raise
        except Exception as exc:
            # h5py and polars surface disk errors as their own exception types.
            raise FixtureWriteFailure(f"unable to write {artifact} fixture", artifact, path, exc) from exc
        elapsed = timing["seconds"]
        size = path.stat().st_size
        log_structured_event(
            LOG,
            logging.INFO,
            "fixture_written",
            artifact=artifact,
            path=str(path),
            bytes=size,
            write_seconds=round(elapsed, 6),
        )
        return FixtureFile(artifact=artifact, path=path, write_seconds=elapsed, bytes=size)

    def write_fixtures(
        self,
        table: GeneratedTable,
        *,
        basename: str = DEFAULT_BASENAME,
        hdf5_group: str = DEFAULT_HDF5_GROUP,
        hdf5_dataset: str = DEFAULT_HDF5_DATASET,
        gzip_level: int = DEFAULT_GZIP_LEVEL,
    ) -> FixtureSet:
        tsv_path = self.path_for(basename + TSV_SUFFIX)
        gz_path = self.path_for(basename + TSV_SUFFIX + GZIP_SUFFIX)
        h5_path = self.path_for(basename + HDF5_SUFFIX)

        tsv = self._write("tsv", tsv_path, lambda path: write_tsv(table, path))
        tsv_gz = self._write(
            "tsv_gz",
            gz_path,
            lambda path: gzip_file(tsv_path, path, compresslevel=gzip_level),
        )
        hdf5 = self._write(
            "hdf5",
            h5_path,
            lambda path: write_hdf5_matrix(table, path, group=hdf5_group, dataset=hdf5_dataset),
        )
        return FixtureSet(tsv=tsv, tsv_gz=tsv_gz, hdf5=hdf5, hdf5_dataset=f"{hdf5_group}/{hdf5_dataset}")
