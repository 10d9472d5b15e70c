from __future__ import annotations

import logging
import os
import re
from os.path import join as pjoin
from pathlib import Path

from setuptools import Command, find_packages, setup

ROOT = Path(__file__).resolve().parent
VERSION_FILE = ROOT / "src" / "hapbench" / "_version.py"


def _project_version() -> str:
    match = re.search(r'^VERSION = "([^"]+)"', VERSION_FILE.read_text(encoding="utf-8"), re.MULTILINE)
    if match is None:
        raise RuntimeError(f"cannot find VERSION in {VERSION_FILE}")
    return match.group(1)


class PrintVersion(Command):
    user_options = []

    def initialize_options(self):
        self.version = None

    def finalize_options(self):
        self.version = _project_version()

    def run(self):
        print(self.version)


class CleanCommand(Command):
    """
    Remove all build files and all compiled files
    =============================================

    Remove everything from build, including that
    directory, and all .pyc files
    """

    user_options = [("verbose", "v", "produce verbose output")]

    def initialize_options(self):
        self._files_to_delete = []
        self._dirs_to_delete = []

        for root, dirs, files in os.walk("."):
            for f in files:
                if f.endswith(".pyc"):
                    self._files_to_delete.append(pjoin(root, f))
        for target in ("build", "dist", pjoin("src", "hapbench.egg-info")):
            for root, dirs, files in os.walk(target):
                for f in files:
                    self._files_to_delete.append(pjoin(root, f))
                for d in dirs:
                    self._dirs_to_delete.append(pjoin(root, d))
            self._dirs_to_delete.append(target)
        # reverse dir list to remove children before parents
        self._dirs_to_delete = list(reversed(self._dirs_to_delete))

        self.verbose = 0

    def finalize_options(self):
        pass

    def run(self):
        for clean_me in self._files_to_delete:
            if self.dry_run:
                logging.info("Would have unlinked %s", clean_me)
            else:
                try:
                    self.announce("Deleting " + clean_me, level=2)
                    os.unlink(clean_me)
                except OSError:
                    logging.warning("Failed to delete file %s", clean_me)
        for clean_me in self._dirs_to_delete:
            if self.dry_run:
                logging.info("Would have rmdir'ed %s", clean_me)
            else:
                if os.path.exists(clean_me):
                    try:
                        self.announce("Going to remove " + clean_me, level=2)
                        os.rmdir(clean_me)
                    except OSError:
                        logging.warning("Failed to delete dir %s", clean_me)
                elif clean_me != "build":
                    logging.warning("%s does not exist", clean_me)


setup(
    name="hapbench",
    version=_project_version(),
    description="Load-time benchmarks for wide HapMap-style genotype tables",
    python_requires=">=3.11",
    package_dir={"": "src"},
    packages=find_packages("src"),
    package_data={"hapbench.config": ["defaults.toml"]},
    install_requires=[
        "numpy>=1.26",
        "pandas>=2.1",
        "polars>=1.0",
        "duckdb>=1.0",
        "h5py>=3.10",
        "matplotlib>=3.8",
    ],
    extras_require={
        "speedups": ["orjson>=3.9"],
        "test": ["pytest>=8.0"],
    },
    entry_points={"console_scripts": ["hapbench=hapbench.cli:main"]},
    cmdclass={
        "clean": CleanCommand,
        "version": PrintVersion,
    },
)
