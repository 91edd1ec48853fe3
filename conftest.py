"""Pytest configuration for the Markdown documentation."""

from os import chdir
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Any

import numpy as np
from sybil import Sybil
from sybil.parsers.markdown import PythonCodeBlockParser, SkipParser

from dyn_engine import set_global_seed


def documentation_setup(namespace: dict[str, Any]) -> None:
    """Run each document in a scratch directory with a fixed noise seed."""
    directory = Path(TemporaryDirectory().name)
    directory.mkdir(parents=True, exist_ok=True)
    chdir(directory)
    set_global_seed(0)
    namespace["np"] = np


pytest_collect_file = Sybil(
    parsers=[
        PythonCodeBlockParser(),
        SkipParser(),
    ],
    path=str(Path(__file__).parent / "docs"),
    pattern="**/*.md",
    setup=documentation_setup,
).pytest()
