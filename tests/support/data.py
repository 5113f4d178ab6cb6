"""Utilities for reading test data."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .kubernetes import MockClusterKubernetesApi

__all__ = [
    "read_input_data",
    "read_input_json",
    "store_input_objects",
]


def read_input_data(config: str, filename: str) -> str:
    """Read an input data file and return its contents.

    Parameters
    ----------
    config
        Configuration from which to read data (the name of one of the
        directories under ``tests/data``).
    filename
        File to read.

    Returns
    -------
    str
        Contents of the file.
    """
    base_path = Path(__file__).parent.parent / "data" / config
    return (base_path / "input" / filename).read_text()


def read_input_json(config: str, filename: str) -> Any:
    """Read input data as JSON and return its decoded form.

    Parameters
    ----------
    config
        Configuration from which to read data (the name of one of the
        directories under ``tests/data``).
    filename
        File to read and parse, without the ``.json`` extension.

    Returns
    -------
    typing.Any
        Parsed contents of file.
    """
    return json.loads(read_input_data(config, f"{filename}.json"))


async def store_input_objects(
    mock_kubernetes: MockClusterKubernetesApi,
    namespace: str,
    config: str,
    filename: str,
) -> None:
    """Store the custom objects in an input data file in the mock.

    Parameters
    ----------
    mock_kubernetes
        Mock Kubernetes API.
    namespace
        Namespace in which to store the objects.
    config
        Configuration from which to read data.
    filename
        File holding a JSON list of objects, without the ``.json`` extension.
    """
    for obj in read_input_json(config, filename):
        await mock_kubernetes.store_for_test(namespace, obj)
