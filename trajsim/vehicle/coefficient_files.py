"""Reader for tabulated aerodynamic coefficient files.

One file holds one coefficient component (e.g. C_D) on an N-dimensional
grid of independent variables:

    # comment lines start with '#'
    0.5 1.0 2.0 4.0          <- grid of independent variable 1
    0.0 0.1 0.2              <- grid of independent variable 2
    0.31 0.33 0.36           <- values, C order (last variable fastest)
    ...

The three components of a force (or moment) coefficient vector are read
from up to three such files sharing the same grid.

Example:
    >>> values, grid = read_coefficients({0: "cd.txt", 2: "cl.txt"}, dimensions=2)
    >>> values.shape  # (len(grid[0]), len(grid[1]), 3), C_S zero-filled
"""

import logging
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from trajsim.exceptions import DimensionMismatch

logger = logging.getLogger(__name__)


def read_coefficient_file(
    path: str | Path,
    dimensions: int,
) -> tuple[NDArray[np.float64], list[NDArray[np.float64]]]:
    """Read one coefficient component.

    Args:
        path: File to read
        dimensions: Number of independent variables

    Returns:
        (values with shape of the grid, list of independent variable grids)

    Raises:
        DimensionMismatch: If the value count does not match the grid
    """
    path = Path(path)
    rows = []
    with path.open() as f:
        for line in f:
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            rows.append([float(token) for token in stripped.split()])

    if len(rows) < dimensions:
        raise DimensionMismatch(f"{path}: expected {dimensions} grid lines, found {len(rows)}")

    grid = [np.array(row) for row in rows[:dimensions]]
    shape = tuple(len(axis) for axis in grid)
    values = np.array([v for row in rows[dimensions:] for v in row])

    if values.size != int(np.prod(shape)):
        raise DimensionMismatch(
            f"{path}: grid {shape} needs {int(np.prod(shape))} values, found {values.size}"
        )

    return values.reshape(shape), grid


def read_coefficients(
    file_set: dict[int, str | Path],
    dimensions: int,
) -> tuple[NDArray[np.float64], list[NDArray[np.float64]]]:
    """Read a coefficient vector from per-component files.

    Args:
        file_set: Component index (0, 1, 2) -> file path; missing components
            are filled with zeros
        dimensions: Number of independent variables

    Returns:
        (values with shape grid + (3,), independent variable grids)

    Raises:
        DimensionMismatch: If the files do not share the same grid
        ValueError: If no file or an invalid component index is given
    """
    if not file_set:
        raise ValueError("At least one coefficient file is required")
    invalid = [index for index in file_set if index not in (0, 1, 2)]
    if invalid:
        raise ValueError(f"Coefficient component indices must be 0, 1 or 2, got {invalid}")

    components: dict[int, NDArray[np.float64]] = {}
    grid: list[NDArray[np.float64]] | None = None
    reference_file = None

    for index, path in sorted(file_set.items()):
        values, file_grid = read_coefficient_file(path, dimensions)
        if grid is None:
            grid, reference_file = file_grid, path
        elif any(a.shape != b.shape or not np.array_equal(a, b) for a, b in zip(grid, file_grid)):
            raise DimensionMismatch(
                f"Independent variables of {path} differ from those of {reference_file}"
            )
        components[index] = values

    shape = tuple(len(axis) for axis in grid)
    result = np.zeros(shape + (3,))
    for index in range(3):
        if index in components:
            result[..., index] = components[index]
        else:
            logger.debug("Coefficient component %d not given, filled with zeros", index)

    return result, grid
