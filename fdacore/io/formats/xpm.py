"""X PixMap (XPM) matrix output, as read by GROMACS xpm2ps."""

from __future__ import annotations

import string
from collections.abc import Sequence
from pathlib import Path

import numpy as np
from numpy.typing import ArrayLike

_SYMBOLS = string.ascii_uppercase + string.ascii_lowercase + string.digits + "!#$%&'()*+,-./:;<=>?@[]^_`{|}~"


def _color(fraction: float, low: tuple[int, int, int], high: tuple[int, int, int]) -> str:
    rgb = [round(lo + fraction * (hi - lo)) for lo, hi in zip(low, high)]
    return "#" + "".join(f"{c:02X}" for c in rgb)


def write_xpm(
    filename: str | Path,
    matrix: ArrayLike,
    title: str = "",
    legend: str = "",
    x_label: str = "",
    y_label: str = "",
    x_axis: Sequence[float] | None = None,
    y_axis: Sequence[float] | None = None,
    n_levels: int = 50,
    low_color: tuple[int, int, int] = (255, 255, 255),
    high_color: tuple[int, int, int] = (255, 0, 0),
) -> Path:
    """
    Write a 2-D matrix as continuous XPM.

    Rows of ``matrix`` run along y, columns along x. XPM lists the top row
    first, so the last matrix row is written first.

    Args:
        filename: Output file path.
        matrix: Values, shape (ny, nx).
        title: Title comment.
        legend: Legend comment.
        x_label: Label of the x axis.
        y_label: Label of the y axis.
        x_axis: Tick values for the columns, defaults to 0..nx-1.
        y_axis: Tick values for the rows, defaults to 0..ny-1.
        n_levels: Number of colour levels.
        low_color: RGB of the minimum value.
        high_color: RGB of the maximum value.

    Returns:
        Path to the written file.
    """
    values = np.atleast_2d(np.asarray(matrix, dtype=np.float64))
    ny, nx = values.shape
    n_levels = max(1, min(n_levels, len(_SYMBOLS)))

    lo = float(values.min()) if values.size else 0.0
    hi = float(values.max()) if values.size else 0.0
    span = hi - lo
    if span > 0:
        levels = np.floor((values - lo) / span * (n_levels - 1) + 0.5).astype(int)
    else:
        levels = np.zeros(values.shape, dtype=int)

    x_axis = list(range(nx)) if x_axis is None else list(x_axis)
    y_axis = list(range(ny)) if y_axis is None else list(y_axis)

    path = Path(filename)
    with path.open("w") as f:
        f.write("/* XPM */\n")
        f.write("/* This file can be converted to EPS by the GROMACS program xpm2ps */\n")
        f.write(f'/* title:   "{title}" */\n')
        f.write(f'/* legend:  "{legend}" */\n')
        f.write(f'/* x-label: "{x_label}" */\n')
        f.write(f'/* y-label: "{y_label}" */\n')
        f.write('/* type:    "Continuous" */\n')
        f.write("static char *gromacs_xpm[] = {\n")
        f.write(f'"{nx} {ny}   {n_levels} 1",\n')
        for level in range(n_levels):
            fraction = level / (n_levels - 1) if n_levels > 1 else 0.0
            value = lo + fraction * span
            f.write(
                f'"{_SYMBOLS[level]}  c {_color(fraction, low_color, high_color)} " '
                f'/* "{value:.3g}" */,\n'
            )
        for start in range(0, nx, 80):
            ticks = " ".join(f"{v:g}" for v in x_axis[start : start + 80])
            f.write(f"/* x-axis:  {ticks} */\n")
        for start in range(0, ny, 80):
            ticks = " ".join(f"{v:g}" for v in y_axis[start : start + 80])
            f.write(f"/* y-axis:  {ticks} */\n")
        for row in range(ny - 1, -1, -1):
            pixels = "".join(_SYMBOLS[level] for level in levels[row])
            f.write(f'"{pixels}"' + (",\n" if row > 0 else "\n"))
        f.write("};\n")
    return path
