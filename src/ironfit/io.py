# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>

from __future__ import annotations
from typing import Any
from logging import getLogger
from pathlib import Path
import numpy as np
import numpy.typing as npt
import yaml
from .mag import mu_0, MagnetizationCurve
from .jordan import IronLossCharacteristic, IronLossDataset


def load_table(
    path_or_text: Path | str,
    *,
    columns: int,
    possible_column_separators: str = "\t,",
) -> npt.NDArray[np.float64]:
    r"""
    Reads a tab-separated (TSV) or comma-separated (CSV) table of numbers with the specified number of columns.
    There may or may not be a header row; this is detected automatically.
    The column separator can be one of the specified characters; each is tried in order until a match is found.

    >>> load_table("H\tB\n0\t0\n10\t0.1\n", columns=2).tolist()
    [[0.0, 0.0], [10.0, 0.1]]
    >>> load_table("50, 0.5 ,0.4\n100,0.5, 0.84", columns=3).tolist()
    [[50.0, 0.5, 0.4], [100.0, 0.5, 0.84]]
    >>> load_table("0 0\n1 1", columns=2)
    Traceback (most recent call last):
    ...
    ValueError: Cannot detect the column separator in the first line of the input file: '0 0'
    >>> load_table("1\t2\t3", columns=2)
    Traceback (most recent call last):
    ...
    ValueError: Invalid data shape: (1, 3); expected 2 columns
    """
    if isinstance(path_or_text, Path):
        path_or_text = path_or_text.read_text()
    if isinstance(path_or_text, str):
        lines = [x for x in path_or_text.strip().splitlines() if x.strip()]
    else:
        raise TypeError(f"Invalid argument type: {type(path_or_text).__name__}")
    if not lines:
        raise ValueError("The input file is empty")

    col_sep = ""
    for sep in possible_column_separators:
        if sep in lines[0]:
            col_sep = sep
            break
    if not col_sep:
        raise ValueError(f"Cannot detect the column separator in the first line of the input file: {lines[0]!r}")

    try:
        [float(x.strip()) for x in lines[0].split(col_sep)]
    except ValueError:
        _logger.info("Skipping the first line of the input file, assuming it is the header: %r", lines[0])
        lines = lines[1:]
    m = np.array([[float(x.strip()) for x in line.split(col_sep)] for line in lines], dtype=np.float64)
    if len(m.shape) != 2 or m.shape[1] != columns or m.shape[0] < 1:
        raise ValueError(f"Invalid data shape: {m.shape}; expected {columns} columns")
    return m


def load_magnetization(
    path_or_text: Path | str,
    *,
    kind: str = "B(H)",
    iron_fill_factor: float = 1.0,
) -> MagnetizationCurve:
    r"""
    Reads a virgin magnetization curve from a table where the first column is H and the second column is
    either B (kind B(H)) or the polarization J (kind J(H)), in the SI units.
    The rows are sorted by H; repeated H values and negative H values are dropped.

    >>> mc = load_magnetization("H,J\n200,1.0\n0,0\n100,0.5\n100,0.6\n-100,-0.5", kind="J(H)", iron_fill_factor=0.9)
    >>> mc.field_strength.tolist(), (mc.flux_density - mu_0 * mc.field_strength).round(9).tolist()
    ([0.0, 100.0, 200.0], [0.0, 0.5, 1.0])
    >>> mc.iron_fill_factor
    0.9
    >>> load_magnetization("0\t0\n1\t1", kind="M(H)")
    Traceback (most recent call last):
    ...
    ValueError: Unsupported curve kind: 'M(H)'
    """
    kind = kind.upper().strip().replace(" ", "")
    if kind not in ("B(H)", "J(H)"):
        raise ValueError(f"Unsupported curve kind: {kind!r}")
    m = load_table(path_or_text, columns=2)

    if (m[:, 0] < 0).any():
        _logger.warning("Dropping %d points with negative H; only the virgin curve is used", (m[:, 0] < 0).sum())
        m = m[m[:, 0] >= 0]

    # Remove repeated H values. This happens in some datasets.
    m_original = m
    _, m_unique_idx = np.unique(m[:, 0], return_index=True)  # m_unique_idx holds the first occurrence of each H value
    m = m[m_unique_idx]  # np.unique returns the values sorted
    if len(m) < len(m_original):
        _logger.info(
            "Removed %d points with the same H values: was %d points, now %d points",
            len(m_original) - len(m),
            len(m_original),
            len(m),
        )

    H, X = m[:, 0], m[:, 1]
    B = X + mu_0 * H if kind == "J(H)" else X
    if np.abs(B).max() > 10:
        _logger.warning("The loaded curve appears to be in the wrong units: B values seem too large:\n%s", m)
    return MagnetizationCurve(field_strength=H, flux_density=B, iron_fill_factor=iron_fill_factor)


def load_losses(path_or_text: Path | str) -> IronLossDataset:
    r"""
    Reads a loss table of three columns: frequency [hertz], flux density amplitude [tesla], specific loss [W/kg].
    The rows are grouped by frequency in the order of their first appearance.

    >>> ds = load_losses("f\tB\tp\n50\t0.5\t0.4\n100\t0.5\t0.84\n50\t0.6\t0.54")
    >>> [(c.frequency, len(c)) for c in ds.characteristics]
    [(50.0, 2), (100.0, 1)]
    """
    m = load_table(path_or_text, columns=3)
    groups: dict[float, list[tuple[float, float]]] = {}
    for f, b, p in m.tolist():
        groups.setdefault(f, []).append((b, p))
    if any(p > 1e3 for _, _, p in m.tolist()):
        _logger.warning("The loss table appears to be in the wrong units: specific losses seem too large")
    return IronLossDataset(
        [IronLossCharacteristic.from_arrays(f, [b for b, _ in bp], [p for _, p in bp]) for f, bp in groups.items()]
    )


def save_table(file_path: Path, header: tuple[str, ...], *columns: npt.ArrayLike) -> None:
    """
    Saves the columns into a tab-separated (TSV) file with the given header.
    """
    data = np.column_stack([np.asarray(c, dtype=np.float64) for c in columns])
    rows, cols = data.shape
    if cols != len(header):
        raise ValueError(f"Header {header} does not match the shape {data.shape}")
    if rows == 0:
        raise ValueError("No data to save")
    text = "\t".join(header) + "\n" + "\n".join("\t".join(f"{x:+.12e}" for x in row) for row in data) + "\n"
    if not file_path.parent.exists():
        file_path.parent.mkdir(parents=True)
    file_path.write_text(text)


def load_yaml(path_or_text: Path | str) -> Any:
    """
    >>> load_yaml("a: 1.5 T\\nb: [1, 2]")
    {'a': '1.5 T', 'b': [1, 2]}
    """
    if isinstance(path_or_text, Path):
        path_or_text = path_or_text.read_text(encoding="utf-8")
    return yaml.safe_load(path_or_text)


def dump_yaml(data: Any, file_path: Path | None = None) -> str:
    """
    >>> print(dump_yaml({"name": "x", "mass_density": "7650.0 kg/m^3", "electrical_resistivity": float("inf")}), end="")
    name: x
    mass_density: 7650.0 kg/m^3
    electrical_resistivity: .inf
    """
    text = yaml.safe_dump(data, sort_keys=False, default_flow_style=None)
    if file_path is not None:
        if not file_path.parent.exists():
            file_path.parent.mkdir(parents=True)
        file_path.write_text(text, encoding="utf-8")
    return text


_logger = getLogger(__name__)
