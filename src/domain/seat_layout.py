# src/domain/seat_layout.py

from dataclasses import dataclass
from string import ascii_uppercase

from src.domain.pricing import SeatType

EMPTY_CELL = "empty"

Layout = list[list[str]]


@dataclass(frozen=True)
class SeatSpec:
    """A seat to materialise for a showtime (row/column are 1-based)."""

    row: int
    column: int
    seat_type: SeatType

    @property
    def label(self) -> str:
        return seat_label(self.row, self.column)


def row_letter(row: int) -> str:
    # A..Z, then AA, AB, ...
    letters = ""
    while row > 0:
        row, remainder = divmod(row - 1, len(ascii_uppercase))
        letters = ascii_uppercase[remainder] + letters
    return letters


def seat_label(row: int, column: int) -> str:
    return f"{row_letter(row)}{column}"


def default_layout(rows: int, columns: int) -> Layout:
    """
    Heuristic layout used when a theater has no saved one:
    the first and last cells are couple seats, the middle
    row pair is VIP and the bottom-left cell is accessible.
    """
    if rows <= 0 or columns <= 0:
        raise ValueError("Theater must have at least one row and one column")

    middle_rows = {rows // 2, rows // 2 + 1}
    layout: Layout = []
    for row in range(1, rows + 1):
        cells = []
        for column in range(1, columns + 1):
            if (row, column) in {(1, 1), (rows, columns)}:
                cells.append(SeatType.COUPLE.value)
            elif row in middle_rows:
                cells.append(SeatType.VIP.value)
            elif (row, column) == (rows, 1):
                cells.append(SeatType.DISABLED.value)
            else:
                cells.append(SeatType.NORMAL.value)
        layout.append(cells)
    return layout


def validate_layout(layout: Layout, rows: int, columns: int) -> None:
    if len(layout) != rows or any(len(cells) != columns for cells in layout):
        raise ValueError(f"Seat layout must be {rows}x{columns}")
    allowed = {seat_type.value for seat_type in SeatType} | {EMPTY_CELL}
    unknown = {cell for cells in layout for cell in cells} - allowed
    if unknown:
        raise ValueError(f"Unknown seat types in layout: {sorted(unknown)}")


def seats_from_layout(
    rows: int,
    columns: int,
    layout: Layout | None = None,
) -> list[SeatSpec]:
    """Expand a theater grid (plus optional saved overlay) into seats."""
    if layout is None:
        layout = default_layout(rows, columns)
    validate_layout(layout, rows, columns)

    return [
        SeatSpec(row=row_index, column=column_index, seat_type=SeatType(cell))
        for row_index, cells in enumerate(layout, start=1)
        for column_index, cell in enumerate(cells, start=1)
        if cell != EMPTY_CELL
    ]
