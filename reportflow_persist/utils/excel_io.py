"""
RESPONSIBILITIES
- Guard store workbooks and blob files with cooperative in-process + lock-file locking.
- Write workbooks and raw bytes atomically through a temporary file swap.
- Read and rewrite the single-sheet tables backing the template registry.
PROCESS OVERVIEW
1. workbook_lock() acquires the per-path RLock, then an exclusive ``.lock`` file.
2. ensure_workbook() creates the sheet/header skeleton or migrates an outdated header.
3. read_sheet() returns rows as dictionaries keyed by the canonical columns.
4. write_sheet() / atomic_write_bytes() persist through ``os.replace``.
"""

from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Mapping, Sequence

from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from reportflow_persist.stores.base_store import StoreLockedError

LOCK_TIMEOUT_SECONDS = 10

_IN_PROCESS_LOCKS: dict[Path, threading.RLock] = {}
_LOCK_REGISTRY_GUARD = threading.Lock()

Row = dict[str, object]


def _inprocess_lock(path: Path) -> threading.RLock:
    with _LOCK_REGISTRY_GUARD:
        return _IN_PROCESS_LOCKS.setdefault(path, threading.RLock())


@contextmanager
def workbook_lock(path: Path) -> Iterator[None]:
    """Hold exclusive access to ``path`` for the duration of the block.

    Raises:
        StoreLockedError: When another thread holds the lock past the timeout
            or another process left a ``.lock`` file next to ``path``.
    """

    path = path.resolve()
    inproc = _inprocess_lock(path)
    if not inproc.acquire(timeout=LOCK_TIMEOUT_SECONDS):
        raise StoreLockedError(f"Timeout acquiring in-process lock for {path}")
    lock_path = path.with_name(path.name + ".lock")
    fd: int | None = None
    try:
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as exc:
            raise StoreLockedError(f"Store appears locked: {lock_path}") from exc
        os.write(fd, str(os.getpid()).encode("ascii"))
        yield
    finally:
        if fd is not None:
            os.close(fd)
            lock_path.unlink(missing_ok=True)
        inproc.release()


def _tmp_path(path: Path) -> Path:
    return path.with_name(path.name + ".tmp")


def atomic_save(workbook: Workbook, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = _tmp_path(path)
    workbook.save(tmp_path)
    os.replace(tmp_path, path)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = _tmp_path(path)
    tmp_path.write_bytes(data)
    os.replace(tmp_path, path)


def _is_blank(values: Sequence[object]) -> bool:
    return not any(value is not None and str(value).strip() for value in values)


def _header(worksheet: Worksheet) -> list[str]:
    first = next(worksheet.iter_rows(min_row=1, max_row=1, values_only=True), ())
    return [str(value).strip() if value is not None else "" for value in first]


def _rows_by_header(worksheet: Worksheet, columns: Sequence[str]) -> list[Row]:
    index = {name: idx for idx, name in enumerate(_header(worksheet)) if name}
    rows: list[Row] = []
    for values in worksheet.iter_rows(min_row=2, values_only=True):
        if _is_blank(values):
            continue
        record: Row = {}
        for column in columns:
            idx = index.get(column)
            value = values[idx] if idx is not None and idx < len(values) else None
            record[column] = "" if value is None else value
        rows.append(record)
    return rows


def _fill_sheet(worksheet: Worksheet, rows: Iterable[Mapping[str, object]], columns: Sequence[str]) -> None:
    worksheet.append(list(columns))
    for row in rows:
        worksheet.append([row.get(column, "") for column in columns])


def ensure_workbook(path: Path, sheet_name: str, columns: Sequence[str]) -> None:
    """Create ``sheet_name`` with ``columns`` as header, migrating existing rows if the header changed."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with workbook_lock(path):
        if not path.exists():
            workbook = Workbook()
            workbook.active.title = sheet_name
            _fill_sheet(workbook.active, (), columns)
            atomic_save(workbook, path)
            return

        workbook = load_workbook(path)
        try:
            if sheet_name not in workbook.sheetnames:
                _fill_sheet(workbook.create_sheet(title=sheet_name), (), columns)
                atomic_save(workbook, path)
                return
            worksheet = workbook[sheet_name]
            if _header(worksheet) == list(columns):
                return
            rows = _rows_by_header(worksheet, columns)
            worksheet.delete_rows(1, worksheet.max_row or 1)
            _fill_sheet(worksheet, rows, columns)
            atomic_save(workbook, path)
        finally:
            workbook.close()


def _read_unlocked(path: Path, sheet_name: str, columns: Sequence[str]) -> list[Row]:
    if not path.exists():
        return []
    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        if sheet_name not in workbook.sheetnames:
            return []
        return _rows_by_header(workbook[sheet_name], columns)
    finally:
        workbook.close()


def read_sheet(path: Path, sheet_name: str, columns: Sequence[str], *, use_lock: bool = True) -> list[Row]:
    """Return worksheet content as dictionaries keyed by *columns*."""

    if not use_lock:
        return _read_unlocked(path, sheet_name, columns)
    with workbook_lock(path):
        return _read_unlocked(path, sheet_name, columns)


def write_sheet(
    path: Path,
    sheet_name: str,
    rows: Iterable[Mapping[str, object]],
    columns: Sequence[str],
    *,
    use_lock: bool = True,
) -> None:
    """Replace the worksheet content atomically."""

    workbook = Workbook()
    workbook.active.title = sheet_name
    _fill_sheet(workbook.active, rows, columns)
    if not use_lock:
        atomic_save(workbook, path)
        return
    with workbook_lock(path):
        atomic_save(workbook, path)
