from __future__ import annotations

import csv
import io
from typing import Any, Dict, Iterable, Iterator, Sequence, Tuple


def csv_stream(rows: Iterable[Dict[str, Any]], columns: Sequence[Tuple[str, str]]) -> Iterator[bytes]:
    """
    Stream CSV as bytes without holding full file in memory.
    columns: (row key, header label) pairs in output order.
    """
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow([label for _, label in columns])
    yield buf.getvalue().encode("utf-8")
    buf.seek(0)
    buf.truncate(0)

    for r in rows:
        writer.writerow(["" if r.get(key) is None else r.get(key) for key, _ in columns])
        yield buf.getvalue().encode("utf-8")
        buf.seek(0)
        buf.truncate(0)
