"""
SLO Table
=========

Keyed merge of scope results into per-document rows.

Results for the same document may arrive in any order and interleaved with
other documents; folding them always yields the same table.
"""

from typing import Dict, Iterable, Iterator, List, Optional

from slo_r.slo.domain.entities import ScopeResult, TableRow


class SloTable:
    """Ordered mapping of document id to ``TableRow``."""

    def __init__(self, rows: Optional[Iterable[TableRow]] = None):
        self._rows: Dict[str, TableRow] = {}
        for row in rows or ():
            self._rows[row.document_id] = row

    def apply(self, result: ScopeResult) -> TableRow:
        """
        Merge one scope result.

        The first result for a document creates its row; later ones replace
        the row with a copy carrying the new scope value. Replacing a key in
        a dict keeps its position, so rows never move.
        """
        existing = self._rows.get(result.document_id)
        if existing is None:
            row = TableRow.from_result(result)
        else:
            row = existing.with_scope(result.scope, result.data)
        self._rows[result.document_id] = row
        return row

    def carry_over(self, previous: "SloTable", document_ids: Iterable[str]) -> int:
        """
        Copy rows from ``previous`` for ids missing here. Returns the count.

        Rows known to ``previous`` keep their order from it; rows new to
        this table follow in their current order.
        """
        copied = 0
        for document_id in document_ids:
            if document_id in self._rows:
                continue
            row = previous.get(document_id)
            if row is not None:
                self._rows[document_id] = row
                copied += 1

        if copied:
            known = [document_id for document_id in previous._rows if document_id in self._rows]
            fresh = [document_id for document_id in self._rows if document_id not in previous]
            self._rows = {document_id: self._rows[document_id] for document_id in known + fresh}
        return copied

    def get(self, document_id: str) -> Optional[TableRow]:
        return self._rows.get(document_id)

    @property
    def rows(self) -> List[TableRow]:
        return list(self._rows.values())

    @property
    def is_complete(self) -> bool:
        return all(row.is_complete for row in self._rows.values())

    def to_list(self) -> List[dict]:
        return [row.to_dict() for row in self._rows.values()]

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._rows

    def __iter__(self) -> Iterator[TableRow]:
        return iter(list(self._rows.values()))

    def __len__(self) -> int:
        return len(self._rows)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SloTable):
            return NotImplemented
        return self._rows == other._rows

    def __repr__(self) -> str:
        return f"SloTable(rows={len(self._rows)})"


def fold_scope_results(
    results: Iterable[ScopeResult],
    table: Optional[SloTable] = None
) -> SloTable:
    """Fold results into ``table`` (a new one by default) and return it."""
    table = table if table is not None else SloTable()
    for result in results:
        table.apply(result)
    return table
