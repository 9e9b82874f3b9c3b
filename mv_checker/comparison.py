import time
from dataclasses import dataclass, field
from typing import Iterable

from .rows import Row


class Status:
    MATCH = 'match'
    MISMATCH = 'mismatch'
    ERROR = 'error'


class Snapshot(frozenset):
    """Unordered set of rows read from the base table or one view replica."""

    @classmethod
    def from_rows(cls, rows: Iterable) -> 'Snapshot':
        return cls(Row(*row) for row in rows)


@dataclass
class ComparisonResult:
    node_index: int
    node: str = ''
    status: str = Status.MATCH
    base_count: int = 0
    view_count: int = 0
    missing_in_view: list[Row] = field(default_factory=list)
    unexpected_in_view: list[Row] = field(default_factory=list)
    error: str = ''

    @property
    def matched(self) -> bool:
        return self.status == Status.MATCH

    def to_dict(self):
        return {
            'node_index': self.node_index,
            'node': self.node,
            'status': self.status,
            'base_count': self.base_count,
            'view_count': self.view_count,
            'missing_in_view': [list(row) for row in self.missing_in_view],
            'unexpected_in_view': [list(row) for row in self.unexpected_in_view],
            'error': self.error,
        }

    def format(self, max_diff_rows: int = 10) -> str:
        if self.status == Status.MATCH:
            return f'View from node #{self.node_index} ({self.node}) matches the base table ({self.base_count} rows)'
        if self.status == Status.ERROR:
            return f'ERROR: Failed to read view from node #{self.node_index} ({self.node}): {self.error}'

        lines = [
            f"ERROR: View from node #{self.node_index} ({self.node}) doesn't match the base table",
            f'    base rows: {self.base_count}, view rows: {self.view_count}, '
            f'missing in view: {len(self.missing_in_view)}, '
            f'unexpected in view: {len(self.unexpected_in_view)}',
        ]
        for title, rows in (('missing in view', self.missing_in_view), ('unexpected in view', self.unexpected_in_view)):
            if not rows or not max_diff_rows:
                continue
            shown = ', '.join(str(tuple(row)) for row in rows[:max_diff_rows])
            more = len(rows) - max_diff_rows
            suffix = f' ... and {more} more' if more > 0 else ''
            lines.append(f'    {title}: {shown}{suffix}')
        return '\n'.join(lines)


def compare_snapshots(base: Snapshot, view: Snapshot, node_index: int = 0, node: str = '') -> ComparisonResult:
    """Compare two snapshots as sets of (p, c, r).

    Row order never matters; diff rows are sorted so that the report is
    stable between passes.
    """
    base = base if isinstance(base, frozenset) else Snapshot.from_rows(base)
    view = view if isinstance(view, frozenset) else Snapshot.from_rows(view)

    result = ComparisonResult(
        node_index=node_index,
        node=node,
        base_count=len(base),
        view_count=len(view),
    )
    if base == view:
        return result

    result.status = Status.MISMATCH
    result.missing_in_view = sorted(base - view)
    result.unexpected_in_view = sorted(view - base)
    return result


def error_result(node_index: int, node: str, base_count: int, error: Exception) -> ComparisonResult:
    return ComparisonResult(
        node_index=node_index,
        node=node,
        status=Status.ERROR,
        base_count=base_count,
        error=f'{type(error).__name__}: {error}',
    )


@dataclass
class PassReport:
    pass_number: int
    started_at: float = field(default_factory=time.time)
    base_count: int = 0
    results: list[ComparisonResult] = field(default_factory=list)
    error: str = ''

    @property
    def matched(self):
        return [r for r in self.results if r.status == Status.MATCH]

    @property
    def mismatched(self):
        return [r for r in self.results if r.status == Status.MISMATCH]

    @property
    def errored(self):
        return [r for r in self.results if r.status == Status.ERROR]

    @property
    def all_matched(self) -> bool:
        return not self.error and bool(self.results) and len(self.matched) == len(self.results)

    def summary(self) -> str:
        if self.error:
            return f'Pass #{self.pass_number}: aborted, base table read failed: {self.error}'
        return (
            f'Pass #{self.pass_number}: {len(self.matched)}/{len(self.results)} nodes match '
            f'({len(self.mismatched)} mismatched, {len(self.errored)} errors), '
            f'base rows: {self.base_count}'
        )

    def to_dict(self):
        return {
            'pass_number': self.pass_number,
            'started_at': self.started_at,
            'base_count': self.base_count,
            'error': self.error,
            'all_matched': self.all_matched,
            'results': [r.to_dict() for r in self.results],
        }
