"""Calculated-field dependency tracking for CalcFields.

Tracks which calculated fields reference which, for evaluation ordering
and circular reference detection. Only references to other calculated
fields are edges: raw record attributes cannot form cycles.
"""

from collections import defaultdict, deque
from collections.abc import Iterable, Sequence

from calcfields.formula.tokenizer import extract_field_references
from calcfields.schemas.calculated_field import CalculatedField, CircularCheckResult


class FormulaDependencyGraph:
    """
    Directed graph of references between calculated fields.

    Attributes:
        dependencies: slug -> slugs whose formulas reference it
        reverse: slug -> slugs its formula references; holds every field
            added, in insertion order
    """

    def __init__(self):
        self.dependencies: dict[str, set[str]] = defaultdict(set)
        self.reverse: dict[str, set[str]] = defaultdict(set)

    @classmethod
    def from_fields(
        cls,
        fields: Sequence[CalculatedField],
        new_field: CalculatedField | None = None,
    ) -> "FormulaDependencyGraph":
        """
        Build a graph from field definitions.

        Args:
            fields: Existing calculated fields
            new_field: Proposed new or edited field; replaces an existing
                field with the same slug

        Returns:
            Graph whose edge A -> B means B's slug appears as a field
            reference in A's formula. Cycles are kept so they can be found.
        """
        formulas: dict[str, str] = {f.field_slug: f.formula for f in fields}
        if new_field is not None:
            formulas[new_field.field_slug] = new_field.formula

        graph = cls()
        for slug, formula in formulas.items():
            refs = {ref for ref in extract_field_references(formula) if ref in formulas}
            graph._set_dependencies(slug, refs)
        return graph

    def _set_dependencies(self, field_id: str, depends_on: set[str]) -> None:
        self.reverse[field_id] = set(depends_on)
        for dep in depends_on:
            self.dependencies[dep].add(field_id)

    def get_evaluation_order(self, field_ids: Iterable[str]) -> list[str]:
        """
        Get evaluation order for multiple calculated fields.

        Uses topological sort (Kahn's algorithm). Fields with no ordering
        constraint between them keep their input order.

        Args:
            field_ids: Slugs to evaluate, in declaration order

        Returns:
            Ordered list of slugs, or empty list if a cycle is detected
        """
        ordered_ids = list(dict.fromkeys(field_ids))
        wanted = set(ordered_ids)

        in_degree = {fid: 0 for fid in ordered_ids}
        for fid in ordered_ids:
            for dep in self.reverse.get(fid, ()):
                if dep in wanted:
                    in_degree[fid] += 1

        queue = deque(fid for fid in ordered_ids if in_degree[fid] == 0)
        position = {fid: i for i, fid in enumerate(ordered_ids)}

        result = []
        while queue:
            fid = queue.popleft()
            result.append(fid)

            dependents = [d for d in self.dependencies.get(fid, ()) if d in in_degree]
            for dependent in sorted(dependents, key=position.__getitem__):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(result) != len(ordered_ids):
            # Cycle detected
            return []

        return result

    def find_cycle(self) -> list[str] | None:
        """
        Find a dependency cycle with a depth-first search.

        Roots are tried in the order fields were added; neighbours in
        sorted order, so the result is deterministic.

        Returns:
            The cycle path starting at the repeated node, each node once
            (A -> B -> A gives [A, B]; a self-reference gives [A]), or
            None if the graph is acyclic
        """
        done: set[str] = set()

        for root in list(self.reverse):
            if root in done:
                continue

            path = [root]
            on_path = {root}
            pending = [iter(sorted(self.reverse.get(root, ())))]

            while pending:
                neighbour = next(pending[-1], None)
                if neighbour is None:
                    finished = path.pop()
                    on_path.discard(finished)
                    done.add(finished)
                    pending.pop()
                    continue

                if neighbour not in self.reverse or neighbour in done:
                    continue
                if neighbour in on_path:
                    return path[path.index(neighbour) :]

                path.append(neighbour)
                on_path.add(neighbour)
                pending.append(iter(sorted(self.reverse.get(neighbour, ()))))

        return None

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"FormulaDependencyGraph("
            f"fields={len(self.reverse)}, "
            f"edges={sum(len(deps) for deps in self.reverse.values())})"
        )


def detect_circular_dependency(
    fields: Sequence[CalculatedField],
    new_field: CalculatedField | None = None,
) -> CircularCheckResult:
    """
    Detect circular dependencies among calculated fields.

    Args:
        fields: Existing calculated fields
        new_field: Proposed new or edited field to check before saving

    Returns:
        CircularCheckResult with the cycle path when one exists
    """
    cycle = FormulaDependencyGraph.from_fields(fields, new_field).find_cycle()
    if cycle is None:
        return CircularCheckResult(has_circular=False)
    return CircularCheckResult(has_circular=True, cycle=cycle)
