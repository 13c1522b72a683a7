"""
Graph analysis and cycle detection for registered modules.
"""

from typing import Dict, List, Optional, Set, Tuple
from collections import defaultdict, deque

from .errors import DependencyCycleError


class DependencyGraph:
    """
    Static view of declared dependencies.

    Uses Tarjan's algorithm for cycle detection. Unlike resolution, analysis
    never instantiates anything.
    """

    def __init__(self):
        self.adj_list: Dict[str, List[str]] = defaultdict(list)  # name -> [dependencies]
        self.startable: Set[str] = set()
        self._index_counter = 0
        self._stack: List[str] = []
        self._lowlinks: Dict[str, int] = {}
        self._index: Dict[str, int] = {}
        self._on_stack: Set[str] = set()
        self._sccs: List[List[str]] = []

    @classmethod
    def from_container(cls, container) -> "DependencyGraph":
        graph = cls()
        for view in container.filtered_modules({}):
            graph.add_module(view.name, list(view.dependencies), startable=view.startable)
        return graph

    def add_module(self, name: str, dependencies: List[str], *, startable: bool = False) -> None:
        self.adj_list[name] = dependencies
        if startable:
            self.startable.add(name)

    @property
    def modules(self) -> List[str]:
        return list(self.adj_list)

    def missing(self) -> List[Tuple[str, str]]:
        """Edges ``(module, dependency)`` pointing at unregistered modules."""
        return [
            (name, dep)
            for name, deps in list(self.adj_list.items())
            for dep in deps
            if dep not in self.adj_list
        ]

    def startable_dependencies(self) -> List[Tuple[str, str]]:
        """Edges ``(module, dependency)`` where the dependency is startable."""
        return [
            (name, dep)
            for name, deps in self.adj_list.items()
            for dep in deps
            if dep in self.startable
        ]

    def detect_cycles(self) -> List[List[str]]:
        """
        Detect cycles using Tarjan's algorithm.

        Returns:
            Strongly connected components that form cycles (self-loops included)
        """
        self._index_counter = 0
        self._stack = []
        self._lowlinks = {}
        self._index = {}
        self._on_stack = set()
        self._sccs = []

        for name in list(self.adj_list):
            if name not in self._index:
                self._strongconnect(name)

        return [
            list(reversed(scc)) for scc in self._sccs
            if len(scc) > 1 or scc[0] in self.adj_list[scc[0]]
        ]

    def _strongconnect(self, name: str) -> None:
        """Tarjan's algorithm recursive helper."""
        self._index[name] = self._index_counter
        self._lowlinks[name] = self._index_counter
        self._index_counter += 1
        self._stack.append(name)
        self._on_stack.add(name)

        for dep in self.adj_list.get(name, []):
            if dep not in self.adj_list:
                # Missing dependency, reported by missing()
                continue

            if dep not in self._index:
                self._strongconnect(dep)
                self._lowlinks[name] = min(self._lowlinks[name], self._lowlinks[dep])
            elif dep in self._on_stack:
                self._lowlinks[name] = min(self._lowlinks[name], self._index[dep])

        if self._lowlinks[name] == self._index[name]:
            scc = []
            while True:
                w = self._stack.pop()
                self._on_stack.remove(w)
                scc.append(w)
                if w == name:
                    break
            self._sccs.append(scc)

    def resolution_order(self) -> List[str]:
        """
        Topological order with dependencies before their dependents.

        Raises:
            DependencyCycleError: If a cycle is detected
        """
        # Kahn's algorithm over "depends on" edges
        remaining = {
            name: sum(1 for dep in deps if dep in self.adj_list)
            for name, deps in self.adj_list.items()
        }
        dependents: Dict[str, List[str]] = defaultdict(list)
        for name, deps in self.adj_list.items():
            for dep in deps:
                if dep in self.adj_list:
                    dependents[dep].append(name)

        queue = deque(name for name, count in remaining.items() if count == 0)
        result = []

        while queue:
            name = queue.popleft()
            result.append(name)
            for dependent in dependents[name]:
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    queue.append(dependent)

        if len(result) != len(self.adj_list):
            cycles = self.detect_cycles()
            if cycles:
                cycle = cycles[0]
                raise DependencyCycleError(cycle + [cycle[0]])

        return result

    def export_dot(self) -> str:
        """
        Export graph as Graphviz DOT format.

        Returns:
            DOT string
        """
        lines = ["digraph Modules {"]
        lines.append("  rankdir=LR;")
        lines.append("  node [shape=box];")

        for name in self.adj_list:
            if name in self.startable:
                lines.append(f'  "{name}" [label="{name}\\n(startable)" fillcolor="lightgreen" style=filled];')
            else:
                lines.append(f'  "{name}" [label="{name}"];')

        for name, deps in self.adj_list.items():
            for dep in deps:
                style = "" if dep in self.adj_list else " [style=dashed color=red]"
                lines.append(f'  "{name}" -> "{dep}"{style};')

        lines.append("}")
        return "\n".join(lines)

    def tree_view(self, root: Optional[str] = None) -> str:
        """
        Get tree view of dependencies.

        Args:
            root: Optional root module (if None, show every module nothing
                depends on)
        """
        if root:
            return self._tree_view_recursive(root, "", set())

        all_deps = set()
        for deps in self.adj_list.values():
            all_deps.update(deps)

        roots = [name for name in self.adj_list if name not in all_deps]
        return "\n".join(self._tree_view_recursive(r, "", set()) for r in roots)

    def _tree_view_recursive(self, name: str, prefix: str, visited: Set[str]) -> str:
        if name in visited:
            return f"{prefix}├── {name} (circular)"

        if name not in self.adj_list:
            return f"{prefix}├── {name} (missing)"

        visited.add(name)
        label = f"{name} (startable)" if name in self.startable else name
        lines = [f"{prefix}├── {label}"]

        deps = self.adj_list[name]
        for i, dep in enumerate(deps):
            is_last = i == len(deps) - 1
            new_prefix = prefix + ("    " if is_last else "│   ")
            lines.append(self._tree_view_recursive(dep, new_prefix, visited.copy()))

        return "\n".join(lines)
