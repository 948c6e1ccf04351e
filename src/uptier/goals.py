"""Goal hierarchy: a forest of goals linked by parent_goal_id."""

from __future__ import annotations

from collections.abc import Iterable

import networkx as nx

from uptier.models import Goal


def build_goal_graph(goals: Iterable[Goal]) -> nx.DiGraph:
    """Directed graph with an edge parent -> child for every parented goal."""
    G = nx.DiGraph()
    goals = list(goals)
    for g in goals:
        G.add_node(g.id, goal=g)
    for g in goals:
        if g.parent_goal_id and g.parent_goal_id in G:
            G.add_edge(g.parent_goal_id, g.id)
    return G


def would_create_cycle(G: nx.DiGraph, goal_id: str, new_parent_id: str | None) -> bool:
    """True if making ``new_parent_id`` the parent of ``goal_id`` closes a loop."""
    if new_parent_id is None:
        return False
    if new_parent_id == goal_id:
        return True
    if goal_id not in G:
        return False
    return new_parent_id in nx.descendants(G, goal_id)


def goal_tree(goals: Iterable[Goal]) -> list[dict]:
    """Nested ``{..., "children": [...]}`` dicts, roots ordered as given.

    A goal whose parent is missing from ``goals`` is treated as a root.
    """
    G = build_goal_graph(goals)

    def node(goal_id: str) -> dict:
        d = G.nodes[goal_id]["goal"].to_dict()
        d["children"] = [node(child) for child in G.successors(goal_id)]
        return d

    return [node(n) for n in G.nodes if G.in_degree(n) == 0]
