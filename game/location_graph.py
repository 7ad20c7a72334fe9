"""Case map construction.

Location names become nodes with ids L1..LN in story order. The text model
proposes connections; anything that does not form a connected graph over
exactly those ids is replaced by a linear chain, so every location is always
reachable.
"""

import logging
from collections import deque
from typing import Iterable, List, Optional, Sequence

from game.models import CaseMap, LocationNode, TimelineEvent
from game.validated_generator import generate_validated

logger = logging.getLogger(__name__)


def location_id(index: int) -> str:
    return f"L{index + 1}"


def linear_chain(names: Sequence[str]) -> List[LocationNode]:
    """L1 -> L2 -> ... -> LN, each node linked to the next."""
    ids = [location_id(i) for i in range(len(names))]
    return [
        LocationNode(id=ids[i], full_name=name, connections=ids[i + 1 : i + 2])
        for i, name in enumerate(names)
    ]


def _undirected_edges(nodes: Iterable[LocationNode]) -> List[tuple]:
    seen = set()
    edges = []
    for node in nodes:
        for other in node.connections:
            key = frozenset((node.id, other))
            if other != node.id and key not in seen:
                seen.add(key)
                edges.append((node.id, other))
    return edges


def is_connected(nodes: Sequence[LocationNode]) -> bool:
    """True if every node is reachable from the first, ignoring edge direction."""
    if not nodes:
        return True
    adjacency = {node.id: set() for node in nodes}
    for a, b in _undirected_edges(nodes):
        if a not in adjacency or b not in adjacency:
            return False
        adjacency[a].add(b)
        adjacency[b].add(a)

    start = nodes[0].id
    reached = {start}
    queue = deque([start])
    while queue:
        for neighbour in adjacency[queue.popleft()]:
            if neighbour not in reached:
                reached.add(neighbour)
                queue.append(neighbour)
    return len(reached) == len(adjacency)


def nodes_from_suggestion(candidate, names: Sequence[str]) -> Optional[List[LocationNode]]:
    """Turn a model suggestion into nodes, or None if it is unusable.

    Usable means one entry per expected id, connections that only use
    expected ids, and a connected result. Names always come from `names`.
    """
    if not isinstance(candidate, list):
        return None
    expected = [location_id(i) for i in range(len(names))]
    by_id = {}
    for entry in candidate:
        if not isinstance(entry, dict) or entry.get("id") not in expected:
            return None
        connections = entry.get("connections", [])
        if not isinstance(connections, list) or any(c not in expected for c in connections):
            return None
        by_id[entry["id"]] = [c for c in dict.fromkeys(connections) if c != entry["id"]]
    if set(by_id) != set(expected):
        return None

    nodes = [
        LocationNode(id=node_id, full_name=name, connections=by_id[node_id])
        for node_id, name in zip(expected, names)
    ]
    return nodes if is_connected(nodes) else None


def connection_prompt(names: Sequence[str], setting: str, timeline: Sequence[TimelineEvent]) -> str:
    listing = "\n".join(f"{location_id(i)}: {name}" for i, name in enumerate(names))
    events = "\n".join(f"{t.time}: {t.event}" for t in timeline) or "(no timeline)"
    return f"""Given these locations in a {setting}:
{listing}

Suggest logical connections between these locations based on the setting's layout
and the movement of people in this timeline:
{events}

Return ONLY a JSON array where each object has:
{{"id": "L1", "fullName": "exact location name", "connections": ["L2", "L3"]}}

Requirements:
1. Use ONLY the provided location IDs
2. Each location must connect to at least one other location
3. Every location must be reachable from every other location
4. Do not add locations that are not in the list"""


def build_graph(
    names: Sequence[str],
    generator,
    setting: str = "",
    timeline: Sequence[TimelineEvent] = (),
    max_attempts: Optional[int] = None,
) -> List[LocationNode]:
    """Connected location nodes for `names`, falling back to a linear chain."""
    names = list(names)
    if len(names) <= 1:
        return linear_chain(names)

    prompt = connection_prompt(names, setting, timeline)
    candidate, ok = generate_validated(
        generator,
        prompt,
        lambda c: nodes_from_suggestion(c, names) is not None,
        max_attempts=max_attempts,
        expect="array",
        label="map connections",
    )
    if ok:
        nodes = nodes_from_suggestion(candidate, names)
        logger.info("[MAP] Built %d nodes with %d edges", len(nodes), len(_undirected_edges(nodes)))
        return nodes

    logger.warning("[MAP] Connection suggestions unusable, falling back to linear chain")
    return linear_chain(names)


def mermaid_diagram(nodes: Sequence[LocationNode]) -> str:
    """Mermaid `graph TD` source for the map (undirected edges, each listed once)."""
    lines = ["graph TD"]
    for node in nodes:
        label = node.full_name.replace('"', "'")
        lines.append(f'    {node.id}["{label}"]')
    for a, b in _undirected_edges(nodes):
        lines.append(f"    {a} --- {b}")
    return "\n".join(lines)


def map_image_prompt(setting: str, nodes: Sequence[LocationNode]) -> str:
    lowered = setting.lower()
    if "mars" in lowered or "space" in lowered:
        style, palette, structures = "futuristic", "red-tinted", "domes and modules"
    elif "manor" in lowered or "mansion" in lowered:
        style, palette, structures = "vintage", "sepia", "Victorian rooms"
    elif "island" in lowered or "resort" in lowered:
        style, palette, structures = "tropical", "vibrant", "resort facilities"
    else:
        style, palette, structures = "modern", "cool", "buildings"

    degree = {node.id: 0 for node in nodes}
    for a, b in _undirected_edges(nodes):
        degree[a] = degree.get(a, 0) + 1
        degree[b] = degree.get(b, 0) + 1
    hubs = sum(1 for d in degree.values() if d > 2)

    return (
        f"A {style} architectural blueprint showing exactly {len(nodes)} distinct {structures} "
        f"in a {setting} setting, {hubs} of them major hubs, all joined by corridors or paths. "
        f"{palette} colour scheme, simple compass rose, coordinate grid, no text or labels."
    )


def build_case_map(story, generator, images=None, storage=None, max_attempts: Optional[int] = None) -> CaseMap:
    """Nodes, Mermaid diagram and (optionally) a map illustration for a story."""
    nodes = build_graph(story.locations, generator, story.setting, story.timeline, max_attempts)
    case_map = CaseMap(nodes=nodes, mermaid_diagram=mermaid_diagram(nodes))

    if images is not None and storage is not None:
        try:
            data = images.generate_image(map_image_prompt(story.setting, nodes))
            if data:
                case_map.map_image_url = storage.upload(data, "map.png", "maps").url
        except Exception as e:
            logger.warning("[MAP] Map image failed: %s", e)
    return case_map
