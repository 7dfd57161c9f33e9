from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Neo4jConfig:
    uri: str
    user: str
    password: str
    database: str = "neo4j"


@dataclass(frozen=True, slots=True)
class GraphHit:
    """One traversal result row."""

    concept: str
    category: str | None = None
    via_concepts: list[str] = field(default_factory=list)
    connection_count: int = 0
    cluster_size: int = 0


class ConceptGraph(Protocol):
    """Read-only concept traversals. Implementations return [] when unavailable."""

    async def unexplored_neighbors(self, concepts: list[str]) -> list[GraphHit]: ...

    async def bridge_concepts(self, concepts: list[str]) -> list[GraphHit]: ...

    async def trending_concepts(self, concepts: list[str]) -> list[GraphHit]: ...

    async def adjacent_clusters(self, concepts: list[str]) -> list[GraphHit]: ...


# 1-2 hop neighbours not yet in the user's footprint
UNEXPLORED_CYPHER = """
MATCH (c1:Concept)
WHERE c1.name IN $concepts
MATCH (c1)-[:RELATED_TO*1..2]-(c2:Concept)
WHERE NOT c2.name IN $concepts
WITH c2, count(*) AS connections, collect(DISTINCT c1.name)[0..3] AS via_concepts
ORDER BY connections DESC
LIMIT 10
RETURN c2.name AS concept, c2.category AS category, via_concepts, connections
"""

# concepts sitting on short paths between two of the user's own concepts
BRIDGE_CYPHER = """
MATCH (c1:Concept), (c2:Concept)
WHERE c1.name IN $concepts AND c2.name IN $concepts AND c1 <> c2
MATCH path = shortestPath((c1)-[:RELATED_TO*..3]-(c2))
WITH nodes(path) AS path_nodes
UNWIND path_nodes AS node
WITH node.name AS concept, node.category AS category, count(*) AS bridge_count
WHERE NOT concept IN $concepts
ORDER BY bridge_count DESC
LIMIT 5
RETURN concept, category, bridge_count
"""

# concepts with many papers in the last 90 days, near the user's concepts
TRENDING_CYPHER = """
MATCH (c:Concept)<-[:ABOUT]-(p:Paper)
WHERE p.publicationDate > datetime() - duration('P90D')
WITH c, count(p) AS recent_papers
ORDER BY recent_papers DESC
LIMIT 20
MATCH (uc:Concept)
WHERE uc.name IN $concepts
MATCH (c)-[:RELATED_TO*1..2]-(uc)
WITH c, recent_papers, collect(DISTINCT uc.name)[0..2] AS user_concepts
WHERE size(user_concepts) > 0
ORDER BY recent_papers DESC
LIMIT 8
RETURN c.name AS concept, c.category AS category, recent_papers, user_concepts
"""

# dense neighbourhoods adjacent to the footprint
CLUSTER_CYPHER = """
MATCH (uc:Concept)
WHERE uc.name IN $concepts
MATCH (uc)-[:RELATED_TO*1..2]-(c:Concept)
WHERE NOT c.name IN $concepts
WITH c, count(*) AS connection_strength
WHERE connection_strength >= 2
MATCH (c)-[:RELATED_TO]-(neighbor:Concept)
WHERE NOT neighbor.name IN $concepts
WITH c, connection_strength, count(DISTINCT neighbor) AS cluster_size
WHERE cluster_size >= 3
ORDER BY connection_strength DESC, cluster_size DESC
LIMIT 5
RETURN c.name AS concept, c.category AS category, connection_strength, cluster_size
"""


class Neo4jConceptGraph:
    """Neo4j-backed concept graph over the async driver.

    Dependency: neo4j>=5.
    """

    def __init__(self, cfg: Neo4jConfig):
        self.cfg = cfg
        from neo4j import AsyncGraphDatabase

        # Driver is safe to share across tasks; sessions are per query.
        self._driver = AsyncGraphDatabase.driver(cfg.uri, auth=(cfg.user, cfg.password))

    async def close(self) -> None:
        await self._driver.close()

    async def query(self, cypher: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        try:
            async with self._driver.session(database=self.cfg.database) as s:
                res = await s.run(cypher, **(params or {}))
                return [dict(r) async for r in res]
        except Exception as e:
            logger.warning("Neo4j query failed, treating as empty: %s", e)
            return []

    async def unexplored_neighbors(self, concepts: list[str]) -> list[GraphHit]:
        rows = await self.query(UNEXPLORED_CYPHER, {"concepts": concepts})
        return [
            GraphHit(
                concept=r["concept"],
                category=r.get("category"),
                via_concepts=list(r.get("via_concepts") or []),
                connection_count=int(r.get("connections") or 0),
            )
            for r in rows
            if r.get("concept")
        ]

    async def bridge_concepts(self, concepts: list[str]) -> list[GraphHit]:
        if len(concepts) < 2:
            return []
        rows = await self.query(BRIDGE_CYPHER, {"concepts": concepts})
        return [
            GraphHit(
                concept=r["concept"],
                category=r.get("category"),
                connection_count=int(r.get("bridge_count") or 0),
            )
            for r in rows
            if r.get("concept")
        ]

    async def trending_concepts(self, concepts: list[str]) -> list[GraphHit]:
        rows = await self.query(TRENDING_CYPHER, {"concepts": concepts})
        return [
            GraphHit(
                concept=r["concept"],
                category=r.get("category"),
                via_concepts=list(r.get("user_concepts") or []),
                connection_count=int(r.get("recent_papers") or 0),
            )
            for r in rows
            if r.get("concept")
        ]

    async def adjacent_clusters(self, concepts: list[str]) -> list[GraphHit]:
        rows = await self.query(CLUSTER_CYPHER, {"concepts": concepts})
        return [
            GraphHit(
                concept=r["concept"],
                category=r.get("category"),
                connection_count=int(r.get("connection_strength") or 0),
                cluster_size=int(r.get("cluster_size") or 0),
            )
            for r in rows
            if r.get("concept")
        ]


class NullConceptGraph:
    """Used when Neo4j is not configured."""

    async def unexplored_neighbors(self, concepts: list[str]) -> list[GraphHit]:
        return []

    async def bridge_concepts(self, concepts: list[str]) -> list[GraphHit]:
        return []

    async def trending_concepts(self, concepts: list[str]) -> list[GraphHit]:
        return []

    async def adjacent_clusters(self, concepts: list[str]) -> list[GraphHit]:
        return []

    async def close(self) -> None:
        return None


def build_concept_graph(
    *, uri: str | None, user: str | None, password: str | None, database: str = "neo4j"
) -> ConceptGraph:
    if not (uri and user and password):
        logger.warning("Neo4j is not configured; graph-based suggestions are disabled")
        return NullConceptGraph()
    try:
        return Neo4jConceptGraph(Neo4jConfig(uri=uri, user=user, password=password, database=database))
    except Exception as e:
        logger.warning("Neo4j driver unavailable (%s); graph-based suggestions are disabled", e)
        return NullConceptGraph()
