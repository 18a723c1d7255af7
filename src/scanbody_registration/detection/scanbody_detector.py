"""
Scanbody Detection

Groups user-placed landmarks into scanbodies: disjoint triples whose pairwise
distances all stay within the scanbody size (5 mm by default).

Strategies implemented:
- greedy: first valid triple in landmark input order wins (reference behavior)
- compact: valid triples ranked by perimeter, smallest first; ties fall back
  to input order. Independent of input order for well-separated clusters.

Neither strategy is a global optimum (e.g. maximum matching); both are
registered in ``GROUPING_STRATEGIES`` so another one can be added without
touching callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
from typing import Callable, Dict, Iterable, List, Mapping, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from ..utils.geometry import distance, pairwise_distances
from ..utils.logging import setup_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray
    from ..utils.config import AppConfig

logger = setup_logger(__name__)

MAX_LANDMARK_DISTANCE = 5.0


@dataclass(frozen=True)
class Landmark:
    """A user-placed point on the scan, in the scan's local frame."""

    x: float
    y: float
    z: float
    id: str

    @property
    def position(self) -> "NDArray[np.float64]":
        return np.array([self.x, self.y, self.z], dtype=float)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Landmark":
        """Build from a ``{"x", "y", "z", "id"}`` record as sent by the viewer."""
        try:
            return cls(
                x=float(data["x"]),
                y=float(data["y"]),
                z=float(data["z"]),
                id=str(data["id"]),
            )
        except KeyError as e:
            raise ValueError(f"Landmark record is missing field {e}") from e


@dataclass(frozen=True)
class Scanbody:
    """Three landmarks identifying one physical attachment feature."""

    landmarks: Tuple[Landmark, Landmark, Landmark]

    def __post_init__(self):
        if len(self.landmarks) != 3:
            raise ValueError(f"A scanbody needs exactly 3 landmarks, got {len(self.landmarks)}")

    @property
    def positions(self) -> "NDArray[np.float64]":
        return np.array([lm.position for lm in self.landmarks])

    @property
    def centroid(self) -> "NDArray[np.float64]":
        return self.positions.mean(axis=0)

    @property
    def max_pairwise_distance(self) -> float:
        return float(pairwise_distances(self.positions).max())

    @property
    def perimeter(self) -> float:
        a, b, c = self.positions
        return distance(a, b) + distance(b, c) + distance(a, c)

    @property
    def landmark_ids(self) -> Tuple[str, str, str]:
        return tuple(lm.id for lm in self.landmarks)  # type: ignore[return-value]

    def __str__(self) -> str:
        c = self.centroid
        return f"Scanbody({', '.join(self.landmark_ids)} @ [{c[0]:.2f}, {c[1]:.2f}, {c[2]:.2f}])"


def landmarks_from_dicts(records: Iterable[Mapping[str, object]]) -> List[Landmark]:
    """Convert viewer landmark records ``{x, y, z, id}`` into Landmarks."""
    return [Landmark.from_dict(r) for r in records]


def is_valid_scanbody(
    a: Landmark,
    b: Landmark,
    c: Landmark,
    max_distance: float = MAX_LANDMARK_DISTANCE,
) -> bool:
    """True iff all three pairwise distances are <= ``max_distance`` (boundary inclusive)."""
    return (
        distance(a.position, b.position) <= max_distance
        and distance(b.position, c.position) <= max_distance
        and distance(a.position, c.position) <= max_distance
    )


# ------------------------ Strategies ------------------------

GroupingStrategy = Callable[[Sequence[Landmark], float], List[Tuple[int, int, int]]]


def _greedy_triples(landmarks: Sequence[Landmark], max_distance: float) -> List[Tuple[int, int, int]]:
    used = set()
    triples = []
    for i, j, k in combinations(range(len(landmarks)), 3):
        if i in used or j in used or k in used:
            continue
        if is_valid_scanbody(landmarks[i], landmarks[j], landmarks[k], max_distance):
            triples.append((i, j, k))
            used.update((i, j, k))
    return triples


def _compact_triples(landmarks: Sequence[Landmark], max_distance: float) -> List[Tuple[int, int, int]]:
    positions = np.array([lm.position for lm in landmarks])
    dist = pairwise_distances(positions)

    candidates = []
    for i, j, k in combinations(range(len(landmarks)), 3):
        if dist[i, j] <= max_distance and dist[j, k] <= max_distance and dist[i, k] <= max_distance:
            candidates.append((dist[i, j] + dist[j, k] + dist[i, k], (i, j, k)))
    # Stable sort keeps input order among equal perimeters
    candidates.sort(key=lambda item: item[0])

    used = set()
    triples = []
    for _, triple in candidates:
        if used.isdisjoint(triple):
            triples.append(triple)
            used.update(triple)
    return sorted(triples)


GROUPING_STRATEGIES: Dict[str, GroupingStrategy] = {
    "greedy": _greedy_triples,
    "compact": _compact_triples,
}


@dataclass
class ScanbodyDetector:
    max_landmark_distance: float = MAX_LANDMARK_DISTANCE
    strategy: str = "greedy"  # greedy | compact

    def __post_init__(self):
        if self.strategy not in GROUPING_STRATEGIES:
            raise ValueError(
                f"Unknown grouping strategy '{self.strategy}'; "
                f"expected one of {sorted(GROUPING_STRATEGIES)}"
            )

    @classmethod
    def from_config(cls, cfg: "AppConfig") -> "ScanbodyDetector":
        return cls(
            max_landmark_distance=cfg.detection.max_landmark_distance,
            strategy=cfg.detection.strategy,
        )

    def detect(self, landmarks: Sequence[Landmark]) -> List[Scanbody]:
        """
        Partition landmarks into scanbodies.

        Each landmark ends up in at most one scanbody. Landmarks that fit no
        valid triple are left out.

        Args:
            landmarks: Landmark snapshot; never modified

        Returns:
            Detected scanbodies (empty when fewer than 3 landmarks or no valid triple)
        """
        if len(landmarks) < 3:
            logger.info("Scanbody detection skipped: %d landmark(s), need at least 3.", len(landmarks))
            return []

        triples = GROUPING_STRATEGIES[self.strategy](landmarks, self.max_landmark_distance)
        scanbodies = [
            Scanbody(landmarks=(landmarks[i], landmarks[j], landmarks[k]))
            for i, j, k in triples
        ]

        n_used = 3 * len(scanbodies)
        logger.info(
            "Detected %d scanbody(ies) from %d landmarks (%d unused, strategy=%s).",
            len(scanbodies),
            len(landmarks),
            len(landmarks) - n_used,
            self.strategy,
        )
        for sb in scanbodies:
            logger.debug("  %s", sb)
        return scanbodies
