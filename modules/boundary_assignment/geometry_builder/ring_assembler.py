"""Ring Assembly for OSM Boundary Ways

Reconnects the unordered, direction-inconsistent way segments of one boundary
relation into closed rings.

Assembly is greedy: a chain is seeded with the first unused segment and grown
from its last point by any unused segment that starts there (appended forward)
or ends there (appended reversed). Unused segments live in an insertion-ordered
work-list keyed by segment index, so results are deterministic for a given
input order.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from ..models.geometry import Point2D, Ring

logger = logging.getLogger(__name__)


class WaySegment(BaseModel):
    """Resolved point sequence of one OSM way.

    ``way_id`` is only used for bookkeeping and log messages.
    """

    model_config = ConfigDict(frozen=True)

    way_id: Optional[int] = Field(None, description="Source OSM way id")
    points: Tuple[Point2D, ...] = Field(..., description="Way coordinates in OSM order")

    @property
    def start(self) -> Point2D:
        return self.points[0]

    @property
    def end(self) -> Point2D:
        return self.points[-1]


SegmentInput = Union[WaySegment, Sequence[Sequence[float]]]


def _as_segment(segment: SegmentInput) -> WaySegment:
    if isinstance(segment, WaySegment):
        return segment
    return WaySegment(points=tuple(Point2D(p[0], p[1]) for p in segment))


def close_ring(chain: Sequence[Point2D]) -> Optional[Ring]:
    """Force-close a chain into a ring.

    Chains of 3 points or fewer are rejected; otherwise the first point is
    appended when the chain does not already end where it started.

    Returns:
        The closed Ring, or None for chains too short to form one
    """
    if len(chain) <= 3:
        return None

    points = list(chain)
    if points[0] != points[-1]:
        points.append(points[0])
    return Ring(points=tuple(points))


class RingAssembler:
    """Assembles closed rings from way segments.

    The assembler holds no state between calls; one instance can serve any
    number of relations.
    """

    def assemble_chains(self, segments: Iterable[SegmentInput]) -> List[List[Point2D]]:
        """Connect segments into point chains without closing them.

        Each usable segment is consumed at most once. Segments with fewer than
        two points are skipped.

        Args:
            segments: WaySegment objects or raw coordinate sequences, in input order

        Returns:
            One point chain per seed, in the order the seeds were taken
        """
        usable: List[WaySegment] = []
        for raw in segments:
            segment = _as_segment(raw)
            if len(segment.points) < 2:
                logger.debug(f"Skipping way {segment.way_id}: fewer than 2 points")
                continue
            usable.append(segment)

        unused: Dict[int, WaySegment] = dict(enumerate(usable))
        max_extensions = len(usable)
        chains: List[List[Point2D]] = []

        while unused:
            seed_index = next(iter(unused))
            seed = unused.pop(seed_index)
            chain = list(seed.points)
            self._extend_chain(chain, unused, max_extensions)
            chains.append(chain)

        return chains

    def assemble(self, segments: Iterable[SegmentInput]) -> List[Ring]:
        """Assemble closed rings from way segments.

        Chains that cannot form a ring of more than 3 points are dropped
        silently. Never raises for malformed input; an empty list means the
        segments carry no usable geometry.

        Args:
            segments: WaySegment objects or raw coordinate sequences

        Returns:
            Closed rings in seed order
        """
        rings: List[Ring] = []
        dropped = 0

        for chain in self.assemble_chains(segments):
            ring = close_ring(chain)
            if ring is None:
                dropped += 1
                continue
            rings.append(ring)

        if dropped:
            logger.debug(f"Dropped {dropped} chain(s) too short to form a ring")
        return rings

    def _extend_chain(self, chain: List[Point2D], unused: Dict[int, WaySegment],
                      max_extensions: int) -> None:
        """Grow ``chain`` in place from its last point, consuming matched segments."""
        extensions = 0
        while unused and extensions < max_extensions:
            last = chain[-1]
            matched_index = None

            for index, segment in unused.items():
                if segment.start == last:
                    chain.extend(segment.points[1:])
                    matched_index = index
                    break
                if segment.end == last:
                    chain.extend(reversed(segment.points[:-1]))
                    matched_index = index
                    break

            if matched_index is None:
                break

            del unused[matched_index]
            extensions += 1


def assemble_rings(segments: Iterable[SegmentInput]) -> List[Ring]:
    """Convenience wrapper around RingAssembler.assemble."""
    return RingAssembler().assemble(segments)
