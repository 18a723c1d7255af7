"""
Scanbody Registration Pipeline

Drives placement of the scanbody template at every detected scanbody.

Modes:
- advanced: scan region -> landmark patches -> template patches (once per
  call) -> patch matching -> transform solve
- basic: highest local scan point + surface normal, no patch matching

A scanbody that cannot be registered is recorded on the report with its
failure kind and the batch carries on. Only batch preconditions (too few
landmarks, no scanbody detected) are raised. Falling back from advanced to
basic is left to the caller.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, TYPE_CHECKING

from ..alignment.basic_placement import BasicPlacement, template_half_height
from ..alignment.patch_matching import PatchMatcher
from ..alignment.transform_solver import RigidPlacement, solve
from ..detection.scanbody_detector import Landmark, Scanbody, ScanbodyDetector
from ..errors import (
    FailureKind,
    InsufficientLandmarksError,
    MatchingFailedError,
    NoValidScanbodyError,
    RegistrationError,
)
from ..extraction.patch_extractor import Patch, PatchExtractor
from ..utils.geometry import as_point_array
from ..utils.logging import setup_logger
from .parallel import ScanbodyParallelExecutor

if TYPE_CHECKING:
    from numpy.typing import ArrayLike
    from ..utils.config import AppConfig

logger = setup_logger(__name__)

MODES = ("advanced", "basic")


@dataclass
class ScanbodyResult:
    """Outcome for one scanbody: a placement, or the reason there is none."""

    scanbody: Scanbody
    placement: Optional[RigidPlacement] = None
    failure: Optional[FailureKind] = None
    message: str = ""

    @property
    def success(self) -> bool:
        return self.placement is not None


@dataclass
class RegistrationReport:
    mode: str
    results: List[ScanbodyResult] = field(default_factory=list)
    elapsed_s: float = 0.0

    @property
    def placements(self) -> List[RigidPlacement]:
        return [r.placement for r in self.results if r.placement is not None]

    @property
    def failures(self) -> List[ScanbodyResult]:
        return [r for r in self.results if r.placement is None]

    @property
    def success_count(self) -> int:
        return len(self.placements)

    def summary(self) -> dict:
        return {
            "mode": self.mode,
            "scanbodies": len(self.results),
            "registered": self.success_count,
            "failed": {str(r.scanbody): r.failure.value for r in self.failures if r.failure},
            "elapsed_s": self.elapsed_s,
        }


class ScanbodyRegistration:
    """
    End-to-end scanbody registration.

    Stateless between calls: every input is read-only and every call builds
    its own intermediate data, so repeated calls with identical inputs give
    identical reports.
    """

    def __init__(
        self,
        detector: Optional[ScanbodyDetector] = None,
        extractor: Optional[PatchExtractor] = None,
        matcher: Optional[PatchMatcher] = None,
        basic: Optional[BasicPlacement] = None,
        parallel: bool = False,
        n_workers: Optional[int] = None,
        mode: str = "advanced",
    ):
        """
        Args:
            detector: Landmark grouping (default: greedy, 5 mm)
            extractor: Region/patch extraction parameters
            matcher: Patch scoring and threshold
            basic: Parameters for the basic placement mode
            parallel: If True, register scanbodies on a thread pool
            n_workers: Thread count when ``parallel`` (None = auto)
            mode: Default mode for ``register`` ("advanced" or "basic")
        """
        if mode not in MODES:
            raise ValueError(f"Unknown registration mode '{mode}'; expected one of {MODES}")
        self.detector = detector or ScanbodyDetector()
        self.extractor = extractor or PatchExtractor()
        self.matcher = matcher or PatchMatcher()
        self.basic = basic or BasicPlacement()
        self.parallel = parallel
        self.n_workers = n_workers
        self.mode = mode

    @classmethod
    def from_config(cls, cfg: "AppConfig") -> "ScanbodyRegistration":
        """Build every component from config. Logging is left to the caller (``configure_logging``)."""
        return cls(
            detector=ScanbodyDetector.from_config(cfg),
            extractor=PatchExtractor.from_config(cfg),
            matcher=PatchMatcher.from_config(cfg),
            basic=BasicPlacement.from_config(cfg),
            parallel=cfg.parallel.enabled,
            n_workers=cfg.parallel.n_workers,
            mode=cfg.registration.mode,
        )

    # ------------------------ Entry points ------------------------
    def register(
        self,
        landmarks: Sequence[Landmark],
        scan_points: "ArrayLike",
        template_points: "ArrayLike",
        mode: Optional[str] = None,
    ) -> RegistrationReport:
        """
        Detect scanbodies from landmarks and register each one.

        Raises:
            InsufficientLandmarksError: Fewer than 3 landmarks
            NoValidScanbodyError: No landmark triple qualifies as a scanbody
            ValueError: Unknown mode
        """
        mode = self.mode if mode is None else mode
        if mode not in MODES:
            raise ValueError(f"Unknown registration mode '{mode}'; expected one of {MODES}")
        if len(landmarks) < 3:
            raise InsufficientLandmarksError(
                f"At least 3 landmarks are required to detect a scanbody, got {len(landmarks)}"
            )

        scanbodies = self.detector.detect(landmarks)
        if not scanbodies:
            raise NoValidScanbodyError(
                f"No scanbody found among {len(landmarks)} landmarks "
                f"(pairwise distance limit {self.detector.max_landmark_distance} mm)"
            )

        if mode == "basic":
            return self.register_basic(scanbodies, scan_points, template_points)
        return self.register_advanced(scanbodies, scan_points, template_points)

    def register_advanced(
        self,
        scanbodies: Sequence[Scanbody],
        scan_points: "ArrayLike",
        template_points: "ArrayLike",
    ) -> RegistrationReport:
        """Patch-matching registration for every scanbody."""
        scan = as_point_array(scan_points)
        template = as_point_array(template_points)
        logger.info(
            "Advanced registration of %d scanbody(ies): %d scan points, %d template points.",
            len(scanbodies), len(scan), len(template),
        )
        start = time.time()

        template_patches = self.extractor.extract_template_patches(template)

        def register_one(scanbody: Scanbody) -> ScanbodyResult:
            return self._guarded(scanbody, lambda: self._advanced_placement(scan, scanbody, template_patches))

        results = self._run(register_one, scanbodies)
        return self._report("advanced", results, start)

    def register_basic(
        self,
        scanbodies: Sequence[Scanbody],
        scan_points: "ArrayLike",
        template_points: "ArrayLike",
    ) -> RegistrationReport:
        """Highest-point placement for every scanbody."""
        scan = as_point_array(scan_points)
        half_height = template_half_height(template_points)
        logger.info(
            "Basic registration of %d scanbody(ies): %d scan points, template half height %.3f mm.",
            len(scanbodies), len(scan), half_height,
        )
        start = time.time()

        def register_one(scanbody: Scanbody) -> ScanbodyResult:
            return self._guarded(scanbody, lambda: self.basic.place(scan, scanbody, half_height))

        results = self._run(register_one, scanbodies)
        return self._report("basic", results, start)

    # ------------------------ Internals ------------------------
    def _advanced_placement(self, scan, scanbody: Scanbody, template_patches: List[Patch]) -> RigidPlacement:
        region = self.extractor.extract_region(scan, scanbody)
        target_patches = self.extractor.extract_landmark_patches(region, scanbody)

        result = self.matcher.match(target_patches, template_patches)
        if not result.success:
            raise MatchingFailedError(
                f"{len(result.correspondences)} correspondence(s) from {len(target_patches)} scan "
                f"and {len(template_patches)} template patches; "
                f"{self.matcher.min_correspondences} required"
            )
        logger.debug("Match quality for %s: %.3f", scanbody, result.avg_quality)
        return solve(result.correspondences)

    @staticmethod
    def _guarded(scanbody: Scanbody, compute: Callable[[], RigidPlacement]) -> ScanbodyResult:
        try:
            placement = compute()
        except RegistrationError as e:
            logger.warning("Skipping %s (%s): %s", scanbody, e.kind.value, e)
            return ScanbodyResult(scanbody=scanbody, failure=e.kind, message=str(e))

        logger.info(
            "Placed template at %s: rms=%.4f mm, %d correspondence(s).",
            scanbody, placement.rms, placement.correspondence_count,
        )
        return ScanbodyResult(scanbody=scanbody, placement=placement)

    def _run(self, register_one: Callable[[Scanbody], ScanbodyResult],
             scanbodies: Sequence[Scanbody]) -> List[ScanbodyResult]:
        if self.parallel:
            return ScanbodyParallelExecutor(self.n_workers).map(register_one, list(scanbodies))
        return [register_one(sb) for sb in scanbodies]

    @staticmethod
    def _report(mode: str, results: List[ScanbodyResult], start: float) -> RegistrationReport:
        report = RegistrationReport(mode=mode, results=results, elapsed_s=time.time() - start)
        logger.info(
            "%s registration finished in %.3f s: %d/%d scanbody(ies) placed.",
            mode.capitalize(), report.elapsed_s, report.success_count, len(results),
        )
        return report
