"""Cross-check one posterior summary against another.

Typical use: the closed-form (or grid) posterior is the reference, and a sampled
posterior from `SamplerAdapter` is the candidate.
"""

import logging
from dataclasses import dataclass

from conjugax.results import PosteriorSummary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComparisonReport:
    """
    Attributes:
        mean_error: |candidate mean - reference mean|
        standardized_error: mean_error in units of the reference sd
        sd_ratio: candidate sd / reference sd
        interval_overlap: fraction of the reference interval covered by the candidate interval
    """
    mean_error: float
    standardized_error: float
    sd_ratio: float
    interval_overlap: float

    def agrees(self, mean_tol: float = 0.1, sd_tol: float = 0.1) -> bool:
        """
        True when the means differ by at most mean_tol reference sds and the sds
        differ by at most a relative sd_tol.
        """
        return self.standardized_error <= mean_tol and abs(self.sd_ratio - 1.0) <= sd_tol


def compare_summaries(reference: PosteriorSummary, candidate: PosteriorSummary) -> ComparisonReport:
    if not reference.sd > 0:
        msg = f"reference sd must be positive, got {reference.sd}"
        raise ValueError(msg)

    mean_error = abs(candidate.mean - reference.mean)
    width = reference.upper - reference.lower
    covered = min(reference.upper, candidate.upper) - max(reference.lower, candidate.lower)
    overlap = max(covered, 0.0) / width if width > 0 else float(reference.lower == candidate.lower)

    report = ComparisonReport(
        mean_error=mean_error,
        standardized_error=mean_error / reference.sd,
        sd_ratio=candidate.sd / reference.sd,
        interval_overlap=overlap,
    )
    logger.debug(f"Comparison: {report}")
    return report
