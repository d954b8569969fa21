"""Configuration values for curve comparison.

This module centralizes the settings consumed by the matcher, ranker and
condenser. They replace the interactive dialogs of a hosting application:
everything is a plain value that is passed explicitly, never a process-wide
table.

The module provides:
    Metric: Selectable scoring metrics. Smaller values are always better.
    EnvelopeMode: Per-point variability radius used for rendering.
    EditWeights: Insert/delete/mutate weights for the edit-distance aligner.
    ComparisonConfig: The full set of comparison options.

Example usage::

    from curve_lib.config import ComparisonConfig, Metric

    config = ComparisonConfig(metric=Metric.COMBINED, skip_ends=True)
    config = ComparisonConfig.from_dict({'maxMutation': 3, 'metric': 'proximity'})
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Mapping, Optional, Pattern, Tuple, Union

from .errors import InvalidInputError, NoFeasibleAlignmentError

logger = logging.getLogger(__name__)

# Default edit weights (cost per consumed point, in units of delta)
DEFAULT_INSERT_WEIGHT = 1.1
DEFAULT_DELETE_WEIGHT = 1.1
DEFAULT_MUTATE_WEIGHT = 1.0

# Linear fit of (similarity, edit distance, median distance, intercept)
# against known correct matches
COMBINED_SCORE_WEIGHTS = (
    0.3238955445631255,
    -0.001738441643315311,
    -0.03506078734289302,
    0.7148869480636044,
)

DEFAULT_MAX_MUTATION = 5
DEFAULT_MIN_CHUNK = 0.5
DEFAULT_MIN_MATCHES = 10


class Metric(Enum):
    """Scoring metrics. Values are the historical integer codes."""
    LEVENSHTEIN = 0
    DISSIMILARITY = 1
    AVG_PHYS_DIST = 2
    MEDIAN_PHYS_DIST = 3
    CUM_PHYS_DIST = 4
    STD_DEV = 5
    COMBINED = 6
    PROXIMITY = 7
    PROXIMITY_MUT = 8
    STD_DEV_ALL = 9
    COMBINED_SCORE_INDICES = 10

    @classmethod
    def parse(cls, value: Union[Metric, int, str, None]) -> Optional[Metric]:
        """Convert an enum, integer code or name to a Metric.

        ``None`` and the string ``'none'`` mean "no metric" and return None.

        Raises:
            InvalidInputError: If the value names no metric.
        """
        if value is None or isinstance(value, Metric):
            return value
        if isinstance(value, str):
            name = value.strip().upper().replace(' ', '_').replace('-', '_')
            if name == 'NONE':
                return None
            try:
                return cls[name]
            except KeyError:
                raise InvalidInputError(f"Unknown metric: {value!r}") from None
        try:
            return cls(value)
        except ValueError:
            raise InvalidInputError(f"Unknown metric code: {value!r}") from None


# Metrics whose rank positions are summed by Metric.COMBINED_SCORE_INDICES.
# Dissimilarity is left out on purpose: it distorts the aggregate badly.
RANK_INDEX_METRICS = (
    Metric.LEVENSHTEIN,
    Metric.AVG_PHYS_DIST,
    Metric.CUM_PHYS_DIST,
    Metric.STD_DEV,
    Metric.PROXIMITY,
)


class EnvelopeMode(Enum):
    """How the per-point variability radius is derived from provenance."""
    STD_DEV_1 = 0
    STD_DEV_2 = 1
    STD_DEV_3 = 2
    MEAN_DISTANCE = 3
    MAX_DISTANCE = 4

    @classmethod
    def parse(cls, value: Union[EnvelopeMode, int, str]) -> EnvelopeMode:
        if isinstance(value, EnvelopeMode):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise InvalidInputError(f"Unknown envelope mode: {value!r}") from None
        try:
            return cls(value)
        except ValueError:
            raise InvalidInputError(f"Unknown envelope mode: {value!r}") from None


@dataclass(frozen=True)
class EditWeights:
    """Per-operation weights for the edit-distance aligner.

    Attributes:
        insert: Cost factor of consuming one point of the second path alone.
        delete: Cost factor of consuming one point of the first path alone.
        mutate: Cost factor applied to the angular difference of a matched pair.
    """
    insert: float = DEFAULT_INSERT_WEIGHT
    delete: float = DEFAULT_DELETE_WEIGHT
    mutate: float = DEFAULT_MUTATE_WEIGHT

    def validate(self) -> EditWeights:
        """Return self, or raise NoFeasibleAlignmentError for unusable weights."""
        for name in ('insert', 'delete', 'mutate'):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise NoFeasibleAlignmentError(
                    f"Edit weight {name!r} must be finite and non-negative, got {value!r}")
        return self


# External configuration names mapped to field names
_ALIASES = {
    'skipEnds': 'skip_ends',
    'maxMutation': 'max_mutation',
    'minChunk': 'min_chunk',
    'minChunkFraction': 'min_chunk',
    'secondaryMetric': 'secondary_metric',
    'minMatches': 'min_matches',
    'directOnly': 'direct_only',
    'substringMode': 'substring_mode',
    'excludePattern': 'exclude_pattern',
    'cutUnevenEnds': 'cut_uneven_ends',
    'keepProvenance': 'keep_provenance',
    'envelopeMode': 'envelope_mode',
    'combinedWeights': 'combined_weights',
    'smoothSigma': 'smooth_sigma',
    'maxWorkers': 'max_workers',
}

_WEIGHT_KEYS = {
    'insertWeight': 'insert', 'insert_weight': 'insert',
    'deleteWeight': 'delete', 'delete_weight': 'delete',
    'mutateWeight': 'mutate', 'mutate_weight': 'mutate',
}


@dataclass
class ComparisonConfig:
    """Options shared by matching, ranking and condensation.

    Attributes:
        delta: Resampling spacing. 0 picks the average spacing of the inputs.
        skip_ends: Ignore uneven free ends when computing similarity and
            physical distances.
        max_mutation: Length of a mutation run that anchors the end window.
        min_chunk: Minimum fraction of the path the end window must keep
            for skip_ends to apply.
        weights: Edit-distance weights.
        metric: Primary metric used to pick and sort matches.
        secondary_metric: Optional second sort key for the two-stage sort.
        min_matches: Entries always kept by the two-stage sort.
        direct_only: Align as given instead of trying all orientations.
        substring_mode: Slide the shorter path along the longer one.
        exclude_pattern: Regex on node titles; matching subtrees are skipped.
        cut_uneven_ends: Trim uneven ends before merging two paths.
        keep_provenance: Track contributing source points while resampling.
        envelope_mode: Variability radius used by envelope_widths.
        combined_weights: Coefficients of the combined score.
        rank_index_metrics: Metrics summed by the combined rank index.
        smooth_sigma: Optional Gaussian smoothing applied before resampling.
        max_workers: Thread pool size for pairwise scoring.
    """
    delta: float = 0.0
    skip_ends: bool = False
    max_mutation: int = DEFAULT_MAX_MUTATION
    min_chunk: float = DEFAULT_MIN_CHUNK
    weights: EditWeights = field(default_factory=EditWeights)
    metric: Metric = Metric.AVG_PHYS_DIST
    secondary_metric: Optional[Metric] = None
    min_matches: int = DEFAULT_MIN_MATCHES
    direct_only: bool = False
    substring_mode: bool = False
    exclude_pattern: Optional[Union[str, Pattern[str]]] = None
    cut_uneven_ends: bool = True
    keep_provenance: bool = True
    envelope_mode: EnvelopeMode = EnvelopeMode.STD_DEV_3
    combined_weights: Tuple[float, float, float, float] = COMBINED_SCORE_WEIGHTS
    rank_index_metrics: Tuple[Metric, ...] = RANK_INDEX_METRICS
    smooth_sigma: Optional[float] = None
    max_workers: Optional[int] = None

    def __post_init__(self):
        if not math.isfinite(self.delta) or self.delta < 0:
            raise InvalidInputError(f"delta must be >= 0, got {self.delta!r}")

        metric = Metric.parse(self.metric)
        if metric is None:
            raise InvalidInputError("A primary metric is required")
        self.metric = metric
        self.secondary_metric = Metric.parse(self.secondary_metric)
        self.envelope_mode = EnvelopeMode.parse(self.envelope_mode)
        self.rank_index_metrics = tuple(Metric.parse(m) for m in self.rank_index_metrics)

        if self.max_mutation < 0:
            logger.warning("max_mutation %s clamped to 0", self.max_mutation)
            self.max_mutation = 0
        if self.min_matches < 0:
            logger.warning("min_matches %s clamped to 0", self.min_matches)
            self.min_matches = 0
        if self.min_chunk <= 0:
            if self.skip_ends:
                logger.warning("min_chunk %s disables skip_ends", self.min_chunk)
            self.skip_ends = False
            self.min_chunk = 0.0
        elif self.min_chunk > 1:
            logger.warning("min_chunk %s clamped to 1", self.min_chunk)
            self.min_chunk = 1.0

        if isinstance(self.weights, Mapping):
            self.weights = EditWeights(**self.weights)
        if len(self.combined_weights) != 4:
            raise InvalidInputError("combined_weights needs exactly 4 coefficients")
        self.combined_weights = tuple(float(w) for w in self.combined_weights)
        if self.smooth_sigma is not None and self.smooth_sigma <= 0:
            self.smooth_sigma = None
        if self.max_workers is not None and self.max_workers < 1:
            raise InvalidInputError(f"max_workers must be >= 1, got {self.max_workers!r}")

        if isinstance(self.exclude_pattern, str):
            if self.exclude_pattern.strip():
                try:
                    self.exclude_pattern = re.compile(self.exclude_pattern, re.DOTALL)
                except re.error as e:
                    raise InvalidInputError(f"Bad exclude pattern: {e}") from e
            else:
                self.exclude_pattern = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ComparisonConfig:
        """Build a config from snake_case or camelCase keys.

        Raises:
            InvalidInputError: On unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict = {}
        weights: dict = {}
        for key, value in data.items():
            if key in _WEIGHT_KEYS:
                weights[_WEIGHT_KEYS[key]] = float(value)
                continue
            name = _ALIASES.get(key, key)
            if name not in known:
                raise InvalidInputError(f"Unknown configuration key: {key!r}")
            kwargs[name] = value
        if weights:
            base = kwargs.get('weights') or EditWeights()
            if isinstance(base, Mapping):
                base = EditWeights(**base)
            kwargs['weights'] = EditWeights(**{**asdict(base), **weights})
        return cls(**kwargs)

    def to_dict(self) -> dict:
        """Plain-value representation accepted by from_dict."""
        return {
            'delta': self.delta,
            'skip_ends': self.skip_ends,
            'max_mutation': self.max_mutation,
            'min_chunk': self.min_chunk,
            'weights': asdict(self.weights),
            'metric': self.metric.name,
            'secondary_metric': self.secondary_metric.name if self.secondary_metric else None,
            'min_matches': self.min_matches,
            'direct_only': self.direct_only,
            'substring_mode': self.substring_mode,
            'exclude_pattern': self.exclude_pattern.pattern if self.exclude_pattern else None,
            'cut_uneven_ends': self.cut_uneven_ends,
            'keep_provenance': self.keep_provenance,
            'envelope_mode': self.envelope_mode.name,
            'combined_weights': list(self.combined_weights),
            'rank_index_metrics': [m.name for m in self.rank_index_metrics],
            'smooth_sigma': self.smooth_sigma,
            'max_workers': self.max_workers,
        }
