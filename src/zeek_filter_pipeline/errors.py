"""Error taxonomy for the filter pipeline.

Configuration-class errors are fatal and raised before any work is
dispatched. Discovery, task and aggregation errors are raised inside a single
unit of work, caught at that unit's boundary and logged; they never stop the
rest of the run.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(PipelineError):
    """Invalid parameters or an unusable output location."""


class ConflictError(ConfigurationError):
    """Output path exists but is not a directory."""


class NonEmptyError(ConfigurationError):
    """Output directory exists and already has entries."""


class DiscoveryError(PipelineError):
    """Globbing for one hour's input files failed."""


class TaskError(PipelineError):
    """Opening, decompressing or filtering one input file failed."""


class AggregationError(PipelineError):
    """Concatenating artifacts into an aggregate failed."""
