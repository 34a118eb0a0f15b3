"""Exception types raised by the heatmap layer.

Capability and resource-lookup errors abort ``attach``. Degenerate input
and transient frame conditions never raise; they are reported through the
diagnostic sink instead.
"""


class HeatmapError(Exception):
    """Base class for every error raised by idwheat."""


class CapabilityError(HeatmapError):
    """The render context lacks a feature needed for float accumulation."""


class ResourceLookupError(HeatmapError, KeyError):
    """An expected uniform or attribute is missing from a linked program."""

    def __str__(self):
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ''


class InvalidSampleError(HeatmapError, ValueError):
    """A sample row or AOI vertex could not be read."""


class LayerStateError(HeatmapError, RuntimeError):
    """An operation was requested in a lifecycle state that forbids it."""


class ShaderBuildError(ResourceLookupError):
    """A shader failed to compile or link."""
