"""Exception types raised by bundlebench."""


class BundleBenchError(Exception):
    """Base class for all bundlebench errors."""


class ConfigurationError(BundleBenchError):
    """Missing input file or invalid option combination."""


class ControlNetworkError(BundleBenchError):
    """A control network could not be read or written."""


class CameraFileError(BundleBenchError):
    """A camera model file could not be read or written."""


class ModelIntegrityError(BundleBenchError):
    """Input data violates a structural invariant of the parameter model."""


class OutlierDetectionError(BundleBenchError):
    """The external outlier-detection step failed."""
