"""
Exception types for the metabolism SEM analysis.

DataValidityError and SpecificationError are raised to the caller and stop the
offending unit of work. NumericalFitError is local to a single candidate model;
the comparison loop records it and moves on to the next candidate.
"""


class SEMAnalysisError(Exception):
    """Base class for all analysis errors."""
    pass


class DataValidityError(SEMAnalysisError):
    """Raw observation records violate a transform precondition."""
    pass


class SpecificationError(SEMAnalysisError):
    """A model specification is malformed, cyclic or references unknown variables."""
    pass


class NumericalFitError(SEMAnalysisError):
    """The estimator could not produce a finite solution for one candidate."""
    pass
