"""Typed failures raised by the posterior engine.

None of these are retried anywhere in the package; they propagate to the caller.
"""


class PosteriorError(Exception):
    """base class for every error raised by conjugax"""


class InvalidParameter(PosteriorError, ValueError):
    """malformed or out-of-domain input to a distribution or closed-form update"""


class DegeneratePosterior(PosteriorError, ValueError):
    """prior and likelihood leave zero total mass on the grid"""


class InsufficientSupport(PosteriorError, ValueError):
    """
    posterior mass piles up at a grid boundary, so the grid likely clipped real mass
    """
    def __init__(self, msg: str, left_mass: float, right_mass: float):
        super().__init__(msg)
        self.left_mass = left_mass
        self.right_mass = right_mass


class ShapeMismatch(PosteriorError, ValueError):
    """data bound to a model spec does not match its declaration"""


class SamplerFailure(PosteriorError, RuntimeError):
    """
    the external solver failed; `diagnostic` is its message, unmodified
    """
    def __init__(self, diagnostic: str):
        super().__init__(diagnostic)
        self.diagnostic = diagnostic
