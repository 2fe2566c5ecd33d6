"""Declarative model specification handed to an external solver.

A `ModelSpec` declares data shapes and parameters; `program` (model text, a compiled
object, a log-density callable, ...) is carried through untouched. Only the solver
interprets it.

.. code-block:: yaml

    data:
      - {name: N, dtype: int}
      - {name: y, shape: [N], dtype: real}
    parameters:
      - {name: mu}
      - {name: sigma, lower: 0}
    program: |
      mu ~ normal(10, 2);
      y ~ normal(mu, sigma);
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml
from jax import Array
from jax import numpy as jnp

import conjugax.config  # noqa: F401 (enables float64)
from conjugax.errors import InvalidParameter, ShapeMismatch

logger = logging.getLogger(__name__)

Dim = Union[int, str]
_DTYPES = ("real", "int")


@dataclass(frozen=True)
class DataDecl:
    """
    Attributes:
        name: binding name
        shape: fixed sizes (int) or symbolic sizes (str), () for scalars
        dtype: "real" or "int"
    """
    name: str
    shape: tuple[Dim, ...] = ()
    dtype: str = "real"

    def __post_init__(self):
        object.__setattr__(self, "shape", tuple(self.shape))
        if self.dtype not in _DTYPES:
            msg = f"data {self.name!r}: dtype must be one of {_DTYPES}, got {self.dtype!r}"
            raise InvalidParameter(msg)
        for dim in self.shape:
            if isinstance(dim, int) and dim < 0:
                msg = f"data {self.name!r}: negative dimension {dim}"
                raise InvalidParameter(msg)


@dataclass(frozen=True)
class ParameterDecl:
    name: str
    shape: tuple[int, ...] = ()
    lower: Optional[float] = None
    upper: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "shape", tuple(int(d) for d in self.shape))
        if self.lower is not None and self.upper is not None and not self.lower < self.upper:
            msg = f"parameter {self.name!r}: lower bound {self.lower} must be below upper bound {self.upper}"
            raise InvalidParameter(msg)

    @property
    def size(self) -> int:
        size = 1
        for dim in self.shape:
            size *= dim
        return size


@dataclass(frozen=True)
class ModelSpec:
    data: tuple[DataDecl, ...]
    parameters: tuple[ParameterDecl, ...]
    program: Any = None

    def __post_init__(self):
        object.__setattr__(self, "data", tuple(self.data))
        object.__setattr__(self, "parameters", tuple(self.parameters))
        names = [d.name for d in self.data] + [p.name for p in self.parameters]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            msg = f"duplicate names in model spec: {duplicates}"
            raise InvalidParameter(msg)
        if not self.parameters:
            msg = "model spec declares no parameters"
            raise InvalidParameter(msg)

    @classmethod
    def from_dict(cls, document: Mapping[str, Any]) -> ModelSpec:
        try:
            data = tuple(DataDecl(**entry) for entry in document.get("data", []))
            parameters = tuple(ParameterDecl(**entry) for entry in document.get("parameters", []))
        except TypeError as err:
            msg = f"malformed model spec document: {err}"
            raise InvalidParameter(msg) from err
        return cls(data=data, parameters=parameters, program=document.get("program"))

    @classmethod
    def from_yaml(cls, source: Union[str, Path]) -> ModelSpec:
        """Build a spec from a YAML file (Path) or YAML text (str)."""
        if isinstance(source, Path):
            with source.open() as stream:
                document = yaml.safe_load(stream)
        else:
            document = yaml.safe_load(source)
        if not isinstance(document, Mapping):
            msg = "model spec document must be a mapping"
            raise InvalidParameter(msg)
        return cls.from_dict(document)


def _resolve_dim(dim: Dim, decls: Mapping[str, DataDecl], arrays: Mapping[str, Array]) -> Optional[int]:
    if isinstance(dim, int):
        return dim
    # symbolic size fixed by a scalar int binding of the same name
    decl = decls.get(dim)
    if decl is not None and decl.shape == () and decl.dtype == "int":
        return int(arrays[dim])
    return None


def validate_bindings(spec: ModelSpec, bindings: Mapping[str, Any]) -> dict[str, Array]:
    """
    Check data bindings against the model's declarations before any solver runs.

    Args:
        spec: model specification
        bindings: name -> value for every declared data entry

    Returns:
        name -> array, converted with the declared dtype

    Raises:
        ShapeMismatch: missing or undeclared names, non-numeric values, non-integral
            values declared int, wrong rank or size, or inconsistent symbolic sizes
    """
    decls = {d.name: d for d in spec.data}
    missing = sorted(set(decls) - set(bindings))
    if missing:
        msg = f"no binding for declared data: {missing}"
        raise ShapeMismatch(msg)
    extra = sorted(set(bindings) - set(decls))
    if extra:
        msg = f"bindings not declared in the model spec: {extra}"
        raise ShapeMismatch(msg)

    arrays: dict[str, Array] = {}
    for name, decl in decls.items():
        try:
            value = jnp.asarray(bindings[name])
        except (TypeError, ValueError, OverflowError) as err:
            msg = f"data {name!r} is not numeric: {err}"
            raise ShapeMismatch(msg) from err
        if not (jnp.issubdtype(value.dtype, jnp.number) or jnp.issubdtype(value.dtype, jnp.bool_)):
            msg = f"data {name!r} is not numeric (dtype {value.dtype})"
            raise ShapeMismatch(msg)
        if decl.dtype == "int":
            if not bool(jnp.all(jnp.isfinite(value))) or not bool(jnp.all(value == jnp.round(value))):
                msg = f"data {name!r} is declared int but holds non-integral values"
                raise ShapeMismatch(msg)
            value = value.astype(int)
        else:
            value = value.astype(float)
        if value.ndim != len(decl.shape):
            msg = f"data {name!r} declared with {len(decl.shape)} dimension(s), got shape {value.shape}"
            raise ShapeMismatch(msg)
        arrays[name] = value

    symbolic: dict[str, int] = {}
    for name, decl in decls.items():
        actual = arrays[name].shape
        for axis, dim in enumerate(decl.shape):
            expected = _resolve_dim(dim, decls, arrays)
            if expected is None:
                expected = symbolic.setdefault(dim, actual[axis])
            if actual[axis] != expected:
                msg = f"data {name!r} axis {axis}: expected size {expected} ({dim!r}), got {actual[axis]}"
                raise ShapeMismatch(msg)

    logger.debug(f"Validated {len(arrays)} data binding(s)")
    return arrays
