"""
Read-only indexed views over scalar values.

Distributions never read scalar values from a particular storage type.
They consume a :class:`ScalarSource`, i.e. anything exposing

- ``size()``: number of values
- ``value_at(index)``: the value at ``0 <= index < size()``

:class:`ScalarView` is the concrete view shipped with the package. It is
built by one of two adapters:

- :func:`from_array` over a flat in-memory array
- :func:`from_scalar_field` over a named :class:`ScalarField`

Both adapters keep a reference to the caller's data (a read-only numpy view),
they never copy it. The view lives as long as the referenced buffer does.
"""

from typing import Optional, Protocol, runtime_checkable

import numpy as np
from numpy.typing import ArrayLike, NDArray


@runtime_checkable
class ScalarSource(Protocol):
    """Structural interface of a read-only scalar container."""

    def size(self) -> int:
        ...

    def value_at(self, index: int) -> float:
        ...


class ScalarField:
    """
    A named column of scalar values (one value per point).

    NaN marks an invalid value, as for any scalar field of a point cloud.

    Parameters
    ----------
    name : str
        Field name (e.g. ``"Roughness"``).
    values : array_like
        1-D values. An ndarray of the requested dtype is stored as is.
    dtype : numpy dtype, optional
        Storage type, ``float64`` by default.
    """

    def __init__(self, name: str, values: ArrayLike, dtype=np.float64):
        values = np.asarray(values, dtype=dtype)
        if values.ndim != 1:
            raise ValueError(f"Scalar field values must be 1-D, got shape {values.shape}")
        self.name = name
        self.values = values

    def __len__(self) -> int:
        return self.values.shape[0]

    def __repr__(self) -> str:
        return f"ScalarField(name={self.name!r}, size={len(self)})"


class ScalarView:
    """
    Read-only, zero-copy view satisfying :class:`ScalarSource`.

    Parameters
    ----------
    values : ndarray
        1-D array to view. Only a view is kept; writing through it is disabled.
    name : str, optional
        Name of the underlying field, if any.
    """

    __slots__ = ("_values", "name")

    def __init__(self, values: NDArray, name: Optional[str] = None):
        if values.ndim != 1:
            raise ValueError(f"Expected a 1-D array, got shape {values.shape}")
        view = values.view()
        view.flags.writeable = False
        self._values = view
        self.name = name

    def size(self) -> int:
        return self._values.shape[0]

    def value_at(self, index: int) -> float:
        if not 0 <= index < self._values.shape[0]:
            raise IndexError(
                f"Index {index} out of range for a source of size {self._values.shape[0]}"
            )
        return float(self._values[index])

    def as_array(self) -> NDArray:
        """Read-only view of the underlying values (no copy)."""
        return self._values

    def __len__(self) -> int:
        return self._values.shape[0]

    def __repr__(self) -> str:
        label = f"{self.name!r}, " if self.name is not None else ""
        return f"ScalarView({label}size={self.size()})"


def from_array(values: ArrayLike) -> ScalarView:
    """
    Wrap a flat array of scalars.

    An ndarray is referenced without copy; other sequences are converted once.
    """
    return ScalarView(np.asarray(values))


def from_scalar_field(field: ScalarField) -> ScalarView:
    """Wrap a named scalar field (no copy)."""
    return ScalarView(field.values, name=field.name)


def as_values(source) -> NDArray:
    """
    Materialize any accepted scalar input as a 1-D float array.

    Parameters
    ----------
    source : ScalarView, ScalarSource, ScalarField or array_like
        Scalar values. Views and fields are returned without copy when their
        dtype is already ``float64``; generic sources are read through
        ``value_at``.

    Returns
    -------
    values : ndarray, shape (n,)
    """
    if isinstance(source, ScalarView):
        return np.asarray(source.as_array(), dtype=float)
    if isinstance(source, ScalarField):
        return np.asarray(source.values, dtype=float)
    if isinstance(source, ScalarSource):
        n = source.size()
        return np.fromiter((source.value_at(i) for i in range(n)), dtype=float, count=n)

    values = np.asarray(source, dtype=float)
    if values.ndim == 0:
        return values.reshape(1)
    if values.ndim != 1:
        raise ValueError(f"Expected 1-D scalar values, got shape {values.shape}")
    return values
