import torch


class ConfigurationError(ValueError):
    """Fatal misconfiguration of a run: aborts immediately."""


class ShapeException(Exception):
    def __init__(self, name, shape, expected_shape):
        self.name = name
        self.shape = shape
        self.expected_shape = expected_shape
        super().__init__(f"{name} has shape {shape} expected {expected_shape}")


class DimensionMismatch(ShapeException):
    """The number of degrees of freedom changed within a run."""


class NumericalNonConvergence(RuntimeWarning):
    """An iterative solve hit its iteration cap before reaching the tolerance."""


def check_coo(val:torch.Tensor,
              row:torch.Tensor,
              col:torch.Tensor,
              shape:tuple
              ):
    """
    Check the COO format

    Parameters
    ----------

    val: torch.Tensor
        [nnz] values of the sparse matrix
    row: torch.Tensor
        [nnz] row indices of the sparse matrix
    col: torch.Tensor
        [nnz] column indices of the sparse matrix
    shape: tuple
        (m,n) shape of the sparse matrix

    """
    if not val.ndim == 1:
        raise ShapeException("val", val.shape, "[nnz]")
    if not row.ndim == 1:
        raise ShapeException("row", row.shape, "[nnz]")
    if not col.ndim == 1:
        raise ShapeException("col", col.shape, "[nnz]")
    if not val.shape[0] == row.shape[0]:
        raise ShapeException("val", val.shape, "[nnz]")
    if not val.shape[0] == col.shape[0]:
        raise ShapeException("val", val.shape, "[nnz]")
    if not (shape[0] > 0 and shape[1] > 0):
        raise ShapeException("shape", shape, "(m,n)")
    if not shape[0] == shape[1]:
        raise ShapeException("shape", shape, "(n,n)")


def check_vector(name:str, x:torch.Tensor, n:int):
    """Check that ``x`` is a dense vector of length ``n``"""
    if not (x.ndim == 1 and x.shape[0] == n):
        raise ShapeException(name, tuple(x.shape), f"[{n}]")


def check_snapshots(snapshots:torch.Tensor):
    """
    Check a snapshot matrix before it is reduced

    Parameters
    ----------
    snapshots: torch.Tensor
        [n, N] columns are converged solutions in collection order
    """
    if snapshots.ndim != 2:
        raise ConfigurationError(
            f"snapshot matrix must be 2D [dofs, samples], got shape {tuple(snapshots.shape)}")
    if snapshots.shape[1] < 1:
        raise ConfigurationError("snapshot matrix has no columns, at least one solution is required")
    if snapshots.shape[0] < 1:
        raise ConfigurationError("snapshot matrix has no rows")


def check_training_pairs(parameters:torch.Tensor,
                         responses:torch.Tensor,
                         expected:int = None):
    """
    Check the parameter and response matrices handed to a surrogate

    Parameters
    ----------
    parameters: torch.Tensor
        [N, p] one parameter vector per row
    responses: torch.Tensor
        [N, q] one response per row
    expected: int, optional
        number of training samples the caller registered
    """
    if parameters.ndim != 2:
        raise ConfigurationError(
            f"parameter matrix must be 2D [samples, parameters], got shape {tuple(parameters.shape)}")
    if responses.ndim != 2:
        raise ConfigurationError(
            f"response matrix must be 2D [samples, responses], got shape {tuple(responses.shape)}")
    if parameters.shape[0] != responses.shape[0]:
        raise ConfigurationError(
            f"parameter matrix has {parameters.shape[0]} rows but response matrix has {responses.shape[0]}")
    if expected is not None and parameters.shape[0] != expected:
        raise ConfigurationError(
            f"expected {expected} training samples, got {parameters.shape[0]}")
