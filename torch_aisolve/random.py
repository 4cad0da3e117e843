import torch
from typing import Optional, Sequence, Tuple


def _generator(seed: Optional[int], device=torch.device('cpu')) -> torch.Generator:
    g = torch.Generator(device=device)
    if seed is None:
        g.seed()
    else:
        g.manual_seed(seed)
    return g


def spd_coo(n: int,
            density: float = 0.1,
            seed: Optional[int] = None,
            device=torch.device('cpu'),
            dtype=torch.float64
            ) -> Tuple[torch.Tensor,
                       torch.Tensor,
                       torch.Tensor,
                       Tuple[int, int]]:
    """
    random symmetric positive definite COO matrix generator

    A random sparse pattern is symmetrized and made strictly diagonally
    dominant with a positive diagonal.

    Parameters
    ----------
    n : int
        order of the matrix
    density : float, optional
        Density of the off-diagonal part, by default 0.1
    seed : int, optional
        seed of the generator, by default None
    device : torch.device, optional
        Device of the matrix, by default torch.device('cpu')
    dtype : torch.dtype, optional
        Data type of the matrix, by default torch.float64

    Returns
    -------
    Tuple[torch.Tensor, torch.Tensor, torch.Tensor, Tuple[int, int]]
        val: torch.Tensor
            [nnz] values of the sparse matrix
        row: torch.Tensor
            [nnz] row indices of the sparse matrix
        col: torch.Tensor
            [nnz] column indices of the sparse matrix
        shape: tuple
            (n,n) shape of the sparse matrix
    """
    g = _generator(seed)
    nnz = max(int(n * n * density / 2), 1)
    row = torch.randint(0, n, (nnz,), generator=g)
    col = torch.randint(0, n, (nnz,), generator=g)
    val = -torch.rand(nnz, generator=g, dtype=dtype)
    offdiag = row != col
    row, col, val = row[offdiag], col[offdiag], val[offdiag]

    row, col = torch.cat([row, col]), torch.cat([col, row])
    val = torch.cat([val, val])

    dominance = torch.zeros(n, dtype=dtype)
    dominance.scatter_add_(0, row, val.abs())
    diag = torch.arange(n)
    row = torch.cat([row, diag])
    col = torch.cat([col, diag])
    val = torch.cat([val, dominance + 1.0])
    return val.to(device), row.to(device), col.to(device), (n, n)


def normal_parameters(count: int,
                      means: Sequence[float],
                      stdevs: Sequence[float],
                      seed: Optional[int] = None,
                      dtype=torch.float64) -> torch.Tensor:
    """
    Normally distributed parameter vectors, one per row

    Every parameter is sampled as a whole column before the next one, so a
    fixed seed always yields the same family.

    Returns
    -------
    torch.Tensor
        [count, len(means)]
    """
    assert len(means) == len(stdevs), "means and stdevs must have the same length"
    g = _generator(seed)
    columns = [
        torch.randn(count, generator=g, dtype=dtype) * float(s) + float(m)
        for m, s in zip(means, stdevs)
    ]
    return torch.stack(columns, dim=1)
