import torch
import torch_aisolve as ais


if __name__ == '__main__':
    n = 200
    val, row, col, shape = ais.spd_coo(n, density=0.05, seed=0)
    b = torch.randn(n, dtype=torch.float64)

    result = ais.spsolve(val, row, col, shape, b, preconditioner='jacobi', rtol=1e-10, max_iter_fraction=1.0)
    print(f"converged={result.converged} iterations={result.num_iters} residual={result.residual:.2e}")
