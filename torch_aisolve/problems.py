"""
Reference problem: linear elasticity of a clamped cube.

The cube ``[0, side]^3`` is meshed with ``n^3`` trilinear hexahedra. The
bottom face ``z = 0`` is clamped and a vertical load acts on the nodes of the
central square ``[side/4, 3 side/4]^2`` of the top face. The two parameters
are the Young's modulus ``E`` and the load ``P``; the total load is
``P / (side^2 / 4)``, split equally among the loaded nodes.

Only the free dofs are kept, so every system of the family has the same size
and sparsity pattern; ``K(E) = E K_1`` and ``b(P) = P b_1``.
"""

import itertools
import logging

import torch

from .check import ConfigurationError
from .provider import LinearSystem

logger = logging.getLogger(__name__)

# local node order of the hexahedron in reference coordinates
HEXA8_NODES = torch.tensor([
    [-1, -1, -1], [1, -1, -1], [1, 1, -1], [-1, 1, -1],
    [-1, -1, 1], [1, -1, 1], [1, 1, 1], [-1, 1, 1],
], dtype=torch.float64)


def elasticity_matrix(E: float, poisson: float, dtype=torch.float64) -> torch.Tensor:
    """6x6 isotropic constitutive matrix, engineering shear strains"""
    v = poisson
    c = E / ((1 + v) * (1 - 2 * v))
    C = torch.zeros(6, 6, dtype=dtype)
    C[:3, :3] = v
    C[range(3), range(3)] = 1 - v
    C[range(3, 6), range(3, 6)] = (1 - 2 * v) / 2
    return c * C


def hexa8_stiffness(h: float, E: float = 1.0, poisson: float = 0.3, dtype=torch.float64) -> torch.Tensor:
    """
    24x24 stiffness of a cubic trilinear element of side ``h``

    Integrated with 2x2x2 Gauss points; dofs are ordered node by node as
    (ux, uy, uz).
    """
    C = elasticity_matrix(E, poisson, dtype)
    gp = 1.0 / 3 ** 0.5
    jac = h / 2
    Ke = torch.zeros(24, 24, dtype=dtype)
    nodes = HEXA8_NODES.to(dtype)
    for xi, eta, zeta in itertools.product((-gp, gp), repeat=3):
        a, b, c = nodes[:, 0], nodes[:, 1], nodes[:, 2]
        dN_dxi = a * (1 + b * eta) * (1 + c * zeta) / 8
        dN_deta = b * (1 + a * xi) * (1 + c * zeta) / 8
        dN_dzeta = c * (1 + a * xi) * (1 + b * eta) / 8
        dNx, dNy, dNz = dN_dxi / jac, dN_deta / jac, dN_dzeta / jac

        B = torch.zeros(6, 24, dtype=dtype)
        B[0, 0::3] = dNx
        B[1, 1::3] = dNy
        B[2, 2::3] = dNz
        B[3, 0::3] = dNy
        B[3, 1::3] = dNx
        B[4, 1::3] = dNz
        B[4, 2::3] = dNy
        B[5, 0::3] = dNz
        B[5, 2::3] = dNx
        Ke += B.T @ C @ B * jac ** 3
    return Ke


class Elasticity3DProvider:
    """
    Parameter vector ``(E, P)`` to the stiffness system of the clamped cube.

    Parameters
    ----------
    num_elements_per_side : int
        elements along each edge, must be even to define a monitor node
    side : float
        edge length of the cube
    poisson : float
        Poisson's ratio, fixed for the family
    """
    num_parameters = 2

    def __init__(self, num_elements_per_side: int = 16, side: float = 1.0, poisson: float = 0.3,
                 dtype=torch.float64):
        if num_elements_per_side < 1:
            raise ConfigurationError(f"num_elements_per_side must be positive, got {num_elements_per_side}")
        self.n = num_elements_per_side
        self.side = side
        self.poisson = poisson
        self.dtype = dtype

        n = self.n
        h = side / n
        tol = h / 4
        num_nodes_side = n + 1
        ids = torch.arange(num_nodes_side ** 3).reshape(num_nodes_side, num_nodes_side, num_nodes_side)  # [k, j, i]
        coords = torch.stack(torch.meshgrid(
            torch.arange(num_nodes_side, dtype=dtype) * h,
            torch.arange(num_nodes_side, dtype=dtype) * h,
            torch.arange(num_nodes_side, dtype=dtype) * h,
            indexing="ij"), dim=-1)  # [k, j, i, (z, y, x)]
        self.coordinates = coords.reshape(-1, 3).flip(-1)  # node id -> (x, y, z)

        # connectivity in HEXA8_NODES order
        corners = [ids[k:k + n, j:j + n, i:i + n]
                   for i, j, k in ((0, 0, 0), (1, 0, 0), (1, 1, 0), (0, 1, 0),
                                   (0, 0, 1), (1, 0, 1), (1, 1, 1), (0, 1, 1))]
        self.connectivity = torch.stack(corners, dim=-1).reshape(-1, 8)

        x, y, z = self.coordinates.unbind(-1)
        constrained = z.abs() < tol
        self.loaded_nodes = torch.nonzero(
            ((z - side).abs() < tol)
            & (x > side / 4 - tol) & (x < 3 * side / 4 + tol)
            & (y > side / 4 - tol) & (y < 3 * side / 4 + tol)
        ).flatten()

        # global dof -> free dof (-1 when clamped)
        num_dofs_total = 3 * num_nodes_side ** 3
        free = ~constrained.repeat_interleave(3)
        self.free_index = torch.full((num_dofs_total,), -1, dtype=torch.long)
        self.free_index[free] = torch.arange(int(free.sum()))
        self.num_dofs = int(free.sum())

        self._assemble_pattern(hexa8_stiffness(h, 1.0, poisson, dtype))
        logger.info("Elasticity3D mesh: %d elements, %d free dofs", self.connectivity.shape[0], self.num_dofs)

    def _assemble_pattern(self, Ke: torch.Tensor):
        edofs = (3 * self.connectivity.unsqueeze(-1) + torch.arange(3)).reshape(-1, 24)
        edofs = self.free_index[edofs]
        rows = edofs.unsqueeze(2).expand(-1, 24, 24).reshape(-1)
        cols = edofs.unsqueeze(1).expand(-1, 24, 24).reshape(-1)
        vals = Ke.unsqueeze(0).expand(edofs.shape[0], 24, 24).reshape(-1)
        keep = (rows >= 0) & (cols >= 0)
        K = torch.sparse_coo_tensor(torch.stack([rows[keep], cols[keep]]), vals[keep],
                                    (self.num_dofs, self.num_dofs)).coalesce()
        self._row, self._col = K.indices()
        self._unit_val = K.values()

        self._unit_load = torch.zeros(self.num_dofs, dtype=self.dtype)
        load_dofs = self.free_index[3 * self.loaded_nodes + 2]
        self._unit_load[load_dofs] = 1.0 / (self.side * self.side / 4) / self.loaded_nodes.shape[0]

    @property
    def monitored_node(self) -> int:
        """Node at the center of the top face"""
        if self.n % 2 == 1:
            raise ConfigurationError(
                f"The number of elements along each side of the domain is {self.n}, "
                f"but it must be even, in order to define a central 'monitor' node")
        x, y, z = self.coordinates.unbind(-1)
        tol = self.side / self.n / 4
        found = torch.nonzero(((z - self.side).abs() < tol)
                              & ((x - self.side / 2).abs() < tol)
                              & ((y - self.side / 2).abs() < tol)).flatten()
        if found.numel() != 1:
            raise ConfigurationError(f"Found {found.numel()} monitor nodes, but only 1 was expected")
        return int(found[0])

    @property
    def monitored_dof(self) -> int:
        """Free dof of the vertical displacement of the monitor node"""
        return int(self.free_index[3 * self.monitored_node + 2])

    def monitored_value(self, solution: torch.Tensor) -> float:
        return solution[self.monitored_dof].item()

    def __call__(self, parameters: torch.Tensor) -> LinearSystem:
        E, P = (float(p) for p in parameters)
        if not E > 0:
            raise ConfigurationError(f"Young's modulus must be positive, got {E}")
        return LinearSystem(
            val=E * self._unit_val,
            row=self._row,
            col=self._col,
            shape=(self.num_dofs, self.num_dofs),
            b=P * self._unit_load,
            metadata={"young_modulus": E, "load": P},
        )


def mean_monitored_response(provider: Elasticity3DProvider, solutions) -> float:
    """Mean vertical displacement of the monitor node over a set of solutions"""
    values = [provider.monitored_value(x) for x in solutions]
    return sum(values) / len(values)
