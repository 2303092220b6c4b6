"""
MeshData: core data layout for structured tensor-product Lagrange meshes.

Elements are axis-aligned boxes of a Cartesian grid, carrying (p+1)^nsd
nodes each. The layout is shared by 1D, 2D and 3D meshes.

Indexing Conventions:
- Global nodes are numbered on the (nx*p+1) x (ny*p+1) x ... node grid with
  the x index running fastest.
- Elements are numbered the same way on the nx x ny x ... element grid.
- elements[e, :] is the nodal point correspondance (MNPC) of element e,
  local node order matches TensorLagrangeElement (x fastest).

Boundary Tagging:
- Sides are named per direction: ("left", "right"), ("bottom", "top"),
  ("back", "front") for x, y and z.
- boundary_facets[side] lists (element, direction, end) tuples with
  end = 0 at the lower and end = 1 at the upper coordinate.
"""

import itertools

import numpy as np

SIDE_NAMES = (("left", "right"), ("bottom", "top"), ("back", "front"))


class MeshData:
    def __init__(
        self,
        nodes,
        elements,
        element_lo,
        element_hi,
        boundary_facets,
        boundary_nodes,
        order,
        divisions,
        lengths,
        origin,
    ):
        # --- Geometry ---
        self.nodes = nodes
        self.element_lo = element_lo
        self.element_hi = element_hi

        # --- Connectivity ---
        self.elements = elements

        # --- Boundary tagging ---
        self.boundary_facets = boundary_facets
        self.boundary_nodes = boundary_nodes

        # --- Structured grid info ---
        self.order = order
        self.divisions = divisions
        self.lengths = lengths
        self.origin = origin

    @property
    def nsd(self) -> int:
        return self.nodes.shape[1]

    @property
    def n_nodes(self) -> int:
        return self.nodes.shape[0]

    @property
    def n_elements(self) -> int:
        return self.elements.shape[0]

    @property
    def nen(self) -> int:
        return self.elements.shape[1]

    @property
    def sides(self) -> list:
        return list(self.boundary_facets)

    def element_sizes(self) -> np.ndarray:
        """Characteristic element sizes h = |e|^(1/nsd)."""
        return np.prod(self.element_hi - self.element_lo, axis=1) ** (1.0 / self.nsd)

    def outward_normal(self, direction: int, end: int) -> np.ndarray:
        n = np.zeros(self.nsd)
        n[direction] = 1.0 if end else -1.0
        return n

    def locate(self, X) -> int:
        """Return the index of the element containing point X."""
        X = np.asarray(X, dtype=float)[: self.nsd]
        h = np.asarray(self.lengths) / np.asarray(self.divisions)
        tol = 1e-10 * np.max(self.lengths)
        if np.any(X < self.origin - tol) or np.any(X > self.origin + self.lengths + tol):
            raise ValueError(f"Point {X} lies outside the mesh")
        idx = np.floor((X - self.origin) / h).astype(int)
        idx = np.clip(idx, 0, np.asarray(self.divisions) - 1)
        strides = np.cumprod([1, *self.divisions[:-1]])
        return int(idx @ strides)


def structured_mesh(divisions, p: int = 1, lengths=None, origin=None) -> MeshData:
    """
    Build a structured mesh of tensor-product Lagrange elements.

    Parameters
    ----------
    divisions : sequence of int
        Number of elements per direction (its length sets nsd)
    p : int
        Polynomial order
    lengths : sequence of float, optional
        Domain extent per direction (default 1.0)
    origin : sequence of float, optional
        Lower domain corner (default 0.0)

    Returns
    -------
    MeshData
    """
    divisions = tuple(int(n) for n in divisions)
    nsd = len(divisions)
    if not 1 <= nsd <= 3:
        raise ValueError(f"Only 1D, 2D and 3D meshes are supported, got nsd={nsd}")
    if min(divisions) < 1:
        raise ValueError(f"Number of elements must be positive, got {divisions}")
    if p < 1:
        raise ValueError(f"Polynomial order must be at least 1, got {p}")

    lengths = np.ones(nsd) if lengths is None else np.asarray(lengths, dtype=float)
    origin = np.zeros(nsd) if origin is None else np.asarray(origin, dtype=float)

    n_grid = [n * p + 1 for n in divisions]
    axes = [origin[d] + np.linspace(0.0, lengths[d], n_grid[d]) for d in range(nsd)]
    grid_index = np.array(list(itertools.product(*[range(n) for n in reversed(n_grid)])))[:, ::-1]
    nodes = np.stack([axes[d][grid_index[:, d]] for d in range(nsd)], axis=1)
    node_strides = np.cumprod([1, *n_grid[:-1]])

    local = np.array(list(itertools.product(range(p + 1), repeat=nsd)))[:, ::-1]
    elem_index = np.array(list(itertools.product(*[range(n) for n in reversed(divisions)])))[:, ::-1]
    elements = ((elem_index[:, None, :] * p + local[None, :, :]) @ node_strides).astype(int)

    h = lengths / np.asarray(divisions)
    element_lo = origin + elem_index * h
    element_hi = element_lo + h

    boundary_facets = {}
    boundary_nodes = {}
    for d in range(nsd):
        for end, name in enumerate(SIDE_NAMES[d]):
            target = 0 if end == 0 else divisions[d] - 1
            on_side = np.flatnonzero(elem_index[:, d] == target)
            boundary_facets[name] = [(int(e), d, end) for e in on_side]
            node_target = 0 if end == 0 else n_grid[d] - 1
            boundary_nodes[name] = np.flatnonzero(grid_index[:, d] == node_target)

    return MeshData(
        nodes=nodes,
        elements=elements,
        element_lo=element_lo,
        element_hi=element_hi,
        boundary_facets=boundary_facets,
        boundary_nodes=boundary_nodes,
        order=p,
        divisions=divisions,
        lengths=lengths,
        origin=origin,
    )


def interval_mesh(nx: int, p: int = 1, L: float = 1.0, x0: float = 0.0) -> MeshData:
    """Uniform mesh of [x0, x0 + L] with nx elements of order p."""
    return structured_mesh((nx,), p, lengths=(L,), origin=(x0,))


def rectangle_mesh(nx: int, ny: int, p: int = 1, Lx: float = 1.0, Ly: float = 1.0) -> MeshData:
    """Uniform mesh of [0, Lx] x [0, Ly] with nx x ny elements of order p."""
    return structured_mesh((nx, ny), p, lengths=(Lx, Ly))


def boundary_field(mesh: MeshData, values: dict):
    """
    Build a scalar field returning a per-side constant on the boundary.

    Parameters
    ----------
    mesh : MeshData
        Mesh providing the side geometry
    values : dict
        Side name -> value (float or callable of X)

    Returns
    -------
    callable
        Field of X, zero away from the listed sides
    """

    def field(X):
        X = np.asarray(X, dtype=float)
        for d in range(mesh.nsd):
            for end, name in enumerate(SIDE_NAMES[d]):
                if name not in values:
                    continue
                bound = mesh.origin[d] + end * mesh.lengths[d]
                if np.isclose(X[d], bound):
                    value = values[name]
                    return float(value(X)) if callable(value) else float(value)
        return 0.0

    return field
