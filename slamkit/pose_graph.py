"""Pose graph optimization with poses on SE(3) updated in the Lie algebra."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import spsolve

from slamkit.lie import SE3

logger = logging.getLogger(__name__)

VERTEX_TAG = "VERTEX_SE3:QUAT"
EDGE_TAG = "EDGE_SE3:QUAT"

_DIM = 6
_UPPER = np.triu_indices(_DIM)
_TAU = 1e-5
_MAX_TRIALS = 10


def jr_inv(error: SE3) -> np.ndarray:
    """Approximation of the inverse right Jacobian for an error transform.

    The identity is used, which holds for small errors.
    """
    if not isinstance(error, SE3):
        raise TypeError("error must be an SE3")
    return np.eye(_DIM)


def _pose_from(values) -> SE3:
    tx, ty, tz, qx, qy, qz, qw = values
    return SE3.from_quaternion(qw, qx, qy, qz, translation=(tx, ty, tz))


def _pose_fields(pose: SE3) -> list[float]:
    w, x, y, z = pose.unit_quaternion()
    return [*pose.translation.tolist(), float(x), float(y), float(z), float(w)]


def _fmt(values) -> list[str]:
    return [repr(float(v)) for v in values]


@dataclass
class PoseVertex:
    """A pose node; fixed vertices are not changed by optimization."""

    id: int
    pose: SE3
    fixed: bool = False


@dataclass
class PoseEdge:
    """A relative pose measurement between two vertices."""

    id: int
    vertex_i: int
    vertex_j: int
    measurement: SE3
    information: np.ndarray = field(default_factory=lambda: np.eye(_DIM))

    def error(self, pose_i: SE3, pose_j: SE3) -> np.ndarray:
        """``log(Z^-1 * Ti^-1 * Tj)`` as a twist (translation, rotation)."""
        return (self.measurement.inverse() * pose_i.inverse() * pose_j).log()

    def jacobians(self, pose_i: SE3, pose_j: SE3) -> tuple[np.ndarray, np.ndarray]:
        """Jacobians of the error with respect to left updates of both poses."""
        j = jr_inv(SE3.exp(self.error(pose_i, pose_j)))
        adj = pose_j.inverse().adjoint()
        return -j @ adj, j @ adj

    def chi2(self, pose_i: SE3, pose_j: SE3) -> float:
        e = self.error(pose_i, pose_j)
        return float(e @ self.information @ e)


def _take(tokens, count, convert, tag):
    values = []
    for _ in range(count):
        try:
            token = next(tokens)
        except StopIteration:
            raise ValueError(f"unexpected end of input in {tag} record") from None
        try:
            values.append(convert(token))
        except ValueError:
            raise ValueError(f"bad value {token!r} in {tag} record") from None
    return values


@dataclass
class PoseGraph:
    """Vertices keyed by id, and edges in insertion order."""

    vertices: dict[int, PoseVertex] = field(default_factory=dict)
    edges: list[PoseEdge] = field(default_factory=list)

    def _add_vertex(self, vertex: PoseVertex) -> None:
        if vertex.id in self.vertices:
            raise ValueError(f"duplicate vertex id {vertex.id}")
        self.vertices[vertex.id] = vertex

    def _add_edge(self, i: int, j: int, measurement: SE3, information) -> None:
        for vid in (i, j):
            if vid not in self.vertices:
                raise ValueError(f"edge refers to unknown vertex {vid}")
        self.edges.append(PoseEdge(len(self.edges), i, j, measurement, information))

    @classmethod
    def parse(cls, lines) -> "PoseGraph":
        """Read vertices and edges from g2o text; other records are skipped.

        Vertex 0 is held fixed.
        """
        graph = cls()
        tokens = iter([tok for line in lines for tok in line.split()])
        for name in tokens:
            if name == VERTEX_TAG:
                (index,) = _take(tokens, 1, int, name)
                pose = _pose_from(_take(tokens, 7, float, name))
                graph._add_vertex(PoseVertex(index, pose, fixed=index == 0))
            elif name == EDGE_TAG:
                i, j = _take(tokens, 2, int, name)
                measurement = _pose_from(_take(tokens, 7, float, name))
                upper = _take(tokens, len(_UPPER[0]), float, name)
                info = np.zeros((_DIM, _DIM))
                info[_UPPER] = upper
                info = info + np.triu(info, 1).T
                graph._add_edge(i, j, measurement, info)
        return graph

    @classmethod
    def load(cls, path) -> "PoseGraph":
        with open(path, encoding="utf-8") as fh:
            return cls.parse(fh)

    def total_error(self) -> float:
        """Sum over edges of ``e^T * information * e``."""
        return sum(
            edge.chi2(self.vertices[edge.vertex_i].pose, self.vertices[edge.vertex_j].pose)
            for edge in self.edges
        )

    def _linearize(self, index: dict[int, int]):
        size = _DIM * len(index)
        rows, cols, vals = [], [], []
        b = np.zeros(size)
        local = np.arange(_DIM)
        for edge in self.edges:
            pose_i = self.vertices[edge.vertex_i].pose
            pose_j = self.vertices[edge.vertex_j].pose
            e = edge.error(pose_i, pose_j)
            ji, jj = edge.jacobians(pose_i, pose_j)
            omega = edge.information
            blocks = [
                (index.get(edge.vertex_i), ji),
                (index.get(edge.vertex_j), jj),
            ]
            for a, ja in blocks:
                if a is None:
                    continue
                b[_DIM * a:_DIM * a + _DIM] += ja.T @ omega @ e
                for c, jc in blocks:
                    if c is None:
                        continue
                    rows.append(np.repeat(local + _DIM * a, _DIM))
                    cols.append(np.tile(local + _DIM * c, _DIM))
                    vals.append((ja.T @ omega @ jc).ravel())
        if rows:
            h = sparse.coo_matrix(
                (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
                shape=(size, size),
            ).tocsc()
        else:
            h = sparse.csc_matrix((size, size))
        return h, b

    def _apply(self, index: dict[int, int], dx: np.ndarray) -> None:
        for vid, k in index.items():
            vertex = self.vertices[vid]
            vertex.pose = SE3.exp(dx[_DIM * k:_DIM * k + _DIM]) * vertex.pose

    def optimize(self, iterations=30) -> list[float]:
        """Levenberg-Marquardt on the free vertices.

        Returns the total error before the first and after each iteration.
        """
        index = {vid: k for k, vid in enumerate(v.id for v in self.vertices.values() if not v.fixed)}
        chi2 = self.total_error()
        history = [chi2]
        if not index or not self.edges:
            return history

        size = _DIM * len(index)
        identity = sparse.identity(size, format="csc")
        lam = None
        nu = 2.0
        for iteration in range(iterations):
            h, b = self._linearize(index)
            if lam is None:
                lam = _TAU * max(float(h.diagonal().max()), 1e-12)
            improved = False
            for _ in range(_MAX_TRIALS):
                dx = np.asarray(spsolve((h + lam * identity).tocsc(), -b)).reshape(-1)
                if np.all(np.isfinite(dx)):
                    backup = {vid: self.vertices[vid].pose for vid in index}
                    self._apply(index, dx)
                    new_chi2 = self.total_error()
                    predicted = float(dx @ (lam * dx - b))
                    rho = (chi2 - new_chi2) / predicted if predicted > 0 else -1.0
                    if rho > 0 and np.isfinite(new_chi2):
                        lam *= max(1.0 / 3.0, 1.0 - (2.0 * rho - 1.0) ** 3)
                        nu = 2.0
                        chi2 = new_chi2
                        improved = True
                        break
                    for vid, pose in backup.items():
                        self.vertices[vid].pose = pose
                lam *= nu
                nu *= 2.0
            history.append(chi2)
            logger.debug("iteration %d chi2 = %g lambda = %g", iteration, chi2, lam)
            if not improved:
                break
        return history

    def dump(self) -> str:
        """The graph as g2o text: vertices, then edges with upper-triangular information."""
        lines = []
        for vertex in self.vertices.values():
            lines.append(" ".join([VERTEX_TAG, str(vertex.id), *_fmt(_pose_fields(vertex.pose))]))
        for edge in self.edges:
            lines.append(
                " ".join(
                    [
                        EDGE_TAG,
                        str(edge.vertex_i),
                        str(edge.vertex_j),
                        *_fmt(_pose_fields(edge.measurement)),
                        *_fmt(edge.information[_UPPER]),
                    ]
                )
            )
        return "\n".join(lines) + ("\n" if lines else "")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="pose_graph", description="Optimize an SE(3) pose graph stored as g2o text."
    )
    parser.add_argument("input", help="g2o file, e.g. sphere.g2o")
    parser.add_argument("-o", "--output", default="result_lie.g2o", help="where to save the result")
    parser.add_argument("-n", "--iterations", type=int, default=30, help="number of iterations")
    args = parser.parse_args(argv)

    try:
        graph = PoseGraph.load(args.input)
    except FileNotFoundError:
        print(f"file {args.input} does not exist.")
        return 1
    except ValueError as exc:
        print(f"cannot read {args.input}: {exc}", file=sys.stderr)
        return 1

    print(f"read total {len(graph.vertices)} vertices, {len(graph.edges)} edges.")
    print("optimizing ...")
    history = graph.optimize(args.iterations)
    for iteration, chi2 in enumerate(history[1:]):
        print(f"iteration= {iteration}\t chi2= {chi2:.6f}")

    print("saving optimization results ...")
    with open(args.output, "w", encoding="utf-8") as fh:
        fh.write(graph.dump())
    return 0


if __name__ == "__main__":
    sys.exit(main())