"""
SystolicGrid - An N x N mesh of weight-stationary PEs with pipeline timing.

The grid wires N² ProcessingElements into a two-directional mesh and adds the
delay lines that make the diagonal wavefront line up:

                 partial_in[0]  partial_in[1]   ...   (column c skewed by c)
                      |              |
    act[0] ------> [PE 0,0] -R-> [PE 0,1] -> ...
                      R              R
    act[1] -[R]--> [PE 1,0] -R-> [PE 1,1] -> ...     (row r skewed by r)
                      R              R
                     ...            ...
                      |              |
                 [deskew N-1]   [deskew N-2]  ...    (column c delayed N-1-c)
                      |              |
                   out[0]         out[1]

(R = register). Every path from an input vector to its output vector crosses
exactly 2N - 2 registers, so an input presented on cycle 1 leaves the bottom
edge on cycle 2N - 1, and a K-long stream fully drains after K + 2N - 2 cycles.

For the operation C = A x W, PE(r, c) holds W[r, c]; each streamed activation
vector is one row of A (element r enters grid row r) and the matching output
vector is that row of C.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from ..config import GridConfig
from ..errors import ProtocolViolation
from .pe import ProcessingElement

logger = logging.getLogger(__name__)


class GridPhase(Enum):
    """Which of the two mutually exclusive grid phases last ran."""

    IDLE = 0
    LOAD = 1
    COMPUTE = 2


class DelayLine:
    """
    Fixed-depth shift register.

    ``shift`` pushes a value and returns the one pushed ``depth`` calls ago.
    A zero-depth line is a wire.
    """

    def __init__(self, depth: int, fill=0):
        self.depth = depth
        self.fill = fill
        self._regs = deque([fill] * depth, maxlen=depth) if depth else None

    def shift(self, value):
        if not self.depth:
            return value
        out = self._regs[0]
        self._regs.append(value)
        return out

    def clear(self) -> None:
        if self.depth:
            self._regs.extend([self.fill] * self.depth)

    def __iter__(self):
        return iter(self._regs or ())


@dataclass
class GridOutput:
    """One N-wide result vector leaving the bottom edge of the grid."""

    tag: object
    values: np.ndarray


@dataclass
class StreamResult:
    """
    Result of a full ``compute_stream`` call.

    Attributes:
        outputs: K x N partial sums, row i belonging to streamed vector i
        emit_cycles: Cycle (1-based, first input cycle = 1) each row emerged on
        cycles: Total cycles from first input to the last output leaving
    """

    outputs: np.ndarray
    emit_cycles: list[int] = field(default_factory=list)
    cycles: int = 0


class SystolicGrid:
    """
    Cycle-accurate weight-stationary systolic grid.

    Exposes vector-level operations only; PE state is never read or written
    from outside except through these methods.

    Parameters:
        config: GridConfig with the grid size and register widths
    """

    def __init__(self, config: GridConfig):
        self.config = config
        n = config.dim

        self.pes = [[ProcessingElement(row=r, col=c, config=config) for c in range(n)] for r in range(n)]

        # Row r activations enter r cycles late, column c partial sums c cycles late
        self.act_skew = [DelayLine(r) for r in range(n)]
        self.psum_skew = [DelayLine(c) for c in range(n)]
        # Column c results wait N-1-c cycles so a whole vector leaves together
        self.out_deskew = [DelayLine(n - 1 - c) for c in range(n)]
        # Tags ride alongside the data; None marks a bubble
        self.valid_line = DelayLine(2 * n - 2, fill=None)

        self.phase = GridPhase.IDLE
        self.load_cycles = 0
        self.cycle = 0

    # =========================================================================
    # State
    # =========================================================================

    def reset(self) -> None:
        """Zero all weights, accumulators and delay lines."""
        for row in self.pes:
            for pe in row:
                pe.reset()
        for line in self.act_skew + self.psum_skew + self.out_deskew:
            line.clear()
        self.valid_line.clear()
        self.phase = GridPhase.IDLE
        self.load_cycles = 0

    @property
    def dim(self) -> int:
        return self.config.dim

    @property
    def latency(self) -> int:
        """Cycles from an input entering to its result leaving (2N - 1)."""
        return self.config.latency

    def stream_cycles(self, length: int) -> int:
        """Cycles for a ``length``-vector stream to enter and drain (K + 2N - 2)."""
        return self.config.stream_cycles(length)

    @property
    def in_flight(self) -> int:
        """Number of valid vectors still inside the pipeline."""
        return sum(tag is not None for tag in self.valid_line)

    @property
    def drained(self) -> bool:
        return self.in_flight == 0

    @property
    def weights_loaded(self) -> bool:
        """True once a load phase has shifted in all N weight rows."""
        return self.phase is GridPhase.LOAD and self.load_cycles >= self.dim

    def weight_matrix(self) -> np.ndarray:
        """Snapshot of the stationary weights, PE(r, c) at [r, c]."""
        return np.array([[pe.weight for pe in row] for row in self.pes], dtype=np.int64)

    # =========================================================================
    # Weight Loading
    # =========================================================================

    def load_step(self, weight_vector) -> None:
        """
        Clock one load-mode cycle, pushing an N-wide vector into the top row.

        The first load cycle after any other phase resets the grid so that
        every load starts from zeroed weights and accumulators.

        Raises:
            ProtocolViolation: If results of a compute phase are still in flight
        """
        if self.phase is not GridPhase.LOAD:
            if not self.drained:
                raise ProtocolViolation(
                    f"weight load issued with {self.in_flight} result vectors still in flight"
                )
            self.reset()
            self.phase = GridPhase.LOAD
            logger.debug("grid: entering load phase")

        vector = self._as_vector(weight_vector, "weight vector")
        for c in range(self.dim):
            carry = int(vector[c])
            for r in range(self.dim):
                carry = self.pes[r][c].load(carry)

        self.load_cycles += 1
        self.cycle += 1

    def load_weights(self, weight_matrix) -> int:
        """
        Load a full N x N weight matrix through the daisy chain.

        Rows are streamed bottom row first, so after exactly N cycles PE(r, c)
        holds ``weight_matrix[r][c]``.

        Returns:
            Number of cycles spent loading (always N).
        """
        weights = np.asarray(weight_matrix)
        if weights.shape != (self.dim, self.dim):
            raise ValueError(f"weight matrix must be {self.dim}x{self.dim}, got {weights.shape}")

        if self.phase is GridPhase.LOAD and self.load_cycles:
            # A fresh load always begins from a reset grid
            self.phase = GridPhase.IDLE
        for r in reversed(range(self.dim)):
            self.load_step(weights[r])
        return self.dim

    # =========================================================================
    # Compute
    # =========================================================================

    def compute_step(self, activation=None, partial=None, tag=None) -> GridOutput | None:
        """
        Clock one compute-mode cycle.

        Args:
            activation: N-wide activation vector, element r feeding row r.
                None injects a bubble (zeros, no valid result).
            partial: N-wide partial sums entering the top of each column
                alongside this activation vector (zeros when None)
            tag: Identifier carried with the vector; defaults to the stream
                position inside this phase

        Returns:
            The result vector leaving the bottom edge this cycle, or None.

        Raises:
            ProtocolViolation: If a weight load is only partially complete
        """
        n = self.dim
        if self.phase is GridPhase.LOAD and self.load_cycles < n:
            raise ProtocolViolation(f"compute issued after only {self.load_cycles}/{n} weight-load cycles")
        self.phase = GridPhase.COMPUTE

        if activation is None:
            act_vec = np.zeros(n, dtype=np.int64)
            psum_vec = np.zeros(n, dtype=np.int64)
            tag = None
        else:
            act_vec = self._as_vector(activation, "activation vector")
            psum_vec = np.zeros(n, dtype=np.int64) if partial is None else self._as_vector(partial, "partial sums")
            if tag is None:
                tag = self.cycle

        # Partial sums registered by the previous row, consumed by this one
        from_above = [self.psum_skew[c].shift(int(psum_vec[c])) for c in range(n)]
        bottom = [0] * n
        for r in range(n):
            carry = self.act_skew[r].shift(int(act_vec[r]))
            for c in range(n):
                pe = self.pes[r][c]
                carry, from_above[c] = pe.compute(carry, from_above[c])
                if r == n - 1:
                    bottom[c] = pe.partial_sum

        values = np.array([self.out_deskew[c].shift(bottom[c]) for c in range(n)], dtype=np.int64)
        out_tag = self.valid_line.shift(tag)
        self.cycle += 1

        if out_tag is None:
            return None
        return GridOutput(tag=out_tag, values=values)

    def hold(self) -> None:
        """An ``en=0`` cycle: every register in the grid holds its value."""
        for row in self.pes:
            for pe in row:
                pe.compute(0, 0, en=False)

    def compute_stream(self, activation_rows, partial_in=None) -> StreamResult:
        """
        Stream K activation vectors through the grid and drain it.

        Args:
            activation_rows: K x N activations, one vector per cycle
            partial_in: K x N incoming partial sums (zeros when None), used to
                chain accumulation across k-tiles of the same output tile

        Returns:
            StreamResult with the K x N outputs and their emergence cycles.
        """
        acts = np.asarray(activation_rows, dtype=np.int64)
        if acts.ndim != 2 or acts.shape[1] != self.dim or acts.shape[0] == 0:
            raise ValueError(f"activation rows must be K x {self.dim} with K >= 1, got {acts.shape}")
        length = acts.shape[0]
        if partial_in is not None:
            partial_in = np.asarray(partial_in, dtype=np.int64)
            if partial_in.shape != acts.shape:
                raise ValueError(f"partial sums must match activations {acts.shape}, got {partial_in.shape}")
        if not self.drained:
            raise ProtocolViolation("compute stream issued while a previous stream is still draining")

        result = StreamResult(outputs=np.zeros((length, self.dim), dtype=np.int64))
        total = self.stream_cycles(length)
        for cycle in range(1, total + 1):
            i = cycle - 1
            if i < length:
                partial = None if partial_in is None else partial_in[i]
                out = self.compute_step(acts[i], partial, tag=i)
            else:
                out = self.compute_step(None)
            if out is not None:
                result.outputs[out.tag] = out.values
                result.emit_cycles.append(cycle)
        result.cycles = result.emit_cycles[-1]
        logger.debug("grid: streamed %d vectors in %d cycles", length, result.cycles)
        return result

    def _as_vector(self, values, what: str) -> np.ndarray:
        vector = np.asarray(values, dtype=np.int64).reshape(-1)
        if vector.shape[0] != self.dim:
            raise ValueError(f"{what} must have {self.dim} elements, got {vector.shape[0]}")
        return vector
