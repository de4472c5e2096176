"""
Orchestrator - Sequences weight loads, compute passes and tile advancement.

The Orchestrator owns the SystolicGrid for the duration of a job and drives it
one clock cycle per ``tick()``:

State Machine:
    IDLE -> LOAD_WEIGHTS -> COMPUTE -> ADVANCE_TILE -> LOAD_WEIGHTS ...
                                                   \\-> DONE -> IDLE

Phase durations (stall-free):
    LOAD_WEIGHTS  N cycles       one weight row per cycle, bottom row first
    COMPUTE       R + 2N - 2     R = real A rows in the tile (1..N), then drain
    ADVANCE_TILE  1 cycle
    DONE          1 cycle        one-cycle completion pulse

Data Flow:
    MemoryFetch --(TilePlanner masks)--> SystolicGrid --> WriteBack
                                             ^   |
                                             +---+  partial sums carried
                                                    across k-tiles

Partial sums of every k-tile but the last are fed back into the top of the
grid with the next k-tile's activations. The last k-tile's results are final
and go to the write-back collaborator, one vector per real output row.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

import numpy as np

from ..config import GridConfig
from ..core.grid import SystolicGrid
from ..errors import ArithmeticOverflow, ProtocolViolation
from ..memory.source import MemoryFetch
from ..memory.writeback import ResultVector, WriteBack
from ..tiling.planner import MatrixDescriptor, TileIndex, TilePlanner

logger = logging.getLogger(__name__)


class FsmState(Enum):
    """Orchestrator states."""

    IDLE = 0
    LOAD_WEIGHTS = 1
    COMPUTE = 2
    ADVANCE_TILE = 3
    DONE = 4


@dataclass
class JobStats:
    """Cycle accounting for one job."""

    descriptor: MatrixDescriptor
    tiles: int = 0
    cycles: int = 0
    load_cycles: int = 0
    compute_cycles: int = 0
    stall_cycles: int = 0
    vectors_written: int = 0


@dataclass
class JobContext:
    """
    Per-job orchestrator state, created at job start and dropped at completion.

    Attributes:
        planner: Tile sequence; its cursor is the current TileIndex
        stats: Running cycle accounting
        phase_cycle: Cycles completed in the current phase
        stream_length: Activation rows streamed by the current tile
        results: Result vectors captured during the current compute phase
        carry: Partial sums carried into the next k-tile, if any
    """

    planner: TilePlanner
    stats: JobStats
    phase_cycle: int = 0
    stream_length: int = 0
    results: np.ndarray | None = None
    carry: np.ndarray | None = field(default=None, repr=False)


@dataclass(frozen=True)
class OrchestratorStatus:
    """What the control collaborator can query."""

    state: FsmState
    busy: bool
    done: bool
    tile: TileIndex | None
    cycle: int


class ControlListener(Protocol):
    """Receives the completion event (the interrupt stand-in)."""

    def job_complete(self, stats: JobStats) -> None: ...


class Orchestrator:
    """
    Top-level FSM of the matmul engine.

    Parameters:
        config: GridConfig shared with the grid
        source: Memory-fetch collaborator for operands
        sink: Write-back collaborator for finalized results
        listener: Optional control collaborator notified on completion
        grid: Grid to drive; a new one is built from ``config`` if omitted
    """

    def __init__(
        self,
        config: GridConfig,
        source: MemoryFetch,
        sink: WriteBack,
        listener: ControlListener | None = None,
        grid: SystolicGrid | None = None,
    ):
        self.config = config
        self.source = source
        self.sink = sink
        self.listener = listener
        self.grid = grid if grid is not None else SystolicGrid(config)

        self.state = FsmState.IDLE
        self.job: JobContext | None = None
        self.done = False
        self.done_pulse = False
        self.cycle = 0
        self.last_stats: JobStats | None = None

    # =========================================================================
    # Control Interface
    # =========================================================================

    def start(self, descriptor: MatrixDescriptor) -> None:
        """
        Job-start trigger from the control collaborator.

        Raises:
            ProtocolViolation: If a job is already running
            InvalidDimensions: If any dimension is zero
            ArithmeticOverflow: If K exceeds the accumulator's reduction depth
        """
        if self.state is not FsmState.IDLE:
            logger.warning("job start rejected: orchestrator is in %s", self.state.name)
            raise ProtocolViolation(f"job start while orchestrator is in {self.state.name}")
        descriptor.validate()
        if descriptor.k > self.config.max_reduction_depth:
            raise ArithmeticOverflow(
                f"K={descriptor.k} exceeds the {self.config.acc_bits}-bit accumulator's "
                f"reduction depth of {self.config.max_reduction_depth}"
            )

        planner = TilePlanner(descriptor, self.config.dim)
        self.job = JobContext(planner=planner, stats=JobStats(descriptor=descriptor))
        self.done = False
        logger.info(
            "job start: M=%d K=%d N=%d on %dx%d grid, %d tiles",
            descriptor.m,
            descriptor.k,
            descriptor.n,
            self.config.dim,
            self.config.dim,
            planner.total_tiles,
        )
        self._enter(FsmState.LOAD_WEIGHTS)

    def reset(self) -> None:
        """Synchronous global reset; any phase in progress is abandoned."""
        if self.state is not FsmState.IDLE:
            logger.info("reset during %s", self.state.name)
        self.grid.reset()
        self.source.reset()
        self.state = FsmState.IDLE
        self.job = None
        self.done = False
        self.done_pulse = False
        self.cycle = 0

    @property
    def busy(self) -> bool:
        return self.state is not FsmState.IDLE

    @property
    def tile(self) -> TileIndex | None:
        """TileIndex being worked on, if any."""
        if self.job is None or self.job.planner.exhausted:
            return None
        return self.job.planner.current

    @property
    def status(self) -> OrchestratorStatus:
        return OrchestratorStatus(
            state=self.state,
            busy=self.busy,
            done=self.done,
            tile=self.tile,
            cycle=self.cycle,
        )

    def expected_cycles(self, descriptor: MatrixDescriptor) -> int:
        """Stall-free duration of a job, from its first tick to the DONE cycle."""
        n = self.config.dim
        planner = TilePlanner(descriptor, n)
        total = 1
        for tile in planner:
            rows = planner.padding_mask(tile).valid_rows
            total += n + self.grid.stream_cycles(rows) + 1
        return total

    # =========================================================================
    # Clocking
    # =========================================================================

    def tick(self) -> FsmState:
        """Advance one clock cycle; returns the state for the next cycle."""
        self.done_pulse = False
        self.cycle += 1
        if self.state is FsmState.IDLE:
            return self.state

        self.job.stats.cycles += 1
        if self.state is FsmState.LOAD_WEIGHTS:
            self._tick_load()
        elif self.state is FsmState.COMPUTE:
            self._tick_compute()
        elif self.state is FsmState.ADVANCE_TILE:
            self._tick_advance()
        elif self.state is FsmState.DONE:
            self._tick_done()
        return self.state

    def run(self, max_cycles: int | None = None) -> JobStats:
        """
        Tick until the current job is back in IDLE.

        Raises:
            ProtocolViolation: If no job has been started
            RuntimeError: If the job has not finished within ``max_cycles``
        """
        if self.state is FsmState.IDLE:
            raise ProtocolViolation("run() without a started job")
        ticks = 0
        while self.state is not FsmState.IDLE:
            if max_cycles is not None and ticks >= max_cycles:
                raise RuntimeError(f"job did not complete within {max_cycles} cycles")
            self.tick()
            ticks += 1
        return self.last_stats

    # =========================================================================
    # State Handlers
    # =========================================================================

    def _enter(self, state: FsmState) -> None:
        logger.debug("cycle %d: %s -> %s (tile %s)", self.cycle, self.state.name, state.name, self.tile)
        self.state = state
        if self.job is not None:
            self.job.phase_cycle = 0

    def _tick_load(self) -> None:
        job = self.job
        n = self.config.dim
        tile = job.planner.current

        # The daisy chain shifts down, so the bottom grid row goes in first
        k = n - 1 - job.phase_cycle
        vector = job.planner.weight_row(tile, k, self.source)
        if vector is None:
            self.grid.hold()
            job.stats.stall_cycles += 1
            return

        self.grid.load_step(vector)
        job.stats.load_cycles += 1
        job.phase_cycle += 1
        if job.phase_cycle == n:
            # Padded rows sit at the bottom of a tile and are never streamed
            job.stream_length = job.planner.padding_mask(tile).valid_rows
            job.results = np.zeros((job.stream_length, n), dtype=np.int64)
            self._enter(FsmState.COMPUTE)

    def _tick_compute(self) -> None:
        job = self.job
        tile = job.planner.current

        if job.phase_cycle < job.stream_length:
            activation = job.planner.ifmap_row(tile, job.phase_cycle, self.source)
            if activation is None:
                self.grid.hold()
                job.stats.stall_cycles += 1
                return
            partial = None if job.carry is None else job.carry[job.phase_cycle]
            out = self.grid.compute_step(activation, partial, tag=job.phase_cycle)
        else:
            out = self.grid.compute_step(None)

        job.stats.compute_cycles += 1
        if out is not None:
            job.results[out.tag] = out.values
        job.phase_cycle += 1

        if job.phase_cycle == self.grid.stream_cycles(job.stream_length):
            self._finish_tile(tile)
            self._enter(FsmState.ADVANCE_TILE)

    def _finish_tile(self, tile: TileIndex) -> None:
        job = self.job
        planner = job.planner
        job.stats.tiles += 1

        if not planner.is_last_k(tile):
            job.carry = job.results
            return

        for local_row in range(job.stream_length):
            self.sink.write(
                ResultVector(
                    tile_row=tile.tile_row,
                    tile_col=tile.tile_col,
                    local_row=local_row,
                    values=job.results[local_row].copy(),
                )
            )
            job.stats.vectors_written += 1
        job.carry = None
        logger.debug("tile (%d, %d) finalized", tile.tile_row, tile.tile_col)

    def _tick_advance(self) -> None:
        if self.job.planner.advance():
            self._enter(FsmState.LOAD_WEIGHTS)
        else:
            self._enter(FsmState.DONE)

    def _tick_done(self) -> None:
        stats = self.job.stats
        self.done_pulse = True
        self.done = True
        self.last_stats = stats
        logger.info(
            "job done: %d tiles in %d cycles (%d stalled)",
            stats.tiles,
            stats.cycles,
            stats.stall_cycles,
        )
        if self.listener is not None:
            self.listener.job_complete(stats)
        self._enter(FsmState.IDLE)
        self.job = None
