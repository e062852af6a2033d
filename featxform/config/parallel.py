"""
Unified parallel processing configuration for the transform engine.

This module provides a single configuration class that controls how row-wise
work is fanned out across cores, ensuring consistent behavior and easy tuning.

Worker Lifecycle:
- Worker lifecycle (spawning, pooling, shutdown) is managed entirely by joblib
- We do NOT explicitly manage worker threads or processes

Reductions:
- Each chunk of rows is reduced into a private partial aggregate
- Partials are merged by the caller after the joblib barrier, so no shared
  accumulator is ever written concurrently

Diagnostics:
- Stage timing and process memory logging
- Sequential mode for debugging
"""
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Generator, List, Optional, Sequence
import multiprocessing
import os
import time
import logging

import psutil
from joblib import Parallel, delayed

logger = logging.getLogger(__name__)


# Default maximum workers
DEFAULT_MAX_WORKERS = 32

# Rows handed to a single worker call
DEFAULT_CHUNK_SIZE = 2048

# Below this many rows the work runs inline
DEFAULT_MIN_PARALLEL_ROWS = 4096

# Backends able to run closure-based chunk functions
VALID_BACKENDS = ('loky', 'threading')


def get_memory_mb() -> float:
    """Get current process memory usage in MB."""
    process = psutil.Process(os.getpid())
    return process.memory_info().rss / 1024 / 1024


def get_safe_n_jobs(n_jobs: int = -1, max_workers: int = DEFAULT_MAX_WORKERS) -> int:
    """
    Get a safe n_jobs value, capped at max_workers.

    Args:
        n_jobs: Requested n_jobs (-1 for all cores)
        max_workers: Maximum workers to allow

    Returns:
        Safe n_jobs value
    """
    if n_jobs == -1:
        effective = multiprocessing.cpu_count()
    elif n_jobs < 1:
        effective = 1
    else:
        effective = n_jobs

    safe_jobs = min(effective, max_workers)
    if effective != safe_jobs:
        logger.debug(f"Capping n_jobs from {effective} to {safe_jobs} (max_workers={max_workers})")

    return safe_jobs


def chunk_ranges(n_items: int, chunk_size: int) -> List[range]:
    """Split ``range(n_items)`` into consecutive ranges of at most chunk_size."""
    return [range(start, min(start + chunk_size, n_items)) for start in range(0, n_items, chunk_size)]


@contextmanager
def parallel_stage(
    stage_name: str,
    n_workers: int = -1,
    report_memory: bool = True,
) -> Generator[None, None, None]:
    """
    Context manager for a parallel processing stage.

    Worker lifecycle is managed entirely by joblib. This context manager only
    provides timing/memory logging.

    Args:
        stage_name: Name of the stage (for logging)
        n_workers: Number of workers, for logging only
        report_memory: Whether to include process memory in the log lines

    Example:
        with parallel_stage("StandardizeTransform.fit", n_workers=8):
            partials = Parallel(n_jobs=8)(delayed(func)(c) for c in chunks)
    """
    start_time = time.time()
    start_mem = get_memory_mb() if report_memory else 0.0

    logger.info(f"[{stage_name}] Starting (workers={n_workers}, mem={start_mem:.0f}MB)")

    try:
        yield
    finally:
        elapsed = time.time() - start_time
        if report_memory:
            end_mem = get_memory_mb()
            logger.info(
                f"[{stage_name}] Completed in {elapsed:.3f}s "
                f"(mem: {start_mem:.0f}MB -> {end_mem:.0f}MB, delta={end_mem - start_mem:+.0f}MB)"
            )
        else:
            logger.info(f"[{stage_name}] Completed in {elapsed:.3f}s")


@dataclass
class ParallelConfig:
    """
    Parallelization configuration for fit/transform passes over matrix rows.

    Attributes:
        n_jobs: Number of parallel workers.
            -1 = all available cores
            1 = sequential processing (useful for debugging)
            N = use N workers
        backend: joblib backend to use.
            'threading' = thread-based (default; rows are mutated in place
                without copies)
            'loky' = robust process-based (rows are copied to workers and
                written back by the caller)
        chunk_size: Number of rows handed to one worker call.
        min_parallel_rows: Matrices with fewer rows are processed inline.
        verbose: joblib verbosity level.
        report_memory: If True, logs process memory around each stage.
        max_workers: Maximum workers regardless of cores.

    Example:
        >>> config = ParallelConfig(n_jobs=8)
        >>> transform = StandardizeTransform(3.0, parallel=config)

        >>> # For debugging, use sequential
        >>> config = ParallelConfig.sequential()
    """
    n_jobs: int = -1
    backend: str = 'threading'
    chunk_size: int = DEFAULT_CHUNK_SIZE
    min_parallel_rows: int = DEFAULT_MIN_PARALLEL_ROWS
    verbose: int = 0
    report_memory: bool = True
    max_workers: int = DEFAULT_MAX_WORKERS

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.n_jobs == 0:
            raise ValueError("n_jobs cannot be 0. Use -1 for all cores or 1 for sequential.")
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        if self.min_parallel_rows < 0:
            raise ValueError("min_parallel_rows cannot be negative")
        if self.backend not in VALID_BACKENDS:
            raise ValueError(f"Unknown backend: {self.backend}")

    @classmethod
    def default(cls) -> 'ParallelConfig':
        """Create default configuration using all available cores."""
        return cls()

    @classmethod
    def sequential(cls) -> 'ParallelConfig':
        """Create configuration for sequential processing (useful for debugging)."""
        return cls(n_jobs=1, report_memory=False)

    @classmethod
    def from_env(cls) -> 'ParallelConfig':
        """
        Create configuration from environment variables.

        Environment variables:
            FEATXFORM_N_JOBS: Number of parallel jobs (default: -1)
            FEATXFORM_BACKEND: joblib backend (default: threading)
            FEATXFORM_CHUNK_SIZE: Rows per worker call (default: 2048)
            FEATXFORM_VERBOSE: Verbosity level (default: 0)
        """
        return cls(
            n_jobs=int(os.getenv('FEATXFORM_N_JOBS', '-1')),
            backend=os.getenv('FEATXFORM_BACKEND', 'threading'),
            chunk_size=int(os.getenv('FEATXFORM_CHUNK_SIZE', str(DEFAULT_CHUNK_SIZE))),
            verbose=int(os.getenv('FEATXFORM_VERBOSE', '0')),
        )

    @property
    def effective_n_jobs(self) -> int:
        """Get the effective number of jobs (resolving -1 to actual core count)."""
        return get_safe_n_jobs(self.n_jobs, self.max_workers)

    @property
    def is_parallel(self) -> bool:
        """Check if configuration enables parallel processing."""
        return self.n_jobs != 1

    def to_dict(self) -> dict:
        return {
            'n_jobs': self.n_jobs,
            'backend': self.backend,
            'chunk_size': self.chunk_size,
            'min_parallel_rows': self.min_parallel_rows,
            'verbose': self.verbose,
            'report_memory': self.report_memory,
            'max_workers': self.max_workers,
        }

    def summary(self) -> str:
        """Return a human-readable summary of the configuration."""
        return (
            f"ParallelConfig(n_jobs={self.n_jobs} [{self.effective_n_jobs} cores], "
            f"chunk_size={self.chunk_size}, backend='{self.backend}')"
        )


def map_row_chunks(
    n_rows: int,
    func: Callable[[Sequence[int]], Any],
    config: Optional[ParallelConfig] = None,
    stage_name: str = "Processing",
) -> List[Any]:
    """
    Apply ``func`` to consecutive chunks of row indices and collect the results.

    Every row index in ``range(n_rows)`` is passed to exactly one call. The
    returned list holds one result per chunk; the caller merges them after
    this function returns, which is the barrier for the whole pass.

    Runs sequentially when the config is sequential or the matrix is smaller
    than ``min_parallel_rows``.

    Args:
        n_rows: Number of rows to cover
        func: Function receiving a range of row indices
        config: Parallel configuration (defaults to ParallelConfig.default())
        stage_name: Name for logging

    Returns:
        List of per-chunk results
    """
    config = config or ParallelConfig.default()

    if n_rows == 0:
        return []

    if not config.is_parallel or n_rows < config.min_parallel_rows:
        logger.debug(f"[{stage_name}] Running sequentially ({n_rows} rows)")
        return [func(range(n_rows))]

    n_jobs = config.effective_n_jobs
    chunks = chunk_ranges(n_rows, config.chunk_size)

    with parallel_stage(stage_name, n_workers=n_jobs, report_memory=config.report_memory):
        results = Parallel(
            n_jobs=n_jobs,
            backend=config.backend,
            verbose=config.verbose,
        )(
            delayed(func)(chunk) for chunk in chunks
        )

    logger.debug(f"[{stage_name}] {n_rows} rows in {len(chunks)} chunks ({config.chunk_size}/chunk)")
    return list(results)
