# -*- coding: utf-8 -*-
"""
Stage Base Class - Lifecycle contract and worker loop of pipeline stages.

A stage receives frames from an upstream producer through ``add_frame``,
does its work one unit at a time in ``process`` and hands results to the
registered output callbacks. ``start`` runs ``process`` on a daemon worker
thread at a fixed rate; the thread only sleeps when ``process`` reports
that there was nothing to do.

Author
------
Steven Siebert

License
-------
MIT License
Copyright (c) 2024 geoint.org
See LICENSE file for full text.

Created
-------
2026-10-08

Modified
--------
2026-10-14
"""

# Standard library
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

# uavmap internal
from uavmap.core.frame import Frame
from uavmap.exceptions import ValidationError

logger = logging.getLogger(__name__)

OutputCallback = Callable[..., None]


class StageBase(ABC):
    """Abstract pipeline stage.

    Parameters
    ----------
    name : str
        Stage name used in log messages and thread names.
    rate : float
        Maximum idle polling rate of the worker loop in Hz.

    Raises
    ------
    ValidationError
        If ``rate`` is not positive.
    """

    def __init__(self, name: str, rate: float) -> None:
        if not rate > 0:
            raise ValidationError(f"Stage rate must be positive, got {rate}")
        self.name = name
        self.rate = float(rate)
        self.output_dir: Optional[Path] = None
        self.n_frames_received = 0
        self._outputs: List[OutputCallback] = []
        self._outputs_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._worker: Optional[threading.Thread] = None

    # -----------------------------------------------------------------
    # Stage contract
    # -----------------------------------------------------------------
    @abstractmethod
    def add_frame(self, frame: Frame) -> None:
        """Accept a frame from the producer. Must not block on processing."""
        ...

    @abstractmethod
    def process(self) -> bool:
        """Run one unit of work.

        Returns
        -------
        bool
            True if work was done, False if the stage was idle.
        """
        ...

    @abstractmethod
    def reset(self) -> None:
        """Discard all buffered state."""
        ...

    def init_stage_callback(self) -> None:
        """Hook called once the output directory exists."""

    @abstractmethod
    def print_settings_to_log(self) -> None:
        ...

    # -----------------------------------------------------------------
    # Output
    # -----------------------------------------------------------------
    def set_output_directory(self, path: Union[str, Path]) -> Path:
        """Create the stage output directory and run ``init_stage_callback``."""
        self.output_dir = Path(path)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Stage '%s' output directory: %s", self.name, self.output_dir)
        self.init_stage_callback()
        return self.output_dir

    def register_output(self, callback: OutputCallback) -> None:
        with self._outputs_lock:
            self._outputs.append(callback)

    def unregister_output(self, callback: OutputCallback) -> None:
        with self._outputs_lock:
            try:
                self._outputs.remove(callback)
            except ValueError:
                pass

    def _transport(self, *payload: Any) -> None:
        """Send a result to every output callback.

        Callback exceptions are logged and never stop the stage.
        """
        with self._outputs_lock:
            callbacks = list(self._outputs)
        for cb in callbacks:
            try:
                cb(*payload)
            except Exception as e:
                logger.exception("Stage '%s' output callback error: %s", self.name, e)

    # -----------------------------------------------------------------
    # Worker loop
    # -----------------------------------------------------------------
    @property
    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self) -> None:
        """Start the worker thread. No-op when already running."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._worker = threading.Thread(
            target=self._run, name=f"uavmap-{self.name}", daemon=True,
        )
        self._worker.start()
        logger.info("Stage '%s' started at %.1f Hz", self.name, self.rate)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Signal the worker to finish and wait for it."""
        self._stop_event.set()
        if self._worker is not None:
            self._worker.join(timeout)
            if self._worker.is_alive():
                logger.warning("Stage '%s' worker did not stop within %s s",
                               self.name, timeout)
            else:
                self._worker = None
        logger.info("Stage '%s' stopped", self.name)

    def _run(self) -> None:
        period = 1.0 / self.rate
        while not self._stop_event.is_set():
            try:
                busy = self.process()
            except Exception as e:
                logger.exception("Stage '%s' processing error: %s", self.name, e)
                busy = False
            if not busy:
                self._stop_event.wait(period)
