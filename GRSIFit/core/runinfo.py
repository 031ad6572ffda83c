"""
Run-dependent bookkeeping: run numbers, timing, which detector systems
were present and the list of bad cycles.

The process-wide instance has an explicit lifecycle:

    init_run_info(run_number=29038, sub_run_number=0)
    get_run_info().set_detector("TIGRESS")
    ...
    teardown_run_info()

get_run_info() before init_run_info() is an error, not an implicit default.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from typing import Dict, List, Optional

# Detector systems known to the sorting code
DETECTOR_SYSTEMS = (
    "TIGRESS", "SHARC", "TRIFOIL", "RF", "CSM", "SPICE", "TIP", "S3", "GENERIC", "BAMBINO",
    "GRIFFIN", "SCEPTAR", "PACES", "DANTE", "ZERODEGREE", "DESCANT", "FIPPS",
)


def _default_detectors() -> Dict[str, bool]:
    return {name: False for name in DETECTOR_SYSTEMS}


@dataclass
class RunInfo:
    run_number: int = 0
    sub_run_number: int = -1
    run_title: str = ""
    run_comment: str = ""

    run_start: float = 0.0             # (s)
    run_stop: float = 0.0              # (s)
    run_length: float = 0.0            # (s)

    detectors: Dict[str, bool] = field(default_factory=_default_detectors)

    hpge_array_position: float = 110.0  # (mm)
    descant_ancillary: bool = False

    bad_cycles: List[int] = field(default_factory=list)

    # --- detector presence ---

    def set_detector(self, name: str, flag: bool = True) -> None:
        key = name.upper()
        if key not in self.detectors:
            raise ValueError(f"Unknown detector system '{name}'; expected one of {DETECTOR_SYSTEMS}")
        self.detectors[key] = flag

    def has_detector(self, name: str) -> bool:
        return self.detectors.get(name.upper(), False)

    @property
    def number_of_systems(self) -> int:
        return sum(self.detectors.values())

    # --- timing ---

    def update_run_length(self) -> float:
        """run_length = run_stop - run_start."""
        self.run_length = self.run_stop - self.run_start
        return self.run_length

    # --- bad cycles ---

    def add_bad_cycle(self, cycle: int) -> None:
        """Add a cycle to the sorted, duplicate-free bad cycle list."""
        if cycle < 0:
            raise ValueError(f"Cycle number must be non-negative, got {cycle}")
        if cycle not in self.bad_cycles:
            self.bad_cycles.append(cycle)
            self.bad_cycles.sort()

    def remove_bad_cycle(self, cycle: int) -> None:
        if cycle in self.bad_cycles:
            self.bad_cycles.remove(cycle)

    def is_bad_cycle(self, cycle: int) -> bool:
        return cycle in self.bad_cycles

    # --- merging ---

    def add(self, other: RunInfo) -> None:
        """
        Merge another run's info into this one.

        Run lengths add up. Run numbers only stay meaningful when both
        agree; consecutive sub-runs extend the stop time, anything else
        resets the sub-run number and the start/stop times.
        """
        if other.run_length > 0:
            if self.run_length > 0:
                self.run_length += other.run_length
            else:
                self.run_length = other.run_length

        if other.run_number != self.run_number:
            self.run_number = 0
            self.sub_run_number = -1
            self.run_start = 0.0
            self.run_stop = 0.0
        elif other.sub_run_number == self.sub_run_number + 1:
            self.run_stop = other.run_stop
            self.sub_run_number = other.sub_run_number
        else:
            self.sub_run_number = -1
            self.run_start = 0.0
            self.run_stop = 0.0

    # --- housekeeping ---

    def clear(self) -> None:
        """Reset every field to its default."""
        defaults = RunInfo()
        for f in fields(self):
            setattr(self, f.name, getattr(defaults, f.name))

    def summary(self) -> str:
        lines = ["RunInfo Status:",
                 f"  RunNumber:    {self.run_number:05d}",
                 f"  SubRunNumber: {self.sub_run_number:03d}"]
        if self.run_title:
            lines.append(f"  Title:        {self.run_title}")
        for name in DETECTOR_SYSTEMS:
            if self.detectors.get(name):
                lines.append(f"  {name + ':':<13} true")
        lines.append(f"  Number of systems: {self.number_of_systems}")
        if self.run_length > 0:
            lines.append(f"  Run length:   {self.run_length:.1f} s")
        if self.bad_cycles:
            lines.append(f"  Bad cycles:   {', '.join(str(c) for c in self.bad_cycles)}")
        lines.append("  =====================")
        return "\n".join(lines)

    def print_summary(self) -> None:
        print(self.summary())


# -------------------------------
# Process-wide instance
# -------------------------------

_RUN_INFO: Optional[RunInfo] = None


def init_run_info(**kwargs) -> RunInfo:
    """Create the process-wide RunInfo (replacing any previous one)."""
    global _RUN_INFO
    _RUN_INFO = RunInfo(**kwargs)
    return _RUN_INFO


def get_run_info() -> RunInfo:
    if _RUN_INFO is None:
        raise RuntimeError("RunInfo not initialized; call init_run_info() first")
    return _RUN_INFO


def has_run_info() -> bool:
    return _RUN_INFO is not None


def teardown_run_info() -> None:
    global _RUN_INFO
    _RUN_INFO = None
