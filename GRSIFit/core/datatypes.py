from __future__ import annotations
from dataclasses import dataclass, field
from typing import ClassVar, List

import numpy as np
import pandas as pd

# -------------------------------#
# Raw detector fragments       --#
# -------------------------------#

@dataclass
class Fragment:
    """One digitizer fragment: timing, charge and waveform for a channel."""
    charge: List[int]
    cfd: List[float]
    led: List[float]
    time_to_trig: float = 0.0
    energy: float = 0.0
    waveform: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int16))


@dataclass(frozen=True)
class Mnemonic:
    """Parsed channel name, e.g. TIS01BN00: array position 1, subposition 'B', segment 0."""
    system: str
    array_position: int
    array_subposition: str
    segment: int


# Crystal colour letter → crystal number
CRYSTAL_NUMBERS = {'B': 0, 'G': 1, 'R': 2, 'W': 3}
UNKNOWN_CRYSTAL = 5


# -------------------------------#
# BGO suppressor hits          --#
# -------------------------------#

@dataclass(repr=False)
class BGOData:
    """
    Columnar BGO hit storage for one event.

    Each set_* call appends one value to its column; set_bgo() appends a
    full hit. Getters index into the columns.
    """

    clover_numbers: List[int] = field(default_factory=list)
    crystal_numbers: List[int] = field(default_factory=list)
    pm_numbers: List[int] = field(default_factory=list)
    charges: List[int] = field(default_factory=list)
    energies: List[float] = field(default_factory=list)
    cfd_times: List[float] = field(default_factory=list)
    led_times: List[float] = field(default_factory=list)
    times: List[float] = field(default_factory=list)
    waves: List[np.ndarray] = field(default_factory=list)

    _is_set: ClassVar[bool] = False

    @classmethod
    def set(cls, flag: bool = True) -> None:
        cls._is_set = flag

    @classmethod
    def is_set(cls) -> bool:
        return cls._is_set

    # --- setters ---

    def set_bgo(self, clover: int, crystal: int, pm: int, charge: int,
                energy: float, cfd: float, led: float, time: float = 0.0) -> None:
        self.clover_numbers.append(clover)
        self.crystal_numbers.append(crystal)
        self.pm_numbers.append(pm)
        self.charges.append(charge)
        self.energies.append(energy)
        self.cfd_times.append(cfd)
        self.led_times.append(led)
        self.times.append(time)

    def set_bgo_from_fragment(self, fragment: Fragment, mnemonic: Mnemonic) -> None:
        """Append a hit taken from a fragment; crystal from the mnemonic's colour letter."""
        crystal = CRYSTAL_NUMBERS.get(mnemonic.array_subposition[:1], UNKNOWN_CRYSTAL)
        self.set_bgo(clover=mnemonic.array_position,
                     crystal=crystal,
                     pm=mnemonic.segment,
                     charge=fragment.charge[0],
                     energy=fragment.energy,
                     cfd=fragment.cfd[0],
                     led=fragment.led[0],
                     time=fragment.time_to_trig)

    def set_wave(self, wave) -> None:
        self.waves.append(np.asarray(wave, dtype=np.int16))

    # --- getters ---

    def get_clover_number(self, i: int) -> int:
        return self.clover_numbers[i]

    def get_crystal_number(self, i: int) -> int:
        return self.crystal_numbers[i]

    def get_pm_number(self, i: int) -> int:
        return self.pm_numbers[i]

    def get_charge(self, i: int) -> int:
        return self.charges[i]

    def get_energy(self, i: int) -> float:
        return self.energies[i]

    def get_cfd(self, i: int) -> float:
        return self.cfd_times[i]

    def get_led(self, i: int) -> float:
        return self.led_times[i]

    def get_time(self, i: int) -> float:
        return self.times[i]

    def get_wave(self, i: int) -> np.ndarray:
        return self.waves[i]

    @property
    def multiplicity(self) -> int:
        return len(self.pm_numbers)

    def __len__(self):
        return self.multiplicity

    # --- housekeeping ---

    def clear(self) -> None:
        for column in (self.clover_numbers, self.crystal_numbers, self.pm_numbers,
                       self.charges, self.energies, self.cfd_times, self.led_times,
                       self.times, self.waves):
            column.clear()

    def to_dataframe(self) -> pd.DataFrame:
        """One row per hit (waveforms excluded)."""
        return pd.DataFrame({
            'clover': self.clover_numbers,
            'crystal': self.crystal_numbers,
            'pm': self.pm_numbers,
            'charge': self.charges,
            'energy': self.energies,
            'cfd': self.cfd_times,
            'led': self.led_times,
            'time': self.times,
        })

    def __repr__(self) -> str:
        return f"BGOData(multiplicity={self.multiplicity})"
