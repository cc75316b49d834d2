"""Best-wave record kept in process memory."""

from dataclasses import dataclass


@dataclass
class WaveRecord:
    best: int = 0

    def submit(self, wave: int) -> bool:
        if wave > self.best:
            self.best = wave
            return True
        return False


# Shared across sessions for the lifetime of the process.
BEST_WAVE = WaveRecord()
