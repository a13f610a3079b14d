"""
Diagnostic history of an optimization run

Samples are buffered in memory while the optimizer runs and exported once at
the end. Exporting is best-effort: a failed write never affects the refined
alignment.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import pandas as pd

logger = logging.getLogger(__name__)

HISTORY_COLUMNS = ["Step", "Length", "RMSD", "Score"]


@dataclass(frozen=True)
class HistorySample:
    """State of the alignment at one optimizer iteration."""

    step: int
    length: int
    rmsd: float
    score: float


class HistorySink(Protocol):
    """Append-only receiver of history samples."""

    def append(self, sample: HistorySample) -> None: ...


class OptimizationHistory:
    """In-memory history buffer exportable as CSV."""

    def __init__(self) -> None:
        self.samples: list[HistorySample] = []

    def append(self, sample: HistorySample) -> None:
        self.samples.append(sample)

    def __len__(self) -> int:
        return len(self.samples)

    def to_dataframe(self) -> pd.DataFrame:
        """
        Convert the samples to a pandas DataFrame.

        Returns:
            DataFrame with columns: Step, Length, RMSD, Score
        """
        data = [
            {"Step": s.step, "Length": s.length, "RMSD": s.rmsd, "Score": s.score}
            for s in self.samples
        ]
        return pd.DataFrame(data, columns=HISTORY_COLUMNS)

    def save_to_csv(self, output_path: Path) -> None:
        """
        Export the history to a CSV file, creating parent directories.

        Raises:
            OSError: If the file cannot be written
        """
        try:
            df = self.to_dataframe()
            output_path.parent.mkdir(parents=True, exist_ok=True)
            df.to_csv(output_path, index=False)
        except Exception as e:
            raise OSError(f"Failed to save CSV to {output_path}: {e}") from e


def save_history(history: OptimizationHistory, output_path: Path) -> bool:
    """Write the history if possible; log and return False on failure."""
    try:
        history.save_to_csv(Path(output_path))
    except OSError as e:
        logger.warning("Optimization history not saved: %s", e)
        return False
    logger.info("Optimization history saved to %s", output_path)
    return True
