"""Configuration of the Monte Carlo alignment optimizer."""

from dataclasses import dataclass, fields


@dataclass(frozen=True)
class MCParameters:
    """
    Parameters of a Monte Carlo refinement run.

    Attributes:
        gap_open: Score penalty for opening a gap run
        gap_extension: Score penalty for each further gap in a run
        random_seed: Seed of the private random stream
        convergence_steps: Scale of the iteration bound (0 = shortest structure length x structures)
        min_aligned_structures: Rmin, non-gap entries required per column (0 = automatic)
        min_block_length: Lmin, Blocks never shrink to this length or below
        reference: Index of the structure every other structure is superimposed onto
        n_runs: Number of independent restarts
    """

    gap_open: float = 10.0
    gap_extension: float = 5.0
    random_seed: int = 0
    convergence_steps: int = 0
    min_aligned_structures: int = 0
    min_block_length: int = 15
    reference: int = 0
    n_runs: int = 1

    def __post_init__(self) -> None:
        for name in ("gap_open", "gap_extension", "convergence_steps",
                     "min_aligned_structures", "min_block_length", "reference"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        if self.n_runs < 1:
            raise ValueError(f"n_runs must be at least 1, got {self.n_runs}")

    @classmethod
    def from_dict(cls, values: dict) -> "MCParameters":
        """Build parameters from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown optimizer parameters: {', '.join(sorted(unknown))}")
        return cls(**values)
