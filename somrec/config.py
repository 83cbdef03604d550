import os
from pathlib import Path
from typing import Any


class SOMRecConfig:
    """
    Global somrec configuration for SOM training and similarity search.

    Provides training schedule settings, search settings and the model
    cache location. Values can be overridden through environment variables.
    """

    def __init__(self):
        # Project structure
        self.project_root = Path(__file__).parent.parent

        # Training Configuration
        self.SOM_ITERATION_COUNT: int = 10
        self.SOM_SAMPLE_COUNT_PER_NEURON: float = 4.0
        self.SOM_INITIAL_LEARNING_RATE: float = 0.5
        self.SOM_FINAL_RADIUS: float = 0.5
        self.SOM_SEED: int | None = None

        # Search Configuration
        self.SOM_SEARCH_DISTANCE_FACTOR: float | None = None  # None: expand over the whole grid

        # Cache Configuration
        self.SOM_CACHE_DIR: str | None = None

        # Environment variable overrides (useful for Docker/cluster deployment)
        self._apply_env_overrides()

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides for deployment flexibility."""
        if os.getenv('SOMREC_ITERATIONS'):
            self.SOM_ITERATION_COUNT = int(os.getenv('SOMREC_ITERATIONS'))

        if os.getenv('SOMREC_SAMPLES_PER_NEURON'):
            self.SOM_SAMPLE_COUNT_PER_NEURON = float(os.getenv('SOMREC_SAMPLES_PER_NEURON'))

        if os.getenv('SOMREC_SEED'):
            self.SOM_SEED = int(os.getenv('SOMREC_SEED'))

        if os.getenv('SOMREC_CACHE_DIR'):
            self.SOM_CACHE_DIR = os.getenv('SOMREC_CACHE_DIR')

        if os.getenv('SOMREC_SEARCH_DISTANCE_FACTOR'):
            self.SOM_SEARCH_DISTANCE_FACTOR = float(os.getenv('SOMREC_SEARCH_DISTANCE_FACTOR'))

    # =========================================================================
    # Training Configuration
    # =========================================================================

    @property
    def iteration_count(self) -> int:
        """Number of training passes over the sample set."""
        return self.SOM_ITERATION_COUNT

    @property
    def sample_count_per_neuron(self) -> float:
        """Target samples per grid cell, drives the grid size."""
        return self.SOM_SAMPLE_COUNT_PER_NEURON

    @property
    def initial_learning_rate(self) -> float:
        return self.SOM_INITIAL_LEARNING_RATE

    @property
    def final_radius(self) -> float:
        """Neighborhood radius reached on the last iteration."""
        return self.SOM_FINAL_RADIUS

    @property
    def seed(self) -> int | None:
        return self.SOM_SEED

    # =========================================================================
    # Search Configuration
    # =========================================================================

    @property
    def search_distance_factor(self) -> float | None:
        """
        Expansion limit for similarity search, as a multiple of the median
        distance between adjacent reference vectors.
        """
        return self.SOM_SEARCH_DISTANCE_FACTOR

    # =========================================================================
    # Global Path Configuration
    # =========================================================================

    @property
    def data_root(self) -> Path:
        return self.project_root / "data"

    @property
    def cache_dir(self) -> Path:
        """
        Model cache location.

        Structure:
            data/cache/som/
            ├── CURRENT                 # names the live version
            └── model-<uuid>/
                ├── manifest.json
                ├── network.npz
                ├── track_positions.json
                └── checksums.json
        """
        if self.SOM_CACHE_DIR:
            return Path(self.SOM_CACHE_DIR)
        return self.data_root / "cache" / "som"

    # =========================================================================
    # Validation and Utilities
    # =========================================================================

    def validate_config(self) -> None:
        """Validate somrec configuration parameters."""
        if self.iteration_count <= 0:
            raise ValueError("iteration_count must be positive")
        if self.sample_count_per_neuron <= 0:
            raise ValueError("sample_count_per_neuron must be positive")
        if not 0 < self.initial_learning_rate <= 1:
            raise ValueError("initial_learning_rate must be in range (0, 1]")
        if self.final_radius <= 0:
            raise ValueError("final_radius must be positive")
        if self.search_distance_factor is not None and self.search_distance_factor <= 0:
            raise ValueError("search_distance_factor must be positive when set")

    def get_path_info(self) -> dict[str, str]:
        """Get path information for debugging."""
        return {
            'project_root': str(self.project_root),
            'data_root': str(self.data_root),
            'cache_dir': str(self.cache_dir),
        }

    def get_train_info(self) -> dict[str, Any]:
        return {
            'iteration_count': self.iteration_count,
            'sample_count_per_neuron': self.sample_count_per_neuron,
            'initial_learning_rate': self.initial_learning_rate,
            'final_radius': self.final_radius,
            'seed': self.seed,
            'search_distance_factor': self.search_distance_factor,
        }

    def print_config(self) -> None:
        """Print current configuration for debugging."""
        print("\n" + "=" * 60)
        print("somrec Configuration".center(60))
        print("=" * 60)
        print(f"  Iterations:         {self.iteration_count}")
        print(f"  Samples per Neuron: {self.sample_count_per_neuron}")
        print(f"  Learning Rate:      {self.initial_learning_rate}")
        print(f"  Final Radius:       {self.final_radius}")
        print(f"  Seed:               {self.seed}")
        print(f"  Search Factor:      {self.search_distance_factor}")
        print("-" * 60)
        print(f"  Project Root:       {self.project_root}")
        print(f"  Cache Dir:          {self.cache_dir}")
        print("=" * 60 + "\n")


# ============================================================================
# Global Configuration Instance
# ============================================================================

somrec_config = SOMRecConfig()
