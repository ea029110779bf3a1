"""TQDM implementation of the ProgressObserver port."""

from typing import Optional

from tqdm import tqdm

from ..application.domain import ProgressObserver


class TqdmProgress(ProgressObserver):
    """Renders generation progress as a TQDM bar."""

    def __init__(
        self,
        total: Optional[int],
        update_interval: float = 1.0,
        disable: bool = False,
    ):
        """
        Initializes the progress bar.

        Args:
            total: Expected number of artifacts, or None when unknown.
            update_interval: Minimum seconds between redraws.
            disable: Suppresses the bar entirely.
        """
        self.progress_bar = tqdm(
            total=total,
            unit="seq",
            desc="Generating",
            mininterval=update_interval,
            disable=bool(disable),
        )

    def on_progress(self, count: int):
        self.progress_bar.update(count - self.progress_bar.n)

    def close(self):
        self.progress_bar.close()
