from typing import Optional

from tqdm import tqdm


class ProgressSink:
    """Observer for transfer/copy progress. The default does nothing."""

    def start(self, total: int, desc: str) -> None:
        pass

    def advance(self, amount: int = 1) -> None:
        pass

    def finish(self) -> None:
        pass


class TqdmProgress(ProgressSink):
    _bar: Optional[tqdm]

    def __init__(self):
        self._bar = None

    def start(self, total: int, desc: str) -> None:
        self.finish()
        # tqdm writes to stderr, stdout stays reserved for the report
        self._bar = tqdm(total=total, desc=desc)

    def advance(self, amount: int = 1) -> None:
        if self._bar is not None:
            self._bar.update(amount)

    def finish(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None


NO_PROGRESS = ProgressSink()
