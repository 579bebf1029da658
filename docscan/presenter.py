"""Display surfaces for scan sessions."""

import sys
from typing import TextIO

from docscan.models import PreviewView, ProcessingState

STATUS_TEXT = {
    ProcessingState.IDLE: "Ready",
    ProcessingState.AWAITING_ENGINE: "Loading image processing engine...",
    ProcessingState.RUNNING: "Processing your document...",
    ProcessingState.DONE: "Scanned preview ready",
    ProcessingState.FAILED: "Processing failed",
}


class Presenter:
    """Receives view snapshots and user notices from a ScanSession.

    The default implementation ignores everything.
    """

    def render(self, view: PreviewView) -> None:
        pass

    def notify(self, message: str) -> None:
        pass


class ConsolePresenter(Presenter):
    """Writes state transitions and notices to a text stream."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stderr
        self._last_state: ProcessingState | None = None

    def render(self, view: PreviewView) -> None:
        if view.state is self._last_state:
            return
        self._last_state = view.state
        line = STATUS_TEXT[view.state]
        if view.state is ProcessingState.DONE and view.processed is not None:
            steps = ", ".join(view.processed.applied_steps)
            line = f"{line} ({view.processed.width}x{view.processed.height}; {steps})"
        print(line, file=self.stream)

    def notify(self, message: str) -> None:
        print(f"Notice: {message}", file=self.stream)
