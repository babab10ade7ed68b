import pytest

from distill.progress import ProgressCoordinator


class FakeIndicator:
    """Records every call made on the progress line."""

    def __init__(self):
        self.updates = []
        self.terminal = []
        self.echoed = []

    def update(self, text):
        self.updates.append(text)

    def success(self, text):
        self.terminal.append(("success", text))

    def warn(self, text):
        self.terminal.append(("warn", text))

    def fail(self, text):
        self.terminal.append(("fail", text))

    def echo(self, text):
        self.echoed.append(text)


@pytest.fixture
def indicator():
    return FakeIndicator()


@pytest.fixture
def progress(indicator):
    return ProgressCoordinator(indicator)
