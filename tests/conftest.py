import pytest


class ScriptedRandom:
    """Randomness source that hands out predetermined values in order."""

    def __init__(self, values):
        self.values = list(values)
        self.calls = []

    def randint(self, a, b):
        self.calls.append((a, b))
        if not self.values:
            raise AssertionError(f"ScriptedRandom exhausted on randint({a}, {b})")
        value = self.values.pop(0)
        assert a <= value <= b, f"scripted value {value} outside [{a}, {b}]"
        return value


@pytest.fixture
def scripted():
    return ScriptedRandom
