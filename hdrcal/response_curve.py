import numpy as np


CURVE_SIZE = 256


class ResponseCurve:
    """Camera response curve (CTF)

    Maps an 8-bit pixel value to log exposure. Holds exactly 256 values and
    is read-only once built.
    """

    def __init__(self, values):
        values = np.array(values, dtype=np.float64).ravel()
        assert values.size == CURVE_SIZE, f"A response curve needs {CURVE_SIZE} values, got {values.size}"
        values.setflags(write=False)
        self._values = values

    @property
    def values(self):
        return self._values

    def __len__(self):
        return CURVE_SIZE

    def __getitem__(self, z):
        return self._values[z]

    def __call__(self, z):
        return self._values[z]

    def evaluate(self, z):
        """Look up the curve for a pixel value (or an integer array of them)"""
        return self._values[z]

    def __eq__(self, other):
        if not isinstance(other, ResponseCurve):
            return NotImplemented
        return np.array_equal(self._values, other._values)

    def __repr__(self):
        return f"ResponseCurve(min={self._values.min():.6g}, max={self._values.max():.6g})"

    def log(self):
        """Natural log of every entry, for curves stored after exponentiation"""
        assert np.all(self._values > 0), "Only a strictly positive curve has a log"
        return ResponseCurve(np.log(self._values))

    @classmethod
    def linear(cls, max_value, min_value=0.0):
        """Evenly spaced curve from min_value (at 0) to max_value (at 255)"""
        assert min_value < max_value, f"Invalid linear curve range: [{min_value}, {max_value}]"
        return cls(np.linspace(min_value, max_value, CURVE_SIZE))

    @classmethod
    def load(cls, path):
        """Load a curve written one value per line

        Raises ValueError when a line is missing or holds anything other than
        a positive number; the file is rejected as a whole.
        """
        with open(path, 'r') as f:
            lines = f.read().splitlines()

        if len(lines) < CURVE_SIZE:
            raise ValueError(f"{path}: expected {CURVE_SIZE} lines, found {len(lines)}")

        values = []
        for i, line in enumerate(lines[:CURVE_SIZE]):
            try:
                value = float(line.strip())
            except ValueError:
                value = 0.0
            # Unparsable or non-positive entries make the whole curve implausible
            if not value > 0.0:
                raise ValueError(f"{path}:{i + 1}: invalid response value {line.strip()!r}")
            values.append(value)

        return cls(values)

    def write(self, stream):
        """Write one value per line"""
        for value in self._values:
            stream.write(f"{float(value)!r}\n")

    def save(self, path):
        with open(path, 'w') as f:
            self.write(f)
