"""Recover the camera response curve (CTF) with the method of Debevec and Malik.

The 8-bit value of pixel i in exposure j obeys g(Z_ij) = ln(E_i) + ln(t_j),
where g is the log inverse response. Sampling a few hundred pixel positions
across the stack gives an over-determined linear system in the 256 values of
g and the unknown log irradiances ln(E_i), which is solved in the least
squares sense together with a smoothness term on g.
"""
import logging
from dataclasses import dataclass

import numpy as np

from hdrcal.image_io import load_image
from hdrcal.response_curve import CURVE_SIZE, ResponseCurve
from hdrcal.weighting import WEIGHTING_FUNCTIONS, make_weight_lut


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PixelSample:
    """Fitted irradiance at a sampled pixel position"""
    x: int
    y: int
    irradiance: float


def sample_pixels(width, height, num_samples, rng):
    """Sample pixel positions uniformly for response curve recovery"""
    xs = rng.integers(0, width, size=num_samples)
    ys = rng.integers(0, height, size=num_samples)
    return xs, ys


class ResponseSolver:
    """Solve for the response curve of one channel of an exposure stack

    Parameters:
    -----------
    pairs : list of ExposurePair
        The exposure stack, at least 2 images of equal size. Images given as
        paths are loaded one at a time during the solve.
    num_samples : int
        Number of random pixel positions. Should be well above 256 so that
        the system is over-determined.
    smoothing : float
        Weight of the curvature penalty (lambda in the paper).
    channel : int
        Color channel to solve for; 0 suits monochrome images.
    weighting : str
        'hat' or 'hat_10' (hat with zero weight on the 10 lowest and highest values).
    rng : numpy.random.Generator, optional
        Source of the sample positions. Seed it for reproducible curves.
    """

    def __init__(self, pairs, num_samples=1000, smoothing=1.0, channel=0, weighting='hat', rng=None):
        assert len(pairs) >= 2, f"At least 2 images are required, got {len(pairs)}"
        assert weighting in WEIGHTING_FUNCTIONS, f"{weighting} not in available weighting functions: {WEIGHTING_FUNCTIONS}"
        assert num_samples > 0, "num_samples must be positive"

        self.pairs = pairs
        self.num_samples = num_samples
        self.smoothing = smoothing
        self.channel = channel
        self.weighting = weighting
        self.rng = rng if rng is not None else np.random.default_rng()

    def __repr__(self):
        return (f"ResponseSolver(lambda={self.smoothing}, channel={self.channel}, "
                f"num_samples={self.num_samples}, weighting={self.weighting})")

    def _channel_data(self, image, pair, width, height):
        h, w, c = image.shape
        if (w, h) != (width, height):
            raise ValueError(f"Image {pair} is {w}x{h}, expected {width}x{height}")
        if c <= self.channel:
            raise ValueError(f"Image {pair} has {c} channel(s), channel {self.channel} requested")
        return image[:, :, self.channel]

    def solve(self, collect_samples=False):
        """Recover the response curve

        Returns:
        --------
        ResponseCurve holding exp(g), or (ResponseCurve, list of PixelSample)
        when collect_samples is set.
        """
        n = CURVE_SIZE
        w_lut = make_weight_lut(self.weighting)

        # Sample positions come from the extent of the first image
        first = load_image(self.pairs[0].image)
        height, width = first.shape[:2]
        logger.info("Sampling pixels")
        xs, ys = sample_pixels(width, height, self.num_samples, self.rng)

        num_images = len(self.pairs)
        n_equations = self.num_samples * num_images + n + 1
        n_unknowns = n + self.num_samples  # g(0)...g(255) + ln(E) for each sample
        logger.debug(f"Linear system: {n_equations} equations, {n_unknowns} unknowns")
        A = np.zeros((n_equations, n_unknowns))
        b = np.zeros(n_equations)

        # Data fitting equations, one image at a time
        logger.info("Recovering response curve")
        sample_index = np.arange(self.num_samples)
        k = 0
        for j, pair in enumerate(self.pairs):
            image = first if j == 0 else load_image(pair.image)
            channel_data = self._channel_data(image, pair, width, height)
            assert pair.exposure_time > 0, f"Invalid exposure time: {pair.exposure_time}"

            z = channel_data[ys, xs].astype(int)
            w = w_lut[z]
            rows = k + sample_index

            # w * g(Zij) - w * ln(Ei) = w * ln(tj)
            A[rows, z] = w
            A[rows, n + sample_index] = -w
            b[rows] = w * np.log(pair.exposure_time)
            k += self.num_samples
        first = None

        # Fix the curve by setting its middle value to 1
        A[k, n // 2] = 1.0
        b[k] = 1.0
        k += 1

        # Smoothness equations; w(255) is zero so the triple ending past 255 stays empty
        for i in range(n - 2):
            w = self.smoothing * w_lut[i + 1]
            A[k, i] = w
            A[k, i + 1] = -2 * w
            A[k, i + 2] = w
            k += 1

        # Solve the system using least squares
        x = np.linalg.lstsq(A, b, rcond=None)[0]

        curve = ResponseCurve(np.exp(x[:n]))
        if not collect_samples:
            return curve

        irradiances = np.exp(x[n:])
        samples = [PixelSample(int(px), int(py), float(e))
                   for px, py, e in zip(xs, ys, irradiances)]
        return curve, samples

    def write_pixel_points(self, samples, stream):
        """Write (pixel value, fitted exposure) for every image and sample

        The fitted exposure of a sample is the exposure time times its
        recovered irradiance; plotted against the pixel value it shows how
        well the curve explains the data.
        """
        for pair in self.pairs:
            channel_data = load_image(pair.image)[:, :, self.channel]
            for sample in samples:
                pixel_value = int(channel_data[sample.y, sample.x])
                exposure = pair.exposure_time * sample.irradiance
                stream.write(f"{pixel_value}     {exposure:g}\n")
