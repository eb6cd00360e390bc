"""Fuse an exposure stack into a radiance map.

Two estimators:

* debevec: weighted average of g(Z) - ln(t) over the stack, exponentiated
  (equation 6 of Debevec and Malik), for a tabulated response curve.
* linear: for a linear response the pixel value grows linearly with the
  exposure time, so the slope of a line fit of value against time is the
  radiance. Needs no curve at all.

Pixels without usable samples get 0 and are counted as bad pixels.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from hdrcal.image_io import load_image
from hdrcal.regression import fit_lines
from hdrcal.weighting import make_hat_lut


logger = logging.getLogger(__name__)


@dataclass
class FusionResult:
    hdr: np.ndarray
    bad_pixels: int
    num_pixels: int
    counts: Optional[np.ndarray] = None
    residuals: Optional[np.ndarray] = None


def gather_samples(pairs, pixels, channel=0):
    """Read the selected channel of every exposure at the given pixels

    Images are loaded one at a time; only their values at the pixels are kept.

    Returns:
    --------
    samples : uint8 array of shape (num_images, num_pixels)
    width, height : size of the stack
    """
    xs, ys = (np.asarray(p) for p in pixels)
    if xs.size == 0:
        raise ValueError("No pixels to fuse")

    samples = np.empty((len(pairs), xs.size), dtype=np.uint8)
    width = height = None
    for j, pair in enumerate(pairs):
        image = load_image(pair.image)
        h, w, c = image.shape
        if width is None:
            width, height = w, h
            assert xs.min() >= 0 and xs.max() < width, "Pixel x coordinate out of bounds"
            assert ys.min() >= 0 and ys.max() < height, "Pixel y coordinate out of bounds"
        elif (w, h) != (width, height):
            raise ValueError(f"Image {pair} is {w}x{h}, expected {width}x{height}")
        if c <= channel:
            raise ValueError(f"Image {pair} has {c} channel(s), channel {channel} requested")
        samples[j] = image[ys, xs, channel]

    return samples, width, height


def _to_grid(values, pixels, width, height, dtype, fill=0):
    xs, ys = pixels
    grid = np.full((height, width), fill, dtype=dtype)
    grid[ys, xs] = values
    return grid


def fuse_debevec(pairs, pixels, curve, valid_begin=0, valid_end=255, channel=0, want_counts=False):
    """Weighted log-domain radiance estimate with a tabulated response curve

    Parameters:
    -----------
    pairs : list of ExposurePair
    pixels : (xs, ys) integer arrays of the pixels to compute
    curve : ResponseCurve holding log exposure per pixel value
    valid_begin, valid_end : bounds of the hat weighting
    want_counts : also return the number of usable samples per pixel

    Returns:
    --------
    FusionResult
    """
    samples, width, height = gather_samples(pairs, pixels, channel)
    lut = make_hat_lut(valid_begin, valid_end)

    numerator = np.zeros(samples.shape[1])
    denominator = np.zeros(samples.shape[1])
    num_valid = np.zeros(samples.shape[1], dtype=np.int64)
    for pair, z in zip(pairs, samples):
        weight = lut[z]
        log_exposure_time = np.log(pair.exposure_time)
        numerator += weight * (curve(z) - log_exposure_time)
        denominator += weight
        num_valid += weight > 0

    good = num_valid > 0
    radiance = np.zeros(samples.shape[1])
    radiance[good] = np.exp(numerator[good] / denominator[good])
    bad_pixels = int(np.count_nonzero(~good))

    result = FusionResult(
        hdr=_to_grid(radiance, pixels, width, height, np.float32),
        bad_pixels=bad_pixels,
        num_pixels=samples.shape[1])
    if want_counts:
        result.counts = _to_grid(np.minimum(num_valid, 255), pixels, width, height, np.uint8)
    return result


def fuse_linear(pairs, pixels, valid_begin=0, valid_end=255, channel=0,
                want_counts=False, want_residuals=False):
    """Radiance estimate for a camera with a linear response

    Only samples strictly inside (valid_begin, valid_end) are used. With at
    least 2 of them, the slope of pixel value against exposure time is the
    radiance; a negative slope is written but counted as bad. The residual
    map costs a second pass over the stack and is only made on request.

    Returns:
    --------
    FusionResult
    """
    assert len(pairs) >= 2, f"At least 2 images are required, got {len(pairs)}"
    samples, width, height = gather_samples(pairs, pixels, channel)
    exposure_times = np.array([pair.exposure_time for pair in pairs], dtype=np.float64)
    valid = (samples > valid_begin) & (samples < valid_end)

    fit = fit_lines(exposure_times, samples, valid, compute_residual=want_residuals)
    slopes, counts = fit[0], fit[2]

    enough = counts >= 2
    radiance = np.where(enough, slopes, 0.0)
    bad_pixels = int(np.count_nonzero(~enough) + np.count_nonzero(radiance < 0))

    result = FusionResult(
        hdr=_to_grid(radiance, pixels, width, height, np.float32),
        bad_pixels=bad_pixels,
        num_pixels=samples.shape[1])
    if want_counts:
        result.counts = _to_grid(np.minimum(counts, 255), pixels, width, height, np.uint8)
    if want_residuals:
        residuals = np.where(enough, fit[3], -1.0)
        result.residuals = _to_grid(residuals, pixels, width, height, np.float32)
    return result
