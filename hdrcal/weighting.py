import numpy as np


WEIGHTING_FUNCTIONS = ['hat', 'hat_10']


def hat(z, lower=0, upper=255):
    """Hat weight for pixel values
    Zero outside (lower, upper), rising linearly to the middle of the range
    and falling back symmetrically. With the default bounds this is the
    weighting function of Debevec and Malik.
    """
    assert lower < upper, f"Invalid hat bounds: lower={lower}, upper={upper}"

    z = np.asarray(z, dtype=np.float64)
    z_min, z_max = float(lower), float(upper)
    w = np.where(z <= (z_min + z_max) / 2, z - z_min, z_max - z)
    w = np.where((z <= z_min) | (z >= z_max), 0.0, w)

    if w.ndim == 0:
        return float(w)
    return w


def make_hat_lut(lower=0, upper=255):
    """Sample the hat function once per 8-bit value"""
    return hat(np.arange(256), lower, upper)


def make_weight_lut(name: str):
    """Build the lookup table for a named weighting function"""
    assert name in WEIGHTING_FUNCTIONS, f"{name} not in available weighting functions: {WEIGHTING_FUNCTIONS}"

    if name == 'hat':
        return make_hat_lut()
    # Zero weight on the lowest and highest 10 values
    cut = 10
    return make_hat_lut(cut, 255 - cut)
