"""Closed-form least squares line fitting.

`fit_line` fits one set of points. `fit_lines` evaluates the same normal
equations for many independent point sets at once, one per column of an
(images x pixels) grid, which is what the linear-response HDR path needs.
"""
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Line:
    """y = slope * x + intercept"""
    slope: float = 1.0
    intercept: float = 0.0

    def __call__(self, x):
        return self.slope * x + self.intercept

    def __str__(self):
        return f"y = {self.slope}x + {self.intercept}"


def fit_line(points, compute_residual=False):
    """Fit a line through N >= 2 points in R^2

    Parameters:
    -----------
    points : array-like of shape (N, 2)
        (x, y) pairs. The x values must not all be equal.
    compute_residual : bool
        Also return the sum of squared vertical errors. This costs a second
        pass over the points, so it is skipped unless asked for.

    Returns:
    --------
    Line, or (Line, residual) when compute_residual is set
    """
    points = np.asarray(points, dtype=np.float64)
    assert points.ndim == 2 and points.shape[1] == 2, "points must have shape (N, 2)"
    n = points.shape[0]
    assert n >= 2, f"At least 2 points are needed to fit a line, got {n}"

    x = points[:, 0]
    y = points[:, 1]
    x_sum = x.sum()
    y_sum = y.sum()
    xy_sum = np.dot(x, y)
    x_sq_sum = np.dot(x, x)

    m = (n * xy_sum - x_sum * y_sum) / (n * x_sq_sum - x_sum * x_sum)
    b = (y_sum - m * x_sum) / n
    line = Line(float(m), float(b))

    if not compute_residual:
        return line

    residual = float(np.sum((y - line(x)) ** 2))
    return line, residual


def fit_lines(xs, ys, mask=None, compute_residual=False):
    """Fit one line per column of ys

    Row r of ys holds the y values measured at x = xs[r], so every column is
    an independent point set sharing the same x positions. The sums are
    accumulated one row at a time to keep temporaries at the size of a row.

    Parameters:
    -----------
    xs : array-like of shape (M,)
        x value of each row, e.g. the exposure times of a stack.
    ys : array-like of shape (M, P)
        y values; column p holds the points of the p-th fit.
    mask : bool array of shape (M, P), optional
        Which entries take part in each fit. All of them by default.
    compute_residual : bool
        Also compute the per-column sum of squared errors (second pass).

    Returns:
    --------
    slopes, intercepts, counts[, residuals]
        Columns with fewer than 2 points get NaN slope, intercept and residual.
    """
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys)
    assert ys.ndim == 2 and xs.shape == (ys.shape[0],), "xs must hold one value per row of ys"
    if mask is None:
        mask = np.ones(ys.shape, dtype=bool)

    num_fits = ys.shape[1]
    counts = np.zeros(num_fits, dtype=np.int64)
    x_sum = np.zeros(num_fits)
    y_sum = np.zeros(num_fits)
    xy_sum = np.zeros(num_fits)
    x_sq_sum = np.zeros(num_fits)

    for x, row, valid in zip(xs, ys, mask):
        y = np.where(valid, row, 0).astype(np.float64)
        counts += valid
        x_sum += valid * x
        y_sum += y
        xy_sum += x * y
        x_sq_sum += valid * (x * x)

    enough = counts >= 2
    with np.errstate(divide='ignore', invalid='ignore'):
        slopes = (counts * xy_sum - x_sum * y_sum) / (counts * x_sq_sum - x_sum * x_sum)
        slopes = np.where(enough, slopes, np.nan)
        intercepts = np.where(enough, (y_sum - slopes * x_sum) / counts, np.nan)

    if not compute_residual:
        return slopes, intercepts, counts

    residuals = np.zeros(num_fits)
    for x, row, valid in zip(xs, ys, mask):
        error = row - (slopes * x + intercepts)
        residuals += np.where(valid, error * error, 0.0)
    residuals[~enough] = np.nan
    return slopes, intercepts, counts, residuals
