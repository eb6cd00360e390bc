"""Image stack input, matte selection and result output."""
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Union

import cv2
import matplotlib.pyplot as plt
import numpy as np
from PIL import Image


logger = logging.getLogger(__name__)

# Pillow modes that are decoded to 8 bits per channel after a conversion
CONVERTIBLE_MODES = {'1': 'L', 'P': 'RGB', 'PA': 'RGBA', 'CMYK': 'RGB', 'YCbCr': 'RGB'}


@dataclass(order=True)
class ExposurePair:
    """An LDR image of the stack together with its exposure time

    image is either a path on disk, loaded lazily, or an already decoded
    uint8 array. Pairs sort by exposure time.
    """
    exposure_time: float
    image: Union[str, np.ndarray] = field(compare=False, repr=False)

    def __str__(self):
        name = self.image if isinstance(self.image, str) else 'array'
        return f"({name}, {self.exposure_time})"


def load_image(image):
    """Decode an image into a uint8 array of shape (height, width, channels)"""
    if isinstance(image, np.ndarray):
        data = image
    else:
        with Image.open(image) as img:
            if img.mode in CONVERTIBLE_MODES:
                img = img.convert(CONVERTIBLE_MODES[img.mode])
            data = np.array(img)

    if data.dtype != np.uint8:
        raise ValueError(f"Only 8-bit images are supported, got {data.dtype}")
    if data.ndim == 2:
        data = data[:, :, np.newaxis]
    if data.ndim != 3:
        raise ValueError(f"Invalid image shape: {data.shape}")
    return data


def make_exposure_pairs(files_and_times, folder=None):
    """Build a sorted stack from a flat [file_1, time_1, ..., file_N, time_N] list"""
    if len(files_and_times) % 2 != 0:
        raise ValueError(f"Invalid image exposure pair: {files_and_times[-1]}")

    pairs = []
    for path, time in zip(files_and_times[0::2], files_and_times[1::2]):
        if folder:
            path = os.path.join(folder, path)
        try:
            exposure_time = float(time)
        except ValueError:
            raise ValueError(f"Invalid exposure time for {path}: {time}") from None
        if exposure_time <= 0:
            raise ValueError(f"Exposure time must be positive for {path}: {time}")
        pairs.append(ExposurePair(exposure_time, path))

    return sorted(pairs)


def read_exposure_stack(data_folder):
    """Read the stack listed in exposure.json of a data folder

    exposure.json maps an image file name to its exposure time.
    """
    with open(os.path.join(data_folder, 'exposure.json')) as f:
        data = json.load(f)

    files_and_times = []
    for file, exposure_time in data.items():
        files_and_times += [file, exposure_time]

    return make_exposure_pairs(files_and_times, data_folder)


def check_images(pairs):
    """Make sure every image of the stack loads and has the same size

    Returns:
    --------
    (width, height, min_channels)
    """
    width = height = None
    min_channels = None
    for pair in pairs:
        img = load_image(pair.image)
        h, w, c = img.shape
        if width is None:
            width, height, min_channels = w, h, c
        elif (w, h) != (width, height):
            raise ValueError(f"Image {pair} is {w}x{h}, expected {width}x{height}")
        min_channels = min(min_channels, c)
    return width, height, min_channels


def all_pixels(width, height):
    """Coordinates (xs, ys) of every pixel"""
    ys, xs = np.mgrid[0:height, 0:width]
    return xs.ravel(), ys.ravel()


def pixels_from_matte(matte, width, height):
    """Coordinates (xs, ys) of the pure white pixels of a 3-channel matte"""
    img = load_image(matte)
    h, w, c = img.shape
    if (w, h) != (width, height) or c != 3:
        raise ValueError(f"Invalid matte dimensions: {w}x{h}x{c}, expected {width}x{height}x3")

    white = np.all(img == 255, axis=2)
    ys, xs = np.nonzero(white)
    if xs.size == 0:
        raise ValueError("No pixels were on in the matte")
    return xs, ys


def _imwrite(path, image):
    if not cv2.imwrite(path, image):
        raise OSError(f"Could not write image: {path}")


def save_hdr(path, hdr_image):
    """Save a float radiance map (.hdr, .pfm, .exr, .tif)"""
    _imwrite(path, hdr_image.astype(np.float32))


def save_counts(path, counts):
    """Save the per-pixel count of valid samples as an 8-bit image"""
    _imwrite(path, counts.astype(np.uint8))


def plot_response_curve(path, curve, channel=0):
    """Plot log exposure against pixel value"""
    color = ['r', 'g', 'b'][channel] if channel < 3 else 'k'
    plt.figure(figsize=(6, 4))
    plt.plot(curve.values, range(256), color=color)
    plt.title('Response Curve')
    plt.ylabel('Pixel Value')
    plt.xlabel('log Exposure')
    plt.tight_layout()
    plt.savefig(path)
    plt.close()
    logger.info(f"Wrote response curve plot to: {path}")
