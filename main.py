import argparse
import logging
import os
import sys

from hdrcal import ResponseCurve, generate_hdr
from hdrcal.image_io import (
    all_pixels, check_images, make_exposure_pairs, pixels_from_matte, read_exposure_stack,
    save_counts, save_hdr)


PROG_NAME = "main.py"

logging.basicConfig(format="%(message)s", stream=sys.stderr)
logger = logging.getLogger(PROG_NAME)
logger.setLevel(logging.INFO)


def set_logging_level(level):
    """Sets the logging level of the program and the library"""
    logger.setLevel(level)
    logging.getLogger("hdrcal").setLevel(level)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog=PROG_NAME,
        description='Make an HDR radiance map from a stack of LDR exposures')
    strategy = parser.add_mutually_exclusive_group(required=True)
    strategy.add_argument('--ctf_linear', action='store_true',
                          help='Assume a linear camera transfer function')
    strategy.add_argument('--ctf_tabular', type=str, metavar='CTF_FILE',
                          help='Use the tabulated camera transfer function in CTF_FILE')
    parser.add_argument('--ctf_exponential', action='store_true',
                        help='CTF_FILE holds exponentiated values, as written by solve_ctf.py')
    parser.add_argument('--data_folder', type=str, default=None,
                        help='Folder containing images and exposure.json')
    parser.add_argument('--in_folder', type=str, default=None,
                        help='Folder the images given on the command line reside in')
    parser.add_argument('images', nargs='*', metavar='FILE TIME',
                        help='Image exposure pairs: path_1 time_1 ... path_N time_N')
    parser.add_argument('--out_file', type=str, default='results/hdr_image.pfm',
                        help='Path (including extension) of the output HDR image')
    parser.add_argument('--matte', type=str, default=None,
                        help='Matte image; non-white pixels in the matte are ignored')
    parser.add_argument('--toe_size', type=int, default=0,
                        help="Don't include pixel values in the range [0, X] in the fit")
    parser.add_argument('--shoulder_size', type=int, default=0,
                        help="Don't include pixel values in the range [255-X, 255] in the fit")
    parser.add_argument('--channel', type=int, default=0,
                        help='Color channel to process')
    parser.add_argument('--out_n', type=str, default=None,
                        help='Write an image of the number of valid samples per pixel')
    parser.add_argument('--out_r', type=str, default=None,
                        help='Write an image of the fit residual per pixel (linear CTF only)')
    parser.add_argument('--silent', action='store_true',
                        help='Only report warnings and errors')
    parser.add_argument('--debug', action='store_true',
                        help='Print debug information')
    return parser.parse_args(argv)


def read_stack(data_folder, in_folder, images):
    """Read the exposure stack from exposure.json or the command line"""
    if data_folder:
        return read_exposure_stack(data_folder)
    return make_exposure_pairs(images, in_folder)


def write_results(result, out_file, out_n=None, out_r=None):
    out_dir = os.path.dirname(out_file)
    if out_dir and not os.path.exists(out_dir):
        os.makedirs(out_dir)

    save_hdr(out_file, result.hdr)
    logger.info(f"Wrote HDR result to: {out_file}")
    if out_n:
        save_counts(out_n, result.counts)
        logger.info(f"Wrote N-samples visualization to: {out_n}")
    if out_r and result.residuals is not None:
        save_hdr(out_r, result.residuals)
        logger.info(f"Wrote residual visualization to: {out_r}")


def run_process(args):
    for size, name in [(args.toe_size, 'toe'), (args.shoulder_size, 'shoulder')]:
        if size < 0 or size > 255:
            logger.error(f"Out of range {name} size: {size}")
            return 1
    valid_begin = args.toe_size
    valid_end = 255 - args.shoulder_size
    if valid_begin >= valid_end:
        logger.error(f"Empty valid pixel range [{valid_begin}, {valid_end}]")
        return 1

    pairs = read_stack(args.data_folder, args.in_folder, args.images)
    if len(pairs) < 2:
        logger.error("At least 2 images are required")
        return 1

    logger.info("Command line option summary:")
    logger.info(f"\tOutput HDR: {args.out_file}")
    logger.info(f"\tValid pixel range [{valid_begin}, {valid_end}]")
    logger.info("\tCTF is: " + ("assumed to be linear." if args.ctf_linear else args.ctf_tabular))
    logger.info(f"\tMatte image: {args.matte}" if args.matte else "\tNot using a matte image.")
    logger.info(f"\t{len(pairs)} images: " + " ".join(str(pair) for pair in pairs))

    logger.info("Checking images...")
    width, height, num_channels = check_images(pairs)
    if args.channel >= num_channels:
        logger.error(f"Channel {args.channel} requested, but images have {num_channels} channel(s)")
        return 1

    curve = None
    if args.ctf_tabular:
        curve = ResponseCurve.load(args.ctf_tabular)
        if args.ctf_exponential:
            curve = curve.log()

    if args.matte:
        pixels = pixels_from_matte(args.matte, width, height)
    else:
        pixels = all_pixels(width, height)

    if args.out_r and not args.ctf_linear:
        logger.warning("Residual images are only made for a linear CTF, ignoring --out_r")

    method = 'linear' if args.ctf_linear else 'debevec'
    logger.info(f"Generating HDR image using the {method} method...")
    result = generate_hdr(
        method, pairs, pixels, curve=curve, valid_begin=valid_begin, valid_end=valid_end,
        channel=args.channel, want_counts=bool(args.out_n), want_residuals=bool(args.out_r))

    if result.bad_pixels > 0:
        percent = result.bad_pixels / result.num_pixels * 100
        logger.warning(f"Found {result.bad_pixels} error pixels when making the HDR "
                       f"({percent:.2f}% of the pixels are invalid)")

    logger.info("Saving results...")
    write_results(result, args.out_file, args.out_n, args.out_r)
    return 0


def main(argv=None):
    args = parse_args(argv)
    set_logging_level(logging.INFO)
    if args.silent:
        set_logging_level(logging.WARNING)
    if args.debug:
        set_logging_level(logging.DEBUG)

    try:
        return run_process(args)
    except (OSError, ValueError) as e:
        logger.error(f"Could not make the HDR image: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
