import argparse
import logging
import sys

import numpy as np

from hdrcal import ResponseSolver
from hdrcal.image_io import make_exposure_pairs, plot_response_curve, read_exposure_stack
from hdrcal.weighting import WEIGHTING_FUNCTIONS


PROG_NAME = "solve_ctf.py"
DFLT_NUM_SAMPS = 500
DFLT_LAMBDA = 3.0
DFLT_CHAN = 0

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
        description='Solve for the camera transfer function of an exposure stack')
    parser.add_argument('images', nargs='*', metavar='FILE TIME',
                        help='Image exposure pairs: path_1 time_1 ... path_N time_N')
    parser.add_argument('--data_folder', type=str, default=None,
                        help='Folder containing images and exposure.json')
    parser.add_argument('--in_folder', type=str, default=None,
                        help='Folder the images given on the command line reside in')
    parser.add_argument('--num_samps', type=int, default=DFLT_NUM_SAMPS,
                        help='Number of image samples to take')
    parser.add_argument('--lambda', dest='smoothing', type=float, default=DFLT_LAMBDA,
                        help='Smoothing coefficient')
    parser.add_argument('--channel', type=int, default=DFLT_CHAN,
                        help='Color channel to solve for')
    parser.add_argument('--weight_func', type=str, default='hat', choices=WEIGHTING_FUNCTIONS,
                        help='"hat" is the triangle filter of Debevec and Malik; '
                             '"hat_10" puts 0 weight on the upper and lower 10 values')
    parser.add_argument('--seed', type=int, default=None,
                        help='Seed for the pixel sampling')
    parser.add_argument('--out_file', type=str, default='-',
                        help='File to write the CTF to, "-" for stdout')
    parser.add_argument('--out_file_points', type=str, default=None,
                        help='File to write the raw points used in the solve to')
    parser.add_argument('--plot', type=str, default=None,
                        help='Save a plot of the recovered curve')
    parser.add_argument('--silent', action='store_true',
                        help='Only write the CTF and report errors')
    parser.add_argument('--debug', action='store_true',
                        help='Print debug information')
    return parser.parse_args(argv)


def run_process(args):
    if args.data_folder:
        pairs = read_exposure_stack(args.data_folder)
    else:
        pairs = make_exposure_pairs(args.images, args.in_folder)
    if len(pairs) < 2:
        logger.error("At least 2 images are required")
        return 1

    solver = ResponseSolver(pairs, num_samples=args.num_samps, smoothing=args.smoothing,
                            channel=args.channel, weighting=args.weight_func,
                            rng=np.random.default_rng(args.seed))
    logger.info(f"Starting linear solve for CTF creation: {solver}")
    logger.info("Writing curve to " + ("stdout" if args.out_file == '-' else args.out_file))

    curve, samples = solver.solve(collect_samples=True)

    if args.out_file == '-':
        curve.write(sys.stdout)
    else:
        curve.save(args.out_file)

    if args.out_file_points:
        with open(args.out_file_points, 'w') as f:
            solver.write_pixel_points(samples, f)
        logger.info(f"Wrote pixel points to: {args.out_file_points}")

    if args.plot:
        plot_response_curve(args.plot, curve.log(), args.channel)
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
        logger.error(f"Could not solve for the CTF: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
