from hdrcal.ctf_solver import PixelSample, ResponseSolver
from hdrcal.hdr_fusion import FusionResult, fuse_debevec, fuse_linear
from hdrcal.image_io import ExposurePair
from hdrcal.regression import Line, fit_line, fit_lines
from hdrcal.response_curve import ResponseCurve
from hdrcal.weighting import hat, make_hat_lut, make_weight_lut


HDR_METHODS = ['debevec', 'linear']


def generate_hdr(method: str, pairs, pixels, curve=None, valid_begin=0, valid_end=255, channel=0,
                 want_counts=False, want_residuals=False):
    """Fuse an exposure stack using the specified method

    'debevec' needs a tabulated response curve; 'linear' assumes a linear
    camera response and ignores the curve.
    """
    assert method in HDR_METHODS, f"{method} not in available HDR methods: {HDR_METHODS}"

    if method == 'debevec':
        assert curve is not None, "The debevec method needs a response curve"
        return fuse_debevec(pairs, pixels, curve, valid_begin, valid_end, channel, want_counts)
    return fuse_linear(pairs, pixels, valid_begin, valid_end, channel, want_counts, want_residuals)
