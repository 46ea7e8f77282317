"""ENCA: data layout and update kernel of a neural cellular automaton."""

__version__ = "0.1.0"

from .constants import (
    NCAConstants, DEFAULT_CONSTANTS, NHBD, NHBD_LEN, NHBD_CENTER, VIS_CHS, HID_CHS,
    INP_CHS, OUT_CHS, INP_DIM, N_WEIGHTS, N_BIASES, N_PARAMS, MAX_GRID_SIZE,
)
from .color import ENCODING, N_COLORS, encode_colors, decode_color
from .errors import EncaError, ConfigurationError, BoundsError, NumericDivergence
from .layout import ChannelLayout
from .neighborhood import BoundaryPolicy, NeighborhoodTopology
from .params import ParameterBuffer
from .bounds import GridBounds
from .kernel import UpdateKernel
from .substrate import Substrate
from .executor import NCAExecutor, EnsembleExecutor, PopulationExecutor, TerminationReason

__all__ = [
    'NCAConstants', 'DEFAULT_CONSTANTS', 'NHBD', 'NHBD_LEN', 'NHBD_CENTER', 'VIS_CHS', 'HID_CHS',
    'INP_CHS', 'OUT_CHS', 'INP_DIM', 'N_WEIGHTS', 'N_BIASES', 'N_PARAMS', 'MAX_GRID_SIZE',
    'EncaError', 'ConfigurationError', 'BoundsError', 'NumericDivergence',
    'ENCODING', 'N_COLORS', 'encode_colors', 'decode_color',
    'ChannelLayout', 'BoundaryPolicy', 'NeighborhoodTopology', 'ParameterBuffer',
    'GridBounds', 'UpdateKernel', 'Substrate',
    'NCAExecutor', 'EnsembleExecutor', 'PopulationExecutor', 'TerminationReason',
    '__version__',
]
