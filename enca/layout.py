"""Channel partition of a cell's state vector."""

from .constants import DEFAULT_CONSTANTS, NCAConstants


class ChannelLayout:
    """Index arithmetic over a cell's input and output channel vectors.

    Input vector (``inp_chs`` wide)::

        [ RO: 0..vis | RW: vis..2*vis | HID: 2*vis..inp_chs ]

    Output vector (``out_chs`` wide)::

        [ visible: 0..vis | hidden: vis..out_chs ]

    Neighbors only ever observe the previous step's committed values, so
    RO/RW can be read concurrently while RW/HID of the next state are
    being produced.
    """

    def __init__(self, constants: NCAConstants = DEFAULT_CONSTANTS):
        self.constants = constants
        vis = constants.vis_chs

        self.ro = slice(0, vis)
        self.rw = slice(vis, 2 * vis)
        self.hid = slice(2 * vis, constants.inp_chs)

        self.out_vis = slice(0, vis)
        self.out_hid = slice(vis, constants.out_chs)

    @property
    def inp_chs(self) -> int:
        return self.constants.inp_chs

    @property
    def out_chs(self) -> int:
        return self.constants.out_chs

    def input_index(self, channel: int) -> int:
        """Validate an index into the input channel vector."""
        if not 0 <= channel < self.inp_chs:
            raise IndexError(f"input channel {channel} outside [0, {self.inp_chs})")
        return channel

    def output_index(self, channel: int) -> int:
        """Validate an index into the output channel vector."""
        if not 0 <= channel < self.out_chs:
            raise IndexError(f"output channel {channel} outside [0, {self.out_chs})")
        return channel

    def role(self, channel: int) -> str:
        """Name the partition ("ro", "rw" or "hid") an input channel belongs to."""
        channel = self.input_index(channel)
        if channel < self.ro.stop:
            return "ro"
        if channel < self.rw.stop:
            return "rw"
        return "hid"

    def __repr__(self) -> str:
        return (
            f"ChannelLayout(ro={self.ro.start}..{self.ro.stop}, "
            f"rw={self.rw.start}..{self.rw.stop}, "
            f"hid={self.hid.start}..{self.hid.stop})"
        )
