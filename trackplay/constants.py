"""Fixed dimensions, value ranges and virtual defaults for the tracker grid.

Every table in the composition is fixed-capacity.  Cell values are stored as
``Optional[int]`` in memory; the on-disk save format uses ``-1`` for "unset"
(see :mod:`trackplay.savefile`).
"""

NUM_TRACKS = 8
SONG_ROWS = 16
CHAIN_ROWS = 16
PHRASE_ROWS = 255

# Chain pools, phrase pools and every settings table hold this many entries,
# addressed by a hex byte 00-FE.
TABLE_SIZE = 255
ARPEGGIO_ROWS = 16

# Tracks 0-3 start as Instrument tracks, 4-7 as Sampler tracks.
FIRST_SAMPLER_TRACK = 4

NOTE_MIN = 0
NOTE_MAX = 127

# Hex cells hold 00-FE.
CELL_MAX = 254

BPM_MIN = 1.0
BPM_MAX = 999.0
PPQ_MIN = 1
PPQ_MAX = 32

DEFAULT_BPM = 120.0
DEFAULT_PPQ = 4

# Virtual defaults: "--" in these columns behaves as the value below.
VIRTUAL_PITCH = 0x80
VIRTUAL_GATE = 0x80
VIRTUAL_PAN = 0x80
VIRTUAL_VELOCITY = 0x40

# Sample files with no analysed metadata.
DEFAULT_FILE_BPM = 120.0
DEFAULT_FILE_SLICES = 16

DEFAULT_TRACK_LEVEL_DB = -6.0

# Filter cutoffs when the column is unset (Hz).
LOW_PASS_OPEN = 20000.0
HIGH_PASS_OPEN = 20.0

# log10(20) and log10(20000)
FILTER_LOG_MIN = 1.301
FILTER_LOG_MAX = 4.301

# Attack / release exponential range (seconds); decay is linear 0-30 s.
ENVELOPE_MIN_SECONDS = 0.02
ENVELOPE_MAX_SECONDS = 30.0
