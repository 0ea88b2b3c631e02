from __future__ import annotations

# Window
WINDOW_WIDTH = 1280
WINDOW_HEIGHT = 720
FPS_CAP = 0  # 0 = uncapped

# App
APP_VERSION = "0.4.0"

# Noise
DEFAULT_SEED = 1
DEFAULT_NOISE_SCALE = 50.0
DEFAULT_OCTAVES = 4
DEFAULT_PERSISTENCE = 0.5
DEFAULT_LACUNARITY = 2.0
DEFAULT_NORMALIZE = "global"  # independently generated chunks must match at seams
DEFAULT_BASIS = "perlin"
MIN_NOISE_SCALE = 1e-4
OCTAVE_OFFSET_RANGE = 100000

# Terrain
DEFAULT_CHUNK_SIZE = 239  # interior samples per side; (S+1) divisible by every LOD stride up to 12
DEFAULT_FLAT_CHUNK_SIZE = 95  # flat shading explodes vertices, keep chunks small
DEFAULT_HEIGHT_MULTIPLIER = 30.0
DEFAULT_UNIFORM_SCALE = 2.0
DEFAULT_FALLOFF = False
DEFAULT_FLAT_SHADING = False

# Falloff curve shape
FALLOFF_A = 3.0
FALLOFF_B = 2.2

# Streaming
VIEWER_MOVE_THRESHOLD = 25.0  # world units (unscaled) before the visible set is recomputed
# (lod, visible distance threshold, used for collision); last threshold = max view distance
DEFAULT_LODS = (
    (0, 200.0, True),
    (1, 400.0, False),
    (4, 600.0, False),
)
DEFAULT_MAX_WORKERS = 0  # 0 = one short-lived thread per unit of work

# Flight camera
DEFAULT_HEIGHT_OFFSET = 25.0
HEIGHT_SMOOTH_K = 6.0  # larger = faster follow
DEFAULT_MAX_SPEED = 60.0
DEFAULT_ACCEL = 12.0
DEFAULT_BRAKE = 18.0
DEFAULT_DRAG = 0.18
DEFAULT_MAX_YAW_RATE = 1.2
DEFAULT_YAW_ACCEL = 2.2
DEFAULT_YAW_DRAG = 1.6
DEFAULT_INPUT_SMOOTH_K = 3.5

# Rendering
FOV_DEG = 70.0
NEAR = 0.1
FAR = 2000.0
FOG_START = 700.0
FOG_END = 1100.0
LIGHT_DIR = (0.35, 0.9, 0.2)  # will be normalized in shader
WARMUP_TIMEOUT_S = 2.0
