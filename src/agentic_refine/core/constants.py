"""Constants used throughout the Agentic Refine codebase."""

# Iteration budget
DEFAULT_MAX_ITERATIONS = 3
MIN_ITERATIONS = 1
MAX_ITERATIONS = 10

# Prompt planning
PLANNER_MAX_WORDS = 60  # Soft cap requested from the planning model
PLANNER_HARD_MAX_WORDS = 120  # Responses longer than this are truncated
MAX_EXTRACTED_SUBJECTS = 10  # Larger prose counts are described as a crowd
PLANNER_REFUSAL_MARKERS = (
    "cannot",
    "can't",
    "unable",
    "sorry",
    "apologize",
    "apologise",
    "as an ai",
    "i won't",
)
QUALITY_FALLBACK_SUFFIX = "Enhance visual quality: improve lighting, composition, detail, color."

# Preservation instructions for edit runs
PRESERVATION_SUFFIX = (
    "Preserve original clothing, hair, pose, and background exactly. "
    "Do not alter other elements."
)

# Reasoning span markers in model output
THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"
THINK_PREAMBLE_MAX_CHARS = 256  # Leading text held back while waiting for a <think> span

# Image processing
IMAGE_MAX_SIZE = 1024  # Max dimension for base64 encoding

# Vision / narration transport
API_DEFAULT_BASE_URL = "https://llm.chutes.ai/v1"
API_DEFAULT_TIMEOUT = 180
API_RETRY_ATTEMPTS = 2
API_RETRY_DELAY = 5
API_KEY_ENV = "REFINE_API_KEY"
RATE_LIMIT_MAX_WAIT = 300

# Generation transport
MEDIA_DEFAULT_BASE_URL = "https://image.chutes.ai/v1"
MEDIA_DEFAULT_TIMEOUT = 300
VIDEO_DEFAULT_RESOLUTION = "832*480"

# Default models
DEFAULT_GENERATION_MODEL = "flux-dev"
DEFAULT_VERIFICATION_MODEL = "Qwen/Qwen2.5-VL-32B-Instruct"
