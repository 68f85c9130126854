#!/usr/bin/env python3
"""
Agentic Refine - generate or edit an image/video, critique it with a vision
model, and re-plan the prompt until the result matches the request.
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from agentic_refine.cli.runner import main


if __name__ == "__main__":
    main()
