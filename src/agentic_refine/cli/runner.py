"""Command-line entry point for agentic refinement runs."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from agentic_refine.core.config.config_store import ConfigStore, build_refinement_config
from agentic_refine.core.config.prompt_library import load_prompt_templates
from agentic_refine.core.media import load_artifact
from agentic_refine.core.models import ArtifactKind, GenerationIntent
from agentic_refine.core.services.iteration_orchestrator import IterationOrchestrator
from agentic_refine.core.services.progress import RefinementCallbacks
from agentic_refine.media_client import MediaClient
from agentic_refine.run_recorder import RunRecorder
from agentic_refine.vision_client import VisionClient


def build_run_parser(parser: Optional[argparse.ArgumentParser] = None) -> argparse.ArgumentParser:
    """Create or augment a parser with run-related arguments."""
    if parser is None:
        parser = argparse.ArgumentParser(
            description="Agentic Refine - generate, critique with a vision model, and re-plan until satisfied"
        )

    parser.add_argument('--prompt', type=str, required=True, help='What to create, or the edit to apply')
    parser.add_argument('--reference', type=str, action='append', default=[],
                        help='Reference image to edit (repeatable); enables edit mode')
    parser.add_argument('--max-iterations', type=int, help='Iteration budget (1-10, default 3)')
    parser.add_argument('--kind', choices=[k.value for k in ArtifactKind], help='Artifact kind (default image)')
    parser.add_argument('--planning-model', type=str, help='Model used to plan follow-up prompts')
    parser.add_argument('--config', type=str, help='Path to engine.yaml overrides')
    parser.add_argument('--defaults', type=str, default='defaults', help='Defaults directory (default: defaults)')
    parser.add_argument('--output', type=str, help='Directory to write run.json and artifacts')
    parser.add_argument('--dry-run', action='store_true', help="Validate configs and connections but don't run")
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    parser.add_argument('--log-file', type=str, help='Also write logs to this file')
    return parser


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> logging.Logger:
    """Setup application logging."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )
    return logging.getLogger("agentic_refine")


def run_refinement(args: argparse.Namespace) -> bool:
    """Execute a run using the provided arguments. Returns run success."""
    logger = setup_logging(args.verbose, args.log_file)

    config = ConfigStore(defaults_root=args.defaults).load(args.config)
    run_config = build_refinement_config(
        config,
        max_iterations=args.max_iterations,
        artifact_kind=args.kind,
        planning_model=args.planning_model,
    )
    prompts = load_prompt_templates(prompts_path=config.get("prompts_path"), defaults_root=Path(args.defaults))

    api_cfg = config["api"]
    media_cfg = config["media"]
    vision = VisionClient(
        model=run_config.verification_model,
        base_url=api_cfg.get("base_url"),
        api_key=api_cfg.get("api_key"),
        timeout=api_cfg.get("timeout"),
        retry_attempts=api_cfg.get("retry_attempts"),
        retry_delay=api_cfg.get("retry_delay"),
    )
    generator = MediaClient(
        base_url=media_cfg.get("base_url"),
        api_key=media_cfg.get("api_key") or api_cfg.get("api_key"),
        kind=run_config.artifact_kind,
        model=run_config.generation_target_model,
        timeout=media_cfg.get("timeout"),
        video_resolution=media_cfg.get("video_resolution"),
    )

    references = [load_artifact(path) for path in args.reference]
    intent = GenerationIntent(text=args.prompt, reference_artifacts=references)

    if args.dry_run:
        logger.info("DRY RUN - Validating configuration only")
        if not vision.test_connection():
            logger.error(f"Cannot reach vision API at {vision.base_url}")
            return False
        if not generator.test_connection():
            logger.error(f"Cannot reach generation API at {generator.base_url}")
            return False
        logger.info("Configuration valid!")
        return True

    callbacks = RefinementCallbacks(
        on_planning_complete=lambda n, prompt, strategy: logger.info(
            f"Next prompt for iteration {n} ({strategy.value}): {prompt}"
        ),
    )
    orchestrator = IterationOrchestrator(generator, vision, prompts, logger=logger)
    result = orchestrator.run(intent, run_config, callbacks=callbacks)

    status = "succeeded" if result.success else "exhausted its budget"
    logger.info(f"Run {status} after {result.total_iterations} iteration(s)")
    if args.output:
        run_file = RunRecorder(args.output).save(intent, result)
        logger.info(f"Saved run to {run_file}")
    return result.success


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_run_parser()
    args = parser.parse_args(argv)
    try:
        success = run_refinement(args)
    except KeyboardInterrupt:
        print("Cancelled", file=sys.stderr)
        sys.exit(130)
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Error: {exc}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)
    sys.exit(0 if success else 1)
