"""Command-line wrapper around :func:`brandmotion.pipeline.brand_video`."""

import argparse
import asyncio
import sys
import time
import traceback
from pathlib import Path

from tqdm import tqdm

from brandmotion.components.config import resolve_config
from brandmotion.exceptions import PipelineError, ValidationError
from brandmotion.job import BrandingRequest
from brandmotion.pipeline import brand_video
from brandmotion.utils.logger import KVLogger, get_logger, setup_logging, shutdown_logging

STAGE_LABELS = {
    "scale_logo": "scale logo",
    "overlay_logo": "overlay logo",
    "overlay_name_card": "overlay name card",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Overlay a brand logo and a customer name card onto a testimonial video."
    )
    parser.add_argument("video", type=str, help="Path to the raw testimonial video.")
    parser.add_argument("logo", type=str, help="Path to the brand logo image.")
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Output path. Defaults to 'output/<video>_branded_YYYYMMDD_HHMMSS.<container>'.",
    )
    parser.add_argument("--name", type=str, default="", help="Customer name.")
    parser.add_argument("--role", type=str, default="", help="Customer role.")
    parser.add_argument("--color", type=str, default="#000000", help="Brand color, e.g. '#FF5733'.")
    parser.add_argument(
        "--position",
        type=str,
        default="top-right",
        help="Logo corner: top-left, top-right, bottom-left or bottom-right.",
    )
    parser.add_argument(
        "--size", type=str, default="medium", help="Logo size: small, medium or large."
    )
    parser.add_argument("--config", type=str, default=None, help="Optional YAML config file.")
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="If set, outputs logs in machine-readable JSON format.",
    )
    parser.add_argument(
        "--log-kv",
        action="store_true",
        help="If set, outputs logs in human-readable Key-Value pair format.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser


class StageProgressBar:
    """tqdm bar that starts over whenever the job reports a new stage."""

    def __init__(self) -> None:
        self.stage = -1
        self.bar = None
        self.last = 0

    def start_stage(self, index: int, name: str) -> None:
        self.close()
        self.stage = index
        self.bar = tqdm(total=100, desc=STAGE_LABELS.get(name, name), unit="%", leave=True)
        self.last = 0

    def update(self, percent: int) -> None:
        if self.bar is None:
            return
        self.bar.update(percent - self.last)
        self.last = percent

    def close(self) -> None:
        if self.bar is not None:
            self.bar.close()
            self.bar = None


async def main() -> None:
    args = build_parser().parse_args()
    setup_logging(log_json=args.log_json, debug_mode=args.debug, log_kv=args.log_kv)
    logger: KVLogger = get_logger()

    start_time = time.time()
    progress = StageProgressBar()
    try:
        config = resolve_config(args.config)
        container = config["output"]["container"]
        if not args.output:
            ts = time.strftime("%Y%m%d_%H%M%S")
            args.output = f"output/{Path(args.video).stem}_branded_{ts}.{container}"

        request = BrandingRequest(
            video=Path(args.video).read_bytes(),
            logo=Path(args.logo).read_bytes(),
            customer_name=args.name,
            customer_role=args.role,
            brand_color=args.color,
            logo_position=args.position,
            logo_size=args.size,
        )
        logger.kv_info("Video branding started.", kv_pairs={"Event": "BrandingStart"})
        handle = await brand_video(
            request,
            on_progress=progress.update,
            on_stage=progress.start_stage,
            on_log=lambda line: logger.debug(line),
            config=config,
        )
        progress.close()
        with handle:
            saved = handle.save(args.output)
        elapsed_time = time.time() - start_time
        logger.kv_info(
            f"Saved branded video to {saved} in {elapsed_time:.2f} seconds.",
            kv_pairs={"Event": "BrandingSuccess", "Duration": f"{elapsed_time:.2f}s"},
        )
    except ValidationError as e:
        progress.close()
        logger.kv_error(
            f"Validation Error: {e.message}",
            kv_pairs={
                "Event": "ValidationError",
                "Message": e.message,
                "Line": e.line_number,
                "Column": e.column_number,
            },
        )
        sys.exit(1)
    except (PipelineError, OSError) as e:
        progress.close()
        logger.kv_error(
            f"Branding failed: {e}",
            kv_pairs={"Event": "BrandingError", "Message": str(e)},
        )
        sys.exit(1)
    except Exception as e:
        progress.close()
        logger.kv_error(
            f"An unexpected error occurred during branding: {e}",
            kv_pairs={
                "Event": "UnexpectedError",
                "Message": str(e),
                "Traceback": traceback.format_exc(),
            },
        )
        sys.exit(1)
    finally:
        shutdown_logging()


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
