"""Command line entry point.

    fcsgen convert-datamine --datamine ROOT --data-out Data
    fcsgen make-ballistic --data Data --out Ballistic

Logs go to stderr (JSON lines by default); the run report goes to stdout.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from . import __version__
from .config import DRAG_MODELS, EMIT_MODES, TOLERANCE_MODES, EngineConfig, PipelineConfig
from .emit import write_text
from .errors import EmitIOError
from .logs import configure_logging
from .pipeline import RunReport, ballistic_status, convert_datamine, convert_status, make_ballistic
from .settings import Settings

logger = logging.getLogger("fcsgen.cli")


def _dump(obj) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False) + "\n"


def _finish(report: RunReport, report_path: Path | None) -> int:
    payload = report.as_dict()
    code = report.exit_code
    if report_path is not None:
        try:
            write_text(report_path, _dump(payload))
        except EmitIOError as e:
            logger.error(e.message, extra={"detail": e.detail})
            code = max(code, e.exit_code)
    sys.stdout.write(_dump(payload))
    return code


def _print_status(statuses) -> int:
    sys.stdout.write(_dump([s.as_dict() for s in statuses]))
    return 0


def convert_config(args: argparse.Namespace) -> PipelineConfig:
    data_out = Path(args.data_out) if args.data_out else None
    structured_out = Path(args.structured_out) if args.structured_out else data_out
    return PipelineConfig(
        datamine_root=Path(args.datamine),
        lang_path=Path(args.lang) if args.lang else None,
        language=args.language,
        data_dir=data_out,
        structured_dir=structured_out,
        emit=args.emit,
        vehicles=tuple(args.vehicles or ("*",)),
        threads=args.threads,
        strict=args.strict,
        force=args.force,
        cache_filename=args.cache_filename,
    )


def ballistic_config(args: argparse.Namespace) -> PipelineConfig:
    out = Path(args.out)
    return PipelineConfig(
        data_dir=Path(args.data),
        ballistic_dir=out,
        structured_dir=Path(args.structured_out) if args.structured_out else out,
        emit=args.emit,
        vehicles=tuple(args.vehicles or ("*",)),
        threads=args.threads,
        strict=args.strict,
        force=args.force,
        golden_dir=Path(args.golden) if args.golden else None,
        cache_filename=args.cache_filename,
        engine=EngineConfig(
            drag_model=args.drag_model,
            armor_angle_deg=args.armor_angle,
            armor_quality=args.armor_quality,
            tolerance=args.tolerance,
        ),
    )


def cmd_convert_datamine(args: argparse.Namespace, config: PipelineConfig) -> int:
    if args.status:
        return _print_status(convert_status(config))
    return _finish(convert_datamine(config), Path(args.report) if args.report else None)


def cmd_make_ballistic(args: argparse.Namespace, config: PipelineConfig) -> int:
    if args.status:
        return _print_status(ballistic_status(config))
    return _finish(make_ballistic(config), Path(args.report) if args.report else None)


def _add_common(p: argparse.ArgumentParser, settings: Settings) -> None:
    p.add_argument("--vehicles", nargs="+", default=None, metavar="GLOB", help="Vehicle id patterns (default: all)")
    p.add_argument("--emit", choices=EMIT_MODES, default="legacy")
    p.add_argument("--threads", type=int, default=settings.THREADS)
    p.add_argument("--strict", action="store_true", help="Warnings fail the vehicle; stop after the first failure")
    p.add_argument("--force", action="store_true", help="Ignore the cache and rebuild everything")
    p.add_argument("--status", action="store_true", help="Only report which vehicles are stale, then exit")
    p.add_argument("--report", type=str, default=None, help="Also write the run report to this file")
    p.add_argument("--cache-filename", type=str, default=settings.CACHE_FILENAME)


def build_parser(settings: Settings | None = None) -> argparse.ArgumentParser:
    settings = settings or Settings()
    p = argparse.ArgumentParser(prog="fcsgen", description="Fire-control data generator")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--log-level", type=str, default=settings.LOG_LEVEL)
    p.add_argument("--log-format", choices=["json", "text"], default=settings.LOG_FORMAT)
    sub = p.add_subparsers(dest="cmd", required=True)

    p_conv = sub.add_parser("convert-datamine", help="Datamine -> vehicle records")
    p_conv.add_argument("--datamine", type=str, required=True, help="Root of the extracted datamine")
    p_conv.add_argument("--lang", type=str, default=None, help="Language CSV (default: inside the datamine)")
    p_conv.add_argument("--language", type=str, default=settings.LANGUAGE)
    p_conv.add_argument("--data-out", type=str, default="Data")
    p_conv.add_argument("--structured-out", type=str, default=None, help="Default: same as --data-out")
    _add_common(p_conv, settings)
    p_conv.set_defaults(func=cmd_convert_datamine, make_config=convert_config)

    p_ball = sub.add_parser("make-ballistic", help="Vehicle records -> ballistic tables")
    p_ball.add_argument("--data", type=str, required=True, help="Directory of vehicle records")
    p_ball.add_argument("--out", type=str, required=True, help="Ballistic table directory")
    p_ball.add_argument("--structured-out", type=str, default=None, help="Default: same as --out")
    p_ball.add_argument("--tolerance", choices=TOLERANCE_MODES, default="strict")
    p_ball.add_argument("--golden", type=str, default=None, help="Golden Ballistic/ tree to compare against")
    p_ball.add_argument("--drag-model", choices=DRAG_MODELS, default="exponential")
    p_ball.add_argument("--armor-angle", type=float, default=0.0, help="Plate angle from normal, degrees")
    p_ball.add_argument("--armor-quality", type=float, default=1.0, help="Plate hardness relative to RHA")
    _add_common(p_ball, settings)
    p_ball.set_defaults(func=cmd_make_ballistic, make_config=ballistic_config)

    return p


def main(argv: list[str] | None = None) -> int:
    settings = Settings()
    parser = build_parser(settings)
    args = parser.parse_args(argv)
    try:
        configure_logging(args.log_level, args.log_format)
        config = args.make_config(args)
    except ValueError as e:
        parser.error(str(e))
    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())
