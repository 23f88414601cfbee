"""
Command-line interface for the ffconvert conversion runtime
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from . import __version__
from .capabilities import capability_names
from .client import ConverterClient
from .config import DEFAULT_AUDIO_ENCODER, DEFAULT_OUTPUT_FORMAT, DEFAULT_VIDEO_ENCODER
from .exceptions import FFConvertError
from .formatting import (
    print_check, print_error, print_header, print_info, print_metrics,
    print_rows, print_warning
)
from .logging import configure_logging
from .models import CodecType, ConvertOptions, EngineVariant
from .utils import format_size, output_filename

logger = logging.getLogger("ffconvert")

CODEC_TYPE_CHOICES = {
    "video": CodecType.VIDEO,
    "audio": CodecType.AUDIO,
    "subtitle": CodecType.SUBTITLE,
}

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="ffconvert",
        description="Isolated media conversion using ffmpeg engines"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Set logging level (default from config)"
    )
    parser.add_argument(
        "--no-log-file",
        dest="file_logging",
        action="store_false",
        help="Log to the console only"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    convert = subparsers.add_parser(
        "convert", help="Convert a media file",
        usage="%(prog)s INPUT [options] [-- ENGINE_OPTION ...]"
    )
    convert.add_argument("input", type=Path, help="Input media file")
    convert.add_argument("-o", "--output", type=Path, default=None,
                         help="Output file (default: input name with the container's extension)")
    convert.add_argument("-f", "--format", dest="output_format", default=DEFAULT_OUTPUT_FORMAT,
                         help="Output container (default: %(default)s)")
    convert.add_argument("--vcodec", dest="video_encoder", default=DEFAULT_VIDEO_ENCODER,
                         help="Video encoder (default: %(default)s)")
    convert.add_argument("--acodec", dest="audio_encoder", default=DEFAULT_AUDIO_ENCODER,
                         help="Audio encoder (default: %(default)s)")
    convert.add_argument("--fallback", action="store_true",
                         help="Run on the fallback engine build")
    convert.add_argument("--verbose-engine", dest="verbose", action="store_true",
                         help="Let the engine log verbosely")
    convert.add_argument("--repeat", type=int, default=1,
                         help="Convert the input this many times (default: %(default)s)")
    convert.add_argument("--no-output", dest="write_output", action="store_false",
                         help="Do not write the converted file")

    encoders = subparsers.add_parser("encoders", help="List available encoders")
    encoders.add_argument("--type", dest="codec_type", choices=sorted(CODEC_TYPE_CHOICES),
                          default=None, help="Only list encoders of this media type")
    encoders.add_argument("--fallback", action="store_true",
                          help="Query the fallback engine build")

    muxers = subparsers.add_parser("muxers", help="List available output containers")
    muxers.add_argument("--fallback", action="store_true",
                        help="Query the fallback engine build")

    options = subparsers.add_parser("options", help="List options of an encoder")
    options.add_argument("encoder", help="Encoder name")
    options.add_argument("--fallback", action="store_true",
                         help="Query the fallback engine build")

    # Everything after "--" goes to the engine untouched
    argv = list(sys.argv[1:] if argv is None else argv)
    extra = []
    if "--" in argv:
        split = argv.index("--")
        argv, extra = argv[:split], argv[split + 1:]
    args = parser.parse_args(argv)
    if extra and args.command != "convert":
        parser.error("engine options after -- are only accepted by convert")
    args.extra = extra
    return args

def _variant(args: argparse.Namespace) -> EngineVariant:
    return EngineVariant.FALLBACK if args.fallback else EngineVariant.PRIMARY

async def run_convert(client: ConverterClient, args: argparse.Namespace) -> int:
    if not args.input.is_file():
        logger.error("Input %s does not exist", args.input)
        return 1
    if args.repeat < 1:
        logger.error("--repeat must be at least 1")
        return 1

    variant = _variant(args)
    options = ConvertOptions(
        variant=variant,
        output_format=args.output_format,
        video_encoder=args.video_encoder,
        audio_encoder=args.audio_encoder,
        verbose=args.verbose,
        extra_options=tuple(args.extra),
    )
    data = args.input.read_bytes()
    print_info(f"Converting {args.input.name} ({format_size(len(data))}) "
               f"to {args.output_format} on the {variant.value} engine")

    output = None
    failures = 0
    for attempt in range(args.repeat):
        result = await client.convert_job(data, args.input.name, options)
        if result.ok:
            output = result.output
            print_check(f"Run {attempt + 1}/{args.repeat}: {format_size(len(output))} "
                        f"in {result.metric.elapsed_seconds:.2f}s")
        else:
            failures += 1
            print_warning(f"Run {attempt + 1}/{args.repeat} failed")

    print_metrics(await client.get_metrics())
    summary = await client.get_summary()
    logger.info("%d job(s): %s in, %s out, %.2fs total (%.2fs mean)",
                summary["jobs"], format_size(summary["input_bytes"]),
                format_size(summary["output_bytes"]), summary["total_elapsed_seconds"],
                summary["mean_elapsed_seconds"])

    if output is None:
        print_error(f"Conversion of {args.input.name} failed")
        return 1

    if args.write_output:
        out_file = args.output
        if out_file is None:
            muxers = await client.list_muxers(variant)
            extensions = next((m.extensions for m in muxers if m.name == args.output_format), ())
            out_file = args.input.parent / output_filename(args.input.name, extensions)
        out_file.write_bytes(output)
        print_check(f"Wrote {out_file}")

    return 1 if failures else 0

async def run_encoders(client: ConverterClient, args: argparse.Namespace) -> int:
    encoders = await client.list_encoders(_variant(args))
    if args.codec_type:
        wanted = CODEC_TYPE_CHOICES[args.codec_type]
        encoders = [e for e in encoders if e.type is wanted]
    rows = [
        (str(e.id), e.name, e.type.name.lower(), e.long_name, ", ".join(capability_names(e.capabilities)))
        for e in encoders
    ]
    print_rows("Encoders", ("Id", "Name", "Type", "Description", "Capabilities"), rows)
    return 0

async def run_muxers(client: ConverterClient, args: argparse.Namespace) -> int:
    muxers = await client.list_muxers(_variant(args))
    rows = [(m.name, m.long_name, m.mime_type, ",".join(m.extensions)) for m in muxers]
    print_rows("Muxers", ("Name", "Description", "MIME type", "Extensions"), rows)
    return 0

async def run_options(client: ConverterClient, args: argparse.Namespace) -> int:
    variant = _variant(args)
    encoders = await client.list_encoders(variant)
    encoder = next((e for e in encoders if e.name == args.encoder), None)
    if encoder is None:
        logger.error("Unknown encoder %s", args.encoder)
        return 1
    options = await client.list_codec_options(encoder.id, variant)
    rows = [
        (o.name, o.type.name.lower(), str(o.default_value), f"{o.min:g}..{o.max:g}", o.help)
        for o in options
    ]
    print_rows(f"Options for {encoder.name}", ("Name", "Type", "Default", "Range", "Help"), rows)
    return 0

COMMANDS = {
    "convert": run_convert,
    "encoders": run_encoders,
    "muxers": run_muxers,
    "options": run_options,
}

async def run(args: argparse.Namespace) -> int:
    async with ConverterClient() as client:
        return await COMMANDS[args.command](client, args)

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point"""
    args = parse_args(argv)
    configure_logging(args.log_level, file_logging=args.file_logging)
    print_header(f"ffconvert v{__version__}")

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except FFConvertError as e:
        print_error(str(e))
        return 1
    except Exception as e:
        logger.exception("Command failed: %s", e)
        return 1

if __name__ == "__main__":
    sys.exit(main())
