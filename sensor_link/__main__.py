"""Command-line entry point: ``python -m sensor_link``."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional, Sequence

from sensor_link.cli.common import (
    add_common_cli_arguments,
    add_session_arguments,
    command_value,
    positive_float,
    positive_int,
    setup_cli_logging,
)
from sensor_link.config import SessionConfig
from sensor_link.errors import ConfigError, LinkStalledError, SensorLinkError, TransportDisconnected
from sensor_link.host import FrameReassembler, HostCommander, HostReceiver, PngFrameSink
from sensor_link.protocol import CommandTag
from sensor_link.simulation import parse_schedule, run_simulation
from sensor_link.transport import SerialTransport

DEFAULT_OUTPUT = Path("frames")


def _drop_line(value: str) -> tuple[int, int]:
    frame, sep, row = value.partition(":")
    try:
        if not sep:
            raise ValueError
        return int(frame), int(row)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Expected FRAME:ROW") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sensor_link",
        description="Stream raster lines from a parallel image sensor to a host",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sim = sub.add_parser("simulate", help="Run sensor, device and host in one process")
    add_common_cli_arguments(sim, default_output=DEFAULT_OUTPUT)
    add_session_arguments(sim)
    sim.add_argument("--frames", type=positive_int, default=3, help="Sensor frames to simulate")
    sim.add_argument("--pin-map", dest="pin_map", default=None, help="Pin map name or comma list")
    sim.add_argument("--clock-edge", dest="clock_edge", choices=("rising", "falling"), default=None)
    sim.add_argument("--skip-alternate-frames", dest="skip_alternate_frames",
                     action="store_true", default=None, help="Forward every other frame only")
    sim.add_argument("--command", dest="commands", action="append", default=[],
                     metavar="TAG=VALUE@FRAME", help="Host command sent before a frame (e.g. P=0@1)")
    sim.add_argument("--drop-line", dest="drop_lines", action="append", default=[], type=_drop_line,
                     metavar="FRAME:ROW", help="Make the sensor skip a line")
    sim.add_argument("--read-chunk", dest="read_chunk", type=positive_int, default=None,
                     help="Cap bytes per host read to exercise partial reads")
    sim.add_argument("--no-png", dest="write_png", action="store_false", default=True,
                     help="Do not write frames to disk")

    host = sub.add_parser("host", help="Receive frames from a device over a serial port")
    add_common_cli_arguments(host, default_output=DEFAULT_OUTPUT)
    add_session_arguments(host)
    host.add_argument("--port", default=None, help="Serial port (e.g. /dev/ttyACM0)")
    host.add_argument("--baudrate", type=positive_int, default=None)
    host.add_argument("--frame-timeout", dest="frame_timeout", type=positive_float, default=None)
    host.add_argument("--max-stalls", dest="max_stalls", type=positive_int, default=None)
    host.add_argument("--max-frames", dest="max_frames", type=positive_int, default=None)

    send = sub.add_parser("send", help="Send one command record to a device")
    add_common_cli_arguments(send, default_output=DEFAULT_OUTPUT, include_console_control=False)
    send.add_argument("--port", default=None, help="Serial port (e.g. /dev/ttyACM0)")
    send.add_argument("--baudrate", type=positive_int, default=None)
    send.add_argument("tag", choices=[t.value.decode() for t in CommandTag], help="Command tag")
    send.add_argument("value", type=command_value, help="Command value")

    return parser


async def _simulate(args: argparse.Namespace, config: SessionConfig, logger) -> int:
    try:
        schedule = parse_schedule(args.commands)
    except ValueError as e:
        logger.error("%s", e)
        return 2
    sink = PngFrameSink(config.output_dir) if args.write_png else None
    result = await run_simulation(
        config,
        frames=args.frames,
        schedule=schedule,
        drop_lines=args.drop_lines,
        sink=sink,
        max_read_chunk=args.read_chunk,
    )
    for report in result.reports:
        logger.info(
            "Frame %d: %s (%d captured, %d missed, %d sent)",
            report.frame_number, report.status.value,
            report.lines_captured, report.lines_missed, report.lines_sent,
        )
    for frame in result.frames:
        logger.info(
            "Host frame %d.%d: %s, %d rows",
            frame.session_id, frame.frame_id,
            "complete" if frame.complete else "incomplete", frame.rows_received,
        )
    return 0


async def _host(args: argparse.Namespace, config: SessionConfig, logger) -> int:
    if not config.port:
        logger.error("No serial port given (use --port or 'port' in the config file)")
        return 2

    transport = SerialTransport(config.port, config.baudrate, read_timeout=config.read_timeout)
    if not await transport.connect():
        return 1

    reassembler = FrameReassembler(config.width, config.active_line_count)
    receiver = HostReceiver(
        transport,
        reassembler,
        sink=PngFrameSink(config.output_dir),
        read_timeout=config.read_timeout,
        frame_timeout=config.frame_timeout,
        max_stalls=config.max_stalls,
        reconnect=config.reconnect,
    )
    commander = HostCommander(transport, reassembler, sensor_height=config.sensor_height)
    await commander.set_active_lines(config.active_line_count)
    await commander.set_streaming(True)

    try:
        delivered = await receiver.run(max_frames=args.max_frames)
        logger.info("Received %d frames", delivered)
        return 0
    except LinkStalledError as e:
        logger.error("%s", e)
        return 1
    except TransportDisconnected as e:
        logger.error("Link lost: %s", e)
        return 1
    finally:
        if transport.is_connected:
            await commander.set_streaming(False)
        await transport.disconnect()


async def _send(args: argparse.Namespace, config: SessionConfig, logger) -> int:
    if not config.port:
        logger.error("No serial port given (use --port or 'port' in the config file)")
        return 2
    async with SerialTransport(config.port, config.baudrate) as transport:
        if not transport.is_connected:
            return 1
        ok = await HostCommander(transport).send(CommandTag(args.tag.encode()), args.value)
    return 0 if ok else 1


async def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = (await SessionConfig.load_async(args.config, args)).validate()
    except ConfigError as e:
        parser.error(str(e))

    logger = setup_cli_logging(args, config.log_level)
    logger.debug("Session config: %s", config.to_dict())

    handlers = {"simulate": _simulate, "host": _host, "send": _send}
    try:
        return await handlers[args.command](args, config, logger)
    except SensorLinkError as e:
        logger.error("%s", e)
        return 1


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
