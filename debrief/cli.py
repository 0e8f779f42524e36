"""
Command line interface for Debrief.

    debrief devices [--select-mic NAME] [--mode mic|system|both]
    debrief record [--duration N] [--mode ...] [--backend ...] [--output PATH]
    debrief permissions
    debrief recordings
    debrief version

Status goes to stderr; machine-readable results go to stdout as JSON.
"""

import argparse
import asyncio
import json
import signal
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .audio import BACKENDS, RecordingController, get_recorder_backend
from .audio.constants import CODEC_TABLE, DEFAULT_OUTPUT_FORMAT
from .audio.events import ProgressUpdated, RecordingError, RecordingStarted, RecordingState, StateChanged
from .audio.ffmpeg_backend import is_ffmpeg_available
from .audio.models import SelectionMode
from .audio.native_helper import find_recorder_binary, get_native_recorder_version
from .audio.platforms import get_platform_strategy
from .check_permissions import check_permissions
from .config import get_recordings_dir, load_config, save_config
from .device_manager import DeviceManager, select_devices, selection_preferences, with_microphone, with_mode
from .errors import DebriefError
from .logger import setup_logging
from .platform_utils import get_platform_info
from .recordings import ensure_recordings_dir, format_duration, format_file_size, generate_output_path, scan_recordings

MODES = [m.value for m in SelectionMode if m is not SelectionMode.NONE]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='debrief', description="Record meeting audio")
    parser.add_argument('--debug', action='store_true', help='Write a debug log to ~/debrief-debug.log')
    parser.add_argument('--verbose', '-v', action='store_true', help='Show progress messages')
    parser.add_argument('--config', type=Path, help='Config file (default: $XDG_CONFIG_HOME/debrief/config.yaml)')

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    devices_parser = subparsers.add_parser('devices', help='List audio devices and the current selection')
    devices_parser.add_argument('--backend', choices=BACKENDS, help='Recorder backend whose devices to list')
    devices_parser.add_argument('--select-mic', metavar='NAME', help='Save this microphone as the default')
    devices_parser.add_argument('--mode', choices=MODES, help='Save this recording mode as the default')

    record_parser = subparsers.add_parser('record', help='Record until Ctrl+C or --duration')
    record_parser.add_argument('--duration', type=int, default=0, help='Duration in seconds (0 for manual stop)')
    record_parser.add_argument('--mode', choices=MODES, help='Sources to record')
    record_parser.add_argument('--backend', choices=BACKENDS, help='Recorder backend')
    record_parser.add_argument('--format', choices=list(CODEC_TABLE), help='Output format (FFmpeg backend)')
    record_parser.add_argument('--output', type=Path, help='Output file path')

    subparsers.add_parser('permissions', help='Check microphone and Screen Recording permissions')
    subparsers.add_parser('recordings', help='List recordings, newest first')
    subparsers.add_parser('version', help='Show versions of Debrief and its recorders')

    return parser


def _make_backend(config, backend_name: Optional[str], output_format: Optional[str], logger):
    recorder = config['recorder']
    strategy = get_platform_strategy()
    backend = get_recorder_backend(
        backend_name or recorder['backend'],
        helper_path=recorder['helper_path'],
        output_format=output_format or recorder['output_format'],
        mix_audio=recorder['mix_audio'],
        bitrate=recorder['bitrate'],
        strategy=strategy,
        ffmpeg_path=recorder['ffmpeg_path'],
        logger=logger,
    )
    manager = DeviceManager.for_backend(
        backend.name,
        helper_path=getattr(backend, 'helper_path', None),
        strategy=strategy,
        ffmpeg_path=recorder['ffmpeg_path'],
        logger=logger,
    )
    return backend, manager, strategy


async def cmd_devices(args, config, logger) -> int:
    backend, manager, _ = _make_backend(config, args.backend, None, logger)
    devices = await manager.list_devices()
    selection = select_devices(devices, config['audio'])

    if args.select_mic or args.mode:
        try:
            if args.select_mic:
                matches = [d for d in devices if d.name == args.select_mic and not d.is_system_audio]
                if not matches:
                    print(f"ERROR: No microphone named '{args.select_mic}'", file=sys.stderr)
                    return 1
                selection = with_microphone(selection, matches[0])
            if args.mode:
                selection = with_mode(selection, SelectionMode(args.mode), devices)
        except ValueError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

        config['audio'].update(selection_preferences(selection))
        path = save_config(config, args.config)
        print(f"Saved selection to {path}", file=sys.stderr)

    print(json.dumps({
        "backend": backend.name,
        "microphones": [d.to_dict() for d in devices if not d.is_system_audio],
        "system_audio": [d.to_dict() for d in devices if d.is_system_audio],
        "selection": {
            "mode": selection.mode.value,
            "microphone": selection.microphone.name if selection.microphone else None,
            "system_audio": selection.system_audio.name if selection.system_audio else None,
        },
    }, indent=2))
    return 0


async def cmd_record(args, config, logger) -> int:
    backend, manager, strategy = _make_backend(config, args.backend, args.format, logger)

    preferences = dict(config['audio'])
    if args.mode:
        preferences['recording_mode'] = args.mode

    devices = await manager.list_devices()
    selection = select_devices(devices, preferences)
    if not selection.is_valid:
        print("ERROR: No audio devices found. Check permissions with 'debrief permissions'.", file=sys.stderr)
        return 1

    if args.output:
        output_path = args.output
    else:
        extension = getattr(backend, 'output_format', DEFAULT_OUTPUT_FORMAT)
        recordings_dir = ensure_recordings_dir(get_recordings_dir(config))
        output_path = generate_output_path(recordings_dir, config['output']['file_name_format'], extension)

    controller = RecordingController(
        backend,
        strategy=strategy,
        stop_timeout=config['recorder']['stop_timeout'],
        ffmpeg_path=config['recorder']['ffmpeg_path'],
        logger=logger,
    )

    done = asyncio.Event()

    def on_event(event):
        if isinstance(event, RecordingStarted):
            print(f"Recording to {event.output_path}", file=sys.stderr)
        elif isinstance(event, ProgressUpdated):
            logger.debug("Progress: %ds, %s", event.progress.elapsed_seconds, format_file_size(event.progress.size_bytes))
        elif isinstance(event, RecordingError):
            print(f"ERROR: {event.error}", file=sys.stderr)
        elif isinstance(event, StateChanged) and event.current is RecordingState.IDLE:
            done.set()

    controller.add_listener(on_event)

    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()
    try:
        loop.add_signal_handler(signal.SIGINT, stop_requested.set)
    except NotImplementedError:
        # Windows event loops have no signal handlers; Ctrl+C raises KeyboardInterrupt instead
        pass

    try:
        await controller.start(output_path, selection)
    except DebriefError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    mic_name = selection.microphone.name if selection.records_microphone else None
    system_name = selection.system_audio.name if selection.records_system_audio else None
    print(f"Recording ({selection.mode.value}): mic={mic_name} system={system_name}", file=sys.stderr)
    print("Press Ctrl+C to stop", file=sys.stderr)

    try:
        while not done.is_set() and not stop_requested.is_set():
            if args.duration and controller.elapsed() >= args.duration:
                break
            try:
                await asyncio.wait_for(stop_requested.wait(), timeout=1.0)
            except asyncio.TimeoutError:
                print(f"\r{format_duration(controller.elapsed())}", end='', file=sys.stderr, flush=True)
    except KeyboardInterrupt:
        pass

    print("\nStopping recording...", file=sys.stderr)
    if not controller.is_recording():
        return 1

    outcome = await controller.stop()
    print(json.dumps(outcome.to_dict()))
    return 0 if outcome.output_exists or outcome.separate_files else 1


async def cmd_permissions(args, config, logger) -> int:
    result = await check_permissions(config['recorder']['helper_path'])
    print(json.dumps(result, indent=2))
    return 0 if result['all_granted'] else 1


async def cmd_recordings(args, config, logger) -> int:
    recordings = scan_recordings(get_recordings_dir(config), config['recorder']['output_format'])
    print(json.dumps([r.to_dict() for r in recordings], indent=2))
    return 0


async def cmd_version(args, config, logger) -> int:
    helper_path = config['recorder']['helper_path']
    helper_path = Path(helper_path) if helper_path else find_recorder_binary(logger=logger)
    print(json.dumps({
        "debrief": __version__,
        "platform": get_platform_info(),
        "recorder": await get_native_recorder_version(helper_path),
        "recorder_path": str(helper_path),
        "ffmpeg": await is_ffmpeg_available(config['recorder']['ffmpeg_path']),
    }, indent=2))
    return 0


COMMANDS = {
    'devices': cmd_devices,
    'record': cmd_record,
    'permissions': cmd_permissions,
    'recordings': cmd_recordings,
    'version': cmd_version,
}


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    logger = setup_logging(debug=args.debug, verbose=args.verbose)

    try:
        config = load_config(args.config, logger=logger)
        return asyncio.run(COMMANDS[args.command](args, config, logger))
    except DebriefError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
