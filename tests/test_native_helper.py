"""
Tests for native helper discovery, version checks and its line protocol.
"""

import logging
from pathlib import Path

import pytest

from conftest import write_script
from debrief.audio.events import RecordingError, RecordingStarted, RecordingStopped
from debrief.audio.models import DeviceKind, DeviceSelection, SelectionMode
from debrief.audio.native_helper import (
    NativeHelperBackend,
    PACKAGE_DIR,
    check_screen_recording_permission,
    find_recorder_binary,
    get_native_recorder_version,
    get_recorder_candidates,
    is_native_recorder_available,
    list_native_devices,
)
from debrief.errors import DeviceEnumerationError, RecorderReportedError


class TestDiscovery:

    def test_search_order(self, temp_dir):
        entry = temp_dir / 'app' / 'bin' / 'debrief'
        candidates = get_recorder_candidates(argv0=str(entry), cwd=temp_dir / 'work')

        assert candidates[0] == PACKAGE_DIR / 'bin' / 'recorder'
        assert candidates[1] == entry.resolve().parent / 'recorder'
        assert candidates[2] == temp_dir.resolve() / 'app' / 'dist' / 'recorder'
        assert candidates[3] == temp_dir.resolve() / 'app' / 'native' / 'recorder'
        assert candidates[-2:] == [temp_dir / 'work' / 'native' / 'recorder', temp_dir / 'work' / 'dist' / 'recorder']

    def test_no_entry_point(self, temp_dir):
        candidates = get_recorder_candidates(argv0='', cwd=temp_dir)
        assert len(candidates) == 5

    def test_first_existing_candidate_wins(self, temp_dir):
        missing = temp_dir / 'a' / 'recorder'
        second = temp_dir / 'b' / 'recorder'
        third = temp_dir / 'c' / 'recorder'
        for path in (second, third):
            path.parent.mkdir()
            path.write_text('')

        assert find_recorder_binary([missing, second, third]) == second

    def test_directories_are_skipped(self, temp_dir):
        directory = temp_dir / 'recorder'
        directory.mkdir()
        binary = temp_dir / 'dist' / 'recorder'
        binary.parent.mkdir()
        binary.write_text('')

        assert find_recorder_binary([directory, binary]) == binary

    def test_falls_back_to_first_candidate(self, temp_dir, caplog):
        candidates = [temp_dir / 'x' / 'recorder', temp_dir / 'y' / 'recorder']
        logger = logging.getLogger('recorder-discovery')

        with caplog.at_level(logging.WARNING, logger='recorder-discovery'):
            assert find_recorder_binary(candidates, logger=logger) == candidates[0]

        assert 'Could not find recorder binary' in caplog.text
        assert str(candidates[1]) in caplog.text


class TestBackend:

    @pytest.fixture
    def backend(self):
        return NativeHelperBackend(Path('/opt/debrief/recorder'))

    @pytest.mark.parametrize('mode, flag', [
        (SelectionMode.MIC_ONLY, '--mic'),
        (SelectionMode.SYSTEM_ONLY, '--system'),
        (SelectionMode.BOTH, '--both'),
    ])
    def test_mode_flags(self, backend, mic, system_device, mode, flag):
        selection = DeviceSelection(
            None if mode is SelectionMode.SYSTEM_ONLY else mic,
            None if mode is SelectionMode.MIC_ONLY else system_device,
            mode,
        )

        args = backend.build_command(Path('/tmp/meeting.m4a'), selection)

        assert args == [str(Path('/opt/debrief/recorder')), 'record', str(Path('/tmp/meeting.m4a')), flag]

    def test_temp_paths_only_for_both(self, backend, mic_selection, both_selection):
        output = Path('/recordings/recording_2024.m4a')

        assert backend.temp_paths(output, mic_selection).is_dual is False

        temps = backend.temp_paths(output, both_selection)
        assert temps.mic == Path('/recordings/recording_2024_temp_mic.m4a')
        assert temps.system == Path('/recordings/recording_2024_temp_sys.m4a')

    def test_no_pause(self, backend):
        assert backend.supports_pause is False

    def test_started_and_stopped_messages(self, backend):
        started = backend.parse_stdout_line('{"success":true,"message":"Recording started","data":{"output":"/tmp/a.m4a"}}')
        stopped = backend.parse_stdout_line('{"success":true,"message":"Recording stopped"}')

        assert started == RecordingStarted(Path('/tmp/a.m4a'))
        assert isinstance(stopped, RecordingStopped)
        assert stopped.output_path is None

    def test_error_message(self, backend):
        event = backend.parse_stdout_line('{"success":false,"error":"Screen recording permission denied"}')

        assert isinstance(event, RecordingError)
        assert isinstance(event.error, RecorderReportedError)
        assert 'permission denied' in str(event.error)

    @pytest.mark.parametrize('line', [
        'Starting capture...',
        '{"success":true,"message":"Microphone ready"}',
        '{"success":false}',
    ])
    def test_unrecognized_lines(self, backend, line):
        assert backend.parse_stdout_line(line) is None

    def test_stderr_is_not_an_event(self, backend):
        assert backend.parse_stderr_line('SCStream error -3801') is None


LIST_DEVICES_HELPER = """
import json, sys

if sys.argv[1] == 'list-devices':
    print(json.dumps([
        {"index": 0, "name": "MacBook Pro Microphone", "id": "BuiltIn", "type": "microphone"},
        {"index": 1, "name": "System Audio", "id": "system", "type": "system"},
    ]))
elif sys.argv[1] == 'check-permissions':
    print(json.dumps({"success": False, "error": "Screen recording permission not granted"}))
elif sys.argv[1] == 'version':
    print("1.4.0")
"""

BROKEN_HELPER = """
import sys

print("something went wrong", file=sys.stderr)
sys.exit(2)
"""

SILENT_HELPER = """
import time

time.sleep(5)
"""


@pytest.mark.posix
class TestHelperQueries:

    @pytest.mark.asyncio
    async def test_list_devices(self, temp_dir):
        helper = write_script(temp_dir / 'recorder', LIST_DEVICES_HELPER)

        devices = await list_native_devices(helper)

        assert [d.name for d in devices] == ['MacBook Pro Microphone', 'System Audio']
        assert devices[1].kind is DeviceKind.SYSTEM_AUDIO

    @pytest.mark.asyncio
    async def test_list_devices_failure(self, temp_dir):
        helper = write_script(temp_dir / 'recorder', BROKEN_HELPER)

        with pytest.raises(DeviceEnumerationError, match='exit code 2'):
            await list_native_devices(helper)

    @pytest.mark.asyncio
    async def test_list_devices_missing_helper(self, temp_dir):
        with pytest.raises(DeviceEnumerationError, match='not found'):
            await list_native_devices(temp_dir / 'recorder')

    @pytest.mark.asyncio
    async def test_permission_denied(self, temp_dir):
        helper = write_script(temp_dir / 'recorder', LIST_DEVICES_HELPER)

        status = await check_screen_recording_permission(helper)

        assert status.screen_recording is False
        assert status.error_message == 'Screen recording permission not granted'

    @pytest.mark.asyncio
    async def test_permission_check_timeout(self, temp_dir):
        helper = write_script(temp_dir / 'recorder', SILENT_HELPER)

        status = await check_screen_recording_permission(helper, timeout=0.3)

        assert status.screen_recording is False
        assert 'timed out' in status.error_message

    @pytest.mark.asyncio
    async def test_permission_unparseable(self, temp_dir):
        helper = write_script(temp_dir / 'recorder', BROKEN_HELPER)

        status = await check_screen_recording_permission(helper)

        assert status.screen_recording is False
        assert status.error_message == 'Failed to parse permission check result'

    @pytest.mark.asyncio
    async def test_version(self, temp_dir):
        helper = write_script(temp_dir / 'recorder', LIST_DEVICES_HELPER)

        assert await get_native_recorder_version(helper) == '1.4.0'
        assert await is_native_recorder_available(helper) is True

    @pytest.mark.asyncio
    async def test_unavailable(self, temp_dir):
        assert await is_native_recorder_available(temp_dir / 'recorder') is False
        broken = write_script(temp_dir / 'broken', BROKEN_HELPER)
        assert await get_native_recorder_version(broken) is None
