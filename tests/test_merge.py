"""
Tests for the dual-track merge step.
"""

import pytest

from conftest import write_script
from debrief.audio.constants import MERGE_FILTER
from debrief.audio.merge import build_merge_command, merge_audio_files, separate_file_paths
from debrief.errors import MergeFailure

# Writes the last argument (the output path) and records the full command line
FAKE_FFMPEG = """
import sys
from pathlib import Path

Path(sys.argv[-1]).write_text('mixed')
Path(sys.argv[-1]).with_suffix('.args').write_text('\\n'.join(sys.argv[1:]))
"""

FAILING_FFMPEG = """
import sys
from pathlib import Path

Path(sys.argv[-1]).write_text('partial')
print("Invalid data found when processing input", file=sys.stderr)
sys.exit(1)
"""


@pytest.fixture
def temp_files(temp_dir):
    mic = temp_dir / 'recording_temp_mic.m4a'
    system = temp_dir / 'recording_temp_sys.m4a'
    mic.write_text('mic')
    system.write_text('system')
    return mic, system, temp_dir / 'recording.m4a'


def test_merge_command(temp_dir):
    args = build_merge_command(temp_dir / 'a.m4a', temp_dir / 'b.m4a', temp_dir / 'out.m4a')

    assert args == [
        'ffmpeg', '-y',
        '-i', str(temp_dir / 'a.m4a'),
        '-i', str(temp_dir / 'b.m4a'),
        '-filter_complex', MERGE_FILTER,
        '-map', '[a]',
        '-c:a', 'aac', '-b:a', '192k',
        str(temp_dir / 'out.m4a'),
    ]
    assert MERGE_FILTER == '[0:a][1:a]amix=inputs=2:duration=longest[a]'


def test_separate_file_names(temp_dir):
    mic, system = separate_file_paths(temp_dir / 'standup.wav')

    assert mic.name == 'standup_mic.wav'
    assert system.name == 'standup_system.wav'


@pytest.mark.asyncio
async def test_missing_ffmpeg_keeps_separate_files(temp_files, temp_dir):
    mic, system, output = temp_files

    result = await merge_audio_files(mic, system, output, ffmpeg_path=str(temp_dir / 'no-ffmpeg'))

    assert result.merged is False
    assert isinstance(result.error, MergeFailure)
    assert 'not found' in str(result.error)
    assert [p.name for p in result.separate_files] == ['recording_mic.m4a', 'recording_system.m4a']
    assert (temp_dir / 'recording_mic.m4a').read_text() == 'mic'
    assert (temp_dir / 'recording_system.m4a').read_text() == 'system'
    assert not mic.exists()
    assert not system.exists()
    assert not output.exists()


@pytest.mark.asyncio
async def test_missing_input_is_skipped(temp_dir):
    mic = temp_dir / 'r_temp_mic.m4a'
    mic.write_text('mic')

    result = await merge_audio_files(mic, temp_dir / 'r_temp_sys.m4a', temp_dir / 'r.m4a', ffmpeg_path=str(temp_dir / 'none'))

    assert [p.name for p in result.separate_files] == ['r_mic.m4a']


@pytest.mark.posix
class TestWithFFmpegScript:

    @pytest.mark.asyncio
    async def test_success_removes_inputs(self, temp_files, temp_dir):
        mic, system, output = temp_files
        ffmpeg = write_script(temp_dir / 'ffmpeg', FAKE_FFMPEG)

        result = await merge_audio_files(mic, system, output, ffmpeg_path=str(ffmpeg))

        assert result.merged is True
        assert result.error is None
        assert result.separate_files == ()
        assert output.read_text() == 'mixed'
        assert not mic.exists()
        assert not system.exists()
        assert output.with_suffix('.args').read_text().split('\n')[:5] == ['-y', '-i', str(mic), '-i', str(system)]

    @pytest.mark.asyncio
    async def test_failure_removes_partial_output(self, temp_files, temp_dir):
        mic, system, output = temp_files
        ffmpeg = write_script(temp_dir / 'ffmpeg', FAILING_FFMPEG)

        result = await merge_audio_files(mic, system, output, ffmpeg_path=str(ffmpeg))

        assert result.merged is False
        assert 'exit code 1' in str(result.error)
        assert not output.exists()
        assert len(result.separate_files) == 2
        assert all(p.exists() for p in result.separate_files)


@pytest.mark.asyncio
async def test_blocked_fallback_name_keeps_input_in_place(temp_files, temp_dir):
    mic, system, output = temp_files
    blocker = temp_dir / 'recording_mic.m4a'
    blocker.mkdir()
    (blocker / 'notes.txt').write_text('taken')

    result = await merge_audio_files(mic, system, output, ffmpeg_path=str(temp_dir / 'no-ffmpeg'))

    assert result.merged is False
    assert result.separate_files == (mic, temp_dir / 'recording_system.m4a')
    assert mic.read_text() == 'mic'
    assert 'rename to recording_mic.m4a failed' in str(result.error)
    assert 'ffmpeg not found' in str(result.error)
