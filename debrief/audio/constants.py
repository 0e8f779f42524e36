"""
Recorder constants and configuration.

Centralizes magic numbers and fixed tables for the recording pipeline.
"""

# Native helper
RECORDER_BINARY_NAME = 'recorder'
RECORDER_STARTED_MESSAGE = 'Recording started'
RECORDER_STOPPED_MESSAGE = 'Recording stopped'
SYSTEM_AUDIO_DEVICE_TYPE = 'system'  # Sentinel "type" in list-devices output

# Lifecycle timeouts (seconds)
STOP_TIMEOUT_SECONDS = 5.0  # Graceful stop window before SIGKILL
PERMISSION_CHECK_TIMEOUT_SECONDS = 5.0
QUERY_TIMEOUT_SECONDS = 10.0  # version / list-devices / ffmpeg -version

# Stream reading
READ_CHUNK_BYTES = 4096

# FFmpeg output settings per container
DEFAULT_OUTPUT_FORMAT = 'm4a'
DEFAULT_BITRATE = '192k'
OUTPUT_SAMPLE_RATE = 44100
OUTPUT_CHANNELS = 2

# {format: (codec, uses_bitrate)}; None codec lets FFmpeg pick (mkv)
CODEC_TABLE = {
    'm4a': ('aac', True),
    'mp3': ('libmp3lame', True),
    'wav': ('pcm_s16le', False),
    'mkv': (None, False),
}

# Mixing (live FFmpeg capture)
LIVE_MIX_FILTER = '[0:a][1:a]amix=inputs=2:duration=longest:dropout_transition=2[a]'

# Merge step (post-stop, dual temp files)
MERGE_FILTER = '[0:a][1:a]amix=inputs=2:duration=longest[a]'
MERGE_CODEC = 'aac'
MERGE_BITRATE = '192k'

# Temp / fallback file suffixes for dual-source native recordings
TEMP_MIC_SUFFIX = '_temp_mic'
TEMP_SYSTEM_SUFFIX = '_temp_sys'
SEPARATE_MIC_SUFFIX = '_mic'
SEPARATE_SYSTEM_SUFFIX = '_system'

# System audio classification keywords (lowercase substrings)
MACOS_SYSTEM_AUDIO_KEYWORDS = ('blackhole', 'loopback', 'soundflower')
WINDOWS_SYSTEM_AUDIO_KEYWORDS = ('stereo mix', 'what u hear', 'loopback')
LINUX_MONITOR_SUFFIX = '.monitor'

# Microphone preference when nothing is saved
MICROPHONE_NAME_HINTS = ('mic', 'microphone')
