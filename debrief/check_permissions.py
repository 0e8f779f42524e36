"""
Check macOS permissions for microphone and screen recording.

Microphone access is checked through sounddevice; Screen Recording (needed
for system audio capture) is checked through the native recorder helper,
which may also trigger the system permission prompt.

Run directly to print the JSON report to stdout.
"""

import asyncio
import json
import platform
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .audio.native_helper import check_screen_recording_permission

MICROPHONE_HELP = (
    "Grant microphone permission in: "
    "System Settings > Privacy & Security > Microphone"
)
SCREEN_RECORDING_HELP = (
    "Grant Screen Recording permission in: "
    "System Settings > Privacy & Security > Screen Recording"
)
UPGRADE_HELP = "Upgrade to macOS 13 (Ventura) or later to enable system audio capture."


def get_macos_version() -> Tuple[int, int]:
    """
    Get macOS version as tuple (major, minor).

    Returns:
        Tuple of (major, minor) version numbers, e.g., (14, 0) for Sonoma
    """
    try:
        parts = platform.mac_ver()[0].split('.')
        major = int(parts[0]) if parts and parts[0] else 0
        minor = int(parts[1]) if len(parts) > 1 else 0
        return (major, minor)
    except ValueError:
        return (0, 0)


def check_macos_version_compatibility(version: Optional[Tuple[int, int]] = None) -> Tuple[bool, str, Optional[str]]:
    """
    Check if macOS version supports ScreenCaptureKit (macOS 13+).

    Returns:
        Tuple of (is_compatible, version_string, warning_message)
    """
    version = version or get_macos_version()
    version_str = f"{version[0]}.{version[1]}"

    if version[0] >= 13:
        return True, version_str, None
    return False, version_str, (
        f"macOS {version_str} detected. ScreenCaptureKit requires macOS 13 (Ventura) or later. "
        "System audio capture will not be available. Only microphone recording will work."
    )


def check_microphone_permission() -> Tuple[bool, str]:
    """
    Check if the process can see any input device.

    Returns:
        Tuple of (has_permission, error_message)
    """
    try:
        import sounddevice as sd

        # Querying devices requires microphone permission
        devices = sd.query_devices()
        has_input = any(d['max_input_channels'] > 0 for d in devices)

        if not has_input:
            return False, "No input devices found (permission may be denied)"
        return True, ""

    except Exception as e:
        return False, f"Cannot access audio devices: {e}"


async def check_permissions(
    helper_path: Optional[Path] = None,
    need_system_audio: bool = True,
    system: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build the permission report.

    Args:
        helper_path: Native recorder binary (discovered if None)
        need_system_audio: Also check Screen Recording permission
        system: Override for platform.system()

    Returns:
        dict with 'microphone', 'screen_recording' and 'all_granted'
    """
    system = system or platform.system()
    if system != 'Darwin':
        return {
            "platform": system,
            "microphone": {"granted": True, "error": None},
            "screen_recording": {"granted": True, "error": None},
            "all_granted": True,
            "message": "Permission checks only needed on macOS",
        }

    version_compatible, version_str, version_warning = check_macos_version_compatibility()
    mic_granted, mic_error = check_microphone_permission()

    if not need_system_audio:
        screen_granted, screen_error = True, None
    elif version_compatible:
        status = await check_screen_recording_permission(helper_path)
        screen_granted, screen_error = status.screen_recording, status.error_message
    else:
        screen_granted, screen_error = False, version_warning

    result = {
        "platform": "darwin",
        "macos_version": {
            "version": version_str,
            "compatible": version_compatible,
            "warning": version_warning,
        },
        "microphone": {
            "granted": mic_granted,
            "error": mic_error if not mic_granted else None,
        },
        "screen_recording": {
            "granted": screen_granted,
            "error": screen_error if not screen_granted else None,
        },
        "all_granted": mic_granted and screen_granted,
    }

    if not mic_granted:
        result["microphone"]["help"] = MICROPHONE_HELP
    if not screen_granted:
        result["screen_recording"]["help"] = SCREEN_RECORDING_HELP if version_compatible else UPGRADE_HELP

    return result


def main():
    """
    Check all permissions and output JSON result.
    """
    result = asyncio.run(check_permissions())
    print(json.dumps(result, indent=2), file=sys.stdout)
    sys.exit(0 if result["all_granted"] else 1)


if __name__ == "__main__":
    main()
