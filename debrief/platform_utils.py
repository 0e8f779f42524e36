"""
Platform detection and utility functions.
"""

import platform
from typing import Optional


def get_platform(system: Optional[str] = None) -> str:
    """
    Get the current platform.

    Args:
        system: Override for platform.system(), mainly for tests

    Returns:
        str: 'windows', 'macos', 'linux' or 'unknown'
    """
    system = system or platform.system()
    if system == 'Windows':
        return 'windows'
    elif system == 'Darwin':
        return 'macos'
    elif system == 'Linux':
        return 'linux'
    else:
        return 'unknown'


def get_platform_info():
    """
    Get detailed platform information.

    Returns:
        dict: Platform details including OS, version, architecture
    """
    return {
        'system': platform.system(),
        'release': platform.release(),
        'machine': platform.machine(),
        'python': platform.python_version(),
        'platform': get_platform()
    }
