"""
Version information for dahua_nvr.
"""

VERSION = "0.1.0"
BUILD_NUMBER = "0"

# Full version string including build number
FULL_VERSION = f"{VERSION}+{BUILD_NUMBER}"

__version__ = VERSION
__version_full__ = FULL_VERSION


def get_version():
    """Get the current version string."""
    return VERSION


def get_full_version():
    """Get the full version string including build number."""
    return FULL_VERSION
