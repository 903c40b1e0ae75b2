"""shipyard: release-build orchestration for signed multi-platform installers."""

__version__ = "0.4.0"
