# These constants are put into a _version.py file by the
# release build. If they are present, then we want to import
# them here, so they can be used by the application.

try:
    from palace.alma._version import __version__
except (ModuleNotFoundError, ImportError):
    __version__ = None

__all__ = ["__version__"]
