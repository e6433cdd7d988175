"""Answer Scribe - Interview recording-to-feedback pipeline."""

try:
    from answer_scribe._version import __version__
except ImportError:
    __version__ = "0.0.0.dev0"

__all__ = ["__version__"]
