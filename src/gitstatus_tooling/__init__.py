"""gitstatus-build: reproducible static builds of gitstatusd against a vendored libgit2."""

__version__ = "0.1.0"
