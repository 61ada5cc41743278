"""artifactd - keeps a Falco work area in sync with declared artifacts."""

__version__ = "0.1.0"
