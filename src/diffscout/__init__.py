"""diffscout: pull request diff model, change classification and search merging."""

__version__ = "0.1.0"
