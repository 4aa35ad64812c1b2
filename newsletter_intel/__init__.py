"""Newsletter intelligence: time-boxed extraction of company mentions from newsletter e-mails."""

__version__ = "0.1.0"
