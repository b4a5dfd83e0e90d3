"""Poll EXPA for new signups and applications and route chat notifications."""

__version__ = "0.1.0"
