"""mailgate - JMAP mailbox operations behind a preview/confirm gate."""

__version__ = "0.1.0"
